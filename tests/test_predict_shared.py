import numpy as np
import pandas as pd
import pytest

import trajsmooth.predict._base as base
from trajsmooth.predict import (
    SharedFit, predict_smooth, InvalidArgumentError, GeneNotFoundError, StructuralMismatchError,
)

from .conftest import OFFSET, expected_yhat


def test_two_lineage_wide(shared_fit):
    wide = predict_smooth(shared_fit, ['geneB'], n_points=5, tidy=False)

    assert wide.shape == (1, 10)
    assert list(wide.index) == ['geneB']
    assert list(wide.columns) == [f"lineage{l}_{p}" for l in (1, 2) for p in range(1, 6)]
    assert np.all(np.isfinite(wide.to_numpy())) and np.all(wide.to_numpy() > 0)

    beta = shared_fit.coefficients.loc['geneB'].to_numpy()
    offset = shared_fit.design[OFFSET].iloc[0]
    np.testing.assert_allclose(wide.iloc[0, :5], expected_yhat(beta, offset, 1, [0, 2.5, 5, 7.5, 10]))
    np.testing.assert_allclose(wide.iloc[0, 5:], expected_yhat(beta, offset, 2, [0, 2, 4, 6, 8]))


def test_two_lineage_tidy(shared_fit):
    tidy = predict_smooth(shared_fit, ['geneB'], n_points=5, tidy=True)

    assert list(tidy.columns) == ['lineage', 'time', 'gene', 'yhat']
    assert len(tidy) == 10
    assert list(tidy['lineage']) == [1] * 5 + [2] * 5
    np.testing.assert_array_equal(tidy['time'], [0, 2.5, 5, 7.5, 10, 0, 2, 4, 6, 8])
    assert set(tidy['gene']) == {'geneB'}

    wide = predict_smooth(shared_fit, ['geneB'], n_points=5, tidy=False)
    np.testing.assert_array_equal(tidy['yhat'], wide.iloc[0].to_numpy())


def test_tidy_rows_are_gene_major(shared_fit):
    tidy = predict_smooth(shared_fit, ['geneC', 'geneA'], n_points=3)
    wide = predict_smooth(shared_fit, ['geneC', 'geneA'], n_points=3, tidy=False)

    assert list(tidy['gene']) == ['geneC'] * 6 + ['geneA'] * 6
    assert list(tidy['lineage']) == ([1] * 3 + [2] * 3) * 2
    for g, gene in enumerate(wide.index):
        for k, column in enumerate(wide.columns):
            lineage, point = k // 3 + 1, k % 3 + 1
            assert column == f"lineage{lineage}_{point}"
            row = tidy.iloc[g * 6 + k]
            assert row['gene'] == gene and row['lineage'] == lineage
            assert row['yhat'] == wide.iloc[g, k]


def test_gene_positions(shared_fit):
    by_position = predict_smooth(shared_fit, [2, 0], n_points=4, tidy=False)
    by_name = predict_smooth(shared_fit, ['geneC', 'geneA'], n_points=4, tidy=False)
    pd.testing.assert_frame_equal(by_position, by_name)

    single = predict_smooth(shared_fit, 'geneA', n_points=4, tidy=False)
    pd.testing.assert_frame_equal(single, by_name.loc[['geneA']])


def test_coefficients_matched_by_name(shared_fit):
    shuffled = SharedFit(coefficients=shared_fit.coefficients.iloc[:, ::-1], design=shared_fit.design,
                         lpmatrix=shared_fit.lpmatrix, pseudotime=shared_fit.pseudotime)
    pd.testing.assert_frame_equal(predict_smooth(shuffled, ['geneA'], n_points=4, tidy=False),
                                  predict_smooth(shared_fit, ['geneA'], n_points=4, tidy=False))


def test_unknown_gene_fails_before_any_computation(shared_fit, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("grid built for an invalid request")

    monkeypatch.setattr(base, "get_lineage_ranges", fail)
    with pytest.raises(GeneNotFoundError, match="Not all gene IDs are present"):
        predict_smooth(shared_fit, ['geneA', 'notAGene'], n_points=5)
    with pytest.raises(InvalidArgumentError):
        predict_smooth(shared_fit, [0, 3], n_points=5)
    assert shared_fit._evaluator is None


def test_mixed_gene_ids(shared_fit):
    with pytest.raises(InvalidArgumentError):
        predict_smooth(shared_fit, ['geneA', 1])
    with pytest.raises(InvalidArgumentError):
        predict_smooth(shared_fit, [])


def test_degenerate_n_points(shared_fit):
    with pytest.raises(InvalidArgumentError):
        predict_smooth(shared_fit, ['geneA'], n_points=1)


def test_positive_predictions(shared_fit):
    wide = predict_smooth(shared_fit, [0, 1, 2], n_points=50, tidy=False)
    assert wide.shape == (3, 100)
    assert np.all(wide.to_numpy() > 0)


def test_shared_fit_validation(shared_fit):
    with pytest.raises(StructuralMismatchError):
        SharedFit(coefficients=shared_fit.coefficients.iloc[:, :-1], design=shared_fit.design,
                  lpmatrix=shared_fit.lpmatrix, pseudotime=shared_fit.pseudotime)
    with pytest.raises(StructuralMismatchError):
        SharedFit(coefficients=shared_fit.coefficients, design=shared_fit.design,
                  lpmatrix=shared_fit.lpmatrix, pseudotime=shared_fit.pseudotime.iloc[:, :1])
    with pytest.raises(InvalidArgumentError):
        SharedFit(coefficients=shared_fit.coefficients, design=shared_fit.design.drop(columns=['t1', 't2']),
                  lpmatrix=shared_fit.lpmatrix, pseudotime=shared_fit.pseudotime)
