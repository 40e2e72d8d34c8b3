import os
import numpy as np
import pandas as pd
import pytest

# Keep CI stable/fast
os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("OPENBLAS_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")

from statsmodels.gam.api import BSplines
from statsmodels.genmod.generalized_linear_model import GLM
from statsmodels.genmod.families.family import NegativeBinomial

from trajsmooth.predict import SharedFit, LineageGAM

OFFSET = "offset(offset)"
RANGES = {1: 10.0, 2: 8.0}
POLY_COLUMNS = ['U'] + [f"s(t{k}):l{k}.{j}" for k in (1, 2) for j in (1, 2, 3)]


def _two_lineage_design(seed=0):
    """Cells of lineage 1 span t1 in [0, 10], cells of lineage 2 span t2 in [0, 8]."""
    rng = np.random.default_rng(seed)
    t_a = np.linspace(0, RANGES[1], 41)
    t_b = np.linspace(0, RANGES[2], 33)
    n_a, n_b = len(t_a), len(t_b)
    design = pd.DataFrame({
        'y': np.zeros(n_a + n_b),
        'U': np.ones(n_a + n_b),
        't1': np.concatenate([t_a, np.zeros(n_b)]),
        't2': np.concatenate([np.zeros(n_a), t_b]),
        'l1': np.concatenate([np.ones(n_a), np.zeros(n_b)]),
        'l2': np.concatenate([np.zeros(n_a), np.ones(n_b)]),
        OFFSET: np.log(rng.uniform(0.5, 2.0, n_a + n_b)),
    }, index=[f"cell{i}" for i in range(n_a + n_b)])
    return design


def poly_basis(t, k):
    """Cubic polynomial basis of lineage k, scaled to its range."""
    s = np.asarray(t, dtype=float) / RANGES[k]
    return np.column_stack([s, s ** 2, s ** 3])


def _poly_lpmatrix(design):
    X = np.zeros((len(design), len(POLY_COLUMNS)))
    X[:, 0] = design['U']
    X[:, 1:4] = poly_basis(design['t1'], 1) * design['l1'].to_numpy()[:, None]
    X[:, 4:7] = poly_basis(design['t2'], 2) * design['l2'].to_numpy()[:, None]
    return pd.DataFrame(X, index=design.index, columns=POLY_COLUMNS)


def expected_yhat(beta, offset, lineage, t):
    """Closed form exp(U b_U + poly(t) b_k + offset) of the polynomial fit."""
    block = slice(1, 4) if lineage == 1 else slice(4, 7)
    return np.exp(beta[0] + poly_basis(t, lineage) @ beta[block] + offset)


@pytest.fixture
def design():
    return _two_lineage_design()


@pytest.fixture
def shared_fit(design):
    rng = np.random.default_rng(1)
    coefficients = pd.DataFrame(rng.normal(0, 1, size=(3, len(POLY_COLUMNS))),
                                index=['geneA', 'geneB', 'geneC'], columns=POLY_COLUMNS)
    pseudotime = pd.DataFrame({
        'pseudotime_1': design['t1'].where(design['l1'] == 1),
        'pseudotime_2': design['t2'].where(design['l2'] == 1),
    })
    return SharedFit(coefficients=coefficients, design=design,
                     lpmatrix=_poly_lpmatrix(design), pseudotime=pseudotime)


def fit_lineage_gam(design, counts, df=5):
    """Negative binomial GLM on lineage-wise B-spline smooths, as fitted upstream."""
    design = design.copy()
    design['y'] = counts
    smoother = BSplines(design[['t1', 't2']].to_numpy(), df=[df, df], degree=[3, 3],
                        knot_kwds=[{'spacing': 'equal'}, {'spacing': 'equal'}])
    blocks = [design[['U']].to_numpy()]
    for l_col, mask in zip(['l1', 'l2'], smoother.mask):
        blocks.append(smoother.basis[:, mask] * design[l_col].to_numpy()[:, None])
    exog = np.hstack(blocks)
    results = GLM(counts, exog, family=NegativeBinomial(alpha=1.0),
                  offset=design[OFFSET].to_numpy()).fit()
    return LineageGAM(results, smoother, design)


@pytest.fixture(scope="module")
def lineage_gams():
    design = _two_lineage_design()
    rng = np.random.default_rng(2)
    t = design['t1'] + design['t2']
    means = {
        'geneA': np.exp(1.0 + np.sin(t / 3.0)),
        'geneB': np.exp(2.0 - 0.1 * t),
        'geneC': np.exp(0.5 + 0.05 * t * design['l1']),
    }
    return {gene: fit_lineage_gam(design, rng.poisson(mu * np.exp(design[OFFSET])).astype(float))
            for gene, mu in means.items()}
