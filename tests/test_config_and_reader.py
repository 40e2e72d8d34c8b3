from argparse import Namespace

import pandas as pd
import pytest

from trajsmooth import PredictConfig, load_shared_fit, save_shared_fit, predict_smooth


def test_config_defaults():
    config = PredictConfig()
    assert config.prediction_config['n_points'] == 100
    assert config.prediction_config['tidy'] is True
    assert config.predict_kwargs(shared=True) == {'n_points': 100, 'tidy': True}
    assert set(config.predict_kwargs(shared=False)) == {'n_points', 'strict', 'n_jobs', 'progress_bar'}


def test_config_json_round_trip(tmp_path):
    args = Namespace(fit_dir='fit', genes='geneA,geneB', n_points=25, tidy=False, output='out.csv')
    config = PredictConfig(args=args)
    path = str(tmp_path / 'config.json')
    config.save(path)

    loaded = PredictConfig(config=path)
    assert loaded.prediction_config == config.prediction_config
    assert loaded.io_config['genes'] == 'geneA,geneB'
    assert loaded.get_args().n_points == 25
    assert loaded.get_args().config == path


def test_config_missing_file(tmp_path):
    with pytest.raises(ValueError):
        PredictConfig(config=str(tmp_path / 'missing.json'))


def test_shared_fit_round_trip(shared_fit, tmp_path):
    save_dir = str(tmp_path / 'fit')
    save_shared_fit(shared_fit, save_dir)
    loaded = load_shared_fit(save_dir)

    assert list(loaded.gene_names) == list(shared_fit.gene_names)
    assert loaded.schema == shared_fit.schema
    pd.testing.assert_frame_equal(
        predict_smooth(loaded, ['geneA', 'geneB'], n_points=6),
        predict_smooth(shared_fit, ['geneA', 'geneB'], n_points=6),
    )


def test_load_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_shared_fit(str(tmp_path / 'nothing'))
