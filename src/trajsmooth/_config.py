import os
import datetime
import json
from argparse import Namespace
from typing import Dict, Any

__all__ = ['PredictConfig']

_PREDICTION_DEFAULTS = {
    'n_points': 100,
    'tidy': True,
    'strict': False,
    'n_jobs': 1,
    'progress_bar': False,
}


class PredictConfig:
    """Records and manages smoother prediction settings."""

    def __init__(self, config: str = None, args: Namespace = None):
        """
        Args:
            config: Path to a saved JSON config
            args: Parsed command-line arguments
        """

        if args is not None:
            self.run_date = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.prediction_config = self._get_prediction_config(args)
            self.io_config = self._get_io_config(args)
            self.raw_args = vars(args)

        elif config is not None and os.path.exists(config) and config.endswith('.json'):
            self.from_json(config)

        elif config is None:
            self.run_date = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.prediction_config = dict(_PREDICTION_DEFAULTS)
            self.io_config = {'fit_dir': None, 'genes': None, 'output': None}
            self.raw_args = {}

        else:
            raise ValueError(f"{config} config file not Found, args can not be empty for a new prediction")

    def _get_prediction_config(self, args: Namespace) -> Dict[str, Any]:
        return {k: getattr(args, k, v) for k, v in _PREDICTION_DEFAULTS.items()}

    def _get_io_config(self, args: Namespace) -> Dict[str, Any]:
        return {
            'fit_dir': getattr(args, 'fit_dir', None),
            'genes': getattr(args, 'genes', None),
            'output': getattr(args, 'output', None),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Returns all configurations as a dictionary."""
        return {
            'run_date': self.run_date,
            'prediction_config': self.prediction_config,
            'io_config': self.io_config,
            'raw_args': self.raw_args,
        }

    def save(self, path: str):
        """Saves configuration to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=4)

    def store_attr(self, json_load):
        for k, v in json_load.items():
            self.__setattr__(k, v)

    def from_json(self, file_path: str) -> 'PredictConfig':
        """Load a saved prediction configuration from JSON file.

        Args:
            file_path: Path to the saved JSON configuration file

        Returns:
            PredictConfig instance with loaded parameters
        """
        with open(file_path, 'r') as f:
            data = json.load(f)

        self.store_attr(data)
        self.raw_args['config'] = file_path
        return self

    def predict_kwargs(self, shared: bool = True) -> Dict[str, Any]:
        """Keyword arguments for ``predict_smooth`` (shared=True) or ``predict_smooth_models``."""
        keys = ['n_points', 'tidy'] if shared else ['n_points', 'strict', 'n_jobs', 'progress_bar']
        return {k: self.prediction_config[k] for k in keys}

    def get_args(self):
        return Namespace(**self.raw_args)
