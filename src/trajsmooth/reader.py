import os
import logging

import pandas as pd

from .predict import SharedFit

logger = logging.getLogger(__name__)

_FIT_TABLES = ['coefficients', 'design', 'lpmatrix', 'pseudotime']


def save_shared_fit(fit: SharedFit, save_dir: str):
    """
    save a shared fit to disk, one CSV per table
    """
    # check dir
    if os.path.exists(save_dir) == False:
        os.makedirs(save_dir)

    for key in _FIT_TABLES:
        getattr(fit, key).to_csv(os.path.join(save_dir, f"{key}.csv"))
    logger.info(f"saved fit of {fit.coefficients.shape[0]} genes to {save_dir}")


def load_shared_fit(save_dir: str) -> SharedFit:
    """
    Load a shared fit from a directory written by `save_shared_fit`

    Args:
        save_dir (str): directory holding coefficients.csv, design.csv, lpmatrix.csv and pseudotime.csv

    Returns:
        fit (SharedFit): the fitted genes, ready for `predict_smooth`
    """
    if not os.path.isdir(save_dir):
        raise FileNotFoundError(f"{save_dir} does not exist")

    tables = {}
    for key in _FIT_TABLES:
        csv_path = os.path.join(save_dir, f"{key}.csv")
        if not os.path.exists(csv_path):
            raise FileNotFoundError(f"{csv_path} is missing from the fit directory")
        tables[key] = pd.read_csv(csv_path, index_col=0)

    # gene names are always labels, even when they look numeric
    tables['coefficients'].index = tables['coefficients'].index.astype(str)

    return SharedFit(**tables)
