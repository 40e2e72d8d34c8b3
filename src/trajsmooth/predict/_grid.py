import numbers
import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from ._schema import LineageSchema, InvalidArgumentError

logger = logging.getLogger(__name__)

__all__ = ['get_lineage_ranges', 'get_predict_range_df', 'get_predict_grid', 'grid_point_names']


def _check_n_points(n_points) -> int:
    if isinstance(n_points, bool) or not isinstance(n_points, numbers.Integral):
        raise InvalidArgumentError(f"n_points must be an integer, got {n_points!r}")
    if n_points < 2:
        raise InvalidArgumentError(f"n_points must be at least 2 to define a grid spacing, got {n_points}")
    return int(n_points)


def grid_point_names(n_lineages: int, n_points: int) -> List[str]:
    """Labels ``lineage{l}_{p}`` of the concatenated grid, lineage-major, both 1-based."""
    return [f"lineage{l}_{p}" for l in range(1, n_lineages + 1) for p in range(1, n_points + 1)]


def get_lineage_ranges(design: pd.DataFrame, schema: Optional[LineageSchema] = None) -> pd.DataFrame:
    """Observed pseudotime range of every lineage.

    Only the cells whose indicator ``l{k}`` equals 1 count towards lineage ``k``.

    Parameters
    ----------
    design : pd.DataFrame
        Design matrix with ``t{k}`` / ``l{k}`` columns.
    schema : LineageSchema, optional
        Schema of ``design``; derived from its columns when omitted.

    Returns
    -------
    pd.DataFrame
        Indexed by lineage (1..L) with columns ``min``, ``max`` and ``n_cells``.
    """
    if schema is None:
        schema = LineageSchema.from_columns(design.columns)

    rows = []
    for k, (t_col, l_col) in enumerate(zip(schema.time_columns, schema.lineage_columns), start=1):
        on_lineage = design[l_col].to_numpy(dtype=float) == 1
        t = design[t_col].to_numpy(dtype=float)[on_lineage]
        t = t[np.isfinite(t)]
        if t.size == 0:
            raise InvalidArgumentError(f"No cells with {l_col} == 1 and a finite {t_col} in the design matrix")
        rows.append({'lineage': k, 'min': float(t.min()), 'max': float(t.max()), 'n_cells': int(t.size)})

    return pd.DataFrame(rows).set_index('lineage')


def get_predict_range_df(
    design: pd.DataFrame,
    lineage_id: int,
    n_points: int = 100,
    schema: Optional[LineageSchema] = None,
    ranges: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Build the prediction frame of one lineage.

    Parameters
    ----------
    design : pd.DataFrame
        Design matrix of the fitted models.
    lineage_id : int
        1-based index of the lineage to sweep.
    n_points : int
        Number of grid points, at least 2.
    schema : LineageSchema, optional
        Schema of ``design``.
    ranges : pd.DataFrame, optional
        Output of :func:`get_lineage_ranges`, to avoid recomputing it per lineage.

    Returns
    -------
    pd.DataFrame
        ``n_points`` rows indexed ``lineage{j}_{p}``. ``t{j}`` runs uniformly from the
        lineage minimum to its maximum, every other ``t{k}`` holds lineage ``k``'s own
        minimum, ``l{j}`` is 1 and the other indicators 0. The offset and the fixed
        covariates are taken from the first design row.
    """
    if schema is None:
        schema = LineageSchema.from_columns(design.columns)
    schema.check_lineage(lineage_id)
    n_points = _check_n_points(n_points)
    if ranges is None:
        ranges = get_lineage_ranges(design, schema)

    columns = list(schema.predictor_columns)
    df = design.iloc[[0] * n_points][columns].reset_index(drop=True)

    for k, (t_col, l_col) in enumerate(zip(schema.time_columns, schema.lineage_columns), start=1):
        if k == lineage_id:
            df[t_col] = np.linspace(ranges.loc[k, 'min'], ranges.loc[k, 'max'], n_points)
            df[l_col] = 1.0
        else:
            df[t_col] = ranges.loc[k, 'min']
            df[l_col] = 0.0

    if schema.offset_column is not None:
        df[schema.offset_column] = float(design[schema.offset_column].iloc[0])

    df.index = [f"lineage{lineage_id}_{p}" for p in range(1, n_points + 1)]
    return df


def get_predict_grid(design: pd.DataFrame, n_points: int = 100,
                     schema: Optional[LineageSchema] = None) -> pd.DataFrame:
    """Concatenate the prediction frames of all lineages, lineage 1 first."""
    if schema is None:
        schema = LineageSchema.from_columns(design.columns)
    n_points = _check_n_points(n_points)
    ranges = get_lineage_ranges(design, schema)

    frames = [get_predict_range_df(design, jj, n_points, schema=schema, ranges=ranges)
              for jj in range(1, schema.n_lineages + 1)]
    grid = pd.concat(frames)
    logger.debug(f"prediction grid shape: {grid.shape}")
    return grid
