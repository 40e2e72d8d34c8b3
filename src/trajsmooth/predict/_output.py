from typing import Sequence

import numpy as np
import pandas as pd

from ._schema import InvalidArgumentError, StructuralMismatchError
from ._grid import grid_point_names

__all__ = ['assemble_wide', 'assemble_tidy', 'wide_to_tidy', 'tidy_to_wide']

TIDY_COLUMNS = ['lineage', 'time', 'gene', 'yhat']


def assemble_wide(yhat: np.ndarray, genes: Sequence, n_lineages: int, n_points: int) -> pd.DataFrame:
    """Genes x (lineage, point) matrix with columns ``lineage{l}_{p}``, lineage-major."""
    yhat = np.asarray(yhat, dtype=float)
    if yhat.shape != (len(genes), n_lineages * n_points):
        raise StructuralMismatchError(
            f"Predictions of shape {yhat.shape} do not match {len(genes)} genes x "
            f"{n_lineages} lineages x {n_points} points"
        )
    return pd.DataFrame(yhat, index=pd.Index(list(genes), dtype=object),
                        columns=grid_point_names(n_lineages, n_points))


def assemble_tidy(yhat: np.ndarray, genes: Sequence, grid_times: Sequence[np.ndarray]) -> pd.DataFrame:
    """Long table with one row per gene, lineage and grid point.

    Parameters
    ----------
    yhat : np.ndarray
        Predictions of shape (n_genes, n_lineages * n_points), lineage-major columns.
    genes : sequence
        Gene labels, one per row of ``yhat``.
    grid_times : sequence of np.ndarray
        Grid pseudotimes of every lineage, in lineage order.

    Returns
    -------
    pd.DataFrame
        Columns ``lineage``, ``time``, ``gene``, ``yhat``; rows are gene-major, then
        lineage-major, then in grid order.
    """
    n_lineages = len(grid_times)
    n_points = len(grid_times[0])
    yhat = np.asarray(yhat, dtype=float)
    if yhat.shape != (len(genes), n_lineages * n_points):
        raise StructuralMismatchError(
            f"Predictions of shape {yhat.shape} do not match {len(genes)} genes x "
            f"{n_lineages} lineages x {n_points} points"
        )

    lineage = np.repeat(np.arange(1, n_lineages + 1), n_points)
    time = np.concatenate([np.asarray(t, dtype=float) for t in grid_times])
    n_genes = len(genes)

    return pd.DataFrame({
        'lineage': np.tile(lineage, n_genes),
        'time': np.tile(time, n_genes),
        'gene': np.repeat(np.asarray(list(genes), dtype=object), n_lineages * n_points),
        'yhat': yhat.reshape(-1),
    })


def wide_to_tidy(wide: pd.DataFrame, grid_times: Sequence[np.ndarray]) -> pd.DataFrame:
    """Reshape the wide layout into the tidy one."""
    return assemble_tidy(wide.to_numpy(dtype=float), list(wide.index), grid_times)


def tidy_to_wide(tidy: pd.DataFrame) -> pd.DataFrame:
    """Reshape the tidy layout back into the wide one.

    Rows must be in the order produced by :func:`assemble_tidy`.
    """
    missing = set(TIDY_COLUMNS) - set(tidy.columns)
    if missing:
        raise InvalidArgumentError(f"Tidy table is missing columns {sorted(missing)}")

    genes = list(pd.unique(tidy['gene']))
    n_lineages = int(tidy['lineage'].max())
    block = len(tidy) // len(genes)
    if block * len(genes) != len(tidy) or block % n_lineages:
        raise InvalidArgumentError(
            f"Tidy table of {len(tidy)} rows can not be split into {len(genes)} genes x {n_lineages} lineages"
        )
    n_points = block // n_lineages

    expected_gene = np.repeat(np.asarray(genes, dtype=object), block)
    expected_lineage = np.tile(np.repeat(np.arange(1, n_lineages + 1), n_points), len(genes))
    if not (np.array_equal(tidy['gene'].to_numpy(dtype=object), expected_gene)
            and np.array_equal(tidy['lineage'].to_numpy(), expected_lineage)):
        raise InvalidArgumentError("Tidy table rows are not gene-major and lineage-major")

    return assemble_wide(tidy['yhat'].to_numpy(dtype=float).reshape(len(genes), block),
                         genes, n_lineages, n_points)
