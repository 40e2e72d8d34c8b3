import logging
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy.interpolate import CubicSpline

from ._schema import LineageSchema, BasisLayout, InvalidArgumentError, StructuralMismatchError

logger = logging.getLogger(__name__)

__all__ = ['BasisEvaluator', 'predict_gam']


class BasisEvaluator:
    """Evaluate the linear predictor matrix of a fitted lineage GAM at new covariate rows.

    This is an alternative to asking the fitted smoother for its basis at new data
    (``predict.gam(type="lpmatrix")``). The basis columns of every lineage are
    interpolated along that lineage's pseudotime with one cubic spline per column,
    using the training cells assigned to the lineage. Cells are assigned to the first
    lineage whose basis columns are not all zero.

    Parameters
    ----------
    lpmatrix : pd.DataFrame
        Linear predictor matrix of the training cells. Basis columns are named
        ``s(t{k}):l{k}.{j}``; the remaining columns are fixed covariates.
    pseudotime : pd.DataFrame or np.ndarray
        Training pseudotime, one column per lineage, rows aligned with ``lpmatrix``.
    schema : LineageSchema
        Schema of the design matrix the grids are built from.
    """

    def __init__(self, lpmatrix: pd.DataFrame, pseudotime: Union[pd.DataFrame, np.ndarray],
                 schema: LineageSchema):
        self.schema = schema
        self.columns = list(lpmatrix.columns)
        self.layout = BasisLayout.from_columns(self.columns, schema.n_lineages)

        pt = np.asarray(pseudotime, dtype=float)
        if pt.ndim == 1:
            pt = pt.reshape(-1, 1)
        if pt.shape[0] != lpmatrix.shape[0]:
            raise StructuralMismatchError(
                f"pseudotime has {pt.shape[0]} rows but the linear predictor matrix has {lpmatrix.shape[0]}"
            )
        if pt.shape[1] != schema.n_lineages:
            raise StructuralMismatchError(
                f"pseudotime has {pt.shape[1]} lineages but the design matrix has {schema.n_lineages}"
            )

        self._fixed_columns = self._match_fixed_columns()

        X = lpmatrix.to_numpy(dtype=float)
        self.lineage_id = self._assign_lineages(X)
        self._splines = [self._fit_lineage(X, pt, ii) for ii in range(schema.n_lineages)]
        logger.debug(f"basis evaluator: lpmatrix shape {X.shape}, "
                     f"basis columns per lineage {[len(ids) for ids in self.layout.basis_ids]}")

    def _match_fixed_columns(self):
        lp_fixed = [self.columns[i] for i in self.layout.fixed_ids]
        covariates = list(self.schema.covariate_columns)
        if set(lp_fixed) == set(covariates):
            return lp_fixed
        if len(lp_fixed) == len(covariates):
            return covariates
        raise StructuralMismatchError(
            f"Fixed columns of the linear predictor matrix {lp_fixed} do not match "
            f"the design covariates {covariates}"
        )

    def _assign_lineages(self, X: np.ndarray) -> np.ndarray:
        nonzero = np.column_stack([np.any(X[:, ids] != 0, axis=1) for ids in self.layout.basis_ids])
        return np.where(nonzero.any(axis=1), nonzero.argmax(axis=1), -1)

    def _fit_lineage(self, X: np.ndarray, pt: np.ndarray, ii: int) -> CubicSpline:
        rows = self.lineage_id == ii
        t = pt[rows, ii]
        Y = X[rows][:, list(self.layout.basis_ids[ii])]
        finite = np.isfinite(t)

        # tied pseudotimes are averaged
        knots = pd.DataFrame(Y[finite]).groupby(t[finite], sort=True).mean()
        if len(knots) < 2:
            raise InvalidArgumentError(
                f"Lineage {ii + 1} needs at least 2 distinct pseudotimes to interpolate its basis, "
                f"got {len(knots)}"
            )
        return CubicSpline(knots.index.to_numpy(dtype=float), knots.to_numpy(dtype=float), axis=0)

    def evaluate(self, df: pd.DataFrame) -> pd.DataFrame:
        """Linear predictor matrix of the rows of ``df``, with ``lpmatrix`` columns and ``df`` index."""
        Xout = np.zeros((len(df), len(self.columns)))

        for ii, (t_col, l_col) in enumerate(zip(self.schema.time_columns, self.schema.lineage_columns)):
            # only predict if weight = 1 on the whole frame
            if np.all(df[l_col].to_numpy(dtype=float) != 0):
                Xout[:, list(self.layout.basis_ids[ii])] = self._splines[ii](df[t_col].to_numpy(dtype=float))

        if self.layout.fixed_ids:
            Xout[:, list(self.layout.fixed_ids)] = df[self._fixed_columns].to_numpy(dtype=float)

        return pd.DataFrame(Xout, index=df.index, columns=self.columns)


def predict_gam(lpmatrix: pd.DataFrame, df: pd.DataFrame,
                pseudotime: Union[pd.DataFrame, np.ndarray],
                schema: Optional[LineageSchema] = None) -> pd.DataFrame:
    """One-shot :class:`BasisEvaluator`: linear predictor matrix of ``df``."""
    if schema is None:
        schema = LineageSchema.from_columns(df.columns)
    return BasisEvaluator(lpmatrix, pseudotime, schema).evaluate(df)
