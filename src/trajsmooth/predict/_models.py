from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
import pandas as pd
from statsmodels.gam.api import BSplines

from ._schema import LineageSchema, StructuralMismatchError

__all__ = ['PerGeneModel', 'LineageGAM']


class PerGeneModel(ABC):
    """Abstract base class for a model fitted to a single gene.

    :func:`predict_smooth_models` only relies on the ``design`` attribute and the
    ``predict`` method, so any object exposing both can be used.
    """

    @property
    @abstractmethod
    def design(self) -> pd.DataFrame:
        """Training design of the model (``t{k}``, ``l{k}``, offset and fixed covariates)."""

    @abstractmethod
    def predict(self, newdata: Optional[pd.DataFrame] = None) -> np.ndarray:
        """Linear predictor, offset included, for every row of ``newdata``."""


class LineageGAM(PerGeneModel):
    """Lineage GAM fitted with statsmodels.

    The linear predictor is ``U beta_U + sum_k l_k * B_k(t_k) beta_k + offset`` where
    ``B_k`` is the B-spline basis of lineage ``k`` held by a statsmodels
    :class:`~statsmodels.gam.smooth_basis.BSplines` smoother with one variable per
    lineage, and ``U`` are the fixed covariates of the design.

    Parameters
    ----------
    results
        Fitted statsmodels results (e.g. ``GLM(...).fit()``); ``results.params`` is
        ordered as the fixed covariates followed by the smoother basis columns.
    smoother : BSplines
        Smoother built on the ``t1..tL`` columns of ``design``.
    design : pd.DataFrame
        Training design of the gene.
    """

    def __init__(self, results, smoother: BSplines, design: pd.DataFrame):
        self.results = results
        self.smoother = smoother
        self._design = design
        self.schema = LineageSchema.from_columns(design.columns)

        if smoother.k_variables != self.schema.n_lineages:
            raise StructuralMismatchError(
                f"Smoother has {smoother.k_variables} variables but the design has "
                f"{self.schema.n_lineages} lineages"
            )

        basis_names = []
        for k, mask in enumerate(smoother.mask, start=1):
            basis_names.extend(f"s(t{k}):l{k}.{j}" for j in range(1, int(mask.sum()) + 1))
        self.columns = list(self.schema.covariate_columns) + basis_names

        n_params = np.asarray(results.params).shape[0]
        if n_params != len(self.columns):
            raise StructuralMismatchError(
                f"Model has {n_params} coefficients but its design implies {len(self.columns)}"
            )

    @property
    def design(self) -> pd.DataFrame:
        return self._design

    @property
    def params(self) -> pd.Series:
        return pd.Series(np.asarray(self.results.params, dtype=float), index=self.columns)

    def lpmatrix(self, newdata: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """Linear predictor matrix of ``newdata`` (the training design by default)."""
        if newdata is None:
            newdata = self._design
        schema = self.schema

        basis = self.smoother.transform(newdata[list(schema.time_columns)].to_numpy(dtype=float))
        blocks = [newdata[list(schema.covariate_columns)].to_numpy(dtype=float)]
        for l_col, mask in zip(schema.lineage_columns, self.smoother.mask):
            blocks.append(basis[:, mask] * newdata[l_col].to_numpy(dtype=float)[:, None])

        return pd.DataFrame(np.hstack(blocks), index=newdata.index, columns=self.columns)

    def predict(self, newdata: Optional[pd.DataFrame] = None) -> np.ndarray:
        if newdata is None:
            newdata = self._design
        eta = self.lpmatrix(newdata).to_numpy() @ self.params.to_numpy()
        if self.schema.offset_column is not None:
            eta = eta + newdata[self.schema.offset_column].to_numpy(dtype=float)
        return eta
