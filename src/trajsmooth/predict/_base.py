import numbers
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Hashable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm.auto import tqdm
from tqdm.contrib.concurrent import process_map

from ._schema import LineageSchema, InvalidArgumentError, GeneNotFoundError, StructuralMismatchError
from ._grid import _check_n_points, get_lineage_ranges, get_predict_range_df, get_predict_grid
from ._basis import BasisEvaluator
from ._models import LineageGAM
from ._output import assemble_wide, assemble_tidy

logger = logging.getLogger(__name__)

__all__ = ['SharedFit', 'predict_smooth', 'predict_smooth_models']

GeneIds = Union[Hashable, Sequence[Hashable]]


@dataclass(eq=False)
class SharedFit:
    """Lineage GAMs of many genes sharing one design.

    Attributes
    ----------
    coefficients : pd.DataFrame
        Genes x coefficients, columns aligned with ``lpmatrix``.
    design : pd.DataFrame
        Design matrix of the training cells (``t{k}``, ``l{k}``, offset, fixed covariates).
    lpmatrix : pd.DataFrame
        Linear predictor matrix of the training cells.
    pseudotime : pd.DataFrame
        Pseudotime of the training cells, one column per lineage.
    """
    coefficients: pd.DataFrame
    design: pd.DataFrame
    lpmatrix: pd.DataFrame
    pseudotime: pd.DataFrame
    schema: LineageSchema = field(init=False, repr=False)
    _evaluator: Optional[BasisEvaluator] = field(init=False, repr=False, default=None)

    def __post_init__(self):
        if isinstance(self.pseudotime, pd.Series):
            self.pseudotime = self.pseudotime.to_frame()
        self.schema = LineageSchema.from_columns(self.design.columns)

        if self.coefficients.shape[1] != self.lpmatrix.shape[1]:
            raise StructuralMismatchError(
                f"Coefficient table has {self.coefficients.shape[1]} columns but the linear predictor "
                f"matrix has {self.lpmatrix.shape[1]}"
            )
        if self.design.shape[0] != self.lpmatrix.shape[0]:
            raise StructuralMismatchError(
                f"Design matrix has {self.design.shape[0]} rows but the linear predictor "
                f"matrix has {self.lpmatrix.shape[0]}"
            )
        if self.pseudotime.shape[1] != self.schema.n_lineages:
            raise StructuralMismatchError(
                f"Pseudotime has {self.pseudotime.shape[1]} columns for {self.schema.n_lineages} lineages"
            )

    @property
    def gene_names(self) -> pd.Index:
        return self.coefficients.index

    @property
    def n_lineages(self) -> int:
        return self.schema.n_lineages

    @property
    def basis_evaluator(self) -> BasisEvaluator:
        # splines are fitted on first use and reused by later calls
        if self._evaluator is None:
            self._evaluator = BasisEvaluator(self.lpmatrix, self.pseudotime, self.schema)
        return self._evaluator

    def beta(self, positions: Sequence[int]) -> np.ndarray:
        """Coefficients of the genes at ``positions``, ordered as the ``lpmatrix`` columns."""
        beta = self.coefficients.iloc[list(positions)]
        if set(beta.columns) == set(self.lpmatrix.columns):
            beta = beta[self.lpmatrix.columns]
        return beta.to_numpy(dtype=float)

    @classmethod
    def from_models(cls, models: Mapping[Hashable, LineageGAM]) -> 'SharedFit':
        """Collect per-gene :class:`LineageGAM` fits into one shared fit.

        The design, linear predictor matrix and pseudotime come from the first fitted
        model; every model must have the same coefficient layout.
        """
        reference = _get_model_reference(models)
        fitted = {gene: m for gene, m in models.items() if m is not None}

        params = {}
        for gene, m in fitted.items():
            if list(m.columns) != list(reference.columns):
                raise StructuralMismatchError(
                    f"Model of gene {gene} has coefficients {m.columns}, expected {reference.columns}"
                )
            params[gene] = m.params.to_numpy()
        coefficients = pd.DataFrame.from_dict(params, orient='index', columns=reference.columns)

        design = reference.design
        schema = reference.schema
        pseudotime = pd.DataFrame({
            f"pseudotime_{k}": design[t_col].where(design[l_col] == 1)
            for k, (t_col, l_col) in enumerate(zip(schema.time_columns, schema.lineage_columns), start=1)
        })
        return cls(coefficients=coefficients, design=design,
                   lpmatrix=reference.lpmatrix(), pseudotime=pseudotime)


def _resolve_genes(genes: GeneIds, names: Sequence[Hashable]) -> Tuple[List[int], List[Hashable]]:
    """Positions and labels of the requested genes.

    ``genes`` holds either names or integer (0-based) positions, never a mix.
    """
    if isinstance(genes, (str, numbers.Integral)):
        genes = [genes]
    genes = list(genes)
    names = list(names)
    if len(genes) == 0:
        raise InvalidArgumentError("No genes requested.")

    if all(isinstance(g, numbers.Integral) and not isinstance(g, bool) for g in genes):
        bad = [g for g in genes if not 0 <= g < len(names)]
        if bad:
            raise GeneNotFoundError(
                f"Not all gene IDs are present in the models object. Positions out of range: {bad}"
            )
        positions = [int(g) for g in genes]
    elif all(isinstance(g, str) for g in genes):
        lookup = {}
        for i, name in enumerate(names):
            lookup.setdefault(name, i)
        missing = [g for g in genes if g not in lookup]
        if missing:
            raise GeneNotFoundError(
                f"Not all gene IDs are present in the models object. Missing: {missing}"
            )
        positions = [lookup[g] for g in genes]
    else:
        raise InvalidArgumentError("genes must be all gene names or all integer positions")

    return positions, [names[i] for i in positions]


def predict_smooth(fit: SharedFit, genes: GeneIds, n_points: int = 100,
                   tidy: bool = True) -> pd.DataFrame:
    """Predicted mean smoother of each gene on a uniform grid per lineage.

    Parameters
    ----------
    fit : SharedFit
        Coefficients, design, linear predictor matrix and pseudotime of the fitted genes.
    genes : str, int or list
        Gene names (rows of ``fit.coefficients``) or 0-based row positions.
    n_points : int
        Number of grid points per lineage. Defaults to 100.
    tidy : bool
        Return the tidy table (``lineage``, ``time``, ``gene``, ``yhat``) instead of the
        genes x ``lineage{l}_{p}`` matrix. For 2 lineages and ``n_points=100`` the matrix
        has 200 columns, the first 100 for lineage 1.

    Returns
    -------
    pd.DataFrame
    """
    positions, labels = _resolve_genes(genes, fit.gene_names)
    n_points = _check_n_points(n_points)
    schema = fit.schema
    evaluator = fit.basis_evaluator

    ranges = get_lineage_ranges(fit.design, schema)
    grids, Xs = [], []
    for jj in range(1, schema.n_lineages + 1):
        df = get_predict_range_df(fit.design, jj, n_points, schema=schema, ranges=ranges)
        grids.append(df)
        Xs.append(evaluator.evaluate(df))
    Xall = pd.concat(Xs).to_numpy(dtype=float)

    offset = 0.0
    if schema.offset_column is not None:
        offset = float(grids[0][schema.offset_column].iloc[0])

    beta = fit.beta(positions)
    logger.debug(f"predict_smooth: beta shape {beta.shape}, X shape {Xall.shape}, offset {offset}")
    logger.info(f"predicting {len(labels)} genes on {schema.n_lineages} lineages x {n_points} points")

    yhat = np.exp(beta @ Xall.T + offset)

    if not tidy:
        return assemble_wide(yhat, labels, schema.n_lineages, n_points)
    grid_times = [df[t_col].to_numpy() for df, t_col in zip(grids, schema.time_columns)]
    return assemble_tidy(yhat, labels, grid_times)


def _get_model_reference(models: Mapping[Hashable, object]):
    """First fitted model of the mapping; all models are assumed to share its design layout."""
    for m in models.values():
        if m is not None:
            return m
    raise InvalidArgumentError("The models object does not contain any fitted model.")


def _check_structure(models, labels, reference, schema: LineageSchema, strict: bool) -> None:
    required = set(schema.predictor_columns)
    for gene in labels:
        m = models[gene]
        if m is None:
            raise GeneNotFoundError(f"Not all gene IDs are present in the models object. No fit for {gene}")
        columns = list(m.design.columns)
        missing = required - set(columns)
        if missing:
            raise StructuralMismatchError(
                f"Design of gene {gene} lacks the reference covariates {sorted(missing)}"
            )
        n_lineages = LineageSchema.from_columns(columns).n_lineages
        if n_lineages != schema.n_lineages:
            raise StructuralMismatchError(
                f"Design of gene {gene} has {n_lineages} lineages, the reference model has {schema.n_lineages}"
            )
        if strict and columns != list(reference.design.columns):
            raise StructuralMismatchError(
                f"Design of gene {gene} has columns {columns}, the reference model has "
                f"{list(reference.design.columns)}"
            )


def _predict_gene_chunk(items, newdata: pd.DataFrame):
    out = []
    for gene, m in items:
        eta = np.asarray(m.predict(newdata), dtype=float).reshape(-1)
        if eta.shape[0] != len(newdata):
            raise StructuralMismatchError(
                f"Model of gene {gene} returned {eta.shape[0]} predictions for {len(newdata)} grid rows"
            )
        out.append(eta)
    return out


def predict_smooth_models(
    models: Mapping[Hashable, object],
    genes: GeneIds,
    n_points: int = 100,
    strict: bool = False,
    n_jobs: int = 1,
    progress_bar: bool = False,
) -> pd.DataFrame:
    """Predicted mean smoother of each gene from its own fitted model.

    The first fitted model of ``models`` is the reference for the design layout: the
    lineage count, pseudotime ranges, offset and fixed covariates of the grid all come
    from its training design.

    Parameters
    ----------
    models : Mapping
        Gene -> fitted model exposing ``design`` and ``predict(newdata)`` (linear predictor
        including the offset), e.g. :class:`LineageGAM`. ``None`` marks a failed fit.
    genes : str, int or list
        Gene names (keys of ``models``) or 0-based positions in the key order.
    n_points : int
        Number of grid points per lineage. Defaults to 100.
    strict : bool
        Require every requested model's design to have exactly the reference columns.
        By default only the covariates of the grid must be present.
    n_jobs : int
        Number of worker processes. 1 predicts in the calling process.
    progress_bar : bool
        Show a tqdm progress bar over genes.

    Returns
    -------
    pd.DataFrame
        Genes x ``lineage{l}_{p}`` matrix of predicted means.
    """
    positions, labels = _resolve_genes(genes, list(models.keys()))
    n_points = _check_n_points(n_points)

    reference = _get_model_reference(models)
    schema = LineageSchema.from_columns(reference.design.columns)
    _check_structure(models, labels, reference, schema, strict)

    dfall = get_predict_grid(reference.design, n_points, schema)
    logger.info(f"predicting {len(labels)} genes on {schema.n_lineages} lineages x {n_points} points")

    items = [(gene, models[gene]) for gene in labels]
    if n_jobs is not None and n_jobs > 1:
        chunks = [c for c in np.array_split(np.arange(len(items)), n_jobs * 4) if len(c)]
        worker_func = partial(_predict_gene_chunk, newdata=dfall)
        chunk_results = process_map(
            worker_func,
            [[items[i] for i in chunk] for chunk in chunks],
            max_workers=n_jobs,
            chunksize=1,
            desc="Predicting genes",
            disable=not progress_bar,
        )
        etas = [eta for chunk in chunk_results for eta in chunk]
    else:
        etas = []
        for item in tqdm(items, desc="Predicting genes", disable=not progress_bar):
            etas.extend(_predict_gene_chunk([item], dfall))

    eta = np.vstack(etas)
    if not np.all(np.isfinite(eta)):
        logger.warning("Non-finite linear predictor values in the per-gene predictions")

    return assemble_wide(np.exp(eta), labels, schema.n_lineages, n_points)
