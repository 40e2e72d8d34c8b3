import re
import numbers
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    'TrajSmoothError', 'InvalidArgumentError', 'GeneNotFoundError', 'StructuralMismatchError',
    'LineageSchema', 'BasisLayout',
]

_TIME_PATTERN = re.compile(r"^t(\d+)$")
_LINEAGE_PATTERN = re.compile(r"^l(\d+)$")
_OFFSET_PATTERN = re.compile(r"^offset$|^offset\(.+\)$")
_BASIS_PATTERN = re.compile(r"^s\(t(\d+)\):l(\d+)\.\d+$")
RESPONSE_COLUMN = 'y'


class TrajSmoothError(Exception):
    """Base class for errors raised by trajsmooth."""


class InvalidArgumentError(TrajSmoothError, ValueError):
    """A caller supplied argument can not be used (genes, lineage, grid size, column naming)."""


class GeneNotFoundError(InvalidArgumentError):
    """Some requested gene identifiers do not resolve to a fitted model."""


class StructuralMismatchError(TrajSmoothError, ValueError):
    """Two inputs that must share a covariate layout disagree."""


@dataclass(frozen=True)
class LineageSchema:
    """Column roles of a lineage design matrix.

    The design follows the tradeSeq naming: ``t1..tL`` pseudotime covariates,
    ``l1..lL`` lineage indicators (or weights), one offset column and any number
    of fixed covariates. The schema is computed once from the column names and
    then reused for every grid.

    Attributes
    ----------
    columns : tuple of str
        All design columns, in order.
    roles : tuple of str
        Role tag of each column: ``"response"``, ``"time"``, ``"lineage"``,
        ``"offset"`` or ``"covariate"``.
    n_lineages : int
        Number of lineages ``L``.
    time_columns, lineage_columns : tuple of str
        ``t{k}`` and ``l{k}`` columns ordered by lineage.
    offset_column : str or None
    response_column : str or None
    covariate_columns : tuple of str
    """
    columns: Tuple[str, ...]
    roles: Tuple[str, ...]
    n_lineages: int
    time_columns: Tuple[str, ...]
    lineage_columns: Tuple[str, ...]
    offset_column: Optional[str]
    response_column: Optional[str]
    covariate_columns: Tuple[str, ...]

    @classmethod
    def from_columns(cls, columns: Sequence[str]) -> 'LineageSchema':
        columns = tuple(str(c) for c in columns)
        roles = []
        times, lineages, offsets = {}, {}, []
        response = None
        covariates = []

        for col in columns:
            t_match = _TIME_PATTERN.match(col)
            l_match = _LINEAGE_PATTERN.match(col)
            if t_match:
                roles.append('time')
                times[int(t_match.group(1))] = col
            elif l_match:
                roles.append('lineage')
                lineages[int(l_match.group(1))] = col
            elif _OFFSET_PATTERN.match(col):
                roles.append('offset')
                offsets.append(col)
            elif col == RESPONSE_COLUMN:
                roles.append('response')
                response = col
            else:
                roles.append('covariate')
                covariates.append(col)

        n_lineages = len(times)
        if n_lineages == 0:
            raise InvalidArgumentError(
                "No pseudotime covariates (t1, t2, ...) found in the design matrix columns: "
                f"{list(columns)}"
            )
        if sorted(times) != list(range(1, n_lineages + 1)):
            raise InvalidArgumentError(
                f"Pseudotime covariates must be numbered 1..{n_lineages}, got {sorted(times.values())}"
            )
        if sorted(lineages) != sorted(times):
            raise InvalidArgumentError(
                f"Lineage indicators {sorted(lineages.values())} do not match "
                f"pseudotime covariates {sorted(times.values())}"
            )
        if len(offsets) > 1:
            raise InvalidArgumentError(f"More than one offset column in the design matrix: {offsets}")

        schema = cls(
            columns=columns,
            roles=tuple(roles),
            n_lineages=n_lineages,
            time_columns=tuple(times[k] for k in range(1, n_lineages + 1)),
            lineage_columns=tuple(lineages[k] for k in range(1, n_lineages + 1)),
            offset_column=offsets[0] if offsets else None,
            response_column=response,
            covariate_columns=tuple(covariates),
        )
        logger.debug(f"design schema: {schema.n_lineages} lineages, roles {schema.roles}")
        return schema

    @property
    def predictor_columns(self) -> Tuple[str, ...]:
        """Design columns without the response."""
        return tuple(c for c, r in zip(self.columns, self.roles) if r != 'response')

    def check_lineage(self, lineage_id: int) -> None:
        if (isinstance(lineage_id, bool) or not isinstance(lineage_id, numbers.Integral)
                or not 1 <= lineage_id <= self.n_lineages):
            raise InvalidArgumentError(
                f"lineage_id must be between 1 and {self.n_lineages}, got {lineage_id}"
            )


@dataclass(frozen=True)
class BasisLayout:
    """Positions of the smooth basis columns of a linear predictor matrix.

    Basis columns are named ``s(t{k}):l{k}.{j}`` (the mgcv ``by=`` naming);
    every other column is a fixed covariate.
    """
    columns: Tuple[str, ...]
    basis_ids: Tuple[Tuple[int, ...], ...]
    fixed_ids: Tuple[int, ...]

    @classmethod
    def from_columns(cls, columns: Sequence[str], n_lineages: int) -> 'BasisLayout':
        columns = tuple(str(c) for c in columns)
        per_lineage: List[List[int]] = [[] for _ in range(n_lineages)]
        fixed = []
        for i, col in enumerate(columns):
            match = _BASIS_PATTERN.match(col)
            if match is None:
                fixed.append(i)
                continue
            k = int(match.group(1))
            if int(match.group(2)) != k:
                raise StructuralMismatchError(
                    f"Basis column {col} pairs pseudotime t{k} with lineage indicator l{match.group(2)}"
                )
            if k < 1 or k > n_lineages:
                raise StructuralMismatchError(
                    f"Basis column {col} refers to lineage {k} but the design has {n_lineages} lineages"
                )
            per_lineage[k - 1].append(i)

        missing = [k + 1 for k, ids in enumerate(per_lineage) if not ids]
        if missing:
            raise StructuralMismatchError(
                f"No basis columns s(t<k>):l<k>.<j> found for lineage(s) {missing}"
            )
        return cls(columns=columns,
                   basis_ids=tuple(tuple(ids) for ids in per_lineage),
                   fixed_ids=tuple(fixed))
