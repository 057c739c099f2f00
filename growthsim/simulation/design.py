"""
Factorial Design Enumeration
============================

Materializes the full Cartesian product of the manipulated factors into an
ordered list of DesignCondition records.

Iteration order is the declaration order of the factor mapping, outer to inner
(by default N, then phi22, then alpha2). Condition ids are dense and start at
1, so the same factor mapping always yields the same ids.
"""

import itertools
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from growthsim.constants import DESIGN_FACTORS
from growthsim.exceptions import EmptyDesign


@dataclass(frozen=True)
class DesignCondition:
    """One combination of manipulated factor levels."""
    id: int
    N: int
    phi22: float
    alpha2: float

    def label(self) -> str:
        return f"N={self.N}, phi22={self.phi22:g}, alpha2={self.alpha2:g}"


def _as_int(value) -> Optional[int]:
    """Integer value of a sample size level, or None if it is not integral."""
    try:
        as_int = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return as_int if as_int == value else None


def enumerate_design(factor_levels: Mapping[str, Sequence[Any]]) -> List[DesignCondition]:
    """
    Enumerate every combination of factor levels.

    Args:
        factor_levels: Mapping from factor name to its ordered levels.
            Must contain exactly the factors N, phi22 and alpha2.

    Returns:
        Conditions with ids 1..K, K being the product of the level counts

    Raises:
        EmptyDesign: If the mapping is empty or any factor has no levels
        ValueError: If factors are missing, unknown, or have duplicate levels,
            or a sample size level is not an integer

    Example:
        >>> conditions = enumerate_design({'N': [50, 100], 'phi22': [0.1],
        ...                                'alpha2': [1.0, 0.5]})
        >>> [c.id for c in conditions]
        [1, 2, 3, 4]
    """
    if not factor_levels:
        raise EmptyDesign("No design factors given")

    empty = [name for name, levels in factor_levels.items() if len(levels) == 0]
    if empty:
        raise EmptyDesign(f"Factors with no levels: {empty}")

    missing = [f for f in DESIGN_FACTORS if f not in factor_levels]
    unknown = [f for f in factor_levels if f not in DESIGN_FACTORS]
    if missing or unknown:
        raise ValueError(
            f"Design must define factors {list(DESIGN_FACTORS)}; "
            f"missing={missing}, unknown={unknown}"
        )

    for name, levels in factor_levels.items():
        if len(set(levels)) != len(levels):
            raise ValueError(f"Factor '{name}' has duplicate levels: {list(levels)}")

    non_integer = [n for n in factor_levels['N'] if _as_int(n) is None]
    if non_integer:
        raise ValueError(f"Factor 'N' levels must be integers, got {non_integer}")

    names = list(factor_levels.keys())
    conditions = []
    for idx, combo in enumerate(itertools.product(*(factor_levels[n] for n in names)), start=1):
        values = dict(zip(names, combo))
        conditions.append(DesignCondition(
            id=idx,
            N=int(values['N']),
            phi22=float(values['phi22']),
            alpha2=float(values['alpha2']),
        ))

    return conditions


def conditions_by_id(conditions: Sequence[DesignCondition]) -> Dict[int, DesignCondition]:
    """Index conditions by id."""
    return {c.id: c for c in conditions}


def design_to_frame(conditions: Sequence[DesignCondition]) -> pd.DataFrame:
    """Design as a table with one row per condition (columns: condition_id, N, phi22, alpha2)."""
    df = pd.DataFrame([asdict(c) for c in conditions],
                      columns=['id', 'N', 'phi22', 'alpha2'])
    return df.rename(columns={'id': 'condition_id'})
