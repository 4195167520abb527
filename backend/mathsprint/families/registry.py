"""Read-only family registry — keyword table in match order, plus defaults."""

from .arithmetic import AdditionFamily, DivisionFamily, MultiplicationFamily
from .estimation import EstimationFamily, RoundingFamily
from .fractions import FractionFamily
from .geometry import GeometryFamily
from .word_problems import WordProblemFamily

_addition = AdditionFamily()
_estimation = EstimationFamily()
_rounding = RoundingFamily()

FAMILY_TABLE = [
    FractionFamily(),
    _addition,
    GeometryFamily(),
    MultiplicationFamily(),
    DivisionFamily(),
    _estimation,
    _rounding,
    WordProblemFamily(),
]

DEFAULT_FAMILIES = [_addition, _estimation, _rounding]

FAMILY_REGISTRY = {family.family_tag: family for family in FAMILY_TABLE}


def families_for(concept: str) -> list:
    """Every family whose keywords occur in the concept, in table order."""
    if not concept:
        return list(DEFAULT_FAMILIES)
    matches = [family for family in FAMILY_TABLE if family.matches(concept)]
    return matches or list(DEFAULT_FAMILIES)
