"""Quantity extraction from free-text answers.

Finds the first "<number> <unit>" phrase across answers, checked in answer
order. Metric measurements are converted to feet.
"""

import re
from typing import Callable, Iterable, NamedTuple, Optional, Tuple

from models.production_standard import UnitOfMeasure

CUBIC_FEET_PER_CUBIC_METER = 35.3
SQUARE_FEET_PER_SQUARE_METER = 10.764

_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"


class Quantity(NamedTuple):
    value: float
    unit: UnitOfMeasure


def _number(text: str) -> float:
    return float(text.replace(",", ""))


def _scaled(factor: float) -> Callable[[re.Match], float]:
    return lambda match: _number(match.group(1)) * factor


def _plain(match: re.Match) -> float:
    return _number(match.group(1))


def _area(match: re.Match) -> float:
    return _number(match.group(1)) * _number(match.group(2))


# Order matters: cubic and square units are checked before bare feet
_PATTERNS: Tuple[Tuple[re.Pattern, UnitOfMeasure, Callable[[re.Match], float]], ...] = (
    (re.compile(_NUMBER + r"\s*(?:cubic\s*feet|cubic\s*foot|cu\.?\s*ft|cf)\b"),
     UnitOfMeasure.CUBIC_FEET, _plain),
    (re.compile(_NUMBER + r"\s*(?:cubic\s*met(?:er|re)s?|cu\s*m\b|m3\b|m³)"),
     UnitOfMeasure.CUBIC_FEET, _scaled(CUBIC_FEET_PER_CUBIC_METER)),
    (re.compile(_NUMBER + r"\s*(?:cubic\s*yards?|cu\.?\s*yds?|yd3\b|yd³)"),
     UnitOfMeasure.CUBIC_YARDS, _plain),
    (re.compile(_NUMBER + r"\s*(?:roofing\s*)?squares?\b(?!\s*(?:feet|foot|ft|met(?:er|re)s?|yards?))"),
     UnitOfMeasure.SQUARES, _plain),
    (re.compile(_NUMBER + r"\s*(?:square\s*met(?:er|re)s?|sq\.?\s*m\b|m2\b|m²)"),
     UnitOfMeasure.SQUARE_FEET, _scaled(SQUARE_FEET_PER_SQUARE_METER)),
    (re.compile(_NUMBER + r"\s*(?:square\s*feet|square\s*foot|sq\.?\s*ft|sf\b|ft²)"),
     UnitOfMeasure.SQUARE_FEET, _plain),
    (re.compile(_NUMBER + r"\s*(?:square\s*yards?|sq\.?\s*yds?)"),
     UnitOfMeasure.SQUARE_YARDS, _plain),
    (re.compile(_NUMBER + r"\s*(?:ft|feet|')?\s*(?:x|by|×)\s*" + _NUMBER),
     UnitOfMeasure.SQUARE_FEET, _area),
    (re.compile(_NUMBER + r"\s*(?:linear\s*feet|linear\s*ft|lin\.?\s*ft|feet|foot|ft\b|')"),
     UnitOfMeasure.LINEAR_FEET, _plain),
    (re.compile(_NUMBER + r"\s*(?:each|units?|items?)\b"),
     UnitOfMeasure.EACH, _plain),
)


def extract_quantity_from_text(text: str) -> Optional[Quantity]:
    """Return the first measurement found in one piece of text."""
    if not text:
        return None
    lowered = text.lower()
    for pattern, unit, value_of in _PATTERNS:
        match = pattern.search(lowered)
        if match:
            value = value_of(match)
            if value > 0:
                return Quantity(round(value, 4), unit)
    return None


def extract_quantity(texts: Iterable[str]) -> Optional[Quantity]:
    """Return the first measurement across texts, in the order given."""
    for text in texts:
        quantity = extract_quantity_from_text(text)
        if quantity is not None:
            return quantity
    return None
