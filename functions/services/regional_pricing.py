"""Regional pricing adjuster.

Maps a job-site address to a labor cost multiplier. Multipliers apply to
labor only; materials are nationally priced.

Resolution order:
1. Curated city + state match
2. State-level default
3. Rural fallback when a state is known but has no default
Addresses with no recognizable state resolve to the standard rate.
"""

import re
from types import MappingProxyType
from typing import Optional, Tuple

import structlog

from models.location import LocationInfo, RegionalMultiplier, RegionalPricingResult
from utils.money import round_half_up

logger = structlog.get_logger()


# =============================================================================
# REFERENCE DATA
# =============================================================================

REGIONAL_MULTIPLIERS: Tuple[RegionalMultiplier, ...] = tuple(
    RegionalMultiplier(city=city, state=state, multiplier=multiplier, label=label)
    for city, state, multiplier, label in (
        # High-cost metros
        ("San Francisco", "CA", 1.25, "San Francisco premium"),
        ("San Jose", "CA", 1.25, "San Jose premium"),
        ("Oakland", "CA", 1.20, "Oakland premium"),
        ("New York", "NY", 1.25, "NYC premium"),
        ("Manhattan", "NY", 1.30, "Manhattan premium"),
        ("Brooklyn", "NY", 1.25, "Brooklyn premium"),
        ("Los Angeles", "CA", 1.20, "LA premium"),
        ("Seattle", "WA", 1.20, "Seattle premium"),
        ("Boston", "MA", 1.20, "Boston premium"),
        ("Washington", "DC", 1.20, "DC premium"),
        # Medium-cost cities
        ("Austin", "TX", 1.15, "Austin premium"),
        ("Denver", "CO", 1.15, "Denver premium"),
        ("Portland", "OR", 1.10, "Portland premium"),
        ("Chicago", "IL", 1.10, "Chicago premium"),
        ("Miami", "FL", 1.10, "Miami premium"),
        ("San Diego", "CA", 1.15, "San Diego premium"),
        # Baseline cities
        ("Dallas", "TX", 1.00, "Standard rate"),
        ("Houston", "TX", 1.00, "Standard rate"),
        ("Phoenix", "AZ", 1.00, "Standard rate"),
        ("Atlanta", "GA", 1.00, "Standard rate"),
        ("Philadelphia", "PA", 1.00, "Standard rate"),
        ("San Antonio", "TX", 0.95, "Standard rate"),
    )
)

STATE_DEFAULTS = MappingProxyType({
    "CA": 1.10,
    "NY": 1.10,
    "MA": 1.10,
    "WA": 1.05,
    "CO": 1.05,
    "TX": 0.95,
    "FL": 0.95,
    "AZ": 0.95,
})

RURAL_DISCOUNT = 0.85
STANDARD_RATE_LABEL = "Standard rate"
RURAL_LABEL = "Rural area discount"

STATE_NAME_MAP = MappingProxyType({
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "district of columbia": "DC", "florida": "FL", "georgia": "GA", "hawaii": "HI",
    "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME",
    "maryland": "MD", "massachusetts": "MA", "michigan": "MI", "minnesota": "MN",
    "mississippi": "MS", "missouri": "MO", "montana": "MT", "nebraska": "NE",
    "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM",
    "new york": "NY", "north carolina": "NC", "north dakota": "ND", "ohio": "OH",
    "oklahoma": "OK", "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI",
    "south carolina": "SC", "south dakota": "SD", "tennessee": "TN", "texas": "TX",
    "utah": "UT", "vermont": "VT", "virginia": "VA", "washington": "WA",
    "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
})

VALID_STATE_CODES = frozenset(STATE_NAME_MAP.values())

# Longest names first so "west virginia" wins over "virginia"
_STATE_NAMES_BY_LENGTH = tuple(sorted(STATE_NAME_MAP, key=len, reverse=True))
_TWO_LETTER_TOKEN = re.compile(r"\b([A-Za-z]{2})\b")
# Street lines such as "12 Elm Ct" carry suffixes that read as state codes
_STREET_LINE = re.compile(r"^\d+[A-Za-z]?\s+[A-Za-z]")


# =============================================================================
# PARSING
# =============================================================================


def extract_state(segment: str) -> Optional[str]:
    """Find a state code or full state name in one address segment.

    Street lines, which start with a house number, never name the state.
    """
    if not segment:
        return None
    text = segment.strip()
    if _STREET_LINE.match(text):
        return None

    for token in _TWO_LETTER_TOKEN.findall(text):
        code = token.upper()
        if code in VALID_STATE_CODES:
            return code

    lowered = text.lower()
    for name in _STATE_NAMES_BY_LENGTH:
        if re.search(rf"\b{re.escape(name)}\b", lowered):
            return STATE_NAME_MAP[name]
    return None


def parse_location(address: Optional[str]) -> LocationInfo:
    """Parse a free-text address into city and state.

    Handles "456 Oak Street, Dallas, TX 75201", "Austin, Texas" and
    "123 Main St, Austin, TX 78701, USA". A single segment without commas
    is not parsed.
    """
    if not address:
        return LocationInfo(raw="")

    parts = [part.strip() for part in address.split(",")]
    if len(parts) < 2:
        return LocationInfo(raw=address)

    for index in range(len(parts) - 1, -1, -1):
        state = extract_state(parts[index])
        if state:
            city = parts[index - 1] if index > 0 else None
            return LocationInfo(raw=address, city=city or None, state=state)

    return LocationInfo(raw=address)


# =============================================================================
# MULTIPLIER RESOLUTION
# =============================================================================


def _result(multiplier: float, label: str, source: str) -> RegionalPricingResult:
    return RegionalPricingResult(
        multiplier=multiplier,
        label=label,
        adjustment_percent=round_half_up((multiplier - 1) * 100),
        source=source,
    )


def get_regional_multiplier(location: LocationInfo) -> RegionalPricingResult:
    """Resolve the labor multiplier for a parsed location. Never raises."""
    if not location.city and not location.state:
        return _result(1.0, STANDARD_RATE_LABEL, "default")

    if location.city and location.state:
        city = location.city.lower()
        for entry in REGIONAL_MULTIPLIERS:
            if entry.city.lower() == city and entry.state == location.state:
                return _result(entry.multiplier, entry.label, "city")

    if location.state in STATE_DEFAULTS:
        multiplier = STATE_DEFAULTS[location.state]
        label = f"{location.state} premium" if multiplier > 1 else f"{location.state} rate"
        return _result(multiplier, label, "state")

    return _result(RURAL_DISCOUNT, RURAL_LABEL, "rural")


def apply_regional_pricing(
    base_labor_cost: int,
    location: LocationInfo
) -> Tuple[int, RegionalPricingResult]:
    """Adjust a labor cost in cents for the location."""
    regional = get_regional_multiplier(location)
    adjusted = round_half_up(base_labor_cost * regional.multiplier)

    logger.debug(
        "regional_pricing_applied",
        city=location.city,
        state=location.state,
        multiplier=regional.multiplier,
        base_labor_cost=base_labor_cost,
        adjusted_labor_cost=adjusted
    )
    return adjusted, regional


def get_regional_adjustment_display(location: LocationInfo) -> str:
    """Short display string such as "+25% San Francisco premium"; empty at 0%."""
    regional = get_regional_multiplier(location)
    if regional.adjustment_percent == 0:
        return ""
    sign = "+" if regional.adjustment_percent > 0 else ""
    return f"{sign}{regional.adjustment_percent}% {regional.label}"
