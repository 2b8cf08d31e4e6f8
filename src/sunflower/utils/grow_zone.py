"""Latitude to hardiness-zone lookup."""

from typing import Tuple

# (upper bound in degrees, upper bound inclusive, zone). Bands are scanned in
# ascending order; the first band whose upper bound admits the latitude wins.
# Through 28 degrees a boundary latitude falls into the band beyond it; from
# 35 degrees on it stays in the band that ends there.
ZONE_BANDS: Tuple[Tuple[float, bool, int], ...] = (
    (7.0, False, 13),
    (14.0, False, 12),
    (21.0, False, 11),
    (28.0, False, 10),
    (35.0, True, 9),
    (42.0, True, 8),
    (49.0, True, 7),
    (56.0, True, 6),
    (63.0, True, 5),
    (70.0, True, 4),
    (77.0, True, 3),
    (84.0, True, 2),
)

FALLBACK_ZONE = 1


def get_zone_for_latitude(latitude: float) -> int:
    """
    Map a latitude to a grow zone number (1-13).

    The sign is ignored; anything beyond 84 degrees maps to zone 1.
    """
    magnitude = abs(latitude)
    for upper, inclusive, zone in ZONE_BANDS:
        if magnitude < upper or (inclusive and magnitude == upper):
            return zone
    return FALLBACK_ZONE
