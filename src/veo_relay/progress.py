"""Display scaling for stored progress values.

Remote progress arrives either as a fraction in [0, 1] or as a percentage in
(1, 100]. The scale is inferred from the value itself, which is a heuristic:
values above 1 and up to 100 are taken as percentages, everything else as a
fraction. Exactly 1 therefore renders as 100, never as "1%".
"""

from __future__ import annotations

import math
from typing import Any


def display_progress(value: Any) -> int | float:
    """Return progress on a 0-100 scale for client display; never raises."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    try:
        scaled = float(value) * 100
    except OverflowError:
        return 0
    # Also catches finite values that overflow once scaled.
    if not math.isfinite(scaled):
        return 0
    if 1 < value <= 100:
        return value
    return _round_half_up(scaled)


def _round_half_up(value: float) -> int:
    # round() would use banker's rounding (0.125 * 100 -> 12); clients expect 13.
    return math.floor(value + 0.5)
