from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Tuple

from .errors import FormatError, UnsupportedRatioError

# Aspect ratios Firefly renders natively, in the order used to break ties
# when approximating an unsupported ratio.
ASPECT_SPECS: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "4:3": (2304, 1792),
    "3:4": (1792, 2304),
    "16:9": (2688, 1536),
    "7:4": (1344, 768),
    "9:7": (1152, 896),
    "7:9": (896, 1152),
}


def parse_aspect_ratio(ratio: str) -> Tuple[int, int]:
    """
    Split a "W:H" string into two positive integers.

    Raises FormatError if either side is missing, zero, or not a whole number.
    """
    if not isinstance(ratio, str):
        raise FormatError(f"Invalid aspect ratio format: {ratio!r}")

    parts = ratio.split(":")
    if len(parts) != 2:
        raise FormatError(f"Invalid aspect ratio format: {ratio}")

    w_text, h_text = (p.strip() for p in parts)
    if not (w_text.isdecimal() and h_text.isdecimal()):
        raise FormatError(f"Invalid aspect ratio format: {ratio}")

    w, h = int(w_text), int(h_text)
    if w <= 0 or h <= 0:
        raise FormatError(f"Invalid aspect ratio format: {ratio}")
    return w, h


def is_valid_aspect_ratio(ratio: str) -> bool:
    try:
        parse_aspect_ratio(ratio)
    except FormatError:
        return False
    return True


def is_supported(ratio: str) -> bool:
    return ratio in ASPECT_SPECS


def approximate(ratio: str) -> str:
    """Return the supported ratio key whose proportion is closest to ``ratio``."""
    w, h = parse_aspect_ratio(ratio)
    input_ratio = w / h

    keys = list(ASPECT_SPECS)
    closest_key = keys[0]
    kw, kh = parse_aspect_ratio(closest_key)
    closest_diff = abs(kw / kh - input_ratio)

    for key in keys[1:]:
        kw, kh = parse_aspect_ratio(key)
        diff = abs(kw / kh - input_ratio)
        # Strict comparison keeps the earliest key on ties.
        if diff < closest_diff:
            closest_diff = diff
            closest_key = key
    return closest_key


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def expanded_size(ratio: str) -> Tuple[int, int]:
    """
    Pixel size for an arbitrary ratio.

    Supported ratios return their stored size. Anything else keeps the pixel
    area of the nearest supported size while matching the requested
    proportion exactly:

        width  = round(sqrt(area * r))
        height = round(sqrt(area / r))
    """
    if is_supported(ratio):
        return ASPECT_SPECS[ratio]

    base_w, base_h = ASPECT_SPECS[approximate(ratio)]
    base_area = base_w * base_h
    w, h = parse_aspect_ratio(ratio)
    target_ratio = w / h

    return (
        _round_half_up(math.sqrt(base_area * target_ratio)),
        _round_half_up(math.sqrt(base_area / target_ratio)),
    )


def canonical_size(ratio: str) -> Tuple[int, int]:
    """Stored size of a supported ratio; UnsupportedRatioError otherwise."""
    if is_supported(ratio):
        return ASPECT_SPECS[ratio]
    suggestion = approximate(ratio)
    raise UnsupportedRatioError(ratio, suggestion, ASPECT_SPECS[suggestion])


def resolve_aspect_ratios(
        ratios: Iterable[str],
) -> Tuple[List[str], Dict[str, str]]:
    """
    Replace unsupported ratios with their approximation.

    Returns the ratios to render, in request order without duplicates, and a
    mapping of each unsupported input to the ratio substituted for it.
    """
    resolved: List[str] = []
    substitutions: Dict[str, str] = {}
    for ratio in ratios:
        ratio = ratio.strip()
        key = ratio
        if not is_supported(ratio):
            key = approximate(ratio)
            substitutions[ratio] = key
        if key not in resolved:
            resolved.append(key)

    if substitutions:
        logging.warning(
            "Unsupported aspect ratio(s): %s. Approximating to the closest "
            "supported ratio(s): %s",
            ", ".join(substitutions),
            ", ".join(substitutions.values()),
        )
    return resolved, substitutions
