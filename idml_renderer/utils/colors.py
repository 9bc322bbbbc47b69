"""Color model conversion helpers for IDML swatches."""
from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

RGB = Tuple[int, int, int]

PAPER_COLOR_ID = "Color/Paper"
NONE_COLOR_ID = "Color/None"
TRANSPARENT = "transparent"

VERY_LIGHT = "very_light"
LIGHT_TINTED = "light_tinted"
LIGHT_GRAY = "light_gray"
UNSUITABLE = "unsuitable"
SUITABLE_CATEGORIES = frozenset({VERY_LIGHT, LIGHT_TINTED, LIGHT_GRAY, "paper"})

# Swatches every IDML document can reference without defining them.
NAMED_COLORS: Dict[str, RGB] = {
    "Black": (0, 0, 0),
    "White": (255, 255, 255),
    "Paper": (255, 255, 255),
    "Registration": (0, 0, 0),
    "Red": (255, 0, 0),
    "Green": (0, 255, 0),
    "Blue": (0, 0, 255),
    "Cyan": (0, 255, 255),
    "Magenta": (255, 0, 255),
    "Yellow": (255, 255, 0),
}

_CMYK_REF_PATTERN = re.compile(
    r"C=(?P<c>-?[\d.]+)\s*M=(?P<m>-?[\d.]+)\s*Y=(?P<y>-?[\d.]+)\s*K=(?P<k>-?[\d.]+)"
)
_RGB_REF_PATTERN = re.compile(r"R=(?P<r>-?[\d.]+)\s*G=(?P<g>-?[\d.]+)\s*B=(?P<b>-?[\d.]+)")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def cmyk_to_rgb(c: float, m: float, y: float, k: float) -> RGB:
    """Convert CMYK percentages (0-100) to an RGB triple."""
    c, m, y, k = (_clamp(float(v), 0.0, 100.0) / 100.0 for v in (c, m, y, k))
    r = round(255 * (1 - c) * (1 - k))
    g = round(255 * (1 - m) * (1 - k))
    b = round(255 * (1 - y) * (1 - k))
    return int(r), int(g), int(b)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Format an RGB triple as ``#rrggbb``."""
    channels = (int(round(_clamp(float(v), 0, 255))) for v in (r, g, b))
    return "#" + "".join(f"{channel:02x}" for channel in channels)


def parse_cmyk_from_ref(color_ref: Optional[str]) -> Optional[Tuple[float, float, float, float]]:
    """Extract CMYK values from swatch names such as ``Color/C=0 M=100 Y=0 K=0``."""
    if not color_ref:
        return None
    match = _CMYK_REF_PATTERN.search(color_ref)
    if not match:
        return None
    return tuple(float(match.group(key)) for key in "cmyk")  # type: ignore[return-value]


def parse_rgb_from_ref(color_ref: Optional[str]) -> Optional[RGB]:
    """Extract RGB values from swatch names such as ``Color/R=255 G=0 B=0``."""
    if not color_ref:
        return None
    match = _RGB_REF_PATTERN.search(color_ref)
    if not match:
        return None
    return tuple(int(round(_clamp(float(match.group(key)), 0, 255))) for key in "rgb")  # type: ignore[return-value]


def named_color(color_ref: Optional[str]) -> Optional[RGB]:
    """Look up a built-in swatch by reference (``Color/Black``) or bare name."""
    if not color_ref:
        return None
    name = color_ref.split("/", 1)[1] if color_ref.startswith("Color/") else color_ref
    return NAMED_COLORS.get(name)


def analyze_cmyk_for_background(c: float, m: float, y: float, k: float, color_id: Optional[str] = None) -> str:
    """Classify a CMYK color by how well it works as a page background."""
    if color_id == PAPER_COLOR_ID:
        return "paper"
    max_cmy = max(c, m, y)
    avg_cmy = (c + m + y) / 3
    if k <= 20 and max_cmy <= 30 and avg_cmy <= 20:
        return VERY_LIGHT
    if k <= 10 and max_cmy <= 50 and avg_cmy <= 25:
        return LIGHT_TINTED
    if 5 <= k <= 60 and max_cmy <= 15 and abs(c - m) <= 5 and abs(m - y) <= 5:
        return LIGHT_GRAY
    return UNSUITABLE


def is_suitable_background(category: Optional[str]) -> bool:
    return category in SUITABLE_CATEGORIES

