"""Measurement unit conversion for IDML geometry and typography."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from idml_renderer.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_DPI = 96

# Inches per unit. Conversions always go unit -> inches -> pixels.
INCHES_PER_UNIT: Dict[str, float] = {
    "points": 1 / 72,
    "picas": 1 / 6,
    "millimeters": 0.0393701,
    "centimeters": 0.393701,
    "inches": 1.0,
    "cicero": 0.178,
    "agate": 5.5 / 72,
}

PIXEL_UNITS = frozenset({"pixels", "pixel", "px"})

UNIT_ALIASES: Dict[str, str] = {
    "point": "points",
    "pt": "points",
    "americanpoints": "points",
    "pica": "picas",
    "pc": "picas",
    "millimeter": "millimeters",
    "mm": "millimeters",
    "centimeter": "centimeters",
    "cm": "centimeters",
    "inch": "inches",
    "in": "inches",
    "inchesdecimal": "inches",
    "ciceros": "cicero",
    "c": "cicero",
    "agates": "agate",
    "ag": "agate",
}


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """Map an IDML measurement unit name or abbreviation to its canonical key."""
    if unit is None:
        return None
    key = str(unit).strip().lower().replace(" ", "")
    if not key:
        return None
    if key in INCHES_PER_UNIT or key in PIXEL_UNITS:
        return "pixels" if key in PIXEL_UNITS else key
    return UNIT_ALIASES.get(key)


def _as_float(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def to_pixels(value: object, unit: Optional[str], dpi: float = DEFAULT_DPI) -> float:
    """Convert ``value`` expressed in ``unit`` to pixels, rounded to two decimals.

    Unknown or missing units are treated as pixels. Non-numeric values convert
    to ``0.0``.
    """
    number = _as_float(value)
    if number is None:
        LOGGER.warning("Non-numeric measurement %r, using 0", value)
        return 0.0
    canonical = normalize_unit(unit)
    if canonical is None or canonical == "pixels":
        if canonical is None and unit:
            LOGGER.warning("Unsupported unit %r, treating value as pixels", unit)
        return round(number, 2)
    inches = number * INCHES_PER_UNIT[canonical]
    return round(inches * dpi, 2)


def from_pixels(pixels: object, unit: Optional[str], dpi: float = DEFAULT_DPI) -> float:
    """Inverse of :func:`to_pixels`."""
    number = _as_float(pixels)
    if number is None:
        LOGGER.warning("Non-numeric pixel value %r, using 0", pixels)
        return 0.0
    canonical = normalize_unit(unit)
    if canonical is None or canonical == "pixels":
        return round(number, 2)
    if not dpi:
        raise ValueError("dpi must be non-zero")
    inches = number / dpi
    return round(inches / INCHES_PER_UNIT[canonical], 2)


@dataclass(frozen=True, slots=True)
class UnitConverter:
    """Pixel conversion bound to a document's source unit and DPI."""

    dpi: float = DEFAULT_DPI
    source_unit: str = "Points"

    def to_pixels(self, value: object, unit: Optional[str] = None) -> float:
        return to_pixels(value, unit or self.source_unit, self.dpi)

    def from_pixels(self, value: object, unit: Optional[str] = None) -> float:
        return from_pixels(value, unit or self.source_unit, self.dpi)

    def convert_dimensions(self, width: object, height: object, unit: Optional[str] = None) -> Tuple[float, float]:
        """Convert a width/height pair in one call."""
        return self.to_pixels(width, unit), self.to_pixels(height, unit)
