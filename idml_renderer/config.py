"""Processing configuration shared by every pipeline stage."""
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_DPI = 96
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_FONT_SIZE_PT = 12.0
DEFAULT_FONT_STYLE = "Regular"
DEFAULT_FILL_COLOR = "Color/Black"
DEFAULT_ALIGNMENT = "LeftAlign"
DEFAULT_MAX_STYLE_DEPTH = 16
DEFAULT_MERGE_MAX_LENGTH = 12
ERROR_MARKER = "[unreadable text]"


@dataclass(frozen=True, slots=True)
class ProcessorConfig:
    """Tunable values for one document processing pass."""

    dpi: float = DEFAULT_DPI
    source_units: str = "Points"
    default_font_family: str = DEFAULT_FONT_FAMILY
    default_font_size: float = DEFAULT_FONT_SIZE_PT
    default_font_style: str = DEFAULT_FONT_STYLE
    default_fill_color: str = DEFAULT_FILL_COLOR
    default_alignment: str = DEFAULT_ALIGNMENT
    max_style_depth: int = DEFAULT_MAX_STYLE_DEPTH
    merge_max_length: int = DEFAULT_MERGE_MAX_LENGTH
    full_page_ratio: float = 0.95
    full_page_edge_px: float = 5.0
    error_marker: str = ERROR_MARKER

    def __post_init__(self) -> None:
        if self.dpi <= 0:
            raise ValueError(f"dpi must be positive, got {self.dpi}")
        if self.max_style_depth < 1:
            raise ValueError("max_style_depth must be at least 1")
