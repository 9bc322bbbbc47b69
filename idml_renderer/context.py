"""Per-document processing state threaded through the pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from idml_renderer.config import ProcessorConfig
from idml_renderer.errors import Diagnostic, IdmlError
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.units import UnitConverter

if TYPE_CHECKING:
    from idml_renderer.parser.document_order import StoryTrace

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class ProcessingContext:
    """State owned by a single processing pass; never shared between documents."""

    config: ProcessorConfig = field(default_factory=ProcessorConfig)
    units: UnitConverter = field(init=False)
    traces: Dict[str, "StoryTrace"] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.units = UnitConverter(dpi=self.config.dpi, source_unit=self.config.source_units)

    def record(self, error: IdmlError) -> None:
        """Log a recovered error and keep it for the document's diagnostics."""
        LOGGER.warning("%s: %s", error.kind, error)
        self.diagnostics.append(Diagnostic.from_error(error))

    def trace_for(self, file: str) -> Optional["StoryTrace"]:
        return self.traces.get(file)

    def remember_trace(self, file: str, trace: "StoryTrace") -> None:
        self.traces[file] = trace

    def diagnostics_of(self, kind: str) -> List[Diagnostic]:
        return [diagnostic for diagnostic in self.diagnostics if diagnostic.kind == kind]
