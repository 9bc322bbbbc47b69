"""Error taxonomy and diagnostics for the IDML pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class IdmlError(Exception):
    """Base class carrying the file and pipeline stage an error belongs to."""

    kind = "IdmlError"

    def __init__(self, message: str, *, file: Optional[str] = None, stage: Optional[str] = None) -> None:
        self.message = message
        self.file = file
        self.stage = stage
        super().__init__(self._format())

    def _format(self) -> str:
        prefix = f"[{self.stage}] " if self.stage else ""
        location = f"{self.file}: " if self.file else ""
        return f"{prefix}{location}{self.message}"


class MalformedArchive(IdmlError, ValueError):
    """The input is not a readable IDML package. Fatal."""

    kind = "MalformedArchive"


class NoPagesExtracted(IdmlError, ValueError):
    """No page could be derived from the document structure. Fatal."""

    kind = "NoPagesExtracted"


class InconsistentPageIndex(IdmlError, ValueError):
    """The page index disagrees with the element assignments. Fatal."""

    kind = "InconsistentPageIndex"


class MalformedXML(IdmlError):
    """A single part could not be parsed; the part is skipped."""

    kind = "MalformedXML"


class StyleResolutionMiss(IdmlError):
    """A style reference or chain could not be resolved; defaults apply."""

    kind = "StyleResolutionMiss"


class AmbiguousPageAssignment(IdmlError):
    """An element's page could not be determined unambiguously."""

    kind = "AmbiguousPageAssignment"


class TextReconstructionFailure(IdmlError):
    """Text of a run could not be rebuilt; a placeholder is emitted instead."""

    kind = "TextReconstructionFailure"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A recovered error recorded during processing."""

    kind: str
    message: str
    file: Optional[str] = None
    stage: Optional[str] = None

    @classmethod
    def from_error(cls, error: IdmlError) -> "Diagnostic":
        return cls(kind=error.kind, message=error.message, file=error.file, stage=error.stage)
