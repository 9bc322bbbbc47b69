"""IDML package loader: unpacks the archive and converts XML parts into trees."""
from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union
from xml.etree import ElementTree as ET

from idml_renderer.errors import MalformedArchive, MalformedXML
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.xml_utils import Tree, element_to_tree, parse_xml

LOGGER = get_logger(__name__)

DESIGNMAP_PATH = "designmap.xml"
RESOURCES_PREFIX = "Resources/"
SPREADS_PREFIX = "Spreads/"
MASTER_SPREADS_PREFIX = "MasterSpreads/"
STORIES_PREFIX = "Stories/"

RESOURCE = "resource"
STRUCTURE = "structure"
STORY = "story"


def classify_part(name: str) -> Optional[str]:
    """Return which pipeline stage consumes the given archive path."""
    if not name.endswith(".xml"):
        return None
    if name.startswith(RESOURCES_PREFIX):
        return RESOURCE
    if name == DESIGNMAP_PATH or name.startswith(SPREADS_PREFIX) or name.startswith(MASTER_SPREADS_PREFIX):
        return STRUCTURE
    if name.startswith(STORIES_PREFIX):
        return STORY
    return None


@dataclass(slots=True)
class IdmlPackage:
    """Parsed XML trees of an IDML archive plus the raw text of its stories."""

    raw_parts: Mapping[str, bytes]
    trees: Dict[str, Tree] = field(default_factory=dict)
    raw_story_text: Dict[str, str] = field(default_factory=dict)
    skipped: List[MalformedXML] = field(default_factory=list)

    @classmethod
    def load(cls, idml_path: Union[str, Path]) -> "IdmlPackage":
        """Open an IDML archive from disk."""
        path = Path(idml_path)
        try:
            with zipfile.ZipFile(path) as archive:
                parts = {name: archive.read(name) for name in archive.namelist() if not name.endswith("/")}
        except (zipfile.BadZipFile, OSError) as exc:
            raise MalformedArchive(f"cannot read archive: {exc}", file=path.name, stage="load") from exc

        LOGGER.debug("Loaded %d parts from %s", len(parts), path.name)
        return cls.from_parts(parts, source=path.name)

    @classmethod
    def from_bytes(cls, data: bytes, source: str = "<memory>") -> "IdmlPackage":
        try:
            with zipfile.ZipFile(BytesIO(data)) as archive:
                parts = {name: archive.read(name) for name in archive.namelist() if not name.endswith("/")}
        except zipfile.BadZipFile as exc:
            raise MalformedArchive(f"cannot read archive: {exc}", file=source, stage="load") from exc
        return cls.from_parts(parts, source=source)

    @classmethod
    def from_parts(cls, parts: Mapping[str, bytes], source: str = "<memory>") -> "IdmlPackage":
        if DESIGNMAP_PATH not in parts:
            raise MalformedArchive(f"{DESIGNMAP_PATH} missing from package", file=source, stage="load")
        package = cls(raw_parts=dict(parts))
        package._initialize_trees()
        return package

    # ------------------------------------------------------------------
    # Internal bootstrap
    def _initialize_trees(self) -> None:
        for name, data in self.raw_parts.items():
            kind = classify_part(name)
            if kind is None:
                continue
            tree = self._parse_part(name, data)
            if tree is None:
                continue
            self.trees[name] = tree
            if kind == STORY:
                self.raw_story_text[name] = data.decode("utf-8", errors="replace")

    def _parse_part(self, name: str, data: bytes) -> Optional[Tree]:
        try:
            return element_to_tree(parse_xml(data))
        except ET.ParseError as exc:
            error = MalformedXML(f"invalid XML: {exc}", file=name, stage="load")
            LOGGER.warning("Skipping %s: %s", name, exc)
            self.skipped.append(error)
            return None
