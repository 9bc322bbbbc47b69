"""Entry-point for the IDML document model pipeline."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

from idml_renderer.config import DEFAULT_DPI, ProcessorConfig
from idml_renderer.context import ProcessingContext
from idml_renderer.errors import Diagnostic, MalformedXML
from idml_renderer.model.document_model import DocumentModel
from idml_renderer.parser.document_parser import DocumentParser
from idml_renderer.parser.idml_loader import DESIGNMAP_PATH, RESOURCE, STORY, STRUCTURE, IdmlPackage, classify_part
from idml_renderer.parser.page_association import PageAssociationEngine
from idml_renderer.parser.preferences_parser import PreferencesParser
from idml_renderer.parser.story_parser import StoryParser
from idml_renderer.parser.style_resolver import StyleResolver
from idml_renderer.parser.styles_parser import StylesParser
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.serialization import write_json
from idml_renderer.utils.xml_utils import Tree

LOGGER = get_logger(__name__)

PREFERENCES_PART = "Resources/Preferences.xml"
MODEL_FILENAME = "document_model.json"


def build_document_model(idml_path: Union[str, Path], config: Optional[ProcessorConfig] = None) -> DocumentModel:
    """Load an IDML package and build its document model."""
    package = IdmlPackage.load(idml_path)
    context = ProcessingContext(config or ProcessorConfig())
    for error in package.skipped:
        context.diagnostics.append(Diagnostic.from_error(error))
    return process_parts(package.trees, package.raw_story_text, context=context)


def process_parts(
    trees: Mapping[str, Tree],
    raw_story_text: Optional[Mapping[str, str]] = None,
    config: Optional[ProcessorConfig] = None,
    *,
    context: Optional[ProcessingContext] = None,
) -> DocumentModel:
    """Run the core pipeline over already-parsed trees.

    ``trees`` maps archive paths to generic XML trees; ``raw_story_text`` holds
    the unparsed text of story parts, used to recover break placement.
    """
    if context is None:
        context = ProcessingContext(config or ProcessorConfig())
    resources, structure_parts, stories = _split_parts(trees, context)

    catalog = StylesParser(resources, context).parse()
    preference_trees = [
        tree for tree in (resources.get(PREFERENCES_PART), structure_parts.get(DESIGNMAP_PATH)) if tree is not None
    ]
    page_setup = PreferencesParser(preference_trees, context).parse()
    resolver = StyleResolver(catalog, context)

    structure = DocumentParser(structure_parts, page_setup, context).parse()
    story_map = StoryParser(resolver, context).parse(stories, raw_story_text or {})

    engine = PageAssociationEngine(context)
    index = engine.associate(structure.pages, structure.elements, structure.coordinate_offset)
    engine.apply_backgrounds(structure.pages, structure.spreads, index, structure.elements, resolver)

    for element in structure.elements.values():
        if element.parent_story_id and element.parent_story_id not in story_map:
            LOGGER.debug("Text frame %s references missing story %s", element.element_id, element.parent_story_id)

    return DocumentModel(
        metadata=structure.metadata,
        resources=catalog,
        page_setup=page_setup,
        pages=structure.pages,
        spreads=structure.spreads,
        elements=structure.elements,
        stories=story_map,
        page_element_ids=index,
        master_spreads=structure.master_spreads,
        layers=structure.layers,
        coordinate_offset=structure.coordinate_offset,
        diagnostics=list(context.diagnostics),
    )


def _split_parts(
    trees: Mapping[str, Tree], context: ProcessingContext
) -> tuple[Dict[str, Tree], Dict[str, Tree], Dict[str, Tree]]:
    resources: Dict[str, Tree] = {}
    structure: Dict[str, Tree] = {}
    stories: Dict[str, Tree] = {}
    targets = {RESOURCE: resources, STRUCTURE: structure, STORY: stories}
    for name, tree in trees.items():
        kind = classify_part(name)
        if kind is None:
            LOGGER.debug("Ignoring part %s", name)
            continue
        if not isinstance(tree, Mapping):
            context.record(MalformedXML("part is not a parsed XML tree", file=name, stage="split"))
            continue
        targets[kind][name] = tree
    return resources, structure, stories


def main(idml_file: str, output_dir: Optional[str] = None, *, dpi: float = DEFAULT_DPI, indent: int = 2) -> Path:
    """Run the IDML -> document model pipeline and write the model as JSON."""
    idml_path = Path(idml_file).resolve()
    if not idml_path.exists():
        raise FileNotFoundError(f"IDML file not found: {idml_path}")

    LOGGER.info("Building document model for %s", idml_path.name)
    model = build_document_model(idml_path, ProcessorConfig(dpi=dpi))

    if output_dir is None:
        output_dir = str(idml_path.with_suffix(""))
    output_path = Path(output_dir).resolve() / MODEL_FILENAME
    LOGGER.info("Writing document model to %s", output_path)
    return write_json(model.to_dict(), output_path, indent=indent)


def cli(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Convert IDML packages into a renderable document model")
    parser.add_argument("idml_file", help="Path to the input .idml file")
    parser.add_argument("--output", help="Directory to write document_model.json into")
    parser.add_argument("--dpi", type=float, default=DEFAULT_DPI, help="Pixel density for unit conversion")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation")
    args = parser.parse_args(argv)
    main(args.idml_file, args.output, dpi=args.dpi, indent=args.indent)


if __name__ == "__main__":  # pragma: no cover
    cli()
