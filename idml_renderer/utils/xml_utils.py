"""XML helpers: conversion into the generic attribute tree and typed node views."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union
from xml.etree import ElementTree as ET

ATTRIBUTE_PREFIX = "@_"
TEXT_KEY = "#text"

Tree = Dict[str, Any]

_NUMBER_PATTERN = re.compile(r"^[-+]?(0|[1-9]\d*)(\.\d+)?([eE][-+]?\d+)?$")


def parse_xml(data: Union[bytes, str]) -> ET.Element:
    """Parse raw XML, raising ``ET.ParseError`` on malformed input."""
    return ET.fromstring(data)


def local_name(tag: str) -> str:
    """Drop the ``{namespace}`` or ``prefix:`` part of a tag or attribute name."""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag


def typed_value(raw: str) -> Any:
    """Pre-type an attribute value: integers, floats and booleans when unambiguous."""
    text = raw.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    match = _NUMBER_PATTERN.match(text)
    if match is None:
        return raw
    if match.group(2) or match.group(3):
        return float(text)
    return int(text)


def element_to_tree(element: ET.Element) -> Tree:
    """Convert an element into ``{tag: node}`` using the generic tree shape."""
    return {local_name(element.tag): _convert(element)}


def _convert(element: ET.Element) -> Any:
    children = list(element)
    if not element.attrib and not children:
        return element.text if element.text is not None else ""

    node: Tree = {}
    for key, value in element.attrib.items():
        node[ATTRIBUTE_PREFIX + local_name(key)] = typed_value(value)

    for child in children:
        tag = local_name(child.tag)
        value = _convert(child)
        if tag in node:
            existing = node[tag]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[tag] = [existing, value]
        else:
            node[tag] = value

    text = _collect_text(element, children)
    if text is not None:
        node[TEXT_KEY] = text
    return node


def _collect_text(element: ET.Element, children: List[ET.Element]) -> Optional[str]:
    if not children:
        return element.text if element.text else None
    parts = [element.text or ""] + [child.tail or "" for child in children]
    joined = "".join(parts)
    return joined if joined.strip() else None


def as_list(value: Any) -> List[Any]:
    """Normalize a child value (missing, single or repeated) into a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def is_attribute_key(key: str) -> bool:
    return key.startswith(ATTRIBUTE_PREFIX)


# ----------------------------------------------------------------------
# Typed node variant


@dataclass(frozen=True, slots=True)
class ElementNode:
    """A tree element with attributes and named children."""

    tag: str
    fields: Mapping[str, Any]

    def attr(self, name: str, default: Any = None) -> Any:
        return self.fields.get(ATTRIBUTE_PREFIX + name, default)

    def has_attr(self, name: str) -> bool:
        return ATTRIBUTE_PREFIX + name in self.fields

    def attributes(self) -> Dict[str, Any]:
        return {key[len(ATTRIBUTE_PREFIX):]: value for key, value in self.fields.items() if is_attribute_key(key)}

    @property
    def text(self) -> Optional[str]:
        value = self.fields.get(TEXT_KEY)
        return None if value is None else str(value)

    def has(self, tag: str) -> bool:
        return tag in self.fields

    def child_tags(self) -> List[str]:
        return [key for key in self.fields if not is_attribute_key(key) and key != TEXT_KEY]

    def children(self, tag: str) -> List["Node"]:
        return [make_node(tag, value) for value in as_list(self.fields.get(tag))]

    def child(self, tag: str) -> Optional["Node"]:
        found = self.children(tag)
        return found[0] if found else None

    def element(self, tag: str) -> Optional["ElementNode"]:
        found = self.child(tag)
        return found if isinstance(found, ElementNode) else None

    def iter_children(self) -> Iterator["Node"]:
        for tag in self.child_tags():
            yield from self.children(tag)

    def property_value(self, name: str) -> Any:
        """Return ``Properties/<name>`` as a scalar, unwrapping ``#text``."""
        props = self.element("Properties")
        if props is None:
            return None
        node = props.child(name)
        if node is None:
            return None
        if isinstance(node, LeafNode):
            return node.value
        return node.text


@dataclass(frozen=True, slots=True)
class LeafNode:
    """A text-only child element or a bare scalar."""

    tag: str
    value: Any

    @property
    def text(self) -> str:
        return "" if self.value is None else str(self.value)


Node = Union[ElementNode, LeafNode]


def make_node(tag: str, value: Any) -> Node:
    if isinstance(value, dict):
        return ElementNode(tag, value)
    return LeafNode(tag, value)


def root_node(tree: Mapping[str, Any], tag: Optional[str] = None) -> Optional[ElementNode]:
    """Return the root element of a parsed file, optionally requiring ``tag``."""
    if not isinstance(tree, Mapping):
        return None
    if tag is None:
        for key, value in tree.items():
            if isinstance(value, dict):
                return ElementNode(key, value)
        return None
    value = tree.get(tag)
    return ElementNode(tag, value) if isinstance(value, dict) else None


class NodeVisitor:
    """Dispatches on the node variant; subclasses override the hooks they need."""

    def visit(self, node: Node) -> None:
        if isinstance(node, ElementNode):
            self.visit_element(node)
        else:
            self.visit_leaf(node)

    def visit_element(self, node: ElementNode) -> None:
        for child in node.iter_children():
            self.visit(child)

    def visit_leaf(self, node: LeafNode) -> None:
        return None
