"""Utility functions for manifest traversal and path-addressed document access.

Resource documents are plain nested ``dict``/``list`` trees. Every component
that needs to address a field inside one (sanitation selectors, the structural
differ, the values keys of a synthesized chart) goes through the helpers here,
so the path syntax has a single definition:

* dotted keys: ``metadata.labels``
* quoted keys for anything that is not a plain token:
  ``metadata.annotations["app.kubernetes.io/name"]``
* list indices: ``spec.containers[0].image``
* wildcards, for selectors only: ``spec.containers[*].image`` or ``data.*``
* an optional leading ``$`` / ``$.``; the root path is written ``$``
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from .constants import K8sFields
from .types import DocumentPath, K8sObject


class _Wildcard:
    """Selector segment matching every key of a mapping or index of a list."""

    _instance: Optional["_Wildcard"] = None

    def __new__(cls) -> "_Wildcard":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "WILDCARD"


WILDCARD = _Wildcard()
ROOT_PATH = "$"

_PLAIN_KEY = re.compile(r"[A-Za-z0-9_\-]+\Z")


class PathSyntaxError(ValueError):
    """A selector string could not be parsed."""


def parse_path(selector: str) -> Tuple[Any, ...]:
    """
    Parse a selector string into a tuple of path segments.

    Args:
        selector: Path in the canonical syntax described in the module docstring

    Returns:
        Tuple of ``str`` keys, ``int`` indices and ``WILDCARD`` markers

    Raises:
        PathSyntaxError: If the selector is malformed
    """
    text = selector.strip()
    if text.startswith("$"):
        text = text[1:]
        if text.startswith("."):
            text = text[1:]

    segments: List[Any] = []
    position = 0
    length = len(text)
    expect_segment = True

    while position < length:
        char = text[position]

        if char == ".":
            if expect_segment:
                raise PathSyntaxError(f"Empty path segment at offset {position} in {selector!r}")
            expect_segment = True
            position += 1
            continue

        if char == "[":
            segment, position = _parse_bracket(text, position, selector)
            segments.append(segment)
            expect_segment = False
            continue

        if not expect_segment:
            raise PathSyntaxError(f"Missing separator at offset {position} in {selector!r}")

        end = position
        while end < length and text[end] not in ".[":
            end += 1
        token = text[position:end]
        segments.append(WILDCARD if token == "*" else token)
        position = end
        expect_segment = False

    if expect_segment and segments:
        raise PathSyntaxError(f"Trailing separator in {selector!r}")

    return tuple(segments)


def _parse_bracket(text: str, start: int, selector: str) -> Tuple[Any, int]:
    """Parse one ``[...]`` segment starting at ``start``; return it and the next offset."""
    position = start + 1
    if position >= len(text):
        raise PathSyntaxError(f"Unterminated bracket in {selector!r}")

    quote = text[position]
    if quote in "\"'":
        chars: List[str] = []
        position += 1
        while True:
            if position >= len(text):
                raise PathSyntaxError(f"Unterminated quoted key in {selector!r}")
            char = text[position]
            if char == "\\" and position + 1 < len(text):
                chars.append(text[position + 1])
                position += 2
                continue
            if char == quote:
                position += 1
                break
            chars.append(char)
            position += 1
        if position >= len(text) or text[position] != "]":
            raise PathSyntaxError(f"Expected ']' after quoted key in {selector!r}")
        return "".join(chars), position + 1

    end = text.find("]", position)
    if end == -1:
        raise PathSyntaxError(f"Unterminated bracket in {selector!r}")
    token = text[position:end].strip()
    if token == "*":
        return WILDCARD, end + 1
    if token.isdigit():
        return int(token), end + 1
    raise PathSyntaxError(f"Invalid index {token!r} in {selector!r}")


def format_path(path: DocumentPath) -> str:
    """Render a concrete path in the canonical selector syntax."""
    if not path:
        return ROOT_PATH

    parts: List[str] = []
    for segment in path:
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        elif _PLAIN_KEY.match(segment):
            parts.append(f".{segment}" if parts else segment)
        else:
            escaped = segment.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'["{escaped}"]')
    return "".join(parts)


def _step(node: Any, segment: Any) -> Tuple[bool, Any]:
    """Move one segment down the tree; report whether the child exists."""
    if isinstance(segment, int) and not isinstance(segment, bool):
        if isinstance(node, list) and 0 <= segment < len(node):
            return True, node[segment]
        return False, None
    if isinstance(node, dict) and segment in node:
        return True, node[segment]
    return False, None


def path_exists(document: Any, path: DocumentPath) -> bool:
    """Check whether a concrete path resolves inside the document."""
    node = document
    for segment in path:
        found, node = _step(node, segment)
        if not found:
            return False
    return True


def get_path(document: Any, path: DocumentPath, default: Any = None) -> Any:
    """Return the value at a concrete path, or ``default`` when absent."""
    node = document
    for segment in path:
        found, node = _step(node, segment)
        if not found:
            return default
    return node


def set_path(document: Any, path: DocumentPath, value: Any) -> bool:
    """
    Overwrite the value at an existing concrete path.

    Absent paths are left alone: callers use this to replace fields, never to
    grow a document.

    Returns:
        True if a value was written
    """
    if not path or not path_exists(document, path):
        return False
    parent = get_path(document, path[:-1])
    parent[path[-1]] = value
    return True


def delete_path(document: Any, path: DocumentPath) -> bool:
    """
    Remove the subtree at a concrete path.

    Returns:
        True if something was removed
    """
    if not path or not path_exists(document, path):
        return False
    parent = get_path(document, path[:-1])
    del parent[path[-1]]
    return True


def expand_path(document: Any, pattern: Tuple[Any, ...]) -> List[DocumentPath]:
    """
    Resolve a selector against a document.

    Wildcards are expanded to every key or index present at that level;
    branches that do not exist are dropped.

    Returns:
        Concrete paths that exist in the document, in document order
    """
    results: List[DocumentPath] = []

    def _expand(node: Any, index: int, prefix: DocumentPath) -> None:
        if index == len(pattern):
            results.append(prefix)
            return
        segment = pattern[index]
        if segment is WILDCARD:
            if isinstance(node, dict):
                children = list(node.items())
            elif isinstance(node, list):
                children = list(enumerate(node))
            else:
                return
            for key, child in children:
                _expand(child, index + 1, prefix + (key,))
            return
        found, child = _step(node, segment)
        if found:
            _expand(child, index + 1, prefix + (segment,))

    _expand(document, 0, ())
    return results


def is_ancestor(ancestor: DocumentPath, path: DocumentPath) -> bool:
    """True if ``ancestor`` is a strict prefix of ``path``."""
    return len(ancestor) < len(path) and path[: len(ancestor)] == ancestor


class ManifestTraverser:
    """Utility for reading well-known fields of Kubernetes manifests."""

    @staticmethod
    def get_metadata(manifest: K8sObject) -> Dict[str, Any]:
        """Extract metadata from a manifest."""
        metadata = manifest.get(K8sFields.METADATA)
        return metadata if isinstance(metadata, dict) else {}

    @staticmethod
    def get_manifest_name(manifest: K8sObject) -> str:
        """Extract name from manifest metadata."""
        metadata = ManifestTraverser.get_metadata(manifest)
        name = metadata.get(K8sFields.NAME)
        return str(name) if isinstance(name, str) else ""

    @staticmethod
    def get_kind(manifest: K8sObject) -> str:
        kind = manifest.get(K8sFields.KIND)
        return kind if isinstance(kind, str) else ""

    @staticmethod
    def get_api_version(manifest: K8sObject) -> str:
        api_version = manifest.get(K8sFields.API_VERSION)
        return api_version if isinstance(api_version, str) else ""

    @staticmethod
    def get_api_group(manifest: K8sObject) -> str:
        """API group of a manifest; ``core`` for the legacy core group."""
        api_version = ManifestTraverser.get_api_version(manifest)
        if "/" in api_version:
            return api_version.split("/", 1)[0]
        return "core"

    @staticmethod
    def describe(manifest: K8sObject) -> str:
        """Short ``Kind/name`` label for log messages."""
        kind = ManifestTraverser.get_kind(manifest) or "<unknown>"
        name = ManifestTraverser.get_manifest_name(manifest) or "<unknown>"
        return f"{kind}/{name}"


def slugify(value: str) -> str:
    """Convert a string to a filesystem-safe slug."""
    allowed = []
    for char in value.lower():
        if char.isalnum() or char in {"-", "."}:
            allowed.append(char)
        else:
            allowed.append("-")
    slug = "".join(allowed).strip("-")
    return slug


class StringUtils:
    """String utility functions."""

    slugify = staticmethod(slugify)
