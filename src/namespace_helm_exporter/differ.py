"""Structural diff of resource documents and placeholder substitution."""
from __future__ import annotations

from copy import deepcopy
from typing import Any, Iterable, List, Mapping

from .types import DiffOperation, DocumentPath, Placeholder
from .utils import is_ancestor

ADD = "add"
REMOVE = "remove"
REPLACE = "replace"


def diff_documents(source: Any, target: Any, path: DocumentPath = ()) -> List[DiffOperation]:
    """
    Compute the edits that turn ``source`` into ``target``.

    Mappings are compared key by key, lists position by position. Values of
    different types, and scalars that are not equal, produce a single
    ``replace`` at their path.

    Args:
        source: Reference document (or subtree)
        target: Document to compare against the reference
        path: Path of ``source`` inside its enclosing document

    Returns:
        Operations in document order; empty when the trees are equal
    """
    if isinstance(source, dict) and isinstance(target, dict):
        operations: List[DiffOperation] = []
        for key, value in source.items():
            if key in target:
                operations.extend(diff_documents(value, target[key], path + (key,)))
            else:
                operations.append(DiffOperation(REMOVE, path + (key,), old=value))
        for key, value in target.items():
            if key not in source:
                operations.append(DiffOperation(ADD, path + (key,), new=value))
        return operations

    if isinstance(source, list) and isinstance(target, list):
        operations = []
        shared = min(len(source), len(target))
        for index in range(shared):
            operations.extend(diff_documents(source[index], target[index], path + (index,)))
        for index in range(shared, len(source)):
            operations.append(DiffOperation(REMOVE, path + (index,), old=source[index]))
        for index in range(shared, len(target)):
            operations.append(DiffOperation(ADD, path + (index,), new=target[index]))
        return operations

    # bool is an int subclass, so compare types before values
    if type(source) is not type(target) or source != target:
        return [DiffOperation(REPLACE, path, old=source, new=target)]
    return []


def promotion_paths(operations: Iterable[DiffOperation]) -> List[DocumentPath]:
    """
    Reduce diff operations to the paths whose values vary between instances.

    A replaced value is promoted at its own path. An added or removed entry
    promotes its enclosing container, which exists on both sides. Paths that
    lie below another promoted path are dropped.

    Returns:
        Promoted paths, shortest first, no path an ancestor of another
    """
    candidates = set()
    for operation in operations:
        if operation.op == REPLACE:
            candidates.add(operation.path)
        else:
            candidates.add(operation.path[:-1])

    promoted: List[DocumentPath] = []
    for path in sorted(candidates, key=lambda p: (len(p), [str(segment) for segment in p])):
        if any(is_ancestor(kept, path) for kept in promoted):
            continue
        promoted.append(path)
    return promoted


def apply_values(template: Any, values: Mapping[str, Any]) -> Any:
    """
    Substitute every placeholder in a template.

    Placeholders absent from ``values`` fall back to their default.

    Args:
        template: Template document, possibly itself a placeholder
        values: One instance's values keyed by placeholder name

    Returns:
        New document with no placeholders left
    """
    if isinstance(template, Placeholder):
        if template.name in values:
            return deepcopy(values[template.name])
        return deepcopy(template.default)
    if isinstance(template, dict):
        return {key: apply_values(value, values) for key, value in template.items()}
    if isinstance(template, list):
        return [apply_values(item, values) for item in template]
    return template


def find_placeholders(template: Any) -> List[Placeholder]:
    """Placeholders of a template in document order."""
    if isinstance(template, Placeholder):
        return [template]
    found: List[Placeholder] = []
    if isinstance(template, dict):
        for value in template.values():
            found.extend(find_placeholders(value))
    elif isinstance(template, list):
        for item in template:
            found.extend(find_placeholders(item))
    return found
