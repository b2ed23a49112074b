"""Dot-path access to nested locale trees and locale file persistence."""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, Iterable, List, Optional

from .errors import LocaleFileError
from .structures import LocaleFormat, NodeKind

Tree = Dict[str, Any]

PATH_SEPARATOR = "."

_MISSING = object()


def node_kind(value: Any) -> NodeKind:
    """Classify a tree value; arrays count as opaque leaves."""

    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, dict):
        return NodeKind.CONTAINER
    return NodeKind.OTHER


def flatten(tree: Tree, prefix: str = "") -> List[str]:
    """Return every leaf path of the tree in insertion order."""

    paths: List[str] = []
    for key, value in tree.items():
        full_key = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else key
        if node_kind(value) is NodeKind.CONTAINER:
            paths.extend(flatten(value, full_key))
        else:
            paths.append(full_key)
    return paths


def _lookup(tree: Tree, path: str) -> Any:
    current: Any = tree
    for part in path.split(PATH_SEPARATOR):
        if node_kind(current) is not NodeKind.CONTAINER or part not in current:
            return _MISSING
        current = current[part]
    return current


def get_value(tree: Tree, path: str) -> Optional[str]:
    """Return the string stored at ``path`` or None when absent or not a string."""

    value = _lookup(tree, path)
    if value is _MISSING or node_kind(value) is not NodeKind.STRING:
        return None
    return value


def has_leaf(tree: Tree, path: str) -> bool:
    value = _lookup(tree, path)
    return value is not _MISSING and node_kind(value) is not NodeKind.CONTAINER


def get_leaf(tree: Tree, path: str) -> Any:
    """Return the raw leaf at ``path``; raises KeyError when it does not exist."""

    value = _lookup(tree, path)
    if value is _MISSING:
        raise KeyError(path)
    return value


def set_value(tree: Tree, path: str, value: Any) -> None:
    """Store ``value`` at ``path``, creating containers on the way.

    A non-container value sitting on an intermediate segment is replaced by
    an empty container, so the old leaf is lost.
    """

    *parents, last = path.split(PATH_SEPARATOR)
    current = tree
    for part in parents:
        if node_kind(current.get(part)) is not NodeKind.CONTAINER:
            current[part] = {}
        current = current[part]
    current[last] = value


def delete_value(tree: Tree, path: str) -> bool:
    """Remove the leaf at ``path`` and prune containers emptied by the removal."""

    *parents, last = path.split(PATH_SEPARATOR)
    chain: List[tuple[Tree, str]] = []
    current = tree
    for part in parents:
        child = current.get(part)
        if node_kind(child) is not NodeKind.CONTAINER:
            return False
        chain.append((current, part))
        current = child
    if last not in current:
        return False

    del current[last]
    for container, key in reversed(chain):
        if container[key]:
            break
        del container[key]
    return True


def reorder_to_match_source(source: Tree, target: Tree) -> Tree:
    """Return a copy of ``target`` restricted to keys of ``source``, in source order."""

    result: Tree = {}
    for key, source_value in source.items():
        if key not in target:
            continue
        target_value = target[key]
        if (
            node_kind(source_value) is NodeKind.CONTAINER
            and node_kind(target_value) is NodeKind.CONTAINER
        ):
            result[key] = reorder_to_match_source(source_value, target_value)
        else:
            result[key] = target_value
    return result


def remove_obsolete_keys(target: Tree, source_keys: Iterable[str]) -> List[str]:
    """Delete target leaves that do not exist in the source and return their paths."""

    allowed = set(source_keys)
    removed: List[str] = []
    for key in flatten(target):
        if key not in allowed:
            delete_value(target, key)
            removed.append(key)
    return removed


def translatable_values(tree: Tree) -> Dict[str, str]:
    """Map every non-empty string leaf path to its value, in tree order."""

    values: Dict[str, str] = {}
    for path in flatten(tree):
        value = get_value(tree, path)
        if value:
            values[path] = value
    return values


def copy_passthrough_leaves(source: Tree, target: Tree, paths: Iterable[str]) -> int:
    """Copy untranslatable source leaves into the target where it lacks them."""

    copied = 0
    for path in paths:
        if has_leaf(target, path):
            continue
        set_value(target, path, get_leaf(source, path))
        copied += 1
    return copied


# --- Locale files -----------------------------------------------------------


def locale_file_name(locale: str, locale_format: LocaleFormat) -> str:
    if locale_format is LocaleFormat.PAIR:
        return f"{locale}-{locale.lower()}.json"
    return f"{locale.lower()}.json"


def dump_tree(tree: Tree) -> str:
    return json.dumps(tree, ensure_ascii=False, indent=2) + "\n"


def load_tree(path: pathlib.Path) -> Tree:
    """Parse a locale file, requiring a JSON object at the root."""

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise LocaleFileError(f"Locale file {path} is not valid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LocaleFileError(f"Locale file {path} is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise LocaleFileError(f"Locale file {path} could not be read: {exc}") from exc
    if node_kind(data) is not NodeKind.CONTAINER:
        raise LocaleFileError(f"Locale file {path} must contain a JSON object at the root.")
    return data


def save_tree(path: pathlib.Path, tree: Tree) -> bool:
    """Write the tree unless the file already holds identical content."""

    content = dump_tree(tree)
    if path.exists() and path.read_text(encoding="utf-8") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return True
