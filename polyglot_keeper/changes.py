"""Change detection between the current source and the last lock snapshot."""

from __future__ import annotations

from typing import AbstractSet, Dict, Iterable, List, Mapping

from .structures import LockSection, TrackChanges
from .tree import Tree, get_value


def find_missing(source_keys: Iterable[str], target: Tree) -> List[str]:
    """Source units that have no string value in the target."""

    return [key for key in source_keys if get_value(target, key) is None]


def find_obsolete(target_keys: Iterable[str], source_keys: Iterable[str]) -> List[str]:
    """Target units that no longer exist in the source."""

    allowed = set(source_keys)
    return [key for key in target_keys if key not in allowed]


def find_changed(
    current: Mapping[str, str],
    snapshot: Mapping[str, str],
    frozen: AbstractSet[str],
) -> List[str]:
    """Units whose value drifted from the snapshot, in source order.

    Units without a snapshot entry are new, not changed, and frozen units
    are never reported.
    """

    changed: List[str] = []
    for key, value in current.items():
        if key in frozen:
            continue
        previous = snapshot.get(key)
        if previous is not None and previous != value:
            changed.append(key)
    return changed


def detect_changes(
    mode: TrackChanges,
    current: Mapping[str, str],
    lock: LockSection,
    *,
    force_retranslate: bool = False,
) -> List[str]:
    """Return the changed units that the resolution policy has to decide on."""

    if mode is TrackChanges.OFF or force_retranslate or lock.is_empty:
        return []
    return find_changed(current, lock.values, lock.frozen)


def build_snapshot(
    current: Mapping[str, str],
    previous: Mapping[str, str],
    keep_previous: AbstractSet[str],
) -> Dict[str, str]:
    """Compute the values to persist for the next run.

    Units listed in ``keep_previous`` (skipped or failed this run) retain
    their old snapshot value so they are seen as changed again next time.
    """

    snapshot: Dict[str, str] = {}
    for key, value in current.items():
        if key in keep_previous and key in previous:
            snapshot[key] = previous[key]
        else:
            snapshot[key] = value
    return snapshot
