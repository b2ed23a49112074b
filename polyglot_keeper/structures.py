"""Core data structures for the polyglot-keeper synchronizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Set


TranslationBatch = Dict[str, str]


class TrackChanges(str, Enum):
    """How source value changes are turned into retranslations."""

    OFF = "off"
    ON = "on"
    CAREFULLY = "carefully"


class ContentKind(str, Enum):
    """Lock file section names, one per kind of synchronized content."""

    TREE = "json"
    MARKDOWN = "md"


class LocaleFormat(str, Enum):
    """Naming scheme for tree locale files."""

    SHORT = "short"
    PAIR = "pair"


class NodeKind(Enum):
    """Shape of a value found inside a locale tree."""

    STRING = "string"
    CONTAINER = "container"
    OTHER = "other"


@dataclass
class LockSection:
    """Last synchronized value per unit plus the frozen units of one content kind."""

    values: Dict[str, str] = field(default_factory=dict)
    frozen: Set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.values


@dataclass
class Batch:
    """An ordered chunk of unit ids sent to the oracle in one request."""

    batch_id: int
    keys: List[str]


@dataclass
class TranslationStats:
    """Per-locale counters used for reporting only."""

    locale: str
    missing: int = 0
    translated: int = 0
    updated: int = 0
    failed: int = 0
    removed: int = 0

    @property
    def has_activity(self) -> bool:
        return bool(self.translated or self.updated or self.failed or self.removed)
