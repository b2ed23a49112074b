import json
import pathlib
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from polyglot_keeper.configuration import MarkdownSyncSettings, TreeSyncSettings
from polyglot_keeper.interactive import DecisionProvider, GlobalAction, UnitAction
from polyglot_keeper.providers import TranslationProvider


class FakeProvider(TranslationProvider):
    """Prefixes values with the locale unless a scripted answer is queued.

    Script entries are consumed one per call: an exception is raised, a
    callable is invoked with ``(batch, locale)``, anything else is returned.
    """

    name = "Fake"

    def __init__(self, script: Optional[Sequence[Any]] = None) -> None:
        self.script = list(script or [])
        self.calls: List[Tuple[Dict[str, str], str]] = []

    def translate_batch(self, batch, target_language):
        self.calls.append((dict(batch), target_language))
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, BaseException):
                raise item
            if callable(item):
                return item(batch, target_language)
            if item is not None:
                return item
        return {key: f"[{target_language}] {value}" for key, value in batch.items()}

    def keys_sent(self, locale: Optional[str] = None) -> List[str]:
        return [
            key
            for batch, target in self.calls
            if locale is None or target == locale
            for key in batch
        ]


class ScriptedDecisions(DecisionProvider):
    def __init__(
        self,
        global_action: GlobalAction = GlobalAction.RETRANSLATE_ALL,
        unit_actions: Optional[Dict[str, UnitAction]] = None,
    ) -> None:
        self.global_action = global_action
        self.unit_actions = unit_actions or {}
        self.global_questions: List[Tuple[int, int]] = []
        self.unit_questions: List[Tuple[str, str, str]] = []

    def choose_global_action(self, changed_count, frozen_count):
        self.global_questions.append((changed_count, frozen_count))
        return self.global_action

    def choose_unit_action(self, unit_id, old_value, new_value, position, total):
        self.unit_questions.append((unit_id, old_value, new_value))
        return self.unit_actions.get(unit_id, UnitAction.SKIP)


def write_json(path: pathlib.Path, data: Any) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


def read_json(path: pathlib.Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def sleeps(monkeypatch):
    recorded: List[float] = []
    monkeypatch.setattr("polyglot_keeper.batching.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def make_tree_settings(tmp_path):
    def _make(**overrides):
        values = dict(
            root_dir=tmp_path,
            locales_dir=tmp_path / "locales",
            locales=["EN", "RU", "DE"],
            default_locale="EN",
            batch_delay=0,
            retry_delay=0,
        )
        values.update(overrides)
        return TreeSyncSettings(**values)

    return _make


@pytest.fixture
def make_markdown_settings(tmp_path):
    def _make(**overrides):
        values = dict(
            root_dir=tmp_path,
            content_dir=tmp_path / "content",
            locales=["en", "ru"],
            default_locale="en",
            batch_delay=0,
            retry_delay=0,
        )
        values.update(overrides)
        return MarkdownSyncSettings(**values)

    return _make
