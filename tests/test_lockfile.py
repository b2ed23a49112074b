import json

import pytest

from polyglot_keeper.errors import LockFileError
from polyglot_keeper.lockfile import LOCK_FILE_NAME, LockStore
from polyglot_keeper.structures import ContentKind, LockSection


def test_missing_lock_file_means_no_history(tmp_path):
    section = LockStore(tmp_path).load(ContentKind.TREE)
    assert section.is_empty
    assert section.frozen == set()


def test_save_keeps_other_content_kinds(tmp_path):
    store = LockStore(tmp_path)
    store.save(ContentKind.MARKDOWN, LockSection(values={"a.md": "abc"}, frozen={"a.md"}))
    store.save(ContentKind.TREE, LockSection(values={"greeting": "Hello"}, frozen={"z", "b"}))

    raw = json.loads((tmp_path / LOCK_FILE_NAME).read_text(encoding="utf-8"))
    assert raw == {
        "md": {"__frozen": ["a.md"], "values": {"a.md": "abc"}},
        "json": {"__frozen": ["b", "z"], "values": {"greeting": "Hello"}},
    }

    tree = store.load(ContentKind.TREE)
    assert tree.values == {"greeting": "Hello"}
    assert tree.frozen == {"b", "z"}
    assert store.load(ContentKind.MARKDOWN).values == {"a.md": "abc"}


def test_corrupt_lock_file_is_reported(tmp_path):
    (tmp_path / LOCK_FILE_NAME).write_text("{oops", encoding="utf-8")
    store = LockStore(tmp_path)
    with pytest.raises(LockFileError):
        store.load(ContentKind.TREE)

    store.save(ContentKind.TREE, LockSection(values={"k": "v"}))
    assert store.load(ContentKind.TREE).values == {"k": "v"}
    assert list(tmp_path.glob("*.tmp")) == []


def test_malformed_section_entries_are_ignored(tmp_path):
    (tmp_path / LOCK_FILE_NAME).write_text(
        json.dumps({"json": {"__frozen": "nope", "values": {"a": "x", "b": 3}}}),
        encoding="utf-8",
    )
    section = LockStore(tmp_path).load(ContentKind.TREE)
    assert section.values == {"a": "x"}
    assert section.frozen == set()
