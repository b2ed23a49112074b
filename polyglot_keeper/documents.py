"""Markdown document discovery, hashing and code block protection."""

from __future__ import annotations

import hashlib
import pathlib
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from .errors import LocaleFileError, ResponseFormatError

MARKDOWN_SUFFIX = ".md"
CONTENT_KEY = "content"
CODE_BLOCK_TOKEN_PREFIX = "__PGK_CODE_BLOCK_"
CODE_BLOCK_PATTERN = re.compile(r"```.*?```", re.DOTALL)
SHORT_HASH_LENGTH = 12


def normalise_eol(text: str) -> str:
    return text.replace("\r\n", "\n")


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the document with LF line endings."""

    return hashlib.sha256(normalise_eol(text).encode("utf-8")).hexdigest()


def short_hash(value: str) -> str:
    return f"hash:{value[:SHORT_HASH_LENGTH]}"


@dataclass
class ProtectedText:
    """Document text with fenced code blocks swapped for opaque tokens."""

    text: str
    replacements: Dict[str, str] = field(default_factory=dict)

    def restore(self, translated: str) -> str:
        return restore_code_blocks(translated, self.replacements)


def protect_code_blocks(text: str) -> ProtectedText:
    """Replace every fenced code block so the oracle never sees code."""

    replacements: Dict[str, str] = {}

    def _swap(match: re.Match[str]) -> str:
        token = f"{CODE_BLOCK_TOKEN_PREFIX}{len(replacements)}__"
        replacements[token] = match.group(0)
        return token

    return ProtectedText(text=CODE_BLOCK_PATTERN.sub(_swap, text), replacements=replacements)


def restore_code_blocks(text: str, replacements: Mapping[str, str]) -> str:
    """Put the original blocks back in place of their tokens, verbatim."""

    restored = text
    for token, block in replacements.items():
        restored = restored.replace(token, block)
    return restored


def extract_document_text(response: Any) -> str:
    """Pick the translated document out of the oracle payload.

    The ``content`` key is preferred; any other first string value is
    accepted when the model renamed the key.
    """

    if not isinstance(response, Mapping):
        raise ResponseFormatError(
            "Translation provider response malformed: expected a JSON object."
        )
    value = response.get(CONTENT_KEY)
    if isinstance(value, str):
        return value
    for candidate in response.values():
        if isinstance(candidate, str):
            return candidate
    raise ResponseFormatError("Translation provider returned no document content.")


def to_posix(value: str) -> str:
    return value.replace("\\", "/")


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate ``*`` (no separators) and ``**`` (any run) into a regex."""

    parts = []
    for index, chunk in enumerate(to_posix(pattern).split("**")):
        if index:
            parts.append(".*")
        parts.append("[^/]*".join(re.escape(piece) for piece in chunk.split("*")))
    return re.compile(f"^{''.join(parts)}$", re.IGNORECASE)


class ExcludeMatcher:
    """Matches relative paths (and their basenames) against exclude globs."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = [glob_to_regex(pattern) for pattern in patterns if pattern]

    def __call__(self, relative_path: str) -> bool:
        normalized = to_posix(relative_path)
        basename = normalized.rsplit("/", 1)[-1]
        return any(
            regex.match(normalized) or regex.match(basename) for regex in self.patterns
        )


@dataclass
class SourceDocument:
    """A markdown file of the primary locale, addressed by its relative path."""

    relative_path: str
    content: str

    @property
    def digest(self) -> str:
        return content_hash(self.content)


def collect_source_documents(
    source_dir: pathlib.Path,
    exclude: ExcludeMatcher,
    root_dir: pathlib.Path | None = None,
) -> List[SourceDocument]:
    """Recursively gather ``*.md`` files below ``source_dir``, honouring excludes."""

    base = root_dir or source_dir
    documents: List[SourceDocument] = []
    for entry in sorted(source_dir.iterdir(), key=lambda item: item.name):
        relative_path = entry.relative_to(base).as_posix()
        if exclude(relative_path):
            continue
        if entry.is_dir():
            documents.extend(collect_source_documents(entry, exclude, base))
            continue
        if not entry.is_file() or not entry.name.lower().endswith(MARKDOWN_SUFFIX):
            continue
        try:
            content = entry.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise LocaleFileError(f"Markdown file {entry} is not valid UTF-8: {exc}") from exc
        documents.append(SourceDocument(relative_path=relative_path, content=content))
    return documents


def collect_target_paths(target_dir: pathlib.Path) -> List[str]:
    """Relative paths of markdown files already present for a locale."""

    if not target_dir.is_dir():
        return []
    return sorted(
        path.relative_to(target_dir).as_posix()
        for path in target_dir.rglob(f"*{MARKDOWN_SUFFIX}")
        if path.is_file()
    )
