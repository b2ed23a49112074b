"""High-level orchestration of a synchronization run."""

from __future__ import annotations

import pathlib
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .batching import BatchTranslator
from .changes import build_snapshot, detect_changes, find_missing, find_obsolete
from .configuration import MarkdownSyncSettings, TreeSyncSettings
from .documents import (
    CONTENT_KEY,
    ExcludeMatcher,
    SourceDocument,
    collect_source_documents,
    collect_target_paths,
    extract_document_text,
    protect_code_blocks,
    short_hash,
)
from .errors import ErrorRecord, SourceNotFoundError, error_category
from .interactive import DecisionProvider
from .lockfile import LockStore
from .policy import Resolution, ResolutionPolicy
from .providers import TranslationProvider
from .structures import ContentKind, LockSection, TranslationStats
from .tree import (
    Tree,
    copy_passthrough_leaves,
    flatten,
    load_tree,
    remove_obsolete_keys,
    reorder_to_match_source,
    save_tree,
    set_value,
    translatable_values,
)

RULE = "-" * 50


@dataclass
class SyncSummary:
    """Report returned after synchronizing every target locale."""

    kind: ContentKind
    source_path: pathlib.Path
    provider_name: str
    model: str | None
    total_units: int
    changed_units: int
    retranslated_units: int
    skipped_units: int
    frozen_units: int
    lock_path: pathlib.Path
    elapsed_seconds: float
    stats: List[TranslationStats] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)

    @property
    def total_translated(self) -> int:
        return sum(stat.translated for stat in self.stats)

    @property
    def total_updated(self) -> int:
        return sum(stat.updated for stat in self.stats)

    @property
    def total_failed(self) -> int:
        return sum(stat.failed for stat in self.stats)

    @property
    def total_removed(self) -> int:
        return sum(stat.removed for stat in self.stats)


class _SyncRunner:
    """Shared plumbing of the tree and markdown runners."""

    kind: ContentKind

    def __init__(
        self,
        *,
        provider: TranslationProvider,
        decisions: Optional[DecisionProvider] = None,
        lock_store: Optional[LockStore] = None,
        model: str | None = None,
        verbose: bool = False,
        batch_size: int,
        batch_delay: float,
        retry_delay: float,
        max_retries: int,
        root_dir: pathlib.Path,
    ) -> None:
        self.provider = provider
        self.decisions = decisions
        self.lock_store = lock_store or LockStore(root_dir)
        self.model = model
        self.verbose = verbose
        self.translator = BatchTranslator(
            provider,
            batch_size=batch_size,
            batch_delay=batch_delay,
            retry_delay=retry_delay,
            max_retries=max_retries,
            verbose=verbose,
        )
        self.errors: List[ErrorRecord] = []

    def _announce(self, title: str, targets: List[str]) -> None:
        print(title)
        print(RULE)
        print(f"Target locales: {', '.join(targets) or 'none'}")
        model = f" (model: {self.model})" if self.model else ""
        print(f"Using provider: {self.provider.name}{model}")

    def _resolve(
        self,
        policy: ResolutionPolicy,
        current: Dict[str, str],
        lock: LockSection,
        *,
        force_retranslate: bool,
    ) -> Tuple[List[str], Resolution]:
        changed = detect_changes(
            policy.mode,
            current,
            lock,
            force_retranslate=force_retranslate,
        )
        if lock.is_empty and not force_retranslate:
            print("No lock history yet; recording a baseline for change tracking.")
        elif changed:
            print(f"Detected {len(changed)} changed source units since last sync.")
        resolution = policy.resolve(
            units=list(current),
            changed=changed,
            frozen=lock.frozen,
            previous=lock.values,
            current=current,
        )
        if resolution.forced and lock.frozen:
            print(f"Force mode: cleared {len(lock.frozen)} frozen units.")
        return changed, resolution

    def _persist(
        self,
        current: Dict[str, str],
        lock: LockSection,
        resolution: Resolution,
        failed_updates: Set[str],
    ) -> None:
        keep_previous = resolution.skip | resolution.newly_frozen | failed_updates
        section = LockSection(
            values=build_snapshot(current, lock.values, keep_previous),
            frozen=set(resolution.frozen),
        )
        self.lock_store.save(self.kind, section)
        print(f"Lock file updated ({self.lock_store.path.name} -> {self.kind.value} section)")

    def _summary(
        self,
        *,
        source_path: pathlib.Path,
        total_units: int,
        changed: List[str],
        resolution: Resolution,
        stats: List[TranslationStats],
        start_time: float,
    ) -> SyncSummary:
        return SyncSummary(
            kind=self.kind,
            source_path=source_path,
            provider_name=self.provider.name,
            model=self.model,
            total_units=total_units,
            changed_units=len(changed),
            retranslated_units=len(resolution.retranslate),
            skipped_units=len(resolution.skip),
            frozen_units=len(resolution.frozen),
            lock_path=self.lock_store.path,
            elapsed_seconds=time.time() - start_time,
            stats=stats,
            errors=list(self.errors),
        )


class TreeSyncRunner(_SyncRunner):
    """Synchronizes nested JSON locale files with the primary locale file."""

    kind = ContentKind.TREE

    def __init__(
        self,
        settings: TreeSyncSettings,
        *,
        provider: TranslationProvider,
        decisions: Optional[DecisionProvider] = None,
        lock_store: Optional[LockStore] = None,
        model: str | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(
            provider=provider,
            decisions=decisions,
            lock_store=lock_store,
            model=model,
            verbose=verbose,
            batch_size=settings.batch_size,
            batch_delay=settings.batch_delay,
            retry_delay=settings.retry_delay,
            max_retries=settings.max_retries,
            root_dir=settings.root_dir,
        )
        self.settings = settings

    def run(self) -> SyncSummary:
        start_time = time.time()
        settings = self.settings

        primary = settings.primary_locale_file
        if not primary.is_file():
            raise SourceNotFoundError(f"Primary locale file not found at {primary}")

        source = load_tree(primary)
        source_keys = flatten(source)
        current = translatable_values(source)
        passthrough = [key for key in source_keys if key not in current]

        self._announce("Translation Synchronization", settings.target_locales)
        print(
            f"Loaded primary locale ({settings.default_locale}) with "
            f"{len(source_keys)} keys ({len(current)} translatable)"
        )

        lock = self.lock_store.load(self.kind)
        policy = ResolutionPolicy(
            mode=settings.track_changes,
            force_retranslate=settings.force_retranslate,
            decisions=self.decisions,
        )
        changed, resolution = self._resolve(
            policy, current, lock, force_retranslate=settings.force_retranslate
        )

        stats: List[TranslationStats] = []
        failed_updates: Set[str] = set()
        for locale in settings.target_locales:
            locale_stats, failed = self._process_locale(
                locale,
                source=source,
                source_keys=source_keys,
                current=current,
                passthrough=passthrough,
                resolution=resolution,
            )
            stats.append(locale_stats)
            failed_updates.update(failed)

        self._persist(current, lock, resolution, failed_updates)
        return self._summary(
            source_path=primary,
            total_units=len(current),
            changed=changed,
            resolution=resolution,
            stats=stats,
            start_time=start_time,
        )

    def _process_locale(
        self,
        locale: str,
        *,
        source: Tree,
        source_keys: List[str],
        current: Dict[str, str],
        passthrough: List[str],
        resolution: Resolution,
    ) -> Tuple[TranslationStats, Set[str]]:
        path = self.settings.locale_file(locale)
        print(f"\n--- Processing {locale} ({path.name}) ---")

        if path.exists():
            target = load_tree(path)
        else:
            print(f"Creating new locale file for {locale}")
            target = {}

        removed = remove_obsolete_keys(target, source_keys)
        if removed:
            print(f"Removed {len(removed)} obsolete keys")
        copy_passthrough_leaves(source, target, passthrough)

        missing = set(find_missing(current, target))
        updates = {
            key for key in current if key in resolution.retranslate and key not in missing
        }
        queue = [key for key in current if key in missing or key in updates]
        stats = TranslationStats(locale=locale, missing=len(missing), removed=len(removed))
        failed_updates: Set[str] = set()

        if not queue:
            print(f"{locale} is up to date ({len(current)} keys)")
        else:
            if missing:
                print(f"Found {len(missing)} missing keys out of {len(current)} total")
            if updates:
                print(f"Retranslating {len(updates)} changed keys")
            outcome = self.translator.translate_units(queue, current, locale)
            for key, value in outcome.translations.items():
                set_value(target, key, value)
                if key in missing:
                    stats.translated += 1
                else:
                    stats.updated += 1
            stats.failed = len(outcome.failed)
            self.errors.extend(outcome.errors)
            failed_updates = {
                key for key in outcome.failed + outcome.omitted if key in updates
            }

        if save_tree(path, reorder_to_match_source(source, target)):
            print(f"Saved {path.name}")
        elif self.verbose:
            print(f"{path.name} already in sync")
        return stats, failed_updates


class MarkdownSyncRunner(_SyncRunner):
    """Synchronizes per-locale markdown directories, one file per request."""

    kind = ContentKind.MARKDOWN

    def __init__(
        self,
        settings: MarkdownSyncSettings,
        *,
        provider: TranslationProvider,
        decisions: Optional[DecisionProvider] = None,
        lock_store: Optional[LockStore] = None,
        model: str | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(
            provider=provider,
            decisions=decisions,
            lock_store=lock_store,
            model=model,
            verbose=verbose,
            batch_size=1,
            batch_delay=settings.batch_delay,
            retry_delay=settings.retry_delay,
            max_retries=settings.max_retries,
            root_dir=settings.root_dir,
        )
        self.settings = settings
        self.exclude = ExcludeMatcher(settings.exclude)

    def run(self) -> SyncSummary:
        start_time = time.time()
        settings = self.settings

        source_dir = settings.source_dir
        if not source_dir.is_dir():
            raise SourceNotFoundError(
                f"Primary markdown locale directory not found at {source_dir}"
            )

        self._announce("Markdown Translation Synchronization", settings.target_locales)
        documents = collect_source_documents(source_dir, self.exclude)
        current = {document.relative_path: document.digest for document in documents}
        print(
            f"Loaded source markdown locale ({settings.default_locale}) with "
            f"{len(documents)} files"
        )

        lock = self.lock_store.load(self.kind)
        policy = ResolutionPolicy(
            mode=settings.track_changes,
            force_retranslate=settings.force_retranslate,
            decisions=self.decisions,
            display=short_hash,
        )
        changed, resolution = self._resolve(
            policy, current, lock, force_retranslate=settings.force_retranslate
        )

        stats: List[TranslationStats] = []
        failed_updates: Set[str] = set()
        for locale in settings.target_locales:
            locale_stats, failed = self._process_locale(locale, documents, resolution)
            stats.append(locale_stats)
            failed_updates.update(failed)

        self._persist(current, lock, resolution, failed_updates)
        return self._summary(
            source_path=source_dir,
            total_units=len(documents),
            changed=changed,
            resolution=resolution,
            stats=stats,
            start_time=start_time,
        )

    def _process_locale(
        self,
        locale: str,
        documents: List[SourceDocument],
        resolution: Resolution,
    ) -> Tuple[TranslationStats, Set[str]]:
        target_dir = self.settings.target_dir(locale)
        print(f"\n--- Processing {locale} ({target_dir.name}/) ---")

        pending: List[Tuple[SourceDocument, pathlib.Path, bool]] = []
        for document in documents:
            unit_id = document.relative_path
            target_path = target_dir / unit_id
            exists = target_path.is_file()
            if not resolution.forced and (
                unit_id in resolution.frozen or resolution.is_skipped(unit_id)
            ):
                continue
            if resolution.forced or not exists or unit_id in resolution.retranslate:
                pending.append((document, target_path, exists))

        stats = TranslationStats(
            locale=locale,
            missing=sum(1 for _, _, exists in pending if not exists),
        )
        failed_updates: Set[str] = set()
        for index, (document, target_path, exists) in enumerate(pending):
            if self._translate_document(document, target_path, locale):
                if exists:
                    stats.updated += 1
                else:
                    stats.translated += 1
            else:
                stats.failed += 1
                if exists:
                    failed_updates.add(document.relative_path)
            if index < len(pending) - 1:
                self.translator.pause()

        known = [document.relative_path for document in documents]
        obsolete = [
            path
            for path in find_obsolete(collect_target_paths(target_dir), known)
            if not self.exclude(path)
        ]
        if obsolete:
            print(f"{len(obsolete)} markdown files have no source and were left untouched")
            if self.verbose:
                for path in obsolete:
                    print(f"  - {path}")

        done = stats.translated + stats.updated
        print(f"{locale}: translated {done} markdown file{'' if done == 1 else 's'}")
        return stats, failed_updates

    def _translate_document(
        self,
        document: SourceDocument,
        target_path: pathlib.Path,
        locale: str,
    ) -> bool:
        if self.verbose:
            print(f"  Translating {document.relative_path}")
        protected = protect_code_blocks(document.content)
        try:
            response = self.translator.request({CONTENT_KEY: protected.text}, locale)
            translated = extract_document_text(response)
        except Exception as exc:
            message = f"{document.relative_path} for {locale} failed: {exc}"
            print(f"  {message}")
            self.errors.append(
                ErrorRecord(
                    category=error_category(exc),
                    message=message,
                    locale=locale,
                    details=document.relative_path,
                )
            )
            return False

        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_text(protected.restore(translated), encoding="utf-8")
        return True
