"""Batched oracle calls with rate-limit aware retries."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from .errors import ErrorRecord, ResponseFormatError, error_category, is_rate_limit_error
from .providers import TranslationProvider
from .structures import Batch, TranslationBatch


class BatchBuilder:
    """Splits an ordered list of unit ids into fixed-size batches."""

    def __init__(self, size: int) -> None:
        self.size = max(1, size)

    def build(self, keys: Sequence[str]) -> List[Batch]:
        batches: List[Batch] = []
        for batch_id, start in enumerate(range(0, len(keys), self.size), start=1):
            batches.append(Batch(batch_id=batch_id, keys=list(keys[start : start + self.size])))
        return batches


@dataclass
class BatchOutcome:
    """Aggregated result of translating a list of units for one locale."""

    translations: Dict[str, str] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    omitted: List[str] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)


def accept_response(response: Any, requested: Mapping[str, str]) -> TranslationBatch:
    """Keep the string values returned for requested keys."""

    if not isinstance(response, Mapping):
        raise ResponseFormatError(
            "Translation provider response malformed: expected a JSON object."
        )
    return {
        key: value
        for key, value in response.items()
        if key in requested and isinstance(value, str)
    }


class BatchTranslator:
    """Drives the oracle one batch at a time for a single target locale."""

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        batch_size: int,
        batch_delay: float,
        retry_delay: float,
        max_retries: int,
        verbose: bool = False,
    ) -> None:
        self.provider = provider
        self.builder = BatchBuilder(batch_size)
        self.batch_delay = batch_delay
        self.retry_delay = retry_delay
        self.max_retries = max(0, max_retries)
        self.verbose = verbose

    def request(self, payload: TranslationBatch, target_language: str) -> Any:
        """Call the oracle, retrying the same payload while it is rate limited."""

        retries_left = self.max_retries
        while True:
            try:
                return self.provider.translate_batch(dict(payload), target_language)
            except Exception as exc:
                if retries_left > 0 and is_rate_limit_error(exc):
                    print(
                        f"  Rate limited. Retrying in {self.retry_delay:g}s... "
                        f"({retries_left} retries left)"
                    )
                    time.sleep(self.retry_delay)
                    retries_left -= 1
                    continue
                raise

    def pause(self) -> None:
        if self.batch_delay > 0:
            if self.verbose:
                print(f"  Waiting {self.batch_delay:g}s before the next request...")
            time.sleep(self.batch_delay)

    def translate_units(
        self,
        keys: Sequence[str],
        values: Mapping[str, str],
        target_language: str,
    ) -> BatchOutcome:
        """Translate ``keys`` in order; a failing batch fails all of its units."""

        outcome = BatchOutcome()
        batches = self.builder.build(keys)
        for index, batch in enumerate(batches):
            print(f"  Batch {batch.batch_id}/{len(batches)} ({len(batch.keys)} keys)")
            payload = {key: values[key] for key in batch.keys if key in values}
            self._process_batch(batch, payload, target_language, outcome)
            if index < len(batches) - 1:
                self.pause()
        return outcome

    def _process_batch(
        self,
        batch: Batch,
        payload: TranslationBatch,
        target_language: str,
        outcome: BatchOutcome,
    ) -> None:
        try:
            translated = accept_response(self.request(payload, target_language), payload)
        except Exception as exc:
            message = f"Batch {batch.batch_id} for {target_language} failed: {exc}"
            print(f"  {message}")
            outcome.errors.append(
                ErrorRecord(
                    category=error_category(exc),
                    message=message,
                    locale=target_language,
                    details=", ".join(batch.keys),
                )
            )
            outcome.failed.extend(batch.keys)
            return

        outcome.translations.update(translated)
        omitted = [key for key in payload if key not in translated]
        outcome.omitted.extend(omitted)
        print(f"  Translated {len(translated)} keys")
        if omitted:
            print(f"  Provider omitted {len(omitted)} keys; they stay missing for now.")
        if self.verbose and omitted:
            for key in omitted:
                print(f"    - {key}")
