import pytest

from conftest import FakeProvider
from polyglot_keeper.batching import BatchBuilder, BatchTranslator, accept_response
from polyglot_keeper.errors import (
    ErrorCategory,
    RateLimitError,
    TranslationProviderError,
)


def make_translator(provider, **overrides):
    values = dict(batch_size=2, batch_delay=0.5, retry_delay=35.0, max_retries=3)
    values.update(overrides)
    return BatchTranslator(provider, **values)


VALUES = {"a": "A", "b": "B", "c": "C", "d": "D", "e": "E"}


def test_batch_builder_chunks_in_order():
    batches = BatchBuilder(2).build(["a", "b", "c"])
    assert [(batch.batch_id, batch.keys) for batch in batches] == [(1, ["a", "b"]), (2, ["c"])]
    assert BatchBuilder(0).size == 1


def test_accept_response_filters_unrequested_and_non_string_values():
    assert accept_response({"a": "x", "zz": "y", "b": 3}, {"a": "A", "b": "B"}) == {"a": "x"}
    with pytest.raises(TranslationProviderError):
        accept_response(["a"], {"a": "A"})


def test_translate_units_pauses_between_batches_only(sleeps):
    provider = FakeProvider()
    outcome = make_translator(provider).translate_units(list(VALUES), VALUES, "RU")
    assert outcome.translations == {key: f"[RU] {value}" for key, value in VALUES.items()}
    assert [list(batch) for batch, _ in provider.calls] == [["a", "b"], ["c", "d"], ["e"]]
    assert sleeps == [0.5, 0.5]


def test_rate_limit_is_retried_once_then_succeeds(sleeps):
    provider = FakeProvider([Exception("Request failed with status 429"), None])
    outcome = make_translator(provider, batch_size=10, batch_delay=0).translate_units(
        ["a", "b"], VALUES, "RU"
    )
    assert len(provider.calls) == 2
    assert provider.calls[0] == provider.calls[1]
    assert outcome.translations == {"a": "[RU] A", "b": "[RU] B"}
    assert outcome.failed == []
    assert sleeps == [35.0]


def test_rate_limit_retries_are_bounded(sleeps):
    provider = FakeProvider([RateLimitError("429")] * 5)
    outcome = make_translator(provider, batch_size=10, max_retries=2).translate_units(
        ["a"], VALUES, "RU"
    )
    assert len(provider.calls) == 3
    assert outcome.failed == ["a"]
    assert outcome.errors[0].category is ErrorCategory.RATE_LIMIT


def test_failed_batch_does_not_stop_later_batches(sleeps):
    provider = FakeProvider([TranslationProviderError("garbage"), None, None])
    outcome = make_translator(provider, batch_delay=0).translate_units(
        list(VALUES), VALUES, "DE"
    )
    assert len(provider.calls) == 3
    assert outcome.failed == ["a", "b"]
    assert set(outcome.translations) == {"c", "d", "e"}
    assert outcome.errors[0].category is ErrorCategory.TRANSLATION
    assert outcome.errors[0].locale == "DE"
    assert sleeps == []


def test_omitted_keys_are_reported(sleeps):
    provider = FakeProvider([{"a": "x", "unexpected": "y"}])
    outcome = make_translator(provider, batch_size=10).translate_units(["a", "b"], VALUES, "RU")
    assert outcome.translations == {"a": "x"}
    assert outcome.omitted == ["b"]
    assert outcome.failed == []


def test_garbage_payload_is_recorded_as_format_error(sleeps):
    provider = FakeProvider([["not", "an", "object"]])
    outcome = make_translator(provider).translate_units(["a", "b"], VALUES, "RU")
    assert outcome.failed == ["a", "b"]
    record = outcome.errors[0]
    assert record.category is ErrorCategory.FORMAT
    assert record.details == "a, b"
