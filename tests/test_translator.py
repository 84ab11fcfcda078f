import httpx
import pytest

from conftest import FakeOpenAI, MyMemoryStub
from substudio.exceptions import ConfigurationError, InputValidationError
from substudio.translator import (
    FAILED_CONFIDENCE,
    FallbackChatTranslator,
    MyMemoryTranslator,
    PrimaryChatTranslator,
    TranslationContext,
    TranslationOrchestrator,
    same_language,
)


def build_orchestrator(chat_replies, mymemory=None, with_ai=True, delay=0.0):
    client = FakeOpenAI(chat_replies=chat_replies)
    mymemory = mymemory or MyMemoryStub()
    sleeps = []
    orchestrator = TranslationOrchestrator(
        primary=PrimaryChatTranslator(client, "gpt-4o") if with_ai else None,
        fallback=FallbackChatTranslator(client, "gpt-4-turbo") if with_ai else None,
        free=MyMemoryTranslator(httpx.Client(transport=httpx.MockTransport(mymemory))),
        free_delay_seconds=delay,
        sleep=sleeps.append,
    )
    return orchestrator, client.chat.completions, mymemory, sleeps


def failing_on(word, reply):
    def respond(content):
        if word in content:
            raise RuntimeError("model unavailable")
        return reply
    return respond


def test_primary_model_result_is_scored():
    orchestrator, calls, mymemory, _ = build_orchestrator({"gpt-4o": "Hola, Sr. Smith. Son las 15:00."})

    result = orchestrator.translate("Hello, Mr. Smith. It's 3:00 PM.", "es", source_language="en")

    assert result.provider == "gpt-4o"
    assert result.translation == "Hola, Sr. Smith. Son las 15:00."
    assert 0.1 <= result.confidence <= 0.99
    assert result.cultural_adaptations == ["Title adaptation", "Time format adaptation"]
    assert [c["model"] for c in calls.calls] == ["gpt-4o"]
    assert mymemory.requests == []


def test_fallback_model_used_when_primary_fails():
    orchestrator, calls, _, _ = build_orchestrator({"gpt-4o": RuntimeError("rate limited"), "gpt-4-turbo": "Hola"})

    result = orchestrator.translate("Hello", "es")

    assert result.provider == "gpt-4-turbo"
    assert result.translation == "Hola"
    assert result.confidence == 0.7
    assert [c["model"] for c in calls.calls] == ["gpt-4o", "gpt-4-turbo"]


def test_empty_model_reply_counts_as_failure():
    orchestrator, _, _, _ = build_orchestrator({"gpt-4o": "   ", "gpt-4-turbo": "Hola"})

    assert orchestrator.translate("Hello", "es").provider == "gpt-4-turbo"


def test_mymemory_used_when_both_models_fail():
    orchestrator, _, mymemory, _ = build_orchestrator(
        {"gpt-4o": RuntimeError("down"), "gpt-4-turbo": RuntimeError("down")},
        mymemory=MyMemoryStub({"Hello": "Hola"}),
    )

    result = orchestrator.translate("Hello", "es", source_language="en")

    assert result.provider == "mymemory"
    assert result.translation == "Hola"
    assert result.confidence == 0.7
    assert mymemory.requests[0].url.params["langpair"] == "en|es"


def test_every_strategy_failing_returns_original_text():
    orchestrator, _, _, _ = build_orchestrator(
        {"gpt-4o": RuntimeError("down"), "gpt-4-turbo": RuntimeError("down")},
        mymemory=MyMemoryStub(fail_on={"Hello"}),
    )

    result = orchestrator.translate("Hello", "es")

    assert result.failed
    assert result.translation == "Hello"
    assert result.confidence == FAILED_CONFIDENCE
    assert "quota exceeded" in result.error


def test_mymemory_provider_never_calls_openai():
    orchestrator, calls, mymemory, _ = build_orchestrator({"gpt-4o": "Hola"})

    result = orchestrator.translate("Hello", "es", provider="mymemory")

    assert result.provider == "mymemory"
    assert calls.calls == []
    assert mymemory.requests[0].url.params["langpair"] == "Autodetect|es"


def test_mymemory_http_error_is_a_failure():
    orchestrator, _, _, _ = build_orchestrator({}, mymemory=MyMemoryStub(status=500))

    result = orchestrator.translate("Hello", "es", provider="mymemory")

    assert result.failed
    assert result.translation == "Hello"


@pytest.mark.parametrize("match, expected", [(0.02, 0.1), (0.4, 0.4), (1.0, 0.7)])
def test_mymemory_confidence_stays_within_bounds(match, expected):
    orchestrator, _, _, _ = build_orchestrator({}, mymemory=MyMemoryStub({"Hello": "Hola"}, match=match))

    result = orchestrator.translate("Hello", "es", provider="mymemory")
    batch = orchestrator.translate_batch(["Hello"], "es", provider="mymemory")

    assert result.confidence == pytest.approx(expected)
    assert batch.results[0].confidence == pytest.approx(expected)


def test_same_language_contacts_no_provider():
    orchestrator, calls, mymemory, _ = build_orchestrator({"gpt-4o": "Hola"})

    result = orchestrator.translate("Hello", "EN", source_language="en")

    assert result.translation == "Hello"
    assert result.confidence == 0.99
    assert result.provider == "passthrough"
    assert calls.calls == []
    assert mymemory.requests == []


def test_same_language_helper():
    assert same_language("en", "en")
    assert not same_language("auto", "auto")
    assert not same_language(None, "en")
    assert not same_language("en", "es")


def test_ai_provider_without_key_is_a_configuration_error():
    orchestrator, _, mymemory, _ = build_orchestrator({}, with_ai=False)

    with pytest.raises(ConfigurationError):
        orchestrator.translate("Hello", "es")
    assert mymemory.requests == []
    assert not orchestrator.ai_available


def test_unknown_provider_is_rejected():
    orchestrator, _, _, _ = build_orchestrator({"gpt-4o": "Hola"})

    with pytest.raises(InputValidationError):
        orchestrator.translate("Hello", "es", provider="deepl")


def test_context_lines_reach_the_prompt():
    orchestrator, calls, _, _ = build_orchestrator({"gpt-4o": "Bien"})
    context = TranslationContext(previous_segments=["How are you?"], next_segments=["Great."])

    orchestrator.translate("Fine", "es", context=context)

    system_prompt = calls.calls[0]["messages"][0]["content"]
    assert 'Previous dialogue: "How are you?"' in system_prompt
    assert 'Following dialogue: "Great."' in system_prompt
    assert "Español" in system_prompt
    assert calls.calls[0]["temperature"] == 0.1
    assert calls.calls[0]["max_tokens"] == 400


def test_batch_item_failure_does_not_abort_siblings():
    orchestrator, _, _, _ = build_orchestrator(
        {"gpt-4o": failing_on("second", "traducido"), "gpt-4-turbo": failing_on("second", "traducido")},
        mymemory=MyMemoryStub(fail_on={"second line"}),
    )

    batch = orchestrator.translate_batch(["first line", "second line", "third line"], "es")

    assert len(batch.results) == 3
    assert [r.index for r in batch.results] == [0, 1, 2]
    assert [e.index for e in batch.errors] == [1]
    assert batch.results[1].success is False
    assert batch.results[1].translated_text == "second line"
    assert batch.results[1].confidence == FAILED_CONFIDENCE
    assert batch.results[0].translated_text == "traducido"
    assert batch.results[2].success is True
    assert (batch.total_processed, batch.success_count, batch.error_count) == (3, 2, 1)
    assert batch.provider == "chatgpt"


def test_mymemory_batch_waits_between_items():
    orchestrator, _, mymemory, sleeps = build_orchestrator({}, delay=0.1)

    batch = orchestrator.translate_batch(["a", "b", "c"], "fr", source_language="en", provider="mymemory")

    assert batch.success_count == 3
    assert len(mymemory.requests) == 3
    assert sleeps == [0.1, 0.1]


def test_chatgpt_batch_does_not_wait():
    orchestrator, _, _, sleeps = build_orchestrator({"gpt-4o": "x"}, delay=0.1)

    orchestrator.translate_batch(["a", "b"], "fr")

    assert sleeps == []


def test_same_language_batch_is_passthrough():
    orchestrator, calls, _, _ = build_orchestrator({"gpt-4o": "x"})

    batch = orchestrator.translate_batch(["a", "b"], "en", source_language="en")

    assert [r.translated_text for r in batch.results] == ["a", "b"]
    assert all(r.confidence == 1.0 for r in batch.results)
    assert batch.provider == "passthrough"
    assert calls.calls == []
