"""Handles subtitle translation through an ordered chain of providers."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from .confidence import MAX_CONFIDENCE, clamp_confidence, detect_cultural_adaptations, score_translation
from .exceptions import ConfigurationError, InputValidationError
from .models import (
    BatchItemError,
    BatchItemResult,
    BatchTranslation,
    TranslationResult,
)

logger = logging.getLogger(__name__)

FAILED_CONFIDENCE = 0.1
FALLBACK_CONFIDENCE = 0.7
MYMEMORY_MAX_CONFIDENCE = 0.7
PASSTHROUGH_CONFIDENCE = 1.0

PROVIDER_CHATGPT = "chatgpt"
PROVIDER_MYMEMORY = "mymemory"
PROVIDERS = (PROVIDER_CHATGPT, PROVIDER_MYMEMORY)

LANGUAGE_NAMES = {
    'zh': '中文（简体）',
    'zh-TW': '中文（繁體）',
    'en': 'English',
    'es': 'Español',
    'fr': 'Français',
    'de': 'Deutsch',
    'ja': '日本語',
    'ko': '한국어',
    'ar': 'العربية',
    'ru': 'Русский',
    'pt': 'Português',
    'it': 'Italiano',
    'hi': 'हिन्दी',
    'th': 'ไทย',
    'vi': 'Tiếng Việt',
    'nl': 'Nederlands',
    'sv': 'Svenska',
    'da': 'Dansk',
    'no': 'Norsk',
    'fi': 'Suomi',
    'pl': 'Polski',
    'tr': 'Türkçe',
    'id': 'Bahasa Indonesia',
    'ms': 'Bahasa Melayu',
    'uk': 'Українська',
    'cs': 'Čeština',
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def same_language(source: Optional[str], target: Optional[str]) -> bool:
    """True when a translation would be a no-op. "auto" never matches."""
    if not source or not target or source == "auto":
        return False
    return source.lower() == target.lower()


@dataclass
class TranslationContext:
    """Neighbouring subtitle lines passed to the model for continuity."""
    previous_segments: List[str] = field(default_factory=list)
    next_segments: List[str] = field(default_factory=list)


@dataclass
class StrategyOutcome:
    """Tagged result of one provider attempt: either ``result`` or ``error`` is set."""
    strategy: str
    result: Optional[TranslationResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None

    @classmethod
    def success(cls, strategy: str, result: TranslationResult) -> "StrategyOutcome":
        result.provider = strategy
        return cls(strategy=strategy, result=result)

    @classmethod
    def failure(cls, strategy: str, error: str) -> "StrategyOutcome":
        return cls(strategy=strategy, error=error)


class Translator(ABC):
    """Abstract base class for translation strategies."""

    name = "translator"

    def attempt(
        self,
        text: str,
        source_language: Optional[str],
        target_language: str,
        context: Optional[TranslationContext] = None,
    ) -> StrategyOutcome:
        """
        Runs one provider call and tags the outcome.

        Provider exceptions are converted into a failure outcome here, so the
        chain in TranslationOrchestrator never relies on exception handling
        to move on to the next strategy.
        """
        try:
            result = self.translate(text, source_language, target_language, context)
        except Exception as e:
            logger.warning(f"{self.name} translation failed for '{text[:50]}': {e}")
            return StrategyOutcome.failure(self.name, str(e) or e.__class__.__name__)
        if result is None:
            return StrategyOutcome.failure(self.name, f"{self.name} returned an empty translation")
        return StrategyOutcome.success(self.name, result)

    @abstractmethod
    def translate(
        self,
        text: str,
        source_language: Optional[str],
        target_language: str,
        context: Optional[TranslationContext] = None,
    ) -> Optional[TranslationResult]:
        """
        Translates text from source to target language.

        Returns:
            The result, or None when the provider answered with nothing usable.

        Raises:
            Any provider/transport exception; ``attempt`` tags it as a failure.
        """
        pass


class ChatCompletionTranslator(Translator):
    """Shared plumbing for OpenAI chat-completion based strategies."""

    max_tokens = 400
    temperature = 0.1

    def __init__(self, client, model: str):
        """
        Args:
            client: An ``openai.OpenAI`` instance (or anything exposing
                    ``chat.completions.create``).
            model: Chat model name.
        """
        self.client = client
        self.model = model
        self.name = model

    def _complete(self, messages: List[Dict[str, str]], **extra) -> Optional[str]:
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            **extra
        )
        if not completion.choices:
            return None
        content = completion.choices[0].message.content
        return content.strip() if content and content.strip() else None


class PrimaryChatTranslator(ChatCompletionTranslator):
    """High-quality model with a subtitle and cultural-adaptation prompt."""

    def build_system_prompt(self, target_language: str, context: Optional[TranslationContext] = None) -> str:
        target_name = language_name(target_language)
        prompt = (
            f"You are a subtitle translation expert specializing in {target_name}, with deep cultural "
            "and linguistic knowledge.\n\n"
            "Core principles:\n"
            "- Preserve the original meaning while adapting it to the target culture.\n"
            "- Keep the speaker's intent and emotional tone.\n"
            "- Use natural, contemporary language; avoid overly literal phrasing.\n\n"
            "Subtitle requirements:\n"
            "- At most 2 lines per subtitle, at most 50 characters per line.\n"
            "- Prefer concise, active phrasing that can be read at speech pace.\n"
            "- Keep names, titles and technical terms consistent.\n\n"
            "Cultural guidelines:\n"
            "- Adapt idioms, metaphors and references appropriately.\n"
            "- Use a formality level that fits the context.\n"
        )
        if context and context.previous_segments:
            prompt += f"\nPrevious dialogue: \"{' '.join(context.previous_segments)}\"\n"
        if context and context.next_segments:
            prompt += f"Following dialogue: \"{' '.join(context.next_segments)}\"\n"
        prompt += f"\nTranslate the subtitle text to {target_name}."
        return prompt

    def translate(self, text, source_language, target_language, context=None):
        content = self._complete(
            [
                {"role": "system", "content": self.build_system_prompt(target_language, context)},
                {
                    "role": "user",
                    "content": f"Text to translate: \"{text}\"\n\n"
                               "Provide ONLY the translated text without explanations or formatting.",
                },
            ],
            presence_penalty=0.05,
            frequency_penalty=0.1,
        )
        if content is None:
            return None
        confidence = score_translation(text, content)
        logger.debug(f"{self.model} translation [{confidence:.2f}]: '{text[:50]}' -> '{content[:50]}'")
        return TranslationResult(
            translation=content,
            confidence=confidence,
            cultural_adaptations=detect_cultural_adaptations(text, content),
        )


class FallbackChatTranslator(ChatCompletionTranslator):
    """Cheaper model with a plain prompt; results carry a fixed lower confidence."""

    max_tokens = 250
    temperature = 0.2

    def translate(self, text, source_language, target_language, context=None):
        content = self._complete([
            {
                "role": "system",
                "content": f"You are a professional subtitle translator. Translate the following text to "
                           f"{language_name(target_language)}. Keep it natural, concise, and suitable for "
                           "subtitles. Maximum 2 lines.",
            },
            {"role": "user", "content": text},
        ])
        if content is None:
            return None
        return TranslationResult(translation=content, confidence=FALLBACK_CONFIDENCE)


class MyMemoryTranslator(Translator):
    """Free, keyless translation memory service (non-AI)."""

    name = PROVIDER_MYMEMORY

    def __init__(self, http_client: httpx.Client, url: str = "https://api.mymemory.translated.net/get"):
        self.http_client = http_client
        self.url = url

    def translate(self, text, source_language, target_language, context=None):
        source = source_language if source_language and source_language != "auto" else "Autodetect"
        response = self.http_client.get(self.url, params={"q": text, "langpair": f"{source}|{target_language}"})
        response.raise_for_status()
        data = response.json()
        translated = (data.get("responseData") or {}).get("translatedText")
        if int(data.get("responseStatus") or 0) != 200 or not translated:
            raise ValueError(data.get("responseDetails") or "MyMemory translation failed")
        match = (data.get("responseData") or {}).get("match") or 0.5
        return TranslationResult(
            translation=translated, confidence=clamp_confidence(float(match), upper=MYMEMORY_MAX_CONFIDENCE)
        )


class TranslationOrchestrator:
    """
    Runs translation requests through an ordered list of strategies.

    For the "chatgpt" provider the chain is primary model, fallback model,
    then MyMemory; for "mymemory" it is MyMemory alone. When every strategy
    fails the original text comes back with confidence 0.1, so callers always
    receive a result object.
    """

    def __init__(
        self,
        primary: Optional[Translator] = None,
        fallback: Optional[Translator] = None,
        free: Optional[Translator] = None,
        free_delay_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.primary = primary
        self.fallback = fallback
        self.free = free
        self.free_delay_seconds = free_delay_seconds
        self._sleep = sleep

    @property
    def ai_available(self) -> bool:
        return self.primary is not None

    def strategies_for(self, provider: str) -> Sequence[Translator]:
        """
        Returns the fallback order for a provider.

        Raises:
            InputValidationError: For an unknown provider name.
            ConfigurationError: When the AI chain is requested without an OpenAI client.
        """
        if provider == PROVIDER_CHATGPT:
            if self.primary is None:
                raise ConfigurationError("OpenAI API key not configured")
            return [s for s in (self.primary, self.fallback, self.free) if s is not None]
        if provider == PROVIDER_MYMEMORY:
            if self.free is None:
                raise ConfigurationError("MyMemory translation is not configured")
            return [self.free]
        raise InputValidationError(f"Invalid translation provider: {provider}")

    def _run_chain(
        self,
        strategies: Sequence[Translator],
        text: str,
        source_language: Optional[str],
        target_language: str,
        context: Optional[TranslationContext],
    ) -> TranslationResult:
        last_error = "No translation strategy available"
        for strategy in strategies:
            outcome = strategy.attempt(text, source_language, target_language, context)
            if outcome.ok:
                return outcome.result
            last_error = outcome.error
            logger.info(f"Strategy '{outcome.strategy}' failed, trying next: {outcome.error}")
        logger.error(f"All translation strategies failed for '{text[:50]}': {last_error}")
        return TranslationResult(translation=text, confidence=FAILED_CONFIDENCE, error=last_error)

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        context: Optional[TranslationContext] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> TranslationResult:
        """
        Translates a single subtitle line.

        Raises:
            ConfigurationError, InputValidationError: Before any provider call,
                for an unusable provider selection. Provider failures never raise.
        """
        if same_language(source_language, target_language):
            logger.debug(f"Source and target are both '{target_language}', skipping translation.")
            return TranslationResult(translation=text, confidence=MAX_CONFIDENCE, provider="passthrough")
        strategies = self.strategies_for(provider)
        return self._run_chain(strategies, text, source_language, target_language, context)

    def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        source_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> BatchTranslation:
        """
        Translates texts one after another, keeping results positional.

        ``results[i]`` always corresponds to ``texts[i]``. An item whose every
        strategy failed (or that raised unexpectedly) keeps its original text
        with confidence 0.1 and gets an entry in ``errors``; later items are
        still processed.
        """
        start = time.monotonic()
        results: List[BatchItemResult] = []
        errors: List[BatchItemError] = []

        if same_language(source_language, target_language):
            results = [
                BatchItemResult(index=i, success=True, translated_text=t, confidence=PASSTHROUGH_CONFIDENCE)
                for i, t in enumerate(texts)
            ]
            return BatchTranslation(results=results, errors=errors, provider="passthrough")

        strategies = self.strategies_for(provider)
        delay = self.free_delay_seconds if provider == PROVIDER_MYMEMORY else 0.0
        total = len(texts)

        for i, text in enumerate(texts):
            try:
                result = self._run_chain(strategies, text, source_language, target_language, None)
            except Exception as e:
                logger.error(f"Unexpected error translating batch item {i}: {e}", exc_info=True)
                result = TranslationResult(translation=text, confidence=FAILED_CONFIDENCE, error=str(e))

            if result.failed:
                errors.append(BatchItemError(index=i, error=result.error or "Translation failed"))
                results.append(BatchItemResult(
                    index=i, success=False, translated_text=text, confidence=FAILED_CONFIDENCE
                ))
            else:
                results.append(BatchItemResult(
                    index=i,
                    success=True,
                    translated_text=result.translation,
                    confidence=result.confidence,
                    cultural_adaptations=result.cultural_adaptations,
                ))

            if i % 10 == 0:
                logger.info(f"Batch translation progress: {i + 1}/{total}")
            if delay and i < total - 1:
                self._sleep(delay)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Batch translation finished: {total - len(errors)}/{total} succeeded in {elapsed_ms}ms")
        return BatchTranslation(results=results, errors=errors, provider=provider, processing_time_ms=elapsed_ms)
