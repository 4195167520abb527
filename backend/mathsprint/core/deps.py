import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from openai import OpenAI

from mathsprint.core.config import Settings, get_settings

_prompt_logger = logging.getLogger("mathsprint.llm_prompts")

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


# ── Gemini adapter: mimics the OpenAI client interface ──────────────────────
# Generators and the judge call client.chat.completions.create(...); this
# adapter routes those calls to Gemini so callers stay provider-agnostic.

class _FakeMessage:
    def __init__(self, content: str):
        self.content = content


class _FakeChoice:
    def __init__(self, content: str):
        self.message = _FakeMessage(content)


class _FakeResponse:
    def __init__(self, text: str):
        self.choices = [_FakeChoice(text)]


def gemini_model_name(model) -> str:
    """Use the requested model when it names a Gemini model, else the default."""
    if isinstance(model, str) and model.startswith("gemini"):
        return model
    return DEFAULT_GEMINI_MODEL


class _FakeCompletions:
    def __init__(self, api_key: str):
        self._api_key = api_key

    def create(
        self,
        model=None,
        messages=None,
        temperature=0.7,
        max_tokens=None,
        **kwargs,
    ):
        from google import genai
        from google.genai import types

        system_parts = [
            m["content"] for m in (messages or []) if m.get("role") == "system"
        ]
        user_parts = [
            m["content"] for m in (messages or []) if m.get("role") != "system"
        ]

        system_instruction = "\n\n".join(system_parts) or None
        user_prompt = "\n\n".join(user_parts)

        if os.environ.get("DEBUG_LLM_PROMPTS", "").lower() in ("1", "true"):
            _prompt_logger.warning(
                "\n── SYSTEM ──\n%s\n── USER ──\n%s\n── CONFIG ── temp=%s max_tokens=%s",
                system_instruction or "(none)",
                user_prompt,
                temperature,
                max_tokens or 2048,
            )

        client = genai.Client(api_key=self._api_key)
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens or 2048,
            response_mime_type="application/json",
            # Disable thinking; it adds preamble text before the JSON output
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )
        response = client.models.generate_content(
            model=gemini_model_name(model),
            contents=user_prompt,
            config=config,
        )
        return _FakeResponse(response.text or "")


class _FakeChat:
    def __init__(self, api_key: str):
        self.completions = _FakeCompletions(api_key)


class GeminiClientAdapter:
    def __init__(self, api_key: str):
        self.chat = _FakeChat(api_key)


def get_llm_client(settings: Settings | None = None):
    """Return the active LLM client, or None when no key is configured."""
    if settings is None:
        settings = get_settings()
    if settings.llm_provider == "gemini":
        if not settings.gemini_api_key:
            return None
        return GeminiClientAdapter(api_key=settings.gemini_api_key)
    if not settings.openai_api_key:
        return None
    return OpenAI(api_key=settings.openai_api_key)


# ── Engine wiring: one client handle, shared by generator and judge ─────────

@dataclass
class PracticeEngine:
    settings: Settings
    metrics: object
    question_source: object
    pipeline: object
    sessions: object


def build_engine(settings: Settings, client=None) -> PracticeEngine:
    from mathsprint.services.ai import AIService
    from mathsprint.services.answer_evaluator import EvaluationPipeline
    from mathsprint.services.judgment_cache import JudgmentCache
    from mathsprint.services.llm_judge import LLMJudge
    from mathsprint.services.question_generator import AugmentedQuestionGenerator
    from mathsprint.services.question_source import PracticeQuestionSource
    from mathsprint.services.session_registry import SessionRegistry
    from mathsprint.services.telemetry import InMemoryMetrics

    metrics = InMemoryMetrics()
    ai_service = AIService(client) if client is not None else None

    generator = None
    judge = None
    if ai_service is not None:
        generator = AugmentedQuestionGenerator(
            ai_service,
            model=settings.question_model,
            max_count=settings.augmented_max_count,
        )
        judge = LLMJudge(ai_service, model=settings.judge_model)

    source = PracticeQuestionSource(generator, metrics=metrics)
    pipeline = EvaluationPipeline(
        judge=judge,
        cache=JudgmentCache(settings.judge_cache_capacity),
        metrics=metrics,
    )
    return PracticeEngine(
        settings=settings,
        metrics=metrics,
        question_source=source,
        pipeline=pipeline,
        sessions=SessionRegistry(retain_ended=settings.ended_session_retention_seconds),
    )


@lru_cache
def get_engine() -> PracticeEngine:
    settings = get_settings()
    return build_engine(settings, get_llm_client(settings))
