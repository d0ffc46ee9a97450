"""
Chat-completion provider boundary for Habla.

This module handles:
- Raw chat completions, model listing and image generation against an
  OpenAI-compatible endpoint (``ChatProvider``)
- The tutor calls built on top of it (``TutorService``): lessons, roleplay
  replies, conversation feedback, media simplification, answer checking and
  vocabulary cards

Provider failures raise ``ProviderError``; output that does not match the
requested JSON shape raises ``MalformedResponseError``. Neither touches the
learner memory; recording results is the session layer's job.
"""

from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI, OpenAIError

from .config import Settings, load_settings
from .errors import ConfigurationError, ProviderError
from .logger import Timer, logger
from .models import (
    ConversationFeedback,
    ConversationRole,
    Exercise,
    ExerciseFeedback,
    LearningMemory,
    LearningMode,
    LessonPlan,
    MediaContent,
    Message,
    ModelInfo,
    VocabularyCard,
)
from .prompts import (
    ChatMessages,
    build_answer_check_messages,
    build_conversation_messages,
    build_feedback_messages,
    build_lesson_messages,
    build_media_messages,
    build_vocabulary_messages,
)
from .responses import (
    parse_conversation_feedback,
    parse_exercise_feedback,
    parse_lesson_plan,
    parse_media_content,
    parse_vocabulary_cards,
)


class ChatProvider:
    """
    Thin wrapper over the OpenAI SDK client.

    Pass ``client`` to reuse an existing SDK client (or a test double);
    otherwise one is built from ``settings``.
    """

    def __init__(self, settings: Settings, client: Any = None):
        if client is None:
            if not settings.api_key:
                raise ConfigurationError("No API key configured (set HABLA_API_KEY or OPENAI_API_KEY)")
            client = OpenAI(api_key=settings.api_key, base_url=settings.base_url)
        self.client = client
        self.chat_model = settings.chat_model
        self.image_model = settings.image_model

    def complete(
        self,
        messages: ChatMessages,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        model: Optional[str] = None,
    ) -> str:
        """Run one chat completion and return the assistant text."""
        model = model or self.chat_model
        logger.api_call("chat.completions.create", model=model)
        try:
            with Timer() as timer:
                completion = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
        except OpenAIError as e:
            logger.api_error(f"Chat completion failed: {e}")
            raise ProviderError(f"Chat completion failed: {e}") from e
        logger.api_response("chat.completions.create", duration_ms=timer.duration_ms)

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            logger.api_error("Chat completion returned no content")
            raise ProviderError("Chat completion returned no content")
        return content

    def list_models(self) -> List[ModelInfo]:
        """Models the endpoint offers."""
        logger.api_call("models.list")
        try:
            with Timer() as timer:
                page = self.client.models.list()
        except OpenAIError as e:
            logger.api_error(f"Listing models failed: {e}")
            raise ProviderError(f"Listing models failed: {e}") from e
        logger.api_response("models.list", duration_ms=timer.duration_ms)

        models = []
        for entry in page:
            extra = entry.model_extra if getattr(entry, "model_extra", None) else {}
            models.append(ModelInfo(
                name=entry.id,
                description=str(extra.get("description", "")),
                tools=bool(extra.get("tools", False)),
                vision=bool(extra.get("vision", False)),
                audio=bool(extra.get("audio", False)),
                reasoning=bool(extra.get("reasoning", False)),
            ))
        return models

    def generate_image(self, prompt: str, size: str = "1024x1024", model: Optional[str] = None) -> str:
        """Generate an image and return its URL."""
        model = model or self.image_model
        logger.img_start(prompt)
        logger.api_call("images.generate", model=model)
        try:
            with Timer() as timer:
                result = self.client.images.generate(
                    model=model,
                    prompt=prompt,
                    size=size,
                    response_format="url",
                )
        except OpenAIError as e:
            logger.api_error(f"Image generation failed: {e}")
            raise ProviderError(f"Image generation failed: {e}") from e
        logger.api_response("images.generate", duration_ms=timer.duration_ms)

        data = getattr(result, "data", None) or []
        url = data[0].url if data else None
        if not url:
            raise ProviderError("Image generation returned no URL")
        logger.img_complete(url, duration_ms=timer.duration_ms)
        return url


class TutorService:
    """Tutor calls: prompt in, validated record out."""

    def __init__(self, provider: ChatProvider, language: str = "es"):
        self.provider = provider
        self.language = language

    def generate_lesson(
        self,
        mode: LearningMode,
        memory: LearningMemory,
        immersion_level: int,
        topic: str = "",
    ) -> LessonPlan:
        logger.api(f"generate_lesson() mode={mode.value if isinstance(mode, LearningMode) else mode}")
        messages = build_lesson_messages(mode, memory, immersion_level, self.language, topic)
        lesson = parse_lesson_plan(self.provider.complete(messages, temperature=0.8))
        logger.success(f"Lesson ready: {lesson.title} ({len(lesson.exercises)} exercises)")
        return lesson

    def respond_to_conversation(
        self,
        role: ConversationRole,
        history: Sequence[Message],
        memory: LearningMemory,
        immersion_level: int,
        custom_description: str = "",
    ) -> str:
        messages = build_conversation_messages(
            role, history, memory, immersion_level, self.language, custom_description
        )
        return self.provider.complete(messages, temperature=0.9).strip()

    def generate_conversation_feedback(self, history: Sequence[Message]) -> ConversationFeedback:
        messages = build_feedback_messages(history, self.language)
        feedback = parse_conversation_feedback(self.provider.complete(messages, temperature=0.6))
        logger.success(f"Conversation feedback received (score {feedback.overall_score}/100)")
        return feedback

    def simplify_media_content(self, content: str, content_type: str, user_level: int) -> MediaContent:
        messages = build_media_messages(content, content_type, user_level, self.language)
        return parse_media_content(self.provider.complete(messages, temperature=0.7), content, content_type)

    def check_exercise_answer(
        self,
        exercise: Exercise,
        user_answer: str,
        mode: LearningMode,
        immersion_level: int,
    ) -> ExerciseFeedback:
        messages = build_answer_check_messages(exercise, user_answer, mode, immersion_level, self.language)
        return parse_exercise_feedback(self.provider.complete(messages, temperature=0.6))

    def generate_vocabulary(self, memory: LearningMemory, immersion_level: int, count: int = 10) -> List[VocabularyCard]:
        messages = build_vocabulary_messages(memory, immersion_level, self.language, count)
        return parse_vocabulary_cards(self.provider.complete(messages, temperature=0.8))


# ---------------------------------------------------------------------------
# Global provider
# ---------------------------------------------------------------------------

_provider: Optional[ChatProvider] = None


def get_provider(settings: Optional[Settings] = None) -> ChatProvider:
    """Build (once) and return the global chat provider."""
    global _provider
    if _provider is None:
        _provider = ChatProvider(settings or load_settings())
    return _provider


def describe_models(models: Sequence[ModelInfo]) -> Dict[str, List[str]]:
    """Model name -> capability labels, for display."""
    return {m.name: m.capabilities for m in models}
