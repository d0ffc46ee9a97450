"""
Chat provider and tutor calls against a fake OpenAI SDK client.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest
from openai import OpenAIError

from conftest import make_fake_client
from habla.api import ChatProvider, TutorService, describe_models
from habla.config import Settings
from habla.errors import ConfigurationError, MalformedResponseError, ProviderError
from habla.models import ConversationRole, Exercise, LearningMode, Message


def test_provider_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        ChatProvider(Settings(api_key=None))


def test_complete_passes_model_and_settings(provider, completions) -> None:
    completions.queue("¡Hola!")

    text = provider.complete([{"role": "user", "content": "hola"}], temperature=0.3, max_tokens=50)

    assert text == "¡Hola!"
    call = completions.calls[0]
    assert call["model"] == "openai"
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 50


def test_sdk_errors_become_provider_errors(provider, completions) -> None:
    completions.queue(OpenAIError("rate limited"))

    with pytest.raises(ProviderError) as exc:
        provider.complete([{"role": "user", "content": "hola"}])
    assert isinstance(exc.value.__cause__, OpenAIError)


def test_empty_completion_is_a_provider_error(provider, completions) -> None:
    completions.queue("")

    with pytest.raises(ProviderError):
        provider.complete([{"role": "user", "content": "hola"}])


def test_list_models_reads_capability_flags(completions) -> None:
    entries = [
        SimpleNamespace(id="openai", model_extra={"description": "GPT", "tools": True, "vision": True}),
        SimpleNamespace(id="mistral", model_extra=None),
    ]
    provider = ChatProvider(Settings(api_key="sk-test"), client=make_fake_client(completions, models=entries))

    models = provider.list_models()

    assert [m.name for m in models] == ["openai", "mistral"]
    assert describe_models(models) == {"openai": ["Tools", "Vision"], "mistral": []}


def test_generate_image_returns_url(provider) -> None:
    assert provider.generate_image("a cozy café in Madrid") == "https://img.test/1.png"


def test_tutor_lesson_uses_memory_prompt(provider, completions, memory) -> None:
    completions.queue({
        "title": "Greetings",
        "description": "Say hello",
        "exercises": [{"type": "translation", "prompt": "Hello", "correctAnswer": "Hola"}],
    })
    tutor = TutorService(provider, language="es")

    lesson = tutor.generate_lesson(LearningMode.GAME_FIRST, memory, 6, topic="greetings")

    assert lesson.title == "Greetings"
    system = completions.calls[0]["messages"][0]["content"]
    assert "MODE: Game-First" in system
    assert completions.calls[0]["temperature"] == 0.8


def test_tutor_conversation_reply_is_stripped(provider, completions, memory) -> None:
    completions.queue("  ¿Qué te pongo?  ")
    history = [Message(id="1", role="user", content="Hola", timestamp="")]

    reply = TutorService(provider).respond_to_conversation(ConversationRole.BARISTA, history, memory, 5)

    assert reply == "¿Qué te pongo?"
    assert completions.calls[0]["messages"][-1] == {"role": "user", "content": "Hola"}


def test_tutor_rejects_malformed_feedback(provider, completions) -> None:
    completions.queue("Great job, keep it up!")

    with pytest.raises(MalformedResponseError) as exc:
        TutorService(provider).generate_conversation_feedback([])
    assert exc.value.raw == "Great job, keep it up!"


def test_tutor_check_answer(provider, completions) -> None:
    completions.queue({"isCorrect": True, "feedback": "¡Perfecto!"})
    exercise = Exercise(type="translation", prompt="Cat", correct_answer="Gato")

    feedback = TutorService(provider).check_exercise_answer(exercise, "Gato", LearningMode.SMART_TUTOR, 5)

    assert feedback.is_correct is True


def test_tutor_vocabulary_cards(provider, completions, memory) -> None:
    completions.queue({"cards": [{"word": "perro", "translation": "dog"}]})

    cards = TutorService(provider, language="it").generate_vocabulary(memory, 4, count=1)

    assert cards[0].word == "perro"
    assert "Italian" in completions.calls[0]["messages"][0]["content"]


def test_tutor_unknown_language_fails_before_calling(provider, completions, memory) -> None:
    with pytest.raises(ConfigurationError):
        TutorService(provider, language="xx").generate_lesson(LearningMode.SMART_TUTOR, memory, 5)
    assert completions.calls == []
