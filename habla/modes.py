"""Learning modes and supported target languages."""

from typing import Dict, List, Union

from .errors import ConfigurationError
from .models import LearningMode, ModeConfig

LEARNING_MODES: List[ModeConfig] = [
    ModeConfig(
        id=LearningMode.SMART_TUTOR,
        name="Smart Tutor",
        description="Structured lessons with clear explanations, like a patient teacher guiding your journey.",
        correction_timing="immediate",
        feedback_style="detailed",
        pacing="structured",
        immersion_level=5,
    ),
    ModeConfig(
        id=LearningMode.GAME_FIRST,
        name="Game-First",
        description="Playful challenges and progress loops that make learning feel like an adventure.",
        correction_timing="immediate",
        feedback_style="brief",
        pacing="flexible",
        immersion_level=6,
    ),
    ModeConfig(
        id=LearningMode.CONVERSATION,
        name="Conversation",
        description="Practice real dialogue with AI characters in authentic scenarios. Corrections come after.",
        correction_timing="delayed",
        feedback_style="detailed",
        pacing="flexible",
        immersion_level=7,
    ),
    ModeConfig(
        id=LearningMode.MEDIA_BASED,
        name="Media Learning",
        description="Learn through songs, shows, and content you love.",
        correction_timing="gentle",
        feedback_style="detailed",
        pacing="flexible",
        immersion_level=8,
    ),
    ModeConfig(
        id=LearningMode.SLOW_HUMAN,
        name="Slow & Human",
        description="Low-pressure, cozy learning at your own pace. Perfect for building confidence gently.",
        correction_timing="gentle",
        feedback_style="encouraging",
        pacing="relaxed",
        immersion_level=3,
    ),
]

# Target language key -> display name used inside prompts
TARGET_LANGUAGES: Dict[str, str] = {
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ja": "Japanese",
}


def resolve_mode(mode: Union[str, LearningMode]) -> LearningMode:
    """Turn a mode id into a ``LearningMode``; unknown ids are a configuration error."""
    if isinstance(mode, LearningMode):
        return mode
    try:
        return LearningMode(mode)
    except ValueError:
        valid = ", ".join(m.value for m in LearningMode)
        raise ConfigurationError(f"Unknown learning mode '{mode}' (expected one of: {valid})")


def resolve_language(language: str) -> str:
    """Display name for a target-language key."""
    try:
        return TARGET_LANGUAGES[language]
    except KeyError:
        valid = ", ".join(sorted(TARGET_LANGUAGES))
        raise ConfigurationError(f"Unknown target language '{language}' (expected one of: {valid})")


def get_mode_config(mode: Union[str, LearningMode]) -> ModeConfig:
    resolved = resolve_mode(mode)
    for config in LEARNING_MODES:
        if config.id == resolved:
            return config
    raise ConfigurationError(f"No configuration for mode '{resolved.value}'")
