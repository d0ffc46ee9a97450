"""
Prompt construction for the chat model.

Turns a learner memory snapshot, a learning mode and an immersion level into
instruction text. Everything here is deterministic string templating; no
function in this module touches the network.
"""

import json
from typing import Dict, List, Sequence, Union

from .memory import clamp_skill_level, get_recent_mistake_concepts
from .models import ConversationRole, Exercise, LearningMemory, LearningMode, Message
from .modes import resolve_language, resolve_mode
from .schemas import (
    CONVERSATION_FEEDBACK_SCHEMA,
    EXERCISE_FEEDBACK_SCHEMA,
    LESSON_SCHEMA,
    MEDIA_CONTENT_SCHEMA,
    VOCABULARY_SCHEMA,
)

ChatMessages = List[Dict[str, str]]

NO_WEAK_AREAS = "None yet"
NO_MASTERED_CONCEPTS = "Just starting"
NO_RECENT_MISTAKES = "None yet"

MODE_TEMPLATES: Dict[LearningMode, str] = {
    LearningMode.SMART_TUTOR: """MODE: Smart Tutor (Structured & Adaptive)
- Act like a patient, knowledgeable teacher
- Provide explicit grammar explanations
- Build lessons progressively
- Correct mistakes immediately with clear explanations
- Use a balance of {language} and English based on immersion level
- Focus on understanding "why" not just "what\"""",

    LearningMode.GAME_FIRST: """MODE: Game-First (Playful & Challenging)
- Make learning feel like a fun challenge
- Use encouraging, energetic language
- Keep exercises bite-sized and varied
- Celebrate wins enthusiastically
- Provide quick, light corrections
- Focus on momentum and progress""",

    LearningMode.CONVERSATION: """MODE: Conversation-First (Natural Dialogue)
- Act naturally in your assigned role
- Respond to the user's {language} realistically, not like a teacher
- DO NOT correct mistakes during conversation
- Match the user's language level but stay in character
- Keep conversation flowing naturally
- Save all corrections for post-conversation feedback""",

    LearningMode.MEDIA_BASED: """MODE: Media-Based (Content-Driven)
- Analyze and simplify provided content to the user's level
- Explain slang, idioms, and cultural context
- Highlight the most useful phrases
- Make content accessible and engaging
- Generate exercises based on the content
- Help the user connect with authentic {language} media""",

    LearningMode.SLOW_HUMAN: """MODE: Slow & Human (Patient & Supportive)
- Use the warmest, most patient tone possible
- Never rush or pressure the user
- Celebrate every small win genuinely
- Correct mistakes gently and constructively
- Provide extra encouragement
- Focus on building confidence above all else
- Use more English explanations to reduce cognitive load""",
}

# Brief answer-checking style per mode
MODE_FEEDBACK_STYLES: Dict[LearningMode, str] = {
    LearningMode.SMART_TUTOR: "Provide detailed explanation of correctness and why",
    LearningMode.GAME_FIRST: "Keep it brief and encouraging with energy",
    LearningMode.CONVERSATION: "Natural conversational feedback",
    LearningMode.MEDIA_BASED: "Relate feedback back to the content context",
    LearningMode.SLOW_HUMAN: "Be extremely gentle, warm, and patient. Focus on what they got right first.",
}

ROLE_DESCRIPTIONS: Dict[ConversationRole, str] = {
    ConversationRole.BARISTA: "You're a friendly barista at a local café. Keep responses natural and in character.",
    ConversationRole.FRIEND: "You're a close friend catching up. Be warm, casual, and conversational.",
    ConversationRole.COWORKER: "You're a colleague at work. Be professional but friendly.",
    ConversationRole.TRAVELER: "You're a helpful local giving directions or travel advice.",
    ConversationRole.STRANGER: "You're a friendly stranger in a social situation (party, event, etc).",
    ConversationRole.CUSTOM: "Stay in character as described.",
}


def _immersion(level) -> int:
    return clamp_skill_level(level)


def build_memory_summary(memory: LearningMemory, immersion_level, language: str = "es") -> str:
    """The learner-profile block that opens every tutor prompt."""
    language_name = resolve_language(language)
    weak_areas = ", ".join(w.category for w in memory.weak_areas) or NO_WEAK_AREAS
    mastered = ", ".join(memory.mastered_concepts) or NO_MASTERED_CONCEPTS
    recent = ", ".join(get_recent_mistake_concepts(memory, limit=3)) or NO_RECENT_MISTAKES

    return (
        f"You are an expert {language_name} language tutor with deep empathy and pedagogical expertise. "
        f"Your goal is to help users learn {language_name} in a way that feels safe, intelligent, "
        f"and personalized.\n"
        f"\n"
        f"User's immersion level: {_immersion(immersion_level)}/10 "
        f"(0=all English explanations, 10=almost all {language_name})\n"
        f"Known weak areas: {weak_areas}\n"
        f"Mastered concepts: {mastered}\n"
        f"Recent grammar mistakes: {recent}\n"
    )


def build_system_prompt(
    mode: Union[str, LearningMode],
    memory: LearningMemory,
    immersion_level,
    language: str = "es",
) -> str:
    """
    Build the system prompt for ``mode``.

    Raises:
        ConfigurationError: If ``mode`` or ``language`` is not recognized
    """
    resolved = resolve_mode(mode)
    summary = build_memory_summary(memory, immersion_level, language)
    template = MODE_TEMPLATES[resolved].format(language=resolve_language(language))
    return f"{summary}\n{template}"


# ---------------------------------------------------------------------------
# Message builders for each tutor call
# ---------------------------------------------------------------------------

def build_lesson_messages(
    mode: Union[str, LearningMode],
    memory: LearningMemory,
    immersion_level,
    language: str = "es",
    topic: str = "",
) -> ChatMessages:
    language_name = resolve_language(language)
    system_prompt = build_system_prompt(mode, memory, immersion_level, language)

    if topic:
        request = (
            f"Generate a focused {language_name} lesson on: {topic}. "
            "Include 3-5 exercises appropriate for the current mode."
        )
    else:
        request = (
            f"Generate a personalized {language_name} lesson that addresses the user's weak areas "
            "while building on mastered concepts. Include 3-5 varied exercises."
        )

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"{request}\n{LESSON_SCHEMA}"},
    ]


def to_chat_history(messages: Sequence[Message]) -> ChatMessages:
    """Map conversation turns onto chat-completion roles."""
    return [
        {"role": "user" if m.role == "user" else "assistant", "content": m.content}
        for m in messages
    ]


def build_conversation_messages(
    role: ConversationRole,
    history: Sequence[Message],
    memory: LearningMemory,
    immersion_level,
    language: str = "es",
    custom_description: str = "",
) -> ChatMessages:
    language_name = resolve_language(language)
    persona = ROLE_DESCRIPTIONS[role]
    if role is ConversationRole.CUSTOM and custom_description:
        persona = f"{custom_description} {persona}"

    system_prompt = (
        f"{build_system_prompt(LearningMode.CONVERSATION, memory, immersion_level, language)}\n"
        f"\n"
        f"You are playing the role of: {persona}\n"
        f"\n"
        f"Critical instructions:\n"
        f"- Respond ONLY in {language_name} (adjust complexity to user's level)\n"
        f"- Stay completely in character - you're not a teacher during the conversation\n"
        f"- Keep responses natural and conversational (2-4 sentences max)\n"
        f"- DO NOT correct grammar or mistakes - just respond naturally\n"
        f"- If user makes mistakes, understand their intent and respond naturally\n"
        f"- Match their language level but stay authentic to your role"
    )
    return [{"role": "system", "content": system_prompt}] + to_chat_history(history)


def build_feedback_messages(history: Sequence[Message], language: str = "es") -> ChatMessages:
    language_name = resolve_language(language)
    system_prompt = (
        f"You are an expert {language_name} teacher analyzing a conversation. "
        f"Provide constructive, encouraging feedback.\n"
        f"{CONVERSATION_FEEDBACK_SCHEMA}\n"
        f"Focus on being encouraging while providing actionable insights."
    )
    transcript = json.dumps(to_chat_history(history), indent=2, ensure_ascii=False)
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"Analyze this conversation:\n\n{transcript}"},
    ]


def build_media_messages(
    content: str,
    content_type: str,
    user_level,
    language: str = "es",
) -> ChatMessages:
    language_name = resolve_language(language)
    system_prompt = (
        f"You are an expert at adapting {language_name} content to learner levels.\n"
        f"\n"
        f"User's level: {_immersion(user_level)}/10\n"
        f"Content type: {content_type}\n"
        f"\n"
        f"Analyze and simplify this content.\n"
        f"{MEDIA_CONTENT_SCHEMA}"
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"Content to analyze:\n\n{content}"},
    ]


def build_answer_check_messages(
    exercise: Exercise,
    user_answer: str,
    mode: Union[str, LearningMode],
    immersion_level,
    language: str = "es",
) -> ChatMessages:
    resolved = resolve_mode(mode)
    language_name = resolve_language(language)
    system_prompt = (
        f"You are providing feedback on a {language_name} exercise.\n"
        f"Mode: {resolved.value} - {MODE_FEEDBACK_STYLES[resolved]}\n"
        f"Immersion level: {_immersion(immersion_level)}/10\n"
        f"{EXERCISE_FEEDBACK_SCHEMA}"
    )
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": (
                f"Exercise: {exercise.prompt}\n"
                f"User answered: \"{user_answer}\"\n"
                f"Correct answer: \"{exercise.correct_answer}\"\n"
                f"Exercise type: {exercise.type}"
            ),
        },
    ]


def build_vocabulary_messages(
    memory: LearningMemory,
    immersion_level,
    language: str = "es",
    count: int = 10,
) -> ChatMessages:
    language_name = resolve_language(language)
    system_prompt = build_system_prompt(LearningMode.GAME_FIRST, memory, immersion_level, language)
    known_gaps = ", ".join(g.word for g in memory.vocabulary_gaps[:20])
    request = (
        f"Generate {count} useful vocabulary words in {language_name} based on the user's "
        f"learning level and gaps. Focus on high-frequency words and common phrases."
    )
    if known_gaps:
        request += f"\nWords the user recently struggled with: {known_gaps}"
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"{request}\n{VOCABULARY_SCHEMA}"},
    ]
