"""
Strict parsing of chat model output.

The model is asked for JSON, but nothing guarantees it complies. Every parser
here either returns a fully populated record or raises
``MalformedResponseError``; callers never see half-parsed payloads.
"""

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import MalformedResponseError, ValidationError
from .models import (
    ContentHighlight,
    ConversationFeedback,
    CulturalNote,
    Exercise,
    ExerciseFeedback,
    LessonPlan,
    MediaContent,
    VocabularyCard,
)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json(raw: Optional[str]) -> Dict[str, Any]:
    """
    Decode a JSON object from model text.

    Accepts bare JSON, a fenced ```json block, or JSON surrounded by prose.
    """
    if not raw or not raw.strip():
        raise MalformedResponseError("Empty response from model", raw)

    candidates = [raw.strip()]
    fenced = _FENCE_RE.search(raw)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = raw.find("{"), raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
        raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}", raw)

    raise MalformedResponseError("Response is not valid JSON", raw)


def _field(data: Mapping[str, Any], key: str, kind, raw: str, required: bool = True, default=None):
    if key not in data or data[key] is None:
        if required:
            raise MalformedResponseError(f"Missing field '{key}'", raw)
        return default
    value = data[key]
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedResponseError(f"Field '{key}' must be a number", raw)
        return int(value)
    if not isinstance(value, kind):
        raise MalformedResponseError(f"Field '{key}' has wrong type {type(value).__name__}", raw)
    return value


def _strings(data: Mapping[str, Any], key: str, raw: str, required: bool = False) -> Tuple[str, ...]:
    values = _field(data, key, list, raw, required=required, default=[])
    if not all(isinstance(v, str) for v in values):
        raise MalformedResponseError(f"Field '{key}' must be a list of strings", raw)
    return tuple(values)


def _objects(data: Mapping[str, Any], key: str, raw: str, required: bool = False) -> List[Mapping[str, Any]]:
    values = _field(data, key, list, raw, required=required, default=[])
    if not all(isinstance(v, dict) for v in values):
        raise MalformedResponseError(f"Field '{key}' must be a list of objects", raw)
    return values


def _bounded(value: int, key: str, low: int, high: int, raw: str) -> int:
    if not low <= value <= high:
        raise MalformedResponseError(f"Field '{key}' out of range [{low}, {high}]: {value}", raw)
    return value


def _exercise(item: Mapping[str, Any], raw: str) -> Exercise:
    options = _strings(item, "options", raw)
    exercise_type = _field(item, "type", str, raw)
    if exercise_type == "multiple-choice" and not options:
        raise MalformedResponseError("multiple-choice exercise without options", raw)
    return Exercise(
        type=exercise_type,
        prompt=_field(item, "prompt", str, raw),
        correct_answer=str(_field(item, "correctAnswer", (str, int, float), raw)),
        options=options,
        difficulty=_field(item, "difficulty", int, raw, required=False, default=5),
        topic=_field(item, "topic", str, raw, required=False, default=""),
        grammar_focus=_strings(item, "grammarFocus", raw),
    )


# ---------------------------------------------------------------------------
# Public parsers
# ---------------------------------------------------------------------------

def parse_conversation_feedback(raw: str) -> ConversationFeedback:
    data = extract_json(raw)
    _bounded(_field(data, "overallScore", int, raw), "overallScore", 0, 100, raw)
    _strings(data, "strengths", raw)
    _strings(data, "improvements", raw)
    for item in _objects(data, "nativePhrasings", raw):
        _field(item, "userSaid", str, raw)
        _field(item, "nativeSays", str, raw)
    try:
        return ConversationFeedback.from_dict(data)
    except ValidationError as e:
        raise MalformedResponseError(str(e), raw)


def parse_lesson_plan(raw: str) -> LessonPlan:
    data = extract_json(raw)
    exercises = tuple(_exercise(item, raw) for item in _objects(data, "exercises", raw, required=True))
    if not exercises:
        raise MalformedResponseError("Lesson has no exercises", raw)
    return LessonPlan(
        title=_field(data, "title", str, raw),
        description=_field(data, "description", str, raw, required=False, default=""),
        exercises=exercises,
        grammar_concepts=_strings(data, "grammarConcepts", raw),
        vocabulary=_strings(data, "vocabulary", raw),
    )


def parse_exercise_feedback(raw: str) -> ExerciseFeedback:
    data = extract_json(raw)
    return ExerciseFeedback(
        is_correct=_field(data, "isCorrect", bool, raw),
        feedback=_field(data, "feedback", str, raw),
        explanation=_field(data, "explanation", str, raw, required=False, default=""),
        encouragement=_field(data, "encouragement", str, raw, required=False, default=""),
        grammar_concepts=_strings(data, "grammarConcepts", raw),
    )


def parse_media_content(raw: str, original_content: str, content_type: str) -> MediaContent:
    data = extract_json(raw)
    highlights = tuple(
        ContentHighlight(
            phrase=_field(item, "phrase", str, raw),
            translation=_field(item, "translation", str, raw),
            explanation=_field(item, "explanation", str, raw, required=False, default=""),
            usefulness=_bounded(_field(item, "usefulness", int, raw, required=False, default=5),
                                "usefulness", 1, 10, raw),
        )
        for item in _objects(data, "highlights", raw)
    )
    notes = tuple(
        CulturalNote(
            term=_field(item, "term", str, raw),
            explanation=_field(item, "explanation", str, raw),
            context=_field(item, "context", str, raw, required=False, default=""),
        )
        for item in _objects(data, "culturalNotes", raw)
    )
    return MediaContent(
        content_type=content_type,
        original_content=original_content,
        simplified_content=_field(data, "simplifiedContent", str, raw),
        highlights=highlights,
        cultural_notes=notes,
        follow_up_exercises=tuple(_exercise(item, raw) for item in _objects(data, "followUpExercises", raw)),
    )


def parse_vocabulary_cards(raw: str) -> List[VocabularyCard]:
    data = extract_json(raw)
    cards = [
        VocabularyCard(
            word=_field(item, "word", str, raw),
            translation=_field(item, "translation", str, raw),
            example=_field(item, "example", str, raw, required=False, default=""),
            difficulty=_field(item, "difficulty", int, raw, required=False, default=5),
        )
        for item in _objects(data, "cards", raw, required=True)
    ]
    if not cards:
        raise MalformedResponseError("No vocabulary cards in response", raw)
    return cards
