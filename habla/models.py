"""
Data model for Habla.

Every record is a frozen dataclass: memory updates build new snapshots with
``dataclasses.replace`` instead of mutating shared state. ``to_dict`` /
``from_dict`` use the camelCase field names of the persisted layout, so a
snapshot can be written to and read from the key-value store verbatim.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from .errors import ValidationError
from .timestamps import parse_timestamp

T = TypeVar("T")

MAX_MISTAKE_EXAMPLES = 5
MAX_GAP_CONTEXTS = 3
MAX_CONVERSATIONS = 20
MIN_SKILL_LEVEL = 0
MAX_SKILL_LEVEL = 10
REVIEW_THRESHOLD = 7


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _require(data: Mapping[str, Any], key: str, owner: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValidationError(f"{owner}: expected an object, got {type(data).__name__}")
    if key not in data:
        raise ValidationError(f"{owner}: missing required field '{key}'")
    return data[key]


def _str_tuple(value: Any, owner: str, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{owner}: field '{key}' must be a list")
    return tuple(str(v) for v in value)


def _records(value: Any, cls: Type[T], owner: str, key: str) -> Tuple[T, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{owner}: field '{key}' must be a list")
    return tuple(cls.from_dict(item) for item in value)  # type: ignore[attr-defined]


def _int(value: Any, owner: str, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{owner}: field '{key}' must be a finite number")
    return int(value)


def _timestamp(value: Any, owner: str, key: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{owner}: field '{key}' must be an ISO timestamp string")
    try:
        parse_timestamp(value)
    except ValueError:
        raise ValidationError(f"{owner}: field '{key}' is not a valid ISO timestamp: {value!r}")
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ConversationRole(str, Enum):
    """Roleplay personas for conversation practice."""
    BARISTA = "barista"
    FRIEND = "friend"
    COWORKER = "coworker"
    TRAVELER = "traveler"
    STRANGER = "stranger"
    CUSTOM = "custom"


class LearningMode(str, Enum):
    """The five learning modes."""
    SMART_TUTOR = "smart-tutor"
    GAME_FIRST = "game-first"
    CONVERSATION = "conversation"
    MEDIA_BASED = "media-based"
    SLOW_HUMAN = "slow-human"


# ---------------------------------------------------------------------------
# Learner memory records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GrammarMistake:
    """A grammar concept the learner keeps getting wrong."""
    id: str
    concept: str                       # Stable key
    mistake_count: int                 # >= 1, only increases
    last_occurrence: str               # ISO timestamp
    examples: Tuple[str, ...] = ()     # Last 5, oldest first

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "concept": self.concept,
            "mistakeCount": self.mistake_count,
            "lastOccurrence": self.last_occurrence,
            "examples": list(self.examples),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GrammarMistake":
        owner = "GrammarMistake"
        concept = str(_require(data, "concept", owner))
        return cls(
            id=str(data.get("id") or f"gm_{concept}"),
            concept=concept,
            mistake_count=_int(_require(data, "mistakeCount", owner), owner, "mistakeCount"),
            last_occurrence=_timestamp(_require(data, "lastOccurrence", owner), owner, "lastOccurrence"),
            examples=_str_tuple(data.get("examples"), owner, "examples"),
        )


@dataclass(frozen=True)
class VocabularyGap:
    """A word the learner did not know."""
    id: str
    word: str                          # Stable key
    translation: str
    encounter_count: int               # >= 1, only increases
    last_encounter: str                # ISO timestamp
    context: Tuple[str, ...] = ()      # Last 3, oldest first

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "word": self.word,
            "translation": self.translation,
            "encounterCount": self.encounter_count,
            "lastEncounter": self.last_encounter,
            "context": list(self.context),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VocabularyGap":
        owner = "VocabularyGap"
        word = str(_require(data, "word", owner))
        return cls(
            id=str(data.get("id") or f"vg_{word}"),
            word=word,
            translation=str(data.get("translation", "")),
            encounter_count=_int(_require(data, "encounterCount", owner), owner, "encounterCount"),
            last_encounter=_timestamp(_require(data, "lastEncounter", owner), owner, "lastEncounter"),
            context=_str_tuple(data.get("context"), owner, "context"),
        )


@dataclass(frozen=True)
class WeakArea:
    """A skill category with a 0-10 proficiency estimate."""
    id: str
    category: str                      # Stable key
    skill_level: int                   # Clamped to [0, 10]
    last_practiced: str                # ISO timestamp

    @property
    def needs_review(self) -> bool:
        return self.skill_level < REVIEW_THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "skillLevel": self.skill_level,
            "needsReview": self.needs_review,
            "lastPracticed": self.last_practiced,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WeakArea":
        owner = "WeakArea"
        category = str(_require(data, "category", owner))
        level = _int(_require(data, "skillLevel", owner), owner, "skillLevel")
        last_practiced = data.get("lastPracticed") or ""
        if last_practiced:
            _timestamp(last_practiced, owner, "lastPracticed")
        # needsReview is derived; the stored flag is ignored
        return cls(
            id=str(data.get("id") or f"wa_{category}"),
            category=category,
            skill_level=max(MIN_SKILL_LEVEL, min(MAX_SKILL_LEVEL, level)),
            last_practiced=last_practiced,
        )


@dataclass(frozen=True)
class Message:
    """One turn of a roleplay conversation."""
    id: str
    role: str                          # "user" or "ai"
    content: str
    timestamp: str
    language: str = "es"               # "es", "en" or "mixed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        owner = "Message"
        return cls(
            id=str(data.get("id", "")),
            role=str(_require(data, "role", owner)),
            content=str(_require(data, "content", owner)),
            timestamp=str(data.get("timestamp", "")),
            language=str(data.get("language", "es")),
        )


@dataclass(frozen=True)
class NativePhrasing:
    user_said: str
    native_says: str
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userSaid": self.user_said,
            "nativeSays": self.native_says,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NativePhrasing":
        owner = "NativePhrasing"
        return cls(
            user_said=str(_require(data, "userSaid", owner)),
            native_says=str(_require(data, "nativeSays", owner)),
            explanation=str(data.get("explanation", "")),
        )


@dataclass(frozen=True)
class ConversationFeedback:
    """Post-conversation critique."""
    strengths: Tuple[str, ...] = ()
    improvements: Tuple[str, ...] = ()
    native_phrasings: Tuple[NativePhrasing, ...] = ()
    overall_score: int = 0             # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "nativePhrasings": [p.to_dict() for p in self.native_phrasings],
            "overallScore": self.overall_score,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConversationFeedback":
        owner = "ConversationFeedback"
        return cls(
            strengths=_str_tuple(data.get("strengths"), owner, "strengths"),
            improvements=_str_tuple(data.get("improvements"), owner, "improvements"),
            native_phrasings=_records(data.get("nativePhrasings"), NativePhrasing, owner, "nativePhrasings"),
            overall_score=_int(_require(data, "overallScore", owner), owner, "overallScore"),
        )


@dataclass(frozen=True)
class ConversationSession:
    """One finished roleplay conversation."""
    id: str
    role: ConversationRole
    messages: Tuple[Message, ...]
    timestamp: str
    feedback: Optional[ConversationFeedback] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "messages": [m.to_dict() for m in self.messages],
            "timestamp": self.timestamp,
        }
        if self.feedback is not None:
            data["feedback"] = self.feedback.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConversationSession":
        owner = "ConversationSession"
        role = _require(data, "role", owner)
        try:
            role = ConversationRole(role)
        except ValueError:
            raise ValidationError(f"{owner}: unknown role '{role}'")
        feedback = data.get("feedback")
        return cls(
            id=str(data.get("id", "")),
            role=role,
            messages=_records(data.get("messages"), Message, owner, "messages"),
            timestamp=str(_require(data, "timestamp", owner)),
            feedback=ConversationFeedback.from_dict(feedback) if feedback else None,
        )


@dataclass(frozen=True)
class LearningMemory:
    """
    Root aggregate: everything remembered about one learner.
    This is the value stored under the ``learning-memory`` key.
    """
    grammar_mistakes: Tuple[GrammarMistake, ...] = ()
    vocabulary_gaps: Tuple[VocabularyGap, ...] = ()
    conversation_history: Tuple[ConversationSession, ...] = ()   # Most recent first
    mastered_concepts: Tuple[str, ...] = ()
    weak_areas: Tuple[WeakArea, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grammarMistakes": [m.to_dict() for m in self.grammar_mistakes],
            "vocabularyGaps": [v.to_dict() for v in self.vocabulary_gaps],
            "conversationHistory": [c.to_dict() for c in self.conversation_history],
            "masteredConcepts": list(self.mastered_concepts),
            "weakAreas": [w.to_dict() for w in self.weak_areas],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LearningMemory":
        owner = "LearningMemory"
        if not isinstance(data, Mapping):
            raise ValidationError(f"{owner}: expected an object, got {type(data).__name__}")
        mastered: List[str] = []
        for concept in _str_tuple(data.get("masteredConcepts"), owner, "masteredConcepts"):
            if concept not in mastered:
                mastered.append(concept)
        return cls(
            grammar_mistakes=_unique(_records(data.get("grammarMistakes"), GrammarMistake, owner, "grammarMistakes"),
                                     lambda m: m.concept),
            vocabulary_gaps=_unique(_records(data.get("vocabularyGaps"), VocabularyGap, owner, "vocabularyGaps"),
                                    lambda v: v.word),
            conversation_history=_records(data.get("conversationHistory"), ConversationSession,
                                          owner, "conversationHistory")[:MAX_CONVERSATIONS],
            mastered_concepts=tuple(mastered),
            weak_areas=_unique(_records(data.get("weakAreas"), WeakArea, owner, "weakAreas"),
                               lambda w: w.category),
        )


def _unique(items: Iterable[T], key) -> Tuple[T, ...]:
    """Keep the first record for each key."""
    seen = set()
    result = []
    for item in items:
        k = key(item)
        if k not in seen:
            seen.add(k)
            result.append(item)
    return tuple(result)


@dataclass(frozen=True)
class OverallProgress:
    """Crude linear progress scores derived from a memory snapshot."""
    grammar_mastery: int               # 0-100
    vocabulary_size: int               # >= 0, uncapped
    conversation_experience: int       # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grammarMastery": self.grammar_mastery,
            "vocabularySize": self.vocabulary_size,
            "conversationExperience": self.conversation_experience,
        }


# ---------------------------------------------------------------------------
# Profile and metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserProfile:
    """Learner preferences, stored under ``user-profile``."""
    id: str
    name: str = "Learner"
    created_at: str = ""
    current_mode: LearningMode = LearningMode.SMART_TUTOR
    immersion_level: int = 5           # 0-10
    confidence_level: int = 50         # 0-100
    preferred_topics: Tuple[str, ...] = ()
    target_language: str = "es"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "currentMode": self.current_mode.value,
            "immersionLevel": self.immersion_level,
            "confidenceLevel": self.confidence_level,
            "preferredTopics": list(self.preferred_topics),
            "targetLanguage": self.target_language,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        owner = "UserProfile"
        mode = data.get("currentMode", LearningMode.SMART_TUTOR.value)
        try:
            mode = LearningMode(mode)
        except ValueError:
            raise ValidationError(f"{owner}: unknown learning mode '{mode}'")
        return cls(
            id=str(_require(data, "id", owner)),
            name=str(data.get("name", "Learner")),
            created_at=str(data.get("createdAt", "")),
            current_mode=mode,
            immersion_level=_int(data.get("immersionLevel", 5), owner, "immersionLevel"),
            confidence_level=_int(data.get("confidenceLevel", 50), owner, "confidenceLevel"),
            preferred_topics=_str_tuple(data.get("preferredTopics"), owner, "preferredTopics"),
            target_language=str(data.get("targetLanguage", "es")),
        )


@dataclass(frozen=True)
class ProgressMetrics:
    """Dashboard numbers, stored under ``progress-metrics``."""
    vocabulary_size: int = 0
    grammar_mastery: int = 0
    conversation_fluency: int = 0
    overall_confidence: int = 50
    streak_days: int = 0
    total_minutes: int = 0
    lessons_completed: int = 0

    _FIELDS = (
        ("vocabulary_size", "vocabularySize"),
        ("grammar_mastery", "grammarMastery"),
        ("conversation_fluency", "conversationFluency"),
        ("overall_confidence", "overallConfidence"),
        ("streak_days", "streakDays"),
        ("total_minutes", "totalMinutes"),
        ("lessons_completed", "lessonsCompleted"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in self._FIELDS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProgressMetrics":
        owner = "ProgressMetrics"
        if not isinstance(data, Mapping):
            raise ValidationError(f"{owner}: expected an object, got {type(data).__name__}")
        return cls(**{
            attr: _int(data[wire], owner, wire)
            for attr, wire in cls._FIELDS if wire in data
        })


@dataclass(frozen=True)
class ModelInfo:
    """A model offered by the chat provider."""
    name: str
    description: str = ""
    tools: bool = False
    vision: bool = False
    audio: bool = False
    reasoning: bool = False

    @property
    def capabilities(self) -> List[str]:
        flags = [("Tools", self.tools), ("Vision", self.vision),
                 ("Audio", self.audio), ("Reasoning", self.reasoning)]
        return [label for label, enabled in flags if enabled]


@dataclass(frozen=True)
class ModeConfig:
    """Behavioural profile of a learning mode."""
    id: LearningMode
    name: str
    description: str
    correction_timing: str             # "immediate", "delayed" or "gentle"
    feedback_style: str                # "detailed", "brief" or "encouraging"
    pacing: str                        # "structured", "flexible" or "relaxed"
    immersion_level: int


@dataclass(frozen=True)
class DailyChallenge:
    """One game-first exercise per UTC day, stored under ``daily-challenge``."""
    id: str
    date: str                          # YYYY-MM-DD (UTC)
    question: str
    answer: str
    type: str = "translate"
    options: Tuple[str, ...] = ()
    completed: bool = False
    correct: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "question": self.question,
            "answer": self.answer,
            "type": self.type,
            "options": list(self.options),
            "completed": self.completed,
        }
        if self.correct is not None:
            data["correct"] = self.correct
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DailyChallenge":
        owner = "DailyChallenge"
        correct = data.get("correct")
        return cls(
            id=str(data.get("id", "")),
            date=str(_require(data, "date", owner)),
            question=str(_require(data, "question", owner)),
            answer=str(_require(data, "answer", owner)),
            type=str(data.get("type", "translate")),
            options=_str_tuple(data.get("options"), owner, "options"),
            completed=bool(data.get("completed", False)),
            correct=None if correct is None else bool(correct),
        )


# ---------------------------------------------------------------------------
# Model output shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Exercise:
    """A single exercise inside a generated lesson."""
    type: str                          # translation, fill-blank, multiple-choice, ...
    prompt: str
    correct_answer: str
    options: Tuple[str, ...] = ()
    difficulty: int = 5
    topic: str = ""
    grammar_focus: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LessonPlan:
    title: str
    description: str
    exercises: Tuple[Exercise, ...]
    grammar_concepts: Tuple[str, ...] = ()
    vocabulary: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExerciseFeedback:
    """Result of checking one answer."""
    is_correct: bool
    feedback: str
    explanation: str = ""
    encouragement: str = ""
    grammar_concepts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContentHighlight:
    phrase: str
    translation: str
    explanation: str = ""
    usefulness: int = 5                # 1-10


@dataclass(frozen=True)
class CulturalNote:
    term: str
    explanation: str
    context: str = ""


@dataclass(frozen=True)
class MediaContent:
    """Simplified version of a song, dialogue or transcript."""
    content_type: str                  # youtube, lyrics, dialogue, text
    original_content: str
    simplified_content: str
    highlights: Tuple[ContentHighlight, ...] = ()
    cultural_notes: Tuple[CulturalNote, ...] = ()
    follow_up_exercises: Tuple[Exercise, ...] = ()


@dataclass(frozen=True)
class VocabularyCard:
    word: str
    translation: str
    example: str = ""
    difficulty: int = 5
