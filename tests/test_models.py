"""
Persisted layout of the learner memory: camelCase field names, derived
``needsReview`` and tolerant-but-strict reading of stored snapshots.
"""
from __future__ import annotations

import pytest

from habla.errors import ValidationError
from habla.models import (
    ConversationRole,
    DailyChallenge,
    LearningMemory,
    LearningMode,
    ProgressMetrics,
    UserProfile,
)


def _stored_memory() -> dict:
    return {
        "grammarMistakes": [
            {"id": "gm_1", "concept": "subjunctive", "mistakeCount": 3,
             "lastOccurrence": "2024-06-10T12:00:00Z", "examples": ["quiero que vienes"]},
        ],
        "vocabularyGaps": [
            {"id": "vg_1", "word": "madrugada", "translation": "early morning", "encounterCount": 2,
             "lastEncounter": "2024-06-01T08:00:00Z", "context": ["a la madrugada"]},
        ],
        "conversationHistory": [
            {"id": "conv_1", "role": "barista", "timestamp": "2024-06-14T09:00:00Z",
             "messages": [{"id": "m1", "role": "user", "content": "Un café, por favor",
                           "timestamp": "2024-06-14T09:00:00Z", "language": "es"}],
             "feedback": {"strengths": ["polite"], "improvements": [], "overallScore": 80,
                          "nativePhrasings": [{"userSaid": "Un café", "nativeSays": "Me pones un café",
                                               "explanation": "more natural in Spain"}]}},
        ],
        "masteredConcepts": ["articles"],
        "weakAreas": [
            {"id": "wa_1", "category": "verbs", "skillLevel": 9, "needsReview": True,
             "lastPracticed": "2024-06-14T09:00:00Z"},
        ],
    }


def test_memory_reads_and_writes_camel_case_layout() -> None:
    stored = _stored_memory()

    memory = LearningMemory.from_dict(stored)
    written = memory.to_dict()

    assert set(written) == {"grammarMistakes", "vocabularyGaps", "conversationHistory",
                            "masteredConcepts", "weakAreas"}
    assert written["grammarMistakes"] == stored["grammarMistakes"]
    assert written["vocabularyGaps"] == stored["vocabularyGaps"]
    assert written["conversationHistory"][0]["feedback"]["nativePhrasings"][0]["nativeSays"] == "Me pones un café"
    assert memory.conversation_history[0].role is ConversationRole.BARISTA


def test_needs_review_is_derived_not_trusted() -> None:
    memory = LearningMemory.from_dict(_stored_memory())

    area = memory.weak_areas[0]
    assert area.needs_review is False
    assert memory.to_dict()["weakAreas"][0]["needsReview"] is False


def test_stored_skill_level_is_clamped() -> None:
    stored = _stored_memory()
    stored["weakAreas"][0]["skillLevel"] = 42

    assert LearningMemory.from_dict(stored).weak_areas[0].skill_level == 10


def test_duplicate_keys_keep_first_entry() -> None:
    stored = _stored_memory()
    stored["grammarMistakes"].append(dict(stored["grammarMistakes"][0], mistakeCount=99))
    stored["masteredConcepts"] = ["articles", "articles", "gender"]

    memory = LearningMemory.from_dict(stored)

    assert len(memory.grammar_mistakes) == 1
    assert memory.grammar_mistakes[0].mistake_count == 3
    assert memory.mastered_concepts == ("articles", "gender")


def test_history_longer_than_cap_is_truncated() -> None:
    stored = _stored_memory()
    entry = stored["conversationHistory"][0]
    stored["conversationHistory"] = [dict(entry, id=f"conv_{i}") for i in range(25)]

    memory = LearningMemory.from_dict(stored)

    assert len(memory.conversation_history) == 20
    assert memory.conversation_history[0].id == "conv_0"


def test_missing_collections_default_to_empty() -> None:
    assert LearningMemory.from_dict({}) == LearningMemory()


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d["grammarMistakes"][0].pop("concept"),
        lambda d: d["grammarMistakes"][0].update(mistakeCount="three"),
        lambda d: d.update(weakAreas="verbs"),
        lambda d: d["conversationHistory"][0].update(role="pirate"),
    ],
)
def test_unreadable_snapshots_raise_validation_error(mutate) -> None:
    stored = _stored_memory()
    mutate(stored)

    with pytest.raises(ValidationError):
        LearningMemory.from_dict(stored)


def test_memory_must_be_an_object() -> None:
    with pytest.raises(ValidationError):
        LearningMemory.from_dict(["not", "a", "memory"])  # type: ignore[arg-type]


def test_profile_defaults() -> None:
    profile = UserProfile.from_dict({"id": "user_1"})

    assert profile.current_mode is LearningMode.SMART_TUTOR
    assert profile.immersion_level == 5
    assert profile.target_language == "es"
    assert profile.to_dict()["currentMode"] == "smart-tutor"


def test_profile_with_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValidationError):
        UserProfile.from_dict({"id": "user_1", "currentMode": "speed-run"})


@pytest.mark.parametrize("payload", [
    {"grammarMistakes": [{"concept": "ser-vs-estar", "mistakeCount": 2, "lastOccurrence": "yesterday"}]},
    {"grammarMistakes": [{"concept": "ser-vs-estar", "mistakeCount": 2, "lastOccurrence": 1718452800}]},
    {"vocabularyGaps": [{"word": "madrugada", "encounterCount": 1, "lastEncounter": "last week"}]},
    {"weakAreas": [{"category": "verbs", "skillLevel": 4, "lastPracticed": "2024-13-45"}]},
])
def test_unparseable_timestamps_are_rejected(payload) -> None:
    with pytest.raises(ValidationError):
        LearningMemory.from_dict(payload)


def test_weak_area_without_practice_date_is_accepted() -> None:
    memory = LearningMemory.from_dict({"weakAreas": [{"category": "verbs", "skillLevel": 4}]})

    assert memory.weak_areas[0].last_practiced == ""


def test_daily_challenge_layout() -> None:
    challenge = DailyChallenge.from_dict({
        "id": "challenge_1", "date": "2024-06-15", "question": "Translate: cat",
        "answer": "Gato", "type": "translation", "options": [], "completed": True, "correct": False,
    })

    assert challenge.completed is True
    assert challenge.correct is False
    assert DailyChallenge.from_dict(challenge.to_dict()) == challenge
    assert "correct" not in DailyChallenge(id="c", date="2024-06-15", question="q", answer="a").to_dict()
    with pytest.raises(ValidationError):
        DailyChallenge.from_dict({"date": "2024-06-15", "question": "q"})


def test_metrics_partial_payload_keeps_defaults() -> None:
    metrics = ProgressMetrics.from_dict({"lessonsCompleted": 4, "totalMinutes": 30})

    assert metrics.lessons_completed == 4
    assert metrics.total_minutes == 30
    assert metrics.overall_confidence == 50
    assert metrics.to_dict()["lessonsCompleted"] == 4
