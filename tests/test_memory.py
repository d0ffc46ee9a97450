"""
Learner memory manager: upserts, caps, mastery, review queries and progress.
"""
from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import timedelta

import pytest

from conftest import NOW
from habla.errors import ValidationError
from habla.memory import (
    calculate_overall_progress,
    clamp_skill_level,
    get_most_common_mistakes,
    get_recent_mistake_concepts,
    get_vocabulary_to_review,
    get_weakest_areas,
    mark_concept_mastered,
    record_conversation,
    record_grammar_mistake,
    record_vocabulary_gap,
    should_review_concept,
    update_weak_area,
)
from habla.models import (
    ConversationRole,
    ConversationSession,
    GrammarMistake,
    LearningMemory,
    VocabularyGap,
    WeakArea,
)
from habla.timestamps import format_timestamp


def _ago(**kwargs) -> str:
    return format_timestamp(NOW - timedelta(**kwargs))


def _session(n: int) -> ConversationSession:
    return ConversationSession(id=f"conv_{n}", role=ConversationRole.FRIEND, messages=(), timestamp=_ago(minutes=n))


# ---------------------------------------------------------------------------
# Grammar mistakes
# ---------------------------------------------------------------------------

def test_first_mistake_creates_single_entry(memory, clock) -> None:
    result = record_grammar_mistake(memory, "ser-vs-estar", "fui feliz", clock=clock)

    assert len(result.grammar_mistakes) == 1
    entry = result.grammar_mistakes[0]
    assert entry.concept == "ser-vs-estar"
    assert entry.mistake_count == 1
    assert entry.examples == ("fui feliz",)
    assert entry.last_occurrence == format_timestamp(NOW)
    assert entry.id.startswith("gm_")


def test_repeated_mistakes_keep_last_five_examples(memory, clock) -> None:
    for i in range(8):
        clock.advance(minutes=1)
        memory = record_grammar_mistake(memory, "subjunctive", f"ex{i}", clock=clock)

    assert len(memory.grammar_mistakes) == 1
    entry = memory.grammar_mistakes[0]
    assert entry.mistake_count == 8
    assert entry.examples == ("ex3", "ex4", "ex5", "ex6", "ex7")
    assert entry.last_occurrence == format_timestamp(clock.now)


def test_record_mistake_does_not_mutate_input(memory, clock) -> None:
    first = record_grammar_mistake(memory, "gender", "el mesa", clock=clock)
    second = record_grammar_mistake(first, "gender", "la problema", clock=clock)

    assert memory.grammar_mistakes == ()
    assert first.grammar_mistakes[0].mistake_count == 1
    assert second.grammar_mistakes[0].mistake_count == 2


def test_other_concepts_keep_their_position(memory, clock) -> None:
    memory = record_grammar_mistake(memory, "a", "1", clock=clock)
    memory = record_grammar_mistake(memory, "b", "2", clock=clock)
    memory = record_grammar_mistake(memory, "a", "3", clock=clock)

    assert [m.concept for m in memory.grammar_mistakes] == ["a", "b"]


# ---------------------------------------------------------------------------
# Vocabulary gaps
# ---------------------------------------------------------------------------

def test_vocabulary_gap_upsert_caps_context(memory, clock) -> None:
    for i in range(5):
        memory = record_vocabulary_gap(memory, "madrugada", "early morning", f"ctx{i}", clock=clock)

    assert len(memory.vocabulary_gaps) == 1
    gap = memory.vocabulary_gaps[0]
    assert gap.encounter_count == 5
    assert gap.context == ("ctx2", "ctx3", "ctx4")
    assert gap.translation == "early morning"
    assert gap.id.startswith("vg_")


def test_vocabulary_to_review_is_stale_and_least_seen_first(clock) -> None:
    memory = LearningMemory(vocabulary_gaps=(
        VocabularyGap("1", "old-often", "x", 5, _ago(days=40)),
        VocabularyGap("2", "fresh", "x", 1, _ago(days=2)),
        VocabularyGap("3", "old-rare", "x", 1, _ago(days=31)),
        VocabularyGap("4", "exactly-30", "x", 1, _ago(days=30)),
    ))

    result = get_vocabulary_to_review(memory, clock=clock)

    assert [g.word for g in result] == ["old-rare", "old-often"]
    assert get_vocabulary_to_review(memory, limit=1, clock=clock)[0].word == "old-rare"


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------

def test_conversation_history_is_capped_at_twenty(memory) -> None:
    for n in range(1, 26):
        memory = record_conversation(memory, _session(n))

    assert len(memory.conversation_history) == 20
    assert memory.conversation_history[0].id == "conv_25"
    assert memory.conversation_history[-1].id == "conv_6"


# ---------------------------------------------------------------------------
# Mastery and weak areas
# ---------------------------------------------------------------------------

def test_mark_concept_mastered_clears_mistake_and_lifts_weak_area(memory, clock) -> None:
    memory = record_grammar_mistake(memory, "preterite", "yo comí ayer", clock=clock)
    memory = update_weak_area(memory, "preterite", 2, clock=clock)

    result = mark_concept_mastered(memory, "preterite")

    assert result.mastered_concepts == ("preterite",)
    assert result.grammar_mistakes == ()
    assert result.weak_areas[0].skill_level == 10
    assert result.weak_areas[0].needs_review is False


def test_mark_concept_mastered_is_idempotent(memory) -> None:
    once = mark_concept_mastered(memory, "articles")
    twice = mark_concept_mastered(once, "articles")

    assert twice is once
    assert twice.mastered_concepts == ("articles",)


def test_update_weak_area_clamps_high_values(memory, clock) -> None:
    result = update_weak_area(memory, "listening", 15, clock=clock)

    area = result.weak_areas[0]
    assert area.skill_level == 10
    assert area.needs_review is False
    assert area.last_practiced == format_timestamp(NOW)


def test_update_weak_area_updates_existing_entry(memory, clock) -> None:
    memory = update_weak_area(memory, "verbs", 8, clock=clock)
    clock.advance(hours=1)
    memory = update_weak_area(memory, "verbs", 4, clock=clock)

    assert len(memory.weak_areas) == 1
    assert memory.weak_areas[0].skill_level == 4
    assert memory.weak_areas[0].needs_review is True
    assert memory.weak_areas[0].last_practiced == format_timestamp(clock.now)


@pytest.mark.parametrize(
    "raw, expected",
    [(-3, 0), (7.6, 8), (float("nan"), 0), (float("inf"), 10), (float("-inf"), 0), (6, 6)],
)
def test_clamp_skill_level(raw, expected) -> None:
    assert clamp_skill_level(raw) == expected


def test_clamp_skill_level_rejects_non_numbers() -> None:
    with pytest.raises(ValidationError):
        clamp_skill_level("high")
    with pytest.raises(ValidationError):
        clamp_skill_level(True)


def test_weakest_areas_only_lists_areas_needing_review() -> None:
    memory = LearningMemory(weak_areas=(
        WeakArea("1", "verbs", 9, _ago(days=1)),
        WeakArea("2", "nouns", 3, _ago(days=1)),
    ))

    assert [w.category for w in get_weakest_areas(memory, 3)] == ["nouns"]


def test_weakest_areas_sort_is_stable() -> None:
    memory = LearningMemory(weak_areas=(
        WeakArea("1", "b", 4, ""),
        WeakArea("2", "a", 2, ""),
        WeakArea("3", "c", 4, ""),
        WeakArea("4", "d", 6, ""),
    ))

    assert [w.category for w in get_weakest_areas(memory)] == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# Review and ranking queries
# ---------------------------------------------------------------------------

def test_should_review_after_two_whole_days(clock) -> None:
    old = LearningMemory(grammar_mistakes=(GrammarMistake("1", "subjunctive", 3, _ago(days=5)),))
    recent = LearningMemory(grammar_mistakes=(GrammarMistake("1", "subjunctive", 3, _ago(days=1)),))

    assert should_review_concept(old, "subjunctive", clock=clock) is True
    assert should_review_concept(recent, "subjunctive", clock=clock) is False
    assert should_review_concept(old, "unknown", clock=clock) is False


def test_should_review_uses_floor_of_days(clock) -> None:
    almost = LearningMemory(grammar_mistakes=(GrammarMistake("1", "x", 2, _ago(days=1, hours=23, minutes=59)),))
    exactly = LearningMemory(grammar_mistakes=(GrammarMistake("1", "x", 2, _ago(days=2)),))

    assert should_review_concept(almost, "x", clock=clock) is False
    assert should_review_concept(exactly, "x", clock=clock) is True


def test_should_review_needs_repeated_mistake(clock) -> None:
    memory = LearningMemory(grammar_mistakes=(GrammarMistake("1", "x", 1, _ago(days=10)),))

    assert should_review_concept(memory, "x", clock=clock) is False


def test_most_common_mistakes_stable_descending() -> None:
    memory = LearningMemory(grammar_mistakes=(
        GrammarMistake("1", "a", 2, ""),
        GrammarMistake("2", "b", 5, ""),
        GrammarMistake("3", "c", 2, ""),
        GrammarMistake("4", "d", 1, ""),
    ))

    assert [m.concept for m in get_most_common_mistakes(memory)] == ["b", "a", "c", "d"]
    assert [m.concept for m in get_most_common_mistakes(memory, limit=2)] == ["b", "a"]


def test_recent_mistake_concepts_orders_by_last_occurrence() -> None:
    memory = LearningMemory(grammar_mistakes=(
        GrammarMistake("1", "old", 9, _ago(days=9)),
        GrammarMistake("2", "newest", 1, _ago(minutes=1)),
        GrammarMistake("3", "middle", 1, _ago(days=1)),
        GrammarMistake("4", "older", 1, _ago(days=3)),
    ))

    assert get_recent_mistake_concepts(memory) == ["newest", "middle", "older"]


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def test_progress_for_mastered_concept_without_mistakes() -> None:
    memory = LearningMemory(mastered_concepts=("preterite",))

    progress = calculate_overall_progress(memory)

    assert progress.grammar_mastery == 10
    assert progress.vocabulary_size == 5
    assert progress.conversation_experience == 0


def test_progress_never_negative_and_capped(memory) -> None:
    heavy = LearningMemory(grammar_mistakes=(GrammarMistake("1", "x", 50, ""),))
    assert calculate_overall_progress(heavy).grammar_mastery == 0

    for n in range(15):
        memory = record_conversation(memory, _session(n))
    assert calculate_overall_progress(memory).conversation_experience == 100


def test_progress_is_pure(clock) -> None:
    memory = record_grammar_mistake(LearningMemory(mastered_concepts=("a", "b", "c")), "x", "y", clock=clock)
    memory = record_vocabulary_gap(memory, "w", "t", "c", clock=clock)

    first = calculate_overall_progress(memory)
    second = calculate_overall_progress(memory)

    assert first == second
    assert first.grammar_mastery == 29
    assert first.vocabulary_size == 16


def test_clock_defaults_to_wall_time(memory) -> None:
    result = record_grammar_mistake(memory, "x", "y")
    assert result.grammar_mistakes[0].last_occurrence.endswith("+00:00")


def test_memory_records_are_frozen(memory, clock) -> None:
    result = record_grammar_mistake(memory, "x", "y", clock=clock)
    with pytest.raises(FrozenInstanceError):
        result.grammar_mistakes[0].mistake_count = 99  # type: ignore[misc]
