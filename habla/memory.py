"""
Learner memory manager.

Pure functions over ``LearningMemory`` snapshots. Update functions take a
snapshot plus event data and return a new snapshot; query functions return
read-only views. Nothing here performs I/O. Functions that need "now" accept
a ``clock`` callable (defaults to UTC wall time).

Typical use from the session layer:

    memory = record_grammar_mistake(memory, "ser-vs-estar", "fui feliz")
    store.set(MEMORY_KEY, memory.to_dict())
"""

import math
import numbers
from dataclasses import replace
from typing import List, Tuple

from .errors import ValidationError
from .logger import logger
from .models import (
    ConversationSession,
    GrammarMistake,
    LearningMemory,
    OverallProgress,
    VocabularyGap,
    WeakArea,
    MAX_CONVERSATIONS,
    MAX_GAP_CONTEXTS,
    MAX_MISTAKE_EXAMPLES,
    MAX_SKILL_LEVEL,
    MIN_SKILL_LEVEL,
)
from .timestamps import (
    SECONDS_PER_DAY,
    Clock,
    epoch_millis,
    format_timestamp,
    parse_timestamp,
    seconds_since,
    utc_now,
    whole_days_between,
)

REVIEW_AFTER_DAYS = 2
REVIEW_MIN_MISTAKES = 2
STALE_VOCABULARY_DAYS = 30


def create_empty_memory() -> LearningMemory:
    """A fresh memory for a learner with no history."""
    return LearningMemory()


def clamp_skill_level(skill_level) -> int:
    """
    Clamp a skill level into [0, 10].

    NaN and negative infinity become 0, positive infinity becomes 10, and
    fractional values are rounded. Only non-numeric input is rejected.
    """
    if isinstance(skill_level, bool) or not isinstance(skill_level, numbers.Real):
        raise ValidationError(f"skill level must be a number, got {skill_level!r}")
    value = float(skill_level)
    if math.isnan(value):
        return MIN_SKILL_LEVEL
    value = max(MIN_SKILL_LEVEL, min(MAX_SKILL_LEVEL, value))
    return int(round(value))


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

def record_grammar_mistake(
    memory: LearningMemory,
    concept: str,
    example: str,
    clock: Clock = utc_now,
) -> LearningMemory:
    """Count one more mistake on ``concept`` and remember the example."""
    now = clock()
    timestamp = format_timestamp(now)

    for index, mistake in enumerate(memory.grammar_mistakes):
        if mistake.concept == concept:
            updated = replace(
                mistake,
                mistake_count=mistake.mistake_count + 1,
                last_occurrence=timestamp,
                examples=(mistake.examples + (example,))[-MAX_MISTAKE_EXAMPLES:],
            )
            logger.mem(f"Grammar mistake '{concept}' now at {updated.mistake_count}")
            mistakes = memory.grammar_mistakes[:index] + (updated,) + memory.grammar_mistakes[index + 1:]
            return replace(memory, grammar_mistakes=mistakes)

    logger.mem(f"New grammar mistake tracked: '{concept}'")
    new_mistake = GrammarMistake(
        id=f"gm_{epoch_millis(now)}",
        concept=concept,
        mistake_count=1,
        last_occurrence=timestamp,
        examples=(example,),
    )
    return replace(memory, grammar_mistakes=memory.grammar_mistakes + (new_mistake,))


def record_vocabulary_gap(
    memory: LearningMemory,
    word: str,
    translation: str,
    context: str,
    clock: Clock = utc_now,
) -> LearningMemory:
    """Count one more encounter with an unknown ``word``."""
    now = clock()
    timestamp = format_timestamp(now)

    for index, gap in enumerate(memory.vocabulary_gaps):
        if gap.word == word:
            updated = replace(
                gap,
                encounter_count=gap.encounter_count + 1,
                last_encounter=timestamp,
                context=(gap.context + (context,))[-MAX_GAP_CONTEXTS:],
            )
            logger.mem(f"Vocabulary gap '{word}' seen {updated.encounter_count} times")
            gaps = memory.vocabulary_gaps[:index] + (updated,) + memory.vocabulary_gaps[index + 1:]
            return replace(memory, vocabulary_gaps=gaps)

    logger.mem(f"New vocabulary gap tracked: '{word}'")
    new_gap = VocabularyGap(
        id=f"vg_{epoch_millis(now)}",
        word=word,
        translation=translation,
        encounter_count=1,
        last_encounter=timestamp,
        context=(context,),
    )
    return replace(memory, vocabulary_gaps=memory.vocabulary_gaps + (new_gap,))


def record_conversation(memory: LearningMemory, session: ConversationSession) -> LearningMemory:
    """Put ``session`` at the head of the history, keeping the newest 20."""
    history = ((session,) + memory.conversation_history)[:MAX_CONVERSATIONS]
    logger.mem(f"Recorded conversation {session.id} ({len(history)} in history)")
    return replace(memory, conversation_history=history)


def mark_concept_mastered(memory: LearningMemory, concept: str) -> LearningMemory:
    """
    Mark ``concept`` as mastered.

    Drops its grammar mistake entry and forces a weak area with the same
    category to skill level 10. Returns ``memory`` itself if the concept is
    already mastered.
    """
    if concept in memory.mastered_concepts:
        return memory

    logger.mem(f"Concept mastered: '{concept}'")
    return replace(
        memory,
        mastered_concepts=memory.mastered_concepts + (concept,),
        grammar_mistakes=tuple(m for m in memory.grammar_mistakes if m.concept != concept),
        weak_areas=tuple(
            replace(w, skill_level=MAX_SKILL_LEVEL) if w.category == concept else w
            for w in memory.weak_areas
        ),
    )


def update_weak_area(
    memory: LearningMemory,
    category: str,
    skill_level,
    clock: Clock = utc_now,
) -> LearningMemory:
    """Set the skill level of ``category`` (clamped to [0, 10])."""
    now = clock()
    level = clamp_skill_level(skill_level)
    timestamp = format_timestamp(now)

    for index, area in enumerate(memory.weak_areas):
        if area.category == category:
            updated = replace(area, skill_level=level, last_practiced=timestamp)
            logger.mem(f"Weak area '{category}' -> {level}/10")
            areas = memory.weak_areas[:index] + (updated,) + memory.weak_areas[index + 1:]
            return replace(memory, weak_areas=areas)

    logger.mem(f"New weak area tracked: '{category}' at {level}/10")
    new_area = WeakArea(
        id=f"wa_{epoch_millis(now)}",
        category=category,
        skill_level=level,
        last_practiced=timestamp,
    )
    return replace(memory, weak_areas=memory.weak_areas + (new_area,))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def should_review_concept(memory: LearningMemory, concept: str, clock: Clock = utc_now) -> bool:
    """True when a repeated mistake on ``concept`` is at least two whole days old."""
    for mistake in memory.grammar_mistakes:
        if mistake.concept == concept:
            days = whole_days_between(mistake.last_occurrence, clock())
            return days >= REVIEW_AFTER_DAYS and mistake.mistake_count >= REVIEW_MIN_MISTAKES
    return False


def get_weakest_areas(memory: LearningMemory, limit: int = 3) -> List[WeakArea]:
    needing_review = [w for w in memory.weak_areas if w.needs_review]
    return sorted(needing_review, key=lambda w: w.skill_level)[:limit]


def get_most_common_mistakes(memory: LearningMemory, limit: int = 5) -> List[GrammarMistake]:
    return sorted(memory.grammar_mistakes, key=lambda m: m.mistake_count, reverse=True)[:limit]


def get_recent_mistake_concepts(memory: LearningMemory, limit: int = 3) -> List[str]:
    """Distinct mistake concepts, most recently occurred first."""
    ordered = sorted(
        memory.grammar_mistakes,
        key=lambda m: parse_timestamp(m.last_occurrence),
        reverse=True,
    )
    concepts: List[str] = []
    for mistake in ordered:
        if mistake.concept not in concepts:
            concepts.append(mistake.concept)
    return concepts[:limit]


def get_vocabulary_to_review(
    memory: LearningMemory,
    limit: int = 10,
    clock: Clock = utc_now,
) -> List[VocabularyGap]:
    """Words not encountered for more than 30 days, least-seen first."""
    now = clock()
    cutoff_seconds = STALE_VOCABULARY_DAYS * SECONDS_PER_DAY
    stale = [
        gap for gap in memory.vocabulary_gaps
        if seconds_since(gap.last_encounter, now) > cutoff_seconds
    ]
    return sorted(stale, key=lambda gap: gap.encounter_count)[:limit]


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def calculate_overall_progress(memory: LearningMemory) -> OverallProgress:
    """
    Linear progress scores:

    - grammar mastery: 10 per mastered concept minus every recorded mistake, in [0, 100]
    - vocabulary size: one per gap plus 5 per mastered concept, at least 0
    - conversation experience: 10 per recorded conversation, in [0, 100]
    """
    mastered = len(memory.mastered_concepts)
    total_mistakes = sum(m.mistake_count for m in memory.grammar_mistakes)

    return OverallProgress(
        grammar_mastery=_clamp(mastered * 10 - total_mistakes, 0, 100),
        vocabulary_size=max(len(memory.vocabulary_gaps) + mastered * 5, 0),
        conversation_experience=_clamp(len(memory.conversation_history) * 10, 0, 100),
    )


def summarize(memory: LearningMemory) -> Tuple[int, int, int, int, int]:
    """Entry counts per collection, for log lines."""
    return (
        len(memory.grammar_mistakes),
        len(memory.vocabulary_gaps),
        len(memory.conversation_history),
        len(memory.mastered_concepts),
        len(memory.weak_areas),
    )
