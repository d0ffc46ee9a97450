"""
Learner session orchestration.

Wires learner actions to memory updates and to the chat provider:

- Memory is always re-read from the store right before an update and written
  back right after, under a lock, so concurrent updates never work on a stale
  snapshot.
- Provider calls happen before any memory update. If a call fails (or returns
  something unparseable) the exception propagates and the stored memory and
  metrics are left exactly as they were.
"""

import math
import threading
from dataclasses import replace
from typing import Callable, List, Optional

from .api import ChatProvider, TutorService
from .errors import HablaError, ValidationError
from .logger import logger
from .memory import (
    calculate_overall_progress,
    clamp_skill_level,
    create_empty_memory,
    mark_concept_mastered,
    record_conversation,
    record_grammar_mistake,
    record_vocabulary_gap,
    summarize,
    update_weak_area,
)
from .models import (
    ConversationFeedback,
    ConversationRole,
    ConversationSession,
    DailyChallenge,
    Exercise,
    ExerciseFeedback,
    LearningMemory,
    LearningMode,
    LessonPlan,
    Message,
    ProgressMetrics,
    UserProfile,
    VocabularyCard,
)
from .modes import resolve_language, resolve_mode
from .store import (
    CHALLENGE_KEY,
    LAST_CHALLENGE_KEY,
    MEMORY_KEY,
    METRICS_KEY,
    PROFILE_KEY,
    STREAK_KEY,
    KeyValueStore,
)
from .timestamps import Clock, days_between_dates, epoch_millis, format_timestamp, utc_date, utc_now

MINUTES_PER_MESSAGE = 1.5

# Minutes credited per completed exercise. Modes without an entry
# (media, conversation) do not count lessons.
LESSON_MINUTES_PER_EXERCISE = {
    LearningMode.SMART_TUTOR: 2,
    LearningMode.GAME_FIRST: 1,
    LearningMode.SLOW_HUMAN: 3,
}

CHALLENGE_IMMERSION_LEVEL = 5
CHALLENGE_TOPIC = "daily challenge"


class NoActiveConversation(HablaError):
    """``send_message``/``end_conversation`` called without a started conversation."""


class LearnerSession:
    """One learner's state: profile, memory and progress metrics in a key-value store."""

    def __init__(self, store: KeyValueStore, provider: Optional[ChatProvider] = None, clock: Clock = utc_now):
        self.store = store
        self.provider = provider
        self.clock = clock
        self._lock = threading.RLock()

        self._role: Optional[ConversationRole] = None
        self._custom_description = ""
        self._messages: List[Message] = []

    # ------------------------------------------------------------------
    # Persisted state
    # ------------------------------------------------------------------

    def load_memory(self) -> LearningMemory:
        data = self.store.get(MEMORY_KEY)
        if data is None:
            return create_empty_memory()
        return LearningMemory.from_dict(data)

    def load_profile(self) -> UserProfile:
        data = self.store.get(PROFILE_KEY)
        if data is None:
            now = self.clock()
            profile = UserProfile(id=f"user_{epoch_millis(now)}", created_at=format_timestamp(now))
            self.store.set(PROFILE_KEY, profile.to_dict())
            logger.info(f"Created learner profile {profile.id}")
            return profile
        return UserProfile.from_dict(data)

    def load_metrics(self) -> ProgressMetrics:
        data = self.store.get(METRICS_KEY)
        return ProgressMetrics() if data is None else ProgressMetrics.from_dict(data)

    def update_memory(self, update: Callable[..., LearningMemory], *args, **kwargs) -> LearningMemory:
        """
        Apply a memory update function to the latest stored snapshot and persist
        the result. Progress metrics are refreshed from the new snapshot.
        """
        with self._lock:
            current = self.load_memory()
            updated = update(current, *args, **kwargs)
            if updated is current:
                return current
            self.store.set(MEMORY_KEY, updated.to_dict())
            self._sync_metrics(updated)
            logger.mem("Memory saved: %d mistakes, %d gaps, %d conversations, %d mastered, %d weak areas"
                       % summarize(updated))
            return updated

    def update_profile(self, **changes) -> UserProfile:
        with self._lock:
            profile = replace(self.load_profile(), **changes)
            self.store.set(PROFILE_KEY, profile.to_dict())
            return profile

    def _sync_metrics(self, memory: LearningMemory) -> None:
        progress = calculate_overall_progress(memory)
        metrics = replace(
            self.load_metrics(),
            grammar_mastery=progress.grammar_mastery,
            vocabulary_size=progress.vocabulary_size,
            conversation_fluency=progress.conversation_experience,
        )
        self.store.set(METRICS_KEY, metrics.to_dict())

    def _add_activity(self, minutes: int) -> ProgressMetrics:
        with self._lock:
            current = self.load_metrics()
            metrics = replace(
                current,
                lessons_completed=current.lessons_completed + 1,
                total_minutes=current.total_minutes + minutes,
            )
            self.store.set(METRICS_KEY, metrics.to_dict())
            return metrics

    def _tutor(self) -> TutorService:
        if self.provider is None:
            raise HablaError("No chat provider configured for this session")
        return TutorService(self.provider, self.load_profile().target_language)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def set_mode(self, mode) -> UserProfile:
        resolved = resolve_mode(mode)
        logger.ui(f"Mode set to {resolved.value}")
        return self.update_profile(current_mode=resolved)

    def set_immersion_level(self, level) -> UserProfile:
        return self.update_profile(immersion_level=clamp_skill_level(level))

    def set_target_language(self, language: str) -> UserProfile:
        resolve_language(language)
        return self.update_profile(target_language=language)

    # ------------------------------------------------------------------
    # Direct memory events
    # ------------------------------------------------------------------

    def record_mistake(self, concept: str, example: str) -> LearningMemory:
        return self.update_memory(record_grammar_mistake, concept, example, clock=self.clock)

    def record_gap(self, word: str, translation: str, context: str) -> LearningMemory:
        return self.update_memory(record_vocabulary_gap, word, translation, context, clock=self.clock)

    def update_skill(self, category: str, skill_level) -> LearningMemory:
        return self.update_memory(update_weak_area, category, skill_level, clock=self.clock)

    def master_concept(self, concept: str) -> LearningMemory:
        return self.update_memory(mark_concept_mastered, concept)

    # ------------------------------------------------------------------
    # Roleplay conversation
    # ------------------------------------------------------------------

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def _message(self, role: str, content: str) -> Message:
        now = self.clock()
        language = self.load_profile().target_language if role == "ai" else "mixed"
        return Message(
            id=f"msg_{epoch_millis(now)}_{len(self._messages)}",
            role=role,
            content=content,
            timestamp=format_timestamp(now),
            language=language,
        )

    def start_conversation(self, role: ConversationRole, custom_description: str = "") -> Message:
        """Begin a roleplay; returns the persona's opening line."""
        self._role = role
        self._custom_description = custom_description
        self._messages = []

        profile = self.load_profile()
        greeting = self._tutor().respond_to_conversation(
            role, [], self.load_memory(), profile.immersion_level, custom_description
        )
        message = self._message("ai", greeting)
        self._messages.append(message)
        logger.ui(f"Conversation started with {role.value}")
        return message

    def send_message(self, text: str) -> Message:
        """Send a learner turn; returns the persona's reply."""
        if self._role is None:
            raise NoActiveConversation("No conversation in progress")

        user_message = self._message("user", text)
        history = self._messages + [user_message]
        profile = self.load_profile()
        reply = self._tutor().respond_to_conversation(
            self._role, history, self.load_memory(), profile.immersion_level, self._custom_description
        )
        self._messages = history
        ai_message = self._message("ai", reply)
        self._messages.append(ai_message)
        return ai_message

    def end_conversation(self) -> ConversationFeedback:
        """
        Get feedback for the current conversation and record it.

        Feedback is requested first; memory and metrics only change once it
        has been parsed successfully.
        """
        if self._role is None:
            raise NoActiveConversation("No conversation in progress")

        feedback = self._tutor().generate_conversation_feedback(self._messages)

        now = self.clock()
        session = ConversationSession(
            id=f"conv_{epoch_millis(now)}",
            role=self._role,
            messages=tuple(self._messages),
            timestamp=format_timestamp(now),
            feedback=feedback,
        )
        with self._lock:
            self.update_memory(record_conversation, session)
            self._add_activity(math.ceil(len(self._messages) * MINUTES_PER_MESSAGE))

        self._role = None
        self._custom_description = ""
        self._messages = []
        return feedback

    # ------------------------------------------------------------------
    # Lessons and drills
    # ------------------------------------------------------------------

    def next_lesson(self, topic: str = "") -> LessonPlan:
        profile = self.load_profile()
        return self._tutor().generate_lesson(
            profile.current_mode, self.load_memory(), profile.immersion_level, topic
        )

    def submit_answer(self, exercise: Exercise, answer: str) -> ExerciseFeedback:
        """
        Check an answer. Wrong answers are recorded as grammar mistakes for
        every concept the checker (or the exercise) names.
        """
        profile = self.load_profile()
        feedback = self._tutor().check_exercise_answer(
            exercise, answer, profile.current_mode, profile.immersion_level
        )
        if not feedback.is_correct:
            concepts = feedback.grammar_concepts or exercise.grammar_focus
            if concepts:
                self.update_memory(self._record_mistakes, concepts, answer)
        return feedback

    def _record_mistakes(self, memory: LearningMemory, concepts, example: str) -> LearningMemory:
        for concept in concepts:
            memory = record_grammar_mistake(memory, concept, example, clock=self.clock)
        return memory

    def check_vocabulary(self, card: VocabularyCard, answer: str) -> bool:
        """Compare a typed translation; misses become vocabulary gaps."""
        correct = answer.strip().lower() == card.translation.strip().lower()
        if not correct:
            self.record_gap(card.word, card.translation, card.example or card.word)
        return correct

    def vocabulary_cards(self, count: int = 10) -> List[VocabularyCard]:
        profile = self.load_profile()
        return self._tutor().generate_vocabulary(self.load_memory(), profile.immersion_level, count)

    def complete_lesson(self, exercises_completed: int) -> ProgressMetrics:
        """Credit a finished lesson at the current mode's minutes-per-exercise rate."""
        mode = self.load_profile().current_mode
        rate = LESSON_MINUTES_PER_EXERCISE.get(mode)
        if rate is None:
            logger.debug(f"No lesson progress tracked in {mode.value} mode")
            return self.load_metrics()
        return self._add_activity(exercises_completed * rate)

    def simplify_media(self, content: str, content_type: str = "text"):
        profile = self.load_profile()
        return self._tutor().simplify_media_content(content, content_type, profile.immersion_level)

    # ------------------------------------------------------------------
    # Daily challenge
    # ------------------------------------------------------------------

    def challenge_streak(self) -> int:
        """Current streak, reset to 0 when more than one day has passed since the last win."""
        with self._lock:
            streak = int(self.store.get(STREAK_KEY) or 0)
            last = self.store.get(LAST_CHALLENGE_KEY)
            if streak and last and days_between_dates(last, utc_date(self.clock())) > 1:
                logger.info(f"Challenge streak of {streak} lost (last solved {last})")
                streak = 0
                self.store.set(STREAK_KEY, streak)
                self._set_streak_days(streak)
            return streak

    def daily_challenge(self) -> DailyChallenge:
        """
        Today's challenge: a single game-first exercise per UTC date.

        A stored challenge from an earlier date is replaced by a freshly
        generated one. The tutor call happens before anything is written.
        """
        self.challenge_streak()
        today = utc_date(self.clock())

        data = self.store.get(CHALLENGE_KEY)
        if data is not None:
            challenge = DailyChallenge.from_dict(data)
            if challenge.date == today:
                return challenge

        lesson = self._tutor().generate_lesson(
            LearningMode.GAME_FIRST, self.load_memory(), CHALLENGE_IMMERSION_LEVEL, CHALLENGE_TOPIC
        )
        exercise = lesson.exercises[0]
        challenge = DailyChallenge(
            id=f"challenge_{epoch_millis(self.clock())}",
            date=today,
            question=exercise.prompt,
            answer=exercise.correct_answer,
            type=exercise.type,
            options=exercise.options,
        )
        self.store.set(CHALLENGE_KEY, challenge.to_dict())
        logger.ui(f"New daily challenge for {today}")
        return challenge

    def submit_challenge(self, answer: str) -> DailyChallenge:
        """
        Answer today's challenge. A correct answer extends the streak by one;
        a challenge that was already answered is returned unchanged.
        """
        if not answer or not answer.strip():
            raise ValidationError("Challenge answer must not be empty")

        with self._lock:
            today = utc_date(self.clock())
            data = self.store.get(CHALLENGE_KEY)
            challenge = None if data is None else DailyChallenge.from_dict(data)
            if challenge is None or challenge.date != today:
                raise HablaError(f"No daily challenge loaded for {today}")
            if challenge.completed:
                return challenge

            correct = answer.strip().lower() == challenge.answer.strip().lower()
            challenge = replace(challenge, completed=True, correct=correct)
            self.store.set(CHALLENGE_KEY, challenge.to_dict())

            if correct:
                streak = self.challenge_streak() + 1
                self.store.set(STREAK_KEY, streak)
                self.store.set(LAST_CHALLENGE_KEY, today)
                self._set_streak_days(streak)
                logger.success(f"Daily challenge solved, streak is {streak}")
            return challenge

    def _set_streak_days(self, streak: int) -> None:
        metrics = replace(self.load_metrics(), streak_days=streak)
        self.store.set(METRICS_KEY, metrics.to_dict())
