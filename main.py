"""
Habla - console front-end

Flow:
1. Menu: pick a learning mode (or roleplay conversation).
2. Lesson modes: the tutor generates a lesson, the learner answers each
   exercise, wrong answers are remembered as grammar mistakes.
3. Conversation: pick a persona, chat in the target language, type /end
   to get feedback; the session is stored in the learner's memory.
4. Vocabulary: type translations for generated cards; misses are remembered.
5. Daily challenge: one exercise per day keeps the streak going.
6. Progress: show the dashboard numbers derived from memory.

Setup (from repo root):

    python -m venv .venv
    source .venv/bin/activate   # or .venv\\Scripts\\activate on Windows
    pip install -e .

Ensure .env contains:
    HABLA_API_KEY=...

Then run:
    python main.py
"""

from typing import Optional

from habla.api import ChatProvider, describe_models, get_provider
from habla.config import load_settings
from habla.errors import ConfigurationError, HablaError
from habla.logger import logger
from habla.memory import get_most_common_mistakes, get_weakest_areas
from habla.models import ConversationRole, LearningMode
from habla.modes import get_mode_config
from habla.session import LearnerSession
from habla.store import get_store, initialize_store

MENU = """
  1) Smart Tutor        4) Media Learning
  2) Game-First         5) Slow & Human
  3) Conversation       6) Progress
  v) Vocabulary         d) Daily challenge
  m) List models        q) Quit
"""

MODE_KEYS = {
    "1": LearningMode.SMART_TUTOR,
    "2": LearningMode.GAME_FIRST,
    "3": LearningMode.CONVERSATION,
    "4": LearningMode.MEDIA_BASED,
    "5": LearningMode.SLOW_HUMAN,
}


def _ask(prompt: str) -> Optional[str]:
    try:
        return input(prompt).strip()
    except EOFError:
        return None


def run_lesson(session: LearnerSession) -> None:
    topic = _ask("Topic (Enter for a personalized lesson): ") or ""
    lesson = session.next_lesson(topic)
    print(f"\n📘 {lesson.title}\n{lesson.description}\n")

    completed = 0
    for index, exercise in enumerate(lesson.exercises, 1):
        print(f"[{index}/{len(lesson.exercises)}] {exercise.prompt}")
        for n, option in enumerate(exercise.options, 1):
            print(f"   {n}. {option}")
        answer = _ask("> ")
        if answer is None:
            break
        feedback = session.submit_answer(exercise, answer)
        print(("✅ " if feedback.is_correct else "❌ ") + feedback.feedback)
        if feedback.explanation:
            print(f"   {feedback.explanation}")
        completed += 1

    if completed:
        metrics = session.complete_lesson(completed)
        print(f"\nLesson complete! {metrics.lessons_completed} lessons so far.")


def run_media(session: LearnerSession) -> None:
    print("Paste a lyric, dialogue or transcript, then an empty line:")
    lines = []
    while True:
        line = _ask("")
        if not line:
            break
        lines.append(line)
    if not lines:
        return
    media = session.simplify_media("\n".join(lines), "text")
    print(f"\n{media.simplified_content}\n")
    for highlight in media.highlights:
        print(f"  • {highlight.phrase} - {highlight.translation}")
    for note in media.cultural_notes:
        print(f"  🌍 {note.term}: {note.explanation}")


def run_conversation(session: LearnerSession) -> None:
    roles = [r for r in ConversationRole if r is not ConversationRole.CUSTOM]
    for n, role in enumerate(roles, 1):
        print(f"  {n}) {role.value}")
    choice = _ask("Persona: ") or "1"
    try:
        role = roles[int(choice) - 1]
    except (ValueError, IndexError):
        role = ConversationRole.FRIEND

    greeting = session.start_conversation(role)
    print(f"\n{role.value}: {greeting.content}\n(type /end to finish)\n")

    while True:
        text = _ask("you: ")
        if text is None or text == "/end":
            break
        if not text:
            continue
        try:
            reply = session.send_message(text)
        except HablaError as e:
            logger.error(f"{e}")
            print("(no reply, try again)")
            continue
        print(f"{role.value}: {reply.content}")

    feedback = session.end_conversation()
    print(f"\nScore: {feedback.overall_score}/100")
    for s in feedback.strengths:
        print(f"  ✅ {s}")
    for i in feedback.improvements:
        print(f"  🎯 {i}")
    for p in feedback.native_phrasings:
        print(f"  💬 \"{p.user_said}\" → \"{p.native_says}\"")


def run_vocabulary(session: LearnerSession) -> None:
    cards = session.vocabulary_cards()
    known = 0
    for index, card in enumerate(cards, 1):
        answer = _ask(f"[{index}/{len(cards)}] {card.word} = ")
        if answer is None:
            break
        if session.check_vocabulary(card, answer):
            known += 1
            print("✅")
        else:
            print(f"❌ {card.translation}" + (f"  ({card.example})" if card.example else ""))
    print(f"\n{known}/{len(cards)} words known. Missed words are saved for review.")


def run_daily_challenge(session: LearnerSession) -> None:
    challenge = session.daily_challenge()
    print(f"\n🔥 Streak: {session.challenge_streak()} days")
    if challenge.completed:
        print("Today's challenge is done. " + ("✅ Solved!" if challenge.correct else f"Answer: {challenge.answer}"))
        return

    print(f"\n{challenge.question}")
    for n, option in enumerate(challenge.options, 1):
        print(f"   {n}. {option}")
    answer = _ask("> ")
    if not answer:
        return
    challenge = session.submit_challenge(answer)
    if challenge.correct:
        print(f"✅ Correct! Streak: {session.challenge_streak()} days")
    else:
        print(f"❌ The answer was: {challenge.answer}")


def show_progress(session: LearnerSession) -> None:
    metrics = session.load_metrics()
    memory = session.load_memory()
    print(f"\nGrammar mastery:        {metrics.grammar_mastery}/100")
    print(f"Vocabulary size:        {metrics.vocabulary_size}")
    print(f"Conversation fluency:   {metrics.conversation_fluency}/100")
    print(f"Lessons completed:      {metrics.lessons_completed}")
    print(f"Challenge streak:       {metrics.streak_days} days")
    print(f"Time practiced:         {metrics.total_minutes // 60}h {metrics.total_minutes % 60}m")
    weakest = get_weakest_areas(memory)
    if weakest:
        print("Weakest areas:          " + ", ".join(f"{w.category} ({w.skill_level}/10)" for w in weakest))
    mistakes = get_most_common_mistakes(memory, limit=3)
    if mistakes:
        print("Most common mistakes:   " + ", ".join(f"{m.concept} ({m.mistake_count}x)" for m in mistakes))


def main() -> None:
    logger.separator("Application Starting")
    settings = load_settings()
    logger.verbose = logger.verbose or settings.debug
    initialize_store(settings.firebase_credentials_path, settings.store_collection)

    provider: Optional[ChatProvider] = None
    try:
        provider = get_provider(settings)
    except ConfigurationError as e:
        logger.warning(f"{e}. Only progress is available offline.")

    session = LearnerSession(get_store(), provider)
    logger.banner("¡Hola! Welcome to Habla")

    while True:
        print(MENU)
        choice = _ask("Choose: ")
        if choice is None or choice.lower() == "q":
            break
        try:
            if choice in MODE_KEYS:
                mode = MODE_KEYS[choice]
                config = get_mode_config(mode)
                logger.ui_transition("Menu", config.name)
                session.set_mode(mode)
                print(f"\n{config.name}: {config.description}")
                if mode is LearningMode.CONVERSATION:
                    run_conversation(session)
                elif mode is LearningMode.MEDIA_BASED:
                    run_media(session)
                else:
                    run_lesson(session)
            elif choice == "6":
                show_progress(session)
            elif choice.lower() == "v":
                run_vocabulary(session)
            elif choice.lower() == "d":
                run_daily_challenge(session)
            elif choice.lower() == "m" and provider is not None:
                for name, capabilities in describe_models(provider.list_models()).items():
                    print(f"  {name}: {', '.join(capabilities) or '-'}")
            else:
                print("Unknown choice.")
        except HablaError as e:
            # Memory is untouched when a tutor call fails
            logger.error(f"{e}")
            print("Something went wrong talking to the tutor. Please try again.")

    logger.separator("Application Closed")


if __name__ == "__main__":
    main()
