"""
Console menu: the vocabulary drill and daily challenge entries drive the
session with typed answers.
"""
from __future__ import annotations

import pytest

import main
from habla.session import LearnerSession


@pytest.fixture
def session(store, provider, clock) -> LearnerSession:
    return LearnerSession(store, provider, clock=clock)


def _type(monkeypatch, *answers: str) -> None:
    replies = iter(answers)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))


def test_menu_lists_vocabulary_and_daily_challenge() -> None:
    assert "v) Vocabulary" in main.MENU
    assert "d) Daily challenge" in main.MENU


def test_vocabulary_entry_records_missed_words(session, completions, monkeypatch, capsys) -> None:
    completions.queue({"cards": [
        {"word": "gato", "translation": "cat"},
        {"word": "madrugada", "translation": "early morning", "example": "Me levanto de madrugada."},
    ]})
    _type(monkeypatch, "Cat", "midnight")

    main.run_vocabulary(session)

    assert "1/2 words known" in capsys.readouterr().out
    assert [g.word for g in session.load_memory().vocabulary_gaps] == ["madrugada"]


def test_daily_challenge_entry_extends_streak(session, completions, monkeypatch, capsys) -> None:
    completions.queue({"title": "Reto", "exercises": [
        {"type": "translation", "prompt": "Translate: cat", "correctAnswer": "Gato"},
    ]})
    _type(monkeypatch, "gato")

    main.run_daily_challenge(session)

    out = capsys.readouterr().out
    assert "Translate: cat" in out
    assert "Correct! Streak: 1 days" in out
    assert session.load_metrics().streak_days == 1

    main.run_daily_challenge(session)

    assert "Today's challenge is done." in capsys.readouterr().out
    assert len(completions.calls) == 1
