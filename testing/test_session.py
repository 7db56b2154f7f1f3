"""Tests for the lesson session lifecycle."""

import pytest

from adaptive_tutor.errors import MalformedResponseError, ModelGatewayError, PayloadValidationError
from adaptive_tutor.models import ScoreState
from adaptive_tutor.session import LessonSession, SessionState


def test_start_returns_pending_view(fake_backend, views):
    backend = fake_backend(lessons=[views.pending()])
    session = LessonSession(backend)

    view = session.start("Math", "3", "fractions")

    assert session.state is SessionState.AWAITING_ANSWER
    assert view.status == "pending"
    assert view.explanation
    assert view.question.type in {"numeric", "multiple-choice", "free-text"}
    assert backend.lesson_calls[0]["history"] == []
    assert backend.lesson_calls[0]["subject"] == "math"
    assert backend.lesson_calls[0]["difficulty"] == "medium"


def test_incorrect_answer_keeps_question_and_context(fake_backend, views):
    first = views.pending()
    backend = fake_backend(lessons=[first, views.incorrect(first.question)])
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    view = session.submit_answer("2/6")

    assert view.status == "incorrect"
    assert view.hint
    assert view.next_question.prompt == first.question.prompt
    assert view.next_question.explanation == "Pizza slices!"
    assert session.score == ScoreState(correct_count=0, total_count=1)
    assert session.incorrect_attempts == 1
    entry = backend.lesson_calls[1]["history"][-1]
    assert entry.question == first.question
    assert entry.explanation == "Pizza slices!"
    assert entry.answer == "2/6"


def test_correct_answer_fetches_next_question(fake_backend, views):
    backend = fake_backend(
        lessons=[views.pending(), views.correct()],
        questions=[views.pending("q2", "What is 1/3 + 1/3?", explanation="Now with cake!")],
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    view = session.submit_answer("3/4")

    assert view.status == "correct"
    assert view.next_question.prompt == "What is 1/3 + 1/3?"
    assert view.explanation == "Now with cake!"
    assert session.question_to_show.id == "q2"
    assert session.score.correct_count == 1
    assert session.score.total_count == 1
    assert len(session.history) == 1
    # the new question must know what was already asked
    assert backend.question_calls[0]["history"][0].question.id == "q1"


def test_secondary_failure_still_returns_evaluation(fake_backend, views):
    backend = fake_backend(
        lessons=[views.pending(), views.correct()],
        questions=[ModelGatewayError("timeout")],
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    view = session.submit_answer("3/4")

    assert view.status == "correct"
    assert view.feedback == "Great job!"
    assert view.next_question is None
    assert session.score.correct_count == 1
    assert session.question_to_show is None


def test_request_question_recovers_missing_question(fake_backend, views):
    backend = fake_backend(
        lessons=[views.pending(), views.correct()],
        questions=[MalformedResponseError("bad"), views.pending("q2", "What is 2/3 - 1/3?")],
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")
    session.submit_answer("3/4")

    view = session.request_question()

    assert view.status == "pending"
    assert session.question_to_show.prompt == "What is 2/3 - 1/3?"


def test_failed_turn_changes_nothing(fake_backend, views):
    backend = fake_backend(lessons=[views.pending(), ModelGatewayError("down")])
    session = LessonSession(backend)
    first = session.start("math", "3", "fractions")

    with pytest.raises(ModelGatewayError):
        session.submit_answer("3/4")

    assert session.history == []
    assert session.score == ScoreState()
    assert session.view == first


def test_failed_start_changes_nothing(fake_backend, views):
    backend = fake_backend(lessons=[MalformedResponseError("bad json", raw="oops")])
    session = LessonSession(backend)

    with pytest.raises(MalformedResponseError):
        session.start("math", "3", "fractions")

    assert session.state is SessionState.AWAITING_FIRST_TURN


def test_reveal_after_two_incorrect_attempts(fake_backend, views):
    first = views.pending()
    backend = fake_backend(
        lessons=[
            first,
            views.incorrect(first.question),
            views.incorrect(first.question),
            views.revealed(),
        ]
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    session.submit_answer("2/6")
    assert not session.can_reveal
    with pytest.raises(PayloadValidationError):
        session.reveal()

    session.submit_answer("1/6")
    assert session.can_reveal

    view = session.reveal()

    assert view.status == "revealed"
    assert view.solution
    assert view.next_question.id != first.question.id
    assert view.next_question.prompt != first.question.prompt
    assert backend.lesson_calls[-1]["reveal"] is True
    assert session.incorrect_attempts == 0
    assert not session.can_reveal
    assert session.score.total_count == 2


def test_reveal_repeating_the_question_is_rejected(fake_backend, views):
    first = views.pending()
    backend = fake_backend(
        lessons=[
            first,
            views.incorrect(first.question),
            views.incorrect(first.question),
            views.revealed("q2", first.question.prompt),
            views.revealed(),
        ]
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")
    session.submit_answer("2/6")
    session.submit_answer("1/6")

    with pytest.raises(MalformedResponseError):
        session.reveal()

    assert session.can_reveal
    assert session.view.status == "incorrect"

    view = session.reveal()

    assert view.next_question.prompt != first.question.prompt


def test_correct_answer_resets_incorrect_attempts(fake_backend, views):
    first = views.pending()
    backend = fake_backend(
        lessons=[first, views.incorrect(first.question), views.correct()],
        questions=[views.pending("q2", "Next one")],
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")
    session.submit_answer("2/6")

    session.submit_answer("3/4")

    assert session.incorrect_attempts == 0
    assert session.score == ScoreState(correct_count=1, total_count=2)


def test_difficulty_and_badges_follow_score(fake_backend, views):
    lessons = [views.pending()] + [views.correct() for _ in range(5)]
    questions = [views.pending(f"q{i}", f"Question {i}") for i in range(2, 7)]
    backend = fake_backend(lessons=lessons, questions=questions)
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    for i in range(4):
        session.submit_answer("right")
        assert session.newly_earned_badges == set()
    session.submit_answer("right")

    assert session.score.difficulty == "hard"
    assert session.score.badges == {5}
    assert session.newly_earned_badges == {5}
    # the third fresh question was requested at the new difficulty
    assert [c["difficulty"] for c in backend.question_calls] == ["medium", "medium", "hard", "hard", "hard"]


def test_new_topic_resets_session(fake_backend, views):
    first = views.pending()
    backend = fake_backend(lessons=[first, views.incorrect(first.question), views.pending()])
    session = LessonSession(backend)
    session.start("math", "3", "fractions")
    session.submit_answer("2/6")

    session.start("math", "3", "decimals")

    assert session.topic == "decimals"
    assert session.history == []
    assert session.score == ScoreState()
    assert session.incorrect_attempts == 0


def test_reused_question_ids_are_made_unique(fake_backend, views):
    backend = fake_backend(
        lessons=[views.pending(), views.correct()],
        questions=[views.pending("q1", "A different question")],
    )
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    view = session.submit_answer("3/4")

    assert view.next_question.id == "q1-2"


def test_answer_before_start_or_empty_is_rejected(fake_backend, views):
    session = LessonSession(fake_backend(lessons=[views.pending()]))

    with pytest.raises(PayloadValidationError):
        session.submit_answer("3/4")

    session.start("math", "3", "fractions")
    with pytest.raises(PayloadValidationError):
        session.submit_answer("   ")


def test_unexpected_status_for_answer_is_malformed(fake_backend, views):
    backend = fake_backend(lessons=[views.pending(), views.pending("q2")])
    session = LessonSession(backend)
    session.start("math", "3", "fractions")

    with pytest.raises(MalformedResponseError):
        session.submit_answer("3/4")
    assert session.history == []
