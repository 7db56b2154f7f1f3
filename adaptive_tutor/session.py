"""Lesson session: history, score and the turn lifecycle for one topic.

A session is created when the student picks a topic and thrown away when they
pick another one. It owns its history and score; both change only after the
model's reply for a turn has been parsed, so a failed turn leaves the session
exactly as it was.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

from adaptive_tutor.errors import (
    MalformedResponseError,
    ModelGatewayError,
    PayloadValidationError,
    SecondaryGenerationError,
)
from adaptive_tutor.models import (
    CorrectView,
    Difficulty,
    HistoryEntry,
    PendingView,
    Question,
    ScoreState,
    SessionView,
)
from adaptive_tutor.policy import earned_badges, next_difficulty

log = logging.getLogger(__name__)

REVEAL_AFTER_ATTEMPTS = 2


class LessonBackend(Protocol):
    """Anything that can run lesson turns: LLMService or LessonAPIClient."""

    def list_topics(self, grade: str, subject: str) -> list[str]: ...

    def lesson(
        self,
        grade: str,
        subject: str,
        topic: str,
        history: list[HistoryEntry],
        difficulty: Difficulty = "medium",
        reveal: bool = False,
    ) -> SessionView: ...

    def generate_question(
        self,
        grade: str,
        subject: str,
        topic: str,
        history: list[HistoryEntry],
        difficulty: Difficulty = "medium",
    ) -> PendingView: ...


class SessionState(str, Enum):
    AWAITING_FIRST_TURN = "awaiting_first_turn"
    AWAITING_ANSWER = "awaiting_answer"


class LessonSession:
    def __init__(self, backend: LessonBackend):
        self.backend = backend
        self.subject: Optional[str] = None
        self.grade: Optional[str] = None
        self.topic: Optional[str] = None
        self.history: list[HistoryEntry] = []
        self.score = ScoreState()
        self.incorrect_attempts = 0
        self.view: Optional[SessionView] = None
        self.newly_earned_badges: set[int] = set()

    @property
    def state(self) -> SessionState:
        if self.view is None:
            return SessionState.AWAITING_FIRST_TURN
        return SessionState.AWAITING_ANSWER

    @property
    def question_to_show(self) -> Optional[Question]:
        return self.view.question_to_show if self.view is not None else None

    @property
    def can_reveal(self) -> bool:
        return self.view is not None and self.incorrect_attempts >= REVEAL_AFTER_ATTEMPTS

    # ─── Transitions ─────────────────────────────────────────────────────

    def start(self, subject: str, grade: str, topic: str) -> SessionView:
        """Begin a new topic: fresh history and score, then the first turn."""
        subject = subject.strip().lower()
        log.info(f"Starting lesson: {subject}, grade {grade}, {topic}")
        view = self.backend.lesson(grade, subject, topic, history=[], difficulty="medium")
        if view.status != "pending":
            raise MalformedResponseError(f"Expected a pending lesson, got {view.status}")

        self.subject, self.grade, self.topic = subject, grade, topic
        self.history = []
        self.score = ScoreState()
        self.incorrect_attempts = 0
        self.newly_earned_badges = set()
        self.view = self._with_unique_question(view)
        return self.view

    def submit_answer(self, answer: str) -> SessionView:
        """Record an answer to the displayed question and get it evaluated."""
        self._require_started()
        answer = (answer or "").strip()
        if not answer:
            raise PayloadValidationError("Answer is empty")
        question = self.question_to_show
        if question is None:
            raise PayloadValidationError("No question to answer; request a new question first")

        entry = HistoryEntry(
            question=question,
            explanation=getattr(self.view, "explanation", None) or question.explanation,
            answer=answer,
        )
        history = [*self.history, entry]
        view = self.backend.lesson(
            self.grade, self.subject, self.topic, history=history, difficulty=self.score.difficulty
        )

        if view.status == "correct":
            score = self._next_score(correct=True)
            incorrect_attempts = 0
            view = self._with_fresh_question(view, history, score.difficulty)
        elif view.status == "incorrect":
            score = self._next_score(correct=False)
            incorrect_attempts = self.incorrect_attempts + 1
        else:
            raise MalformedResponseError(f"Expected an answer evaluation, got {view.status}")

        self.history = history
        self.newly_earned_badges = score.badges - self.score.badges
        self.score = score
        self.incorrect_attempts = incorrect_attempts
        self.view = view
        log.info(
            f"Answer {view.status}: {score.correct_count}/{score.total_count} correct, "
            f"difficulty={score.difficulty}, attempts={incorrect_attempts}"
        )
        if self.newly_earned_badges:
            log.info(f"New badges: {sorted(self.newly_earned_badges)}")
        return view

    def reveal(self) -> SessionView:
        """Show the worked solution and move on to a new question."""
        self._require_started()
        if not self.can_reveal:
            raise PayloadValidationError(
                f"Reveal is available after {REVEAL_AFTER_ATTEMPTS} incorrect attempts"
            )
        view = self.backend.lesson(
            self.grade,
            self.subject,
            self.topic,
            history=self.history,
            difficulty=self.score.difficulty,
            reveal=True,
        )
        if view.status != "revealed":
            raise MalformedResponseError(f"Expected a revealed solution, got {view.status}")
        previous = self.history[-1].question
        if view.next_question.prompt.strip() == previous.prompt.strip():
            raise MalformedResponseError("Reveal repeated the previous question")

        self.incorrect_attempts = 0
        self.newly_earned_badges = set()
        self.view = self._with_unique_question(view)
        return self.view

    def request_question(self) -> SessionView:
        """Fetch a new question on the current topic."""
        self._require_started()
        view = self.backend.generate_question(
            self.grade, self.subject, self.topic, history=self.history, difficulty=self.score.difficulty
        )
        self.newly_earned_badges = set()
        self.view = self._with_unique_question(view)
        return self.view

    # ─── Helpers ─────────────────────────────────────────────────────────

    def _require_started(self) -> None:
        if self.view is None:
            raise PayloadValidationError("No lesson in progress; start a topic first")

    def _next_score(self, correct: bool) -> ScoreState:
        correct_count = self.score.correct_count + (1 if correct else 0)
        total_count = self.score.total_count + 1
        return ScoreState(
            correct_count=correct_count,
            total_count=total_count,
            difficulty=next_difficulty(correct_count, total_count),
            badges=earned_badges(correct_count, self.score.badges),
        )

    def _with_fresh_question(
        self, view: CorrectView, history: list[HistoryEntry], difficulty: Difficulty
    ) -> CorrectView:
        try:
            fresh = self._generate_next(history, difficulty)
        except SecondaryGenerationError as e:
            log.warning(f"Returning evaluation without a next question: {e}")
            return view
        return view.model_copy(
            update={
                "next_question": self._unique(fresh.question, history),
                "explanation": fresh.explanation,
            }
        )

    def _generate_next(self, history: list[HistoryEntry], difficulty: Difficulty) -> PendingView:
        try:
            return self.backend.generate_question(
                self.grade, self.subject, self.topic, history=history, difficulty=difficulty
            )
        except (ModelGatewayError, MalformedResponseError) as e:
            raise SecondaryGenerationError(str(e)) from e

    def _with_unique_question(self, view: SessionView) -> SessionView:
        question = view.question_to_show
        unique = self._unique(question, self.history)
        if unique is question:
            return view
        field = "question" if view.status == "pending" else "next_question"
        return view.model_copy(update={field: unique})

    @staticmethod
    def _unique(question: Question, history: list[HistoryEntry]) -> Question:
        """Models like to reuse ids such as "q1"; keep ids unique within a topic."""
        used = {entry.question.id for entry in history}
        if question.id not in used:
            return question
        n = len(history) + 1
        while f"{question.id}-{n}" in used:
            n += 1
        return question.model_copy(update={"id": f"{question.id}-{n}"})
