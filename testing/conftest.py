"""Shared fakes for the OpenAI client and the lesson backend."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from adaptive_tutor.models import (
    CorrectView,
    IncorrectView,
    PendingView,
    Question,
    RevealedView,
)


def question(qid: str = "q1", prompt: str = "What is 1/2 + 1/4?", **kwargs) -> Question:
    kwargs.setdefault("type", "numeric")
    return Question(id=qid, prompt=prompt, **kwargs)


class FakeOpenAI:
    """OpenAI client stub: replays canned replies for chat.completions.create."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            return SimpleNamespace(choices=[])
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeBackend:
    """Lesson backend stub with scripted lesson and question replies."""

    def __init__(self, lessons=(), questions=(), topics=("Fractions", "Decimals")):
        self.lessons = list(lessons)
        self.questions = list(questions)
        self.topics = list(topics)
        self.lesson_calls: list[dict] = []
        self.question_calls: list[dict] = []

    @staticmethod
    def _next(queue):
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def list_topics(self, grade, subject):
        return self.topics

    def lesson(self, grade, subject, topic, history, difficulty="medium", reveal=False):
        self.lesson_calls.append(
            {
                "grade": grade,
                "subject": subject,
                "topic": topic,
                "history": list(history),
                "difficulty": difficulty,
                "reveal": reveal,
            }
        )
        return self._next(self.lessons)

    def generate_question(self, grade, subject, topic, history, difficulty="medium"):
        self.question_calls.append({"history": list(history), "difficulty": difficulty})
        return self._next(self.questions)


def pending(qid="q1", prompt="What is 1/2 + 1/4?", explanation="Pizza slices!") -> PendingView:
    return PendingView(explanation=explanation, question=question(qid, prompt))


def correct() -> CorrectView:
    return CorrectView(feedback="Great job!")


def incorrect(entry_question: Question, explanation="Pizza slices!") -> IncorrectView:
    retry = entry_question.model_copy(update={"explanation": explanation})
    return IncorrectView(
        feedback="Not quite.",
        hint="Find a common denominator first.",
        next_question=retry,
        explanation=explanation,
    )


def revealed(qid="q9", prompt="What is 1/3 + 1/3?") -> RevealedView:
    return RevealedView(solution="1/2 = 2/4, so 2/4 + 1/4 = 3/4.", next_question=question(qid, prompt))


@pytest.fixture
def fake_openai():
    return FakeOpenAI


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def views():
    return SimpleNamespace(
        question=question,
        pending=pending,
        correct=correct,
        incorrect=incorrect,
        revealed=revealed,
    )
