#!/usr/bin/env python3
"""Adaptive Tutor - terminal lesson runner.

Usage:
    python -m adaptive_tutor.main --grade 3                      # Pick a topic from the list
    python -m adaptive_tutor.main --grade 3 --topic fractions     # Start straight away
    python -m adaptive_tutor.main --subject spanish --grade 4     # Language subject
    python -m adaptive_tutor.main --base-url http://localhost:8000  # Use a running API
    python -m adaptive_tutor.main --serve --port 8000             # Run the HTTP API

During a lesson type an answer, or one of: reveal, new, score, quit.
"""

import argparse
import logging
from typing import Callable

from adaptive_tutor.config import settings
from adaptive_tutor.errors import TutorError
from adaptive_tutor.models import ScoreState, SessionView
from adaptive_tutor.policy import BADGE_NAMES
from adaptive_tutor.session import REVEAL_AFTER_ATTEMPTS, LessonBackend, LessonSession

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)

QUIT_COMMANDS = {"quit", "exit", "q"}


def render_view(view: SessionView, say: Callable[[str], None]) -> None:
    """Print a lesson view as plain text."""
    if view.status == "revealed":
        say(f"Solution:\n{view.solution}")
    feedback = getattr(view, "feedback", None)
    if feedback:
        say(feedback)
    if view.status == "incorrect":
        say(f"Hint: {view.hint}")
    elif getattr(view, "explanation", None):
        say(view.explanation)

    question = view.question_to_show
    if question is None:
        return
    say(f"\n{question.prompt}")
    for i, option in enumerate(question.options or [], 1):
        say(f"  {i}. {option}")


def render_score(score: ScoreState, say: Callable[[str], None]) -> None:
    badges = ", ".join(BADGE_NAMES[b] for b in sorted(score.badges)) or "none yet"
    say(
        f"Score: {score.correct_count}/{score.total_count} "
        f"({score.accuracy:.0f}%), difficulty: {score.difficulty}, badges: {badges}"
    )


def _resolve_option(session: LessonSession, answer: str) -> str:
    """Let the student answer a multiple-choice question by number."""
    question = session.question_to_show
    if question and question.options and answer.isdigit():
        index = int(answer) - 1
        if 0 <= index < len(question.options):
            return question.options[index]
    return answer


def choose_topic(
    backend: LessonBackend,
    grade: str,
    subject: str,
    ask: Callable[[str], str],
    say: Callable[[str], None],
) -> str | None:
    """List topics for the grade and let the student pick one."""
    topics = backend.list_topics(grade, subject)
    if not topics:
        say("No topics found.")
        return None
    say(f"Topics for grade {grade} {subject}:")
    for i, topic in enumerate(topics, 1):
        say(f"  {i}. {topic}")
    while True:
        choice = ask("Pick a topic: ").strip()
        if choice.lower() in QUIT_COMMANDS:
            return None
        if choice.isdigit() and 1 <= int(choice) <= len(topics):
            return topics[int(choice) - 1]
        if choice:
            return choice


def run_lesson(
    session: LessonSession,
    subject: str,
    grade: str,
    topic: str,
    ask: Callable[[str], str] = input,
    say: Callable[[str], None] = print,
) -> ScoreState:
    """Run an interactive lesson until the student quits. Returns the final score."""
    try:
        render_view(session.start(subject, grade, topic), say)
    except TutorError as e:
        log.error(f"Could not start lesson: {e}")
        say("Sorry, the lesson could not be started. Please try again.")
        return session.score

    while True:
        if session.question_to_show is None:
            try:
                render_view(session.request_question(), say)
            except TutorError as e:
                log.error(f"Could not fetch a question: {e}")
                say("Could not fetch a new question. Type 'new' to retry or 'quit'.")

        answer = ask("> ").strip()
        command = answer.lower()
        if not answer:
            continue
        if command in QUIT_COMMANDS:
            break
        if command == "score":
            render_score(session.score, say)
            continue

        try:
            if command == "reveal":
                if not session.can_reveal:
                    say(f"Reveal unlocks after {REVEAL_AFTER_ATTEMPTS} incorrect attempts.")
                    continue
                view = session.reveal()
            elif command == "new":
                view = session.request_question()
            else:
                view = session.submit_answer(_resolve_option(session, answer))
        except TutorError as e:
            log.error(f"Turn failed: {e}")
            say("Something went wrong. Please try that again.")
            continue

        render_view(view, say)
        for badge in sorted(session.newly_earned_badges):
            say(f"Badge earned: {BADGE_NAMES[badge]} ({badge} correct answers)")
        if session.can_reveal:
            say("Stuck? Type 'reveal' to see the solution.")

    render_score(session.score, say)
    return session.score


def build_backend(base_url: str | None) -> LessonBackend:
    if base_url:
        from adaptive_tutor.services.lesson_api import LessonAPIClient

        return LessonAPIClient(base_url)
    from adaptive_tutor.services.llm import LLMService

    return LLMService()


def main():
    parser = argparse.ArgumentParser(description="Adaptive Tutor")
    parser.add_argument("--grade", type=str, default=None, help="Grade level, e.g. 3")
    parser.add_argument(
        "--subject",
        type=str,
        default=settings.DEFAULT_SUBJECT,
        help=f"Subject (default: {settings.DEFAULT_SUBJECT})",
    )
    parser.add_argument("--topic", type=str, default=None, help="Skip the topic list")
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Use a running tutor API instead of calling OpenAI directly",
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    if args.serve:
        import uvicorn

        log.info(f"Serving tutor API on {args.host}:{args.port}")
        uvicorn.run("adaptive_tutor.server:app", host=args.host, port=args.port)
        return None

    grade = args.grade or input("Grade: ").strip()
    subject = args.subject.strip().lower()
    log.info(f"Config: subject={subject}, grade={grade}, model={settings.OPENAI_MODEL}")

    try:
        backend = build_backend(args.base_url)
        topic = args.topic or choose_topic(backend, grade, subject, input, print)
    except TutorError as e:
        log.error(f"{type(e).__name__}: {e}")
        return None
    if not topic:
        return None

    return run_lesson(LessonSession(backend), subject, grade, topic)


if __name__ == "__main__":
    main()
