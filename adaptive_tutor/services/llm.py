"""OpenAI LLM service: one method per lesson request."""

import json
import logging
from typing import Any, Optional

from openai import OpenAI

from adaptive_tutor.config import settings
from adaptive_tutor.errors import ConfigurationError, ModelGatewayError
from adaptive_tutor.extraction import (
    extract_structured,
    parse_evaluation,
    parse_pending,
    parse_revealed,
    parse_topics,
)
from adaptive_tutor.models import (
    CorrectView,
    Difficulty,
    HistoryEntry,
    IncorrectView,
    Message,
    PendingView,
    SessionView,
)
from adaptive_tutor.prompts import (
    TurnContext,
    TurnKind,
    build_messages,
    build_question_messages,
    build_topics_messages,
    classify_turn,
)

log = logging.getLogger(__name__)


class LLMService:
    def __init__(self, client: Optional[Any] = None):
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise ConfigurationError("OPENAI_API_KEY not set")
            client = OpenAI(api_key=settings.OPENAI_API_KEY)
        self.client = client
        self.model = settings.OPENAI_MODEL
        self.eval_model = settings.OPENAI_EVAL_MODEL or settings.OPENAI_MODEL
        self.temp_gen = settings.OPENAI_TEMPERATURE
        self.temp_eval = settings.OPENAI_EVAL_TEMPERATURE

    def complete(
        self,
        messages: list[Message],
        temperature: float,
        model: Optional[str] = None,
    ) -> str:
        """Send messages to the model and return the first choice's text."""
        model = model or self.model
        payload = [m.model_dump() for m in messages]
        log.debug(f"LLM request ({model}, t={temperature}): {json.dumps(payload, indent=2)}")
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=payload,
                temperature=temperature,
            )
        except Exception as e:
            log.error(f"Error calling OpenAI: {e}")
            raise ModelGatewayError(f"LLM call failed: {e}") from e

        if not getattr(response, "choices", None):
            raise ModelGatewayError("No choices returned from OpenAI")
        content = response.choices[0].message.content
        if not content:
            raise ModelGatewayError("Empty reply from OpenAI")
        log.debug(f"LLM raw reply: {content}")
        return content

    def _ask(self, messages: list[Message], temperature: float, model: Optional[str] = None):
        raw = self.complete(messages, temperature=temperature, model=model)
        return extract_structured(raw), raw

    def list_topics(self, grade: str, subject: str = settings.DEFAULT_SUBJECT) -> list[str]:
        """Ask the model for the key topics of a grade and subject."""
        messages = build_topics_messages(grade, subject, limit=settings.MAX_TOPICS)
        data, raw = self._ask(messages, temperature=self.temp_gen)
        topics = parse_topics(data, raw, limit=settings.MAX_TOPICS)
        log.info(f"Topics for grade {grade} {subject}: {topics}")
        return topics

    def lesson(
        self,
        grade: str,
        subject: str,
        topic: str,
        history: list[HistoryEntry],
        difficulty: Difficulty = "medium",
        reveal: bool = False,
    ) -> SessionView:
        """Run one lesson turn and return the view for the student."""
        context = TurnContext(
            subject=subject, grade=grade, topic=topic, difficulty=difficulty, history=list(history)
        )
        kind = classify_turn(context.history, reveal)
        log.info(f"Lesson turn: {kind.value} ({subject}, grade {grade}, {topic}, {difficulty})")
        messages = build_messages(kind, context)

        if kind is TurnKind.FIRST:
            data, raw = self._ask(messages, temperature=self.temp_gen)
            return parse_pending(data, raw)
        if kind is TurnKind.REVEAL:
            data, raw = self._ask(messages, temperature=self.temp_gen)
            return parse_revealed(data, raw)
        return self._evaluate(messages, context.last_entry)

    def _evaluate(self, messages: list[Message], entry: HistoryEntry) -> SessionView:
        data, raw = self._ask(messages, temperature=self.temp_eval, model=self.eval_model)
        evaluation = parse_evaluation(data, raw)
        log.info(f"Evaluated answer {entry.answer!r}: {evaluation.status}")

        if evaluation.status == "correct":
            return CorrectView(feedback=evaluation.feedback)

        # The retry question is always the original, whatever the model echoed back.
        explanation = entry.explanation or entry.question.explanation
        echoed = evaluation.next_question
        if isinstance(echoed, dict) and echoed.get("prompt") != entry.question.prompt:
            log.warning("Model rewrote the question on retry; keeping the original")
        retry = entry.question.model_copy(update={"explanation": explanation})
        return IncorrectView(
            feedback=evaluation.feedback,
            hint=evaluation.hint,
            next_question=retry,
            explanation=explanation,
        )

    def generate_question(
        self,
        grade: str,
        subject: str,
        topic: str,
        history: list[HistoryEntry],
        difficulty: Difficulty = "medium",
    ) -> PendingView:
        """Generate one new question, avoiding those already asked."""
        context = TurnContext(
            subject=subject, grade=grade, topic=topic, difficulty=difficulty, history=list(history)
        )
        log.info(
            f"Generating question ({difficulty}); avoiding {len(context.previous_prompts)} previous"
        )
        data, raw = self._ask(build_question_messages(context), temperature=self.temp_gen)
        return parse_pending(data, raw)


_instance: Optional[LLMService] = None


def get_llm() -> LLMService:
    """Get the shared LLM service (created on first use)."""
    global _instance
    if _instance is None:
        _instance = LLMService()
    return _instance
