"""Prompt construction for every lesson turn."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum

from adaptive_tutor.models import Difficulty, HistoryEntry, Message


class TurnKind(str, Enum):
    FIRST = "first"
    FOLLOW_UP = "followUp"
    REVEAL = "reveal"


def classify_turn(history: list[HistoryEntry], reveal: bool = False) -> TurnKind:
    """first with no history, reveal when asked for, followUp otherwise."""
    if not history:
        return TurnKind.FIRST
    if reveal:
        return TurnKind.REVEAL
    return TurnKind.FOLLOW_UP


@dataclass
class TurnContext:
    subject: str
    grade: str
    topic: str
    difficulty: Difficulty = "medium"
    history: list[HistoryEntry] = field(default_factory=list)

    @property
    def last_entry(self) -> HistoryEntry | None:
        return self.history[-1] if self.history else None

    @property
    def previous_prompts(self) -> list[str]:
        prompts: list[str] = []
        for entry in self.history:
            if entry.question.prompt not in prompts:
                prompts.append(entry.question.prompt)
        return prompts


# ---------------------------------------------------------------------------
# Personas (keyed by subject)
# ---------------------------------------------------------------------------

KNOWLEDGE_PERSONA = (
    "You are a playful, engaging {subject} tutor for {grade}-graders. "
    "Focus on reinforcing basic concepts with age-appropriate language and real-world contexts."
)

LANGUAGE_PERSONA = (
    "You are a playful, engaging {subject} tutor for {grade}-grade English speakers learning {subject}. "
    "Focus on reinforcing {subject} language concepts with English explanations and {subject} content "
    "with translations. Use real-world contexts that help English speakers understand {subject}."
)

KNOWLEDGE_QUESTION_FOCUS = (
    "The question should check fundamental understanding using a brief real-world example or a basic drill."
)

LANGUAGE_QUESTION_FOCUS = (
    "The question should help English speakers practice {subject} with practical examples."
)

LANGUAGE_SUBJECTS = {"spanish", "hindi", "french"}

PERSONAS = {
    "language": (LANGUAGE_PERSONA, LANGUAGE_QUESTION_FOCUS),
    "knowledge": (KNOWLEDGE_PERSONA, KNOWLEDGE_QUESTION_FOCUS),
}

STYLE = "Make explanations fun: use characters, stories, or mini-scenes."
JSON_ONLY = "Always respond with JSON only; no extra text."

DIFFICULTY_INSTRUCTIONS = {
    "easy": (
        "Generate EASIER questions with simpler concepts, smaller numbers, basic vocabulary, "
        "and more straightforward problems. Provide extra hints and encouragement."
    ),
    "medium": "Generate questions at a moderate difficulty level appropriate for the grade level.",
    "hard": (
        "Generate CHALLENGING questions with more complex concepts, larger numbers, advanced "
        "vocabulary, and multi-step problems that require deeper thinking."
    ),
}


def grade_label(grade: str) -> str:
    """'3' -> '3rd'. Non-numeric grades are returned unchanged."""
    if not str(grade).isdigit():
        return str(grade)
    n = int(grade)
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def persona_kind(subject: str) -> str:
    return "language" if subject.lower() in LANGUAGE_SUBJECTS else "knowledge"


def get_persona(subject: str, grade: str) -> str:
    """Return the system persona for a subject."""
    template, _ = PERSONAS[persona_kind(subject)]
    return template.format(subject=subject, grade=grade_label(grade))


def get_question_focus(subject: str) -> str:
    _, template = PERSONAS[persona_kind(subject)]
    return template.format(subject=subject)


def get_difficulty_instructions(difficulty: str) -> str:
    return DIFFICULTY_INSTRUCTIONS.get(difficulty, DIFFICULTY_INSTRUCTIONS["medium"])


# ---------------------------------------------------------------------------
# Output shapes
# ---------------------------------------------------------------------------

QUESTION_SHAPE = """{
    "id": "…string…",
    "prompt": "…string…",
    "type": "numeric" | "multiple-choice" | "free-text",
    "options"?: ["…string…"]
  }"""

PENDING_SHAPE = """{
  "status": "pending",
  "explanation": "…string…",
  "question": %s
}""" % QUESTION_SHAPE

CORRECT_SHAPE = """{
  "status": "correct",
  "feedback": "Great job! You nailed it!"
}"""

REVEALED_SHAPE = """{
  "status": "revealed",
  "solution": "…step-by-step solution to the previous question…",
  "nextQuestion": %s
}""" % QUESTION_SHAPE


def _avoid_repeats(context: TurnContext) -> str:
    previous = context.previous_prompts
    if not previous:
        return ""
    return (
        f"IMPORTANT: Avoid repeating these previously asked questions: {'; '.join(previous)}. "
        "Create a completely different question on the same topic."
    )


def _system_message(context: TurnContext, *extra: str) -> Message:
    parts = [
        get_persona(context.subject, context.grade),
        STYLE,
        get_difficulty_instructions(context.difficulty),
        *extra,
        JSON_ONLY,
    ]
    return Message(role="system", content=" ".join(p for p in parts if p))


def _user_message(*parts: str) -> Message:
    return Message(role="user", content="\n".join(p for p in parts if p))


def _question_with_context(entry: HistoryEntry) -> dict:
    question = entry.question.model_dump(exclude_none=True)
    explanation = entry.explanation or entry.question.explanation
    if explanation:
        question["explanation"] = explanation
    return question


# ---------------------------------------------------------------------------
# Turn prompts
# ---------------------------------------------------------------------------

def _first_turn(context: TurnContext) -> list[Message]:
    grade = grade_label(context.grade)
    return [
        _system_message(context),
        _user_message(
            f'Introduce the {context.subject} topic "{context.topic}" with a 1-sentence mini-story '
            f"or analogy a {grade}-grader will love.",
            "Then give exactly one practice question; alternate between creative real-world "
            "problems and basic drills.",
            get_question_focus(context.subject),
            _avoid_repeats(context),
            "Return exactly this JSON shape (no fences):",
            PENDING_SHAPE,
        ),
    ]


def _follow_up_turn(context: TurnContext) -> list[Message]:
    entry = context.last_entry
    question = json.dumps(_question_with_context(entry), indent=2, ensure_ascii=False)
    incorrect_shape = (
        "{\n"
        '  "status": "incorrect",\n'
        '  "feedback": "Oops, not quite. Let\'s walk through it.",\n'
        '  "hint": "…diagnostic hint…",\n'
        f'  "nextQuestion": {question}\n'
        "}"
    )
    return [
        _system_message(
            context,
            "Based on the student's last answer, decide whether it is correct. "
            "If it is not, infer the likely mistake and give a diagnostic hint without revealing the answer.",
            "For incorrect answers, nextQuestion must be self-contained: repeat the original "
            "question object verbatim, including its explanation.",
        ),
        _user_message(
            "<question>",
            question,
            "</question>",
            "<student_answer>",
            f'"{entry.answer}"',
            "</student_answer>",
            "",
            "Judge the answer against the question and its explanation. Accept equivalent forms "
            "(e.g. 0.5 and 1/2, different capitalisation, minor spelling slips in non-language subjects).",
            "",
            "If correct, return:",
            CORRECT_SHAPE,
            "",
            "If incorrect, return JSON where:",
            '  • "hint" is a diagnostic tip, and',
            '  • "nextQuestion" repeats the entire question object (self-contained):',
            incorrect_shape,
            "",
            "Do not include anything outside the JSON object.",
        ),
    ]


def _reveal_turn(context: TurnContext) -> list[Message]:
    entry = context.last_entry
    question = json.dumps(_question_with_context(entry), indent=2, ensure_ascii=False)
    return [
        _system_message(
            context,
            "The student has tried this question several times. Be warm and never make them feel bad.",
        ),
        _user_message(
            "<question>",
            question,
            "</question>",
            "<student_last_answer>",
            f'"{entry.answer}"',
            "</student_last_answer>",
            "",
            "Explain the solution to this question step by step so the student can follow it.",
            f'Then give a brand-new practice question on "{context.topic}".',
            get_question_focus(context.subject),
            _avoid_repeats(context),
            "Return exactly this JSON shape (no fences):",
            REVEALED_SHAPE,
        ),
    ]


_TURN_BUILDERS = {
    TurnKind.FIRST: _first_turn,
    TurnKind.FOLLOW_UP: _follow_up_turn,
    TurnKind.REVEAL: _reveal_turn,
}


def build_messages(turn_kind: TurnKind, context: TurnContext) -> list[Message]:
    """Build the role-tagged messages for one lesson turn."""
    if turn_kind is not TurnKind.FIRST and context.last_entry is None:
        raise ValueError(f"{turn_kind.value} turn needs a previous answer")
    return _TURN_BUILDERS[turn_kind](context)


def build_question_messages(context: TurnContext) -> list[Message]:
    """Messages asking for one new pending question on the topic."""
    grade = grade_label(context.grade)
    return [
        _system_message(context),
        _user_message(
            f'Generate a new question on the {context.subject} topic "{context.topic}" '
            f"for a {grade}-grade student.",
            get_question_focus(context.subject),
            _avoid_repeats(context),
            "Return exactly this JSON shape (no fences):",
            PENDING_SHAPE,
        ),
    ]


def build_topics_messages(grade: str, subject: str, limit: int = 12) -> list[Message]:
    """Messages asking for the key topics of a grade and subject."""
    return [
        Message(
            role="system",
            content=f"You are an elementary {subject} curriculum planner. {JSON_ONLY}",
        ),
        Message(
            role="user",
            content=(
                f"List the key topics for grade {grade} {subject} as a JSON array of at most "
                f"{limit} short, unique strings."
            ),
        ),
    ]
