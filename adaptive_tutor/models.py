"""Pydantic models for type safety."""

from typing import Annotated, List, Literal, Optional, Set, Type, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from adaptive_tutor.config import settings
from adaptive_tutor.errors import PayloadValidationError

Difficulty = Literal["easy", "medium", "hard"]
QuestionType = Literal["numeric", "multiple-choice", "free-text"]

# Older prompts asked for "mcq" / "text"; models still answer with them.
QUESTION_TYPE_ALIASES = {
    "mcq": "multiple-choice",
    "multiple_choice": "multiple-choice",
    "multiplechoice": "multiple-choice",
    "choice": "multiple-choice",
    "text": "free-text",
    "free_text": "free-text",
    "freetext": "free-text",
    "open": "free-text",
    "number": "numeric",
}


class Message(BaseModel):
    role: Literal["system", "user"]
    content: str


class Question(BaseModel):
    """A single practice question shown to the student."""
    id: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    type: QuestionType
    options: Optional[List[str]] = None  # Only for multiple-choice
    explanation: Optional[str] = None  # Lesson text carried with the question

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            return QUESTION_TYPE_ALIASES.get(key, key)
        return value

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if self.type == "multiple-choice":
            if not self.options:
                raise ValueError("multiple-choice question needs at least one option")
        else:
            self.options = None
        return self


class HistoryEntry(BaseModel):
    """One completed question/answer pair. Never changed once recorded."""
    model_config = ConfigDict(frozen=True)

    question: Question
    explanation: Optional[str] = None
    answer: str


class _View(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @property
    def question_to_show(self) -> Optional[Question]:
        """The question currently on screen: nextQuestion if present, else question."""
        next_question = getattr(self, "next_question", None)
        if next_question is not None:
            return next_question
        return getattr(self, "question", None)


class PendingView(_View):
    status: Literal["pending"] = "pending"
    explanation: str = Field(min_length=1)
    question: Question


class CorrectView(_View):
    status: Literal["correct"] = "correct"
    feedback: str = Field(min_length=1)
    # Missing when fetching the follow-up question failed.
    next_question: Optional[Question] = Field(default=None, alias="nextQuestion")
    explanation: Optional[str] = None


class IncorrectView(_View):
    status: Literal["incorrect"] = "incorrect"
    feedback: str = Field(min_length=1)
    hint: str = Field(min_length=1)
    next_question: Question = Field(alias="nextQuestion")
    explanation: Optional[str] = None


class RevealedView(_View):
    status: Literal["revealed"] = "revealed"
    solution: str = Field(min_length=1)
    next_question: Question = Field(alias="nextQuestion")


SessionView = Annotated[
    Union[PendingView, CorrectView, IncorrectView, RevealedView],
    Field(discriminator="status"),
]


class Evaluation(BaseModel):
    """LLM output when judging an answer."""
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["correct", "incorrect"]
    feedback: str = Field(min_length=1)
    hint: Optional[str] = None
    # Models often echo the question back; kept only for logging.
    next_question: Optional[dict] = Field(default=None, alias="nextQuestion")

    @model_validator(mode="after")
    def _hint_required_when_incorrect(self) -> "Evaluation":
        if self.status == "incorrect" and not (self.hint or "").strip():
            raise ValueError("incorrect evaluation needs a hint")
        return self


class ScoreState(BaseModel):
    """Running score for the current topic."""
    correct_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    difficulty: Difficulty = "medium"
    badges: Set[int] = Field(default_factory=set)

    @property
    def accuracy(self) -> float:
        if not self.total_count:
            return 0.0
        return self.correct_count / self.total_count * 100


class TopicsResponse(BaseModel):
    topics: List[str] = []


class GenerateQuestionRequest(BaseModel):
    """Payload for a fresh question on the current topic."""
    grade: str = Field(min_length=1)
    subject: str = Field(default=settings.DEFAULT_SUBJECT, min_length=1)
    topic: str = Field(min_length=1)
    history: List[HistoryEntry]
    difficulty: Difficulty = "medium"

    @field_validator("grade", "subject", "topic", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("subject")
    @classmethod
    def _lower_subject(cls, value: str) -> str:
        return value.lower()

    @field_validator("difficulty", mode="before")
    @classmethod
    def _default_difficulty(cls, value):
        return value or "medium"


class LessonRequest(GenerateQuestionRequest):
    """Payload for a lesson turn (first, follow-up or reveal)."""
    reveal: bool = False


RequestT = TypeVar("RequestT", bound=BaseModel)


def parse_request(model: Type[RequestT], payload) -> RequestT:
    """Validate a request payload, raising PayloadValidationError on bad input."""
    if not isinstance(payload, dict):
        raise PayloadValidationError("Invalid request payload: expected a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"][:1]) for err in e.errors()})
        raise PayloadValidationError(
            f"Invalid request payload: {', '.join(fields) or 'body'}"
        ) from e
