"""Dynamic question models.

Conditional questions carry a tagged predicate over earlier answers instead
of a free-text expression. Predicates are evaluated by
services.question_selector.evaluate_predicate.
"""

from enum import Enum
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class ResponseType(str, Enum):
    """How the customer answers a question."""

    TEXT = "text"
    CHOICE = "choice"


class SelectorState(str, Enum):
    """Per-session question selector state."""

    AWAITING_ANSWERS = "AWAITING_ANSWERS"
    READY_FOR_SCOPE = "READY_FOR_SCOPE"


# =============================================================================
# CONDITIONAL PREDICATES
# =============================================================================


class AnswerContains(BaseModel):
    """True when an answer contains a substring (case-insensitive).

    With no question_id, any recorded answer may match.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["answer_contains"] = "answer_contains"
    question_id: Optional[str] = None
    substring: str = Field(..., min_length=1)


class AnswerEquals(BaseModel):
    """True when a specific answer equals a value (case-insensitive)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["answer_equals"] = "answer_equals"
    question_id: str
    value: str


class AnyOf(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["any_of"] = "any_of"
    predicates: List["Predicate"] = Field(..., min_length=1)


class AllOf(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["all_of"] = "all_of"
    predicates: List["Predicate"] = Field(..., min_length=1)


Predicate = Annotated[
    Union[AnswerContains, AnswerEquals, AnyOf, AllOf],
    Field(discriminator="kind"),
]

AnyOf.model_rebuild()
AllOf.model_rebuild()


# =============================================================================
# QUESTIONS AND ANSWERS
# =============================================================================


class DynamicQuestion(BaseModel):
    """A clarifying question bound to a (service type, subcategory) pair."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    service_type: str
    subcategory: str
    question_text: str
    response_type: ResponseType = ResponseType.TEXT
    options: List[str] = Field(default_factory=list)
    sequence: int = Field(..., description="Default ordering within the pair")
    required_for_scope: bool = True
    conditional: Optional[Predicate] = None

    @model_validator(mode="after")
    def check_options(self) -> "DynamicQuestion":
        """Options are non-empty iff the question is multiple choice."""
        if self.response_type == ResponseType.CHOICE and not self.options:
            raise ValueError(f"Choice question {self.id} must have options")
        if self.response_type == ResponseType.TEXT and self.options:
            raise ValueError(f"Text question {self.id} must not have options")
        return self


class Answer(BaseModel):
    """One answer to one question."""

    question_id: str = Field(..., min_length=1)
    value: str


class AnswerLog(BaseModel):
    """Append-only answers for a session. Later answers supersede earlier ones."""

    entries: List[Answer] = Field(default_factory=list)

    def append(self, answer: Answer) -> None:
        self.entries.append(answer)

    def latest(self) -> Dict[str, str]:
        """Current value per question id."""
        values: Dict[str, str] = {}
        for entry in self.entries:
            values[entry.question_id] = entry.value
        return values

    def answered_ids(self) -> set:
        return {entry.question_id for entry in self.entries}

    @classmethod
    def from_answers(cls, answers: Iterable[Answer]) -> "AnswerLog":
        return cls(entries=list(answers))


class NextQuestionResult(BaseModel):
    """Outcome of one selector poll."""

    state: SelectorState
    question: Optional[DynamicQuestion] = None
    resolved_subcategory: str
    answered_required: int = 0
    total_required: int = 0

    @property
    def progress_percent(self) -> int:
        if self.total_required == 0:
            return 100
        return round(self.answered_required / self.total_required * 100)
