"""Dynamic question selector.

Chooses the next clarifying question for a session. Questions for the
resolved (service type, subcategory) pair are offered in ascending sequence
order, skipping answered questions and questions whose conditional predicate
is false. Required and optional questions are offered alike; the required
flag only matters for progress and for scope generation.

Subcategory resolution falls back in this order:
1. Exact match
2. Flexible word-overlap match within the service type
3. "General <service type> troubleshooting"
4. Generic baseline questions for the service intent
"""

import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from config.errors import ErrorCode, ValidationError
from models.intent import ServiceIntent
from models.questions import (
    AllOf,
    AnswerContains,
    AnswerEquals,
    AnyOf,
    DynamicQuestion,
    NextQuestionResult,
    Predicate,
    ResponseType,
    SelectorState,
)
from services.reference_data import SERVICE_QUESTIONS

logger = structlog.get_logger()

GENERIC_SERVICE_TYPE = "Generic"

STOP_WORDS = frozenset({
    "work", "new", "system", "general", "repair", "service", "maintenance", "installation",
})
HEATING_WORDS = frozenset({"furnace", "heat", "heating", "warm", "hot", "boiler"})
COOLING_WORDS = frozenset({"air", "conditioner", "cool", "cooling", "cold", "freeze"})

SPECIFIC_WORD_POINTS = 5
GENERIC_WORD_POINTS = 1
MIN_FLEXIBLE_SCORE = 3
CONFLICT_SCORE = -100


# =============================================================================
# PREDICATES
# =============================================================================


def evaluate_predicate(predicate: Optional[Predicate], answers: Mapping[str, str]) -> bool:
    """Evaluate a conditional predicate against current answers.

    A missing predicate is always true. A predicate that references an
    unanswered question is false.
    """
    if predicate is None:
        return True

    if isinstance(predicate, AnswerContains):
        needle = predicate.substring.lower()
        if predicate.question_id is None:
            return any(needle in (value or "").lower() for value in answers.values())
        value = answers.get(predicate.question_id)
        return value is not None and needle in value.lower()

    if isinstance(predicate, AnswerEquals):
        value = answers.get(predicate.question_id)
        return value is not None and value.strip().lower() == predicate.value.strip().lower()

    if isinstance(predicate, AnyOf):
        return any(evaluate_predicate(p, answers) for p in predicate.predicates)

    if isinstance(predicate, AllOf):
        return all(evaluate_predicate(p, answers) for p in predicate.predicates)

    raise TypeError(f"Unsupported predicate: {predicate!r}")


# =============================================================================
# QUESTION BANK
# =============================================================================


def _subcategory_words(text: str) -> List[str]:
    normalized = text.lower()
    normalized = re.sub(r"\ba/c\b", "air conditioner", normalized)
    normalized = re.sub(r"\bac\b", "air conditioner", normalized)
    normalized = re.sub(r"\bhvac\b", "heating ventilation air conditioning", normalized)
    return normalized.split()


def flexible_match_score(requested: str, candidate: str) -> int:
    """Word-overlap score between a requested and a stored subcategory.

    Specific shared words score 5, generic ones 1. Heating requests never
    match cooling subcategories and vice versa.
    """
    requested_all = set(_subcategory_words(requested))
    candidate_words = [w for w in _subcategory_words(candidate) if len(w) > 2]
    candidate_set = set(candidate_words)

    requested_heating = bool(requested_all & HEATING_WORDS)
    requested_cooling = bool(requested_all & COOLING_WORDS)
    if (requested_heating and candidate_set & COOLING_WORDS) or (
        requested_cooling and candidate_set & HEATING_WORDS
    ):
        return CONFLICT_SCORE

    score = 0
    for word in (w for w in _subcategory_words(requested) if len(w) > 2):
        if word in candidate_set:
            score += GENERIC_WORD_POINTS if word in STOP_WORDS else SPECIFIC_WORD_POINTS
    return score


class QuestionBank:
    """Read-only set of dynamic questions with subcategory resolution."""

    def __init__(self, questions: Iterable[DynamicQuestion] = SERVICE_QUESTIONS):
        # Stable sort: equal sequence values keep bank order on every poll
        self._questions: Tuple[DynamicQuestion, ...] = tuple(
            sorted(questions, key=lambda q: q.sequence)
        )
        self._by_id: Dict[str, DynamicQuestion] = {q.id: q for q in self._questions}

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "QuestionBank":
        return cls(DynamicQuestion.model_validate(record) for record in records)

    def __len__(self) -> int:
        return len(self._questions)

    def get(self, question_id: str) -> Optional[DynamicQuestion]:
        return self._by_id.get(question_id)

    def questions_for(self, service_type: str, subcategory: str) -> List[DynamicQuestion]:
        service_key = service_type.lower()
        subcategory_key = subcategory.lower()
        return [
            q for q in self._questions
            if q.service_type.lower() == service_key and q.subcategory.lower() == subcategory_key
        ]

    def resolve(
        self,
        service_type: str,
        subcategory: str,
        service_intent: Optional[ServiceIntent] = None
    ) -> Tuple[str, List[DynamicQuestion]]:
        """Find the question set for a classification.

        Returns:
            (resolved subcategory, questions in sequence order). The list is
            empty when no fallback applies.
        """
        questions = self.questions_for(service_type, subcategory)
        if questions:
            return subcategory, questions

        if subcategory:
            service_key = service_type.lower()
            candidates: List[str] = []
            for q in self._questions:
                if q.service_type.lower() == service_key and q.subcategory not in candidates:
                    candidates.append(q.subcategory)
            scored = [(flexible_match_score(subcategory, c), c) for c in candidates]
            scored = [pair for pair in scored if pair[0] >= MIN_FLEXIBLE_SCORE]
            if scored:
                best_score = max(score for score, _ in scored)
                best = next(c for score, c in scored if score == best_score)
                logger.info(
                    "question_subcategory_flexible_match",
                    requested=subcategory,
                    resolved=best,
                    score=best_score
                )
                return best, self.questions_for(service_type, best)

        general = f"General {service_type} troubleshooting"
        questions = self.questions_for(service_type, general)
        if questions:
            return general, questions

        if service_intent is not None:
            intent = ServiceIntent(service_intent).value
            questions = self.questions_for(GENERIC_SERVICE_TYPE, intent)
            if questions:
                return intent, questions

        return subcategory, []


# =============================================================================
# SELECTION
# =============================================================================


def applicable_questions(
    questions: Sequence[DynamicQuestion],
    answers: Mapping[str, str]
) -> List[DynamicQuestion]:
    """Questions whose conditional predicate currently holds."""
    return [q for q in questions if evaluate_predicate(q.conditional, answers)]


def get_progress(
    questions: Sequence[DynamicQuestion],
    answers: Mapping[str, str]
) -> Tuple[int, int]:
    """(required answered, required applicable)."""
    required = [q for q in applicable_questions(questions, answers) if q.required_for_scope]
    answered = [q for q in required if q.id in answers]
    return len(answered), len(required)


def is_completion_condition_met(
    questions: Sequence[DynamicQuestion],
    answers: Mapping[str, str]
) -> bool:
    """True once every applicable required question has an answer."""
    answered, total = get_progress(questions, answers)
    return answered >= total


def missing_required_questions(
    questions: Sequence[DynamicQuestion],
    answers: Mapping[str, str]
) -> List[DynamicQuestion]:
    """Applicable required questions without a non-empty answer."""
    return [
        q for q in applicable_questions(questions, answers)
        if q.required_for_scope and not (answers.get(q.id) or "").strip()
    ]


def next_question(
    bank: QuestionBank,
    service_type: str,
    subcategory: str,
    answers: Mapping[str, str],
    service_intent: Optional[ServiceIntent] = None
) -> NextQuestionResult:
    """Select the lowest-sequence eligible unanswered question.

    When none remains the result state is READY_FOR_SCOPE.
    """
    resolved, questions = bank.resolve(service_type, subcategory, service_intent)

    eligible = [
        q for q in questions
        if q.id not in answers and evaluate_predicate(q.conditional, answers)
    ]
    answered_required, total_required = get_progress(questions, answers)

    if not eligible:
        return NextQuestionResult(
            state=SelectorState.READY_FOR_SCOPE,
            resolved_subcategory=resolved,
            answered_required=answered_required,
            total_required=total_required,
        )

    return NextQuestionResult(
        state=SelectorState.AWAITING_ANSWERS,
        question=eligible[0],
        resolved_subcategory=resolved,
        answered_required=answered_required,
        total_required=total_required,
    )


def validate_answer(question: DynamicQuestion, value: str) -> str:
    """Check an answer against its question and return the stored value.

    Choice answers must be one option, or a comma-separated list of options,
    compared case-insensitively and stored with the option's own casing.
    An empty value skips the question and is only allowed when optional.

    Raises:
        ValidationError: If the value is not acceptable.
    """
    value = (value or "").strip()

    if not value:
        if question.required_for_scope:
            raise ValidationError(
                f"Question '{question.id}' is required and cannot be skipped",
                field="value",
                code=ErrorCode.INVALID_ANSWER
            )
        return ""

    if question.response_type != ResponseType.CHOICE:
        return value

    by_lower = {option.lower(): option for option in question.options}
    if value.lower() in by_lower:
        return by_lower[value.lower()]

    parts = [part.strip() for part in value.split(",") if part.strip()]
    if parts and all(part.lower() in by_lower for part in parts):
        return ", ".join(by_lower[part.lower()] for part in parts)

    raise ValidationError(
        f"'{value}' is not a valid option for question '{question.id}'",
        field="value",
        code=ErrorCode.INVALID_ANSWER,
        details={"options": list(question.options)}
    )
