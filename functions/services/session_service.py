"""Session pipeline for the scope estimator.

Ties the stages together for one customer session:

    create_session -> get_next_question / submit_answer (until ready)
    -> generate_scope -> record_job_completion

Sessions, answers, scopes and completed jobs are persisted through
FirestoreService. The reference tables can be overridden by documents in
the productionStandards and serviceQuestions collections; when those are
empty the seeded tables are used.
"""

from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import structlog

from config.errors import ErrorCode, PersistenceError, ValidationError
from models.completed_job import CompletedJob, JobOutcome
from models.intent import ClassificationResult, IntentClassification
from models.questions import (
    Answer,
    AnswerLog,
    DynamicQuestion,
    NextQuestionResult,
    SelectorState,
)
from models.scope import StructuredScope
from models.service_request import ServiceRequest
from services.firestore_service import FirestoreService
from services.intent_classifier import IntentClassifier
from services.learning_metrics import score_completed_job, summarize_learning_metrics
from services.production_standards import ProductionStandardTable
from services.question_selector import (
    QuestionBank,
    evaluate_predicate,
    get_progress,
    missing_required_questions,
    next_question,
    validate_answer,
)
from services.scope_orchestrator import ScopeOrchestrator
from utils.pipeline_logger import (
    log_classification,
    log_job_recorded,
    log_question_selected,
    log_scope_generated,
)

logger = structlog.get_logger()


class SessionService:
    """Runs the estimation pipeline for persisted sessions."""

    def __init__(
        self,
        firestore_service: Optional[FirestoreService] = None,
        classifier: Optional[IntentClassifier] = None,
        question_bank: Optional[QuestionBank] = None,
        orchestrator: Optional[ScopeOrchestrator] = None
    ):
        """Initialize SessionService.

        Args:
            firestore_service: Persistence layer.
            classifier: Intent classifier (LLM-backed by default).
            question_bank: Question bank. Loaded from Firestore, falling back
                to the seeded bank, when not given.
            orchestrator: Scope orchestrator. Built over standards loaded
                from Firestore, falling back to the seeded table, when not given.
        """
        self.firestore = firestore_service or FirestoreService()
        self.classifier = classifier or IntentClassifier()
        self._question_bank = question_bank
        self._orchestrator = orchestrator

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    async def question_bank(self) -> QuestionBank:
        if self._question_bank is None:
            records = await self.firestore.list_reference_records(
                FirestoreService.COLLECTION_SERVICE_QUESTIONS
            )
            self._question_bank = QuestionBank.from_records(records) if records else QuestionBank()
            logger.info("question_bank_loaded", questions=len(self._question_bank), overridden=bool(records))
        return self._question_bank

    async def orchestrator(self) -> ScopeOrchestrator:
        if self._orchestrator is None:
            records = await self.firestore.list_reference_records(
                FirestoreService.COLLECTION_PRODUCTION_STANDARDS
            )
            table = (
                ProductionStandardTable.from_records(records) if records else ProductionStandardTable()
            )
            self._orchestrator = ScopeOrchestrator(standards=table)
            logger.info("production_standards_loaded", rows=len(table), overridden=bool(records))
        return self._orchestrator

    # -------------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------------

    async def _load_session(self, session_id: str) -> Dict[str, Any]:
        session = await self.firestore.get_session(session_id)
        if session is None:
            raise PersistenceError(
                message=f"Session {session_id} not found",
                code=ErrorCode.SESSION_NOT_FOUND,
                details={"session_id": session_id}
            )
        return session

    async def _session_context(
        self,
        session_id: str
    ) -> Tuple[Dict[str, Any], IntentClassification, List[Answer], Dict[str, str]]:
        session = await self._load_session(session_id)
        classification = IntentClassification.model_validate(session["classification"])
        answers = await self.firestore.list_answers(session_id)
        return session, classification, answers, AnswerLog.from_answers(answers).latest()

    async def create_session(self, request: ServiceRequest) -> Dict[str, Any]:
        """Classify a request and persist a new session awaiting answers.

        Raises:
            ValidationError: If the description is empty.
            PersistenceError: If the session cannot be stored.
        """
        result: ClassificationResult = await self.classifier.classify(request.description)
        classification = result.classification

        bank = await self.question_bank()
        resolved, _ = bank.resolve(
            classification.service_type,
            classification.subcategory,
            classification.service_intent
        )

        session_id = f"sess-{uuid4().hex[:12]}"
        classification_data = classification.model_dump(mode="json")
        degraded_reason = result.degraded_reason.value if result.degraded_reason else None

        await self.firestore.create_session(session_id, {
            "request": request.model_dump(mode="json"),
            "classification": classification_data,
            "degradedReason": degraded_reason,
            "state": SelectorState.AWAITING_ANSWERS.value,
            "resolvedSubcategory": resolved,
        })
        log_classification(session_id, classification_data, degraded_reason)

        return {
            "sessionId": session_id,
            "classification": classification_data,
            "degradedReason": degraded_reason,
            "resolvedSubcategory": resolved,
            "state": SelectorState.AWAITING_ANSWERS.value,
        }

    async def get_next_question(self, session_id: str) -> NextQuestionResult:
        """Poll the question selector for a session.

        A session that has reached READY_FOR_SCOPE stays there, except that a
        revised answer can bring a required question into play. That question
        is returned until it is answered.
        """
        session, classification, _, latest = await self._session_context(session_id)
        bank = await self.question_bank()

        result = next_question(
            bank,
            classification.service_type,
            classification.subcategory,
            latest,
            classification.service_intent
        )

        if session.get("state") == SelectorState.READY_FOR_SCOPE.value:
            _, questions = bank.resolve(
                classification.service_type,
                classification.subcategory,
                classification.service_intent
            )
            reopened = missing_required_questions(questions, latest)
            result = result.model_copy(update={
                "state": SelectorState.AWAITING_ANSWERS if reopened else SelectorState.READY_FOR_SCOPE,
                "question": reopened[0] if reopened else None,
            })
        elif result.state == SelectorState.READY_FOR_SCOPE:
            await self.firestore.update_session(session_id, {
                "state": SelectorState.READY_FOR_SCOPE.value,
                "resolvedSubcategory": result.resolved_subcategory,
            })

        log_question_selected(
            session_id,
            result.question.id if result.question else None,
            result.state.value,
            result.answered_required,
            result.total_required
        )
        return result

    async def submit_answer(self, session_id: str, question_id: str, value: str) -> NextQuestionResult:
        """Validate and append an answer, then return the next poll.

        Answers may supersede earlier answers to the same question. Once the
        session is ready for scope no new question can be opened, apart from
        required questions that a revised answer has brought into play.

        Raises:
            ValidationError: UNKNOWN_QUESTION if the question does not belong
                to the session, INVALID_ANSWER if the value is not acceptable.
        """
        session, classification, answers, latest = await self._session_context(session_id)
        bank = await self.question_bank()
        _, questions = bank.resolve(
            classification.service_type,
            classification.subcategory,
            classification.service_intent
        )

        question: Optional[DynamicQuestion] = next((q for q in questions if q.id == question_id), None)
        if question is None:
            raise ValidationError(
                f"Question '{question_id}' does not belong to this session",
                field="questionId",
                code=ErrorCode.UNKNOWN_QUESTION,
                details={"session_id": session_id}
            )
        if not evaluate_predicate(question.conditional, latest):
            raise ValidationError(
                f"Question '{question_id}' does not apply to the answers given so far",
                field="questionId",
                code=ErrorCode.INVALID_ANSWER,
                details={"session_id": session_id}
            )
        if (
            session.get("state") == SelectorState.READY_FOR_SCOPE.value
            and question_id not in latest
            and question_id not in {q.id for q in missing_required_questions(questions, latest)}
        ):
            raise ValidationError(
                "Session is ready for scope; only earlier answers can be revised",
                field="questionId",
                code=ErrorCode.INVALID_ANSWER,
                details={"session_id": session_id}
            )

        stored = validate_answer(question, value)
        await self.firestore.append_answer(
            session_id, Answer(question_id=question_id, value=stored), index=len(answers)
        )
        return await self.get_next_question(session_id)

    async def skip_question(self, session_id: str, question_id: str) -> NextQuestionResult:
        """Skip an optional question by recording an empty answer."""
        return await self.submit_answer(session_id, question_id, "")

    # -------------------------------------------------------------------------
    # Scope
    # -------------------------------------------------------------------------

    async def generate_scope(self, session_id: str) -> StructuredScope:
        """Generate and store the structured scope for a session.

        Raises:
            ValidationError: SESSION_NOT_READY while a required question is
                still unanswered.
        """
        session, classification, _, latest = await self._session_context(session_id)
        bank = await self.question_bank()
        resolved, questions = bank.resolve(
            classification.service_type,
            classification.subcategory,
            classification.service_intent
        )

        missing = missing_required_questions(questions, latest)
        if missing:
            answered, total = get_progress(questions, latest)
            raise ValidationError(
                f"{len(missing)} required question(s) still need an answer",
                code=ErrorCode.SESSION_NOT_READY,
                details={
                    "session_id": session_id,
                    "missing": [q.id for q in missing],
                    "answered_required": answered,
                    "total_required": total,
                }
            )

        if session.get("state") != SelectorState.READY_FOR_SCOPE.value:
            await self.firestore.update_session(session_id, {
                "state": SelectorState.READY_FOR_SCOPE.value,
                "resolvedSubcategory": resolved,
            })

        jobs = await self.firestore.list_completed_jobs(service_type=classification.service_type)
        orchestrator = await self.orchestrator()
        scope = orchestrator.generate_scope(
            ServiceRequest.model_validate(session["request"]),
            classification,
            latest,
            questions=questions,
            historical_jobs=jobs,
            resolved_subcategory=resolved,
        )

        scope_data = scope.model_dump(mode="json")
        await self.firestore.save_scope(session_id, scope_data)
        log_scope_generated(session_id, scope_data)
        return scope

    # -------------------------------------------------------------------------
    # Learning loop
    # -------------------------------------------------------------------------

    async def record_job_completion(self, session_id: str, outcome: JobOutcome) -> CompletedJob:
        """Record the actual outcome of a session's job against its scope.

        Raises:
            ValidationError: SCOPE_NOT_FOUND if no scope was generated.
            PersistenceError: JOB_ALREADY_RECORDED on a second completion.
        """
        session, classification, _, latest = await self._session_context(session_id)
        scope_data = await self.firestore.get_scope(session_id)
        if scope_data is None:
            raise ValidationError(
                f"No scope has been generated for session {session_id}",
                code=ErrorCode.SCOPE_NOT_FOUND,
                details={"session_id": session_id}
            )
        scope = StructuredScope.model_validate(scope_data)

        job = CompletedJob(
            session_id=session_id,
            service_type=classification.service_type,
            subcategory=classification.subcategory,
            service_description=session["request"]["description"],
            original_scope=scope.model_dump(mode="json"),
            structured_answers={k: v for k, v in latest.items() if v},
            estimated_man_hours=scope.estimated_man_hours,
            estimated_cost=scope.estimated_cost,
            actual_man_hours=outcome.actual_man_hours,
            actual_cost=outcome.actual_cost,
            customer_rating=outcome.customer_rating,
            issues_encountered=outcome.issues_encountered,
            materials_used=outcome.materials_used,
            complexity=scope.complexity.value,
        )
        job = score_completed_job(job)

        await self.firestore.record_completed_job(job)
        log_job_recorded(session_id, job.accuracy_score, job.tags)
        return job

    async def get_learning_metrics(self, service_type: Optional[str] = None) -> Dict[str, Any]:
        """Aggregate accuracy figures over the completed-job corpus."""
        jobs = await self.firestore.list_completed_jobs(service_type=service_type)
        return summarize_learning_metrics(jobs)
