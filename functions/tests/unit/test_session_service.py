"""Unit tests for the session pipeline over in-memory persistence."""

import pytest

from config.errors import ErrorCode, PersistenceError, ValidationError
from models.completed_job import JobOutcome
from models.questions import SelectorState
from models.service_request import ServiceRequest
from services.intent_classifier import IntentClassifier, IntentOracle
from services.session_service import SessionService


class _BrokenOracle(IntentOracle):
    async def classify(self, text):
        raise RuntimeError("upstream unavailable")


async def _answer_leak_questions(service, session_id):
    await service.submit_answer(session_id, "plumbing-leak-location", "kitchen sink")
    await service.submit_answer(session_id, "plumbing-leak-severity", "Slow drip")
    return await service.submit_answer(session_id, "plumbing-leak-pipe", "Copper")


class TestCreateSession:
    """Tests for SessionService.create_session."""

    @pytest.mark.asyncio
    async def test_creates_classified_session(self, session_service, in_memory_firestore, leak_request):
        created = await session_service.create_session(leak_request)

        session_id = created["sessionId"]
        assert session_id.startswith("sess-")
        assert created["classification"]["service_type"] == "Plumbing"
        assert created["classification"]["subcategory"] == "Leak Detection"
        assert created["degradedReason"] is None
        assert created["state"] == "AWAITING_ANSWERS"

        stored = in_memory_firestore.sessions[session_id]
        assert stored["request"]["address"] == "456 Oak Street, Dallas, TX 75201"
        assert stored["resolvedSubcategory"] == "Leak Detection"

    @pytest.mark.asyncio
    async def test_degraded_classification_still_creates_session(self, in_memory_firestore):
        service = SessionService(
            firestore_service=in_memory_firestore,
            classifier=IntentClassifier(oracle=_BrokenOracle(), timeout_seconds=1),
        )

        created = await service.create_session(ServiceRequest(description="Something is wrong at my house"))

        assert created["degradedReason"] == "oracle_error"
        assert created["classification"]["service_type"] == "General"
        assert created["resolvedSubcategory"] == "service"

        result = await service.get_next_question(created["sessionId"])
        assert result.question.id == "generic-service-describe"


class TestQuestionFlow:
    """Tests for polling and answering questions."""

    @pytest.mark.asyncio
    async def test_first_question(self, session_service, leak_request):
        created = await session_service.create_session(leak_request)

        result = await session_service.get_next_question(created["sessionId"])

        assert result.state == SelectorState.AWAITING_ANSWERS
        assert result.question.id == "plumbing-leak-location"

    @pytest.mark.asyncio
    async def test_answers_are_canonicalized_and_appended(
        self, session_service, in_memory_firestore, leak_request
    ):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        result = await session_service.submit_answer(session_id, "plumbing-leak-location", "kitchen sink")

        assert result.question.id == "plumbing-leak-severity"
        assert in_memory_firestore.answers[session_id] == [
            {"question_id": "plumbing-leak-location", "value": "Kitchen sink", "index": 0}
        ]

    @pytest.mark.asyncio
    async def test_optional_question_then_ready(self, session_service, in_memory_firestore, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        result = await _answer_leak_questions(session_service, session_id)
        assert result.question.id == "plumbing-leak-shutoff"

        result = await session_service.skip_question(session_id, "plumbing-leak-shutoff")

        assert result.state == SelectorState.READY_FOR_SCOPE
        assert result.question is None
        assert in_memory_firestore.sessions[session_id]["state"] == "READY_FOR_SCOPE"

    @pytest.mark.asyncio
    async def test_conditional_question_opens(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        await session_service.submit_answer(session_id, "plumbing-leak-location", "Ceiling or wall")
        await session_service.submit_answer(session_id, "plumbing-leak-severity", "Steady leak")
        result = await session_service.submit_answer(session_id, "plumbing-leak-pipe", "Not sure")

        assert result.question.id == "plumbing-leak-damage"

    @pytest.mark.asyncio
    async def test_unknown_question(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        with pytest.raises(ValidationError) as exc_info:
            await session_service.submit_answer(session_id, "deck-size", "12x16")

        assert exc_info.value.code == ErrorCode.UNKNOWN_QUESTION

    @pytest.mark.asyncio
    async def test_inapplicable_conditional_question(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        with pytest.raises(ValidationError) as exc_info:
            await session_service.submit_answer(session_id, "plumbing-leak-damage", "Stained drywall")

        assert exc_info.value.code == ErrorCode.INVALID_ANSWER

    @pytest.mark.asyncio
    async def test_required_question_cannot_be_skipped(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        with pytest.raises(ValidationError) as exc_info:
            await session_service.skip_question(session_id, "plumbing-leak-location")

        assert exc_info.value.code == ErrorCode.INVALID_ANSWER

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_service):
        with pytest.raises(PersistenceError) as exc_info:
            await session_service.get_next_question("sess-missing")

        assert exc_info.value.code == ErrorCode.SESSION_NOT_FOUND


class TestReadyState:
    """Tests for READY_FOR_SCOPE being terminal."""

    @pytest.mark.asyncio
    async def test_ready_session_rejects_new_questions(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await _answer_leak_questions(session_service, session_id)
        await session_service.generate_scope(session_id)

        with pytest.raises(ValidationError) as exc_info:
            await session_service.submit_answer(session_id, "plumbing-leak-shutoff", "Yes")

        assert exc_info.value.code == ErrorCode.INVALID_ANSWER

    @pytest.mark.asyncio
    async def test_ready_session_allows_revisions(self, session_service, in_memory_firestore, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await _answer_leak_questions(session_service, session_id)
        await session_service.generate_scope(session_id)

        result = await session_service.submit_answer(session_id, "plumbing-leak-location", "Basement")

        assert result.state == SelectorState.READY_FOR_SCOPE
        assert result.question is None
        assert in_memory_firestore.answers[session_id][-1]["value"] == "Basement"
        assert in_memory_firestore.answers[session_id][-1]["index"] == 3

    @pytest.mark.asyncio
    async def test_revision_opening_required_question(self, session_service):
        request = ServiceRequest(description="Build a new composite deck behind the house")
        session_id = (await session_service.create_session(request))["sessionId"]
        await session_service.submit_answer(session_id, "deck-size", "12x16")
        await session_service.submit_answer(session_id, "deck-material", "Composite")
        await session_service.submit_answer(session_id, "deck-height", "Ground level")
        await session_service.submit_answer(session_id, "deck-railing", "No")
        await session_service.generate_scope(session_id)

        result = await session_service.submit_answer(session_id, "deck-railing", "Yes")

        assert result.state == SelectorState.AWAITING_ANSWERS
        assert result.question.id == "deck-railing-length"
        assert (result.answered_required, result.total_required) == (4, 5)
        with pytest.raises(ValidationError) as exc_info:
            await session_service.generate_scope(session_id)
        assert exc_info.value.details["missing"] == ["deck-railing-length"]

        result = await session_service.submit_answer(session_id, "deck-railing-length", "40")

        assert result.state == SelectorState.READY_FOR_SCOPE
        assert result.question is None
        scope = await session_service.generate_scope(session_id)
        assert scope.service_type == "Deck Building"


class TestGenerateScope:
    """Tests for SessionService.generate_scope."""

    @pytest.mark.asyncio
    async def test_not_ready(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await session_service.submit_answer(session_id, "plumbing-leak-location", "Kitchen sink")

        with pytest.raises(ValidationError) as exc_info:
            await session_service.generate_scope(session_id)

        error = exc_info.value
        assert error.code == ErrorCode.SESSION_NOT_READY
        assert error.details["missing"] == ["plumbing-leak-severity", "plumbing-leak-pipe"]
        assert (error.details["answered_required"], error.details["total_required"]) == (1, 3)

    @pytest.mark.asyncio
    async def test_scope_generated_and_saved(self, session_service, in_memory_firestore, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await _answer_leak_questions(session_service, session_id)

        scope = await session_service.generate_scope(session_id)

        assert scope.cost.total == 5844
        assert in_memory_firestore.scopes[session_id]["cost"]["total"] == 5844
        assert in_memory_firestore.sessions[session_id]["state"] == "READY_FOR_SCOPE"

    @pytest.mark.asyncio
    async def test_precedents_drawn_from_store(
        self, session_service, in_memory_firestore, leak_request, completed_jobs
    ):
        in_memory_firestore.seed_jobs(completed_jobs)
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await _answer_leak_questions(session_service, session_id)

        scope = await session_service.generate_scope(session_id)

        assert scope.historical_range.job_count == 3


class TestReferenceOverrides:
    """Tests for loading reference tables from persistence."""

    @pytest.mark.asyncio
    async def test_stored_questions_replace_seeded_bank(self, keyword_classifier, leak_request):
        from tests.fixtures.in_memory_store import InMemoryFirestore

        store = InMemoryFirestore(reference_records={
            "serviceQuestions": [{
                "id": "custom-leak-floor",
                "service_type": "Plumbing",
                "subcategory": "Leak Detection",
                "question_text": "Which floor is the leak on?",
                "sequence": 1,
            }],
        })
        service = SessionService(firestore_service=store, classifier=keyword_classifier)

        session_id = (await service.create_session(leak_request))["sessionId"]
        result = await service.get_next_question(session_id)

        assert result.question.id == "custom-leak-floor"
        assert result.total_required == 1

    @pytest.mark.asyncio
    async def test_seeded_tables_when_store_empty(self, in_memory_firestore, keyword_classifier):
        service = SessionService(firestore_service=in_memory_firestore, classifier=keyword_classifier)

        bank = await service.question_bank()
        orchestrator = await service.orchestrator()

        assert bank.get("plumbing-leak-location") is not None
        assert len(orchestrator.standards) > 0


class TestJobCompletion:
    """Tests for the learning loop."""

    @pytest.mark.asyncio
    async def test_record_job_completion(self, session_service, in_memory_firestore, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await _answer_leak_questions(session_service, session_id)
        await session_service.generate_scope(session_id)

        job = await session_service.record_job_completion(
            session_id,
            JobOutcome(actual_man_hours=0.75, actual_cost=5844, customer_rating=5)
        )

        assert job.service_type == "Plumbing"
        assert job.estimated_man_hours == 0.75
        assert job.estimated_cost == 5844
        assert job.accuracy_score == 1.0
        assert job.is_training_example is True
        assert job.structured_answers == {
            "plumbing-leak-location": "Kitchen sink",
            "plumbing-leak-severity": "Slow drip",
            "plumbing-leak-pipe": "Copper",
        }
        assert session_id in in_memory_firestore.completed_jobs

    @pytest.mark.asyncio
    async def test_second_completion_rejected(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]
        await _answer_leak_questions(session_service, session_id)
        await session_service.generate_scope(session_id)
        outcome = JobOutcome(actual_man_hours=1.0, actual_cost=6000, customer_rating=4)
        await session_service.record_job_completion(session_id, outcome)

        with pytest.raises(PersistenceError) as exc_info:
            await session_service.record_job_completion(session_id, outcome)

        assert exc_info.value.code == ErrorCode.JOB_ALREADY_RECORDED

    @pytest.mark.asyncio
    async def test_completion_requires_scope(self, session_service, leak_request):
        session_id = (await session_service.create_session(leak_request))["sessionId"]

        with pytest.raises(ValidationError) as exc_info:
            await session_service.record_job_completion(session_id, JobOutcome(actual_cost=1000))

        assert exc_info.value.code == ErrorCode.SCOPE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_learning_metrics(self, session_service, in_memory_firestore, completed_jobs):
        in_memory_firestore.seed_jobs(completed_jobs)

        metrics = await session_service.get_learning_metrics(service_type="HVAC")

        assert metrics["total_jobs"] == 1
        assert metrics["by_service_type"]["HVAC"]["count"] == 1
