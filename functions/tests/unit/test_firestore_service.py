"""Unit tests for Firestore service."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from google.api_core.exceptions import AlreadyExists

from config.errors import ErrorCode, PersistenceError
from models.completed_job import CompletedJob
from models.questions import Answer


def _doc(data):
    doc = MagicMock()
    doc.to_dict.return_value = data
    return doc


class TestSessions:
    """Tests for session documents."""

    @pytest.mark.asyncio
    async def test_create_session_adds_timestamps(self, mock_firestore_service):
        await mock_firestore_service.create_session("sess-1", {"state": "AWAITING_ANSWERS"})

        doc = mock_firestore_service.db.collection.return_value.document.return_value
        written = doc.set.call_args.args[0]
        assert written["state"] == "AWAITING_ANSWERS"
        assert "createdAt" in written
        assert "updatedAt" in written
        mock_firestore_service.db.collection.assert_called_with("sessions")

    @pytest.mark.asyncio
    async def test_get_session_exists(self, mock_firestore_service):
        """Test getting an existing session."""
        result = await mock_firestore_service.get_session("sess-test")

        assert result == {"id": "sess-test", "state": "AWAITING_ANSWERS"}

    @pytest.mark.asyncio
    async def test_get_session_not_exists(self, mock_firestore_service):
        """Test getting a non-existent session."""
        mock_doc = MagicMock()
        mock_doc.exists = False
        mock_firestore_service.db.collection.return_value.document.return_value.get = AsyncMock(
            return_value=mock_doc
        )

        assert await mock_firestore_service.get_session("sess-missing") is None

    @pytest.mark.asyncio
    async def test_update_session(self, mock_firestore_service):
        """Test updating a session."""
        await mock_firestore_service.update_session("sess-1", {"state": "READY_FOR_SCOPE"})

        update = mock_firestore_service.db.collection.return_value.document.return_value.update
        update.assert_called_once()
        assert update.call_args.args[0]["state"] == "READY_FOR_SCOPE"

    @pytest.mark.asyncio
    async def test_write_failure_raises_persistence_error(self, mock_firestore_service):
        mock_firestore_service.db.collection.return_value.document.return_value.set = AsyncMock(
            side_effect=RuntimeError("unavailable")
        )

        with pytest.raises(PersistenceError) as exc_info:
            await mock_firestore_service.create_session("sess-1", {})

        assert exc_info.value.code == ErrorCode.PERSISTENCE_WRITE_FAILED
        assert exc_info.value.details == {"session_id": "sess-1"}


class TestAnswers:
    """Tests for the append-only answer log."""

    @pytest.mark.asyncio
    async def test_append_answer(self, mock_firestore_service):
        await mock_firestore_service.append_answer(
            "sess-1", Answer(question_id="deck-size", value="12x16"), index=3
        )

        answers = mock_firestore_service.db.collection.return_value.document.return_value.collection
        answers.assert_called_with("answers")
        written = answers.return_value.add.call_args.args[0]
        assert written["question_id"] == "deck-size"
        assert written["value"] == "12x16"
        assert written["index"] == 3
        assert "answeredAt" in written

    @pytest.mark.asyncio
    async def test_list_answers_in_index_order(self, mock_firestore_service):
        query = MagicMock()
        query.stream.return_value = [
            _doc({"question_id": "deck-size", "value": "10x10", "index": 0}),
            _doc({"question_id": "deck-size", "value": "12x16", "index": 1}),
        ]
        answers = mock_firestore_service.db.collection.return_value.document.return_value.collection
        answers.return_value.order_by.return_value = query

        result = await mock_firestore_service.list_answers("sess-1")

        answers.return_value.order_by.assert_called_once_with("index")
        assert [a.value for a in result] == ["10x10", "12x16"]


class TestScopes:
    """Tests for scope documents."""

    @pytest.mark.asyncio
    async def test_save_scope(self, mock_firestore_service):
        await mock_firestore_service.save_scope("sess-1", {"summary": "Fix leak"})

        doc = mock_firestore_service.db.collection.return_value.document.return_value
        written = doc.set.call_args.args[0]
        assert written["summary"] == "Fix leak"
        assert written["sessionId"] == "sess-1"
        mock_firestore_service.db.collection.assert_called_with("scopes")

    @pytest.mark.asyncio
    async def test_get_scope_missing(self, mock_firestore_service):
        mock_doc = MagicMock()
        mock_doc.exists = False
        mock_firestore_service.db.collection.return_value.document.return_value.get = AsyncMock(
            return_value=mock_doc
        )

        assert await mock_firestore_service.get_scope("sess-1") is None


class TestCompletedJobs:
    """Tests for the completed job corpus."""

    def _job(self):
        return CompletedJob(
            session_id="sess-1",
            service_type="Plumbing",
            subcategory="Leak Detection",
            actual_man_hours=2.0,
            actual_cost=20000,
        )

    @pytest.mark.asyncio
    async def test_record_uses_create(self, mock_firestore_service):
        await mock_firestore_service.record_completed_job(self._job())

        collection = mock_firestore_service.db.collection
        collection.assert_called_with("completedJobs")
        collection.return_value.document.assert_called_with("sess-1")
        written = collection.return_value.document.return_value.create.call_args.args[0]
        assert written["actual_cost"] == 20000
        assert isinstance(written["completed_at"], str)

    @pytest.mark.asyncio
    async def test_second_completion_rejected(self, mock_firestore_service):
        mock_firestore_service.db.collection.return_value.document.return_value.create = AsyncMock(
            side_effect=AlreadyExists("exists")
        )

        with pytest.raises(PersistenceError) as exc_info:
            await mock_firestore_service.record_completed_job(self._job())

        assert exc_info.value.code == ErrorCode.JOB_ALREADY_RECORDED

    @pytest.mark.asyncio
    async def test_list_completed_jobs_filters_by_service_type(self, mock_firestore_service):
        query = MagicMock()
        query.stream.return_value = [_doc(self._job().model_dump(mode="json"))]
        collection = mock_firestore_service.db.collection.return_value
        collection.where.return_value = query

        jobs = await mock_firestore_service.list_completed_jobs(service_type="Plumbing")

        field_filter = collection.where.call_args.kwargs["filter"]
        assert field_filter.field_path == "service_type"
        assert field_filter.value == "Plumbing"
        assert len(jobs) == 1
        assert jobs[0].actual_cost == 20000

    @pytest.mark.asyncio
    async def test_list_failure_raises(self, mock_firestore_service):
        mock_firestore_service.db.collection.return_value.stream.side_effect = RuntimeError("down")

        with pytest.raises(PersistenceError):
            await mock_firestore_service.list_completed_jobs()


class TestReferenceRecords:
    """Tests for reference table overrides."""

    @pytest.mark.asyncio
    async def test_list_reference_records(self, mock_firestore_service):
        mock_firestore_service.db.collection.return_value.stream.return_value = [
            _doc({"id": "deck-size"}),
        ]

        records = await mock_firestore_service.list_reference_records("serviceQuestions")

        mock_firestore_service.db.collection.assert_called_with("serviceQuestions")
        assert records == [{"id": "deck-size"}]
