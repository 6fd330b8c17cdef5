"""Firestore service for the scope estimator.

Persists sessions, their append-only answer logs, generated scopes and
completed jobs, and reads optional overrides of the reference tables.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
import inspect
import structlog

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1.base_query import FieldFilter

from config.errors import PersistenceError, ErrorCode
from models.completed_job import CompletedJob
from models.questions import Answer

logger = structlog.get_logger()


class FirestoreService:
    """Service for Firestore operations.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    Every failure is raised as PersistenceError; nothing is retried here.
    """

    COLLECTION_SESSIONS = "sessions"
    COLLECTION_SCOPES = "scopes"
    COLLECTION_COMPLETED_JOBS = "completedJobs"
    COLLECTION_PRODUCTION_STANDARDS = "productionStandards"
    COLLECTION_SERVICE_QUESTIONS = "serviceQuestions"
    SUBCOLLECTION_ANSWERS = "answers"

    def __init__(self, db=None):
        """Initialize FirestoreService.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def create_session(self, session_id: str, data: Dict[str, Any]) -> None:
        """Create a session document.

        Raises:
            PersistenceError: If the write fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_SESSIONS).document(session_id)
            await self._maybe_await(doc_ref.set({
                **data,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }))
            logger.info("session_created", session_id=session_id)
        except Exception as e:
            logger.error("firestore_session_create_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to create session: {str(e)}",
                code=ErrorCode.PERSISTENCE_WRITE_FAILED,
                details={"session_id": session_id}
            )

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a session document, or None if it does not exist."""
        try:
            doc_ref = self.db.collection(self.COLLECTION_SESSIONS).document(session_id)
            doc = await self._maybe_await(doc_ref.get())
            if doc.exists:
                return {"id": doc.id, **(doc.to_dict() or {})}
            return None
        except Exception as e:
            logger.error("firestore_session_get_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to get session: {str(e)}",
                details={"session_id": session_id}
            )

    async def update_session(self, session_id: str, data: Dict[str, Any]) -> None:
        """Update fields on a session document."""
        try:
            doc_ref = self.db.collection(self.COLLECTION_SESSIONS).document(session_id)
            data["updatedAt"] = firestore.SERVER_TIMESTAMP
            await self._maybe_await(doc_ref.update(data))
            logger.info("session_updated", session_id=session_id, fields=list(data.keys()))
        except Exception as e:
            logger.error("firestore_session_update_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to update session: {str(e)}",
                code=ErrorCode.PERSISTENCE_WRITE_FAILED,
                details={"session_id": session_id}
            )

    # -------------------------------------------------------------------------
    # Answers (append-only)
    # -------------------------------------------------------------------------

    async def append_answer(self, session_id: str, answer: Answer, index: int) -> None:
        """Append an answer to the session's answer log.

        Args:
            session_id: The session document ID.
            answer: The answer to record.
            index: Position in the log; later entries supersede earlier ones.
        """
        try:
            coll_ref = (
                self.db
                .collection(self.COLLECTION_SESSIONS)
                .document(session_id)
                .collection(self.SUBCOLLECTION_ANSWERS)
            )
            await self._maybe_await(coll_ref.add({
                **answer.model_dump(),
                "index": index,
                "answeredAt": datetime.now(timezone.utc),
            }))
            logger.info("answer_appended", session_id=session_id, question_id=answer.question_id, index=index)
        except Exception as e:
            logger.error("firestore_answer_append_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to record answer: {str(e)}",
                code=ErrorCode.PERSISTENCE_WRITE_FAILED,
                details={"session_id": session_id, "question_id": answer.question_id}
            )

    async def list_answers(self, session_id: str) -> List[Answer]:
        """Read the session's answer log in append order."""
        try:
            query = (
                self.db
                .collection(self.COLLECTION_SESSIONS)
                .document(session_id)
                .collection(self.SUBCOLLECTION_ANSWERS)
                .order_by("index")
            )
            return [
                Answer(question_id=data["question_id"], value=data.get("value", ""))
                for data in (doc.to_dict() or {} for doc in query.stream())
            ]
        except Exception as e:
            logger.error("firestore_answers_list_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to list answers: {str(e)}",
                details={"session_id": session_id}
            )

    # -------------------------------------------------------------------------
    # Scopes
    # -------------------------------------------------------------------------

    async def save_scope(self, session_id: str, scope: Dict[str, Any]) -> None:
        """Store the latest generated scope for a session, replacing any earlier one."""
        try:
            doc_ref = self.db.collection(self.COLLECTION_SCOPES).document(session_id)
            await self._maybe_await(doc_ref.set({
                **scope,
                "sessionId": session_id,
                "generatedAt": firestore.SERVER_TIMESTAMP,
            }))
            logger.info("scope_saved", session_id=session_id)
        except Exception as e:
            logger.error("firestore_scope_save_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to save scope: {str(e)}",
                code=ErrorCode.PERSISTENCE_WRITE_FAILED,
                details={"session_id": session_id}
            )

    async def get_scope(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Fetch the latest scope for a session, or None."""
        try:
            doc = await self._maybe_await(
                self.db.collection(self.COLLECTION_SCOPES).document(session_id).get()
            )
            return doc.to_dict() if doc.exists else None
        except Exception as e:
            logger.error("firestore_scope_get_failed", session_id=session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to get scope: {str(e)}",
                details={"session_id": session_id}
            )

    # -------------------------------------------------------------------------
    # Completed jobs
    # -------------------------------------------------------------------------

    async def record_completed_job(self, job: CompletedJob) -> None:
        """Append a completed job. One job per session; a second write is rejected.

        Raises:
            PersistenceError: JOB_ALREADY_RECORDED if the session already has
                a completed job, PERSISTENCE_WRITE_FAILED otherwise.
        """
        doc_ref = self.db.collection(self.COLLECTION_COMPLETED_JOBS).document(job.session_id)
        try:
            await self._maybe_await(doc_ref.create(job.model_dump(mode="json")))
        except AlreadyExists:
            logger.warning("completed_job_already_recorded", session_id=job.session_id)
            raise PersistenceError(
                message=f"Job for session {job.session_id} is already recorded",
                code=ErrorCode.JOB_ALREADY_RECORDED,
                details={"session_id": job.session_id}
            )
        except Exception as e:
            logger.error("firestore_completed_job_failed", session_id=job.session_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to record completed job: {str(e)}",
                code=ErrorCode.PERSISTENCE_WRITE_FAILED,
                details={"session_id": job.session_id}
            )
        logger.info("completed_job_recorded", session_id=job.session_id)

    async def list_completed_jobs(
        self,
        service_type: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[CompletedJob]:
        """List completed jobs, optionally for one service type."""
        try:
            query = self.db.collection(self.COLLECTION_COMPLETED_JOBS)
            if service_type is not None:
                query = query.where(filter=FieldFilter("service_type", "==", service_type))
            if limit is not None:
                query = query.limit(int(limit))
            return [CompletedJob.model_validate(doc.to_dict() or {}) for doc in query.stream()]
        except Exception as e:
            logger.error("firestore_completed_jobs_list_failed", service_type=service_type, error=str(e))
            raise PersistenceError(
                message=f"Failed to list completed jobs: {str(e)}",
                details={"service_type": service_type}
            )

    # -------------------------------------------------------------------------
    # Reference data overrides
    # -------------------------------------------------------------------------

    async def list_reference_records(self, collection: str) -> List[Dict[str, Any]]:
        """Read all documents of a reference collection."""
        try:
            return [doc.to_dict() or {} for doc in self.db.collection(collection).stream()]
        except Exception as e:
            logger.error("firestore_reference_list_failed", collection=collection, error=str(e))
            raise PersistenceError(
                message=f"Failed to read {collection}: {str(e)}",
                details={"collection": collection}
            )
