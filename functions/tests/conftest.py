"""Pytest configuration and shared fixtures for scope estimator tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (config/, models/, services/, utils/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from services...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture(autouse=True)
def emulator_environment(monkeypatch):
    """Run every test in emulator mode so secrets come from the environment."""
    from config.secrets import clear_secret_cache
    from config.settings import settings

    monkeypatch.setenv("FUNCTIONS_EMULATOR", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-api-key")
    monkeypatch.setattr(settings, "_openai_api_key", None)
    clear_secret_cache()
    yield
    clear_secret_cache()


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client."""
    client = MagicMock()

    collection_mock = MagicMock()
    document_mock = MagicMock()

    # client.collection().document()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock

    document_mock.get = AsyncMock(return_value=MagicMock(
        exists=True,
        id="sess-test",
        to_dict=lambda: {"state": "AWAITING_ANSWERS"}
    ))
    document_mock.set = AsyncMock()
    document_mock.update = AsyncMock()
    document_mock.create = AsyncMock()

    # sessions/{id}/answers
    subcollection_mock = MagicMock()
    document_mock.collection.return_value = subcollection_mock
    subcollection_mock.add = AsyncMock()

    return client


@pytest.fixture
def mock_firestore_service(mock_firestore_client):
    """FirestoreService over the mocked client."""
    from services.firestore_service import FirestoreService

    return FirestoreService(db=mock_firestore_client)


@pytest.fixture
def in_memory_firestore():
    """In-memory stand-in for FirestoreService."""
    from tests.fixtures.in_memory_store import InMemoryFirestore

    return InMemoryFirestore()


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content="Mock response content",
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """LLMService whose ChatOpenAI client is mocked."""
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key", timeout_seconds=5)
        service._client = mock_chat_openai
        return service


# ============================================================================
# Pipeline Fixtures
# ============================================================================

@pytest.fixture
def keyword_classifier():
    """Classifier running the deterministic keyword oracle."""
    from services.intent_classifier import IntentClassifier, KeywordIntentOracle

    return IntentClassifier(
        oracle=KeywordIntentOracle(),
        timeout_seconds=1,
        low_confidence_threshold=0.7
    )


@pytest.fixture
def session_service(in_memory_firestore, keyword_classifier):
    """SessionService over in-memory persistence and seeded reference tables."""
    from services.question_selector import QuestionBank
    from services.scope_orchestrator import ScopeOrchestrator
    from services.session_service import SessionService

    return SessionService(
        firestore_service=in_memory_firestore,
        classifier=keyword_classifier,
        question_bank=QuestionBank(),
        orchestrator=ScopeOrchestrator(urgent_fee_percent=25, precedent_limit=5)
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def sample_session_id():
    """Sample session ID."""
    return "sess-test-12345"


@pytest.fixture
def leak_request():
    """Plumbing leak request in Dallas."""
    from models.service_request import ServiceRequest

    return ServiceRequest(
        description="I need a plumber to fix a leaking pipe under my kitchen sink",
        address="456 Oak Street, Dallas, TX 75201",
    )


@pytest.fixture
def leak_classification():
    """Classification the keyword oracle produces for the leak request."""
    from models.intent import IntentClassification, ServiceIntent

    return IntentClassification(
        service_intent=ServiceIntent.SERVICE,
        service_type="Plumbing",
        subcategory="Leak Detection",
        confidence=0.85,
        reasoning="Matched keywords: leaking, pipe",
    )


@pytest.fixture
def completed_jobs():
    """Historical completed jobs for precedent matching."""
    from tests.fixtures.completed_jobs import build_completed_jobs

    return build_completed_jobs()
