"""Intent classification models.

An IntentClassification is derived per request and never persisted as the
source of truth. ClassificationResult wraps it together with the reason the
default was used, if it was.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ServiceIntent(str, Enum):
    """Whether the customer needs something fixed or something new."""

    SERVICE = "service"
    INSTALLATION = "installation"


class DegradedReason(str, Enum):
    """Why the classifier fell back to the default classification."""

    TIMEOUT = "timeout"
    ORACLE_ERROR = "oracle_error"
    INVALID_RESPONSE = "invalid_response"


DEFAULT_SERVICE_TYPE = "General"
DEFAULT_SUBCATEGORY = "General Service"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_CLARIFIER = "Could you describe in more detail what kind of work you need done?"


class IntentClassification(BaseModel):
    """Service intent, type and subcategory inferred from free text."""

    service_intent: ServiceIntent = Field(default=ServiceIntent.SERVICE)
    service_type: str = Field(default=DEFAULT_SERVICE_TYPE, min_length=1)
    subcategory: str = Field(default=DEFAULT_SUBCATEGORY, min_length=1)
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0, le=1)
    reasoning: str = Field(default="")
    clarifier: Optional[str] = Field(
        default=None,
        description="Disambiguating question to ask before committing to this classification"
    )

    @classmethod
    def default(cls, reasoning: str = "Classification unavailable") -> "IntentClassification":
        """The fallback classification used when the oracle cannot answer."""
        return cls(reasoning=reasoning, clarifier=DEFAULT_CLARIFIER)


class ClassificationResult(BaseModel):
    """A classification plus the degraded reason, when the default was used."""

    classification: IntentClassification
    degraded_reason: Optional[DegradedReason] = None
    degraded_message: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.degraded_reason is not None
