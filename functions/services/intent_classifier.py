"""Intent classifier.

Maps a free-text request to service intent, service type and subcategory.
The language model is one IntentOracle implementation; KeywordIntentOracle is
a deterministic one built on the keyword taxonomy, used offline and in tests.

classify() never raises for oracle problems. Failures and timeouts resolve to
the default classification and are reported through the degraded reason.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import structlog
from pydantic import ValidationError as PydanticValidationError

from config.errors import ClassificationDegraded, ErrorCode, LLMError, ValidationError
from config.settings import settings
from models.intent import (
    ClassificationResult,
    DegradedReason,
    IntentClassification,
    ServiceIntent,
)
from services.llm_service import LLMService

logger = structlog.get_logger()

LOW_CONFIDENCE_CLARIFIER = "Can you provide more details about what you need?"


# =============================================================================
# KEYWORD TAXONOMY
# =============================================================================


@dataclass(frozen=True)
class ServicePattern:
    keywords: Tuple[str, ...]
    service_type: str
    subcategory: str
    confidence: float


SERVICE_PATTERNS: Tuple[ServicePattern, ...] = (
    # Plumbing
    ServicePattern(("faucet", "tap", "dripping", "drip"), "Plumbing", "Faucet Repair", 0.9),
    ServicePattern(("leak", "leaking", "pipe", "water damage"), "Plumbing", "Leak Detection", 0.85),
    ServicePattern(("drain", "clog", "blocked", "slow drain"), "Plumbing", "Drain Cleaning", 0.9),
    ServicePattern(("toilet", "running", "flush"), "Plumbing", "Toilet Repair", 0.9),
    # HVAC
    ServicePattern(("ac", "air conditioning", "cooling", "cold"), "HVAC", "AC Repair", 0.9),
    ServicePattern(("heat", "heating", "furnace", "warm"), "HVAC", "Heating Repair", 0.9),
    ServicePattern(("thermostat", "temperature control"), "HVAC", "Thermostat Installation", 0.85),
    # Electrical
    ServicePattern(("outlet", "socket", "plug", "power"), "Electrical", "Outlet Repair", 0.9),
    ServicePattern(("light", "lighting", "fixture", "bulb"), "Electrical", "Light Fixture", 0.85),
    ServicePattern(("switch", "light switch"), "Electrical", "Switch Replacement", 0.9),
    ServicePattern(("panel", "breaker", "circuit"), "Electrical", "Panel Upgrade", 0.9),
    # Landscaping
    ServicePattern(
        ("lawn", "grass", "mow", "mowing", "yard", "cut grass", "cutting grass",
         "lawn care", "yard work", "grass cutting", "trim lawn", "lawn service"),
        "Landscaping", "Lawn Maintenance", 0.9,
    ),
    ServicePattern(("tree", "trim", "pruning", "branch"), "Landscaping", "Tree Trimming", 0.9),
    ServicePattern(("fence", "fencing"), "Landscaping", "Fence Installation", 0.9),
    ServicePattern(("garden", "plant", "mulch", "bed"), "Landscaping", "Garden Maintenance", 0.85),
    # Deck building
    ServicePattern(
        ("deck", "deck building", "build deck", "new deck", "wood deck",
         "composite deck", "patio deck"),
        "Deck Building", "Deck Construction", 0.95,
    ),
    ServicePattern(
        ("deck repair", "deck refinish", "deck stain", "deck seal"),
        "Deck Building", "Deck Maintenance", 0.9,
    ),
    # Carpentry
    ServicePattern(("door", "door frame", "hinge"), "Carpentry", "Door Repair", 0.85),
    ServicePattern(("cabinet", "drawer"), "Carpentry", "Cabinet Repair", 0.85),
    # Painting
    ServicePattern(("paint", "painting", "wall color", "interior paint"), "Painting", "Interior Painting", 0.9),
    ServicePattern(("exterior paint", "house paint", "outside paint"), "Painting", "Exterior Painting", 0.9),
    # Digital services
    ServicePattern(("website", "web app", "web development", "software"), "Digital Services", "Software Development", 0.9),
    ServicePattern(("logo", "design", "graphic", "branding"), "Digital Services", "Graphic Design", 0.9),
    ServicePattern(("ui", "ux", "interface", "user experience"), "Digital Services", "UI/UX Design", 0.9),
)

_INSTALLATION_VERBS = re.compile(
    r"\b(install\w*|build\w*|built|replac\w*|new|add|adding|put in|construct\w*)\b"
)


def _keyword_in(keyword: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


def _matched_keywords(pattern: ServicePattern, text: str) -> Tuple[str, ...]:
    return tuple(kw for kw in pattern.keywords if _keyword_in(kw, text))


def infer_service_intent(text: str) -> ServiceIntent:
    """Installation when the text asks for something new, else service."""
    if _INSTALLATION_VERBS.search(text.lower()):
        return ServiceIntent.INSTALLATION
    return ServiceIntent.SERVICE


def calculate_confidence(text: str, service_type: str) -> float:
    """Pattern confidence scaled by the share of its keywords present.

    Uses the first pattern registered for the service type; unknown service
    types score 0.5.
    """
    pattern = next((p for p in SERVICE_PATTERNS if p.service_type == service_type), None)
    if pattern is None:
        return 0.5
    matched = _matched_keywords(pattern, text.lower())
    return pattern.confidence * len(matched) / len(pattern.keywords)


def normalize_subcategory(service_type: str, subcategory: str) -> str:
    """Map a free-form subcategory onto the canonical taxonomy name.

    "leaking pipe" under Plumbing becomes "Leak Detection". Names already in
    the taxonomy, and names nothing matches, are returned unchanged.
    """
    lowered = subcategory.lower().strip()
    candidates = [p for p in SERVICE_PATTERNS if p.service_type.lower() == service_type.lower()]

    for pattern in candidates:
        if pattern.subcategory.lower() == lowered:
            return pattern.subcategory

    best: Optional[ServicePattern] = None
    best_score = 0
    for pattern in candidates:
        score = sum(len(kw.split()) for kw in _matched_keywords(pattern, lowered))
        if score > best_score:
            best, best_score = pattern, score
    return best.subcategory if best else subcategory


# =============================================================================
# ORACLES
# =============================================================================


class IntentOracle(ABC):
    """Something that can turn request text into an IntentClassification."""

    @abstractmethod
    async def classify(self, text: str) -> IntentClassification:
        """Classify the text. May raise; the caller absorbs failures."""


class KeywordIntentOracle(IntentOracle):
    """Deterministic classification from the keyword taxonomy.

    The best pattern is the one whose matched keywords cover the most words,
    ties going to taxonomy order. A single-keyword hit yields a weaker
    confidence than two or more.
    """

    async def classify(self, text: str) -> IntentClassification:
        return self.classify_sync(text)

    def classify_sync(self, text: str) -> IntentClassification:
        lowered = text.lower()
        best: Optional[ServicePattern] = None
        best_matches: Tuple[str, ...] = ()
        best_score = 0

        for pattern in SERVICE_PATTERNS:
            matches = _matched_keywords(pattern, lowered)
            score = sum(len(kw.split()) for kw in matches)
            if score > best_score:
                best, best_matches, best_score = pattern, matches, score

        intent = infer_service_intent(text)
        if best is None:
            return IntentClassification(
                service_intent=intent,
                reasoning="No service keywords recognized",
            )

        strength = min(1.0, (len(best_matches) + 1) / 3)
        return IntentClassification(
            service_intent=intent,
            service_type=best.service_type,
            subcategory=best.subcategory,
            confidence=round(best.confidence * strength, 4),
            reasoning=f"Matched keywords: {', '.join(best_matches)}",
        )


ROUTER_SYSTEM_PROMPT = """You are an AI Master Router for a service marketplace used by everyday homeowners. Understand casual, everyday language and classify requests into TWO categories:

1. SERVICE INTENT (critical for pricing):
   - "service" = Fix/maintain/repair what already exists (labor-focused, minimal materials)
     Examples: "mow my lawn", "clean my gutters", "fix my faucet", "tune-up HVAC"
   - "installation" = Build/install/replace something new (materials + labor)
     Examples: "build me a deck", "put in a new door", "replace HVAC"

2. SERVICE TYPE (what trade/category):
   Examples: Deck Building, Landscaping, Carpentry, Plumbing, HVAC, Electrical, Painting

Treat everyday variations as the same request:
- "cut my grass" = "mow lawn" = "yard work" -> Landscaping / Lawn Maintenance
- "fix my sink" = "leaky faucet" = "dripping tap" -> Plumbing / Faucet Repair
- "build a deck" = "add a deck" -> Deck Building / Deck Construction

Return JSON with:
{
  "serviceIntent": "service" | "installation",
  "serviceType": "Category name",
  "subcategory": "Specific task",
  "confidence": 0.0-1.0,
  "reasoning": "Brief explanation"
}"""


class LLMIntentOracle(IntentOracle):
    """Classification backed by the language model."""

    def __init__(self, llm_service: Optional[LLMService] = None):
        self._llm = llm_service

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            self._llm = LLMService()
        return self._llm

    async def classify(self, text: str) -> IntentClassification:
        result = await self.llm.generate_json(
            ROUTER_SYSTEM_PROMPT,
            f'Customer request: "{text}"',
            max_tokens=settings.classifier_max_tokens,
        )
        return self.parse_response(result["content"])

    @staticmethod
    def parse_response(payload: Dict[str, Any]) -> IntentClassification:
        """Convert the router's JSON into a classification.

        Missing fields take their defaults; values of the wrong shape raise
        pydantic's ValidationError.
        """
        confidence = payload.get("confidence")
        return IntentClassification(
            service_intent=payload.get("serviceIntent") or ServiceIntent.SERVICE,
            service_type=payload.get("serviceType") or "General",
            subcategory=payload.get("subcategory") or "General Service",
            confidence=0.5 if confidence is None else confidence,
            reasoning=payload.get("reasoning") or "",
        )


# =============================================================================
# CLASSIFIER
# =============================================================================


class IntentClassifier:
    """Runs an oracle and guarantees a usable classification."""

    def __init__(
        self,
        oracle: Optional[IntentOracle] = None,
        timeout_seconds: Optional[float] = None,
        low_confidence_threshold: Optional[float] = None
    ):
        self.oracle = oracle or LLMIntentOracle()
        self.timeout_seconds = timeout_seconds or settings.classifier_timeout_seconds
        self.low_confidence_threshold = (
            low_confidence_threshold
            if low_confidence_threshold is not None
            else settings.low_confidence_threshold
        )

    async def classify(self, text: str) -> ClassificationResult:
        """Classify request text.

        Raises:
            ValidationError: If the text is empty. Oracle failures never raise.
        """
        if text is None or not str(text).strip():
            raise ValidationError(
                "Request text must not be empty",
                field="text",
                code=ErrorCode.EMPTY_REQUEST_TEXT
            )
        text = str(text).strip()

        try:
            classification = await asyncio.wait_for(
                self.oracle.classify(text), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            return self._degraded(DegradedReason.TIMEOUT, f"Oracle exceeded {self.timeout_seconds}s")
        except LLMError as e:
            reason = DegradedReason.TIMEOUT if e.code == ErrorCode.LLM_TIMEOUT else DegradedReason.ORACLE_ERROR
            return self._degraded(reason, e.message)
        except PydanticValidationError as e:
            return self._degraded(DegradedReason.INVALID_RESPONSE, str(e))
        except Exception as e:
            return self._degraded(DegradedReason.ORACLE_ERROR, str(e))

        classification = classification.model_copy(update={
            "subcategory": normalize_subcategory(
                classification.service_type, classification.subcategory
            ),
        })
        if classification.confidence < self.low_confidence_threshold and not classification.clarifier:
            classification = classification.model_copy(update={"clarifier": LOW_CONFIDENCE_CLARIFIER})

        logger.info(
            "intent_classified",
            service_intent=classification.service_intent.value,
            service_type=classification.service_type,
            subcategory=classification.subcategory,
            confidence=classification.confidence,
            needs_clarification=classification.clarifier is not None
        )
        return ClassificationResult(classification=classification)

    def _degraded(self, reason: DegradedReason, message: str) -> ClassificationResult:
        degraded = ClassificationDegraded(reason.value, message)
        logger.warning("intent_classification_degraded", **degraded.to_dict())
        return ClassificationResult(
            classification=IntentClassification.default(reasoning=f"Classification degraded: {reason.value}"),
            degraded_reason=reason,
            degraded_message=message,
        )
