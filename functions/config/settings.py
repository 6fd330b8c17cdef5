"""Scope estimator configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via Google Cloud Secret Manager (production) or environment variables (emulator).
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (emulator hosts, feature flags, etc.)
load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Secrets (OPENAI_API_KEY) are accessed via the config.secrets module.
    The openai_api_key property delegates to it.
    """

    # LLM Configuration (intent oracle)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))
    classifier_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("CLASSIFIER_TIMEOUT_SECONDS", "15")))
    classifier_max_tokens: int = field(default_factory=lambda: int(os.getenv("CLASSIFIER_MAX_TOKENS", "300")))
    low_confidence_threshold: float = field(default_factory=lambda: float(os.getenv("LOW_CONFIDENCE_THRESHOLD", "0.7")))

    # Estimation Configuration
    urgent_fee_percent: int = field(default_factory=lambda: int(os.getenv("URGENT_FEE_PERCENT", "25")))
    default_hourly_rate_cents: int = field(default_factory=lambda: int(os.getenv("DEFAULT_HOURLY_RATE_CENTS", "7000")))
    precedent_limit: int = field(default_factory=lambda: int(os.getenv("PRECEDENT_LIMIT", "5")))

    # Firebase Configuration
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: os.getenv("USE_FIREBASE_EMULATORS", "false").lower() == "true")
    firestore_emulator_host: str = field(default_factory=lambda: os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8081"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret value (use openai_api_key property instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get OpenAI API key from Secret Manager or environment."""
        if self._openai_api_key is None:
            from config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing or out of range.
        """
        if not self.openai_api_key and not self.use_firebase_emulators:
            raise ValueError("OPENAI_API_KEY is required in production")
        if not 0.0 <= self.low_confidence_threshold <= 1.0:
            raise ValueError("LOW_CONFIDENCE_THRESHOLD must be between 0 and 1")
        if self.urgent_fee_percent < 0:
            raise ValueError("URGENT_FEE_PERCENT must not be negative")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
