"""
Skool Member Sync - Configuration Management

Centralized configuration for environment variables and deployment settings.
This module ensures:
- No hardcoded secrets
- No missing Firebase credentials in production
- Environment-specific settings (dev/staging/prod)
"""

from typing import Dict, List
from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("firebase", "memory")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== FIREBASE ====================
    FIREBASE_PROJECT_ID: str = Field(
        default="",
        description="Firebase project ID (required)"
    )
    FIREBASE_CLIENT_EMAIL: str = Field(
        default="",
        description="Service account client email (required)"
    )
    FIREBASE_PRIVATE_KEY: str = Field(
        default="",
        description="Service account private key, newlines may be escaped as \\n (required)"
    )
    FIREBASE_DATABASE_URL: str = Field(
        default="https://podclub-bdcc9-default-rtdb.firebaseio.com",
        description="Firebase database endpoint"
    )
    PROFILE_COLLECTION: str = Field(
        default="users",
        description="Firestore collection holding member profiles"
    )
    STORE_BACKEND: str = Field(
        default="firebase",
        description="Member store backend: firebase or memory (local development only)"
    )

    # ==================== OBSERVABILITY ====================
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )

    # ==================== API ====================
    API_TITLE: str = Field(
        default="Skool Member Sync",
        description="API title for OpenAPI docs"
    )
    API_VERSION: str = Field(
        default="1.0.0",
        description="API version"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    @property
    def firebase_configured(self) -> bool:
        return bool(self.FIREBASE_PROJECT_ID and self.FIREBASE_CLIENT_EMAIL and self.FIREBASE_PRIVATE_KEY)

    def firebase_credentials(self) -> Dict[str, str]:
        """
        Service account mapping for firebase_admin.credentials.Certificate.

        Hosting platforms usually store the PEM key on a single line with
        literal \\n sequences, so those are turned back into newlines.
        """
        return {
            "type": "service_account",
            "project_id": self.FIREBASE_PROJECT_ID,
            "client_email": self.FIREBASE_CLIENT_EMAIL,
            "private_key": self.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration for production deployment.
        Returns list of validation errors.
        """
        errors = []

        if self.STORE_BACKEND not in STORE_BACKENDS:
            errors.append(f"STORE_BACKEND must be one of: {', '.join(STORE_BACKENDS)}")

        if self.STORE_BACKEND == "firebase":
            if not self.FIREBASE_PROJECT_ID:
                errors.append("FIREBASE_PROJECT_ID is required")
            if not self.FIREBASE_CLIENT_EMAIL:
                errors.append("FIREBASE_CLIENT_EMAIL is required")
            if not self.FIREBASE_PRIVATE_KEY:
                errors.append("FIREBASE_PRIVATE_KEY is required")
            elif "PRIVATE KEY" not in self.FIREBASE_PRIVATE_KEY:
                errors.append("FIREBASE_PRIVATE_KEY does not look like a PEM private key")

        # Production-specific checks
        if self.is_production:
            if self.STORE_BACKEND == "memory":
                errors.append("STORE_BACKEND cannot be 'memory' in production")

            if self.DEBUG:
                errors.append("DEBUG should be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")
    logger.info(f"Store backend: {settings.STORE_BACKEND}")

    # Validate in production
    if settings.is_production:
        errors = settings.validate_production_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings


# ==================== ENVIRONMENT VALIDATION ====================

def validate_environment() -> dict:
    """
    Validate all required environment variables.

    Returns a status dict with validation results.
    """
    settings = get_settings()

    status = {
        "valid": True,
        "environment": settings.ENVIRONMENT,
        "errors": [],
        "warnings": [],
        "variables": {}
    }

    required_vars = [
        ("FIREBASE_PROJECT_ID", settings.FIREBASE_PROJECT_ID),
        ("FIREBASE_CLIENT_EMAIL", settings.FIREBASE_CLIENT_EMAIL),
        ("FIREBASE_PRIVATE_KEY", settings.FIREBASE_PRIVATE_KEY),
    ]

    for name, value in required_vars:
        if value:
            status["variables"][name] = "✓ Set"
        else:
            status["variables"][name] = "✗ Not set"

    optional_vars = [
        ("SENTRY_DSN", settings.SENTRY_DSN, "Error tracking disabled"),
    ]

    for name, value, warning in optional_vars:
        if not value:
            status["warnings"].append(warning)
            status["variables"][name] = "⚠ Not set"
        else:
            status["variables"][name] = "✓ Set"

    if settings.STORE_BACKEND == "memory":
        status["warnings"].append("In-memory member store active, data is lost on restart")

    errors = settings.validate_production_config()
    if errors:
        status["errors"].extend(errors)
        status["valid"] = False

    return status
