"""
Environment variable validation.

This module validates that the services the process is about to construct
are properly configured before the application starts accepting requests.
Errors are fatal; warnings describe features that degrade gracefully.
"""

from typing import List, Tuple

from reelrecall.core.config import Settings, settings as default_settings
from reelrecall.core.exceptions import ConfigurationError
from reelrecall.core.logging import get_logger

logger = get_logger(__name__)


def _looks_like_placeholder(value: str) -> bool:
    lowered = value.lower()
    return "your-" in lowered or "change" in lowered or "example" in lowered


def validate_embedding_settings(settings: Settings) -> List[str]:
    """
    Validate embedding provider configuration.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if not settings.OPENAI_API_KEY:
        errors.append("OPENAI_API_KEY is not set - embeddings cannot be generated")
    elif _looks_like_placeholder(settings.OPENAI_API_KEY):
        errors.append("OPENAI_API_KEY appears to be a placeholder - update with real API key")

    if settings.EMBEDDING_DIMENSION <= 0:
        errors.append("EMBEDDING_DIMENSION must be positive")

    if settings.EMBEDDING_RATE_LIMIT_REQUESTS < 1:
        errors.append("EMBEDDING_RATE_LIMIT_REQUESTS must be at least 1")

    return errors


def validate_vector_store_settings(settings: Settings) -> List[str]:
    """
    Validate vector store configuration.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if settings.VECTOR_DB_TYPE == "pinecone":
        if not settings.PINECONE_API_KEY:
            errors.append("PINECONE_API_KEY is not set but VECTOR_DB_TYPE is 'pinecone'")
        if not settings.PINECONE_INDEX_NAME:
            errors.append("PINECONE_INDEX_NAME is not set")

    if not 1 <= settings.PINECONE_UPSERT_BATCH_SIZE <= 100:
        errors.append("PINECONE_UPSERT_BATCH_SIZE must be between 1 and 100")

    return errors


def validate_retrieval_settings(settings: Settings) -> List[str]:
    """
    Validate chunking and retrieval tunables.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if settings.CHUNK_VISUAL_BYTE_BUDGET < 1024:
        errors.append("CHUNK_VISUAL_BYTE_BUDGET must be at least 1024 bytes")

    if not 1 <= settings.RAG_RERANK_CAP <= 5:
        errors.append("RAG_RERANK_CAP must be between 1 and 5")

    if settings.RAG_OVERFETCH_FACTOR < 1:
        errors.append("RAG_OVERFETCH_FACTOR must be at least 1")

    if settings.QUEUE_MAX_ATTEMPTS < 1:
        errors.append("QUEUE_MAX_ATTEMPTS must be at least 1")

    return errors


def collect_warnings(settings: Settings) -> List[str]:
    """Describe optional collaborators that are not configured."""
    warnings = []

    if not settings.ANTHROPIC_API_KEY:
        warnings.append(
            "ANTHROPIC_API_KEY not set - query enhancement falls back to plain tokenization"
        )

    if not settings.MESSAGE_WEBHOOK_URL:
        warnings.append("MESSAGE_WEBHOOK_URL not set - user notifications are only logged")

    if not settings.VIDEO_ANALYSIS_URL:
        warnings.append(
            "VIDEO_ANALYSIS_URL not set - submissions must include a precomputed analysis"
        )

    if settings.VECTOR_DB_TYPE == "memory" and settings.is_production:
        warnings.append("VECTOR_DB_TYPE is 'memory' in production - records are lost on restart")

    return warnings


def validate_environment(settings: Settings = None) -> Tuple[bool, List[str]]:
    """
    Validate all environment variables.

    Returns:
        (is_valid, list_of_errors)
    """
    settings = settings or default_settings

    logger.info(
        "validating_environment",
        app_env=settings.APP_ENV,
        app_name=settings.APP_NAME,
        vector_db_type=settings.VECTOR_DB_TYPE,
    )

    all_errors = []
    all_errors.extend(validate_embedding_settings(settings))
    all_errors.extend(validate_vector_store_settings(settings))
    all_errors.extend(validate_retrieval_settings(settings))

    for warning in collect_warnings(settings):
        logger.warning("environment_validation_warning", message=warning)

    if all_errors:
        logger.error(
            "environment_validation_failed",
            errors=all_errors,
            error_count=len(all_errors),
        )
        return False, all_errors

    logger.info(
        "environment_validation_successful",
        app_env=settings.APP_ENV,
        features_enabled={
            "query_enhancement": bool(settings.ANTHROPIC_API_KEY),
            "notifications": bool(settings.MESSAGE_WEBHOOK_URL),
            "video_analysis": bool(settings.VIDEO_ANALYSIS_URL),
        },
    )
    return True, []


def validate_or_raise(settings: Settings = None) -> None:
    """
    Validate environment and raise if validation fails.

    This should be called during application startup.

    Raises:
        ConfigurationError: One or more settings are invalid
    """
    is_valid, errors = validate_environment(settings)

    if not is_valid:
        logger.critical("startup_aborted_invalid_environment", errors=errors)
        raise ConfigurationError(
            "Environment validation failed: " + "; ".join(errors),
            details={"errors": errors},
        )

    logger.info("environment_validation_passed")
