"""
Google Cloud Platform Authentication Utility
============================================

Vertex AI credentials for the text-generation client.

- Local Development: Application Default Credentials
  (`gcloud auth application-default login`)
- Production (Railway): service account JSON from GCP_SERVICE_ACCOUNT_JSON

Production without a service account fails fast instead of silently falling
back to ADC.
"""

import json
from typing import Optional

import vertexai
from google.oauth2 import service_account

from config.settings import Settings, get_settings
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

REQUIRED_SERVICE_ACCOUNT_FIELDS = ('type', 'project_id', 'private_key', 'client_email')

# Global state to track initialization
_vertex_ai_initialized = False


def initialize_vertex_ai(settings: Optional[Settings] = None, force_reinit: bool = False) -> None:
    """
    Initialize Vertex AI once per process.

    Args:
        settings: Settings to read project/location/credentials from
        force_reinit: If True, reinitialize even if already initialized

    Raises:
        RuntimeError: If credentials are unavailable or invalid
    """
    global _vertex_ai_initialized

    if _vertex_ai_initialized and not force_reinit:
        logger.debug("Vertex AI already initialized, skipping")
        return

    settings = settings or get_settings()
    project_id = settings.GCP_PROJECT_ID
    location = settings.GCP_LOCATION
    gcp_json_str = settings.GCP_SERVICE_ACCOUNT_JSON

    if gcp_json_str:
        logger.info("🔐 Initializing Vertex AI with service account (Production mode)")
        try:
            credentials_info = json.loads(gcp_json_str)
        except json.JSONDecodeError as e:
            logger.error(f"FATAL: GCP_SERVICE_ACCOUNT_JSON is not valid JSON: {e}")
            raise RuntimeError(
                "Invalid GCP_SERVICE_ACCOUNT_JSON format. "
                "Ensure you've pasted the complete service account JSON content."
            ) from e

        missing_fields = [f for f in REQUIRED_SERVICE_ACCOUNT_FIELDS if f not in credentials_info]
        if missing_fields:
            raise RuntimeError(f"Service account JSON missing required fields: {missing_fields}")

        try:
            credentials = service_account.Credentials.from_service_account_info(
                credentials_info,
                scopes=['https://www.googleapis.com/auth/cloud-platform']
            )
            vertexai.init(project=project_id, location=location, credentials=credentials)
        except Exception as e:
            logger.error(f"FATAL: Failed to initialize Vertex AI with service account: {e}")
            raise RuntimeError(
                f"Cannot initialize Vertex AI with provided service account credentials: {e}"
            ) from e

        logger.info(
            f"✓ Vertex AI initialized with service account: {credentials_info.get('client_email')}",
            project=project_id,
            location=location,
        )

    elif settings.is_production:
        logger.error("FATAL: Running in production (Railway) but GCP_SERVICE_ACCOUNT_JSON is not set")
        raise RuntimeError(
            "PRODUCTION SECURITY ERROR: GCP_SERVICE_ACCOUNT_JSON must be set in Railway. "
            "Application cannot start without proper credentials."
        )

    else:
        logger.info("🔓 Initializing Vertex AI with ADC (Local development mode)")
        try:
            vertexai.init(project=project_id, location=location)
        except Exception as e:
            logger.error(f"FATAL: Failed to initialize Vertex AI with ADC: {e}")
            logger.error("  Run: gcloud auth application-default login")
            logger.error(f"  Run: gcloud config set project {project_id}")
            raise RuntimeError(
                "Cannot initialize Vertex AI with Application Default Credentials. "
                "Run 'gcloud auth application-default login' first."
            ) from e

        logger.info("✓ Vertex AI initialized with ADC", project=project_id, location=location)

    _vertex_ai_initialized = True


def get_project_info(settings: Optional[Settings] = None) -> dict:
    """
    Get current GCP project configuration.

    Returns:
        Dictionary with project_id, location, and initialization status
    """
    settings = settings or get_settings()
    return {
        "project_id": settings.GCP_PROJECT_ID,
        "location": settings.GCP_LOCATION,
        "initialized": _vertex_ai_initialized,
        "is_production": settings.is_production,
        "has_service_account": bool(settings.GCP_SERVICE_ACCOUNT_JSON),
    }
