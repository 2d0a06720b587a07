"""
Centralized Logfire configuration for the deck generation service.
"""
import os
from typing import Optional

import logfire

_configured = False


def configure_logfire(token: Optional[str] = None, force: bool = False) -> bool:
    """
    Configure Logfire once per process.

    Args:
        token: Logfire write token (falls back to LOGFIRE_TOKEN env var)
        force: Force reconfiguration even if already configured

    Returns:
        bool: True if Logfire is configured and should receive log records
    """
    global _configured

    if _configured and not force:
        return True

    token = token or os.getenv("LOGFIRE_TOKEN")
    if not token:
        # No token: stdlib logging stays in charge
        return False

    try:
        os.environ.setdefault('LOGFIRE_CONSOLE_NO_SHOW', '1')
        logfire.configure(
            token=token,
            service_name="deck-generation-core",
            service_version=os.getenv("APP_VERSION", "dev"),
            console=False,
        )
        _configured = True
        logfire.info("Logfire configured successfully")
        return True
    except Exception as e:
        print(f"ERROR: Logfire configuration failed: {e}")
        _configured = False
        return False


def is_configured() -> bool:
    """Check if Logfire is configured."""
    return _configured


def instrument_agents() -> bool:
    """Instrument pydantic-ai agents so every model call shows up as a span."""
    if not is_configured():
        return False

    try:
        logfire.instrument_pydantic_ai()
        logfire.info("PydanticAI instrumentation enabled")
        return True
    except Exception as e:
        logfire.warn(f"PydanticAI instrumentation failed: {e}")
        return False
