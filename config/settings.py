# settings.py — Runtime settings & logging setup
# Environment-driven configuration passed explicitly to components
"""
settings.py — Application Settings

All runtime configuration is read once from the environment into a
Settings value, which callers pass down explicitly (the API key included).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


# =============================================================================
# CONSTANTS
# =============================================================================

INSIGHT_SOURCES = ("local", "remote", "auto")
DEFAULT_INSIGHT_SOURCE = "local"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass
class Settings:
    """Runtime configuration."""
    groq_api_key: str = ""
    insight_source: str = DEFAULT_INSIGHT_SOURCE
    ollama_base_url: str = "http://localhost:11434"
    llm_model: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL


def normalize_insight_source(source: str | None) -> str:
    """
    Sanitize an insight source value.

    Returns:
        One of: "local", "remote", "auto"
    """
    if not source:
        return DEFAULT_INSIGHT_SOURCE

    source = str(source).lower().strip()
    return source if source in INSIGHT_SOURCES else DEFAULT_INSIGHT_SOURCE


def load_settings(environ: dict | None = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (for tests)
    """
    env = os.environ if environ is None else environ

    return Settings(
        groq_api_key=env.get("GROQ_API_KEY", "").strip(),
        insight_source=normalize_insight_source(env.get("DATALENS_INSIGHT_SOURCE")),
        ollama_base_url=env.get("OLLAMA_BASE_URL", "http://localhost:11434"),
        llm_model=env.get("DATALENS_LLM_MODEL") or None,
        log_level=env.get("DATALENS_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )


# =============================================================================
# LOGGING
# =============================================================================

def configure_logging(level: str | int = DEFAULT_LOG_LEVEL) -> None:
    """Install a single stream handler on the root logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    if not any(getattr(h, "_datalens", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._datalens = True
        root.addHandler(handler)
    root.setLevel(level)
