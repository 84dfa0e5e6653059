"""Centralized initialization for all plan_fixtures entry points.

This module provides a single point of initialization for:
- Environment variables (.env loading)
- Generator settings resolution
- Custom builtin registration with the policy engine

Entry points (CLI, library callers) should use ensure_initialized() so the
builtin registry is configured before any case is evaluated.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from plan_fixtures.config import GeneratorSettings
from plan_fixtures.engine.builtins import register_default_builtins

logger = logging.getLogger(__name__)

# Module-level state
_initialized: bool = False
_settings: Optional[GeneratorSettings] = None


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find project root by looking for pyproject.toml or a .env file.

    Args:
        start_path: Starting path for search. Defaults to the working directory.

    Returns:
        Project root directory.
    """
    current = (start_path or Path.cwd()).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists() or (parent / ".env").exists():
            return parent
    return current


def _load_env(project_root: Path) -> bool:
    """Load .env file from project root.

    Existing environment variables take precedence over the file.

    Returns:
        True if .env was loaded, False otherwise.
    """
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded .env from {env_path}")
        return True
    logger.debug(f"No .env found at {env_path}")
    return False


def ensure_initialized(start_path: Optional[Path] = None) -> GeneratorSettings:
    """Ensure the application is initialized (idempotent).

    Loads .env, resolves settings and registers the default custom builtins
    on first call. Subsequent calls return cached settings.

    Returns:
        Current GeneratorSettings.
    """
    global _initialized, _settings

    if _initialized and _settings is not None:
        return _settings

    _load_env(_find_project_root(start_path))
    _settings = GeneratorSettings.from_env()
    register_default_builtins()
    _initialized = True

    return _settings


def reset() -> None:
    """Reset initialization state (for testing)."""
    global _initialized, _settings
    _initialized = False
    _settings = None
