"""
Formation registry configuration.
Every setting comes from the environment with a safe local default.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/formations.db")

# Debug flag is also exposed as a function to be dynamic
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Storage backend and logical clock
STORE_PROVIDER = os.getenv("STORE_PROVIDER", "sqlite")  # sqlite|memory
CLOCK_SOURCE = os.getenv("CLOCK_SOURCE", "height")  # height|system

# Logging and audit
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
AUDIT_LEVEL = os.getenv("AUDIT_LEVEL", "standard")  # minimal|standard|verbose

# Principal used by the API when the request names none
DEFAULT_PRINCIPAL = os.getenv("DEFAULT_PRINCIPAL", "default")

# Version string
VERSION = "1.0.0"


def get_db_path():
    """Get the SQLite path, re-reading the environment so tests can redirect it."""
    return os.getenv("DB_PATH", DB_PATH)


def get_store_provider():
    """Get configured store provider (sqlite|memory)."""
    return os.getenv("STORE_PROVIDER", STORE_PROVIDER)


def get_clock_source():
    """Get configured clock source (height|system)."""
    return os.getenv("CLOCK_SOURCE", CLOCK_SOURCE)


def get_default_principal():
    """Get the fallback caller principal for unauthenticated API calls."""
    return os.getenv("DEFAULT_PRINCIPAL", DEFAULT_PRINCIPAL)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def get_store():
    """Get configured formation store implementation."""
    provider = get_store_provider()

    if provider == "sqlite":
        from .store import SQLiteFormationStore
        return SQLiteFormationStore(get_db_path())
    elif provider == "memory":
        from .store import SimpleInMemoryFormationStore
        return SimpleInMemoryFormationStore()
    else:
        # Default to memory store for unknown providers
        from ..util.logging import logger
        from .store import SimpleInMemoryFormationStore
        logger.warning(f"Unknown STORE_PROVIDER '{provider}', using in-memory store")
        return SimpleInMemoryFormationStore()


def get_clock(store):
    """Get configured logical clock for the given store."""
    from .clock import HeightClock, SystemClock

    if get_clock_source() == "system":
        return SystemClock()
    return HeightClock(store)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if get_store_provider() not in ["sqlite", "memory"]:
        issues.append(f"Invalid STORE_PROVIDER: {get_store_provider()}")

    if get_clock_source() not in ["height", "system"]:
        issues.append(f"Invalid CLOCK_SOURCE: {get_clock_source()}")

    if os.getenv("AUDIT_LEVEL", AUDIT_LEVEL) not in ["minimal", "standard", "verbose"]:
        issues.append(f"Invalid AUDIT_LEVEL: {os.getenv('AUDIT_LEVEL', AUDIT_LEVEL)}")

    if not get_default_principal().strip():
        issues.append("DEFAULT_PRINCIPAL must not be empty")

    return issues
