"""Data security utilities for PII handling.

Entity values (emails, phone numbers, SSNs, card numbers) are PII.
These utilities enforce restrictive file/directory permissions
and keep raw values out of log entries.
"""

import hashlib
import os
from pathlib import Path


def secure_directory(path: Path, mode: int = 0o700) -> None:
    """Create directory with restrictive permissions. Creates parent dirs if needed."""
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, mode)


def secure_file(path: Path, mode: int = 0o600) -> None:
    """Set restrictive permissions on a file."""
    if path.exists():
        os.chmod(path, mode)


def redact_value(value: str) -> str:
    """Return a log-safe stand-in for an entity value.

    Keeps the length and a short digest so repeated values can be
    correlated across log lines without exposing the value itself.
    """
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]
    return f"<{len(value)} chars #{digest}>"


def sanitize_log_entry(command: str, duration_ms: float, success: bool) -> str:
    """Create a sanitized log entry for a command invocation.

    Logs command name and timing but NOT input/output content.
    """
    status = "OK" if success else "FAIL"
    return f"[command] {command} {status} {duration_ms:.1f}ms"
