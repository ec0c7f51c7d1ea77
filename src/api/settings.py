"""Service settings, loaded from the environment on first use and cached."""

from __future__ import annotations

from typing import Optional

from src.common.config import LeaveSettings, load_leave_settings

_settings: Optional[LeaveSettings] = None


def get_settings() -> LeaveSettings:
    """Get or load the service settings singleton.

    Raises:
        ConfigError: If the environment holds an invalid value.
    """
    global _settings
    if _settings is None:
        _settings = load_leave_settings()
    return _settings
