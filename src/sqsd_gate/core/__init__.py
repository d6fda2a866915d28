"""sqsd-gate core module.

Shared components used across the service:
- Configuration management
- Container probe
"""

from sqsd_gate.core.config import (
    ConfigValidationError,
    ConsumerSettings,
    Environment,
    Settings,
    validate_settings,
)
from sqsd_gate.core.container import ContainerInfo, detect_container
from sqsd_gate.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "ConfigValidationError",
    "ConsumerSettings",
    "ContainerInfo",
    "Environment",
    "Settings",
    "clear_settings_cache",
    "detect_container",
    "get_settings",
    "get_settings_safe",
    "validate_settings",
]
