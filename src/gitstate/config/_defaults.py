"""Default configuration values.

This module defines the built-in default configuration values that are used
when no other configuration sources provide values.
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "logging": {
        "level": "info",
        "format": "json",
        "file": "",
    },
    "network": {
        "timeout": 60.0,
        "max_retries": 1,
        "backoff_base": 0.5,
        "backoff_max": 5.0,
    },
    "serializer": {
        "max_pending": 64,
    },
    "history": {
        "default_max_count": 50,
    },
    "author": {
        "name": "",
        "email": "",
    },
}
