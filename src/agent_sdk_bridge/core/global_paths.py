"""XDG-compliant directory paths for the bridge.

Paths are resolved lazily through platformdirs so that ``XDG_CACHE_HOME`` and
friends are honoured at call time rather than at import time.
"""

from pathlib import Path

from platformdirs import user_cache_dir, user_data_dir

APP_NAME = "agent-sdk-bridge"
SESSION_CACHE_VERSION = "v1"


class GlobalPath:
    """Global path management for bridge directories."""

    @classmethod
    def data(cls) -> str:
        """Application data directory."""
        return user_data_dir(APP_NAME)

    @classmethod
    def log(cls) -> str:
        """Log file directory."""
        return str(Path(cls.data()) / "log")

    @classmethod
    def cache(cls) -> str:
        """Cache directory."""
        return user_cache_dir(APP_NAME)

    @classmethod
    def session_cache(cls) -> str:
        """Root of the durable incoming-session cache."""
        return str(Path(cls.cache()) / "session-join" / SESSION_CACHE_VERSION)
