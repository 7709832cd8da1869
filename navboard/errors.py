from typing import Optional


class FetchError(Exception):
    """Upstream unreachable, unknown source id, or a malformed page."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.source_id = source_id
        self.status = status


class ConfigError(Exception):
    """A required identifier or credential is missing or malformed."""
