# valuebets/core/errors.py
from __future__ import annotations

from typing import Optional

BODY_SNIPPET = 200


class SourceUnavailable(RuntimeError):
    """Upstream API answered with a non-success status, failed at transport level, or is not configured."""

    def __init__(self, source: str, message: str, *, status: Optional[int] = None, body: str = "", host: Optional[str] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
        self.status = status
        self.body = body[:BODY_SNIPPET] if body else ""
        self.host = host


class MissingCredentials(SourceUnavailable):
    """The provider key is not configured; no request was made."""

    def __init__(self, source: str, env_var: str):
        super().__init__(source, f"Missing {env_var} env var")
        self.env_var = env_var


class MalformedCache(ValueError):
    """Stored cache content could not be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"cache entry {key!r} is malformed: {reason}")
        self.key = key
