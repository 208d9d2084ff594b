"""Runtime settings, loaded from environment variables with constant defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from gmail_declutter.constants import (
    FETCH_CONCURRENCY,
    HISTORY_WINDOW_DAYS,
    HTTP_TIMEOUT,
    PAGE_SIZE,
    REQUESTS_PER_SECOND,
    RETRY_ATTEMPTS,
    SAMPLE_LIMIT,
)

ENV_PREFIX = "GMAIL_DECLUTTER_"


@dataclass
class Settings:
    """Tunables for scanning and cleanup.

    Precedence is CLI option > environment variable > default.  Every field
    can be set from the environment as ``GMAIL_DECLUTTER_<FIELD NAME>``,
    e.g. ``GMAIL_DECLUTTER_FETCH_CONCURRENCY=4``.
    """

    total_limit: int | None = None  # None -> per-category limit
    page_size: int = PAGE_SIZE
    fetch_concurrency: int = FETCH_CONCURRENCY
    requests_per_second: float = REQUESTS_PER_SECOND
    http_timeout: float = HTTP_TIMEOUT
    retry_attempts: int = RETRY_ATTEMPTS
    sample_limit: int = SAMPLE_LIMIT
    history_window_days: int = HISTORY_WINDOW_DAYS

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.fetch_concurrency < 1:
            raise ValueError("fetch_concurrency must be at least 1")
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")

    @classmethod
    def from_env(cls, environ: dict | None = None, **overrides) -> Settings:
        """Build settings from ``environ`` (default ``os.environ``) plus overrides.

        Overrides whose value is None are ignored, so click options that were
        not given fall through to the environment.
        """
        environ = os.environ if environ is None else environ
        values: dict = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = _coerce(f.name, raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


_INT_FIELDS = {"total_limit", "page_size", "fetch_concurrency", "retry_attempts", "sample_limit", "history_window_days"}


def _coerce(name: str, raw: str):
    try:
        if name in _INT_FIELDS:
            return int(raw)
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from exc
