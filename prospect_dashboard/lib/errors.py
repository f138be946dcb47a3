"""
Custom error classes for the prospect dashboard.
Structured error handling with error codes across all modules.

Hierarchy:
    DashboardError
    ├── ConfigurationError
    ├── SourceUnavailable
    │   ├── SourceAuthError
    │   └── SourceTimeoutError
    └── OutputWriteError
"""


class DashboardError(Exception):
    """Base exception for all prospect dashboard errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class ConfigurationError(DashboardError):
    """Required settings are missing or unusable. Raised before any network call."""

    def __init__(self, message: str, missing: list = None):
        self.missing = list(missing or [])
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"missing": self.missing},
        )


# --- Source Errors ---

class SourceUnavailable(DashboardError):
    """The Notion API rejected or failed a page request."""

    def __init__(self, message: str, code: str = "SOURCE_UNAVAILABLE",
                 status_code: int = None, url: str = None, **kwargs):
        self.status_code = status_code
        self.url = url
        details = {"status_code": status_code, "url": url, **kwargs}
        super().__init__(message, code=code, details=details)


class SourceAuthError(SourceUnavailable):
    """Authentication or authorization failure (bad token, database not shared)."""

    def __init__(self, url: str, status_code: int = 401, reason: str = ""):
        msg = f"Authentication failed: {url}"
        if reason:
            msg += f" ({reason})"
        super().__init__(
            msg, code="SOURCE_AUTH_FAILED", url=url, status_code=status_code,
        )


class SourceTimeoutError(SourceUnavailable):
    """Request timed out."""

    def __init__(self, url: str, timeout: float):
        super().__init__(
            f"Request timed out after {timeout}s: {url}",
            code="SOURCE_TIMEOUT", url=url, timeout=timeout,
        )


# --- Output Errors ---

class OutputWriteError(DashboardError):
    """The dashboard (or metrics dump) could not be written."""

    def __init__(self, path: str, cause: Exception = None):
        msg = f"Failed to write {path}"
        if cause:
            msg += f": {cause}"
        super().__init__(
            msg, code="OUTPUT_WRITE_FAILED", details={"path": str(path)},
        )
