# services/exceptions.py
from typing import Any, Optional


class CatalogException(Exception):
    """Base class for read-path errors"""
    def __init__(self, message: str, error_code: str = "CATALOG_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class SearchUnavailableError(CatalogException):
    """Search engine is not reachable for this service instance"""
    def __init__(self, operation: str, details: Optional[dict[str, Any]] = None):
        message = f"Search engine unavailable for '{operation}'"
        super().__init__(message, "SEARCH_ENGINE_UNAVAILABLE", details or {"operation": operation})


class SearchQueryError(CatalogException):
    """The selected backend rejected or failed a query"""
    def __init__(self, backend: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"{backend} query failed: {reason}"
        super().__init__(message, "SEARCH_QUERY_FAILED", details or {"backend": backend, "reason": reason})


class CacheConnectionError(CatalogException):
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to reach cache store: {reason}"
        super().__init__(message, "CACHE_CONNECTION_ERROR", details)

