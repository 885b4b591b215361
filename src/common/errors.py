# ABOUTME: Declares the exception hierarchy shared by analytics, content, and storage.
# ABOUTME: Missing data is never an error here; only broken inputs and external failures are.

from __future__ import annotations

from typing import List, Optional


class AnalyticsError(Exception):
    """Base class for all errors raised by this package."""


class JourneyError(AnalyticsError):
    """Raised when a journey violates its ordering or remediation invariants."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations) or "invalid journey")


class ContentParseError(AnalyticsError):
    """Raised when generated content cannot be turned into a question."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class BlockParseError(AnalyticsError):
    """Raised when a content block has an unknown kind or a malformed body."""


class GeneratorError(AnalyticsError):
    """Raised when the content generator cannot be reached or returns nothing."""


class FatalSeedingError(AnalyticsError):
    """Stops a seeding batch; progress saved so far is kept for resuming."""


class DocumentNotFoundError(AnalyticsError):
    def __init__(self, collection: str, doc_id: str, message: Optional[str] = None):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message or f"Document '{doc_id}' not found in '{collection}'")
