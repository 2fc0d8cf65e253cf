"""
Result bookkeeping for a build: per-file reports, the run-level accumulator
and the single-assignment cell holding the global post list.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .errors import CellAlreadyAssignedError, CellNotAssignedError, ContentError


@dataclass
class ContentIssue:
    """An error or warning attached to a content file."""
    path: str
    message: str
    position: Optional[int] = None

    def __str__(self):
        if self.position is not None:
            return f"{self.path} (position {self.position}): {self.message}"
        return f"{self.path}: {self.message}"


@dataclass
class FileReport:
    """Warnings and the fatal error, if any, collected while processing one file."""
    path: str
    warnings: List[ContentIssue] = field(default_factory=list)
    error: Optional[ContentIssue] = None

    def warning(self, message, position=None):
        issue = ContentIssue(self.path, message, position)
        self.warnings.append(issue)
        logging.getLogger('ContentProcessor').warning(str(issue))

    def fail(self, exc):
        """Record the exception that stopped processing of this file."""
        position = exc.position if isinstance(exc, ContentError) else None
        message = exc.message if isinstance(exc, ContentError) else str(exc)
        self.error = ContentIssue(self.path, message, position)
        logging.getLogger('ContentProcessor').error(str(self.error))

    @property
    def failed(self):
        return self.error is not None


class ContentResult:
    """Accumulates errors and warnings for a whole run without aborting it."""

    def __init__(self):
        self.errors: List[ContentIssue] = []
        self.warnings: List[ContentIssue] = []
        self.generated = 0
        self.failed = 0

    def add(self, report: FileReport, generated=False):
        """Merge a finished file report into the run result."""
        self.warnings.extend(report.warnings)
        if report.failed:
            self.errors.append(report.error)
            self.failed += 1
        elif generated:
            self.generated += 1

    @property
    def has_errors(self):
        return bool(self.errors)

    def summary(self):
        return (f"Generated {self.generated} files, {self.failed} failed, "
                f"{len(self.warnings)} warnings.")


class OnceCell:
    """A value that can be assigned exactly once and read only afterwards."""

    def __init__(self):
        self._value = None
        self._assigned = False

    def set(self, value: Any):
        if self._assigned:
            raise CellAlreadyAssignedError("Cell has already been assigned.")
        self._value = value
        self._assigned = True

    def get(self) -> Any:
        if not self._assigned:
            raise CellNotAssignedError("Cell was read before it was assigned.")
        return self._value

    @property
    def is_set(self):
        return self._assigned
