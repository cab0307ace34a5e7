# alarm_backup/services/outcome.py
"""
Per-step outcomes for the alarm orchestrator.
Each pipeline step reports OK / FATAL / RECOVERABLE; the orchestrator
branches on the status, not on exception classes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from alarm_backup.exceptions import ConfigurationError, PipelineError, ValidationError


class StepStatus(str, Enum):
    OK = "ok"
    FATAL = "fatal"
    RECOVERABLE = "recoverable"


@dataclass(frozen=True)
class StepOutcome:
    status: StepStatus
    value: Any = None
    error: Optional[Exception] = None
    reason: Optional[str] = None   # dead-letter FailureReason for recoverable steps

    @classmethod
    def ok(cls, value: Any = None) -> "StepOutcome":
        return cls(StepStatus.OK, value=value)

    @classmethod
    def fatal(cls, error: Exception) -> "StepOutcome":
        return cls(StepStatus.FATAL, error=error)

    @classmethod
    def recoverable(cls, error: Exception, reason: str) -> "StepOutcome":
        return cls(StepStatus.RECOVERABLE, error=error, reason=reason)

    def raise_if_fatal(self):
        if self.status is not StepStatus.FATAL:
            return
        if isinstance(self.error, PipelineError):
            raise self.error
        raise PipelineError(str(self.error)) from self.error


class ProcessingOutcome(str, Enum):
    SUCCESS = "success"
    SUCCESS_DEGRADED = "success_degraded"       # event stored, video missing
    VALIDATION_FAILURE = "validation_failure"
    CONFIGURATION_FAILURE = "configuration_failure"
    PROCESSING_FAILURE = "processing_failure"       # event storage or unexpected error


@dataclass(frozen=True)
class ProcessingResult:
    outcome: ProcessingOutcome
    trigger: Any = None
    event_key: Optional[str] = None
    video_key: Optional[str] = None
    message: Optional[str] = None
    failure_reason: Optional[str] = None
    dead_letter_message_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome in (ProcessingOutcome.SUCCESS, ProcessingOutcome.SUCCESS_DEGRADED)


def outcome_for_error(error: Exception) -> ProcessingOutcome:
    """Classify a fatal pipeline error for logging and batch reports."""
    if isinstance(error, ValidationError):
        return ProcessingOutcome.VALIDATION_FAILURE
    if isinstance(error, ConfigurationError):
        return ProcessingOutcome.CONFIGURATION_FAILURE
    return ProcessingOutcome.PROCESSING_FAILURE
