from __future__ import annotations

from typing import Optional


class BackendError(RuntimeError):
  """Represents a generation backend failure."""


class TransientBackendError(BackendError):
  """Network, rate-limit or overload failure worth retrying."""

  def __init__(self, message: str, status_code: Optional[int] = None, overloaded: bool = False) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.overloaded = overloaded


class QuotaExceededError(TransientBackendError):
  """The account quota is exhausted; never retried."""


class ExtractionError(BackendError):
  """The backend answered but no usable code could be found."""


class EmptyGenerationError(ExtractionError):
  """Every attempt produced a response below the minimum code length."""


class SchedulerClosedError(BackendError):
  """The scheduler stopped before the request could run."""
