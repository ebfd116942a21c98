from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from nextnative.ai.errors import QuotaExceededError, SchedulerClosedError, TransientBackendError
from nextnative.ai.retry import RetryPolicy, Sleep
from nextnative.config import settings

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 3600.0
MAX_HOURLY_WAIT = 300.0
SUCCESS_WINDOW = 300.0

RequestFactory = Callable[[], Awaitable[Any]]


@dataclass
class _Request:
  factory: RequestFactory
  future: 'asyncio.Future[Any]'
  label: str = ''
  attempts: int = 0


@dataclass(frozen=True)
class _HistoryEntry:
  timestamp: float
  success: bool


@dataclass
class QueueStatus:
  open: bool
  queue_length: int
  is_processing: bool
  recent_requests: int
  total_processed: int


class RateLimitedScheduler:
  """Serializes backend calls through one queue under minute and hour budgets.

  Must be opened inside a running event loop. Closing lets the in-flight call
  finish and fails everything still queued with ``SchedulerClosedError``.
  """

  def __init__(
    self,
    requests_per_minute: Optional[int] = None,
    requests_per_hour: Optional[int] = None,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic
  ) -> None:
    self.requests_per_minute = max(1, requests_per_minute or settings.requests_per_minute)
    self.requests_per_hour = max(1, requests_per_hour or settings.requests_per_hour)
    self.policy = policy or RetryPolicy.backend()
    self._sleep = sleep
    self._clock = clock
    self._queue: Optional['asyncio.Queue[Optional[_Request]]'] = None
    self._worker: Optional['asyncio.Task[None]'] = None
    self._history: List[_HistoryEntry] = []
    self._processing = False
    self._open = False

  @property
  def is_open(self) -> bool:
    return self._open

  async def open(self) -> 'RateLimitedScheduler':
    if self._open:
      return self
    self._queue = asyncio.Queue()
    self._worker = asyncio.create_task(self._run())
    self._open = True
    logger.debug('Scheduler opened (rpm=%s rph=%s)', self.requests_per_minute, self.requests_per_hour)
    return self

  async def close(self) -> None:
    if not self._open:
      return
    self._open = False
    assert self._queue is not None
    dropped = 0
    while not self._queue.empty():
      request = self._queue.get_nowait()
      if request is not None and not request.future.done():
        request.future.set_exception(SchedulerClosedError('scheduler closed before the request ran'))
        dropped += 1
    self._queue.put_nowait(None)
    if self._worker is not None:
      await self._worker
    self._worker = None
    if dropped:
      logger.info('Scheduler closed; %s queued request(s) were cancelled', dropped)

  async def __aenter__(self) -> 'RateLimitedScheduler':
    return await self.open()

  async def __aexit__(self, exc_type, exc, tb) -> None:
    await self.close()

  async def submit(self, factory: RequestFactory, label: str = '') -> Any:
    if not self._open or self._queue is None:
      raise SchedulerClosedError('scheduler is not open')
    future: 'asyncio.Future[Any]' = asyncio.get_running_loop().create_future()
    self._queue.put_nowait(_Request(factory=factory, future=future, label=label))
    return await future

  def queue_status(self) -> QueueStatus:
    now = self._clock()
    return QueueStatus(
      open=self._open,
      queue_length=self._queue.qsize() if self._queue is not None else 0,
      is_processing=self._processing,
      recent_requests=sum(1 for entry in self._history if entry.timestamp > now - MINUTE),
      total_processed=len(self._history)
    )

  def inter_request_delay(self) -> float:
    now = self._clock()
    recent = [entry for entry in self._history if entry.timestamp > now - SUCCESS_WINDOW]
    if not recent:
      return 1.0
    success_rate = sum(1 for entry in recent if entry.success) / len(recent)
    if success_rate > 0.9:
      return 1.0
    if success_rate > 0.7:
      return 2.0
    return 4.0

  async def _run(self) -> None:
    assert self._queue is not None
    while True:
      request = await self._queue.get()
      if request is None:
        break
      if request.future.done():
        continue
      self._processing = True
      try:
        await self._respect_limits()
        await self._execute(request)
      finally:
        self._processing = False
      if self._open:
        await self._sleep(self.inter_request_delay())

  async def _execute(self, request: _Request) -> None:
    while True:
      request.attempts += 1
      try:
        result = await request.factory()
      except QuotaExceededError as error:
        self._record(False)
        logger.error('Backend quota exhausted while running %s: %s', request.label or 'request', error)
        self._fail(request, error)
        return
      except TransientBackendError as error:
        self._record(False)
        if self._open and self.policy.should_retry(request.attempts):
          delay = self.policy.delay(request.attempts, overloaded=error.overloaded)
          logger.warning(
            'Transient backend error for %s (attempt %s/%s); retrying in %.1fs: %s',
            request.label or 'request',
            request.attempts,
            self.policy.max_attempts,
            delay,
            error
          )
          await self._sleep(delay)
          await self._respect_limits()
          continue
        self._fail(request, error)
        return
      except Exception as error:
        self._record(False)
        self._fail(request, error)
        return
      self._record(True)
      if not request.future.done():
        request.future.set_result(result)
      return

  async def _respect_limits(self) -> None:
    now = self._clock()
    self._history = [entry for entry in self._history if entry.timestamp > now - HOUR]
    recent = [entry.timestamp for entry in self._history if entry.timestamp > now - MINUTE]
    if len(recent) >= self.requests_per_minute:
      wait = MINUTE - (now - min(recent))
      if wait > 0:
        logger.info('Minute budget reached; waiting %.0fs', wait)
        await self._sleep(wait)
    if len(self._history) >= self.requests_per_hour:
      wait = HOUR - (now - min(entry.timestamp for entry in self._history))
      if wait > 0:
        logger.info('Hourly budget reached; waiting %.0fs', min(wait, MAX_HOURLY_WAIT))
        await self._sleep(min(wait, MAX_HOURLY_WAIT))

  def _record(self, success: bool) -> None:
    self._history.append(_HistoryEntry(self._clock(), success))

  @staticmethod
  def _fail(request: _Request, error: BaseException) -> None:
    if not request.future.done():
      request.future.set_exception(error)
