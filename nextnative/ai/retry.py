from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from nextnative.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

T = TypeVar('T')

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
  """Bounded retry schedule shared by the scheduler, the client and the repair loop.

  ``max_attempts`` counts every attempt including the first. The delay after
  attempt ``n`` is ``base_delay * multiplier ** (n - 1)`` (``overload_multiplier``
  when the backend reported overload) with ``jitter`` spread around it, clamped
  to ``[base_delay, max_delay]``.
  """

  max_attempts: int = 4
  base_delay: float = 3.0
  max_delay: float = 60.0
  multiplier: float = 1.5
  overload_multiplier: float = 2.0
  jitter: float = 0.25
  rng: Callable[[], float] = field(default=random.random, compare=False, repr=False)

  @classmethod
  def backend(cls, config: Optional[Settings] = None) -> 'RetryPolicy':
    config = config or default_settings
    return cls(
      max_attempts=max(1, config.max_retries + 1),
      base_delay=config.base_delay_seconds,
      max_delay=config.max_delay_seconds
    )

  @classmethod
  def fixed(cls, attempts: int, delay: float) -> 'RetryPolicy':
    return cls(
      max_attempts=max(1, attempts),
      base_delay=delay,
      max_delay=delay,
      multiplier=1.0,
      overload_multiplier=1.0,
      jitter=0.0
    )

  def should_retry(self, attempt: int) -> bool:
    return attempt < self.max_attempts

  def delay(self, attempt: int, overloaded: bool = False) -> float:
    factor = self.overload_multiplier if overloaded else self.multiplier
    raw = self.base_delay * factor ** max(0, attempt - 1)
    if self.jitter:
      raw += raw * self.jitter * (self.rng() - 0.5)
    return max(self.base_delay, min(raw, self.max_delay))

  async def run(
    self,
    operation: Callable[[int], Awaitable[T]],
    retry_on: Tuple[Type[BaseException], ...],
    give_up_on: Tuple[Type[BaseException], ...] = (),
    sleep: Sleep = asyncio.sleep
  ) -> T:
    """Calls ``operation(attempt)`` until it succeeds or the attempts run out."""
    attempt = 0
    while True:
      attempt += 1
      try:
        return await operation(attempt)
      except give_up_on:
        raise
      except retry_on as error:
        if not self.should_retry(attempt):
          raise
        delay = self.delay(attempt, overloaded=getattr(error, 'overloaded', False))
        logger.warning('Attempt %s/%s failed (%s); retrying in %.1fs', attempt, self.max_attempts, error, delay)
        await sleep(delay)
