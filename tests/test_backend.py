from __future__ import annotations

import asyncio

import httpx
import pytest

from nextnative.ai.clients import GeminiClient, extract_code
from nextnative.ai.errors import (
  BackendError,
  EmptyGenerationError,
  ExtractionError,
  QuotaExceededError,
  SchedulerClosedError,
  TransientBackendError
)
from nextnative.ai.retry import RetryPolicy
from nextnative.ai.scheduler import RateLimitedScheduler

COMPONENT = '''import React from 'react';
import { View, Text } from 'react-native';

export default function Hello() {
  return <View><Text>Hello</Text></View>;
}'''


def _gemini_payload(text: str, tokens: int = 42) -> dict:
  return {
    'candidates': [{'content': {'parts': [{'text': text}]}}],
    'usageMetadata': {'totalTokenCount': tokens}
  }


def _client(scheduler, handler, fake_sleep) -> GeminiClient:
  return GeminiClient(
    scheduler,
    api_key='test-key',
    model='gemini-test',
    base_url='https://gemini.test/v1beta',
    http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    generation_policy=RetryPolicy.fixed(3, 0.0),
    sleep=fake_sleep
  )


def _scheduler(fake_sleep, fake_clock, **kwargs) -> RateLimitedScheduler:
  kwargs.setdefault('requests_per_minute', 60)
  kwargs.setdefault('requests_per_hour', 1000)
  return RateLimitedScheduler(policy=RetryPolicy.fixed(3, 0.0), sleep=fake_sleep, clock=fake_clock, **kwargs)


def test_extract_code_given_several_fences_when_extracted_then_largest_block_wins() -> None:
  # Given
  text = 'Here you go:\n```tsx\nconst a = 1;\n```\nand the file:\n```tsx\n' + COMPONENT + '\n```\n'

  # When
  code = extract_code(text)

  # Then
  assert code == COMPONENT


def test_extract_code_given_marker_when_extracted_then_text_after_marker_is_returned() -> None:
  assert extract_code('Sure.\nCONVERTED_CODE:\n' + COMPONENT) == COMPONENT


def test_extract_code_given_prose_only_when_extracted_then_extraction_error() -> None:
  with pytest.raises(ExtractionError):
    extract_code('I cannot help with that request.')


@pytest.mark.asyncio
async def test_generate_code_given_transient_503_when_requested_then_scheduler_retries_and_code_is_extracted(
  fake_sleep,
  fake_clock,
  sleeps
) -> None:
  # Given
  requests = []

  def handler(request: httpx.Request) -> httpx.Response:
    requests.append(request)
    if len(requests) == 1:
      return httpx.Response(503, text='model overloaded')
    return httpx.Response(200, json=_gemini_payload('```tsx\n' + COMPONENT + '\n```'))

  # When
  async with _scheduler(fake_sleep, fake_clock) as scheduler:
    client = _client(scheduler, handler, fake_sleep)
    response = await client.generate_code('convert this', label='convert:Hello.tsx')
    await client.aclose()

  # Then
  assert response.text == COMPONENT
  assert response.tokens == 42
  assert len(requests) == 2
  assert requests[0].url.params['key'] == 'test-key'
  assert requests[0].url.path == '/v1beta/models/gemini-test:generateContent'
  assert 0.0 in sleeps


@pytest.mark.asyncio
async def test_generate_code_given_quota_error_when_requested_then_it_is_not_retried(fake_sleep, fake_clock) -> None:
  # Given
  requests = []

  def handler(request: httpx.Request) -> httpx.Response:
    requests.append(request)
    return httpx.Response(429, text='Resource has been exhausted (e.g. check quota).')

  # When
  async with _scheduler(fake_sleep, fake_clock) as scheduler:
    client = _client(scheduler, handler, fake_sleep)
    with pytest.raises(QuotaExceededError):
      await client.generate_code('convert this')
    await client.aclose()

  # Then
  assert len(requests) == 1


@pytest.mark.asyncio
async def test_generate_code_given_short_answers_when_requested_then_enhanced_prompt_is_sent_and_it_gives_up(
  fake_sleep,
  fake_clock
) -> None:
  # Given
  prompts = []

  def handler(request: httpx.Request) -> httpx.Response:
    body = request.read().decode('utf-8')
    prompts.append(body)
    return httpx.Response(200, json=_gemini_payload('```tsx\nexport default 1;\n```'))

  # When
  async with _scheduler(fake_sleep, fake_clock) as scheduler:
    client = _client(scheduler, handler, fake_sleep)
    with pytest.raises(EmptyGenerationError):
      await client.generate_code('convert this')
    await client.aclose()

  # Then
  assert len(prompts) == 3
  assert 'CRITICAL (attempt 2)' in prompts[1]
  assert 'CRITICAL (attempt 3)' in prompts[2]


def test_client_given_no_api_key_when_created_then_backend_error(fake_sleep, fake_clock, monkeypatch) -> None:
  # Given
  from nextnative.config import settings
  monkeypatch.setattr(settings, 'gemini_api_key', None)

  # When / Then
  with pytest.raises(BackendError):
    GeminiClient(_scheduler(fake_sleep, fake_clock))


@pytest.mark.asyncio
async def test_submit_given_unopened_scheduler_when_submitting_then_scheduler_closed_error(fake_sleep, fake_clock) -> None:
  # Given
  scheduler = _scheduler(fake_sleep, fake_clock)

  async def request():
    return 'never'

  # When / Then
  with pytest.raises(SchedulerClosedError):
    await scheduler.submit(request)


@pytest.mark.asyncio
async def test_close_given_queued_requests_when_closed_then_in_flight_finishes_and_queued_fail(fake_sleep, fake_clock) -> None:
  # Given
  gate = asyncio.Event()

  async def slow():
    await gate.wait()
    return 'first'

  async def fast():
    return 'second'

  scheduler = await _scheduler(fake_sleep, fake_clock).open()
  first = asyncio.create_task(scheduler.submit(slow, label='slow'))
  second = asyncio.create_task(scheduler.submit(fast, label='fast'))
  for _ in range(5):
    await asyncio.sleep(0)

  # When
  closing = asyncio.create_task(scheduler.close())
  await asyncio.sleep(0)
  gate.set()
  await closing

  # Then
  assert await first == 'first'
  with pytest.raises(SchedulerClosedError):
    await second
  assert not scheduler.is_open


@pytest.mark.asyncio
async def test_submit_given_minute_budget_reached_when_next_request_runs_then_it_waits_for_the_window(
  fake_sleep,
  fake_clock,
  sleeps
) -> None:
  # Given
  scheduler = _scheduler(fake_sleep, fake_clock, requests_per_minute=2)

  async def request():
    return 'ok'

  # When
  async with scheduler:
    results = [await scheduler.submit(request) for _ in range(3)]
    status = scheduler.queue_status()

  # Then
  assert results == ['ok', 'ok', 'ok']
  assert 60.0 in sleeps
  assert status.total_processed == 3


@pytest.mark.asyncio
async def test_submit_given_transient_errors_when_attempts_run_out_then_last_error_is_raised(fake_sleep, fake_clock) -> None:
  # Given
  calls = []

  async def failing():
    calls.append(1)
    raise TransientBackendError('gateway timeout', status_code=504)

  # When
  async with _scheduler(fake_sleep, fake_clock) as scheduler:
    with pytest.raises(TransientBackendError):
      await scheduler.submit(failing)
    delay = scheduler.inter_request_delay()

  # Then
  assert len(calls) == 3
  assert delay == 4.0


def test_retry_policy_given_backoff_when_delays_computed_then_they_grow_and_are_clamped() -> None:
  # Given
  policy = RetryPolicy(max_attempts=4, base_delay=3.0, max_delay=10.0, jitter=0.0)

  # When
  delays = [policy.delay(attempt) for attempt in range(1, 5)]

  # Then
  assert delays == [3.0, 4.5, 6.75, 10.0]
  assert policy.delay(2, overloaded=True) == 6.0
  assert policy.should_retry(3) and not policy.should_retry(4)


@pytest.mark.asyncio
async def test_retry_policy_run_given_flaky_operation_when_run_then_it_succeeds_after_retry(fake_sleep, sleeps) -> None:
  # Given
  policy = RetryPolicy.fixed(3, 0.5)

  async def operation(attempt: int) -> str:
    if attempt < 2:
      raise TransientBackendError('reset by peer')
    return f'done after {attempt}'

  # When
  result = await policy.run(operation, retry_on=(TransientBackendError,), sleep=fake_sleep)

  # Then
  assert result == 'done after 2'
  assert sleeps == [0.5]
