from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from nextnative.ai.errors import (
  BackendError,
  EmptyGenerationError,
  ExtractionError,
  QuotaExceededError,
  TransientBackendError
)
from nextnative.ai.prompts import build_enhanced_retry_prompt
from nextnative.ai.retry import RetryPolicy, Sleep
from nextnative.ai.scheduler import RateLimitedScheduler
from nextnative.config import settings

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = {429, 500, 502, 503, 504}
MIN_CODE_LENGTH = 50

FENCE_RE = re.compile(r'```(?:typescript|javascript|tsx|jsx|ts|js)?[ \t]*\n(.*?)```', re.S)
MARKER_RE = re.compile(r'(?:CONVERTED_CODE|FINAL_CODE|COMPONENT_CODE):[ \t]*\n?', re.I)
DECLARATION_TOKENS = ('import ', 'export ', 'function ')


def _default_token_estimate(text: str) -> int:
  # roughly four characters per token
  return max(1, math.ceil(len(text) / 4))


def extract_code(text: str) -> str:
  """Pulls code out of a free-text response.

  Prefers the largest fenced block, then the text after a
  ``CONVERTED_CODE:``/``FINAL_CODE:``/``COMPONENT_CODE:`` marker, then the raw
  text when it contains declaration tokens.
  """
  if not isinstance(text, str) or not text.strip():
    raise ExtractionError('empty response')
  blocks = [block.strip() for block in FENCE_RE.findall(text)]
  if blocks:
    return max(blocks, key=len)
  marker = MARKER_RE.search(text)
  if marker:
    remainder = text[marker.end():].strip()
    if remainder:
      return remainder
  if any(token in text for token in DECLARATION_TOKENS):
    return text.strip()
  raise ExtractionError('could not extract code from response')


@dataclass
class GenerationResponse:
  text: str
  tokens: int = 0
  attempts: int = 1


class GeminiClient:
  """Gemini ``generateContent`` calls funnelled through a shared scheduler."""

  GENERATION_CONFIG: Dict[str, Any] = {
    'temperature': 0.1,
    'topP': 0.8,
    'topK': 40,
    'maxOutputTokens': 8192
  }

  def __init__(
    self,
    scheduler: RateLimitedScheduler,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    generation_policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
  ) -> None:
    self.api_key = api_key or settings.gemini_api_key
    if not self.api_key:
      raise BackendError('GEMINI_API_KEY is not configured.')
    self.scheduler = scheduler
    self.model = model or settings.gemini_model
    self.base_url = (base_url or settings.gemini_api_url).rstrip('/')
    self.generation_policy = generation_policy or RetryPolicy.fixed(
      settings.generation_attempts,
      settings.generation_backoff_seconds
    )
    self._sleep = sleep
    self._client = http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

  async def submit(self, prompt: str, label: str = '') -> GenerationResponse:
    return await self.scheduler.submit(lambda: self._request(prompt), label=label)

  async def generate_code(self, prompt: str, label: str = '') -> GenerationResponse:
    """Submits ``prompt`` and extracts code, retrying short or code-free answers."""
    tokens = 0
    current = prompt
    last_error: Optional[ExtractionError] = None
    attempts = self.generation_policy.max_attempts
    for attempt in range(1, attempts + 1):
      response = await self.submit(current, label=label)
      tokens += response.tokens
      try:
        code = extract_code(response.text)
        if len(code) < MIN_CODE_LENGTH:
          raise EmptyGenerationError(f'generated code is too short ({len(code)} chars)')
        return GenerationResponse(text=code, tokens=tokens, attempts=attempt)
      except ExtractionError as error:
        last_error = error
        logger.warning('Unusable generation for %s (attempt %s/%s): %s', label or 'request', attempt, attempts, error)
      if attempt < attempts:
        current = build_enhanced_retry_prompt(prompt, attempt + 1)
        await self._sleep(self.generation_policy.delay(attempt))
    if isinstance(last_error, EmptyGenerationError) or last_error is None:
      raise EmptyGenerationError(f'generated code too short or empty after {attempts} attempts')
    raise last_error

  async def _request(self, prompt: str) -> GenerationResponse:
    endpoint = f'{self.base_url}/models/{self.model}:generateContent'
    payload = {
      'contents': [{'role': 'user', 'parts': [{'text': prompt}]}],
      'generationConfig': dict(self.GENERATION_CONFIG)
    }
    try:
      response = await self._client.post(endpoint, params={'key': self.api_key}, json=payload)
    except httpx.TransportError as exc:
      raise TransientBackendError(f'Gemini transport error: {exc}') from exc
    if response.status_code >= 400:
      raise self._status_error(response)
    data = response.json()
    candidates = data.get('candidates') or []
    if not candidates:
      raise BackendError('Gemini returned no candidates')
    parts = (candidates[0].get('content') or {}).get('parts') or []
    text = ''.join(part.get('text', '') for part in parts)
    if not text:
      raise BackendError('Gemini returned an empty candidate')
    usage = data.get('usageMetadata') or {}
    tokens = usage.get('totalTokenCount') or (_default_token_estimate(prompt) + _default_token_estimate(text))
    return GenerationResponse(text=text, tokens=tokens)

  @staticmethod
  def _status_error(response: httpx.Response) -> BackendError:
    status = response.status_code
    body = response.text[:500]
    if status == 429 and 'quota' in body.lower():
      return QuotaExceededError(f'Gemini quota exceeded: {body}', status_code=status)
    if status in TRANSIENT_STATUS:
      return TransientBackendError(f'Gemini API error {status}: {body}', status_code=status, overloaded=status == 503)
    return BackendError(f'Gemini API error {status}: {body}')

  async def aclose(self) -> None:
    await self._client.aclose()
