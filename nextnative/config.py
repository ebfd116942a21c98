from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _split_patterns(raw: str) -> List[str]:
  return [item.strip() for item in raw.split(',') if item.strip()]


@dataclass
class Settings:
  """Global converter configuration derived from environment variables."""

  log_level: str = os.getenv('NEXTNATIVE_LOG_LEVEL', 'info')
  data_dir: Path = Path(os.getenv('NEXTNATIVE_DATA_DIR', './data')).resolve()
  gemini_api_key: Optional[str] = os.getenv('GEMINI_API_KEY')
  gemini_api_url: str = os.getenv('GEMINI_API_URL', 'https://generativelanguage.googleapis.com/v1beta')
  gemini_model: str = os.getenv('GEMINI_MODEL', 'gemini-2.0-flash')
  request_timeout_seconds: float = float(os.getenv('NEXTNATIVE_REQUEST_TIMEOUT', '60'))
  requests_per_minute: int = int(os.getenv('NEXTNATIVE_REQUESTS_PER_MINUTE', '10'))
  requests_per_hour: int = int(os.getenv('NEXTNATIVE_REQUESTS_PER_HOUR', '200'))
  max_retries: int = int(os.getenv('NEXTNATIVE_MAX_RETRIES', '3'))
  base_delay_seconds: float = float(os.getenv('NEXTNATIVE_BASE_DELAY', '3'))
  max_delay_seconds: float = float(os.getenv('NEXTNATIVE_MAX_DELAY', '60'))
  generation_attempts: int = int(os.getenv('NEXTNATIVE_GENERATION_ATTEMPTS', '3'))
  generation_backoff_seconds: float = float(os.getenv('NEXTNATIVE_GENERATION_BACKOFF', '2'))
  repair_attempts: int = int(os.getenv('NEXTNATIVE_REPAIR_ATTEMPTS', '5'))
  repair_delay_seconds: float = float(os.getenv('NEXTNATIVE_REPAIR_DELAY', '1'))
  checkpoint_interval: int = int(os.getenv('NEXTNATIVE_CHECKPOINT_INTERVAL', '10'))
  include_patterns: List[str] = field(
    default_factory=lambda: _split_patterns(os.getenv('NEXTNATIVE_INCLUDE', '*.tsx,*.ts,*.jsx,*.js'))
  )
  exclude_patterns: List[str] = field(
    default_factory=lambda: _split_patterns(
      os.getenv('NEXTNATIVE_EXCLUDE', '*.test.*,*.spec.*,__tests__,node_modules,.next,*.d.ts,*.config.*')
    )
  )

  @property
  def log_dir(self) -> Path:
    return self.data_dir / 'logs'

  def ensure_directories(self) -> None:
    self.data_dir.mkdir(parents=True, exist_ok=True)
    self.log_dir.mkdir(parents=True, exist_ok=True)


settings = Settings()
