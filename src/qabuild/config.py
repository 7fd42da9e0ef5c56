"""Configuration loader for qabuild.

Reads environment variables (optionally from .env) and exposes a typed config.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

VERSION = '0.1.0'


@dataclass(frozen=True)
class Config:
  """Holds runtime configuration loaded from environment."""

  seed: int | None
  out_dir: str
  log_format: str
  log_path: str | None


def _int_or_none(name: str) -> int | None:
  raw = os.getenv(name)
  if raw is None or not raw.strip():
    return None
  try:
    return int(raw)
  except ValueError:
    raise ValueError(f'{name} must be an integer, got {raw!r}') from None


def load_config() -> Config:
  """Load configuration from environment variables."""
  return Config(
    seed=_int_or_none('QABUILD_SEED'),
    out_dir=os.getenv('QABUILD_OUT_DIR', '.'),
    log_format=os.getenv('QABUILD_LOG_FORMAT', 'auto'),
    log_path=os.getenv('QABUILD_LOG_PATH') or None,
  )
