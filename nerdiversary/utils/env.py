"""Minimal .env support so local runs and cron jobs share one config file."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path at the project root."""
  return Path(__file__).resolve().parents[2] / ".env"


def _unquote(value: str) -> str:
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]
  # Unquoted values may carry a trailing ``# comment``.
  return value.split(" #", 1)[0].rstrip()


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
  """Split one ``KEY=value`` line; blank lines, comments and junk yield None."""
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None

  line = line.removeprefix("export ").lstrip()
  key, sep, value = line.partition("=")
  key = key.strip()
  if not sep or not key:
    return None

  return key, _unquote(value.strip())


def load_env_file(path: Path, *, override: bool = False) -> dict[str, str]:
  """Export the file's pairs into ``os.environ`` and return the ones applied."""
  applied: dict[str, str] = {}
  if not path.is_file():
    return applied

  for raw_line in path.read_text(encoding="utf-8").splitlines():
    parsed = parse_env_line(raw_line)
    if parsed is None:
      continue

    key, value = parsed
    if not override and key in os.environ:
      continue

    os.environ[key] = value
    applied[key] = value

  return applied
