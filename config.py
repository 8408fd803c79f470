"""
config.py — Cardsmith configuration loader.

Load order:
  1. Determine work_dir: CARDSMITH_WORK_DIR env var → default ./cardsmith_work
  2. Read {work_dir}/config.yaml (missing file → all defaults)
  3. Validate field values → raise ConfigError if malformed
  4. Normalize all paths via pathlib.Path.resolve()

Public API:
  load_config(config_file, work_dir) -> Config
  cfg: Config  (module-level singleton, loaded on import)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when config.yaml holds malformed or out-of-range values."""


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def _resolve(raw: str | Path) -> Path:
    return Path(raw).expanduser().resolve()


# ---------------------------------------------------------------------------
# Work directory discovery
# ---------------------------------------------------------------------------

_WORK_DIR_ENV = "CARDSMITH_WORK_DIR"
_CONFIG_FILENAME = "config.yaml"

# Accepted by the upload transport. image/gif passes this filter but has no
# extractor, so it surfaces as UnsupportedFormat further down.
DEFAULT_ALLOWED_MIMETYPES = [
    "text/plain",
    "text/markdown",
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/json",
]

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _get_work_dir() -> Path:
    env = os.environ.get(_WORK_DIR_ENV)
    if env:
        return _resolve(env)
    # Default: ./cardsmith_work relative to repo root (where this file lives)
    return Path(__file__).resolve().parent / "cardsmith_work"


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------

class Config:
    def __init__(
        self,
        data: dict[str, Any],
        work_dir: Path,
        config_file: Path,
    ) -> None:
        self.work_dir = work_dir
        self.config_file = config_file

        # --- upload limits ---
        max_mb = data.get("max_file_mb", 10)
        self.max_file_bytes: int = int(max_mb * 1024 * 1024)
        self.max_batch_files: int = data.get("max_batch_files", 5)

        upl = data.get("upload", {}) or {}
        self.allowed_mimetypes: list[str] = list(
            upl.get("allowed_mimetypes", DEFAULT_ALLOWED_MIMETYPES)
        )
        _upload_dir = upl.get("dir")
        self._upload_dir: Path | None = _resolve(_upload_dir) if _upload_dir else None

        # --- database ---
        db = data.get("db", {}) or {}
        _db_path = db.get("path")
        self._db_path: Path | None = _resolve(_db_path) if _db_path else None

        # --- logging ---
        log = data.get("logging", {}) or {}
        self.log_level: str = str(log.get("level", "INFO")).upper()
        self.log_file: str = log.get("file", "cardsmith.log")

    # --- Path helpers ---

    def get_db_path(self) -> Path:
        return self._db_path or self.work_dir / "db" / "cardsmith.db"

    def get_upload_dir(self) -> Path:
        return self._upload_dir or self.work_dir / "uploads"

    def get_log_dir(self) -> Path:
        return self.work_dir / "logs"

    def get_log_level(self) -> int:
        return getattr(logging, self.log_level)

    def ensure_dirs(self) -> None:
        """Create all work subdirectories if they don't exist."""
        for d in [
            self.get_db_path().parent,
            self.get_upload_dir(),
            self.get_log_dir(),
        ]:
            d.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def _load_yaml(config_file: Path) -> dict[str, Any]:
    if not config_file.exists():
        return {}
    with config_file.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at top level")
    return data


def _validate(data: dict[str, Any]) -> None:
    max_mb = data.get("max_file_mb", 10)
    if not isinstance(max_mb, (int, float)) or isinstance(max_mb, bool) or max_mb <= 0:
        raise ConfigError(
            f"config.yaml field 'max_file_mb' must be a positive number, got {max_mb!r}"
        )

    max_batch = data.get("max_batch_files", 5)
    if not isinstance(max_batch, int) or isinstance(max_batch, bool) or max_batch < 1:
        raise ConfigError(
            f"config.yaml field 'max_batch_files' must be an integer >= 1, got {max_batch!r}"
        )

    level = str((data.get("logging") or {}).get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(
            f"config.yaml field 'logging.level' must be one of "
            f"{sorted(_LOG_LEVELS)}, got {level!r}"
        )

    mimes = (data.get("upload") or {}).get("allowed_mimetypes")
    if mimes is not None and not (
        isinstance(mimes, list) and all(isinstance(m, str) for m in mimes)
    ):
        raise ConfigError("config.yaml field 'upload.allowed_mimetypes' must be a list of strings")


def load_config(
    config_file: Path | None = None,
    work_dir: Path | None = None,
) -> Config:
    """
    Load and return a Config instance.

    Args:
        config_file: Explicit path to config.yaml (overrides discovery).
        work_dir:    Override work directory (overrides env var + default).
    """
    _work_dir = work_dir or _get_work_dir()
    _config_file = config_file or (_work_dir / _CONFIG_FILENAME)
    data = _load_yaml(_config_file)
    _validate(data)
    return Config(data, _work_dir, _config_file)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

# Loaded on first import of this module. Defaults apply when config.yaml
# does not exist yet.
cfg: Config = load_config()
