"""Load profile and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

from job_copilot.errors import ConfigurationError
from job_copilot.log import get_logger
from job_copilot.models import UserProfile

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
REPORTS_DIR: Path = PROJECT_ROOT / "reports"
DATA_DIR: Path = PROJECT_ROOT / "data"

DEFAULT_AUTONOMOUS_THRESHOLD = 90


def load_profile(path: Path | None = None) -> UserProfile:
    profile_path = path or PROFILE_PATH
    if not profile_path.exists():
        raise ConfigurationError(f"No profile at {profile_path}; create it from config/profile.example.yaml")
    with open(profile_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{profile_path.name} must contain a mapping")

    # Older profiles kept core/stretch roles apart; the copilot only needs the union
    if "preferred_roles" not in data and ("core_roles" in data or "stretch_roles" in data):
        data["preferred_roles"] = list(data.get("core_roles", [])) + list(data.get("stretch_roles", []))

    return UserProfile.from_dict(data)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_number(key: str, default: float, cast=float) -> float:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        log.warning("Ignoring %s=%r (not a number), using %s", key, raw, default)
        return default


@dataclass(frozen=True)
class EngineSettings:
    max_workers: int = 3
    generation_timeout_sec: float = 120.0
    submission_timeout_sec: float = 180.0
    autonomous_threshold: int = DEFAULT_AUTONOMOUS_THRESHOLD
    sheet_sync_debounce_sec: float = 1.0

    @classmethod
    def from_env(cls) -> "EngineSettings":
        workers = int(_env_number("APPLY_CONCURRENCY", 3, int))
        return cls(
            max_workers=min(max(workers, 1), 10),
            generation_timeout_sec=_env_number("GENERATION_TIMEOUT_SEC", 120.0),
            submission_timeout_sec=_env_number("SUBMISSION_TIMEOUT_SEC", 180.0),
            autonomous_threshold=int(_env_number("AUTONOMOUS_FIT_THRESHOLD", DEFAULT_AUTONOMOUS_THRESHOLD, int)),
            sheet_sync_debounce_sec=_env_number("SHEET_SYNC_DEBOUNCE_SEC", 1.0),
        )


def ensure_dirs() -> None:
    for d in (REPORTS_DIR, DATA_DIR):
        d.mkdir(parents=True, exist_ok=True)


def try_load_vault() -> None:
    """If .env.enc exists, load its decrypted values into the environment."""
    enc_path = PROJECT_ROOT / ".env.enc"
    if not enc_path.exists():
        return
    try:
        from job_copilot.vault import load_vault_into_env

        master_pw = os.environ.get("MASTER_PASSWORD")
        if load_vault_into_env(password=master_pw, path=enc_path):
            log.info("Loaded encrypted credentials from %s", enc_path.name)
    except Exception as exc:
        log.warning("Failed to load encrypted env: %s", exc)
