"""Credential vault: sensitive .env values sealed with a master password.

Keys are derived with PBKDF2-HMAC-SHA256 and applied as an XOR stream.
Protects Complex Apply credentials and API keys from casual reading.
"""
from __future__ import annotations

import base64
import getpass
import hashlib
import json
import os
import sys
from pathlib import Path

from job_copilot.log import get_logger
from job_copilot.models import UserProfile

log = get_logger(__name__)

_SALT_LEN = 16
_ITERATIONS = 200_000
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
VAULT_PATH = _PROJECT_ROOT / ".env.enc"

SENSITIVE_KEYS: set[str] = {
    "LLM_API_KEY",
    "GROQ_API_KEY",
    "GOOGLE_ACCESS_TOKEN",
    "AGENT_PASSWORD",
    "AUTOMATION_SERVICE_TOKEN",
}


def _derive_key(password: str, salt: bytes, length: int = 32) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, _ITERATIONS, dklen=length
    )


def _xor_bytes(data: bytes, key: bytes) -> bytes:
    kl = len(key)
    return bytes(d ^ key[i % kl] for i, d in enumerate(data))


def encrypt_value(value: str, password: str) -> str:
    salt = os.urandom(_SALT_LEN)
    key = _derive_key(password, salt)
    encrypted = _xor_bytes(value.encode("utf-8"), key)
    return base64.b64encode(salt + encrypted).decode("ascii")


def decrypt_value(token: str, password: str) -> str:
    payload = base64.b64decode(token)
    salt, encrypted = payload[:_SALT_LEN], payload[_SALT_LEN:]
    key = _derive_key(password, salt)
    return _xor_bytes(encrypted, key).decode("utf-8")


def seal_env(env_path: Path, password: str | None = None, vault_path: Path = VAULT_PATH) -> Path:
    """Read a dotenv file, encrypt the sensitive values, write the vault."""
    if not env_path.exists():
        raise FileNotFoundError(f"{env_path} not found")

    if password is None:
        password = getpass.getpass("Set master password: ")
        if password != getpass.getpass("Confirm master password: "):
            raise ValueError("Passwords do not match")

    entries: dict[str, str] = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        entries[key] = encrypt_value(value, password) if key in SENSITIVE_KEYS and value else value

    sealed = sorted(SENSITIVE_KEYS & set(entries))
    vault_path.write_text(json.dumps({"encrypted_keys": sealed, "values": entries}, indent=2), encoding="utf-8")
    log.info("Credentials sealed → %s (%d keys)", vault_path.name, len(sealed))
    return vault_path


def open_vault(password: str | None = None, vault_path: Path = VAULT_PATH) -> dict[str, str]:
    if not vault_path.exists():
        raise FileNotFoundError(f"{vault_path} not found — seal a .env first")

    if password is None:
        password = getpass.getpass("Master password: ")

    data = json.loads(vault_path.read_text(encoding="utf-8"))
    sealed = set(data.get("encrypted_keys", []))
    result: dict[str, str] = {}
    for key, value in data.get("values", {}).items():
        if key in sealed and value:
            try:
                result[key] = decrypt_value(value, password)
            except (ValueError, UnicodeDecodeError):
                log.warning("Failed to decrypt %s — wrong password?", key)
                result[key] = ""
        else:
            result[key] = value
    return result


def load_vault_into_env(password: str | None = None, path: Path = VAULT_PATH) -> bool:
    """Inject vault values into os.environ without overriding what is already set."""
    try:
        values = open_vault(password, vault_path=path)
    except FileNotFoundError:
        return False
    for key, value in values.items():
        if value:
            os.environ.setdefault(key, value)
    return True


def agent_credentials(profile: UserProfile) -> tuple[str, str]:
    """Credentials the agent signs in with for Complex Apply: profile first, then env."""
    email = profile.agent_email or os.environ.get("AGENT_EMAIL", "").strip() or profile.email
    password = profile.agent_password or os.environ.get("AGENT_PASSWORD", "").strip()
    return email, password


def main(argv: list[str] | None = None) -> int:
    """``python -m job_copilot.vault [seal [ENV [VAULT]] | decrypt [VAULT]]``.

    The master password comes from MASTER_PASSWORD or an interactive prompt.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    command = args.pop(0) if args and args[0] in ("seal", "decrypt") else "seal"
    password = os.environ.get("MASTER_PASSWORD") or None

    if command == "decrypt":
        vault_path = Path(args[0]) if args else VAULT_PATH
        for k, v in open_vault(password, vault_path=vault_path).items():
            print(f"{k}={v}")
        return 0

    env_path = Path(args[0]) if args else _PROJECT_ROOT / ".env"
    vault_path = Path(args[1]) if len(args) > 1 else VAULT_PATH
    path = seal_env(env_path, password, vault_path=vault_path)
    print(f"Encrypted credentials saved to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
