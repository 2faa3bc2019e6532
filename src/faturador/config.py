from __future__ import annotations

import os
from datetime import timedelta, timezone
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "faturador"
KEYRING_SERVICE = "faturador"
KEYRING_USERNAME = "nuvem-client-secret"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Returns None if only platformdirs would resolve and that dir does not exist yet.
    """
    from_env = os.environ.get("FATURADOR_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/faturador/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("FATURADOR_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("FATURADOR_DATA_DIR", "data", kind="data")


BRT = timezone(timedelta(hours=-3))

NUVEM_AUTH_URL = "https://auth.nuvemfiscal.com.br/oauth/token"

ENDPOINTS = {
    "homologacao": {
        "dps": "https://api.sandbox.nuvemfiscal.com.br/nfse/dps",
    },
    "producao": {
        "dps": "https://api.nuvemfiscal.com.br/nfse/dps",
    },
}

NUVEM_SCOPE = "nfse"
NUVEM_TIMEOUT = 60

VIACEP_URL = "https://viacep.com.br/ws/{cep}/json/"
VIACEP_TIMEOUT = 10


# --- Keyring helpers ---


def _get_keyring_secret() -> str | None:
    """Try to get the API client secret from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_secret(secret: str) -> bool:
    """Store the API client secret in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, secret)
        return True
    except Exception:
        return False


def _delete_keyring_secret() -> bool:
    """Remove the API client secret from the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        return True
    except Exception:
        return False


# --- Nuvem Fiscal credentials ---


def get_nuvem_credentials() -> tuple[str, str] | None:
    """Return ``(client_id, client_secret)`` for the Nuvem Fiscal API.

    The secret comes from NUVEM_CLIENT_SECRET or, failing that, the OS keyring.
    Returns None when either part is missing (the client then runs in mock mode).
    """
    client_id = (os.environ.get("NUVEM_CLIENT_ID") or "").strip()
    if not client_id:
        return None
    secret = (os.environ.get("NUVEM_CLIENT_SECRET") or "").strip()
    if not secret:
        secret = (_get_keyring_secret() or "").strip()
    if not secret:
        return None
    return client_id, secret


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_profile() -> dict:
    """Load the company profile from config/empresa.yaml."""
    return load_yaml(get_config_dir() / "empresa.yaml")


def load_client(name: str) -> dict:
    """Load a registered client from config/clientes/{name}.yaml."""
    return load_yaml(get_config_dir() / "clientes" / f"{name}.yaml")


def list_clients() -> list[str]:
    """Return sorted list of client names (YAML file stems) from config/clientes/."""
    clients_dir = get_config_dir() / "clientes"
    if not clients_dir.exists():
        return []
    return sorted(f.stem for f in clients_dir.glob("*.yaml"))


def save_client(name: str, data: dict) -> Path:
    """Save a client to config/clientes/{name}.yaml (atomic write)."""
    clients_dir = get_config_dir() / "clientes"
    clients_dir.mkdir(parents=True, exist_ok=True)
    path = clients_dir / f"{name}.yaml"
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        yaml.dump(data, default_flow_style=False, allow_unicode=True), encoding="utf-8"
    )
    os.replace(tmp, path)
    return path


def delete_client(name: str) -> None:
    """Delete a client file config/clientes/{name}.yaml."""
    path = get_config_dir() / "clientes" / f"{name}.yaml"
    path.unlink()


def get_output_dir(env: str) -> Path:
    """Return the dry-run output directory for the given environment."""
    return get_data_dir() / env / "dry_run"
