"""Local registry of emitted invoices.

Every DPS accepted by Nuvem Fiscal is appended to a JSON file in the data
directory so ``faturador notas`` can list them without querying the API.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from faturador import config as _config

logger = logging.getLogger(__name__)


def _registry_path() -> Path:
    return _config.get_data_dir() / "invoices.json"


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


@contextmanager
def _locked() -> Iterator[None]:
    """Hold an exclusive file lock during registry read-modify-write."""
    rp = _registry_path()
    rp.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(rp.with_suffix(".lock"))
    with lock:
        yield


def _load() -> list[dict[str, Any]]:
    rp = _registry_path()
    if not rp.exists():
        return []
    try:
        return json.loads(rp.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError):
        _backup_corrupt(rp)
        return []


def _save(entries: list[dict[str, Any]]) -> None:
    rp = _registry_path()
    rp.parent.mkdir(parents=True, exist_ok=True)
    tmp = rp.with_suffix(".tmp")
    tmp.write_text(json.dumps(entries, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    os.replace(tmp, rp)


def list_invoices(env: str | None = None) -> list[dict[str, Any]]:
    """Return all registered invoices, optionally filtered by env."""
    with _locked():
        entries = _load()
    if env:
        entries = [e for e in entries if e.get("env") == env]
    return entries


def add_invoice(
    invoice_id: str,
    *,
    numero: str | None = None,
    protocolo: str | None = None,
    tomador: str | None = None,
    valor: str | None = None,
    valor_liquido: str | None = None,
    competencia: str | None = None,
    emitted_at: str | None = None,
    env: str = "homologacao",
    status: str = "autorizado",
) -> dict[str, Any]:
    """Add an invoice to the registry.

    If *invoice_id* is already registered, fields still missing on the
    existing entry are filled in and the entry is returned.
    """
    optional = {
        "numero": numero,
        "protocolo": protocolo,
        "tomador": tomador,
        "valor": valor,
        "valor_liquido": valor_liquido,
        "competencia": competencia,
        "emitted_at": emitted_at,
    }

    with _locked():
        entries = _load()

        existing = next((e for e in entries if e.get("id") == invoice_id), None)
        if existing:
            changed = False
            for key, value in optional.items():
                if value is not None and existing.get(key) is None:
                    existing[key] = value
                    changed = True
            if changed:
                _save(entries)
            return existing

        entry: dict[str, Any] = {
            "id": invoice_id,
            "env": env,
            "status": status,
            **{k: v for k, v in optional.items() if v is not None},
        }
        entries.append(entry)
        _save(entries)
        return entry


def find_invoice(invoice_id: str, env: str | None = None) -> dict[str, Any] | None:
    """Look up a single invoice by id, optionally filtered by env."""
    with _locked():
        entries = _load()
    for e in entries:
        if e.get("id") == invoice_id and (env is None or e.get("env") == env):
            return e
    return None
