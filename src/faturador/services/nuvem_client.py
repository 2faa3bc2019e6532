from __future__ import annotations

import logging
import uuid

from requests import RequestException, post

from faturador.config import ENDPOINTS, NUVEM_AUTH_URL, NUVEM_SCOPE, NUVEM_TIMEOUT
from faturador.services.exceptions import NuvemFiscalError

logger = logging.getLogger(__name__)

MOCK_RESPONSE = {
    "status": "autorizado",
    "numero": "2026001",
    "protocolo": "PROT-MOCK-99",
    "mode": "mock",
}


def _json_or_none(resp) -> dict | None:
    try:
        return resp.json()
    except ValueError:
        return None


def _details(resp) -> dict:
    data = _json_or_none(resp)
    if data is not None:
        return data
    return {"status": resp.status_code, "statusText": (resp.text or "")[:500]}


def _post(url: str, **kwargs):
    try:
        return post(url, timeout=NUVEM_TIMEOUT, **kwargs)
    except RequestException as exc:
        logger.error("Nuvem Fiscal request to %s failed: %s", url, exc)
        raise NuvemFiscalError(f"Falha de comunicação com a Nuvem Fiscal: {exc}") from exc


def get_access_token(client_id: str, client_secret: str) -> str:
    """Obtain a Bearer token through the OAuth2 client-credentials grant."""
    resp = _post(
        NUVEM_AUTH_URL,
        data={
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": NUVEM_SCOPE,
        },
    )

    if not resp.ok:
        details = _details(resp)
        logger.error("Nuvem Fiscal auth error (%s): %s", resp.status_code, details)
        raise NuvemFiscalError(
            f"Falha na autenticação Nuvem Fiscal ({resp.status_code})", response=details
        )

    token = (_json_or_none(resp) or {}).get("access_token")
    if not token:
        raise NuvemFiscalError("Resposta de autenticação Nuvem Fiscal sem access_token")
    return token


def emit_dps(
    payload: dict,
    env: str = "homologacao",
    credentials: tuple[str, str] | None = None,
) -> dict:
    """Submit a DPS payload and return the API response.

    Accepts either ``{"infDPS": {...}}`` or the bare infDPS body. Without
    *credentials* nothing is sent and a mock authorization with a fresh
    ``mock_<hex>`` id is returned.
    """
    body = payload if "infDPS" in payload else {"infDPS": payload}

    if credentials is None:
        logger.warning("Nuvem Fiscal credentials missing, running in MOCK MODE")
        return {"id": f"mock_{uuid.uuid4().hex}", **MOCK_RESPONSE}

    token = get_access_token(*credentials)
    resp = _post(
        ENDPOINTS[env]["dps"],
        json=body,
        headers={"Authorization": f"Bearer {token}"},
    )

    if not resp.ok:
        details = _details(resp)
        text = (resp.text or "")[:500]
        raise NuvemFiscalError(
            f"Erro na emissão da DPS ({resp.status_code}): {text}", response=details
        )

    return _json_or_none(resp) or {}
