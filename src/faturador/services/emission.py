from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from faturador.config import (
    get_nuvem_credentials,
    get_output_dir,
    load_client,
    load_profile,
)
from faturador.models.client import Client
from faturador.models.dps import NormalizedDPS
from faturador.models.invoice_form import InvoiceForm
from faturador.models.profile import CompanyProfile
from faturador.services.dps_builder import build_dps
from faturador.services.exceptions import UnknownRegisteredClient
from faturador.services.nuvem_client import emit_dps
from faturador.utils.registry import add_invoice

logger = logging.getLogger(__name__)


@dataclass
class PreparedDPS:
    """All data needed for preview and submission."""

    form: InvoiceForm
    profile: CompanyProfile
    dps: NormalizedDPS
    payload: dict
    env: str
    client: Client | None = None


def _with_registered_client(form_data: dict) -> tuple[dict, Client | None]:
    """Fill tomador CNPJ and IBGE code from config/clientes/ for registered mode.

    Values already present on the form are kept.
    """
    if (form_data.get("clientMode") or "registered") != "registered":
        return form_data, None
    slug = form_data.get("registeredClientId")
    if not slug:
        return form_data, None

    try:
        client = Client.from_dict(load_client(str(slug)))
    except FileNotFoundError:
        raise UnknownRegisteredClient(
            f"Cliente '{slug}' não encontrado em config/clientes/."
        ) from None
    except KeyError as exc:
        raise UnknownRegisteredClient(
            f"Cadastro do cliente '{slug}' incompleto: campo {exc} ausente."
        ) from None
    data = dict(form_data)
    if not data.get("registeredClientCnpj"):
        data["registeredClientCnpj"] = client.documento
    if not data.get("ibgeMunicipio") and client.cod_municipio:
        data["ibgeMunicipio"] = client.cod_municipio
    return data, client


def prepare(
    form_data: dict,
    env: str = "homologacao",
    now: datetime | None = None,
) -> PreparedDPS:
    """Load the company profile, resolve the client, and build the DPS."""
    profile = CompanyProfile.from_dict(load_profile())
    data, client = _with_registered_client(form_data)
    form = InvoiceForm.from_dict(data)

    dps = build_dps(form, profile, now=now)

    return PreparedDPS(
        form=form,
        profile=profile,
        dps=dps,
        payload=dps.to_payload(),
        env=env,
        client=client,
    )


def submit(prepared: PreparedDPS) -> dict:
    """Send the prepared DPS to Nuvem Fiscal and register the result locally."""
    response = emit_dps(prepared.payload, prepared.env, get_nuvem_credentials())

    result = {"response": response}

    invoice_id = response.get("id")
    if invoice_id:
        dps = prepared.dps
        tomador = prepared.client.razao_social if prepared.client else dps.tomador.nome
        try:
            add_invoice(
                str(invoice_id),
                numero=response.get("numero"),
                protocolo=response.get("protocolo"),
                tomador=tomador or dps.tomador.documento,
                valor=f"{dps.valores.v_serv:.2f}",
                valor_liquido=f"{dps.valores.v_liq:.2f}",
                competencia=dps.d_comp[:10],
                emitted_at=dps.dh_emi,
                env=prepared.env,
                status=str(response.get("status") or "autorizado"),
            )
        except Exception:
            logger.warning("Failed to register invoice", exc_info=True)

    return result


def save_json(prepared: PreparedDPS) -> str:
    """Save the prepared payload to disk without submitting (dry run)."""
    stamp = prepared.dps.dh_emi[:19].replace(":", "").replace("-", "")
    out_dir = get_output_dir(prepared.env)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"dps_{stamp}.json"
    seq = 1
    while out_path.exists():
        out_path = out_dir / f"dps_{stamp}_{seq}.json"
        seq += 1
    out_path.write_text(
        json.dumps(prepared.payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    return str(out_path)
