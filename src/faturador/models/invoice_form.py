from __future__ import annotations

from dataclasses import dataclass
from typing import Any

_TRUTHY = frozenset({"true", "1", "sim", "s", "yes", "on"})


@dataclass(frozen=True)
class RegisteredClient:
    """Service taker (tomador) picked from the client registry."""

    documento: str
    client_id: str | None = None


@dataclass(frozen=True)
class ManualClient:
    """Service taker (tomador) typed directly into the form."""

    documento: str
    nome: str
    cidade: str = ""
    cep: str = ""


Counterpart = RegisteredClient | ManualClient


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def _money(value: Any) -> Any:
    # Raw amounts are kept as-is and parsed by the DPS builder
    return None if value is None or value == "" else value


@dataclass(frozen=True)
class InvoiceForm:
    """Invoice emission form as submitted by the UI.

    Monetary fields hold raw values (``"1.234,56"``); the DPS builder parses them.
    """

    codigo_servico: str
    tomador: Counterpart
    codigo_nbs: str = ""
    natureza_operacao: str = ""
    data_competencia: str = ""  # YYYY-MM-DD
    ibge_municipio: str = ""
    descricao_servico: str = ""

    valor: Any = None
    pis: Any = None
    cofins: Any = None
    ir: Any = None
    csll: Any = None
    inss: Any = None
    iss_retido: bool = False
    iss_retido_valor: Any = None

    @classmethod
    def from_dict(cls, d: dict) -> InvoiceForm:
        """Create an InvoiceForm from the UI's camelCase record."""
        mode = _text(d.get("clientMode")) or "registered"
        tomador: Counterpart
        if mode == "manual":
            tomador = ManualClient(
                documento=_text(d.get("manualClientCnpj")),
                nome=_text(d.get("manualClientRazaoSocial")),
                cidade=_text(d.get("manualClientCidade")),
                cep=_text(d.get("manualClientCep")),
            )
        else:
            tomador = RegisteredClient(
                documento=_text(d.get("registeredClientCnpj")),
                client_id=_text(d.get("registeredClientId")) or None,
            )
        return cls(
            codigo_servico=_text(d.get("codigoServico")),
            tomador=tomador,
            codigo_nbs=_text(d.get("codigoNbs")),
            natureza_operacao=_text(d.get("naturezaOperacao")),
            data_competencia=_text(d.get("dataCompetencia")),
            ibge_municipio=_text(d.get("ibgeMunicipio")),
            descricao_servico=_text(d.get("descricaoServico")),
            valor=_money(d.get("valor")),
            pis=_money(d.get("pis")),
            cofins=_money(d.get("cofins")),
            ir=_money(d.get("ir")),
            csll=_money(d.get("csll")),
            inss=_money(d.get("inss")),
            iss_retido=_flag(d.get("issRetido")),
            iss_retido_valor=_money(d.get("issRetidoValor")),
        )

    @property
    def client_mode(self) -> str:
        return "manual" if isinstance(self.tomador, ManualClient) else "registered"
