from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

ZERO = Decimal("0")


@dataclass(frozen=True)
class Servico:
    c_trib_nac: str  # LC116, 00.00.00
    c_nbs: str = ""


@dataclass(frozen=True)
class Valores:
    v_serv: Decimal
    v_liq: Decimal
    v_pis: Decimal = ZERO
    v_cofins: Decimal = ZERO
    v_ir: Decimal = ZERO
    v_csll: Decimal = ZERO
    v_inss: Decimal = ZERO
    v_issqn: Decimal = ZERO
    iss_retido: bool = False

    @property
    def v_issqn_retido(self) -> Decimal:
        """ISS amount deducted from the net value; zero unless withheld."""
        return self.v_issqn if self.iss_retido else ZERO

    @property
    def total_retido(self) -> Decimal:
        return (
            self.v_pis
            + self.v_cofins
            + self.v_ir
            + self.v_csll
            + self.v_inss
            + self.v_issqn_retido
        )


@dataclass(frozen=True)
class Prestador:
    cnpj: str
    regime_trib: str
    im: str


@dataclass(frozen=True)
class Tomador:
    c_mun: str  # IBGE, 7 digits
    documento: str = ""
    nome: str = ""

    @property
    def tipo_documento(self) -> str:
        return "CPF" if len(self.documento) == 11 else "CNPJ"


@dataclass(frozen=True)
class NormalizedDPS:
    """Validated DPS ready for submission. Built by ``build_dps``."""

    dh_emi: str
    d_comp: str
    nat_op: str
    servico: Servico
    valores: Valores
    prestador: Prestador
    tomador: Tomador

    def to_payload(self) -> dict[str, Any]:
        """Render the Nuvem Fiscal request body ``{"infDPS": {...}}``."""
        v = self.valores

        c_serv: dict[str, Any] = {"cTribNac": self.servico.c_trib_nac}
        if self.servico.c_nbs:
            c_serv["cNBS"] = self.servico.c_nbs

        toma: dict[str, Any] = {}
        if self.tomador.documento:
            toma[self.tomador.tipo_documento] = self.tomador.documento
        if self.tomador.nome:
            toma["xNome"] = self.tomador.nome
        toma["end"] = {"endNac": {"cMun": self.tomador.c_mun}}

        inf_dps = {
            "dhEmi": self.dh_emi,
            "dComp": self.d_comp,
            "natOp": self.nat_op,
            "serv": {"cServ": c_serv},
            "valores": {
                "vServ": float(v.v_serv),
                "vLiq": float(v.v_liq),
                "trib": {
                    "tribFed": {
                        "piscofins": {
                            "vPis": float(v.v_pis),
                            "vCofins": float(v.v_cofins),
                        },
                        "vIr": float(v.v_ir),
                        "vCsll": float(v.v_csll),
                        "vInss": float(v.v_inss),
                    },
                    "tribMun": {
                        "tribISSQN": {
                            "vISSQN": float(v.v_issqn),
                            "tpRetISSQN": 1 if v.iss_retido else 2,
                        },
                    },
                },
            },
            "prest": {
                "CNPJ": self.prestador.cnpj,
                "regimeTrib": self.prestador.regime_trib,
                "im": self.prestador.im,
            },
            "toma": toma,
        }
        return {"infDPS": inf_dps}
