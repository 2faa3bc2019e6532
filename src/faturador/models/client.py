from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Client:
    """Registered service taker (tomador) stored under config/clientes/."""

    documento: str
    razao_social: str
    cod_municipio: str | None = None
    cidade: str | None = None
    uf: str | None = None
    email: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Client:
        """Create a Client from a YAML-loaded dict, applying defaults for optional fields."""
        cod_municipio = d.get("cod_municipio")
        return cls(
            documento=str(d["documento"]),
            razao_social=d["razao_social"],
            cod_municipio=str(cod_municipio) if cod_municipio else None,
            cidade=d.get("cidade"),
            uf=d.get("uf"),
            email=d.get("email"),
        )
