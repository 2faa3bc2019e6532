from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CompanyProfile:
    """Issuer (prestador), the company emitting the NFS-e."""

    cnpj: str
    inscricao_municipal: str
    regime_tributario: str = "1"
    razao_social: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> CompanyProfile:
        """Create a CompanyProfile from a YAML-loaded dict, applying defaults.

        Missing registration fields become empty strings; the DPS builder
        reports them to the user instead of failing here.
        """
        return cls(
            cnpj=str(d.get("cnpj") or ""),
            inscricao_municipal=str(d.get("inscricao_municipal") or "").strip(),
            regime_tributario=str(d.get("regime_tributario") or "1"),
            razao_social=d.get("razao_social", ""),
        )
