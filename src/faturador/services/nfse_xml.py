from __future__ import annotations

import re
from decimal import Decimal

from lxml import etree

from faturador.models.dps import NormalizedDPS


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    el = etree.SubElement(parent, tag)
    if text is not None:
        el.text = text
    return el


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def build_nfse_xml(
    dps: NormalizedDPS,
    numero: str,
    descricao: str,
    local_prestacao: str = "mesmo_municipio",
    service_location_code: str | None = None,
) -> etree._Element:
    """Build the simplified ABRASF-style <CompNfse> document for an issued note.

    Returns the <CompNfse> root element.
    """
    v = dps.valores

    comp = etree.Element("CompNfse")
    nfse = _sub(comp, "Nfse")
    inf = _sub(nfse, "InfNfse")
    inf.set("Id", f"NFS{re.sub(r'[^0-9]', '', numero)}")

    _sub(inf, "Numero", numero)
    _sub(inf, "DataEmissao", dps.dh_emi)
    _sub(inf, "Competencia", dps.d_comp)
    _sub(inf, "NaturezaOperacao", dps.nat_op)

    local = _sub(inf, "LocalPrestacao")
    _sub(local, "Tipo", "1" if local_prestacao == "mesmo_municipio" else "2")
    if service_location_code:
        _sub(local, "CodigoMunicipio", service_location_code)

    servico = _sub(inf, "Servico")
    valores = _sub(servico, "Valores")
    _sub(valores, "ValorServicos", _money(v.v_serv))
    _sub(valores, "ValorIssRetido", _money(v.v_issqn))
    _sub(valores, "ValorPis", _money(v.v_pis))
    _sub(valores, "ValorCofins", _money(v.v_cofins))
    _sub(valores, "ValorInss", _money(v.v_inss))
    _sub(valores, "ValorIr", _money(v.v_ir))
    _sub(valores, "ValorCsll", _money(v.v_csll))
    _sub(valores, "ValorLiquidoNfse", _money(v.v_liq))
    _sub(servico, "Discriminacao", descricao)

    _sub(inf, "IssRetido", "1" if v.iss_retido else "2")

    return comp


def nfse_xml_bytes(dps: NormalizedDPS, numero: str, descricao: str, **kwargs) -> bytes:
    """Serialize the <CompNfse> document as UTF-8 with an XML declaration."""
    root = build_nfse_xml(dps, numero, descricao, **kwargs)
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)
