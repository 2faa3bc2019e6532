from __future__ import annotations

import logging
from datetime import date, datetime, time

from faturador.config import BRT
from faturador.models.dps import NormalizedDPS, Prestador, Servico, Tomador, Valores
from faturador.models.invoice_form import InvoiceForm, ManualClient
from faturador.models.profile import CompanyProfile
from faturador.services.exceptions import (
    InvalidCompetenceDate,
    InvalidCounterpartDocument,
    InvalidMonetaryValue,
    InvalidProviderRegistration,
    MissingCounterpartDocument,
    MissingOperationNature,
)
from faturador.services.locality import LocalityDirectory, resolve_locality_code
from faturador.services.service_codes import normalize_lc116, normalize_nbs
from faturador.utils.parsers import ZERO, extract_code, only_digits, parse_currency
from faturador.utils.validators import validate_date, validate_document

logger = logging.getLogger(__name__)

NAT_OP_DEFAULT = "1"

NATUREZA_OPERACAO = {
    "Tributação no município": "1",
    "Tributação fora do município": "2",
    "Isento": "3",
    "Isenta": "3",
}


def map_natureza_operacao(label: str | None) -> str:
    """Map the operation-nature label to natOp; unknown or empty defaults to "1"."""
    return NATUREZA_OPERACAO.get((label or "").strip(), NAT_OP_DEFAULT)


def _competencia(raw: str, now: datetime) -> str:
    if not raw:
        return now.isoformat()
    try:
        d = date.fromisoformat(validate_date(raw))
    except ValueError as exc:
        raise InvalidCompetenceDate(str(exc)) from None
    return datetime.combine(d, time(), tzinfo=now.tzinfo).isoformat()


def build_dps(
    form: InvoiceForm,
    profile: CompanyProfile,
    *,
    now: datetime | None = None,
    directory: LocalityDirectory | None = None,
    log: logging.Logger | None = None,
) -> NormalizedDPS:
    """Validate the emission form and build the normalized DPS.

    *now* is the emission instant (defaults to the current time in BRT; a naive
    value is taken as BRT); the competence date is taken at midnight in the
    same timezone. *log* receives the computed codes at DEBUG level (defaults
    to this module's logger). Raises a DPSValidationError subclass with a
    user-facing message on the first rule that fails.
    """
    now = now or datetime.now(BRT)
    if now.tzinfo is None:
        now = now.replace(tzinfo=BRT)

    c_trib_nac = normalize_lc116(extract_code(form.codigo_servico))
    c_nbs = normalize_nbs(form.codigo_nbs)

    toma_doc = only_digits(form.tomador.documento)
    toma_nome = form.tomador.nome if isinstance(form.tomador, ManualClient) else ""

    d_comp = _competencia(form.data_competencia, now)
    c_mun = resolve_locality_code(form, directory)

    v_serv = parse_currency(form.valor)
    v_pis = parse_currency(form.pis)
    v_cofins = parse_currency(form.cofins)
    v_ir = parse_currency(form.ir)
    v_csll = parse_currency(form.csll)
    v_inss = parse_currency(form.inss)
    v_issqn = parse_currency(form.iss_retido_valor)

    prest_cnpj = only_digits(profile.cnpj)
    if len(prest_cnpj) != 14:
        raise InvalidProviderRegistration(
            "CNPJ do prestador inválido ou não cadastrado. "
            "Por favor, verifique os dados da empresa em Configurações."
        )
    prest_im = profile.inscricao_municipal.strip()
    if not prest_im:
        raise InvalidProviderRegistration(
            "Inscrição Municipal do prestador não encontrada. "
            "Por favor, cadastre-a em Configurações."
        )

    nat_op = map_natureza_operacao(form.natureza_operacao)

    if v_serv <= 0:
        raise InvalidMonetaryValue("O valor do serviço deve ser maior que zero.")
    if not nat_op:
        raise MissingOperationNature("Selecione a natureza da operação.")
    if not toma_doc:
        raise MissingCounterpartDocument("Informe o documento do tomador.")
    if not validate_document(toma_doc):
        raise InvalidCounterpartDocument("CPF/CNPJ do tomador inválido.")

    v_issqn_retido = v_issqn if form.iss_retido else ZERO
    v_liq = v_serv - (v_pis + v_cofins + v_ir + v_csll + v_inss + v_issqn_retido)

    valores = Valores(
        v_serv=v_serv,
        v_liq=v_liq,
        v_pis=v_pis,
        v_cofins=v_cofins,
        v_ir=v_ir,
        v_csll=v_csll,
        v_inss=v_inss,
        v_issqn=v_issqn,
        iss_retido=form.iss_retido,
    )

    dps = NormalizedDPS(
        dh_emi=now.isoformat(),
        d_comp=d_comp,
        nat_op=nat_op,
        servico=Servico(c_trib_nac=c_trib_nac, c_nbs=c_nbs),
        valores=valores,
        prestador=Prestador(
            cnpj=prest_cnpj,
            regime_trib=profile.regime_tributario or "1",
            im=prest_im,
        ),
        tomador=Tomador(c_mun=c_mun, documento=toma_doc, nome=toma_nome),
    )

    (log or logger).debug(
        "DPS built: cTribNac=%s cMun=%s natOp=%s vServ=%s vLiq=%s",
        c_trib_nac,
        c_mun,
        nat_op,
        v_serv,
        v_liq,
    )
    return dps
