from __future__ import annotations

from datetime import datetime

import pytest

from faturador.config import BRT
from faturador.models.invoice_form import InvoiceForm
from faturador.models.profile import CompanyProfile


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 10, 14, 30, 0, tzinfo=BRT)


# --- Profile fixtures ---


@pytest.fixture
def profile_dict() -> dict:
    return {
        "cnpj": "12.345.678/0001-99",
        "razao_social": "ACME SERVICOS LTDA",
        "inscricao_municipal": "987654",
        "regime_tributario": "1",
    }


@pytest.fixture
def profile(profile_dict: dict) -> CompanyProfile:
    return CompanyProfile.from_dict(profile_dict)


# --- Form fixtures ---


@pytest.fixture
def manual_form_dict() -> dict:
    return {
        "codigoServico": "01.02 - Programação",
        "codigoNbs": "1.2101 - Serviços de desenv. de software e TI",
        "clientMode": "manual",
        "manualClientCnpj": "11.222.333/0001-81",
        "manualClientRazaoSocial": "Cliente Manual LTDA",
        "manualClientCidade": "Londrina",
        "naturezaOperacao": "Tributação no município",
        "dataCompetencia": "2025-06-01",
        "valor": "1.000,00",
        "descricaoServico": "Desenvolvimento de sistema",
    }


@pytest.fixture
def registered_form_dict() -> dict:
    return {
        "codigoServico": "17.01 - Assessoria ou consultoria de qualquer natureza",
        "clientMode": "registered",
        "registeredClientCnpj": "529.982.247-25",
        "ibgeMunicipio": "2403251",
        "naturezaOperacao": "Tributação fora do município",
        "dataCompetencia": "2025-05-31",
        "valor": "R$ 2.500,00",
    }


@pytest.fixture
def manual_form(manual_form_dict: dict) -> InvoiceForm:
    return InvoiceForm.from_dict(manual_form_dict)


@pytest.fixture
def client_dict() -> dict:
    return {
        "documento": "11.444.777/0001-61",
        "razao_social": "CLIENTE CADASTRADO SA",
        "cod_municipio": "4113700",
        "cidade": "Londrina",
        "uf": "PR",
    }
