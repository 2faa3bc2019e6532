"""IBGE municipality code resolution for the service taker (tomador).

The explicit code typed on the form always wins. When it is missing and the
manual client carries a CEP, the code comes from a ViaCEP lookup; after that
the manual client's city name is looked up in a ``LocalityDirectory``. The
bundled static table covers a few municipalities used in the test environment
and can be swapped for a full directory.
"""

from __future__ import annotations

import logging
import unicodedata
from collections.abc import Callable, Mapping
from typing import Protocol

from requests import RequestException, get

from faturador.config import VIACEP_TIMEOUT, VIACEP_URL
from faturador.models.invoice_form import InvoiceForm, ManualClient
from faturador.services.exceptions import UnresolvedLocality
from faturador.utils.parsers import only_digits

logger = logging.getLogger(__name__)

CITY_FALLBACKS: dict[str, str] = {
    "londrina": "4113700",
    "parnamirim": "2403251",
}


class LocalityDirectory(Protocol):
    def lookup(self, name: str) -> str | None: ...


def normalize_city_name(name: str) -> str:
    """Lowercase, strip diacritics and surrounding whitespace."""
    decomposed = unicodedata.normalize("NFD", name.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c)).strip()


class StaticLocalityDirectory:
    """Name -> IBGE code lookup over an in-memory mapping."""

    def __init__(self, table: Mapping[str, str] | None = None) -> None:
        source = CITY_FALLBACKS if table is None else table
        self._table = {normalize_city_name(k): v for k, v in source.items()}

    def lookup(self, name: str) -> str | None:
        key = normalize_city_name(name)
        if not key:
            return None
        return self._table.get(key)


DEFAULT_DIRECTORY = StaticLocalityDirectory()


def fetch_ibge_by_cep(cep: str) -> str | None:
    """Return the IBGE code ViaCEP reports for *cep*, or None.

    None covers malformed CEPs (not exactly 8 digits), unknown CEPs
    (``{"erro": true}``), network failures and non-JSON answers.
    """
    digits = only_digits(cep)
    if len(digits) != 8:
        return None
    try:
        resp = get(VIACEP_URL.format(cep=digits), timeout=VIACEP_TIMEOUT)
        data = resp.json()
    except (RequestException, ValueError) as exc:
        logger.warning("CEP lookup failed for %s: %s", digits, exc)
        return None
    if not isinstance(data, dict) or data.get("erro"):
        return None
    return str(data.get("ibge") or "") or None


def resolve_locality_code(
    form: InvoiceForm,
    directory: LocalityDirectory | None = None,
    cep_lookup: Callable[[str], str | None] | None = None,
) -> str:
    """Return the tomador's IBGE code, raising UnresolvedLocality when unknown."""
    code = form.ibge_municipio.strip()
    tomador = form.tomador

    if not code and isinstance(tomador, ManualClient) and tomador.cep:
        code = (cep_lookup or fetch_ibge_by_cep)(tomador.cep) or ""

    if not code and isinstance(tomador, ManualClient) and tomador.cidade:
        code = (directory or DEFAULT_DIRECTORY).lookup(tomador.cidade) or ""

    if not code:
        raise UnresolvedLocality(
            "Ocorreu um erro ao buscar o código da cidade. Por favor, digite o CEP novamente."
        )
    return code
