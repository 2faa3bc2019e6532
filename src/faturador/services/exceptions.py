from __future__ import annotations


class DPSValidationError(ValueError):
    """Form or profile data cannot produce a valid DPS.

    The message is user-facing and says exactly what to fix.
    """


class InvalidServiceCode(DPSValidationError):
    pass


class UnresolvedLocality(DPSValidationError):
    pass


class InvalidProviderRegistration(DPSValidationError):
    pass


class InvalidMonetaryValue(DPSValidationError):
    pass


class InvalidCompetenceDate(DPSValidationError):
    pass


class MissingOperationNature(DPSValidationError):
    pass


class MissingCounterpartDocument(DPSValidationError):
    pass


class InvalidCounterpartDocument(DPSValidationError):
    pass


class UnknownRegisteredClient(DPSValidationError):
    pass


class NuvemFiscalError(Exception):
    """Nuvem Fiscal rejected the authentication or the DPS submission."""

    def __init__(self, message: str, response: dict | None = None) -> None:
        super().__init__(message)
        self.response = response or {}
