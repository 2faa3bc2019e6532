from __future__ import annotations

import pytest

from faturador.utils.validators import (
    validate_cnpj,
    validate_cpf,
    validate_date,
    validate_document,
)

VALID_CPF = "52998224725"
VALID_CNPJ = "11222333000181"


class TestValidateCpf:
    def test_valid(self):
        assert validate_cpf(VALID_CPF) is True

    def test_valid_masked(self):
        assert validate_cpf("529.982.247-25") is True

    def test_another_valid(self):
        assert validate_cpf("111.444.777-35") is True

    @pytest.mark.parametrize("digit", "0123456789")
    def test_repeated_digits_rejected(self, digit):
        assert validate_cpf(digit * 11) is False

    @pytest.mark.parametrize("position", range(11))
    def test_single_digit_mutation_rejected(self, position):
        for replacement in "0123456789":
            if replacement == VALID_CPF[position]:
                continue
            mutated = VALID_CPF[:position] + replacement + VALID_CPF[position + 1 :]
            assert validate_cpf(mutated) is False, mutated

    def test_wrong_length(self):
        assert validate_cpf("5299822472") is False
        assert validate_cpf("529982247250") is False

    def test_empty(self):
        assert validate_cpf("") is False

    def test_none_does_not_raise(self):
        assert validate_cpf(None) is False  # type: ignore[arg-type]

    def test_letters_only(self):
        assert validate_cpf("abcdefghijk") is False


class TestValidateCnpj:
    def test_valid(self):
        assert validate_cnpj(VALID_CNPJ) is True

    def test_valid_masked(self):
        assert validate_cnpj("11.444.777/0001-61") is True

    @pytest.mark.parametrize("digit", "0123456789")
    def test_repeated_digits_rejected(self, digit):
        assert validate_cnpj(digit * 14) is False

    def test_wrong_first_check_digit(self):
        assert validate_cnpj("11222333000191") is False

    def test_wrong_second_check_digit(self):
        assert validate_cnpj("11222333000182") is False

    def test_wrong_length(self):
        assert validate_cnpj("1122233300018") is False

    def test_non_string(self):
        assert validate_cnpj(11222333000181) is False  # type: ignore[arg-type]


class TestValidateDocument:
    def test_dispatches_cpf(self):
        assert validate_document("529.982.247-25") is True

    def test_dispatches_cnpj(self):
        assert validate_document("11.222.333/0001-81") is True

    def test_invalid_cpf(self):
        assert validate_document("52998224726") is False

    def test_other_lengths(self):
        assert validate_document("123456789") is False
        assert validate_document("") is False


class TestValidateDate:
    def test_valid(self):
        assert validate_date("2025-12-30") == "2025-12-30"

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="invalida"):
            validate_date("30/12/2025")

    def test_invalid_month(self):
        with pytest.raises(ValueError, match="invalida"):
            validate_date("2025-13-01")

    def test_leap_year(self):
        assert validate_date("2024-02-29") == "2024-02-29"
