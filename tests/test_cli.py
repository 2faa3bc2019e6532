from __future__ import annotations

from unittest.mock import patch

import pytest
import requests
import yaml

from faturador.cli import (
    _init_config,
    _preflight,
    _remove_env_var,
    _setup_credentials,
    _upsert_env_var,
    main,
)
from faturador.services.exceptions import NuvemFiscalError
from faturador.utils.registry import list_invoices


@pytest.fixture
def workspace(monkeypatch, tmp_path, profile_dict):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "empresa.yaml").write_text(yaml.dump(profile_dict, allow_unicode=True))
    data_dir = tmp_path / "data"
    monkeypatch.setenv("FATURADOR_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("FATURADOR_DATA_DIR", str(data_dir))
    monkeypatch.delenv("NUVEM_CLIENT_ID", raising=False)
    return tmp_path


@pytest.fixture
def form_file(tmp_path, manual_form_dict):
    path = tmp_path / "nota.yaml"
    path.write_text(yaml.dump(manual_form_dict, allow_unicode=True), encoding="utf-8")
    return path


class TestMain:
    @patch("faturador.cli._init_config")
    def test_init_dispatches(self, mock_init):
        main(["init"])
        mock_init.assert_called_once()

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            main([])


class TestValidar:
    def test_valid_cnpj(self, capsys):
        main(["validar", "11222333000181"])
        assert "CNPJ válido: 11.222.333/0001-81" in capsys.readouterr().out

    def test_valid_cpf(self, capsys):
        main(["validar", "529.982.247-25"])
        assert "CPF válido" in capsys.readouterr().out

    def test_invalid_exits_1(self, capsys):
        with pytest.raises(SystemExit, match="1"):
            main(["validar", "11111111111"])
        assert "inválido" in capsys.readouterr().out


class TestEmitir:
    def test_dry_run_prints_payload_and_saves(self, workspace, form_file, capsys):
        main(["emitir", str(form_file)])
        out = capsys.readouterr().out
        assert '"cTribNac": "01.02.00"' in out
        assert "R$ 1.000,00" in out
        assert "Rascunho salvo em" in out
        saved = list((workspace / "data" / "homologacao" / "dry_run").glob("dps_*.json"))
        assert len(saved) == 1

    def test_xml_output(self, workspace, form_file, capsys):
        main(["emitir", str(form_file), "--xml", "2025/1"])
        out = capsys.readouterr().out
        assert "<CompNfse>" in out
        assert "<Discriminacao>Desenvolvimento de sistema</Discriminacao>" in out

    def test_submit_in_mock_mode(self, workspace, form_file, capsys):
        main(["emitir", str(form_file), "--enviar"])
        out = capsys.readouterr().out
        assert "2026001" in out
        assert "modo mock" in out

        main(["notas"])
        assert "2026001" in capsys.readouterr().out

    def test_validation_error_exits_1(self, workspace, tmp_path, manual_form_dict, capsys):
        manual_form_dict["valor"] = "0,00"
        path = tmp_path / "zero.yaml"
        path.write_text(yaml.dump(manual_form_dict, allow_unicode=True), encoding="utf-8")
        with pytest.raises(SystemExit, match="1"):
            main(["emitir", str(path)])
        assert "maior que zero" in capsys.readouterr().out

    @patch("faturador.services.emission.emit_dps")
    def test_api_error_exits_1(self, mock_emit, workspace, form_file, capsys):
        mock_emit.side_effect = NuvemFiscalError("Erro na emissão da DPS (500)")
        with pytest.raises(SystemExit, match="1"):
            main(["emitir", str(form_file), "--enviar"])
        assert "Erro na emissão da DPS (500)" in capsys.readouterr().out

    def test_missing_form_file(self, workspace, capsys):
        with pytest.raises(SystemExit, match="1"):
            main(["emitir", str(workspace / "nope.yaml")])
        assert "arquivo não encontrado" in capsys.readouterr().out

    def test_unknown_registered_client_exits_1(self, workspace, tmp_path, capsys):
        path = tmp_path / "registrado.yaml"
        path.write_text(
            yaml.dump({"codigoServico": "01.07", "registeredClientId": "nao-existe", "valor": "10"}),
            encoding="utf-8",
        )
        with pytest.raises(SystemExit, match="1"):
            main(["emitir", str(path)])
        assert "Cliente 'nao-existe' não encontrado" in capsys.readouterr().out

    @patch("faturador.services.emission.get_nuvem_credentials", return_value=("id", "secret"))
    @patch("faturador.services.nuvem_client.post")
    def test_network_error_exits_1(self, mock_post, _creds, workspace, form_file, capsys):
        mock_post.side_effect = requests.ConnectionError("down")
        with pytest.raises(SystemExit, match="1"):
            main(["emitir", str(form_file), "--enviar"])
        assert "Falha de comunicação com a Nuvem Fiscal: down" in capsys.readouterr().out

    def test_repeated_mock_submissions_are_registered_separately(
        self, workspace, form_file, capsys
    ):
        main(["emitir", str(form_file), "--enviar"])
        main(["emitir", str(form_file), "--enviar"])
        capsys.readouterr()

        assert len(list_invoices()) == 2


class TestNotas:
    def test_empty(self, workspace, capsys):
        main(["notas"])
        assert "Nenhuma nota registrada" in capsys.readouterr().out

    def test_show_by_id(self, workspace, form_file, capsys):
        main(["emitir", str(form_file), "--enviar"])
        capsys.readouterr()

        invoice_id = list_invoices()[0]["id"]
        main(["notas", "--id", invoice_id])
        out = capsys.readouterr().out
        assert invoice_id in out
        assert "Cliente Manual LTDA" in out

    def test_unknown_id_exits_1(self, workspace, capsys):
        with pytest.raises(SystemExit, match="1"):
            main(["notas", "--id", "nfse_x"])
        assert "Nota não encontrada" in capsys.readouterr().out


class TestClientes:
    def test_empty_list(self, workspace, capsys):
        main(["clientes", "listar"])
        assert "Nenhum cliente cadastrado" in capsys.readouterr().out

    def test_add_list_remove(self, workspace, capsys):
        main(
            [
                "clientes",
                "adicionar",
                "acme",
                "--documento",
                "11444777000161",
                "--razao-social",
                "ACME SA",
                "--cod-municipio",
                "4113700",
            ]
        )
        saved = yaml.safe_load((workspace / "config" / "clientes" / "acme.yaml").read_text("utf-8"))
        assert saved == {
            "documento": "11.444.777/0001-61",
            "razao_social": "ACME SA",
            "cod_municipio": "4113700",
        }

        main(["clientes", "listar"])
        out = capsys.readouterr().out
        assert "acme" in out
        assert "ACME SA" in out

        main(["clientes", "remover", "acme"])
        assert not (workspace / "config" / "clientes" / "acme.yaml").exists()

    def test_added_client_feeds_emission(self, workspace, tmp_path, capsys):
        main(
            [
                "clientes",
                "adicionar",
                "acme",
                "--documento",
                "11.444.777/0001-61",
                "--razao-social",
                "ACME SA",
                "--cod-municipio",
                "4113700",
            ]
        )
        path = tmp_path / "registrado.yaml"
        path.write_text(
            yaml.dump({"codigoServico": "01.07", "registeredClientId": "acme", "valor": "10"}),
            encoding="utf-8",
        )
        main(["emitir", str(path)])
        out = capsys.readouterr().out
        assert "11.444.777/0001-61 ACME SA" in out
        assert '"cMun": "4113700"' in out

    def test_add_rejects_invalid_document(self, workspace, capsys):
        with pytest.raises(SystemExit, match="1"):
            main(["clientes", "adicionar", "x", "--documento", "111", "--razao-social", "X"])
        assert "CPF/CNPJ inválido" in capsys.readouterr().out
        assert not (workspace / "config" / "clientes" / "x.yaml").exists()

    def test_rejects_path_like_slug(self, workspace, capsys):
        with pytest.raises(SystemExit, match="1"):
            main(["clientes", "remover", "../empresa"])
        assert "nome de cliente inválido" in capsys.readouterr().out
        assert (workspace / "config" / "empresa.yaml").exists()

    def test_remove_missing(self, workspace, capsys):
        with pytest.raises(SystemExit, match="1"):
            main(["clientes", "remover", "fantasma"])
        assert "não encontrado" in capsys.readouterr().out


class TestPreflight:
    def test_ok(self, workspace):
        assert _preflight() is True

    def test_missing_profile(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("FATURADOR_CONFIG_DIR", str(tmp_path))
        assert _preflight() is False
        assert "faturador init" in capsys.readouterr().out


class TestInitConfig:
    def test_creates_examples(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FATURADOR_CONFIG_DIR", str(tmp_path / "config"))
        monkeypatch.setenv("FATURADOR_DATA_DIR", str(tmp_path / "data"))
        with patch("builtins.input", return_value="n"):
            _init_config()
        profile = yaml.safe_load((tmp_path / "config" / "empresa.yaml.example").read_text("utf-8"))
        assert profile["inscricao_municipal"]
        assert (tmp_path / "config" / "clientes" / "cliente-exemplo.yaml.example").exists()
        assert (tmp_path / "data").is_dir()

    def test_skips_existing(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("FATURADOR_CONFIG_DIR", str(tmp_path / "config"))
        monkeypatch.setenv("FATURADOR_DATA_DIR", str(tmp_path / "data"))
        with patch("builtins.input", return_value="n"):
            _init_config()
            _init_config()
        assert "Nenhum arquivo novo" in capsys.readouterr().out


class TestSetupCredentials:
    def test_skip(self, tmp_path):
        with patch("builtins.input", return_value=""):
            assert _setup_credentials(tmp_path) is False
        assert not (tmp_path / ".env").exists()

    @patch("faturador.cli._check_keyring_available", return_value=False)
    @patch("faturador.config._delete_keyring_secret", return_value=True)
    def test_saves_to_env_without_keyring(self, _del, _avail, tmp_path):
        with (
            patch("builtins.input", return_value="my-id"),
            patch("faturador.cli.getpass.getpass", return_value="my-secret"),
        ):
            assert _setup_credentials(tmp_path) is True
        content = (tmp_path / ".env").read_text()
        assert "NUVEM_CLIENT_ID='my-id'" in content
        assert "NUVEM_CLIENT_SECRET='my-secret'" in content

    @patch("faturador.cli._check_keyring_available", return_value=True)
    @patch("faturador.config._set_keyring_secret", return_value=True)
    def test_saves_to_keyring(self, mock_set, _avail, tmp_path):
        with (
            patch("builtins.input", return_value="my-id"),
            patch("faturador.cli.getpass.getpass", return_value="my-secret"),
        ):
            assert _setup_credentials(tmp_path) is True
        mock_set.assert_called_once_with("my-secret")
        assert "NUVEM_CLIENT_SECRET" not in (tmp_path / ".env").read_text()


class TestEnvFileHelpers:
    def test_upsert_and_remove(self, tmp_path):
        env_file = tmp_path / "sub" / ".env"
        _upsert_env_var(env_file, "KEY", "value #1")
        assert "KEY=" in env_file.read_text()
        _remove_env_var(env_file, "KEY")
        assert "KEY" not in env_file.read_text()

    def test_remove_missing_file(self, tmp_path):
        _remove_env_var(tmp_path / ".env", "KEY")
