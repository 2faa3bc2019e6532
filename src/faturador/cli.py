from __future__ import annotations

import argparse
import getpass
import json
import logging
import re
import stat
import sys
from pathlib import Path

import yaml

EXAMPLE_PROFILE = {
    "cnpj": "11.222.333/0001-81",
    "razao_social": "MINHA EMPRESA LTDA",
    "inscricao_municipal": "123456",
    "regime_tributario": "1",
}

EXAMPLE_CLIENT = {
    "documento": "11.444.777/0001-61",
    "razao_social": "CLIENTE EXEMPLO LTDA",
    "cod_municipio": "4113700",
    "cidade": "Londrina",
    "uf": "PR",
}

_SLUG_RE = re.compile(r"[A-Za-z0-9_-]+")


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed.

    Uses dotenv.set_key for proper quoting (handles #, spaces, etc.).
    """
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    """Remove a key from a .env file if present."""
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  AVISO: {env_file} tem permissões abertas.")
            print("  Recomendação: chmod 600", env_file)
    except OSError:
        pass


def _setup_credentials(config_dir: Path) -> bool:
    """Interactive Nuvem Fiscal credential setup. Returns True if configured."""
    print()
    print("Credenciais da API Nuvem Fiscal")
    print("───────────────────────────────")
    print()

    client_id = input("Client ID (vazio para pular): ").strip()
    if not client_id:
        print("  Configuração de credenciais pulada.")
        return False
    client_secret = getpass.getpass("Client secret: ")
    if not client_secret:
        print("  Client secret vazio. Configuração abortada.")
        return False

    env_file = config_dir / ".env"
    _upsert_env_var(env_file, "NUVEM_CLIENT_ID", client_id)

    from faturador.config import _delete_keyring_secret, _set_keyring_secret

    if _check_keyring_available() and _set_keyring_secret(client_secret):
        print("  Secret armazenado no keychain do sistema.")
        _remove_env_var(env_file, "NUVEM_CLIENT_SECRET")
    else:
        _upsert_env_var(env_file, "NUVEM_CLIENT_SECRET", client_secret)
        print(f"  Secret salvo em {env_file}")
        _warn_open_permissions(env_file)
        _delete_keyring_secret()
    return True


def _init_config() -> None:
    """Create config/data directories with example profile and client files."""
    from faturador.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()

    (config_dir / "clientes").mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    for rel, content in [
        ("empresa.yaml.example", EXAMPLE_PROFILE),
        ("clientes/cliente-exemplo.yaml.example", EXAMPLE_CLIENT),
    ]:
        dest = config_dir / rel
        if dest.exists():
            print(f"  já existe: {dest}")
            continue
        dest.write_text(
            yaml.dump(content, default_flow_style=False, allow_unicode=True), encoding="utf-8"
        )
        print(f"  criado: {dest}")
        copied += 1

    print()
    print(f"Configuração: {config_dir}")
    print(f"Dados:   {data_dir}")

    print()
    try:
        answer = input("Deseja configurar as credenciais da API agora? [S/n]: ").strip().lower()
        if answer in ("", "s", "sim", "y", "yes"):
            _setup_credentials(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    if copied:
        print("Próximos passos:")
        print(f"  1. cp {config_dir / 'empresa.yaml.example'} {config_dir / 'empresa.yaml'}")
        print("  2. Edite empresa.yaml com os dados do seu CNPJ")
        print("  3. Execute: faturador emitir nota.yaml")
    else:
        print("Nenhum arquivo novo criado (todos já existiam).")


def _preflight() -> bool:
    """Verify the company profile exists before emitting."""
    from faturador.config import get_config_dir

    config_dir = get_config_dir()
    if not (config_dir / "empresa.yaml").is_file():
        print(f"Erro: empresa.yaml não encontrado em {config_dir}")
        print("Execute 'faturador init' e configure os dados da empresa.")
        return False
    return True


def _print_summary(prepared) -> None:
    from faturador.utils.formatters import format_brl, format_document

    dps = prepared.dps
    v = dps.valores
    print(f"Prestador:   {format_document(dps.prestador.cnpj)} (IM {dps.prestador.im})")
    tomador = dps.tomador.nome or (prepared.client.razao_social if prepared.client else "")
    print(f"Tomador:     {format_document(dps.tomador.documento)} {tomador}".rstrip())
    print(f"Município:   {dps.tomador.c_mun}")
    print(f"Serviço:     {dps.servico.c_trib_nac}")
    print(f"Valor:       {format_brl(v.v_serv)}")
    print(f"Retenções:   {format_brl(v.total_retido)}")
    print(f"Líquido:     {format_brl(v.v_liq)}")


def _cmd_emitir(args: argparse.Namespace) -> int:
    from faturador.services import emission
    from faturador.services.exceptions import DPSValidationError, NuvemFiscalError
    from faturador.services.nfse_xml import nfse_xml_bytes

    if not _preflight():
        return 1

    form_path = Path(args.form)
    if not form_path.is_file():
        print(f"Erro: arquivo não encontrado: {form_path}")
        return 1
    form_data = yaml.safe_load(form_path.read_text(encoding="utf-8")) or {}

    try:
        prepared = emission.prepare(form_data, env=args.env)
    except DPSValidationError as e:
        print(f"Erro: {e}")
        return 1

    _print_summary(prepared)
    print()

    if args.xml:
        xml = nfse_xml_bytes(prepared.dps, args.xml, prepared.form.descricao_servico)
        print(xml.decode("utf-8"))
    else:
        print(json.dumps(prepared.payload, indent=2, ensure_ascii=False))

    if not args.enviar:
        print()
        print(f"Rascunho salvo em {emission.save_json(prepared)}")
        return 0

    try:
        result = emission.submit(prepared)
    except NuvemFiscalError as e:
        print(f"Erro: {e}")
        return 1

    response = result["response"]
    print()
    print(f"Status:      {response.get('status', '-')}")
    print(f"Número:      {response.get('numero', '-')}")
    print(f"Protocolo:   {response.get('protocolo', '-')}")
    if response.get("mode") == "mock":
        print("  AVISO: credenciais ausentes, emissão simulada (modo mock).")
    return 0


def _cmd_validar(args: argparse.Namespace) -> int:
    from faturador.utils.formatters import format_document
    from faturador.utils.parsers import only_digits
    from faturador.utils.validators import validate_document

    digits = only_digits(args.documento)
    if validate_document(digits):
        kind = "CPF" if len(digits) == 11 else "CNPJ"
        print(f"{kind} válido: {format_document(digits)}")
        return 0
    print(f"Documento inválido: {args.documento}")
    return 1


def _cmd_notas(args: argparse.Namespace) -> int:
    from faturador.utils.formatters import format_brl
    from faturador.utils.registry import find_invoice, list_invoices

    if args.id:
        entry = find_invoice(args.id, args.env)
        if entry is None:
            print(f"Nota não encontrada: {args.id}")
            return 1
        for key, value in entry.items():
            print(f"{key + ':':14} {value}")
        return 0

    entries = list_invoices(args.env)
    if not entries:
        print("Nenhuma nota registrada.")
        return 0
    for e in entries:
        valor = format_brl(e["valor"]) if e.get("valor") else "-"
        print(
            f"{e.get('numero', '-'):>10}  {e.get('competencia', '-'):10}  "
            f"{valor:>16}  {e.get('status', '-'):10}  {e.get('tomador', '')}"
        )
    return 0


def _cmd_clientes(args: argparse.Namespace) -> int:
    from faturador.config import delete_client, list_clients, load_client, save_client
    from faturador.utils.formatters import format_document
    from faturador.utils.parsers import only_digits
    from faturador.utils.validators import validate_document

    if args.acao == "listar":
        slugs = list_clients()
        if not slugs:
            print("Nenhum cliente cadastrado.")
            return 0
        for slug in slugs:
            data = load_client(slug)
            doc = format_document(only_digits(str(data.get("documento", ""))))
            print(f"{slug:20}  {doc:18}  {data.get('razao_social', '')}")
        return 0

    if not _SLUG_RE.fullmatch(args.slug):
        print(f"Erro: nome de cliente inválido: {args.slug} (use letras, números, - e _)")
        return 1

    if args.acao == "remover":
        try:
            delete_client(args.slug)
        except FileNotFoundError:
            print(f"Erro: cliente '{args.slug}' não encontrado.")
            return 1
        print(f"Cliente '{args.slug}' removido.")
        return 0

    documento = only_digits(args.documento)
    if not validate_document(documento):
        print(f"Erro: CPF/CNPJ inválido: {args.documento}")
        return 1
    data = {"documento": format_document(documento), "razao_social": args.razao_social}
    for key in ("cod_municipio", "cidade", "uf", "email"):
        value = getattr(args, key)
        if value:
            data[key] = value
    print(f"Cliente salvo em {save_client(args.slug, data)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="faturador", description="Emissão de NFS-e via DPS")
    parser.add_argument("-v", "--verbose", action="store_true", help="log detalhado")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="cria arquivos de configuração de exemplo")

    emitir = sub.add_parser("emitir", help="monta (e opcionalmente envia) uma DPS")
    emitir.add_argument("form", help="arquivo YAML com os dados da nota")
    emitir.add_argument("--env", choices=["homologacao", "producao"], default="homologacao")
    emitir.add_argument("--enviar", action="store_true", help="envia para a Nuvem Fiscal")
    emitir.add_argument("--xml", metavar="NUMERO", help="mostra o XML no layout legado")

    validar = sub.add_parser("validar", help="valida CPF/CNPJ")
    validar.add_argument("documento")

    notas = sub.add_parser("notas", help="lista notas emitidas")
    notas.add_argument("--env", choices=["homologacao", "producao"])
    notas.add_argument("--id", help="mostra uma nota pelo id")

    clientes = sub.add_parser("clientes", help="gerencia clientes cadastrados")
    acoes = clientes.add_subparsers(dest="acao", required=True)
    acoes.add_parser("listar", help="lista clientes")
    adicionar = acoes.add_parser("adicionar", help="cadastra ou atualiza um cliente")
    adicionar.add_argument("slug", help="nome do arquivo em config/clientes/")
    adicionar.add_argument("--documento", required=True, help="CPF ou CNPJ")
    adicionar.add_argument("--razao-social", required=True)
    adicionar.add_argument("--cod-municipio", help="código IBGE do município")
    adicionar.add_argument("--cidade")
    adicionar.add_argument("--uf")
    adicionar.add_argument("--email")
    remover = acoes.add_parser("remover", help="remove um cliente")
    remover.add_argument("slug")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the faturador CLI."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init":
        _init_config()
        return

    handlers = {
        "emitir": _cmd_emitir,
        "validar": _cmd_validar,
        "notas": _cmd_notas,
        "clientes": _cmd_clientes,
    }
    code = handlers[args.command](args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
