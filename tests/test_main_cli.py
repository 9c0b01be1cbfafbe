import csv
import io

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8000


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 8080


def test_config_option_is_kept_before_implicit_serve() -> None:
    args = _parse_args(["--config", "custom.yaml", "--port", "9000"])
    assert args.command == "serve"
    assert args.config == "custom.yaml"
    assert args.port == 9000


def test_export_subcommand_options() -> None:
    args = _parse_args(["export", "--status", "SPAM", "--output", "out.csv"])
    assert args.command == "export"
    assert args.status == "SPAM"
    assert args.output == "out.csv"
    assert args.search is None


def test_seed_then_export_to_stdout(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("CONTACTDESK_DB_PATH", str(tmp_path / "cli.sqlite3"))
    missing_config = str(tmp_path / "missing.yaml")

    main(["--config", missing_config, "seed"])
    seeded = capsys.readouterr().out
    assert "Ada Lovelace" in seeded

    main(["--config", missing_config, "seed"])
    assert "already present" in capsys.readouterr().out

    main(["--config", missing_config, "export", "--search", "grace"])
    rows = list(csv.reader(io.StringIO(capsys.readouterr().out)))
    assert rows[0][0] == "Nombre"
    assert [row[0] for row in rows[1:]] == ["Grace Hopper"]
