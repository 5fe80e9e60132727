from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from family_scope.cli import EXIT_INVALID_ARGUMENT, EXIT_STORE_UNAVAILABLE, app

ENV = {"FAMILY_SCOPE_LOG_LEVEL": "WARNING"}


def _link(runner: CliRunner, db: Path, *args: str) -> None:
    result = runner.invoke(app, ["link", *args, "--db", str(db)], env=ENV, catch_exceptions=False)
    assert result.exit_code == 0, result.output


def test_cli_link_and_scope_json(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "family.db"
    _link(runner, db, "R", "F", "CHILD")
    _link(runner, db, "R", "M", "CHILD")
    _link(runner, db, "F", "G", "CHILD")

    result = runner.invoke(
        app,
        ["scope", "R", "--direction", "ancestors", "--max-depth", "2", "--json", "--db", str(db)],
        env=ENV,
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "members": ["R", "F", "M", "G"],
        "truncated": False,
        "depthReached": 2,
    }


def test_cli_scope_table_uses_configured_db(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "family.db"
    _link(runner, db, "R", "S", "SPOUSE")

    result = runner.invoke(
        app,
        ["scope", "R", "--exclude-self"],
        env={**ENV, "FAMILY_SCOPE_DB_PATH": str(db)},
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    # R comes back through S -SPOUSE-> R at depth 2.
    assert "Members: 2" in result.stdout
    assert "complete" in result.stdout


def test_cli_preview(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "family.db"
    _link(runner, db, "R", "S", "SPOUSE")
    _link(runner, db, "R", "T", "SIBLING")

    result = runner.invoke(app, ["preview", "R", "--db", str(db)], env=ENV, catch_exceptions=False)

    assert result.exit_code == 0
    preview = json.loads(result.stdout)
    assert preview["estimated_count"] == 3
    assert preview["direction"] == "both"
    assert preview["truncated"] is False


def test_cli_invalid_root_is_client_error(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["scope", "   ", "--db", str(tmp_path / "family.db")], env=ENV)

    assert result.exit_code == EXIT_INVALID_ARGUMENT


def test_cli_self_link_is_client_error(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["link", "R", "R", "SPOUSE", "--db", str(tmp_path / "family.db")], env=ENV)

    assert result.exit_code == EXIT_INVALID_ARGUMENT


def test_cli_unopenable_store_is_server_error(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["scope", "R", "--db", str(tmp_path)], env=ENV)

    assert result.exit_code == EXIT_STORE_UNAVAILABLE


def test_cli_zero_node_cap_is_client_error(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "family.db"
    _link(runner, db, "R", "S", "SPOUSE")

    result = runner.invoke(app, ["scope", "R", "--node-cap", "0", "--db", str(db)], env=ENV)

    assert result.exit_code == EXIT_INVALID_ARGUMENT


def test_cli_explicit_node_cap_overrides_settings(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "family.db"
    _link(runner, db, "R", "S", "SPOUSE")
    _link(runner, db, "R", "T", "SIBLING")

    result = runner.invoke(
        app,
        ["scope", "R", "--node-cap", "1", "--json", "--db", str(db)],
        env={**ENV, "FAMILY_SCOPE_NODE_CAP": "50"},
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"members": ["R"], "truncated": True, "depthReached": 0}


def test_cli_bad_setting_is_client_error(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["scope", "R", "--db", str(tmp_path / "family.db")],
        env={**ENV, "FAMILY_SCOPE_BATCH_SIZE": "abc"},
    )

    assert result.exit_code == EXIT_INVALID_ARGUMENT
    assert "Invalid configuration" in result.stdout
    assert not (tmp_path / "family.db").exists()
