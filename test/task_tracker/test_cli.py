"""
Tests for the click CLI.

Each test points the CLI at a temporary database and uploads directory via
environment variables so nothing is written to the working directory.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from task_tracker.auth import verify_password
from task_tracker.cli import main
from task_tracker.database import TrackerDatabase


@pytest.fixture
def cli_env(tmp_path):
    return {
        "SQLITE_DIR": str(tmp_path / "data"),
        "UPLOADS_DIR": str(tmp_path / "uploads"),
    }


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "tracker.db"


class TestInitDb:
    def test_creates_database(self, cli_env, db_path):
        result = CliRunner().invoke(main, ["init-db"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "Database ready" in result.output
        assert db_path.exists()

    def test_fresh_requires_confirmation(self, cli_env, db_path):
        runner = CliRunner()
        runner.invoke(main, ["init-db"], env=cli_env)
        db = TrackerDatabase(db_path)
        db.upsert_user({"uid": "u1", "full_name": "Alice", "email": "alice@example.com"})
        db.close()

        aborted = runner.invoke(main, ["init-db", "--fresh"], env=cli_env, input="n\n")
        assert aborted.exit_code != 0
        with TrackerDatabase(db_path) as db:
            assert db.get_user_by_uid("u1") is not None

        confirmed = runner.invoke(main, ["init-db", "--fresh"], env=cli_env, input="y\n")
        assert confirmed.exit_code == 0, confirmed.output
        with TrackerDatabase(db_path) as db:
            assert db.get_all_users() == []


class TestCreateUser:
    def test_creates_and_updates_by_email(self, cli_env, db_path):
        runner = CliRunner()
        first = runner.invoke(
            main,
            ["create-user", "--email", "ada@example.com", "--name", "Ada", "--role", "admin",
             "--password", "pw1", "--uid", "admin1"],
            env=cli_env,
        )
        assert first.exit_code == 0, first.output
        assert "admin1" in first.output

        second = runner.invoke(
            main, ["create-user", "--email", "ada@example.com", "--name", "Ada L."],
            env=cli_env, input="pw2\npw2\n",
        )
        assert second.exit_code == 0, second.output

        with TrackerDatabase(db_path) as db:
            users = db.get_all_users()
            assert len(users) == 1
            assert users[0]["full_name"] == "Ada L."
            assert users[0]["role"] == "admin"
            assert verify_password("pw2", users[0]["password"])


class TestImport:
    def test_import_yaml(self, cli_env, db_path, tmp_path):
        seed = tmp_path / "seed.yaml"
        seed.write_text(
            "users:\n"
            "  - {uid: u1, full_name: Alice, email: alice@example.com}\n"
            "tasks:\n"
            "  - {id: t1, title: Pay invoice, responsible_id: u1, due_date: 2024-01-15}\n"
            "  - {id: t2, title: '', responsible_id: u1}\n"
        )

        result = CliRunner().invoke(main, ["import", str(seed)], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "tasks created: 1" in result.output
        with TrackerDatabase(db_path) as db:
            assert db.get_task_by_id("t1")["responsible"] == "Alice"

    def test_import_invalid_yaml_fails(self, cli_env, tmp_path):
        seed = tmp_path / "bad.yaml"
        seed.write_text("- just\n- a list\n")

        result = CliRunner().invoke(main, ["import", str(seed)], env=cli_env)

        assert result.exit_code != 0
        assert "dictionary at root level" in result.output


class TestServe:
    def test_serve_runs_uvicorn(self, cli_env, tmp_path):
        with patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(
                main, ["serve", "--port", "4000", "--db-path", str(tmp_path / "s.db")],
                env={**cli_env, "SQLITE_PATH": None},
            )

        assert result.exit_code == 0, result.output
        mock_run.assert_called_once_with("task_tracker.api:app", host="127.0.0.1", port=4000)
