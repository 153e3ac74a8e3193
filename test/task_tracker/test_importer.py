"""
Tests for the YAML seed importer.

Covers user upsert, task creation and skipping, per-record error collection
and file-level error handling.
"""

import pytest
import yaml

from task_tracker.auth import verify_password
from task_tracker.importer import import_records, import_records_from_file


@pytest.fixture
def seed_data():
    return {
        "users": [
            {"uid": "u1", "full_name": "Alice", "email": "alice@example.com", "password": "secret", "role": "admin"},
            {"uid": "u2", "full_name": "Bob", "email": "bob@example.com"},
        ],
        "tasks": [
            {"id": "t1", "title": "Pay invoice", "responsible_id": "u1", "due_date": "2024-01-15",
             "recurring": True, "frequency": "monthly"},
            {"id": "t2", "title": "File report", "responsible": "Bob", "responsible_id": "u2"},
        ],
    }


class TestImportRecords:
    def test_imports_users_and_tasks(self, db, seed_data):
        stats = import_records(db, seed_data)

        assert stats == {"users_upserted": 2, "tasks_created": 2, "tasks_skipped": 0, "errors": []}
        alice = db.get_user_by_uid("u1")
        assert alice["role"] == "admin"
        assert verify_password("secret", alice["password"])

        task = db.get_task_by_id("t1")
        assert task["responsible"] == "Alice", "Responsible name filled from the user record"
        assert task["recurring"] is True

    def test_reimport_skips_existing_tasks(self, db, seed_data):
        import_records(db, seed_data)
        db.update_task_status("t1", "completed")

        stats = import_records(db, seed_data)

        assert stats["tasks_created"] == 0
        assert stats["tasks_skipped"] == 2
        assert db.get_task_by_id("t1")["status"] == "completed"

    def test_bad_records_collected(self, db):
        stats = import_records(db, {
            "users": ["not-a-dict", {"uid": "u9", "full_name": "No Email"}],
            "tasks": [{"id": "t9", "title": "x" * 300, "responsible": "A", "responsible_id": "u1"},
                      {"id": "t10", "title": "Good", "responsible": "A", "responsible_id": "u1"}],
        })

        assert stats["users_upserted"] == 0
        assert stats["tasks_created"] == 1
        assert len(stats["errors"]) == 3
        assert any("t9" in error for error in stats["errors"])

    def test_numeric_yaml_title_reported_as_validation_error(self, db):
        data = yaml.safe_load(
            "tasks:\n"
            "  - id: t1\n"
            "    title: 2024\n"
            "    responsible: A\n"
            "    responsible_id: u1\n"
        )

        stats = import_records(db, data)

        assert stats["tasks_created"] == 0
        assert len(stats["errors"]) == 1
        assert "Title must be text" in stats["errors"][0]

    def test_structure_errors_raise(self, db):
        with pytest.raises(ValueError):
            import_records(db, {"users": {"uid": "u1"}})
        with pytest.raises(ValueError):
            import_records(db, {"tasks": "nope"})


class TestImportFromFile:
    def test_yaml_dates_become_strings(self, db, tmp_path, seed_data):
        path = tmp_path / "seed.yaml"
        # Unquoted dates are parsed by YAML into datetime.date
        path.write_text(yaml.safe_dump(seed_data).replace("'2024-01-15'", "2024-01-15"))

        stats = import_records_from_file(db, str(path))

        assert stats["tasks_created"] == 2
        assert db.get_task_by_id("t1")["due_date"] == "2024-01-15"

    def test_missing_file(self, db, tmp_path):
        with pytest.raises(FileNotFoundError):
            import_records_from_file(db, str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, db, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("users: [unclosed")
        with pytest.raises(ValueError):
            import_records_from_file(db, str(path))

    def test_non_mapping_root(self, db, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            import_records_from_file(db, str(path))
