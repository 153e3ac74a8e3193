"""
YAML Seed Importer

Loads users and tasks from a YAML document into the tracker database in a
single transaction. Users are upserted by uid; tasks are created unless a
task with the same id already exists.

Example document:

    users:
      - uid: u1
        full_name: Alice
        email: alice@example.com
        password: secret
        role: admin
    tasks:
      - id: t1
        title: Pay invoice
        responsible_id: u1
        due_date: 2024-01-15
        recurring: true
        frequency: monthly
"""

import logging
from typing import Dict, Any

import yaml

from .auth import hash_password
from .database import TrackerDatabase

logger = logging.getLogger(__name__)


def import_records(db: TrackerDatabase, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Import users and tasks from parsed YAML.

    Individual record failures are collected in stats["errors"] and do not
    abort the import.

    Args:
        db: TrackerDatabase instance
        data: Parsed YAML document

    Returns:
        Dict with import statistics

    Raises:
        ValueError: If "users" or "tasks" is present but not a list
    """
    users = data.get("users") or []
    tasks = data.get("tasks") or []
    if not isinstance(users, list):
        raise ValueError("YAML 'users' must be a list")
    if not isinstance(tasks, list):
        raise ValueError("YAML 'tasks' must be a list")

    stats = {
        "users_upserted": 0,
        "tasks_created": 0,
        "tasks_skipped": 0,
        "errors": []
    }

    with db._transaction():
        for user_data in users:
            try:
                _import_user(db, user_data)
                stats["users_upserted"] += 1
            except Exception as e:
                uid = user_data.get("uid", "unnamed") if isinstance(user_data, dict) else "invalid"
                stats["errors"].append(f"Failed to import user '{uid}': {e}")

        for task_data in tasks:
            try:
                if _import_task(db, task_data):
                    stats["tasks_created"] += 1
                else:
                    stats["tasks_skipped"] += 1
            except Exception as e:
                task_id = task_data.get("id", "unnamed") if isinstance(task_data, dict) else "invalid"
                stats["errors"].append(f"Failed to import task '{task_id}': {e}")

    logger.info(
        f"Imported {stats['users_upserted']} users, {stats['tasks_created']} tasks "
        f"({stats['tasks_skipped']} skipped, {len(stats['errors'])} errors)"
    )
    return stats


def _import_user(db: TrackerDatabase, user_data: Dict[str, Any]) -> None:
    if not isinstance(user_data, dict):
        raise ValueError("User data must be a dictionary")
    record = dict(user_data)
    if record.get("password"):
        record["password"] = hash_password(str(record["password"]))
    db.upsert_user(record)


def _import_task(db: TrackerDatabase, task_data: Dict[str, Any]) -> bool:
    """Create a task; returns False when a task with the same id already exists."""
    if not isinstance(task_data, dict):
        raise ValueError("Task data must be a dictionary")
    record = dict(task_data)
    if record.get("due_date") is not None:
        # YAML parses bare dates into datetime.date
        record["due_date"] = str(record["due_date"])

    if record.get("id") and db.get_task_by_id(record["id"]) is not None:
        return False

    if not record.get("responsible") and record.get("responsible_id"):
        owner = db.get_user_by_uid(record["responsible_id"])
        if owner is not None:
            record["responsible"] = owner["full_name"]

    db.create_task(record)
    return True


def import_records_from_file(db: TrackerDatabase, yaml_file_path: str) -> Dict[str, Any]:
    """
    Import users and tasks from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: For invalid YAML or a non-mapping document
    """
    try:
        with open(yaml_file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"YAML file not found: {yaml_file_path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format: {e}")

    if not isinstance(data, dict):
        raise ValueError("YAML file must contain a dictionary at root level")

    return import_records(db, data)
