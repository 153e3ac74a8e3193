"""
Click CLI for the Task Tracker

Commands:
    init-db       Create or migrate the database schema
    create-user   Create or update a user account
    import        Load users and tasks from a YAML file
    serve         Run the REST API with uvicorn
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import click

from .auth import hash_password
from .config import load_settings, ensure_directories
from .database import TrackerDatabase, DatabaseInitializationError, ValidationError
from .importer import import_records_from_file

logger = logging.getLogger(__name__)


def _open_database(db_path: Optional[str]) -> TrackerDatabase:
    settings = load_settings()
    if db_path:
        settings.db_path = Path(db_path)
    ensure_directories(settings)
    try:
        return TrackerDatabase(settings.db_path)
    except DatabaseInitializationError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """Task Tracker command line interface."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@main.command("init-db")
@click.option("--db-path", default=None, help="Database file (defaults to SQLITE_PATH/SQLITE_DIR)")
@click.option("--fresh", is_flag=True, help="Drop all tables before creating the schema")
def init_db(db_path: Optional[str], fresh: bool):
    """Create missing tables and columns."""
    if fresh:
        click.confirm("This deletes every user, task, file record and log. Continue?", abort=True)
    db = _open_database(db_path)
    try:
        if fresh:
            db.initialize_fresh()
        click.echo(f"Database ready at {db.db_path}")
        for column in db.migrated_columns:
            click.echo(f"  added column {column}")
    finally:
        db.close()


@main.command("create-user")
@click.option("--email", required=True)
@click.option("--name", "full_name", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(["user", "admin"]), default=None)
@click.option("--uid", default=None, help="User id (generated when omitted)")
@click.option("--db-path", default=None)
def create_user(email: str, full_name: str, password: str, role: Optional[str],
                uid: Optional[str], db_path: Optional[str]):
    """Create a user, or update the one with the same uid or email."""
    db = _open_database(db_path)
    try:
        existing = db.get_user_by_email(email)
        uid = uid or (existing["uid"] if existing else uuid.uuid4().hex)
        user = db.upsert_user({
            "uid": uid,
            "full_name": full_name,
            "email": email,
            "password": hash_password(password),
            "role": role,
        })
        click.echo(f"User {user['email']} ({user['role']}) saved with uid {user['uid']}")
    except ValidationError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()


@main.command("import")
@click.argument("yaml_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--db-path", default=None)
def import_command(yaml_file: str, db_path: Optional[str]):
    """Load users and tasks from YAML_FILE."""
    db = _open_database(db_path)
    try:
        stats = import_records_from_file(db, yaml_file)
    except ValueError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    click.echo(
        f"Users upserted: {stats['users_upserted']}, tasks created: {stats['tasks_created']}, "
        f"tasks skipped: {stats['tasks_skipped']}"
    )
    for error in stats["errors"]:
        click.echo(f"  error: {error}", err=True)


@main.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=3001, show_default=True, type=int)
@click.option("--db-path", default=None)
def serve(host: str, port: int, db_path: Optional[str]):
    """Run the REST API."""
    import uvicorn

    if db_path:
        # api.py reads its settings from the environment at import time
        os.environ["SQLITE_PATH"] = db_path
    logger.info(f"Starting Task Tracker API on http://{host}:{port}")
    uvicorn.run("task_tracker.api:app", host=host, port=port)


if __name__ == "__main__":
    main()
