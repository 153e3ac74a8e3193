"""
Task Tracker Database Layer

Provides SQLite-based persistence for users, tasks, file attachments and
activity logs. A single connection is shared by every caller and guarded by a
re-entrant lock; each CRUD call runs as one autocommitted statement.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple, Union

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
DEFAULT_TASK_STATUS = "pending"
DEFAULT_FREQUENCY = "monthly"
DEFAULT_ROLE = "user"

TABLES = ("users", "tasks", "files", "activity_logs", "file_logs")

# Columns every table must carry, with definitions that are valid for
# ALTER TABLE ADD COLUMN (no PRIMARY KEY/UNIQUE, no non-constant defaults).
EXPECTED_COLUMNS: Dict[str, List[Tuple[str, str]]] = {
    "users": [
        ("full_name", "TEXT"),
        ("email", "TEXT"),
        ("password", "TEXT"),
        ("role", f"TEXT DEFAULT '{DEFAULT_ROLE}'"),
        ("created_at", "TEXT"),
        ("updated_at", "TEXT"),
    ],
    "tasks": [
        ("title", "TEXT"),
        ("responsible", "TEXT"),
        ("responsible_id", "TEXT"),
        ("due_date", "DATE"),
        ("notes", "TEXT"),
        ("status", f"TEXT DEFAULT '{DEFAULT_TASK_STATUS}'"),
        ("recurring", "BOOLEAN DEFAULT FALSE"),
        ("frequency", f"TEXT DEFAULT '{DEFAULT_FREQUENCY}'"),
        ("created_at", "TEXT"),
        ("updated_at", "TEXT"),
    ],
    "files": [
        ("filename", "TEXT"),
        ("original_name", "TEXT"),
        ("file_path", "TEXT"),
        ("mime_type", "TEXT"),
        ("size", "INTEGER DEFAULT 0"),
        ("task_id", "TEXT"),
        ("uploaded_by", "TEXT"),
        ("upload_date", "TEXT"),
        ("download_count", "INTEGER DEFAULT 0"),
    ],
    "activity_logs": [
        ("user_id", "TEXT"),
        ("user_email", "TEXT"),
        ("action", "TEXT"),
        ("task_id", "TEXT"),
        ("task_title", "TEXT"),
        ("timestamp", "TEXT"),
    ],
    "file_logs": [
        ("file_id", "INTEGER"),
        ("action", "TEXT"),
        ("user_id", "TEXT"),
        ("timestamp", "TEXT"),
    ],
}


class ValidationError(ValueError):
    """Raised when input data is rejected before any statement executes."""


class TaskValidationError(ValidationError):
    """Raised when task data is missing fields or carries invalid values."""


class DatabaseInitializationError(RuntimeError):
    """Raised when the database cannot be opened or brought to the expected schema."""


def _validate_due_date(due_date: Union[str, date, None]) -> Optional[str]:
    """Return the due date as stored text, raising TaskValidationError if it is not a date."""
    if due_date is None or due_date == "":
        return None
    if isinstance(due_date, (date, datetime)):
        return due_date.isoformat()
    try:
        date.fromisoformat(due_date)
    except (TypeError, ValueError):
        try:
            datetime.fromisoformat(str(due_date).replace("Z", "+00:00"))
        except (TypeError, ValueError):
            raise TaskValidationError(f"Invalid due date: {due_date}")
    return due_date


def _validate_title(title: str) -> None:
    if not isinstance(title, str):
        raise TaskValidationError(f"Title must be text, got {type(title).__name__}")
    if len(title) > MAX_TITLE_LENGTH:
        raise TaskValidationError(f"Title exceeds {MAX_TITLE_LENGTH} characters")


def _validate_task_fields(task_data: Dict[str, Any], *fields: str) -> None:
    """Raise TaskValidationError unless every named field is present and non-empty."""
    values = {field: task_data.get(field) for field in fields}
    if not all(values.values()):
        raise TaskValidationError(f"Missing required task fields: {json.dumps(values, default=str)}")
    _validate_title(values["title"])


class TrackerDatabase:
    """
    SQLite database for the task tracker.

    Features:
    - Idempotent schema creation with additive column migration
    - One shared connection, serialized through an RLock
    - Plain dict rows; lookups return None when nothing matches
    - Mutators report affected-row counts instead of raising on "not found"
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Open (or create) the database file and bring it to the expected schema.

        Args:
            db_path: Path to SQLite database file

        Raises:
            DatabaseInitializationError: If the connection or schema setup fails
        """
        self.db_path = Path(db_path)
        self._connection_lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None
        self.migrated_columns: List[str] = []

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_database()

    def _initialize_database(self, drop_existing: bool = False) -> None:
        """Open the connection and create or migrate the schema.

        Args:
            drop_existing: If True, drops all existing tables for clean slate initialization
        """
        logger.info(f"Initializing SQLite database at {self.db_path}")
        try:
            self._connection = sqlite3.connect(
                str(self.db_path),
                isolation_level=None,  # Autocommit mode
                check_same_thread=False
            )
            self._connection.row_factory = sqlite3.Row

            cursor = self._connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            # References are declarative only; deletes never cascade or fail on dependants
            cursor.execute("PRAGMA foreign_keys=OFF")

            if drop_existing:
                self._drop_existing_tables()

            self.migrated_columns = self.initialize_schema()

        except sqlite3.Error as e:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
            raise DatabaseInitializationError(f"Failed to initialize database at {self.db_path}: {e}") from e

        logger.info("Database initialization complete")

    def initialize_schema(self) -> List[str]:
        """
        Create missing tables, add missing columns and create indexes.

        Safe to run any number of times against the same file.

        Returns:
            List of "table.column" entries added by this pass
        """
        with self._connection_lock:
            self._create_schema()
            added = self._migrate_schema()
            self._create_indexes()
            return added

    def _create_schema(self) -> None:
        """Create the five tables if they do not exist."""
        cursor = self._connection.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                uid TEXT PRIMARY KEY,
                full_name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                password TEXT,
                role TEXT DEFAULT 'user',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        logger.info("Table users created/verified")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                responsible TEXT NOT NULL,
                responsible_id TEXT NOT NULL,
                due_date DATE,
                notes TEXT,
                status TEXT DEFAULT 'pending',
                recurring BOOLEAN DEFAULT FALSE,
                frequency TEXT DEFAULT 'monthly',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (responsible_id) REFERENCES users (uid)
            )
        """)
        logger.info("Table tasks created/verified")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT NOT NULL,
                original_name TEXT NOT NULL,
                file_path TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                size INTEGER NOT NULL CHECK (size >= 0),
                task_id TEXT NOT NULL,
                uploaded_by TEXT NOT NULL,
                upload_date TEXT DEFAULT CURRENT_TIMESTAMP,
                download_count INTEGER DEFAULT 0,
                FOREIGN KEY (task_id) REFERENCES tasks (id),
                FOREIGN KEY (uploaded_by) REFERENCES users (uid)
            )
        """)
        logger.info("Table files created/verified")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS activity_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                user_email TEXT NOT NULL,
                action TEXT NOT NULL,
                task_id TEXT,
                task_title TEXT,
                timestamp TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users (uid),
                FOREIGN KEY (task_id) REFERENCES tasks (id)
            )
        """)
        logger.info("Table activity_logs created/verified")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS file_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                file_id INTEGER NOT NULL,
                action TEXT NOT NULL,
                user_id TEXT NOT NULL,
                timestamp TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (file_id) REFERENCES files (id),
                FOREIGN KEY (user_id) REFERENCES users (uid)
            )
        """)
        logger.info("Table file_logs created/verified")

    def _migrate_schema(self) -> List[str]:
        """Add any expected column that an older database file lacks."""
        added = []
        for table, columns in EXPECTED_COLUMNS.items():
            for column, definition in columns:
                if self.ensure_column(table, column, definition):
                    added.append(f"{table}.{column}")
        return added

    def _create_indexes(self) -> None:
        """Create lookup indexes; runs after migration so every indexed column exists."""
        cursor = self._connection.cursor()

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_responsible_created
            ON tasks (responsible_id, created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_duplicate_check
            ON tasks (title, due_date, responsible_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_task_upload
            ON files (task_id, upload_date)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_activity_logs_user_timestamp
            ON activity_logs (user_id, timestamp)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_file_logs_file
            ON file_logs (file_id, timestamp)
        """)

    def get_table_columns(self, table: str) -> List[str]:
        """Return the live column names of a table (empty if the table is missing)."""
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"PRAGMA table_info({table})")
            return [row["name"] for row in cursor.fetchall()]

    def ensure_column(self, table: str, column: str, definition: str) -> bool:
        """
        Add a column to a table if it is not already present.

        Additive only: existing columns are never altered, renamed or dropped.

        Args:
            table: Table to inspect
            column: Column name that must exist
            definition: Column type and constraints used in ALTER TABLE

        Returns:
            True if the column was added, False if it already existed
        """
        with self._connection_lock:
            if column in self.get_table_columns(table):
                logger.debug(f"Column {column} already exists in {table}")
                return False
            self._connection.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
            logger.info(f"Column {column} added to {table}")
            return True

    def _drop_existing_tables(self) -> None:
        """Drop all tracker tables for clean slate initialization."""
        cursor = self._connection.cursor()
        for table in reversed(TABLES):
            cursor.execute(f"DROP TABLE IF EXISTS {table}")
        logger.warning(f"Dropped existing tables in {self.db_path}")

    @contextmanager
    def _transaction(self):
        """Context manager for explicit transaction control."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("BEGIN")
                yield cursor
                cursor.execute("COMMIT")
            except Exception:
                cursor.execute("ROLLBACK")
                raise

    def _get_current_time_str(self) -> str:
        """Get current UTC time as ISO string for database operations."""
        return datetime.now(timezone.utc).isoformat(timespec="microseconds")

    def _execute(self, sql: str, params: Tuple = ()) -> sqlite3.Cursor:
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(sql, params)
            return cursor

    def _fetch_one(self, sql: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        with self._connection_lock:
            row = self._execute(sql, params).fetchone()
            return dict(row) if row else None

    def _fetch_all(self, sql: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        with self._connection_lock:
            return [dict(row) for row in self._execute(sql, params).fetchall()]

    @staticmethod
    def _task_row(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if row is not None and row.get("recurring") is not None:
            row["recurring"] = bool(row["recurring"])
        return row

    # ---- Tasks ----

    def create_task(self, task_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new task after validating the mandatory fields.

        Args:
            task_data: Dict with id, title, responsible, responsible_id and
                optional due_date, notes, recurring, frequency, status

        Returns:
            The input merged with the stored defaults and created_at

        Raises:
            TaskValidationError: Missing fields, title too long or invalid due date
            sqlite3.IntegrityError: If a task with the same id already exists
        """
        _validate_task_fields(task_data, "id", "title", "responsible", "responsible_id")
        task_id = task_data["id"]
        title = task_data["title"]
        responsible = task_data["responsible"]
        responsible_id = task_data["responsible_id"]
        due_date = _validate_due_date(task_data.get("due_date"))

        recurring = bool(task_data.get("recurring", False))
        frequency = task_data.get("frequency") or DEFAULT_FREQUENCY
        status = task_data.get("status") or DEFAULT_TASK_STATUS
        current_time_str = self._get_current_time_str()

        self._execute(
            """
            INSERT INTO tasks (id, title, responsible, responsible_id, due_date, notes,
                               status, recurring, frequency, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (task_id, title, responsible, responsible_id, due_date, task_data.get("notes") or None,
             status, recurring, frequency, current_time_str, current_time_str),
        )
        logger.debug(f"Created task {task_id}")

        return {
            **task_data,
            "id": task_id,
            "due_date": due_date,
            "status": status,
            "recurring": recurring,
            "frequency": frequency,
            "created_at": current_time_str,
        }

    def check_task_exists(self, title: str, due_date: Optional[str], responsible_id: str) -> bool:
        """
        Return True if a task with exactly this title, due date and responsible exists.

        A NULL due date never matches, so undated tasks are never duplicates.
        """
        row = self._fetch_one(
            "SELECT id FROM tasks WHERE title = ? AND due_date = ? AND responsible_id = ?",
            (title, due_date, responsible_id),
        )
        return row is not None

    def get_task_by_id(self, task_id: str) -> Optional[Dict[str, Any]]:
        return self._task_row(self._fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,)))

    def get_all_tasks(self) -> List[Dict[str, Any]]:
        """All tasks, newest first."""
        rows = self._fetch_all("SELECT * FROM tasks ORDER BY created_at DESC, rowid DESC")
        return [self._task_row(row) for row in rows]

    def get_tasks_by_user(self, responsible_id: str) -> List[Dict[str, Any]]:
        """Tasks assigned to one user, newest first."""
        rows = self._fetch_all(
            "SELECT * FROM tasks WHERE responsible_id = ? ORDER BY created_at DESC, rowid DESC",
            (responsible_id,),
        )
        return [self._task_row(row) for row in rows]

    def update_task_status(self, task_id: str, status: str) -> Dict[str, Any]:
        """
        Set a task's status.

        Returns:
            Dict with task_id, status and updated_rows (0 when the task does not exist)
        """
        cursor = self._execute(
            "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
            (status, self._get_current_time_str(), task_id),
        )
        return {"task_id": task_id, "status": status, "updated_rows": cursor.rowcount}

    def update_task(self, task_id: str, task_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace every mutable field of a task.

        Omitted optional fields are written as NULL/defaults, so callers pass
        the complete record.

        Returns:
            Dict with task_id and updated_rows (0 when the task does not exist)

        Raises:
            TaskValidationError: Missing fields, title too long or invalid due date
        """
        _validate_task_fields(task_data, "title", "responsible", "responsible_id")
        title = task_data["title"]
        due_date = _validate_due_date(task_data.get("due_date"))

        cursor = self._execute(
            """
            UPDATE tasks SET
                title = ?,
                responsible = ?,
                responsible_id = ?,
                due_date = ?,
                notes = ?,
                recurring = ?,
                frequency = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (title, task_data.get("responsible"), task_data.get("responsible_id"), due_date,
             task_data.get("notes"), bool(task_data.get("recurring", False)),
             task_data.get("frequency") or DEFAULT_FREQUENCY, self._get_current_time_str(), task_id),
        )
        return {"task_id": task_id, "updated_rows": cursor.rowcount}

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        """Delete a task. Files and logs that reference it are left in place."""
        cursor = self._execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        return {"deleted_rows": cursor.rowcount}

    # ---- Files ----

    def insert_file(self, file_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record metadata for an uploaded file. The bytes themselves are handled by the caller.

        Args:
            file_data: Dict with filename, original_name, file_path, mime_type,
                size, task_id and uploaded_by

        Returns:
            Dict with the generated id, the echoed fields and upload_date
        """
        size = file_data.get("size")
        if size is not None and size < 0:
            raise ValidationError(f"File size must be >= 0, got {size}")

        upload_date = self._get_current_time_str()
        fields = {
            "filename": file_data.get("filename"),
            "original_name": file_data.get("original_name"),
            "file_path": file_data.get("file_path"),
            "mime_type": file_data.get("mime_type"),
            "size": size,
            "task_id": file_data.get("task_id"),
            "uploaded_by": file_data.get("uploaded_by"),
        }
        cursor = self._execute(
            """
            INSERT INTO files (filename, original_name, file_path, mime_type, size,
                               task_id, uploaded_by, upload_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (*fields.values(), upload_date),
        )
        return {"id": cursor.lastrowid, **fields, "upload_date": upload_date}

    def get_files_by_task_id(self, task_id: str) -> List[Dict[str, Any]]:
        """Files attached to a task, most recent upload first."""
        return self._fetch_all(
            "SELECT * FROM files WHERE task_id = ? ORDER BY upload_date DESC, id DESC",
            (task_id,),
        )

    def get_file_by_id(self, file_id: int) -> Optional[Dict[str, Any]]:
        return self._fetch_one("SELECT * FROM files WHERE id = ?", (file_id,))

    def delete_file(self, file_id: int) -> Dict[str, Any]:
        cursor = self._execute("DELETE FROM files WHERE id = ?", (file_id,))
        return {"deleted_rows": cursor.rowcount}

    def increment_download_count(self, file_id: int) -> Dict[str, Any]:
        """Bump the informational download counter of a file by one."""
        cursor = self._execute(
            "UPDATE files SET download_count = download_count + 1 WHERE id = ?",
            (file_id,),
        )
        return {"updated_rows": cursor.rowcount}

    def log_file_activity(self, file_id: int, action: str, user_id: str) -> Dict[str, Any]:
        """Append an entry to the file activity log."""
        cursor = self._execute(
            "INSERT INTO file_logs (file_id, action, user_id, timestamp) VALUES (?, ?, ?, ?)",
            (file_id, action, user_id, self._get_current_time_str()),
        )
        return {"id": cursor.lastrowid}

    def get_file_logs(self, file_id: int) -> List[Dict[str, Any]]:
        return self._fetch_all(
            "SELECT * FROM file_logs WHERE file_id = ? ORDER BY timestamp DESC, id DESC",
            (file_id,),
        )

    def find_orphaned_files(self) -> List[Dict[str, Any]]:
        """
        Report files whose task no longer exists.

        Deletes do not cascade, so removing a task leaves its files behind.
        This only lists them; cleanup is left to the caller.
        """
        return self._fetch_all("""
            SELECT f.* FROM files f
            LEFT JOIN tasks t ON f.task_id = t.id
            WHERE t.id IS NULL
            ORDER BY f.id
        """)

    # ---- Users ----

    def upsert_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a user or update the existing row with the same uid.

        full_name and email are always replaced; password and role keep their
        stored values when omitted, and created_at is preserved.

        Args:
            user_data: Dict with uid, full_name, email and optional password, role

        Returns:
            Dict with uid, full_name, email and role (never the password hash)

        Raises:
            ValidationError: If uid, full_name or email is missing
            sqlite3.IntegrityError: If the email belongs to another user
        """
        uid = user_data.get("uid")
        full_name = user_data.get("full_name")
        email = user_data.get("email")
        if not uid or not full_name or not email:
            raise ValidationError(
                f"Missing required user fields: {json.dumps({'uid': uid, 'full_name': full_name, 'email': email})}"
            )
        password = user_data.get("password")
        role = user_data.get("role")
        current_time_str = self._get_current_time_str()

        with self._connection_lock:
            self._execute(
                """
                INSERT INTO users (uid, full_name, email, password, role, created_at, updated_at)
                VALUES (?, ?, ?, ?, COALESCE(?, 'user'), ?, ?)
                ON CONFLICT(uid) DO UPDATE SET
                    full_name = excluded.full_name,
                    email = excluded.email,
                    password = COALESCE(excluded.password, users.password),
                    role = COALESCE(?, users.role),
                    updated_at = excluded.updated_at
                """,
                (uid, full_name, email, password, role, current_time_str, current_time_str, role),
            )
            stored = self.get_user_by_uid(uid)

        return {
            "uid": uid,
            "full_name": full_name,
            "email": email,
            "role": stored["role"] if stored else (role or DEFAULT_ROLE),
        }

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one("SELECT * FROM users WHERE email = ?", (email,))

    def get_user_by_uid(self, uid: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one("SELECT * FROM users WHERE uid = ?", (uid,))

    def get_all_users(self) -> List[Dict[str, Any]]:
        """All users ordered by full name."""
        return self._fetch_all("SELECT * FROM users ORDER BY full_name")

    def delete_user(self, uid: str) -> Dict[str, Any]:
        """Delete a user. Tasks, files and logs referencing the uid are left in place."""
        cursor = self._execute("DELETE FROM users WHERE uid = ?", (uid,))
        return {"deleted_rows": cursor.rowcount}

    # ---- Activity log ----

    def insert_activity_log(self, log_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Append an activity log entry.

        Args:
            log_data: Dict with user_id, user_email, action and optional task_id, task_title

        Returns:
            Dict with the generated id and the echoed fields
        """
        fields = {
            "user_id": log_data.get("user_id"),
            "user_email": log_data.get("user_email"),
            "action": log_data.get("action"),
            "task_id": log_data.get("task_id"),
            "task_title": log_data.get("task_title"),
        }
        cursor = self._execute(
            """
            INSERT INTO activity_logs (user_id, user_email, action, task_id, task_title, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (*fields.values(), self._get_current_time_str()),
        )
        return {"id": cursor.lastrowid, **fields}

    def get_activity_logs(self, user_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Most recent activity entries, newest first.

        Args:
            user_id: Only return entries by this actor when given
            limit: Maximum number of entries
        """
        if user_id:
            return self._fetch_all(
                "SELECT * FROM activity_logs WHERE user_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
                (user_id, limit),
            )
        return self._fetch_all(
            "SELECT * FROM activity_logs ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )

    # ---- Lifecycle ----

    def close(self):
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def initialize_fresh(self) -> None:
        """
        Re-create the database from scratch, dropping every tracker table first.

        Useful for resetting a development database and for tests that need an
        empty store.
        """
        if self._connection:
            self.close()

        self._initialize_database(drop_existing=True)
