"""Task Tracker: SQLite-backed task, attachment and activity tracking with a REST API and HTTP client."""

__version__ = "1.0.0"
