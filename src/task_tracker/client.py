"""HTTP client for the Task Tracker API.

Wraps ``httpx.Client`` with a resolved base URL and two event hooks:

- Request hook: attaches ``Authorization: Bearer <token>`` when a token is
  stored in the client-side session storage.
- Response hook: on 401 clears the stored session and redirects to ``/``;
  on 403 only logs a warning. Every error status is then raised as
  ``httpx.HTTPStatusError`` so calling code still sees the failure.

Usage Examples:

    # Base URL from TASK_TRACKER_API_BASE_URL or the hostname fallback
    client = ApiClient(storage=JsonFileStorage("~/.task-tracker/session.json"))
    tasks = client.get("/api/tasks").json()

    # Explicit base URL, in-memory session
    storage = MemoryStorage({"authToken": "abc"})
    with ApiClient("http://localhost:3001", storage=storage) as client:
        client.patch("/api/tasks/t1/status", json={"status": "completed"})

There is no retry or backoff; a failed request surfaces once to the caller.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import httpx

from .config import HOSTING_SUFFIXES, LOCAL_URL, PRODUCTION_URL, load_settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
TOKEN_KEY = "authToken"
SESSION_KEYS = ("authToken", "user", "rememberedEmail", "rememberedPassword")
LOGIN_PATH = "/"


def _strip_trailing_slashes(url: str) -> str:
    return str(url).rstrip("/")


def resolve_base_url(
    explicit: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    hostname: Optional[str] = None,
) -> str:
    """Resolve the API base URL.

    Order: explicit value, then ``Settings.api_base_url`` (from the
    ``TASK_TRACKER_API_BASE_URL`` environment variable), then the hostname fallback (a known hosting-provider domain maps
    to the production URL, anything else to the local development URL).
    Trailing slashes are stripped.
    """
    if explicit:
        return _strip_trailing_slashes(explicit)

    env_url = load_settings(environ).api_base_url
    if env_url:
        return _strip_trailing_slashes(env_url)

    if hostname and any(hostname == suffix or hostname.endswith("." + suffix) for suffix in HOSTING_SUFFIXES):
        return _strip_trailing_slashes(PRODUCTION_URL)
    return _strip_trailing_slashes(LOCAL_URL)


class MemoryStorage:
    """Session storage kept in a dict for the lifetime of the process."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage(MemoryStorage):
    """Session storage persisted as a JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        initial = {}
        if self.path.exists():
            initial = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        super().__init__(initial)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._items), encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._save()

    def remove_item(self, key: str) -> None:
        super().remove_item(key)
        self._save()


class Navigator:
    """Tracks the UI's current path and performs redirects.

    Args:
        current_path: Path the UI is currently showing
        on_redirect: Callback invoked with the target path on redirect
    """

    def __init__(self, current_path: str = LOGIN_PATH, on_redirect: Optional[Callable[[str], None]] = None):
        self.current_path = current_path
        self.on_redirect = on_redirect

    def redirect(self, path: str) -> None:
        self.current_path = path
        if self.on_redirect is not None:
            self.on_redirect(path)


class ApiClient:
    """Configured HTTP client with bearer-token auth and auth-expiry handling.

    Args:
        base_url: Explicit base URL; resolved with resolve_base_url when omitted
        storage: Session storage holding the token (defaults to MemoryStorage)
        navigator: Receives the redirect on 401 (defaults to a Navigator at "/")
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        storage: Optional[MemoryStorage] = None,
        navigator: Optional[Navigator] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.navigator = navigator if navigator is not None else Navigator()
        self._client = httpx.Client(
            base_url=resolve_base_url(base_url),
            timeout=timeout,
            transport=transport,
            event_hooks={
                "request": [self._attach_token],
                "response": [self._handle_auth_errors],
            },
        )

    @property
    def base_url(self) -> str:
        return _strip_trailing_slashes(self._client.base_url)

    def set_base_url(self, url: str) -> None:
        """Override the base URL at runtime (testing/debugging)."""
        self._client.base_url = _strip_trailing_slashes(url)
        logger.info(f"API base URL changed to {self.base_url}")

    def _attach_token(self, request: httpx.Request) -> None:
        token = self.storage.get_item(TOKEN_KEY)
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    def _handle_auth_errors(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            logger.warning("401 received: clearing session and redirecting to login")
            for key in SESSION_KEYS:
                self.storage.remove_item(key)
            if self.navigator.current_path != LOGIN_PATH:
                self.navigator.redirect(LOGIN_PATH)
        elif response.status_code == 403:
            logger.warning(f"403 received: access denied for {response.request.url}")

        if response.is_error:
            response.raise_for_status()

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return self._client.request(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
