import logging
import threading
from functools import partial
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import Settings, require_token
from .errors import FetchError
from .models import Database, QueryPage

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_session(retries: int, backoff_factor: float = 0.5) -> requests.Session:
    """Session with bounded retry and exponential backoff for transient failures."""
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=None,  # the query endpoint is a POST
        respect_retry_after_header=True,
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class NotionClient:
    """
    Blocking client for the two upstream endpoints the navigation needs.

    Requests run on executor threads, and a `requests.Session` is not
    thread-safe, so each thread gets its own session from `session_factory`.
    `close()` closes every session handed out.
    """

    def __init__(
        self,
        token: str,
        base_url: str,
        notion_version: str,
        timeout: float = 10.0,
        retries: int = 3,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_factory = session_factory or partial(build_session, retries)
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": notion_version,
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotionClient":
        return cls(
            token=require_token(settings),
            base_url=settings.api_base_url,
            notion_version=settings.notion_version,
            timeout=settings.request_timeout,
            retries=settings.fetch_retries,
        )

    @property
    def session(self) -> requests.Session:
        """The calling thread's session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _request(
        self, method: str, path: str, source_id: str, body: Optional[dict] = None
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method, url, json=body, headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise FetchError(
                f"Upstream unreachable: {exc}", source_id=source_id
            ) from exc

        if resp.status_code != 200:
            message = f"Upstream returned {resp.status_code}"
            if resp.status_code in (400, 404):
                message = f"Unknown or invalid source id ({resp.status_code})"
            raise FetchError(message, source_id=source_id, status=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchError(
                "Upstream response is not JSON", source_id=source_id
            ) from exc
        if not isinstance(payload, dict):
            raise FetchError("Upstream response is not an object", source_id=source_id)
        return payload

    def query_database(
        self,
        database_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = 100,
    ) -> QueryPage:
        body: Dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor
        payload = self._request(
            "POST", f"/databases/{database_id}/query", database_id, body
        )
        try:
            return QueryPage.model_validate(payload)
        except ValidationError as exc:
            raise FetchError(
                f"Malformed page from upstream: {exc.error_count()} errors",
                source_id=database_id,
            ) from exc

    def retrieve_database(self, database_id: str) -> Database:
        payload = self._request("GET", f"/databases/{database_id}", database_id)
        try:
            return Database.model_validate(payload)
        except ValidationError as exc:
            raise FetchError(
                "Malformed database object from upstream", source_id=database_id
            ) from exc

    def close(self):
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
