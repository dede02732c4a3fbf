import asyncio
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Optional

import requests

from .config import RPC_TIMEOUT
from .errors import SessionStale, TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RpcResponse:
    data: Any = None
    error: Optional[str] = None


def _error_text(error) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("description") or json.dumps(error))
    return str(error)


def is_stale_error(error: Optional[str], usernames: Iterable[str]) -> bool:
    """
    True when the SFU says one of our usernames is not found (in a room).
    """
    if not error:
        return False
    return any(f"{name} not found in" in error for name in usernames if name)


class RpcClient:
    """
    JSON RPC over HTTP POST. Every call runs in the default executor so the
    event loop keeps going while requests blocks.
    """

    def __init__(self, endpoint: str, usernames: Iterable[str] = (), timeout: float = RPC_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.usernames = tuple(usernames)
        self.timeout = timeout
        # requests does not promise a Session is thread safe, and calls run on
        # executor threads: each thread gets its own unless one is injected
        self.session = session
        self._local = threading.local()
        self._sessions = []
        self._sessions_lock = threading.Lock()

    async def call(self, method: str, params: list) -> RpcResponse:
        loop = asyncio.get_running_loop()
        body = {"id": str(uuid.uuid4()), "method": method, "params": params}
        payload = await loop.run_in_executor(None, partial(self._post, method, body))

        response = RpcResponse(data=payload.get("data"), error=_error_text(payload.get("error")))
        if is_stale_error(response.error, self.usernames):
            raise SessionStale(method, response.error)
        if response.error:
            logger.debug("rpc %s returned error: %s", method, response.error)
        return response

    def _post(self, method: str, body: dict) -> dict:
        try:
            res = self._session().post(self.endpoint, data=json.dumps(body),
                                      headers={"Content-Type": "application/json"},
                                      timeout=self.timeout)
            res.raise_for_status()
            payload = res.json()
        except requests.RequestException as e:
            raise TransportFailure(method, str(e)) from e
        except ValueError as e:
            raise TransportFailure(method, f"invalid JSON response: {e}") from e
        if not isinstance(payload, dict):
            raise TransportFailure(method, f"unexpected response: {payload!r}")
        return payload

    def _session(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self):
        if self.session is not None:
            self.session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
