"""
Persistence Service

Session and bet storage collaborators used by the session orchestrator:
- InMemorySessionRepository: process-local store (default backend)
- HttpSessionRepository: remote storage API reached over httpx

Both raise PersistenceError on failure so the orchestrator can refuse to
commit a stake that was never stored.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from ..config import PERSISTENCE_BACKEND, PERSISTENCE_BASE_URL, PERSISTENCE_TIMEOUT
from ..exceptions import ConfigurationError, PersistenceError
from ..models import Bet, Session

logger = logging.getLogger("bankroll_api.services")


class SessionRepository(ABC):
    """Storage contract for sessions and their bets."""

    @abstractmethod
    def create_session(self, session: Session) -> Session:
        """Store a new session and return it with its id assigned."""

    @abstractmethod
    def record_bet(self, session: Session, bet: Bet) -> Tuple[Session, Bet]:
        """Append a bet and store the updated session in one step."""

    @abstractmethod
    def get_session(self, session_id: int) -> Optional[Session]:
        """Stored session or None."""

    @abstractmethod
    def list_sessions(self) -> List[Session]:
        """All stored sessions, oldest first."""

    @abstractmethod
    def list_bets(self, session_id: int) -> List[Bet]:
        """Bets of one session ordered by bet number."""

    @abstractmethod
    def delete_session(self, session_id: int) -> None:
        """Delete a session and all of its bets."""

    def bets_by_session(self) -> Dict[int, List[Bet]]:
        return {s.id: self.list_bets(s.id) for s in self.list_sessions() if s.id is not None}

    def close(self) -> None:
        pass


class InMemorySessionRepository(SessionRepository):
    """Thread-safe dictionary-backed store."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[int, Session] = {}
        self._bets: Dict[int, List[Bet]] = {}
        self._next_session_id = 1
        self._next_bet_id = 1

    def create_session(self, session: Session) -> Session:
        with self._lock:
            stored = session.model_copy(update={"id": self._next_session_id})
            self._next_session_id += 1
            self._sessions[stored.id] = stored
            self._bets[stored.id] = []
        logger.info(f"[STORE] Session {stored.id} created ({stored.strategy})")
        return stored

    def record_bet(self, session: Session, bet: Bet) -> Tuple[Session, Bet]:
        with self._lock:
            if session.id not in self._sessions:
                raise PersistenceError(f"Session {session.id} not found")
            stored_bet = bet.model_copy(update={"id": self._next_bet_id, "session_id": session.id})
            self._next_bet_id += 1
            self._bets[session.id].append(stored_bet)
            self._sessions[session.id] = session
        return session, stored_bet

    def get_session(self, session_id: int) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> List[Session]:
        with self._lock:
            return [self._sessions[key] for key in sorted(self._sessions)]

    def list_bets(self, session_id: int) -> List[Bet]:
        with self._lock:
            return sorted(self._bets.get(session_id, []), key=lambda b: b.bet_number)

    def delete_session(self, session_id: int) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._bets.pop(session_id, None)
        logger.info(f"[STORE] Session {session_id} deleted")


class HttpSessionRepository(SessionRepository):
    """
    Storage API client.

    Endpoints (relative to ``base_url``):
        GET/POST   /api/sessions
        GET/PATCH/DELETE /api/sessions/{id}
        GET/POST/DELETE  /api/sessions/{id}/bets
        DELETE           /api/sessions/{id}/bets/{bet_id}
    """

    def __init__(
        self,
        base_url: str = PERSISTENCE_BASE_URL,
        timeout: float = PERSISTENCE_TIMEOUT,
        client: Optional[httpx.Client] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.request(method, url, json=payload)
        except httpx.TimeoutException:
            logger.error(f"[STORE] TIMEOUT | {method} {url}")
            raise PersistenceError(f"Storage timeout after {self.timeout}s", url=url)
        except httpx.HTTPError as e:
            logger.error(f"[STORE] FAILED | {method} {url} | Error: {e}")
            raise PersistenceError(f"Storage request failed: {e}", url=url)

        if response.status_code == 404 and method == "GET":
            return None
        if response.status_code not in (200, 201, 204):
            logger.warning(
                f"[STORE] UNEXPECTED STATUS | {method} {url} | "
                f"Status: {response.status_code} | Response: {response.text[:200]}"
            )
            raise PersistenceError(
                f"Storage returned HTTP {response.status_code}",
                url=url,
                details={"status_code": response.status_code}
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError(f"Storage returned invalid JSON: {e}", url=url)

    @staticmethod
    def _session_payload(session: Session) -> Dict[str, Any]:
        return session.model_dump(mode="json", by_alias=True, exclude={"id"})

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Storage returned an invalid {model.__name__}: {e.errors()[0]['msg']}")

    def create_session(self, session: Session) -> Session:
        data = self._request("POST", "/api/sessions", self._session_payload(session))
        stored = self._parse(Session, data)
        logger.info(f"[STORE] Session {stored.id} created remotely ({stored.strategy})")
        return stored

    def record_bet(self, session: Session, bet: Bet) -> Tuple[Session, Bet]:
        """
        Store the bet together with the updated session.

        The session rides along in the bet POST; a store answering with
        ``{"bet": ..., "session": ...}`` has written both. A store that only
        returns the bet gets a follow-up PATCH, and the bet is deleted again
        when that PATCH fails.
        """
        payload = bet.model_dump(mode="json", by_alias=True, exclude={"id"})
        payload["sessionId"] = session.id
        payload["session"] = self._session_payload(session)
        data = self._request("POST", f"/api/sessions/{session.id}/bets", payload)

        if isinstance(data, dict) and "bet" in data and "session" in data:
            return self._parse(Session, data["session"]), self._parse(Bet, data["bet"])

        stored_bet = self._parse(Bet, data)
        try:
            data = self._request("PATCH", f"/api/sessions/{session.id}", self._session_payload(session))
        except PersistenceError:
            self._discard_bet(session.id, stored_bet)
            raise
        stored_session = self._parse(Session, data) if data else session
        return stored_session, stored_bet

    def _discard_bet(self, session_id: Optional[int], bet: Bet) -> None:
        if bet.id is None:
            logger.error(f"[STORE] Bet #{bet.bet_number} of session {session_id} has no id; cannot roll back")
            return
        try:
            self._request("DELETE", f"/api/sessions/{session_id}/bets/{bet.id}")
            logger.warning(f"[STORE] Rolled back bet {bet.id} of session {session_id}")
        except PersistenceError as e:
            logger.error(f"[STORE] Rollback of bet {bet.id} failed: {e.message}")

    def get_session(self, session_id: int) -> Optional[Session]:
        data = self._request("GET", f"/api/sessions/{session_id}")
        return self._parse(Session, data) if data else None

    def list_sessions(self) -> List[Session]:
        data = self._request("GET", "/api/sessions") or []
        return [self._parse(Session, item) for item in data]

    def list_bets(self, session_id: int) -> List[Bet]:
        data = self._request("GET", f"/api/sessions/{session_id}/bets") or []
        return sorted((self._parse(Bet, item) for item in data), key=lambda b: b.bet_number)

    def delete_session(self, session_id: int) -> None:
        self._request("DELETE", f"/api/sessions/{session_id}/bets")
        self._request("DELETE", f"/api/sessions/{session_id}")
        logger.info(f"[STORE] Session {session_id} deleted remotely")

    def close(self) -> None:
        self._client.close()


def create_repository(backend: str = PERSISTENCE_BACKEND) -> SessionRepository:
    """Build the configured storage backend."""
    if backend == "memory":
        return InMemorySessionRepository()
    if backend == "http":
        return HttpSessionRepository()
    raise ConfigurationError(
        f"Unknown persistence backend '{backend}'",
        config_key="PERSISTENCE_BACKEND"
    )