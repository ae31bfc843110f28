import copy
import inspect
import json
import threading
from dataclasses import replace
from typing import Dict, Optional

from pirequest.settings import settings
from pirequest.store.models import MfaSession
from pirequest.store.redis_conn import get_redis
from pirequest.utils.time import Clock, system_clock


class SessionStore:
    """
    Keyed holder for MFA sessions.

    Callers never mutate stored state in place: they read a snapshot with get(),
    build the next state, and write it back with compare_and_swap() against the
    version they read. delete() is an atomic pop, so only one consumer wins.
    """

    def get(self, session_id: str) -> Optional[MfaSession]:
        raise NotImplementedError

    def put(self, session: MfaSession) -> None:
        raise NotImplementedError

    def delete(self, session_id: str) -> bool:
        raise NotImplementedError

    def compare_and_swap(self, session: MfaSession, expected_version: int) -> bool:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self, clock: Optional[Clock] = None, retention_sec: Optional[int] = None):
        self._sessions: Dict[str, MfaSession] = {}
        self._lock = threading.Lock()
        self.clock = clock or system_clock
        self.retention_sec = int(retention_sec if retention_sec is not None else settings.SESSION_RETENTION_SEC)

    def _purge_stale_locked(self) -> None:
        # Same lifetime the Redis keys get: code TTL plus retention
        cutoff = self.clock.now_ms() - self.retention_sec * 1000
        for sid in [k for k, s in self._sessions.items() if s.expiresAt < cutoff]:
            del self._sessions[sid]

    def get(self, session_id: str) -> Optional[MfaSession]:
        with self._lock:
            s = self._sessions.get(session_id)
            return copy.deepcopy(s) if s is not None else None

    def put(self, session: MfaSession) -> None:
        with self._lock:
            self._purge_stale_locked()
            self._sessions[session.sessionId] = replace(copy.deepcopy(session), version=1)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def compare_and_swap(self, session: MfaSession, expected_version: int) -> bool:
        with self._lock:
            current = self._sessions.get(session.sessionId)
            if current is None or current.version != expected_version:
                return False
            self._sessions[session.sessionId] = replace(copy.deepcopy(session), version=expected_version + 1)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# Server-side compare-and-swap: write ARGV[2] only if the stored version equals ARGV[1]
CAS_SCRIPT = """
local raw = redis.call("get", KEYS[1])
if not raw then
    return 0
end
local cur = cjson.decode(raw)
if tonumber(cur["version"]) ~= tonumber(ARGV[1]) then
    return 0
end
redis.call("set", KEYS[1], ARGV[2], "PX", ARGV[3])
return 1
"""


def _filter_session_kwargs(data: dict) -> dict:
    """
    Drop unknown fields so MfaSession(**kwargs) never explodes
    """
    sig = inspect.signature(MfaSession)
    allowed = set(sig.parameters.keys())
    return {k: v for k, v in data.items() if k in allowed}


class RedisSessionStore(SessionStore):
    def __init__(
        self,
        redis=None,
        prefix: Optional[str] = None,
        retention_sec: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self._redis = redis
        self.clock = clock or system_clock
        self.prefix = prefix if prefix is not None else settings.SESSION_KEY_PREFIX
        self.retention_sec = int(retention_sec if retention_sec is not None else settings.SESSION_RETENTION_SEC)

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    def _ttl_ms(self, session: MfaSession) -> int:
        # Keep the key until the code expires plus a grace period for verified sessions awaiting submit
        ttl = max(0, int(session.expiresAt) - self.clock.now_ms()) + self.retention_sec * 1000
        # Redis rejects PX 0
        return max(1, ttl)

    def get(self, session_id: str) -> Optional[MfaSession]:
        raw = self.redis.get(self._key(session_id))
        if not raw:
            return None
        data = json.loads(raw)
        return MfaSession(**_filter_session_kwargs(data))

    def put(self, session: MfaSession) -> None:
        stored = replace(session, version=1)
        self.redis.set(self._key(session.sessionId), json.dumps(stored.__dict__), px=self._ttl_ms(stored))

    def delete(self, session_id: str) -> bool:
        return bool(self.redis.delete(self._key(session_id)))

    def compare_and_swap(self, session: MfaSession, expected_version: int) -> bool:
        nxt = replace(session, version=int(expected_version) + 1)
        res = self.redis.eval(
            CAS_SCRIPT,
            1,
            self._key(session.sessionId),
            int(expected_version),
            json.dumps(nxt.__dict__),
            self._ttl_ms(nxt),
        )
        return bool(res)


_store: Optional[SessionStore] = None
_store_lock = threading.Lock()


def get_session_store() -> SessionStore:
    """Process-wide store selected by SESSION_BACKEND."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                if settings.SESSION_BACKEND == "redis":
                    _store = RedisSessionStore()
                else:
                    _store = InMemorySessionStore()
    return _store
