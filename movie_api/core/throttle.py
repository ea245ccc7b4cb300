"""Brute-force protection for the login endpoint.

State lives behind ``KeyValueStore`` so the lifetime and sharing of the
counters is chosen at construction time; ``TTLCacheStore`` keeps them in
process memory.
"""
import threading
import time
from typing import Callable, Dict, Protocol

from cachetools import TLRUCache

from movie_api.core.errors import TooManyAttemptsError


class KeyValueStore(Protocol):
    def add(self, key: str, ttl_seconds: int) -> None: ...

    def exists(self, key: str) -> bool: ...

    def ttl(self, key: str) -> int: ...

    def incr(self, key: str, ttl_seconds: int) -> int: ...

    def delete(self, key: str) -> None: ...


class _Entry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: int, expires_at: float):
        self.value = value
        self.expires_at = expires_at


def _entry_deadline(_key, entry: _Entry, _now: float) -> float:
    return entry.expires_at


class TTLCacheStore:
    """In-process store with a deadline per key.

    Flags (``add``) and counters (``incr``) live in separate caches, so a
    flood of counters can only evict other counters, never a flag.
    """

    def __init__(self, maxsize: int = 100_000, timer: Callable[[], float] = time.monotonic):
        self._timer = timer
        self._flags: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_deadline, timer=timer)
        self._counters: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_deadline, timer=timer)
        self._lock = threading.Lock()

    def _live(self, cache: TLRUCache, key: str) -> _Entry | None:
        entry = cache.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._timer():
            cache.pop(key, None)
            return None
        return entry

    def add(self, key: str, ttl_seconds: int) -> None:
        with self._lock:
            self._flags[key] = _Entry(1, self._timer() + ttl_seconds)

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(self._flags, key) is not None

    def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live(self._flags, key)
            if entry is None:
                return 0
            return max(1, int(entry.expires_at - self._timer() + 0.999))

    def incr(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            entry = self._live(self._counters, key)
            if entry is None:
                entry = _Entry(0, self._timer() + ttl_seconds)
                self._counters[key] = entry
            entry.value += 1
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._flags.pop(key, None)
            self._counters.pop(key, None)


class LoginThrottle:
    """Counts failed logins per (client address, e-mail) pair.

    Pairing the two means a third party guessing passwords for someone else's
    address only locks out their own client.
    """

    def __init__(self, store: KeyValueStore, max_attempts: int, lockout_seconds: int):
        self.store = store
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds

    @staticmethod
    def _keys(email: str, client_ip: str) -> Dict[str, str]:
        subject = f"{client_ip or 'unknown'}|{email.strip().lower()}"
        return {"fail": f"login:fail:{subject}", "lock": f"login:lock:{subject}"}

    def check(self, email: str, client_ip: str) -> None:
        if self.max_attempts <= 0:
            return
        remaining = self.store.ttl(self._keys(email, client_ip)["lock"])
        if remaining > 0:
            raise TooManyAttemptsError(f"login locked for {email} from {client_ip}", retry_after=remaining)

    def register_failure(self, email: str, client_ip: str) -> int:
        keys = self._keys(email, client_ip)
        failures = self.store.incr(keys["fail"], self.lockout_seconds)
        if self.max_attempts > 0 and failures >= self.max_attempts:
            self.store.add(keys["lock"], self.lockout_seconds)
            self.store.delete(keys["fail"])
        return failures

    def reset(self, email: str, client_ip: str) -> None:
        self.store.delete(self._keys(email, client_ip)["fail"])
