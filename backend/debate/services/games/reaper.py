import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from debate.models import DisconnectedPlayer

logger = logging.getLogger(__name__)


class DisconnectionReaper:
    """Tracks mid-game disconnects and evicts those that never come back.

    A sweep runs every ``interval`` seconds on the scheduler and hands each
    record older than ``grace_period`` to the eviction callback. Records are
    keyed by (lobby code, identity) and dropped on reconnection.
    """

    def __init__(self, scheduler, grace_period: float = 300, interval: float = 60,
                 clock: Optional[Callable[[], float]] = None):
        self._scheduler = scheduler
        self._clock = clock or scheduler.time
        self.grace_period = grace_period
        self.interval = interval
        self._records: Dict[Tuple[str, str], DisconnectedPlayer] = {}
        self._guard = threading.Lock()
        self._on_expired: Optional[Callable[[DisconnectedPlayer], None]] = None

    def __len__(self):
        with self._guard:
            return len(self._records)

    def record(self, lobby_code: str, identity: str) -> DisconnectedPlayer:
        entry = DisconnectedPlayer(identity=identity, lobby_code=lobby_code, disconnected_at=self._clock())
        with self._guard:
            self._records[entry.key] = entry
        logger.info(f"[disconnect] lobby={lobby_code} user={identity} grace={self.grace_period}s")
        return entry

    def get(self, lobby_code: str, identity: str) -> Optional[DisconnectedPlayer]:
        with self._guard:
            return self._records.get((lobby_code, identity))

    def forget(self, lobby_code: str, identity: str) -> bool:
        with self._guard:
            return self._records.pop((lobby_code, identity), None) is not None

    def forget_lobby(self, lobby_code: str) -> None:
        with self._guard:
            for key in [k for k in self._records if k[0] == lobby_code]:
                del self._records[key]

    def collect_expired(self) -> List[DisconnectedPlayer]:
        now = self._clock()
        with self._guard:
            expired = [r for r in self._records.values() if now - r.disconnected_at > self.grace_period]
            for entry in expired:
                del self._records[entry.key]
        return expired

    def start(self, on_expired: Callable[[DisconnectedPlayer], None]) -> None:
        first_start = self._on_expired is None
        self._on_expired = on_expired
        if first_start:
            logger.info(f"[reaper-start] interval={self.interval}s grace={self.grace_period}s")
            self._scheduler.call_later(self.interval, self._sweep)

    def sweep(self) -> int:
        handler = self._on_expired
        if handler is None:
            return 0
        expired = self.collect_expired()
        for entry in expired:
            try:
                handler(entry)
            except Exception:
                logger.exception(f"[reaper-error] lobby={entry.lobby_code} user={entry.identity}")
        return len(expired)

    def _sweep(self) -> None:
        try:
            self.sweep()
        finally:
            self._scheduler.call_later(self.interval, self._sweep)
