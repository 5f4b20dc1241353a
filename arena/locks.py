import logging
import threading
from contextlib import contextmanager
from typing import Dict, List

from redis.exceptions import LockError

from core.errors import ScheduleBusy

logger = logging.getLogger(__name__)


class ScheduleLock:
    """
    One schedule or roster writer per tournament.

    Activation and regeneration delete and insert a tournament's matches;
    registration changes the roster they are generated from. With `wait=0`
    a second request for the same tournament is rejected instead of queued;
    a positive `wait` queues for at most that many seconds. With Redis the
    lock is shared by every worker process, otherwise it only covers this
    process.
    """

    def __init__(self, redis_client=None, timeout: int = 30):
        self.redis = redis_client
        self.timeout = timeout
        self._guard = threading.Lock()
        # tournament id -> [lock, number of threads using it]
        self._local: Dict[str, List] = {}

    @staticmethod
    def _key(tournament_id: str) -> str:
        return f"tournament:{tournament_id}:schedule_lock"

    @contextmanager
    def _local_lock(self, tournament_id: str):
        with self._guard:
            entry = self._local.setdefault(tournament_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            yield entry[0]
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._local[tournament_id]

    def _busy(self, tournament_id: str):
        logger.warning(f"Rejected concurrent schedule change for {tournament_id}")
        raise ScheduleBusy(tournament_id)

    @contextmanager
    def hold(self, tournament_id: str, wait: float = 0):
        if self.redis is not None:
            lock = self.redis.lock(self._key(tournament_id), timeout=self.timeout)
            if not lock.acquire(blocking=wait > 0, blocking_timeout=wait or None):
                self._busy(tournament_id)
            try:
                yield
            finally:
                try:
                    lock.release()
                except LockError as e:
                    logger.error(f"Schedule lock for {tournament_id} expired before release: {e}")
            return

        with self._local_lock(tournament_id) as lock:
            if not lock.acquire(blocking=wait > 0, timeout=wait if wait > 0 else -1):
                self._busy(tournament_id)
            try:
                yield
            finally:
                lock.release()

    def is_held(self, tournament_id: str) -> bool:
        if self.redis is not None:
            return bool(self.redis.exists(self._key(tournament_id)))
        with self._guard:
            entry = self._local.get(tournament_id)
        return entry is not None and entry[0].locked()
