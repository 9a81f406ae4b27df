"""Leader-side cache of nonces pre-fetched from the cosigners."""

from __future__ import annotations

import logging
import math
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from horcrux.cosigner import Cosigner, CosignerNonce, CosignerUUIDNonces, Leader

DEFAULT_GET_NONCES_INTERVAL = 3.0
DEFAULT_GET_NONCES_TIMEOUT = 4.0
# half of the local cosigner cache expiration
DEFAULT_NONCE_EXPIRATION = 10.0


class NoNoncesError(LookupError):
    """Raised when no cached nonce set covers the requested cosigners."""


@dataclass
class _MovingAverageItem:
    time_since_last_reconcile: float
    nonces_per_minute: float


class MovingAverage:
    """Time-weighted average of nonce consumption over a trailing period."""

    def __init__(self, period: float) -> None:
        self.period = period
        self.items: list[_MovingAverageItem] = []

    def add(self, time_since_last_reconcile: float, nonces_per_minute: float) -> None:
        """Record a sample, dropping samples that fall outside the period."""
        duration = time_since_last_reconcile
        keep = len(self.items) - 1
        for index, item in enumerate(self.items):
            duration += item.time_since_last_reconcile
            if duration >= self.period:
                keep = index
                break
        newest = _MovingAverageItem(time_since_last_reconcile, nonces_per_minute)
        self.items = [newest, *self.items[: keep + 1]]

    def average(self) -> float:
        """Return the duration-weighted average, NaN when there are no samples."""
        weighted_sum = sum(i.nonces_per_minute * i.time_since_last_reconcile for i in self.items)
        duration = sum(i.time_since_last_reconcile for i in self.items)
        if duration == 0:
            return math.nan
        return weighted_sum / duration


class NonceCachePruner(Protocol):
    def prune_nonces(self) -> int:
        ...


@dataclass
class CosignerNoncesRel:
    cosigner: Cosigner
    nonces: list[CosignerNonce] = field(default_factory=list)


@dataclass
class CachedNonceSingle:
    cosigner: Cosigner
    nonces: list[CosignerUUIDNonces] = field(default_factory=list)


@dataclass
class CachedNonce:
    """One set of nonces, identified by a UUID, ready for signing.

    ``expiration`` is a ``time.monotonic()`` timestamp.
    """

    uuid: uuid.UUID
    expiration: float
    nonces: list[CosignerNoncesRel] = field(default_factory=list)


@dataclass
class NonceCache:
    """Thread-safe ordered list of cached nonce sets, oldest first."""

    items: list[CachedNonce] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def size(self) -> int:
        with self.lock:
            return len(self.items)

    def add(self, nonce: CachedNonce) -> None:
        with self.lock:
            self.items.append(nonce)

    def delete(self, index: int) -> None:
        with self.lock:
            del self.items[index]

    def prune_nonces(self) -> int:
        """Drop expired nonce sets from the front and return how many were dropped."""
        with self.lock:
            now = time.monotonic()
            first_valid = next(
                (i for i, n in enumerate(self.items) if now < n.expiration), len(self.items)
            )
            del self.items[:first_valid]
            return first_valid


class CosignerNonceCache:
    """Keeps enough nonces loaded from the cosigners to meet signing demand."""

    def __init__(
        self,
        cosigners: Sequence[Cosigner],
        leader: Leader,
        get_nonces_interval: float = DEFAULT_GET_NONCES_INTERVAL,
        get_nonces_timeout: float = DEFAULT_GET_NONCES_TIMEOUT,
        nonce_expiration: float = DEFAULT_NONCE_EXPIRATION,
        threshold: int = 0,
        pruner: NonceCachePruner | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.cosigners = list(cosigners)
        self.leader = leader
        self.get_nonces_interval = get_nonces_interval
        self.get_nonces_timeout = get_nonces_timeout
        self.nonce_expiration = nonce_expiration
        self.threshold = threshold
        self.cache = NonceCache()
        # a custom pruner is only expected in tests
        self.pruner: NonceCachePruner = pruner if pruner is not None else self.cache
        # weighted average over 4 intervals
        self.moving_average = MovingAverage(4 * get_nonces_interval)
        self._counter_lock = threading.Lock()
        self._last_reconcile_nonces = 0
        self._last_reconcile_time = time.monotonic()
        self._wakeup = threading.Event()

    def target(self, nonces_per_minute: float) -> int:
        """Number of nonces to keep ready for the given consumption rate."""
        if math.isnan(nonces_per_minute):
            return 1
        t = int((nonces_per_minute / 60) * (self.get_nonces_interval * 1.2 + 0.5))
        return t if t > 0 else 1  # always target at least one nonce ready

    def reconcile(self) -> None:
        """Prune expired nonces and, when leader, load more to meet demand."""
        pruned = self.pruner.prune_nonces()
        if not self.leader.is_leader():
            return
        remaining = self.cache.size()
        elapsed = time.monotonic() - self._last_reconcile_time
        with self._counter_lock:
            last_nonces = self._last_reconcile_nonces
        used = last_nonces - remaining - pruned
        nonces_per_min = used / (elapsed / 60) if elapsed > 0 else 0.0
        nonces_per_min = max(nonces_per_min, 0.0)

        self.moving_average.add(elapsed, nonces_per_min)
        avg = self.moving_average.average()
        t = self.target(avg)
        additional = max(t - remaining, 0)

        try:
            if additional == 0:
                self._logger.debug(
                    "Cosigner nonce cache ahead of demand: target=%d remaining=%d "
                    "nonces_per_min=%s avg_nonces_per_min=%s",
                    t, remaining, nonces_per_min, avg,
                )
                return
            self._logger.debug(
                "Loading additional nonces to meet demand: target=%d remaining=%d "
                "additional=%d nonces_per_min=%s avg_nonces_per_min=%s",
                t, remaining, additional, nonces_per_min, avg,
            )
            self.load_n(additional)
        finally:
            with self._counter_lock:
                self._last_reconcile_nonces = remaining + additional
            self._last_reconcile_time = time.monotonic()

    def _fetch(self, uuids: list[uuid.UUID]) -> list[CachedNonceSingle]:
        if not self.cosigners:
            return []
        executor = ThreadPoolExecutor(max_workers=len(self.cosigners))
        try:
            futures = {executor.submit(c.get_nonces, uuids): c for c in self.cosigners}
            done, _ = wait(futures, timeout=self.get_nonces_timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        results = []
        for future, cosigner in futures.items():
            if future not in done:
                self._logger.error("Timed out getting nonces from peer %s", cosigner.id)
                continue
            try:
                nonces = future.result()
            except Exception as exc:  # a failing peer only reduces available shares
                self._logger.error("Failed to get nonces from peer %s: %s", cosigner.id, exc)
                continue
            results.append(CachedNonceSingle(cosigner=cosigner, nonces=list(nonces)))
        return results

    def load_n(self, n: int) -> None:
        """Fetch n new nonce sets from all cosigners and cache those reaching threshold."""
        if n <= 0:
            return
        uuids = [uuid.uuid4() for _ in range(n)]
        expiration = time.monotonic() + self.nonce_expiration
        results = self._fetch(uuids)
        added = 0
        for index, u in enumerate(uuids):
            rels = [CosignerNoncesRel(r.cosigner, list(r.nonces[index].nonces)) for r in results]
            if len(rels) >= self.threshold:
                self.cache.add(CachedNonce(uuid=u, expiration=expiration, nonces=rels))
                added += 1
        self._logger.debug("Loaded nonces: desired=%d added=%d", n, added)

    def start(self, stop_event: threading.Event) -> None:
        """Reconcile every interval, or sooner when the cache runs empty, until stopped."""
        with self._counter_lock:
            self._last_reconcile_nonces = self.cache.size()
        self._last_reconcile_time = time.monotonic()

        def watch_stop() -> None:
            stop_event.wait()
            self._wakeup.set()

        threading.Thread(target=watch_stop, daemon=True).start()
        while True:
            self._wakeup.wait(self.get_nonces_interval)
            if stop_event.is_set():
                return
            self._wakeup.clear()
            self.reconcile()

    def get_nonces(self, fastest_peers: Sequence[Cosigner]) -> CosignerUUIDNonces:
        """Take the oldest cached nonce set that covers all the given peers."""
        with self.cache.lock:
            for index, cached in enumerate(self.cache.items):
                by_id = {}
                for rel in cached.nonces:
                    by_id.setdefault(rel.cosigner.id, rel)
                if not all(p.id in by_id for p in fastest_peers):
                    continue
                nonces = [n for p in fastest_peers for n in by_id[p.id].nonces]
                self.cache.delete(index)
                if not self.cache.items and not self._wakeup.is_set():
                    self._logger.debug("Nonce cache is empty, triggering reload")
                    self._wakeup.set()
                return CosignerUUIDNonces(uuid=cached.uuid, nonces=nonces)

        # count the miss so it shows in the burn rate at the next reconciliation
        with self._counter_lock:
            self._last_reconcile_nonces += 1
        ids = " ".join(str(p.id) for p in fastest_peers)
        raise NoNoncesError(f"no nonces found involving cosigners [{ids}]")

    def clear_nonces(self, cosigner: Cosigner) -> None:
        """Remove a cosigner from all cached sets, dropping sets that fall below threshold."""
        with self.cache.lock:
            kept = []
            for cached in self.cache.items:
                position = next(
                    (j for j, rel in enumerate(cached.nonces) if rel.cosigner.id == cosigner.id),
                    None,
                )
                if position is None:
                    kept.append(cached)
                elif len(cached.nonces) - 1 >= self.threshold:
                    del cached.nonces[position]
                    kept.append(cached)
            self.cache.items[:] = kept