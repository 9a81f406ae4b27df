"""Round-trip tracking of peer cosigners, used to pick the fastest ones."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from horcrux.cosigner import Cosigner, Leader

PING_INTERVAL = 1.0
PING_TIMEOUT = 1.0

_UNHEALTHY = -1


class CosignerHealth:
    """Measures peer round-trip times while this node is leader.

    Cosigners that expose ``ping(timeout=...)`` are probed; ``rtt`` maps a
    cosigner ID to its last round-trip time in nanoseconds, -1 when unhealthy.
    """

    def __init__(
        self,
        cosigners: Sequence[Cosigner],
        leader: Leader,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._cosigners = list(cosigners)
        self._leader = leader
        self._lock = threading.Lock()
        self.rtt: dict[int, int] = {}

    def reconcile(self) -> None:
        """Ping every remote cosigner once and record the round-trip times."""
        if not self._leader.is_leader():
            return
        remotes = [c for c in self._cosigners if callable(getattr(c, "ping", None))]
        if not remotes:
            return
        with ThreadPoolExecutor(max_workers=len(remotes)) as pool:
            list(pool.map(self._update_rtt, remotes))

    def start(self, stop_event: threading.Event) -> None:
        """Reconcile periodically until stop_event is set."""
        while True:
            self.reconcile()
            if stop_event.wait(PING_INTERVAL):
                return

    def mark_unhealthy(self, cosigner: Cosigner) -> None:
        with self._lock:
            self.rtt[cosigner.id] = _UNHEALTHY

    def _update_rtt(self, cosigner: Cosigner) -> None:
        rtt = _UNHEALTHY
        start = time.perf_counter_ns()
        try:
            cosigner.ping(timeout=PING_TIMEOUT)
        except Exception as exc:  # any failure marks the peer unhealthy
            self._logger.error("Failed to ping cosigner %s: %s", cosigner.id, exc)
        else:
            rtt = time.perf_counter_ns() - start
        with self._lock:
            self.rtt[cosigner.id] = rtt

    def get_fastest(self) -> list[Cosigner]:
        """Return the cosigners ordered by round-trip time, unknown or unhealthy last."""
        with self._lock:
            rtt = dict(self.rtt)

        def key(cosigner: Cosigner) -> tuple[bool, int]:
            value = rtt.get(cosigner.id)
            if value is None or value == _UNHEALTHY:
                return True, 0
            return False, value

        return sorted(self._cosigners, key=key)