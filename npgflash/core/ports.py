"""Periodic device-port discovery.

The monitor owns the port snapshot. Discovery runs on its own threads and
shares no lock with flashing, so a slow enumeration never delays a flash and
an in-progress flash never delays discovery.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import cast

from npgflash.transports.base import PortDiscovery

LOGGER = logging.getLogger(__name__)

PortsCallback = Callable[[frozenset[str]], None]


class PortMonitor:
    def __init__(
        self,
        discovery: PortDiscovery,
        *,
        interval_s: float = 3.0,
        timeout_s: float = 2.0,
    ) -> None:
        self.discovery = discovery
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self._snapshot: frozenset[str] = frozenset()
        self._lock = threading.Lock()
        self._pending: threading.Thread | None = None
        self._started = 0
        self._published = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._subscribers: list[PortsCallback] = []

    def current(self) -> frozenset[str]:
        with self._lock:
            return self._snapshot

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, callback: PortsCallback) -> None:
        self._subscribers.append(callback)

    def refresh(self) -> frozenset[str]:
        """Re-enumerate ports, replacing the snapshot; failures keep the previous one."""
        with self._lock:
            if self._pending is not None and self._pending.is_alive():
                LOGGER.warning("Port discovery still outstanding; keeping previous snapshot")
                return self._snapshot

            self._started += 1
            generation = self._started
            result: dict[str, object] = {}

            def _discover() -> None:
                try:
                    result["ports"] = frozenset(self.discovery.list_ports())
                except Exception as exc:
                    result["error"] = exc

            worker = threading.Thread(target=_discover, name="npgflash-discovery", daemon=True)
            self._pending = worker
            worker.start()

        worker.join(self.timeout_s)

        if worker.is_alive():
            LOGGER.warning("Port discovery timed out after %.1fs; keeping previous snapshot", self.timeout_s)
            return self.current()
        if "error" in result:
            LOGGER.warning("Port discovery failed: %s", result["error"])
            return self.current()

        ports = cast(frozenset[str], result["ports"])
        with self._lock:
            if generation < self._published:
                LOGGER.debug("Discarding port snapshot %d; %d is newer", generation, self._published)
                return self._snapshot
            self._published = generation
            changed = ports != self._snapshot
            self._snapshot = ports
        if changed:
            LOGGER.info("Ports changed: %s", ", ".join(sorted(ports)) or "<none>")
            for callback in list(self._subscribers):
                try:
                    callback(ports)
                except Exception:
                    LOGGER.exception("Port subscriber failed")
        return ports

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.refresh()
        self._thread = threading.Thread(target=self._run, name="npgflash-port-monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self.refresh()

    def __enter__(self) -> PortMonitor:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
