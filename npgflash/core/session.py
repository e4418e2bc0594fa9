"""Single-flight flash session state machine.

States: idle -> in_progress -> (succeeded | failed) -> idle. The session is
the only writer of its state; observers receive immutable `FlashState`
snapshots.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from npgflash.core.catalog import FirmwareCatalog
from npgflash.core.errors import PortNotSelected, SessionBusy, StorageFailure
from npgflash.core.model import (
    CustomFirmware,
    FlashableFirmware,
    FlashReport,
    FlashState,
    FlashStatus,
)
from npgflash.transports.base import Flasher

LOGGER = logging.getLogger(__name__)

StateCallback = Callable[[FlashState], None]


class FlashSession:
    def __init__(self, catalog: FirmwareCatalog, flasher: Flasher) -> None:
        self.catalog = catalog
        self.flasher = flasher
        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)
        self._state = FlashState()
        self._subscribers: list[StateCallback] = []

    @property
    def state(self) -> FlashState:
        with self._lock:
            return self._state

    def subscribe(self, callback: StateCallback) -> None:
        self._subscribers.append(callback)

    def start(self, port: str, firmware: str, *, background: bool = False) -> FlashState:
        """Validate, capture the binary, and flash it to `port`.

        Raises `SessionBusy`, `PortNotSelected`, `UnknownFirmware` or
        `StorageFailure` without touching the device. A flash that fails is not
        raised; it is reported as the `failed` state.
        """
        with self._lock:
            current = self._state
            if current.status is FlashStatus.IN_PROGRESS:
                target = current.firmware.identifier if current.firmware else "firmware"
                raise SessionBusy(f"A flash of '{target}' to {current.port} is already in progress")
            if not port or not port.strip():
                raise PortNotSelected("Please select a port first.")
            source = self.catalog.resolve(firmware)
            binary, staging_dir = self._capture(source)
            state = self._transition(
                FlashState(
                    status=FlashStatus.IN_PROGRESS,
                    port=port,
                    firmware=source,
                    message="Flashing firmware, please wait...",
                )
            )
        self._notify(state)
        LOGGER.info("Flashing %s to %s from %s", source.identifier, port, binary)

        if background:
            worker = threading.Thread(
                target=self._run,
                args=(port, binary, staging_dir),
                name="npgflash-flash",
                daemon=True,
            )
            worker.start()
            return state
        return self._run(port, binary, staging_dir)

    def acknowledge(self, outcome: FlashState | None = None) -> FlashState:
        """Return a finished session to idle.

        With `outcome`, only that terminal state is cleared; if another flash
        has replaced it the current state is returned untouched.
        """
        with self._lock:
            if outcome is not None and self._state is not outcome:
                return self._state
            if self._state.status is FlashStatus.IN_PROGRESS:
                raise SessionBusy("Cannot acknowledge a flash that is still in progress")
            if self._state.status is FlashStatus.IDLE:
                return self._state
            state = self._transition(FlashState())
        self._notify(state)
        return state

    def wait(self, timeout: float | None = None) -> FlashState:
        with self._settled:
            self._settled.wait_for(lambda: self._state.status is not FlashStatus.IN_PROGRESS, timeout)
            return self._state

    def _capture(self, source: FlashableFirmware) -> tuple[Path, Path | None]:
        # Custom images are copied so a concurrent delete cannot swap the binary.
        if not isinstance(source, CustomFirmware):
            return source.path, None
        stored = self.catalog.binary_path(source)
        staging_dir = Path(tempfile.mkdtemp(prefix="npgflash-flash-"))
        staged = staging_dir / source.filename
        try:
            shutil.copyfile(stored, staged)
        except OSError as exc:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise StorageFailure(f"Could not read custom firmware '{source.filename}': {exc}") from exc
        return staged, staging_dir

    def _run(self, port: str, binary: Path, staging_dir: Path | None) -> FlashState:
        try:
            report = self.flasher.flash(port, binary)
        except Exception as exc:
            LOGGER.error("Flash capability raised for %s: %s", port, exc)
            report = FlashReport(False, str(exc) or type(exc).__name__)
        finally:
            if staging_dir is not None:
                shutil.rmtree(staging_dir, ignore_errors=True)

        status = FlashStatus.SUCCEEDED if report.success else FlashStatus.FAILED
        if report.success:
            LOGGER.info("Flash on %s succeeded: %s", port, report.message)
        else:
            LOGGER.warning("Flash on %s failed: %s", port, report.message)

        with self._lock:
            state = self._transition(
                FlashState(
                    status=status,
                    port=self._state.port,
                    firmware=self._state.firmware,
                    message=report.message,
                )
            )
            self._settled.notify_all()
        self._notify(state)
        return state

    def _transition(self, new_state: FlashState) -> FlashState:
        LOGGER.debug("Flash session %s -> %s", self._state.status.value, new_state.status.value)
        self._state = new_state
        return new_state

    def _notify(self, state: FlashState) -> None:
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                LOGGER.exception("Flash session subscriber failed")
