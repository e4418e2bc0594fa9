"""Stable public API for building tooling on top of npgflash.

This module is the supported integration surface for third-party callers
(GUIs, scripts, services). Avoid importing from internal modules unless
intentionally depending on non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from npgflash.core.catalog import ConflictPolicy
from npgflash.core.errors import (
    ConfigError,
    DownloadError,
    DownloadFailed,
    DownloadTimeout,
    FirmwareNotFound,
    FlashFailed,
    NameConflict,
    NpgflashError,
    PortNotSelected,
    ReleaseLookupFailed,
    SessionBusy,
    StorageFailure,
    UnknownFirmware,
)
from npgflash.core.model import (
    BuiltinFirmware,
    CustomFirmware,
    FirmwareKind,
    FlashReport,
    FlashState,
    FlashStatus,
    ReleaseAsset,
    RemoteFirmware,
)
from npgflash.core.service import FlasherService
from npgflash.transports.base import FirmwareStorage, Flasher, PortDiscovery, ReleaseClient

__all__ = [
    "NpgflashError",
    "ConfigError",
    "DownloadError",
    "DownloadFailed",
    "DownloadTimeout",
    "FirmwareNotFound",
    "FlashFailed",
    "NameConflict",
    "PortNotSelected",
    "ReleaseLookupFailed",
    "SessionBusy",
    "StorageFailure",
    "UnknownFirmware",
    "BuiltinFirmware",
    "CustomFirmware",
    "FirmwareKind",
    "FlashReport",
    "FlashState",
    "FlashStatus",
    "ReleaseAsset",
    "RemoteFirmware",
    "FirmwareListing",
    "Client",
]


@dataclass(frozen=True)
class FirmwareListing:
    """Everything that can currently be flashed."""

    builtin: tuple[BuiltinFirmware, ...]
    custom: tuple[str, ...]


class Client:
    """Public client for the flashing core.

    UI code observes state through `on_ports_changed` / `on_flash_state` and
    never holds flashing logic itself. Call `start()` to begin background port
    polling and `close()` to stop it.
    """

    def __init__(
        self,
        *,
        config_path: Path | None = None,
        discovery: PortDiscovery | None = None,
        flasher: Flasher | None = None,
        release_client: ReleaseClient | None = None,
        storage: FirmwareStorage | None = None,
    ) -> None:
        self._service = FlasherService(
            config_path=config_path,
            discovery=discovery,
            flasher=flasher,
            release_client=release_client,
            storage=storage,
        )

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def flash_state(self) -> FlashState:
        return self._service.session.state

    def start(self) -> None:
        self._service.monitor.start()

    def close(self) -> None:
        self._service.monitor.stop()

    def __enter__(self) -> Client:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def on_ports_changed(self, callback: Callable[[frozenset[str]], None]) -> None:
        self._service.monitor.subscribe(callback)

    def on_flash_state(self, callback: Callable[[FlashState], None]) -> None:
        self._service.session.subscribe(callback)

    def list_ports(self) -> list[str]:
        return self._service.list_ports()

    def list_firmware(self) -> FirmwareListing:
        return FirmwareListing(
            builtin=tuple(self._service.builtin_firmware()),
            custom=tuple(self._service.list_custom()),
        )

    def list_custom_firmware(self) -> list[str]:
        return self._service.list_custom()

    def delete_custom_firmware(self, filename: str) -> None:
        self._service.delete_custom(filename)

    def fetch_release_assets(self, repository: str | None = None) -> list[ReleaseAsset]:
        return self._service.fetch_release_assets(repository)

    def download_and_store(
        self,
        url: str,
        desired_name: str | None = None,
        *,
        on_conflict: ConflictPolicy = "suffix",
    ) -> str:
        return self._service.download_and_store(url, desired_name, on_conflict=on_conflict)

    def import_custom_firmware(
        self,
        path: Path,
        filename: str | None = None,
        *,
        on_conflict: ConflictPolicy = "suffix",
    ) -> str:
        return self._service.import_custom(path, filename, on_conflict=on_conflict)

    def flash(self, port: str, firmware: str) -> str:
        return self._service.flash(port, firmware)

    def begin_flash(self, port: str, firmware: str) -> FlashState:
        """Start a flash in the background; watch progress via `on_flash_state`."""
        return self._service.session.start(port, firmware, background=True)

    def wait_for_flash(self, timeout: float | None = None) -> FlashState:
        return self._service.session.wait(timeout)

    def acknowledge_flash(self) -> FlashState:
        return self._service.session.acknowledge()
