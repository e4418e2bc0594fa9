"""Service layer used by CLI and UI frontends."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlsplit

from npgflash.core.catalog import ConflictPolicy, FirmwareCatalog, safe_filename
from npgflash.core.config import FlasherConfig, load_config
from npgflash.core.errors import FlashFailed, ReleaseLookupFailed
from npgflash.core.model import BuiltinFirmware, FirmwareKind, FlashStatus, ReleaseAsset, RemoteFirmware
from npgflash.core.ports import PortMonitor
from npgflash.core.releases import ReleaseResolver
from npgflash.core.session import FlashSession
from npgflash.transports.base import FirmwareStorage, Flasher, PortDiscovery, ReleaseClient
from npgflash.transports.esptool_flasher import EsptoolFlasher
from npgflash.transports.github import GitHubReleaseClient
from npgflash.transports.serial_ports import SerialPortDiscovery
from npgflash.transports.storage import LocalFirmwareStorage


class FlasherService:
    def __init__(
        self,
        *,
        config: FlasherConfig | None = None,
        config_path: Path | None = None,
        discovery: PortDiscovery | None = None,
        flasher: Flasher | None = None,
        release_client: ReleaseClient | None = None,
        storage: FirmwareStorage | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self.load_warnings = self.config.warnings
        self.discovery = discovery or SerialPortDiscovery()
        self.flasher = flasher or _default_flasher(self.config)
        self.release_client = release_client or GitHubReleaseClient()
        self.storage = storage or LocalFirmwareStorage(self.config.storage_dir)

        self.monitor = PortMonitor(
            self.discovery,
            interval_s=self.config.poll_interval_s,
            timeout_s=self.config.discovery_timeout_s,
        )
        self.catalog = FirmwareCatalog(
            self.storage,
            self.release_client,
            builtins=self.config.builtin_firmware,
            download_timeout_s=self.config.download_timeout_s,
        )
        self.releases = ReleaseResolver(
            self.release_client,
            extensions=self.config.firmware_extensions,
        )
        self.session = FlashSession(self.catalog, self.flasher)

    def list_ports(self) -> list[str]:
        if not self.monitor.running:
            self.monitor.refresh()
        return sorted(self.monitor.current())

    def builtin_firmware(self) -> list[BuiltinFirmware]:
        return [self.catalog.builtin(kind) for kind in FirmwareKind]

    def list_custom(self) -> list[str]:
        return self.catalog.list_custom()

    def delete_custom(self, filename: str) -> None:
        self.catalog.delete(filename)

    def fetch_release_assets(self, repository: str | None = None) -> list[ReleaseAsset]:
        repository = repository or self.config.release_repository
        if not repository:
            raise ReleaseLookupFailed(
                "No repository given and 'release_repository' is not configured"
            )
        return self.releases.list_release_assets(repository)

    def download_and_store(
        self,
        url: str,
        desired_name: str | None = None,
        *,
        on_conflict: ConflictPolicy = "suffix",
    ) -> str:
        default_name = safe_filename(unquote(urlsplit(url).path))
        remote = RemoteFirmware(display_name=desired_name or default_name, download_url=url)
        return self.catalog.materialize_remote(remote, on_conflict=on_conflict)

    def import_custom(
        self,
        path: Path,
        filename: str | None = None,
        *,
        on_conflict: ConflictPolicy = "suffix",
    ) -> str:
        return self.catalog.import_file(path, filename=filename, on_conflict=on_conflict)

    def flash(self, port: str, firmware: str) -> str:
        """Flash and wait; returns the success message or raises `FlashFailed`.

        A failed flash is acknowledged before raising so the session is ready
        for a retry.
        """
        state = self.session.start(port, firmware)
        self.session.acknowledge(state)
        if state.status is FlashStatus.FAILED:
            raise FlashFailed(state.message or "Flash failed")
        return state.message or ""


def _default_flasher(config: FlasherConfig) -> EsptoolFlasher:
    settings = config.flasher
    return EsptoolFlasher(
        chip=settings.chip,
        baud=settings.baud,
        address=settings.address,
        connect_attempts=settings.connect_attempts,
    )
