"""Capability interfaces consumed by the orchestration core."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from npgflash.core.model import FlashReport, ReleaseAsset


class PortDiscovery(Protocol):
    def list_ports(self) -> list[str]:
        """Return the identifiers of the currently attached device ports."""


class Flasher(Protocol):
    def flash(self, port: str, binary_path: Path) -> FlashReport:
        """Write the binary at `binary_path` to the device on `port`."""


class ReleaseClient(Protocol):
    def latest_release_assets(self, repository: str) -> list[ReleaseAsset]:
        """Return the assets of the latest published release, in listing order."""

    def download(self, url: str, destination: Path, *, timeout_s: float) -> None:
        """Download `url` into `destination`."""


class FirmwareStorage(Protocol):
    def list(self) -> list[str]:
        """Return the stored firmware filenames."""

    def store(self, filename: str, source: Path, *, overwrite: bool = False) -> None:
        """Persist the file at `source` under `filename`.

        Raises `NameConflict` when `filename` is already stored and `overwrite`
        is false; the check and the write are a single step.
        """

    def delete(self, filename: str) -> bool:
        """Remove `filename`; return False when it was not stored."""

    def path(self, filename: str) -> Path:
        """Return the on-disk location of `filename`."""
