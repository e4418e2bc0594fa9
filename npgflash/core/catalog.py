"""Firmware identifier resolution over built-in, stored, and remote images.

Storage is the single source of truth for custom firmware: every lookup
reloads the listing, and mutations are never mirrored in memory.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from npgflash.core.errors import (
    FirmwareNotFound,
    NameConflict,
    NpgflashError,
    StorageFailure,
    UnknownFirmware,
)
from npgflash.core.model import (
    BuiltinFirmware,
    CustomFirmware,
    FirmwareKind,
    FlashableFirmware,
    ReleaseAsset,
    RemoteFirmware,
)
from npgflash.transports.base import FirmwareStorage, ReleaseClient

LOGGER = logging.getLogger(__name__)

ConflictPolicy = Literal["suffix", "fail", "overwrite"]
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: str) -> str:
    """Reduce a display name or URL tail to a storable filename."""
    candidate = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    candidate = _UNSAFE_CHARS_RE.sub("_", candidate).strip("._")
    return candidate


def suffixed_name(filename: str, index: int) -> str:
    stem, dot, ext = filename.rpartition(".")
    if not dot or not stem:
        return f"{filename}-{index}"
    return f"{stem}-{index}.{ext}"


class FirmwareCatalog:
    def __init__(
        self,
        storage: FirmwareStorage,
        client: ReleaseClient | None = None,
        *,
        builtins: Mapping[FirmwareKind, Path],
        download_timeout_s: float = 60.0,
    ) -> None:
        self.storage = storage
        self.client = client
        self.builtins = dict(builtins)
        self.download_timeout_s = download_timeout_s

    def builtin(self, kind: FirmwareKind) -> BuiltinFirmware:
        return BuiltinFirmware(kind=kind, path=self.builtins[kind])

    def list_custom(self) -> list[str]:
        try:
            return list(self.storage.list())
        except StorageFailure:
            raise
        except OSError as exc:
            raise StorageFailure(f"Could not list custom firmware: {exc}") from exc

    def resolve(self, identifier: str) -> FlashableFirmware:
        for kind in FirmwareKind:
            if identifier == kind.value:
                return self.builtin(kind)
        if identifier and identifier in self.list_custom():
            return CustomFirmware(filename=identifier)
        raise UnknownFirmware(
            f"Unknown firmware '{identifier}'. Use a built-in kind "
            f"({', '.join(k.value for k in FirmwareKind)}) or a stored custom filename."
        )

    def binary_path(self, source: FlashableFirmware) -> Path:
        if isinstance(source, BuiltinFirmware):
            return source.path
        return self.storage.path(source.filename)

    def delete(self, filename: str) -> None:
        if not self.storage.delete(filename):
            raise FirmwareNotFound(f"Custom firmware '{filename}' not found")
        LOGGER.info("Deleted custom firmware %s", filename)

    def materialize_remote(
        self,
        asset: ReleaseAsset | RemoteFirmware,
        *,
        filename: str | None = None,
        on_conflict: ConflictPolicy = "suffix",
    ) -> str:
        """Download a release asset and store it as a custom firmware.

        This is the only way a remote image becomes flashable; the returned
        filename resolves to `CustomFirmware`.
        """
        if self.client is None:
            raise NpgflashError("No release client configured for downloads")
        requested = filename or asset.display_name or asset.download_url
        target = self._claim_name(requested, on_conflict)

        with tempfile.TemporaryDirectory(prefix="npgflash-") as tmp_dir:
            download_path = Path(tmp_dir) / target
            LOGGER.info("Downloading %s to %s", asset.download_url, target)
            self.client.download(asset.download_url, download_path, timeout_s=self.download_timeout_s)
            return self._store(requested, target, download_path, on_conflict)

    def import_file(
        self,
        path: Path,
        *,
        filename: str | None = None,
        on_conflict: ConflictPolicy = "suffix",
    ) -> str:
        source = Path(path)
        if not source.is_file():
            raise StorageFailure(f"Firmware file {source} does not exist")
        requested = filename or source.name
        target = self._claim_name(requested, on_conflict)
        with tempfile.TemporaryDirectory(prefix="npgflash-") as tmp_dir:
            staged = Path(tmp_dir) / target
            try:
                shutil.copyfile(source, staged)
            except OSError as exc:
                raise StorageFailure(f"Could not read {source}: {exc}") from exc
            target = self._store(requested, target, staged, on_conflict)
        LOGGER.info("Imported %s as %s", source, target)
        return target

    def _store(self, requested: str, target: str, staged: Path, on_conflict: ConflictPolicy) -> str:
        # The name may have been taken while the image was being transferred.
        while True:
            try:
                self.storage.store(target, staged, overwrite=on_conflict == "overwrite")
                return target
            except NameConflict:
                if on_conflict != "suffix":
                    raise
                LOGGER.info("Custom firmware %s appeared during transfer; picking another name", target)
                target = self._claim_name(requested, on_conflict)

    def _claim_name(self, requested: str, on_conflict: ConflictPolicy) -> str:
        name = safe_filename(requested)
        if not name:
            raise StorageFailure(f"Cannot derive a firmware filename from '{requested}'")
        if name in {kind.value for kind in FirmwareKind}:
            raise NameConflict(f"'{name}' is reserved for built-in firmware")

        existing = set(self.list_custom())
        if name not in existing:
            return name
        if on_conflict == "overwrite":
            LOGGER.warning("Overwriting custom firmware %s", name)
            return name
        if on_conflict == "fail":
            raise NameConflict(f"Custom firmware '{name}' already exists")

        index = 1
        while suffixed_name(name, index) in existing:
            index += 1
        return suffixed_name(name, index)
