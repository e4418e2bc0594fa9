"""Core data models used across catalog, session, service, and CLI."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Union


class FirmwareKind(str, enum.Enum):
    BLE = "BLE"
    SERIAL = "Serial"
    WIFI = "WiFi"


class FlashStatus(str, enum.Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class BuiltinFirmware:
    kind: FirmwareKind
    path: Path

    @property
    def identifier(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class CustomFirmware:
    filename: str

    @property
    def identifier(self) -> str:
        return self.filename


@dataclass(frozen=True)
class RemoteFirmware:
    """A release asset that has not been downloaded yet."""

    display_name: str
    download_url: str


FirmwareSource = Union[BuiltinFirmware, CustomFirmware, RemoteFirmware]
FlashableFirmware = Union[BuiltinFirmware, CustomFirmware]


@dataclass(frozen=True)
class ReleaseAsset:
    display_name: str
    download_url: str


@dataclass(frozen=True)
class FlashReport:
    """Outcome reported by a flash capability."""

    success: bool
    message: str


@dataclass(frozen=True)
class FlashState:
    status: FlashStatus = FlashStatus.IDLE
    port: str | None = None
    firmware: FlashableFirmware | None = None
    message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (FlashStatus.SUCCEEDED, FlashStatus.FAILED)
