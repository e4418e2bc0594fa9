from __future__ import annotations

from types import SimpleNamespace

import pytest
from serial.tools import list_ports

from npgflash.core.errors import PortDiscoveryError
from npgflash.transports.serial_ports import SerialPortDiscovery


def test_only_usb_ports_are_listed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        list_ports,
        "comports",
        lambda: [
            SimpleNamespace(device="/dev/ttyACM0", vid=0x303A),
            SimpleNamespace(device="/dev/ttyS0", vid=None),
            SimpleNamespace(device="/dev/ttyUSB1", vid=0x10C4),
        ],
    )

    assert SerialPortDiscovery().list_ports() == ["/dev/ttyACM0", "/dev/ttyUSB1"]


def test_enumeration_error_is_discovery_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken() -> list[object]:
        raise OSError("permission denied")

    monkeypatch.setattr(list_ports, "comports", broken)

    with pytest.raises(PortDiscoveryError, match="dialout"):
        SerialPortDiscovery().list_ports()
