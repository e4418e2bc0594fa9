"""USB serial port discovery using pyserial."""

from __future__ import annotations

from serial import SerialException
from serial.tools import list_ports

from npgflash.core.errors import PortDiscoveryError


class SerialPortDiscovery:
    """Lists serial ports backed by a USB device; other port types are skipped."""

    def list_ports(self) -> list[str]:
        try:
            ports = list_ports.comports()
        except (OSError, SerialException) as exc:
            raise PortDiscoveryError(
                f"Failed to list ports: {exc}. On Linux, add your user to the 'dialout' group."
            ) from exc
        return [port.device for port in ports if port.vid is not None]
