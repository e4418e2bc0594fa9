"""Flash capability backed by esptool."""

from __future__ import annotations

import contextlib
import io
import logging
from pathlib import Path

from serial import SerialException
from serial.tools import list_ports

from npgflash.core.model import FlashReport

LOGGER = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Firmware flashed successfully! The device should now reboot."


class EsptoolFlasher:
    def __init__(
        self,
        *,
        chip: str = "esp32c6",
        baud: int = 921600,
        address: int = 0x10000,
        connect_attempts: int = 3,
    ) -> None:
        self.chip = chip
        self.baud = baud
        self.address = address
        self.connect_attempts = connect_attempts

    def command_line(self, port: str, binary_path: Path) -> list[str]:
        return [
            "--chip",
            self.chip,
            "--port",
            port,
            "--baud",
            str(self.baud),
            "--connect-attempts",
            str(self.connect_attempts),
            "--before",
            "default_reset",
            "--after",
            "hard_reset",
            "write_flash",
            hex(self.address),
            str(binary_path),
        ]

    def flash(self, port: str, binary_path: Path) -> FlashReport:
        path = Path(binary_path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            return FlashReport(False, f"Failed to open {path}: {exc}")
        if size == 0:
            return FlashReport(False, f"File {path} is empty")

        problem = self.check_port(port)
        if problem:
            return FlashReport(False, problem)

        try:
            import esptool  # type: ignore
        except Exception as exc:  # pragma: no cover - import failure path
            return FlashReport(False, f"Flashing requires 'esptool'. Install dependency and retry. ({exc})")

        output = io.StringIO()
        try:
            with contextlib.redirect_stdout(output), contextlib.redirect_stderr(output):
                esptool.main(self.command_line(port, path))
        except SystemExit as exc:
            if exc.code not in (None, 0):
                return self._failure(f"esptool exited with status {exc.code}", output)
        except Exception as exc:
            return self._failure(f"Flash failed at {hex(self.address)} ({size} bytes): {exc}", output)
        finally:
            for line in output.getvalue().splitlines():
                if line.strip():
                    LOGGER.debug("esptool: %s", line)

        return FlashReport(True, SUCCESS_MESSAGE)

    def check_port(self, port: str) -> str | None:
        """Return why `port` cannot be flashed through, or None when it is an attached USB port."""
        try:
            ports = list_ports.comports()
        except (OSError, SerialException) as exc:
            return f"Failed to list ports: {exc}"
        match = next((info for info in ports if info.device == port), None)
        if match is None:
            available = [info.device for info in ports]
            return f"Port {port} not found. Available ports: {available}"
        if match.vid is None:
            return f"Port {port} is not a USB port"
        return None

    @staticmethod
    def _failure(message: str, output: io.StringIO) -> FlashReport:
        tail = [line for line in output.getvalue().splitlines() if line.strip()][-3:]
        if tail:
            message = f"{message}\n" + "\n".join(tail)
        return FlashReport(False, message)
