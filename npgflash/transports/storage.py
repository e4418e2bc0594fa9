"""Directory-backed custom firmware storage."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from npgflash.core.errors import NameConflict, StorageFailure


class LocalFirmwareStorage:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def list(self) -> list[str]:
        if not self.directory.exists():
            return []
        try:
            return sorted(
                entry.name
                for entry in self.directory.iterdir()
                if entry.is_file() and not entry.name.startswith(".")
            )
        except OSError as exc:
            raise StorageFailure(f"Could not list firmware directory {self.directory}: {exc}") from exc

    def store(self, filename: str, source: Path, *, overwrite: bool = False) -> None:
        """Write `source` under `filename`; an existing file is only replaced with `overwrite`."""
        target = self.path(filename)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".store-", suffix=".tmp")
            os.close(fd)
            try:
                shutil.copyfile(source, tmp_name)
                if overwrite:
                    os.replace(tmp_name, target)
                else:
                    os.link(tmp_name, target)
            except FileExistsError:
                raise NameConflict(f"Custom firmware '{filename}' already exists") from None
            finally:
                Path(tmp_name).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Could not store firmware '{filename}': {exc}") from exc

    def delete(self, filename: str) -> bool:
        target = self.path(filename)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageFailure(f"Could not delete firmware '{filename}': {exc}") from exc
        return True

    def path(self, filename: str) -> Path:
        if not filename or Path(filename).name != filename or filename in {".", ".."}:
            raise StorageFailure(f"Invalid firmware filename '{filename}'")
        return self.directory / filename
