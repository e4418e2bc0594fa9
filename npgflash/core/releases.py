"""Latest-release asset lookup."""

from __future__ import annotations

import re
from collections.abc import Sequence

from npgflash.core.errors import ReleaseLookupFailed
from npgflash.core.model import ReleaseAsset
from npgflash.transports.base import ReleaseClient

_REPOSITORY_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class ReleaseResolver:
    def __init__(self, client: ReleaseClient, *, extensions: Sequence[str] = (".bin",)) -> None:
        self.client = client
        self.extensions = tuple(ext.lower() for ext in extensions)

    def list_release_assets(self, repository: str) -> list[ReleaseAsset]:
        """Firmware assets of the latest release, in the order the remote lists them.

        An empty list means the release has no firmware files; lookup problems
        always raise `ReleaseLookupFailed`.
        """
        repository = repository.strip()
        if not _REPOSITORY_RE.match(repository):
            raise ReleaseLookupFailed(f"Repository must look like 'owner/name', got '{repository}'")
        try:
            assets = self.client.latest_release_assets(repository)
        except ReleaseLookupFailed:
            raise
        except Exception as exc:
            raise ReleaseLookupFailed(f"Release lookup for '{repository}' failed: {exc}") from exc
        return [asset for asset in assets if asset.display_name.lower().endswith(self.extensions)]
