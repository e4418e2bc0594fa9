"""GitHub releases client using requests."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import requests
from urllib3.exceptions import ReadTimeoutError

from npgflash.core.errors import DownloadFailed, DownloadTimeout, ReleaseLookupFailed
from npgflash.core.model import ReleaseAsset

LOGGER = logging.getLogger(__name__)

API_ROOT = "https://api.github.com"
_CHUNK_SIZE = 64 * 1024


class GitHubReleaseClient:
    def __init__(
        self,
        *,
        api_root: str = API_ROOT,
        lookup_timeout_s: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_root = api_root.rstrip("/")
        self.lookup_timeout_s = lookup_timeout_s
        self.session = session or requests.Session()

    def latest_release_assets(self, repository: str) -> list[ReleaseAsset]:
        url = f"{self.api_root}/repos/{repository}/releases/latest"
        try:
            response = self.session.get(
                url,
                headers={"Accept": "application/vnd.github+json"},
                timeout=self.lookup_timeout_s,
            )
        except requests.RequestException as exc:
            raise ReleaseLookupFailed(f"Could not reach {url}: {exc}") from exc

        if response.status_code == 404:
            raise ReleaseLookupFailed(
                f"Repository '{repository}' not found or has no published release"
            )
        if response.status_code != 200:
            raise ReleaseLookupFailed(
                f"Release lookup for '{repository}' failed: HTTP {response.status_code}"
            )

        try:
            release = response.json()
        except ValueError as exc:
            raise ReleaseLookupFailed(f"Invalid release payload from {url}: {exc}") from exc

        assets: list[ReleaseAsset] = []
        for asset in release.get("assets", []) or []:
            name = str(asset.get("name") or "").strip()
            download_url = str(asset.get("browser_download_url") or "").strip()
            if name and download_url:
                assets.append(ReleaseAsset(display_name=name, download_url=download_url))
        LOGGER.info(
            "Release %s of %s lists %d asset(s)",
            release.get("tag_name", "?"),
            repository,
            len(assets),
        )
        return assets

    def download(self, url: str, destination: Path, *, timeout_s: float) -> None:
        deadline = time.monotonic() + timeout_s
        try:
            with self.session.get(url, stream=True, timeout=timeout_s) as response:
                if response.status_code != 200:
                    raise DownloadFailed(f"Download of {url} failed: HTTP {response.status_code}")
                with open(destination, "wb") as handle:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        if time.monotonic() > deadline:
                            raise DownloadTimeout(f"Download of {url} exceeded {timeout_s:g}s")
                        if chunk:
                            handle.write(chunk)
        except requests.Timeout as exc:
            raise DownloadTimeout(f"Download of {url} exceeded {timeout_s:g}s") from exc
        except requests.ConnectionError as exc:
            if _is_read_timeout(exc):
                raise DownloadTimeout(f"Download of {url} stalled for {timeout_s:g}s") from exc
            raise DownloadFailed(f"Download of {url} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise DownloadFailed(f"Download of {url} failed: {exc}") from exc
        except OSError as exc:
            raise DownloadFailed(f"Could not write {destination}: {exc}") from exc


def _is_read_timeout(exc: BaseException) -> bool:
    """requests re-raises a mid-body read timeout as `ConnectionError`."""
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, ReadTimeoutError):
            return True
        if any(isinstance(arg, ReadTimeoutError) for arg in seen.args):
            return True
        seen = seen.__cause__ or seen.__context__
    return False
