from __future__ import annotations

from pathlib import Path

import pytest
import requests

from npgflash.core.errors import ReleaseLookupFailed
from npgflash.core.model import ReleaseAsset
from npgflash.core.releases import ReleaseResolver


class FakeReleaseClient:
    def __init__(self, assets: list[ReleaseAsset] | None = None, error: Exception | None = None) -> None:
        self.assets = assets or []
        self.error = error
        self.repositories: list[str] = []

    def latest_release_assets(self, repository: str) -> list[ReleaseAsset]:
        self.repositories.append(repository)
        if self.error is not None:
            raise self.error
        return list(self.assets)

    def download(self, url: str, destination: Path, *, timeout_s: float) -> None:
        raise AssertionError("not used")


def test_single_asset_release() -> None:
    asset = ReleaseAsset("NPG-LITE-custom.bin", "https://github.com/o/r/releases/download/v1/NPG-LITE-custom.bin")
    resolver = ReleaseResolver(FakeReleaseClient([asset]))

    assert resolver.list_release_assets("upsidedownlabs/npg-lite") == [asset]


def test_listing_order_is_preserved_and_non_firmware_filtered() -> None:
    assets = [
        ReleaseAsset("zeta.bin", "https://x/zeta.bin"),
        ReleaseAsset("notes.txt", "https://x/notes.txt"),
        ReleaseAsset("alpha.BIN", "https://x/alpha.BIN"),
    ]
    resolver = ReleaseResolver(FakeReleaseClient(assets))

    names = [a.display_name for a in resolver.list_release_assets("owner/repo")]
    assert names == ["zeta.bin", "alpha.BIN"]


def test_empty_release_is_not_an_error() -> None:
    resolver = ReleaseResolver(FakeReleaseClient([ReleaseAsset("source.zip", "https://x/source.zip")]))
    assert resolver.list_release_assets("owner/repo") == []


def test_transport_error_is_wrapped_with_cause() -> None:
    cause = requests.ConnectionError("dns failure")
    resolver = ReleaseResolver(FakeReleaseClient(error=cause))

    with pytest.raises(ReleaseLookupFailed) as exc:
        resolver.list_release_assets("owner/repo")

    assert exc.value.__cause__ is cause
    assert "dns failure" in str(exc.value)


def test_lookup_failure_from_client_passes_through() -> None:
    resolver = ReleaseResolver(FakeReleaseClient(error=ReleaseLookupFailed("Repository 'o/r' not found")))

    with pytest.raises(ReleaseLookupFailed, match="not found"):
        resolver.list_release_assets("o/r")


@pytest.mark.parametrize("repository", ["", "just-a-name", "a/b/c", "owner/ repo"])
def test_malformed_repository_rejected(repository: str) -> None:
    client = FakeReleaseClient()
    with pytest.raises(ReleaseLookupFailed):
        ReleaseResolver(client).list_release_assets(repository)
    assert client.repositories == []
