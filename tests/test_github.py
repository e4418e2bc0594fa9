from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import requests
from urllib3.exceptions import ReadTimeoutError

from npgflash.core.errors import DownloadFailed, DownloadTimeout, ReleaseLookupFailed
from npgflash.core.model import ReleaseAsset
from npgflash.transports.github import GitHubReleaseClient


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, chunks: list[bytes] | None = None) -> None:
        self.status_code = status_code
        self.payload = payload
        self.chunks = chunks or []

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    def iter_content(self, chunk_size: int = 1) -> Any:
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None


class FakeSession:
    def __init__(self, response: FakeResponse | Exception) -> None:
        self.response = response
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(response: FakeResponse | Exception) -> tuple[GitHubReleaseClient, FakeSession]:
    session = FakeSession(response)
    return GitHubReleaseClient(session=session, lookup_timeout_s=4.0), session  # type: ignore[arg-type]


def test_latest_release_assets_in_listing_order() -> None:
    payload = {
        "tag_name": "v1.2",
        "assets": [
            {"name": "NPG-LITE-custom.bin", "browser_download_url": "https://dl/custom.bin"},
            {"name": "", "browser_download_url": "https://dl/blank"},
            {"name": "README.txt", "browser_download_url": "https://dl/readme"},
        ],
    }
    client, session = _client(FakeResponse(payload=payload))

    assets = client.latest_release_assets("owner/repo")

    assert assets == [
        ReleaseAsset("NPG-LITE-custom.bin", "https://dl/custom.bin"),
        ReleaseAsset("README.txt", "https://dl/readme"),
    ]
    url, kwargs = session.requests[0]
    assert url == "https://api.github.com/repos/owner/repo/releases/latest"
    assert kwargs["timeout"] == 4.0


def test_release_without_assets_is_empty() -> None:
    client, _ = _client(FakeResponse(payload={"tag_name": "v1", "assets": []}))
    assert client.latest_release_assets("owner/repo") == []


def test_missing_repository_is_lookup_failure() -> None:
    client, _ = _client(FakeResponse(status_code=404, payload={"message": "Not Found"}))

    with pytest.raises(ReleaseLookupFailed, match="not found"):
        client.latest_release_assets("owner/missing")


def test_network_error_is_lookup_failure() -> None:
    client, _ = _client(requests.ConnectionError("connection refused"))

    with pytest.raises(ReleaseLookupFailed, match="connection refused"):
        client.latest_release_assets("owner/repo")


def test_rate_limited_is_lookup_failure() -> None:
    client, _ = _client(FakeResponse(status_code=403, payload={}))

    with pytest.raises(ReleaseLookupFailed, match="HTTP 403"):
        client.latest_release_assets("owner/repo")


def test_download_writes_file(tmp_path: Path) -> None:
    client, session = _client(FakeResponse(chunks=[b"\xe9ab", b"", b"cd"]))
    destination = tmp_path / "fw.bin"

    client.download("https://dl/fw.bin", destination, timeout_s=30)

    assert destination.read_bytes() == b"\xe9abcd"
    assert session.requests[0][1]["stream"] is True


def test_download_http_error(tmp_path: Path) -> None:
    client, _ = _client(FakeResponse(status_code=500))

    with pytest.raises(DownloadFailed, match="HTTP 500"):
        client.download("https://dl/fw.bin", tmp_path / "fw.bin", timeout_s=30)


def test_download_timeout_is_distinct(tmp_path: Path) -> None:
    client, _ = _client(requests.ReadTimeout("read timed out"))

    with pytest.raises(DownloadTimeout):
        client.download("https://dl/fw.bin", tmp_path / "fw.bin", timeout_s=1)


def test_download_stream_error_is_failure(tmp_path: Path) -> None:
    client, _ = _client(FakeResponse(chunks=[b"ab", requests.ConnectionError("reset")]))

    with pytest.raises(DownloadFailed) as exc:
        client.download("https://dl/fw.bin", tmp_path / "fw.bin", timeout_s=30)
    assert not isinstance(exc.value, DownloadTimeout)


def test_download_stalled_body_is_timeout(tmp_path: Path) -> None:
    stalled = requests.ConnectionError(ReadTimeoutError(None, "https://dl/fw.bin", "Read timed out."))
    client, _ = _client(FakeResponse(chunks=[b"\xe9ab", stalled]))

    with pytest.raises(DownloadTimeout):
        client.download("https://dl/fw.bin", tmp_path / "fw.bin", timeout_s=1)


def test_download_total_time_budget(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    ticks = [0.0, 0.5, 10.0]
    monkeypatch.setattr(
        "npgflash.transports.github.time.monotonic",
        lambda: ticks.pop(0) if len(ticks) > 1 else ticks[0],
    )
    client, _ = _client(FakeResponse(chunks=[b"ab", b"cd"]))

    with pytest.raises(DownloadTimeout):
        client.download("https://dl/fw.bin", tmp_path / "fw.bin", timeout_s=5)
