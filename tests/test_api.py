from __future__ import annotations

import threading
from pathlib import Path

import pytest

from npgflash.api import Client, FirmwareListing, FlashReport, FlashStatus, ReleaseAsset, SessionBusy


class FakeDiscovery:
    def list_ports(self) -> list[str]:
        return ["COM3"]


class GatedFlasher:
    def __init__(self) -> None:
        self.release = threading.Event()

    def flash(self, port: str, binary_path: Path) -> FlashReport:
        self.release.wait(5)
        return FlashReport(True, "done")


class FakeReleaseClient:
    def latest_release_assets(self, repository: str) -> list[ReleaseAsset]:
        return [ReleaseAsset("NPG-LITE-custom.bin", "https://dl/NPG-LITE-custom.bin")]

    def download(self, url: str, destination: Path, *, timeout_s: float) -> None:
        destination.write_bytes(b"\xe9custom")


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Client:
    monkeypatch.delenv("NPGFLASH_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    return Client(
        discovery=FakeDiscovery(),
        flasher=GatedFlasher(),
        release_client=FakeReleaseClient(),
    )


def test_public_client_lists_ports_and_firmware(client: Client) -> None:
    assert client.list_ports() == ["COM3"]

    listing = client.list_firmware()
    assert isinstance(listing, FirmwareListing)
    assert [f.identifier for f in listing.builtin] == ["BLE", "Serial", "WiFi"]
    assert listing.custom == ()


def test_public_client_download_and_background_flash(client: Client) -> None:
    asset = client.fetch_release_assets("owner/repo")[0]
    filename = client.download_and_store(asset.download_url, asset.display_name)
    assert client.list_custom_firmware() == [filename]

    states: list[FlashStatus] = []
    client.on_flash_state(lambda state: states.append(state.status))

    assert client.begin_flash("COM3", filename).status is FlashStatus.IN_PROGRESS
    with pytest.raises(SessionBusy):
        client.begin_flash("COM3", "BLE")

    client._service.flasher.release.set()
    assert client.wait_for_flash(5).status is FlashStatus.SUCCEEDED
    assert client.acknowledge_flash().status is FlashStatus.IDLE
    assert states == [FlashStatus.IN_PROGRESS, FlashStatus.SUCCEEDED, FlashStatus.IDLE]


def test_public_client_context_manager_runs_monitor(client: Client) -> None:
    seen: list[frozenset[str]] = []
    client.on_ports_changed(seen.append)

    with client:
        assert client._service.monitor.running

    assert seen == [frozenset({"COM3"})]
    assert not client._service.monitor.running
