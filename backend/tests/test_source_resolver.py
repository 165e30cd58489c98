import pytest

from models import StreamDescriptor, StreamProtocol
from services.source_resolver import resolve, resolve_asset_url

BASE = "http://localhost:8082"


def _stream(**kwargs) -> StreamDescriptor:
    return StreamDescriptor(id="s1", title="clip.mp4", original_file="clip.mp4", **kwargs)


@pytest.mark.parametrize(
    ("hls", "dash"),
    [
        ("/hls/s1/master.m3u8", "/dash/s1/manifest.mpd"),
        ("https://cdn.example.com/s1/master.m3u8", "/dash/s1/manifest.mpd"),
        ("/hls/s1/master.m3u8", "https://cdn.example.com/s1/manifest.mpd"),
    ],
)
def test_hls_always_wins_when_both_manifests_exist(hls: str, dash: str) -> None:
    source = resolve(_stream(hls_url=hls, dash_url=dash), BASE)
    assert source.protocol is StreamProtocol.HLS
    assert source.url is not None and source.url.endswith("master.m3u8")


def test_relative_hls_path_is_joined_onto_encoding_service() -> None:
    source = resolve(_stream(hls_url="/hls/s1/master.m3u8"), BASE + "/")
    assert source.url == "http://localhost:8082/hls/s1/master.m3u8"


def test_dash_is_used_when_hls_is_missing() -> None:
    source = resolve(_stream(dash_url="/dash/s1/manifest.mpd"), BASE)
    assert source.protocol is StreamProtocol.DASH
    assert source.url == "http://localhost:8082/dash/s1/manifest.mpd"


def test_no_manifest_resolves_to_none() -> None:
    source = resolve(_stream(), BASE)
    assert source.protocol is StreamProtocol.NONE
    assert source.url is None


def test_unknown_paths_pass_through_unchanged() -> None:
    assert resolve(_stream(hls_url="not a url"), BASE).url == "not a url"
    assert resolve_asset_url("/encoded/s1/thumbnail.jpg", BASE) == "http://localhost:8082/encoded/s1/thumbnail.jpg"
    assert resolve_asset_url("/api/thumbnails/s1", BASE) == "http://localhost:8082/api/thumbnails/s1"
    assert resolve_asset_url(None, BASE) is None
    assert resolve_asset_url("", BASE) is None
