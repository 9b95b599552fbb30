import pytest

from core.backends import BackendKind, Capabilities, classify_url

ALL = Capabilities()
NONE = Capabilities(adaptive_http=False, adaptive_dash=False)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("http://x/live/index.m3u8", BackendKind.ADAPTIVE_HTTP),
        ("http://x/play?type=m3u8&id=3", BackendKind.ADAPTIVE_HTTP),
        ("http://x/chan/1.ts", BackendKind.ADAPTIVE_HTTP),
        ("http://x/dash/stream.mpd", BackendKind.ADAPTIVE_DASH),
        ("http://x/Manifest(format=mpd)", BackendKind.ADAPTIVE_DASH),
        ("http://x/movie.mp4", BackendKind.DIRECT),
        ("rtmp://x/live", BackendKind.DIRECT),
        ("", BackendKind.NONE),
    ],
)
def test_classify_with_all_engines(url, expected):
    assert classify_url(url, ALL) is expected


def test_without_adaptive_engines_everything_is_direct():
    assert classify_url("http://x/a.m3u8", NONE) is BackendKind.DIRECT
    assert classify_url("http://x/a.mpd", NONE) is BackendKind.DIRECT


def test_dash_unavailable_falls_back_to_hls_rule():
    caps = Capabilities(adaptive_http=True, adaptive_dash=False)
    assert classify_url("http://x/manifest.m3u8", caps) is BackendKind.ADAPTIVE_HTTP
    assert classify_url("http://x/a.mpd", caps) is BackendKind.DIRECT


def test_query_does_not_hide_extension():
    assert classify_url("http://x/a.m3u8?token=1", ALL) is BackendKind.ADAPTIVE_HTTP
