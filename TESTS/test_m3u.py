from core.m3u import looks_like_m3u, parse_extinf, parse_m3u, write_m3u
from core.models import DEFAULT_CHANNEL_NAME, Channel

SAMPLE = (
    "#EXTM3U\n"
    '#EXTINF:-1 tvg-logo="http://l/a.png" group-title="News",Channel A\n'
    "http://a/stream.m3u8\n"
    "#EXTINF:-1,B, the second\n"
    "http://b/x\n"
)


def test_parse_sample_in_order():
    chans = parse_m3u(SAMPLE)
    assert chans == [
        Channel(name="Channel A", url="http://a/stream.m3u8", group="News", logo="http://l/a.png"),
        Channel(name="the second", url="http://b/x"),
    ]


def test_name_after_last_comma():
    assert parse_extinf('#EXTINF:-1 group-title="a,b",Foo')["name"] == "Foo"


def test_missing_comma_uses_placeholder():
    assert parse_extinf("#EXTINF:-1")["name"] == DEFAULT_CHANNEL_NAME


def test_empty_name_after_comma_stays_empty():
    assert parse_extinf("#EXTINF:-1,   ")["name"] == ""
    assert parse_m3u("#EXTINF:-1,\nhttp://a\n")[0].name == ""


def test_attributes_and_name_with_comma_on_one_line():
    chans = parse_m3u('#EXTINF:-1 tvg-logo="http://x/y.png" group-title="News",News, 24/7 HD\nhttp://s/1\n')
    assert chans == [Channel(name="24/7 HD", url="http://s/1", group="News", logo="http://x/y.png")]


def test_empty_attribute_value_is_skipped():
    info = parse_extinf('#EXTINF:-1 group-title="" tvg-logo="" group-title="Sport",X')
    assert info["group"] == "Sport"
    assert info["logo"] == ""


def test_attributes_case_insensitive():
    info = parse_extinf('#EXTINF:-1 TVG-LOGO="L" Group-Title="G",X')
    assert info["logo"] == "L"
    assert info["group"] == "G"


def test_unterminated_extinf_is_dropped():
    text = "#EXTM3U\n#EXTINF:-1,Orphan\n"
    assert parse_m3u(text) == []


def test_second_extinf_replaces_pending():
    text = "#EXTINF:-1,First\n#EXTINF:-1,Second\nhttp://s\n"
    chans = parse_m3u(text)
    assert [c.name for c in chans] == ["Second"]


def test_crlf_and_comments_between():
    text = "#EXTM3U\r\n#EXTINF:-1,A\r\n#EXTVLCOPT:http-user-agent=x\r\n\r\nhttp://a\r\n"
    chans = parse_m3u(text)
    assert len(chans) == 1
    assert chans[0].url == "http://a"


def test_url_without_extinf_ignored():
    assert parse_m3u("#EXTM3U\nhttp://lonely\n") == []


def test_empty_input():
    assert parse_m3u("") == []
    assert parse_m3u(None) == []


def test_looks_like_m3u():
    assert looks_like_m3u(SAMPLE)
    assert looks_like_m3u("#EXTINF:-1,x\nhttp://x")
    assert not looks_like_m3u("<html><body>Not found</body></html>")
    assert not looks_like_m3u("")


def test_write_m3u_is_readable_back(tmp_path):
    chans = parse_m3u(SAMPLE)
    out = tmp_path / "export.m3u"
    write_m3u(chans, out)
    assert out.read_text(encoding="utf-8").startswith("#EXTM3U\n")
    assert parse_m3u(out.read_text(encoding="utf-8")) == chans
