import pytest

from conftest import make_playlist
from core.backends import BackendKind, FatalError, NonFatalError, Ready
from core.config import AppConfig
from playback_controller import PlaybackController, PlaybackState


@pytest.fixture
def controller(qapp, store, factory):
    store.upsert(make_playlist("Test", n=5))
    c = PlaybackController(store, factory, sink=1234, config=AppConfig(load_timeout_s=10.0))
    c.notes = []
    c.notify.connect(c.notes.append)
    return c


def test_play_channel_creates_one_backend(controller, factory, store):
    assert controller.play_channel(2)
    assert controller.state is PlaybackState.LOADING
    assert len(factory.live) == 1
    b = factory.last
    assert b.sink == 1234
    assert b.loaded == ["http://example.com/3.m3u8"]
    assert b.kind is BackendKind.ADAPTIVE_HTTP
    assert store.current_channel_index == 2


def test_rapid_switch_keeps_single_live_backend(controller, factory):
    controller.play_channel(0)
    controller.play_channel(1)
    controller.play_channel(2)
    assert len(factory.created) == 3
    assert factory.live == [factory.last]
    assert all(b.detached for b in factory.created[:-1])


def test_ready_moves_to_playing_and_shows_overlay(controller, factory):
    shown = []
    controller.overlay_shown.connect(shown.append)
    controller.play_channel(1)
    factory.last.fire(Ready())
    assert controller.state is PlaybackState.PLAYING
    assert controller.overlay_visible
    assert shown[-1].number == 2
    assert shown[-1].name == "Ch2"
    assert shown[-1].playlist_name == "Test"
    assert controller._overlay_timer.isActive()
    assert controller._overlay_timer.interval() == 4000
    assert not controller._watchdog.isActive()


def test_stale_events_are_ignored(controller, factory):
    controller.play_channel(0)
    old = factory.last
    listener = old._listener
    controller.play_channel(1)
    listener(FatalError("trop tard"))
    listener(Ready())
    assert controller.state is PlaybackState.LOADING
    assert controller.session.channel_index == 1
    assert controller.notes == []


def test_fatal_error_stays_on_channel(controller, factory, store):
    controller.play_channel(3)
    b = factory.last
    b.fire(FatalError("codec"))
    assert controller.state is PlaybackState.ERROR
    assert controller.session.channel_index == 3
    assert store.current_channel_index == 3
    assert b.detached
    assert factory.live == []
    assert len(factory.created) == 1
    assert controller.notes == ["Impossible de lire « Ch4 » : codec"]


def test_non_fatal_error_keeps_playing(controller, factory):
    controller.play_channel(0)
    factory.last.fire(Ready())
    factory.last.fire(NonFatalError("fin du flux"))
    assert controller.state is PlaybackState.PLAYING


def test_load_exception_is_fatal(controller, factory):
    factory.fail_load = True
    assert controller.play_channel(0)
    assert controller.state is PlaybackState.ERROR
    assert factory.live == []


def test_watchdog_timeout(controller, factory):
    controller.play_channel(0)
    assert controller._watchdog.isActive()
    controller._on_load_timeout()
    assert controller.state is PlaybackState.ERROR
    assert "délai dépassé" in controller.notes[-1]


def test_watchdog_disabled(qapp, store, factory):
    store.upsert(make_playlist(n=2))
    c = PlaybackController(store, factory, config=AppConfig(load_timeout_s=0))
    c.play_channel(0)
    assert not c._watchdog.isActive()


def test_channel_up_down_wrap(controller, store):
    controller.play_channel(4)
    controller.channel_up()
    assert controller.session.channel_index == 0
    controller.channel_down()
    assert controller.session.channel_index == 4
    controller.channel_down()
    assert controller.session.channel_index == 3


def test_channel_up_without_session_uses_persisted_index(controller, store):
    store.select_channel(1)
    controller.channel_up()
    assert controller.session.channel_index == 2


def test_out_of_range_is_rejected(controller, factory):
    assert not controller.play_channel(7)
    assert controller.notes == ["Chaîne 8 introuvable"]
    assert factory.created == []


def test_empty_library(qapp, store, factory):
    c = PlaybackController(store, factory)
    notes = []
    c.notify.connect(notes.append)
    assert not c.play_channel(0)
    assert not c.channel_up()
    assert notes == ["Aucune chaîne à lire", "Aucune chaîne à lire"]
    assert c.state is PlaybackState.IDLE


def test_numeric_entry_valid(controller):
    entries = []
    controller.numeric_entry_changed.connect(entries.append)
    controller.press_digit("3")
    assert controller.numeric_buffer == "3"
    assert controller._numeric_timer.isActive()
    assert controller.commit_numeric_entry()
    assert controller.session.channel_index == 2
    assert entries == ["3", ""]
    assert controller.numeric_buffer == ""


def test_numeric_entry_leading_zero_out_of_range(controller, factory):
    controller.press_digit(0)
    controller.press_digit(7)
    assert controller.numeric_buffer == "07"
    assert not controller.commit_numeric_entry()
    assert controller.notes == ["Chaîne 7 introuvable"]
    assert factory.created == []


def test_numeric_entry_zero(controller):
    controller.press_digit("0")
    assert not controller.commit_numeric_entry()
    assert controller.notes == ["Chaîne 0 introuvable"]


def test_numeric_entry_ignores_non_digits(controller):
    controller.press_digit("a")
    controller.press_digit("12")
    assert controller.numeric_buffer == ""
    assert not controller.commit_numeric_entry()
    assert controller.notes == []


def test_overlay_single_pending_hide(controller):
    hidden = []
    controller.overlay_hidden.connect(lambda: hidden.append(True))
    controller.play_channel(0)
    controller.show_overlay()
    controller.show_overlay()
    assert controller._overlay_timer.isActive()
    controller.hide_overlay()
    controller.hide_overlay()
    assert hidden == [True]
    assert not controller._overlay_timer.isActive()


def test_stop_tears_down(controller, factory):
    controller.play_channel(0)
    controller.press_digit("1")
    controller.stop()
    assert controller.state is PlaybackState.IDLE
    assert factory.live == []
    assert controller.numeric_buffer == ""
    assert controller.active_backend_kind is BackendKind.NONE


def test_open_playlist(controller, store, factory):
    store.upsert(make_playlist("Other", n=2, source="http://other"))
    assert controller.open_playlist(0, channel=4)
    assert store.current_playlist().name == "Test"
    assert controller.session.channel_index == 4
    assert not controller.open_playlist(9)


def test_refresh_source_only_for_auto_refresh(qapp, store, factory):
    c = PlaybackController(store, factory)
    store.upsert(make_playlist(source="http://a"))
    assert c.refresh_source() is None
    store.set_auto_refresh(0, True)
    assert c.refresh_source() == "http://a"


def test_resume_with_refreshed_text(controller, store, factory):
    store.select_channel(4)
    text = "#EXTM3U\n#EXTINF:-1,New1\nhttp://n/1\n#EXTINF:-1,New2\nhttp://n/2\n"
    assert controller.resume(text)
    assert [c.name for c in store.current_playlist().channels] == ["New1", "New2"]
    assert controller.session.channel_index == 1
    assert factory.last.loaded == ["http://n/2"]


def test_resume_keeps_cache_when_refresh_empty(controller, store):
    store.select_channel(2)
    assert controller.resume("<html>offline</html>")
    assert len(store.current_playlist().channels) == 5
    assert controller.session.channel_index == 2


def test_resume_without_refresh(controller, store):
    store.select_channel(9)
    assert controller.resume()
    assert controller.session.channel_index == 4


def test_numeric_timer_interval_and_restart(controller):
    assert controller._numeric_timer.interval() == 1500
    controller.press_digit("1")
    assert controller._numeric_timer.isActive()
    controller._numeric_timer.stop()
    controller.press_digit("2")
    assert controller._numeric_timer.isActive()
    assert controller.numeric_buffer == "12"


def test_removing_playing_playlist_stops_session(controller, store, factory):
    store.upsert(make_playlist("B", n=5, source="http://b"))
    states = []
    controller.state_changed.connect(lambda s, i: states.append(s))
    controller.play_channel(3)
    factory.last.fire(Ready())

    controller.remove_playlist(1)

    assert factory.live == []
    assert controller.session is None
    assert controller.state is PlaybackState.IDLE
    assert states[-1] is PlaybackState.IDLE
    assert not controller.overlay_visible
    assert store.current_playlist().name == "Test"
    assert store.current_channel_index == 0

    controller.show_overlay()
    assert not controller.overlay_visible


def test_removing_other_playlist_also_resets_session(controller, store, factory):
    store.upsert(make_playlist("B", n=5, source="http://b"))
    controller.play_channel(2)
    controller.remove_playlist(0)
    assert factory.live == []
    assert store.current_playlist().name == "B"
    assert store.current_channel_index == 0
    controller.channel_up()
    assert controller.session.channel_index == 1


def test_remove_playlist_out_of_range(controller, factory):
    controller.play_channel(0)
    with pytest.raises(IndexError):
        controller.remove_playlist(5)
    assert factory.live == [factory.last]
