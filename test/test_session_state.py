"""
Tests for the session flags and stores
"""
import pytest
import yaml

from guidance_console.console.session_state import (
    KEY_GUIDANCE_ACTIVE, KEY_GUIDANCE_ENGAGED, KEY_SELECTED_ROUTE, KEY_START_DATE_TIME,
    NO_ROUTE_SELECTED, InMemorySessionStore, SessionFlags, YamlFileSessionStore, format_elapsed)


def test_absent_flags_read_as_false(session):
    assert session.guidance_active is False
    assert session.guidance_engaged is False
    assert session.system_alert_ready is False
    assert session.selected_route_name == NO_ROUTE_SELECTED
    assert session.has_selected_route is False


@pytest.mark.parametrize('raw', ['', 'undefined', 'nonsense', 'False'])
def test_non_true_values_read_as_false(raw):
    flags = SessionFlags(InMemorySessionStore({KEY_GUIDANCE_ACTIVE: raw}))
    assert flags.guidance_active is False


@pytest.mark.parametrize('raw', ['', 'undefined'])
def test_placeholder_route_names_mean_no_route(raw):
    flags = SessionFlags(InMemorySessionStore({KEY_SELECTED_ROUTE: raw}))
    assert flags.selected_route_name == NO_ROUTE_SELECTED
    assert not flags.has_selected_route


def test_flags_are_stored_as_text(session, store):
    session.guidance_active = True
    session.selected_route_name = 'Route A'
    assert store.get(KEY_GUIDANCE_ACTIVE) == 'true'
    assert store.get(KEY_SELECTED_ROUTE) == 'Route A'
    assert session.has_selected_route


def test_engaging_implies_active(session):
    session.guidance_engaged = True
    assert session.guidance_active
    assert session.guidance_engaged


def test_deactivating_clears_engaged(session):
    session.guidance_engaged = True
    session.guidance_active = False
    assert not session.guidance_engaged


def test_stale_engaged_flag_without_active_reads_false():
    flags = SessionFlags(InMemorySessionStore({KEY_GUIDANCE_ENGAGED: 'true'}))
    assert flags.guidance_engaged is False


def test_engaged_timer_keeps_first_start(session, store):
    first = session.start_engaged_timer()
    session.clock['now'] += 30
    assert session.start_engaged_timer() == first
    assert float(store.get(KEY_START_DATE_TIME)) == first
    assert session.engaged_elapsed() == pytest.approx(30.0)


def test_elapsed_is_zero_without_timer(session):
    assert session.engaged_elapsed() == 0.0


def test_remove_all(session, store):
    session.guidance_engaged = True
    session.system_alert_ready = True
    session.selected_route_name = 'Route A'
    session.start_engaged_timer()
    session.remove_all()
    assert store.snapshot() == {}


@pytest.mark.parametrize('seconds, expected', [
    (0, '00h 00m 00s'),
    (59.9, '00h 00m 59s'),
    (3725, '01h 02m 05s'),
    (-4, '00h 00m 00s'),
])
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


def test_yaml_store_survives_restart(tmp_path):
    path = str(tmp_path / 'session' / 'flags.yaml')
    flags = SessionFlags(YamlFileSessionStore(path))
    flags.selected_route_name = 'Route A'
    flags.guidance_active = True

    restored = SessionFlags(YamlFileSessionStore(path))
    assert restored.selected_route_name == 'Route A'
    assert restored.guidance_active
    assert not restored.guidance_engaged


def test_yaml_store_rejects_non_mapping(tmp_path):
    path = tmp_path / 'flags.yaml'
    path.write_text(yaml.safe_dump(['not', 'a', 'mapping']))
    with pytest.raises(ValueError):
        YamlFileSessionStore(str(path))


def test_yaml_store_remove(tmp_path):
    path = str(tmp_path / 'flags.yaml')
    store = YamlFileSessionStore(path)
    store.set(KEY_SELECTED_ROUTE, 'Route A')
    store.remove(KEY_SELECTED_ROUTE)
    assert YamlFileSessionStore(path).get(KEY_SELECTED_ROUTE) is None
