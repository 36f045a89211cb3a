"""
Tests for the readiness gate
"""
import pytest

from guidance_console.console.config_main import ReadinessConfig
from guidance_console.console.readiness_gate import AWAITING_READY, READY_TIMEOUT, ReadinessGate


@pytest.fixture
def events():
    return {'ready': 0, 'terminal': []}


@pytest.fixture
def gate(gateway, session, view, logger, config, events):
    def _ready():
        events['ready'] += 1

    return ReadinessGate(gateway, session, view, logger, config.readiness,
                         on_ready=_ready, on_terminal=events['terminal'].append)


def alert(bus, config, alert_type, description=''):
    bus.publish(config.topics.system_alert, {'type': alert_type, 'description': description})


def test_ready_and_not_ready_update_the_session(gate, bus, config, session):
    gate.subscribe()
    alert(bus, config, 5)
    assert session.system_alert_ready
    alert(bus, config, 4)
    assert not session.system_alert_ready


def test_caution_and_warning_are_informational(gate, bus, config, session, view):
    gate.subscribe()
    alert(bus, config, 5)
    alert(bus, config, 1, 'low fuel')
    alert(bus, config, 2, 'gps degraded')
    assert session.system_alert_ready
    assert 'System received a CAUTION message. low fuel' in view.messages
    assert 'System received a WARNING message. gps degraded' in view.messages


def test_unknown_alert_means_not_ready(gate, bus, config, session):
    gate.subscribe()
    alert(bus, config, 5)
    alert(bus, config, 99)
    assert not session.system_alert_ready


@pytest.mark.parametrize('alert_type', [3, 6])
def test_terminal_alerts(gate, bus, config, session, view, events, alert_type):
    gate.subscribe()
    alert(bus, config, 5)
    alert(bus, config, alert_type, 'shutting down')

    assert not session.system_alert_ready
    assert gate.terminated
    assert bus.active_subscriptions(config.topics.system_alert) == []
    message, redirect = view.notices[-1]
    assert 'PLEASE TAKE MANUAL CONTROL OF THE VEHICLE.' in message
    assert redirect is False
    assert events['terminal'] == [message]

    # No further subscription after a terminal alert
    gate.subscribe()
    gate.wait_for_ready()
    assert bus.active_subscriptions(config.topics.system_alert) == []


def test_subscribe_is_idempotent(gate, bus, config):
    gate.subscribe()
    gate.subscribe()
    assert len(bus.active_subscriptions(config.topics.system_alert)) == 1


def test_polling_gives_up_after_max_attempts(gate, bus, view, events):
    gate.wait_for_ready()
    assert view.message == AWAITING_READY

    polls = 0
    while bus.scheduled:
        assert bus.scheduled[0][0] == 3.0
        polls += bus.run_scheduled()

    assert polls == 10
    assert gate.failed
    assert not gate.waiting
    assert view.message == READY_TIMEOUT
    assert events['ready'] == 0


def test_short_poll_budget(gateway, session, view, logger, bus):
    gate = ReadinessGate(gateway, session, view, logger, ReadinessConfig(max_attempts=2, retry_delay=0.5))
    gate.wait_for_ready()
    bus.run_scheduled()
    bus.run_scheduled()
    assert gate.failed
    assert gate.attempts == 2


def test_ready_alert_while_waiting_proceeds_immediately(gate, bus, config, events):
    gate.wait_for_ready()
    bus.run_scheduled()
    alert(bus, config, 5)

    assert events['ready'] == 1
    assert not gate.waiting
    # The pending poll finds nothing to do
    bus.run_scheduled()
    assert events['ready'] == 1
    assert not gate.failed


def test_rewait_keeps_full_poll_budget(gate, bus, config, events):
    gate.wait_for_ready()
    alert(bus, config, 5)
    alert(bus, config, 4)
    gate.wait_for_ready()

    rounds = 0
    while bus.scheduled:
        bus.run_scheduled()
        rounds += 1

    assert rounds == 10
    assert gate.attempts == 10
    assert gate.failed
    assert events['ready'] == 1


def test_ready_found_by_poll(gate, bus, session, events):
    gate.wait_for_ready()
    session.system_alert_ready = True
    bus.run_scheduled()
    assert events['ready'] == 1
    assert gate.attempts == 1


def test_wait_is_not_restarted_while_waiting(gate, bus):
    gate.wait_for_ready()
    gate.wait_for_ready()
    assert len(bus.scheduled) == 1
