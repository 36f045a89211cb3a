"""
Tests for the guidance engagement state machine
"""
import itertools

import pytest

from guidance_console.console.StateMachine import GuidanceButtonState, GuidanceEngagementStateMachine
from guidance_console.console.StateMachine.guidance_state_machine import TOGGLE_FAILED

from conftest import RecordingView


@pytest.fixture
def active_capabilities():
    return {'count': 1}


@pytest.fixture
def events():
    return {'activated': 0, 'disengaged': 0, 'shutdown': []}


@pytest.fixture
def machine(gateway, session, view, logger, active_capabilities, events):
    def _activated():
        events['activated'] += 1

    def _disengaged():
        events['disengaged'] += 1

    session.selected_route_name = 'Route A'
    return GuidanceEngagementStateMachine(
        gateway, session, view, logger,
        count_active_capabilities=lambda: active_capabilities['count'],
        on_activated=_activated,
        on_disengaged=_disengaged,
        on_shutdown=events['shutdown'].append)


def report(bus, config, state, description=''):
    bus.publish(config.topics.guidance_state, {'state': state, 'description': description})


def engage(machine, bus, config):
    machine.enable_guidance()
    machine.toggle_guidance()
    bus.respond(config.services.set_guidance_active, {'guidance_status': True})
    report(bus, config, 4)


# === Precondition ===

def test_enabled_when_precondition_met(machine, view, session):
    machine.host_instructions = 'Double tap the ACC switch.'
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.ENABLED
    assert not session.guidance_active
    assert view.message == 'Double tap the ACC switch.'


def test_disabled_without_capabilities(machine, view, active_capabilities):
    active_capabilities['count'] = 0
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.DISABLED
    assert view.widget_options_shown == 0


def test_disabled_without_widgets(gateway, session, logger):
    view = RecordingView(widgets=())
    session.selected_route_name = 'Route A'
    machine = GuidanceEngagementStateMachine(gateway, session, view, logger,
                                             count_active_capabilities=lambda: 1)
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.DISABLED
    assert view.widget_options_shown == 1
    assert view.message == 'Please go to Driver View to select Widgets.'


def test_disabled_without_route(machine, view, session):
    session.remove_route()
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.DISABLED


def test_guidance_state_subscribed_once(machine, bus, config):
    machine.enable_guidance()
    machine.enable_guidance()
    assert len(bus.active_subscriptions(config.topics.guidance_state)) == 1


# === Operator toggle ===

def test_activation(machine, bus, config, view, session, events):
    machine.enable_guidance()
    assert machine.toggle_guidance()
    call = bus.respond(config.services.set_guidance_active, {'guidance_status': True})

    assert call.request == {'guidance_active': True}
    assert view.button == GuidanceButtonState.ACTIVE
    assert session.guidance_active and not session.guidance_engaged
    assert view.widgets_loaded == 1
    assert events['activated'] == 1


def test_toggle_mismatch_leaves_flags_unchanged(machine, bus, config, view, session):
    machine.enable_guidance()
    before = dict(session.store.snapshot())
    machine.toggle_guidance()
    bus.respond(config.services.set_guidance_active, {'guidance_status': False})

    assert view.message == TOGGLE_FAILED
    assert session.store.snapshot() == before
    assert view.button == GuidanceButtonState.ENABLED


def test_toggle_transport_failure(machine, bus, config, view, session):
    machine.enable_guidance()
    machine.toggle_guidance()
    bus.fail(config.services.set_guidance_active, RuntimeError('timeout'))
    assert view.message == TOGGLE_FAILED
    assert not session.guidance_active
    assert not machine.toggle_pending


def test_toggle_rejected_when_disabled(machine, bus, config, active_capabilities):
    active_capabilities['count'] = 0
    machine.enable_guidance()
    assert not machine.toggle_guidance()
    assert bus.calls_to(config.services.set_guidance_active) == []


def test_single_toggle_in_flight(machine, bus, config):
    machine.enable_guidance()
    assert machine.toggle_guidance()
    assert not machine.toggle_guidance()
    assert len(bus.calls_to(config.services.set_guidance_active)) == 1


def test_disengage(machine, bus, config, view, session, events):
    engage(machine, bus, config)
    assert machine.toggle_guidance()
    call = bus.respond(config.services.set_guidance_active, {'guidance_status': False})

    assert call.request == {'guidance_active': False}
    assert view.button == GuidanceButtonState.DISENGAGED
    assert not session.guidance_active and not session.guidance_engaged
    assert events['disengaged'] == 1
    message, redirect = view.notices[-1]
    assert message.startswith('You are disengaging guidance.')
    assert redirect is True


def test_disengaged_is_terminal(machine, bus, config, view):
    engage(machine, bus, config)
    machine.toggle_guidance()
    bus.respond(config.services.set_guidance_active, {'guidance_status': False})

    report(bus, config, 4)
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.DISENGAGED
    assert not machine.toggle_guidance()


# === Guidance reports ===

def test_engaged_report(machine, bus, config, view, session):
    engage(machine, bus, config)
    assert view.button == GuidanceButtonState.ENGAGED
    assert session.guidance_engaged
    assert session.engaged_start_time == 1000.0


def test_engaged_before_activation_response(machine, bus, config, view, session):
    machine.enable_guidance()
    machine.toggle_guidance()
    report(bus, config, 4)
    bus.respond(config.services.set_guidance_active, {'guidance_status': True})
    assert view.button == GuidanceButtonState.ENGAGED
    assert session.guidance_engaged


def test_inactive_alerts_once_per_engagement(machine, bus, config, view, session):
    engage(machine, bus, config)
    report(bus, config, 5)
    report(bus, config, 5)
    assert view.sounds == 1
    assert view.button == GuidanceButtonState.INACTIVE
    assert not session.guidance_active and not session.guidance_engaged

    report(bus, config, 4)
    report(bus, config, 5)
    assert view.sounds == 2


def test_active_report(machine, bus, config, view, session):
    machine.enable_guidance()
    report(bus, config, 3)
    assert view.message == 'Guidance is now ACTIVE.'
    assert view.button == GuidanceButtonState.ACTIVE
    assert session.guidance_active


def test_informational_reports(machine, bus, config, view):
    machine.enable_guidance()
    states = list(view.button_states)
    report(bus, config, 1)
    assert view.message == 'Guidance is starting up.'
    report(bus, config, 2)
    report(bus, config, 42)
    assert view.button_states == states


def test_guidance_shutdown(machine, bus, config, view, events):
    machine.enable_guidance()
    report(bus, config, 0, 'guidance node died')
    message, redirect = view.notices[-1]
    assert 'guidance node died' in message
    assert message.endswith('PLEASE TAKE MANUAL CONTROL OF THE VEHICLE.')
    assert redirect is False
    assert events['shutdown'] == [message]


@pytest.mark.parametrize('sequence', list(itertools.product([3, 4, 5], repeat=4)))
def test_engaged_always_implies_active(machine, bus, config, session, sequence):
    machine.enable_guidance()
    for state in sequence:
        report(bus, config, state)
        assert not session.guidance_engaged or session.guidance_active
    if sequence[-1] == 4:
        assert session.guidance_engaged
    if sequence[-1] == 5:
        assert not session.guidance_active


# === Session restore ===

def test_restore_engaged(machine, view, session):
    session.guidance_engaged = True
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.ENGAGED


def test_restore_active_while_capabilities_load(machine, view, session, active_capabilities):
    active_capabilities['count'] = 0
    session.guidance_active = True
    machine.enable_guidance()
    assert view.button == GuidanceButtonState.ACTIVE
    assert session.guidance_active
