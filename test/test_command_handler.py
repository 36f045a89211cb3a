"""
Tests for operator command parsing and dispatch
"""
import json

import pytest

from guidance_console.console.command_handler import OperatorCommandHandler
from guidance_console.console.command_types import OperatorCommandType, get_command_category


class RecordingOrchestrator:

    def __init__(self, accept=True):
        self.accept = accept
        self.commands = []

    def handle_command(self, command_type, data):
        self.commands.append((command_type, data))
        return self.accept


@pytest.fixture
def orchestrator_stub():
    return RecordingOrchestrator()


@pytest.fixture
def handler(logger, orchestrator_stub):
    return OperatorCommandHandler(logger, orchestrator_stub, max_history_size=3)


def test_json_command_is_dispatched(handler, orchestrator_stub):
    assert handler.process_command(json.dumps({'type': 'select_route', 'route_id': 'r1'}))
    command_type, data = orchestrator_stub.commands[0]
    assert command_type == OperatorCommandType.SELECT_ROUTE
    assert data['route_id'] == 'r1'
    assert handler.get_statistics()['commands_processed'] == 1


def test_falsy_route_id_is_dispatched(handler, orchestrator_stub):
    assert handler.process_command({'type': 'select_route', 'route_id': 0})
    command_type, data = orchestrator_stub.commands[0]
    assert command_type == OperatorCommandType.SELECT_ROUTE
    assert data['route_id'] == 0


def test_command_key_alias(handler, orchestrator_stub):
    assert handler.process_command({'command': 'activate_plugin', 'capability_id': 'Cruising&1_0'})
    assert orchestrator_stub.commands[0][0] == OperatorCommandType.TOGGLE_CAPABILITY


@pytest.mark.parametrize('raw', ['{not json', '[1, 2]', {'type': 'warp_speed'}, {'route_id': 'r1'}])
def test_unparseable_commands(handler, orchestrator_stub, raw):
    assert not handler.process_command(raw)
    assert orchestrator_stub.commands == []
    stats = handler.get_statistics()
    assert stats['commands_rejected'] == 1
    assert stats['history_size'] == 0


@pytest.mark.parametrize('raw', [
    {'type': 'select_route'},
    {'type': 'select_widget', 'widget': ''},
    {'type': 'select_route', 'route_id': None},
    {'type': 'toggle_capability', 'capability_id': 'Cruising&1_0', 'activated': 'yes'},
])
def test_invalid_commands_are_kept_in_history(handler, orchestrator_stub, raw):
    assert not handler.process_command(raw)
    assert orchestrator_stub.commands == []
    assert handler.command_history[-1].valid is False
    assert handler.command_history[-1].error_message


def test_refused_command_counts_as_rejected(logger):
    handler = OperatorCommandHandler(logger, RecordingOrchestrator(accept=False))
    assert not handler.process_command({'type': 'toggle_guidance'})
    assert handler.get_statistics()['commands_rejected'] == 1
    assert handler.command_history[-1].processed is False


def test_orchestrator_errors_are_contained(logger):
    class Broken:
        def handle_command(self, command_type, data):
            raise RuntimeError('workflow bug')

    handler = OperatorCommandHandler(logger, Broken())
    assert not handler.process_command({'type': 'reconnect'})
    assert handler.command_history[-1].error_message == 'workflow bug'


def test_without_orchestrator(logger):
    assert not OperatorCommandHandler(logger).process_command({'type': 'reconnect'})


def test_history_is_bounded(handler):
    for _ in range(5):
        handler.process_command({'type': 'toggle_guidance'})
    assert len(handler.command_history) == 3
    assert handler.get_statistics()['last_command_time'] > 0


def test_command_categories():
    assert get_command_category(OperatorCommandType.SELECT_ROUTE) == 'selection'
    assert get_command_category(OperatorCommandType.TOGGLE_GUIDANCE) == 'guidance'
    assert get_command_category(OperatorCommandType.DESELECT_WIDGET) == 'widget'
    assert get_command_category(OperatorCommandType.RECONNECT) == 'connection'
