"""
Shared fixtures: an in-memory bus driven by the test and a recording view
"""
from concurrent.futures import Future

import pytest

from guidance_console.console.bus_gateway import Bus, BusGateway, Subscription
from guidance_console.console.config_main import GuidanceConsoleConfig
from guidance_console.console.console_view import ConsoleView
from guidance_console.console.logging_utils import ConsoleLogger
from guidance_console.console.session_state import InMemorySessionStore, SessionFlags
from guidance_console.console.workflow_orchestrator import WorkflowOrchestrator


class FakeSubscription(Subscription):

    def __init__(self, topic, message_type, callback):
        self.topic = topic
        self.message_type = message_type
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        self.active = False


class FakeCall:

    def __init__(self, service, service_type, request):
        self.service = service
        self.service_type = service_type
        self.request = request
        self.future = Future()


class FakeBus(Bus):
    """Single-threaded bus: the test publishes, answers calls and fires timers"""

    def __init__(self):
        self.subscriptions = []
        self.calls = []
        self.scheduled = []

    def subscribe(self, topic, message_type, callback):
        subscription = FakeSubscription(topic, message_type, callback)
        self.subscriptions.append(subscription)
        return subscription

    def call_service(self, service, service_type, request):
        call = FakeCall(service, service_type, request)
        self.calls.append(call)
        return call.future

    def schedule(self, delay, callback):
        self.scheduled.append((delay, callback))

    # === Test helpers ===

    def publish(self, topic, payload):
        for subscription in list(self.subscriptions):
            if subscription.active and subscription.topic == topic:
                subscription.callback(payload)

    def active_subscriptions(self, topic):
        return [s for s in self.subscriptions if s.active and s.topic == topic]

    def calls_to(self, service):
        return [call for call in self.calls if call.service == service]

    def pending(self, service):
        return [call for call in self.calls_to(service) if not call.future.done()]

    def respond(self, service, payload):
        """Answer the oldest pending call to service"""
        pending = self.pending(service)
        assert pending, f"no pending call to {service}"
        pending[0].future.set_result(payload)
        return pending[0]

    def fail(self, service, exception):
        pending = self.pending(service)
        assert pending, f"no pending call to {service}"
        pending[0].future.set_exception(exception)
        return pending[0]

    def run_scheduled(self):
        """Fire every timer scheduled so far; returns how many fired"""
        due, self.scheduled = self.scheduled, []
        for _, callback in due:
            callback()
        return len(due)


class RecordingView(ConsoleView):
    """Records every projection for assertions"""

    def __init__(self, widgets=('speedometer',)):
        self.messages = []
        self.connection_status = []
        self.route_options = None
        self.route_selection = {}
        self.capability_views = []
        self.capabilities = []
        self.checked = {}
        self.checked_history = []
        self.availability = {}
        self.widgets = set(widgets)
        self.widget_capabilities = {}
        self.widget_options_shown = 0
        self.widgets_loaded = 0
        self.button_states = []
        self.notices = []
        self.sounds = 0
        self.status = {}
        self.route_info = []
        self.instructions = []

    @property
    def message(self):
        return self.messages[-1] if self.messages else ''

    @property
    def button(self):
        return self.button_states[-1] if self.button_states else None

    def show_message(self, text):
        self.messages.append(text)

    def append_message(self, text):
        self.messages.append(text)

    def show_connection_status(self, text):
        self.connection_status.append(text)

    def show_route_options(self, routes):
        self.route_options = list(routes)

    def hide_route_options(self):
        self.route_options = None

    def set_route_selected(self, route_id, selected):
        self.route_selection[route_id] = selected

    def show_capability_view(self, route_name):
        self.capability_views.append(route_name)

    def show_capabilities(self, capabilities):
        self.capabilities = list(capabilities)
        self.checked = {c.id: c.is_activated for c in capabilities}

    def set_capability_checked(self, capability_id, checked):
        self.checked[capability_id] = checked
        self.checked_history.append((capability_id, checked))

    def set_capability_available(self, capability_id, available):
        self.availability[capability_id] = available

    def count_selected_widgets(self):
        return len(self.widgets)

    def select_widget(self, name):
        self.widgets.add(name)

    def deselect_widget(self, name):
        self.widgets.discard(name)

    def activate_widget_capability(self, capability_id, title, activated):
        self.widget_capabilities[capability_id] = activated

    def show_widget_options(self):
        self.widget_options_shown += 1

    def load_widgets(self):
        self.widgets_loaded += 1

    def set_guidance_button(self, state):
        self.button_states.append(state)

    def show_manual_control_notice(self, message, redirect):
        self.notices.append((message, redirect))

    def play_alert_sound(self):
        self.sounds += 1

    def update_status(self, table, label, value):
        self.status.setdefault(table, {})[label] = value

    def show_route_info(self, text):
        self.route_info.append(text)

    def show_instruction(self, text, acknowledge_service=''):
        self.instructions.append((text, acknowledge_service))


# === Payload builders ===

def plugin(name, version, activated=False, required=False, available=False):
    return {
        'name': name,
        'versionId': version,
        'activated': activated,
        'required': required,
        'available': available
    }


def routes_payload(*routes):
    return {'availableRoutes': [{'routeID': rid, 'routeName': name, 'valid': True} for rid, name in routes]}


# === Fixtures ===

@pytest.fixture
def config():
    return GuidanceConsoleConfig()


@pytest.fixture
def logger(tmp_path):
    console_logger = ConsoleLogger(name='test_console', log_dir=str(tmp_path / 'logs'),
                                   log_level='DEBUG', console_output=False)
    yield console_logger
    console_logger.close()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def session(store):
    clock = {'now': 1000.0}
    flags = SessionFlags(store, clock=lambda: clock['now'])
    flags.clock = clock
    return flags


@pytest.fixture
def bus():
    return FakeBus()


@pytest.fixture
def gateway(bus, config, logger):
    return BusGateway(bus, config, logger)


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def orchestrator(gateway, session, view, logger, config):
    return WorkflowOrchestrator(gateway, session, view, logger, config)
