"""
Console View - the operator-facing projection of the guidance workflow

The workflow never renders anything itself; it drives a ConsoleView.
LoggingConsoleView is the headless implementation used by the ROS node: it
keeps the current projection in memory and writes every change to the
console log.
"""
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, Iterable, List, Optional

from .capability import Capability
from .logging_utils import ConsoleLogger
from .messages import RouteOption
from .StateMachine.guidance_state import GuidanceButtonState


# Status tables
TABLE_SYSTEM_STATUS = 'system_status'
TABLE_ROUTE = 'route'
TABLE_DRIVERS = 'drivers'
TABLE_TELEMETRY = 'telemetry'


class ConsoleView(ABC):
    """UI boundary consumed by the workflow components"""

    # Messages
    @abstractmethod
    def show_message(self, text: str):
        """Replace the workflow message area"""

    @abstractmethod
    def append_message(self, text: str):
        """Add a line to the workflow message area"""

    @abstractmethod
    def show_connection_status(self, text: str):
        pass

    # Routes
    @abstractmethod
    def show_route_options(self, routes: List[RouteOption]):
        pass

    @abstractmethod
    def hide_route_options(self):
        pass

    @abstractmethod
    def set_route_selected(self, route_id: str, selected: bool):
        pass

    # Capabilities
    @abstractmethod
    def show_capability_view(self, route_name: str):
        pass

    @abstractmethod
    def show_capabilities(self, capabilities: List[Capability]):
        pass

    @abstractmethod
    def set_capability_checked(self, capability_id: str, checked: bool):
        pass

    @abstractmethod
    def set_capability_available(self, capability_id: str, available: Optional[bool]):
        """Mark availability; None resets the marker to plain 'selected'"""

    # Widgets
    @abstractmethod
    def count_selected_widgets(self) -> int:
        pass

    @abstractmethod
    def select_widget(self, name: str):
        pass

    @abstractmethod
    def deselect_widget(self, name: str):
        pass

    @abstractmethod
    def activate_widget_capability(self, capability_id: str, title: str, activated: bool):
        pass

    @abstractmethod
    def show_widget_options(self):
        pass

    @abstractmethod
    def load_widgets(self):
        pass

    # Guidance
    @abstractmethod
    def set_guidance_button(self, state: GuidanceButtonState):
        pass

    @abstractmethod
    def show_manual_control_notice(self, message: str, redirect: bool):
        """Blocking notice asking the operator to take manual control"""

    @abstractmethod
    def play_alert_sound(self):
        pass

    # Status and logs
    @abstractmethod
    def update_status(self, table: str, label: str, value):
        pass

    @abstractmethod
    def show_route_info(self, text: str):
        pass

    @abstractmethod
    def show_instruction(self, text: str, acknowledge_service: str = ''):
        pass


class LoggingConsoleView(ConsoleView):
    """Headless view: keeps the projection in memory and logs every change"""

    def __init__(self, logger: ConsoleLogger, preselected_widgets: Iterable[str] = (),
                 max_log_lines: int = 100):
        self.logger = logger
        self.messages = deque(maxlen=max_log_lines)
        self.connection_status = ''
        self.route_options: List[RouteOption] = []
        self.selected_route_id: Optional[str] = None
        self.capabilities: Dict[str, Capability] = {}
        self.checked: Dict[str, bool] = {}
        self.availability: Dict[str, Optional[bool]] = {}
        self.widget_capabilities: Dict[str, str] = {}
        self.selected_widgets = set(preselected_widgets)
        self.button_state = GuidanceButtonState.DISABLED
        self.status: Dict[str, Dict[str, object]] = {}
        self.route_info = ''
        self.notice: Optional[str] = None

    def show_message(self, text: str):
        self.messages.clear()
        self.messages.append(text)
        self.logger.logger.info(f"[MSG] {text}")

    def append_message(self, text: str):
        self.messages.append(text)
        self.logger.logger.info(f"[MSG] {text}")

    def show_connection_status(self, text: str):
        self.connection_status = text
        self.logger.logger.info(f"[CONN] {text}")

    def show_route_options(self, routes: List[RouteOption]):
        self.route_options = list(routes)
        for route in routes:
            self.logger.logger.info(f"Route option: {route.route_id} - {route.route_name}")

    def hide_route_options(self):
        self.route_options = []

    def set_route_selected(self, route_id: str, selected: bool):
        if selected:
            self.selected_route_id = route_id
        elif self.selected_route_id == route_id:
            self.selected_route_id = None

    def show_capability_view(self, route_name: str):
        self.logger.logger.info(f"Capabilities for route: {route_name}")

    def show_capabilities(self, capabilities: List[Capability]):
        self.capabilities = {capability.id: capability for capability in capabilities}
        self.checked = {capability.id: capability.is_activated for capability in capabilities}
        self.availability = {}
        for capability in capabilities:
            marker = '[x]' if capability.is_activated else '[ ]'
            required = ' (required)' if capability.is_required else ''
            self.logger.logger.info(f"{marker} {capability.display_name}{required}")

    def set_capability_checked(self, capability_id: str, checked: bool):
        self.checked[capability_id] = checked
        self.logger.logger.debug(f"Capability {capability_id} checked={checked}")

    def set_capability_available(self, capability_id: str, available: Optional[bool]):
        self.availability[capability_id] = available

    def count_selected_widgets(self) -> int:
        return len(self.selected_widgets)

    def select_widget(self, name: str):
        self.selected_widgets.add(name)

    def deselect_widget(self, name: str):
        self.selected_widgets.discard(name)

    def activate_widget_capability(self, capability_id: str, title: str, activated: bool):
        if activated:
            self.widget_capabilities[capability_id] = title
        else:
            self.widget_capabilities.pop(capability_id, None)

    def show_widget_options(self):
        self.logger.logger.info(f"Widget options for: {sorted(self.widget_capabilities.values())}")

    def load_widgets(self):
        self.logger.logger.info(f"Loading widgets: {sorted(self.selected_widgets)}")

    def set_guidance_button(self, state: GuidanceButtonState):
        self.button_state = state
        self.logger.logger.info(f"[BTN] CAV Guidance - {state.name}")

    def show_manual_control_notice(self, message: str, redirect: bool):
        self.notice = message
        self.logger.log_warning(f"[STOP] {message}")

    def play_alert_sound(self):
        self.logger.log_warning("[!] Guidance alert")

    def update_status(self, table: str, label: str, value):
        self.status.setdefault(table, {})[label] = value
        self.logger.logger.debug(f"{table}: {label} = {value}")

    def show_route_info(self, text: str):
        self.route_info = text

    def show_instruction(self, text: str, acknowledge_service: str = ''):
        suffix = f" (acknowledge via {acknowledge_service})" if acknowledge_service else ''
        self.logger.logger.info(f"[INSTR] {text}{suffix}")
