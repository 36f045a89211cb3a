"""
Workflow Orchestrator - sequences the guidance engagement workflow

evaluate_next_step() is the single re-entrant decision point, called on the
first connection and on every reconnect. It resumes from the persisted
session flags instead of restarting:

1. system not ready          -> readiness gate polling
2. no route selected         -> route listing and status views
3. route already selected    -> capability view, active route and status
                                subscriptions, precondition re-evaluation

FATAL/SHUTDOWN system alerts and a guidance SHUTDOWN halt the workflow for
good; transport failures only raise the manual-control notice, the workflow
resumes on the next connection.
"""
from typing import Any, Dict, Optional

from .bus_gateway import BusGateway
from .command_types import OperatorCommandType
from .config_main import GuidanceConsoleConfig
from .console_view import ConsoleView
from .logging_utils import ConsoleLogger
from .readiness_gate import MANUAL_CONTROL, ReadinessGate
from .route_selector import RouteAndCapabilitySelector, RouteLifecycle
from .session_state import SessionFlags
from .status_monitor import StatusMonitor
from .StateMachine import GuidanceEngagementStateMachine


class WorkflowOrchestrator:
    """Wires the workflow components together and drives them"""

    def __init__(self, gateway: BusGateway, session: SessionFlags, view: ConsoleView,
                 logger: ConsoleLogger, config: GuidanceConsoleConfig):
        self.gateway = gateway
        self.session = session
        self.view = view
        self.logger = logger
        self.config = config

        self.halted = False
        self.halt_reason: Optional[str] = None
        self.connected = False

        self.gate = ReadinessGate(
            gateway, session, view, logger, config.readiness,
            on_ready=self.evaluate_next_step,
            on_terminal=self._halt
        )
        self.selector = RouteAndCapabilitySelector(
            gateway, session, view, logger,
            on_route_active=self._on_route_active,
            on_route_selected=self._on_route_selected,
            on_capabilities_changed=self._on_capabilities_changed
        )
        self.state_machine = GuidanceEngagementStateMachine(
            gateway, session, view, logger,
            count_active_capabilities=self.selector.count_active_capabilities,
            on_activated=self._on_guidance_activated,
            on_disengaged=self._on_guidance_disengaged,
            on_shutdown=self._on_guidance_shutdown
        )
        self.status_monitor = StatusMonitor(
            gateway, session, view, logger, config,
            on_host_instructions=self._on_host_instructions
        )

    # === Connection lifecycle ===

    def on_connected(self):
        self.connected = True
        self.view.show_connection_status('Connected')
        self.logger.log_bus_event("connected")

        if self.halted:
            self.view.show_manual_control_notice(self.halt_reason, redirect=False)
            return

        self.gate.subscribe()
        self.evaluate_next_step()

    def on_connection_error(self, error: Optional[Exception] = None):
        self.connected = False
        self.view.show_connection_status('Error in connection')
        if error is not None:
            self.logger.log_error("Bus connection error", error)
        else:
            self.logger.log_error("Bus connection error")
        self.view.show_message('Sorry, unable to connect to the vehicle bus, please try again '
                               'or contact your System Admin.')
        self.view.show_manual_control_notice(f"Bus connection error. {MANUAL_CONTROL}", redirect=False)

    def on_connection_closed(self):
        self.connected = False
        self.view.show_connection_status('Connection closed')
        self.logger.log_bus_event("closed")
        self.view.show_manual_control_notice(f"Bus connection closed. {MANUAL_CONTROL}", redirect=False)

    def shutdown(self):
        """Drop every bus subscription; the session flags are left as they are"""
        self.gate.unsubscribe()
        self.selector.stop_availability_monitoring()
        if self.state_machine.guidance_subscription is not None:
            self.state_machine.guidance_subscription.unsubscribe()
            self.state_machine.guidance_subscription = None
        self.status_monitor.unsubscribe_all()
        self.logger.log_bus_event("shutdown")

    # === Decision point ===

    def evaluate_next_step(self):
        if self.halted:
            self.logger.logger.info("Workflow halted; not evaluating next step")
            return

        if not self.session.system_alert_ready:
            self.gate.wait_for_ready()
            return

        if not self.session.has_selected_route:
            if self.selector.lifecycle == RouteLifecycle.NO_ROUTE:
                self.selector.list_routes()
            self.status_monitor.show_status_and_logs()
            return

        # Resume with the persisted route
        self.selector.mark_route_active()
        self.show_capability_view()
        self.status_monitor.show_active_route()
        self.status_monitor.show_status_and_logs()
        self.state_machine.enable_guidance()
        if self.session.guidance_active:
            self._on_guidance_activated()

    def show_capability_view(self):
        route_name = self.session.selected_route_name
        self.view.hide_route_options()
        self.view.show_capability_view(route_name)
        self.view.show_message(f'Selected route is "{route_name}".')
        self.status_monitor.check_route_info()
        self.selector.show_capabilities()

    # === Component callbacks ===

    def _on_route_selected(self):
        self.status_monitor.show_active_route()

    def _on_route_active(self, route_name: str):
        self.logger.logger.info(f"[OK] Following route: {route_name}")
        self.show_capability_view()

    def _on_capabilities_changed(self):
        self.state_machine.enable_guidance()

    def _reevaluate_guidance(self):
        if self.session.has_selected_route:
            self.state_machine.enable_guidance()

    def _on_guidance_activated(self):
        self.selector.start_availability_monitoring()
        self.status_monitor.start_robot_enabled_monitoring()

    def _on_guidance_disengaged(self):
        # Disengage ends the session: a restart starts over from readiness
        self.selector.stop_availability_monitoring()
        self.session.remove_all()
        self.logger.logger.info("Session flags cleared after disengage")

    def _on_guidance_shutdown(self, message: str):
        self.gate.stop()
        self._halt(message)

    def _on_host_instructions(self, instructions: str):
        self.state_machine.host_instructions = instructions

    def _halt(self, reason: str):
        if not self.halted:
            self.logger.log_warning(f"[STOP] Workflow halted: {reason}")
        self.halted = True
        self.halt_reason = reason

    # === Operator commands ===

    def handle_command(self, command_type: OperatorCommandType, data: Dict[str, Any]) -> bool:
        """Apply an operator command; returns True when it was accepted"""
        if command_type == OperatorCommandType.RECONNECT:
            self.on_connected()
            return True

        if self.halted:
            self.logger.log_warning(f"[!] Ignoring {command_type.value}: workflow halted")
            return False

        if command_type == OperatorCommandType.SELECT_ROUTE:
            return self.selector.select_route(str(data['route_id']))

        if command_type == OperatorCommandType.TOGGLE_CAPABILITY:
            return self.selector.toggle_capability(str(data['capability_id']), data.get('activated'))

        if command_type == OperatorCommandType.TOGGLE_GUIDANCE:
            return self.state_machine.toggle_guidance()

        if command_type == OperatorCommandType.SELECT_WIDGET:
            self.view.select_widget(str(data['widget']))
            self._reevaluate_guidance()
            return True

        if command_type == OperatorCommandType.DESELECT_WIDGET:
            self.view.deselect_widget(str(data['widget']))
            self._reevaluate_guidance()
            return True

        return False
