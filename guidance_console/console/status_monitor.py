"""
Status Monitor - system status, route info and telemetry views

Telemetry streams published by drivers are located through the capability
resolution service; a capability nobody provides is skipped. Every stream is
set up at most once, so the monitor can be re-entered on every reconnect.
"""
from concurrent.futures import Future
from typing import Any, Callable, Dict, Mapping, Optional, Set

from .bus_gateway import BusGateway, Subscription
from .config_main import GuidanceConsoleConfig
from .console_view import (ConsoleView, TABLE_DRIVERS, TABLE_ROUTE, TABLE_SYSTEM_STATUS,
                           TABLE_TELEMETRY)
from .logging_utils import ConsoleLogger
from .messages import (ActiveRoute, DriverStatusType, RouteEvent, RouteEventType, RouteState,
                       UIInstruction, UIInstructionType, decode_robot_enabled, describe_code)
from .session_state import SessionFlags, format_elapsed


METER_TO_MPH = 2.23694
MANUAL_CONTROL = 'PLEASE TAKE MANUAL CONTROL OF THE VEHICLE.'

# Lane change commands rendered as direction markers
INSTRUCTION_MARKERS = {
    'LEFT_LANE_CHANGE': '<',
    'RIGHT_LANE_CHANGE': '>',
}


def _field(message: Mapping[str, Any], *path, default=None):
    """Walk nested message fields; missing fields give default"""
    value = message
    for name in path:
        if not isinstance(value, Mapping) or value.get(name) is None:
            return default
        value = value[name]
    return value


def _to_mph(speed) -> int:
    return round(float(speed) * METER_TO_MPH)


class StatusMonitor:
    """Status/logs, route info and telemetry subscriptions"""

    def __init__(self, gateway: BusGateway, session: SessionFlags, view: ConsoleView,
                 logger: ConsoleLogger, config: GuidanceConsoleConfig,
                 on_host_instructions: Optional[Callable[[str], None]] = None):
        self.gateway = gateway
        self.session = session
        self.view = view
        self.logger = logger
        self.config = config
        self.on_host_instructions = on_host_instructions

        self.streams: Dict[str, Subscription] = {}
        self._requested: Set[str] = set()
        self.route_info_scheduled = False
        self.system_version = ''
        self.bsm_count = 0

    # === Stream bookkeeping ===

    def _subscribe_once(self, key: str, topic: str, message_type: str, handler, decoder=None):
        if key in self.streams:
            return
        self.streams[key] = self.gateway.subscribe_raw(topic, message_type, handler, decoder)

    def _resolve_once(self, key: str, capabilities, on_resolved: Callable[[Dict[str, str]], None]):
        """Resolve capability topics once per key; nothing is set up when none resolve"""
        if key in self._requested:
            return
        self._requested.add(key)

        def _done(future: Future):
            try:
                resolved = future.result()
            except Exception as e:
                self.logger.log_error(f"Resolving capabilities for {key} failed", e)
                self._requested.discard(key)
                return
            if not resolved:
                self.logger.logger.info(f"No driver provides {list(capabilities)}; skipping {key}")
                return
            on_resolved(resolved)

        self.gateway.resolve_capability_topics(list(capabilities)).add_done_callback(_done)

    def unsubscribe_all(self):
        for subscription in self.streams.values():
            subscription.unsubscribe()
        self.streams.clear()
        self._requested.clear()

    # === Status and logs ===

    def show_status_and_logs(self):
        """Set up every status view; already running streams are left alone"""
        self._load_parameters()
        self._show_system_version()
        self._show_nav_sat_fix()
        self._show_speed_accel()
        self._show_can_speeds()
        self._show_acc_engaged()
        self._show_lateral_control()
        self._show_comm_status()

        types = self.config.message_types
        topics = self.config.topics
        self._subscribe_once('velocity', topics.velocity, types.velocity, self._on_velocity)
        self._subscribe_once('diagnostics', topics.diagnostics, types.diagnostics, self._on_diagnostics)
        self._subscribe_once('driver_discovery', topics.driver_discovery, types.driver_status,
                             self._on_driver_status)
        self._subscribe_once('controlling_plugins', topics.controlling_plugins, types.active_maneuvers,
                             self._on_controlling_plugins)
        self._subscribe_once('incoming_bsm', topics.incoming_bsm, types.bsm, self._on_bsm)
        if 'ui_instructions' not in self.streams:
            self.streams['ui_instructions'] = self.gateway.subscribe_ui_instructions(self.on_ui_instruction)

    def _load_parameters(self):
        if 'parameters' in self._requested:
            return
        self._requested.add('parameters')
        name = self.config.params.host_instructions

        def _done(future: Future):
            try:
                values = future.result()
            except Exception as e:
                self.logger.log_error("Reading parameters failed", e)
                return
            host_instructions = values.get(name)
            if host_instructions:
                self.logger.logger.info(f"Host instructions: {host_instructions}")
                if self.on_host_instructions:
                    self.on_host_instructions(str(host_instructions))

        self.gateway.get_parameters([name]).add_done_callback(_done)

    def _show_system_version(self):
        if 'system_version' in self._requested:
            return
        self._requested.add('system_version')

        def _done(future: Future):
            try:
                version = future.result()
            except Exception as e:
                self.logger.log_error("Reading system version failed", e)
                return
            self.system_version = str(version)
            self.view.update_status(TABLE_SYSTEM_STATUS, 'System Version', self.system_version)

        self.gateway.get_system_version().add_done_callback(_done)

    def _show_nav_sat_fix(self):
        capability = self.config.capabilities.nav_sat_fix
        self._resolve_once('nav_sat_fix', [capability], lambda resolved: self._subscribe_once(
            'nav_sat_fix', resolved[capability], self.config.message_types.nav_sat_fix, self._on_nav_sat_fix))

    def _show_speed_accel(self):
        capability = self.config.capabilities.cmd_speed
        self._resolve_once('cmd_speed', [capability], lambda resolved: self._subscribe_once(
            'cmd_speed', resolved[capability], self.config.message_types.speed_accel, self._on_speed_accel))

    def _show_can_speeds(self):
        engine_speed = self.config.capabilities.can_engine_speed
        speed = self.config.capabilities.can_speed
        float64 = self.config.message_types.float64

        def _setup(resolved: Dict[str, str]):
            if engine_speed in resolved:
                self._subscribe_once('can_engine_speed', resolved[engine_speed], float64,
                                     lambda m: self.view.update_status(TABLE_TELEMETRY, 'CAN Engine Speed',
                                                                       _field(m, 'data')))
            if speed in resolved:
                self._subscribe_once('can_speed', resolved[speed], float64, self._on_can_speed)

        self._resolve_once('can_speeds', [engine_speed, speed], _setup)

    def _show_acc_engaged(self):
        capability = self.config.capabilities.acc_engaged
        self._resolve_once('acc_engaged', [capability], lambda resolved: self._subscribe_once(
            'acc_engaged', resolved[capability], self.config.message_types.bool_flag,
            lambda m: self.view.update_status(TABLE_TELEMETRY, 'ACC Engaged', _field(m, 'data'))))

    def _show_lateral_control(self):
        capability = self.config.capabilities.lateral_control
        self._resolve_once('lateral_control', [capability], lambda resolved: self._subscribe_once(
            'lateral_control', resolved[capability], self.config.message_types.lateral_control,
            self._on_lateral_control))

    def _show_comm_status(self):
        inbound = self.config.capabilities.inbound_binary_msg
        outbound = self.config.capabilities.outbound_binary_msg
        byte_array = self.config.message_types.byte_array

        def _setup(resolved: Dict[str, str]):
            if outbound in resolved:
                self._subscribe_once('outbound_binary_msg', resolved[outbound], byte_array,
                                     lambda m: self.view.update_status(TABLE_TELEMETRY, 'Comms Outbound', True))
            if inbound in resolved:
                self._subscribe_once('inbound_binary_msg', resolved[inbound], byte_array,
                                     lambda m: self.view.update_status(TABLE_TELEMETRY, 'Comms Inbound', True))

        self._resolve_once('comm_status', [inbound, outbound], _setup)

    # === Telemetry handlers ===

    def _on_nav_sat_fix(self, message: Mapping[str, Any]):
        latitude = _field(message, 'latitude')
        longitude = _field(message, 'longitude')
        if latitude is None or longitude is None:
            return
        self.view.update_status(TABLE_TELEMETRY, 'NavSatStatus', _field(message, 'status', 'status'))
        self.view.update_status(TABLE_TELEMETRY, 'Latitude', f"{latitude:.6f}")
        self.view.update_status(TABLE_TELEMETRY, 'Longitude', f"{longitude:.6f}")
        self.view.update_status(TABLE_TELEMETRY, 'Altitude', f"{_field(message, 'altitude', default=0.0):.6f}")

    def _on_speed_accel(self, message: Mapping[str, Any]):
        speed = _field(message, 'speed')
        if speed is None:
            return
        self.view.update_status(TABLE_TELEMETRY, 'Cmd Speed (m/s)', f"{speed:.2f}")
        self.view.update_status(TABLE_TELEMETRY, 'Cmd Speed (MPH)', _to_mph(speed))
        max_accel = _field(message, 'max_accel')
        if max_accel is not None:
            self.view.update_status(TABLE_TELEMETRY, 'Max Accel', f"{max_accel:.2f}")

    def _on_can_speed(self, message: Mapping[str, Any]):
        speed = _field(message, 'data')
        if speed is None:
            return
        self.view.update_status(TABLE_TELEMETRY, 'CAN Speed (m/s)', speed)
        self.view.update_status(TABLE_TELEMETRY, 'CAN Speed (MPH)', _to_mph(speed))

    def _on_velocity(self, message: Mapping[str, Any]):
        velocity = _field(message, 'twist', 'linear', 'x')
        if velocity is None:
            return
        self.view.update_status(TABLE_TELEMETRY, 'SF Velocity (m/s)', velocity)
        self.view.update_status(TABLE_TELEMETRY, 'SF Velocity (MPH)', _to_mph(velocity))

    def _on_lateral_control(self, message: Mapping[str, Any]):
        self.view.update_status(TABLE_TELEMETRY, 'Lateral Axle Angle', _field(message, 'axle_angle'))
        self.view.update_status(TABLE_TELEMETRY, 'Lateral Max Axle Angle Rate',
                                _field(message, 'max_axle_angle_rate'))
        self.view.update_status(TABLE_TELEMETRY, 'Lateral Max Accel', _field(message, 'max_accel'))

    def _on_diagnostics(self, message: Mapping[str, Any]):
        for status in _field(message, 'status', default=[]):
            self.view.update_status(TABLE_SYSTEM_STATUS, 'Diagnostic Name', _field(status, 'name'))
            self.view.update_status(TABLE_SYSTEM_STATUS, 'Diagnostic Message', _field(status, 'message'))
            self.view.update_status(TABLE_SYSTEM_STATUS, 'Diagnostic Hardware ID', _field(status, 'hardware_id'))
            for value in _field(status, 'values', default=[]):
                if _field(value, 'key') == 'Primed':
                    self.view.update_status(TABLE_TELEMETRY, 'Primed', _field(value, 'value') == 'True')

    def _on_driver_status(self, message: Mapping[str, Any]):
        if not _field(message, 'position', default=False):
            return
        self.view.update_status(TABLE_DRIVERS, 'Position Driver',
                                describe_code(DriverStatusType, _field(message, 'status', default=-1)))

    def _on_controlling_plugins(self, message: Mapping[str, Any]):
        self.view.update_status(TABLE_TELEMETRY, 'Lon Plugin', _field(message, 'longitudinal_plugin', default=''))
        self.view.update_status(TABLE_TELEMETRY, 'Lon Maneuver', _field(message, 'longitudinal_maneuver'))
        self.view.update_status(TABLE_TELEMETRY, 'Lat Plugin', _field(message, 'lateral_plugin', default=''))
        self.view.update_status(TABLE_TELEMETRY, 'Lat Maneuver', _field(message, 'lateral_maneuver'))

    def _on_bsm(self, message: Mapping[str, Any]):
        self.bsm_count += 1
        self.view.update_status(TABLE_TELEMETRY, 'Incoming BSM', self.bsm_count)

    # === UI instructions ===

    def on_ui_instruction(self, instruction: UIInstruction):
        if instruction.type == UIInstructionType.INFO:
            self.view.show_message(instruction.msg)
            return

        text = INSTRUCTION_MARKERS.get(instruction.msg, instruction.msg)
        if instruction.type == UIInstructionType.ACK_REQUIRED:
            self.view.show_instruction(text, instruction.response_service)
        else:
            self.view.show_instruction(text)

    # === Robot enabled ===

    def start_robot_enabled_monitoring(self):
        capability = self.config.capabilities.robot_status
        self._resolve_once('robot_status', [capability], lambda resolved: self._subscribe_once(
            'robot_status', resolved[capability], self.config.message_types.robot_enabled,
            self._on_robot_enabled, decode_robot_enabled))

    def _on_robot_enabled(self, status):
        self.view.update_status(TABLE_TELEMETRY, 'Robot Active', status.robot_active)
        self.view.update_status(TABLE_TELEMETRY, 'Robot Enabled', status.robot_enabled)

    # === Route ===

    def show_active_route(self):
        if 'active_route' not in self.streams:
            self.streams['active_route'] = self.gateway.subscribe_active_route(self._on_active_route)

    def _on_active_route(self, route: ActiveRoute):
        if not self.session.has_selected_route:
            return
        if not route.segments:
            self.view.append_message('There were no segments found the active route.')
            return
        self.view.update_status(TABLE_ROUTE, 'Route Segments', len(route.segments))

    def check_route_info(self):
        """Subscribe to route events and state; the first call waits for the current segment"""
        if 'route_state' in self.streams or self.route_info_scheduled:
            return
        self.route_info_scheduled = True
        self.gateway.schedule(self.config.route.route_info_delay, self._subscribe_route_info)

    def _subscribe_route_info(self):
        if 'route_event' not in self.streams:
            self.streams['route_event'] = self.gateway.subscribe_route_event(self.on_route_event)
        if 'route_state' not in self.streams:
            self.streams['route_state'] = self.gateway.subscribe_route_state(self.on_route_state)

    def on_route_event(self, event: RouteEvent):
        self.view.update_status(TABLE_ROUTE, 'Route Event', describe_code(RouteEventType, event.raw_event))

        if event.event == RouteEventType.ROUTE_COMPLETED:
            self.logger.logger.info("[OK] Route completed")
            self.view.show_manual_control_notice(f"ROUTE COMPLETED. {MANUAL_CONTROL}", redirect=True)
        elif event.event == RouteEventType.LEFT_ROUTE:
            self.logger.log_warning("[!] Vehicle left the route")
            self.view.show_manual_control_notice(f"You have LEFT THE ROUTE. {MANUAL_CONTROL}", redirect=True)

    def on_route_state(self, state: RouteState):
        self.view.update_status(TABLE_ROUTE, 'Route ID', state.route_id)
        self.view.update_status(TABLE_ROUTE, 'Route State', state.state)
        self.view.update_status(TABLE_ROUTE, 'Cross Track / Down Track',
                                f"{state.cross_track:.2f} / {state.down_track:.2f}")
        self.view.update_status(TABLE_ROUTE, 'Current Segment ID', state.segment_id)
        self.view.update_status(TABLE_ROUTE, 'Current Segment Max Speed', state.segment_speed_limit)
        if state.lane_index is not None:
            self.view.update_status(TABLE_ROUTE, 'Lane Index', state.lane_index)
        if state.lane_count is not None:
            self.view.update_status(TABLE_ROUTE, 'Current Segment Lane Count', state.lane_count)
            self.view.update_status(TABLE_ROUTE, 'Current Segment Req Lane', state.required_lane_index)

        self.view.show_route_info(self.route_info_line())

    def route_info_line(self) -> str:
        return f"{self.session.selected_route_name} : {format_elapsed(self.session.engaged_elapsed())}"
