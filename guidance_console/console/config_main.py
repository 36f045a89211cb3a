"""
Configuration Management for the Guidance Console
"""
from dataclasses import dataclass, field
from typing import List, Optional
import json
import yaml


@dataclass
class TopicsConfig:
    """Topic names on the vehicle bus"""
    system_alert: str = 'system_alert'
    available_plugins: str = 'plugins/available_plugins'
    controlling_plugins: str = 'plugins/controlling_plugins'
    guidance_state: str = 'state'
    active_route: str = 'route'
    route_state: str = 'route_state'
    route_event: str = 'route_event'
    diagnostics: str = '/diagnostics'
    velocity: str = 'velocity'
    driver_discovery: str = 'driver_discovery'
    ui_instructions: str = 'ui_instructions'
    incoming_bsm: str = 'bsm'
    operator_command: str = 'ui/operator_command'


@dataclass
class ServicesConfig:
    """Service names on the vehicle bus"""
    get_available_routes: str = 'get_available_routes'
    set_active_route: str = 'set_active_route'
    start_active_route: str = 'start_active_route'
    get_registered_plugins: str = 'plugins/get_registered_plugins'
    activate_plugin: str = 'plugins/activate_plugin'
    set_guidance_active: str = 'set_guidance_active'
    get_drivers_with_capabilities: str = 'get_drivers_with_capabilities'
    get_system_version: str = 'get_system_version'
    parameter_node: str = '/saxton_cav/ui'


@dataclass
class MessageTypesConfig:
    """ROS interface types used for each topic and service"""
    system_alert: str = 'cav_msgs/msg/SystemAlert'
    plugin_list: str = 'cav_msgs/msg/PluginList'
    active_maneuvers: str = 'cav_msgs/msg/ActiveManeuvers'
    guidance_state: str = 'cav_msgs/msg/GuidanceState'
    route: str = 'cav_msgs/msg/Route'
    route_state: str = 'cav_msgs/msg/RouteState'
    route_event: str = 'cav_msgs/msg/RouteEvent'
    diagnostics: str = 'diagnostic_msgs/msg/DiagnosticArray'
    velocity: str = 'geometry_msgs/msg/TwistStamped'
    driver_status: str = 'cav_msgs/msg/DriverStatus'
    ui_instructions: str = 'cav_msgs/msg/UIInstructions'
    bsm: str = 'cav_msgs/msg/BSM'
    nav_sat_fix: str = 'sensor_msgs/msg/NavSatFix'
    robot_enabled: str = 'cav_msgs/msg/RobotEnabled'
    speed_accel: str = 'cav_msgs/msg/SpeedAccel'
    lateral_control: str = 'cav_msgs/msg/LateralControl'
    float64: str = 'std_msgs/msg/Float64'
    bool_flag: str = 'std_msgs/msg/Bool'
    byte_array: str = 'cav_msgs/msg/ByteArray'
    operator_command: str = 'std_msgs/msg/String'
    get_available_routes: str = 'cav_srvs/srv/GetAvailableRoutes'
    set_active_route: str = 'cav_srvs/srv/SetActiveRoute'
    start_active_route: str = 'cav_srvs/srv/StartActiveRoute'
    get_registered_plugins: str = 'cav_srvs/srv/PluginList'
    activate_plugin: str = 'cav_srvs/srv/PluginActivation'
    set_guidance_active: str = 'cav_srvs/srv/SetGuidanceActive'
    get_drivers_with_capabilities: str = 'cav_srvs/srv/GetDriversWithCapabilities'
    get_system_version: str = 'cav_srvs/srv/GetSystemVersion'
    get_parameters: str = 'rcl_interfaces/srv/GetParameters'


@dataclass
class CapabilitiesConfig:
    """Capability base names resolved to fully qualified topics by the interface manager"""
    nav_sat_fix: str = 'position/nav_sat_fix'
    robot_status: str = 'control/robot_status'
    cmd_speed: str = 'control/cmd_speed'
    lateral_control: str = 'control/cmd_lateral'
    can_engine_speed: str = 'can/engine_speed'
    can_speed: str = 'can/speed'
    acc_engaged: str = 'can/acc_engaged'
    inbound_binary_msg: str = 'comms/inbound_binary_msg'
    outbound_binary_msg: str = 'comms/outbound_binary_msg'


@dataclass
class ReadinessConfig:
    """System READY polling"""
    max_attempts: int = 10
    retry_delay: float = 3.0  # seconds

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must not be negative, got {self.retry_delay}")


@dataclass
class RouteConfig:
    """Route workflow timing"""
    route_info_delay: float = 5.0  # wait for the first current segment before subscribing


@dataclass
class ParamsConfig:
    """Parameters read from the parameter node"""
    host_instructions: str = 'host_instructions'


@dataclass
class SessionConfig:
    """Session store selection"""
    store: str = 'memory'  # "memory" or "file"
    path: str = 'session/guidance_console_session.yaml'

    def __post_init__(self):
        valid_stores = ['memory', 'file']
        if self.store not in valid_stores:
            raise ValueError(f"Invalid session store: {self.store}. Must be one of {valid_stores}")


@dataclass
class UIConfig:
    """Headless view settings"""
    preselected_widgets: List[str] = field(default_factory=list)
    max_log_lines: int = 100


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_dir: str = 'logs'
    log_level: str = 'INFO'
    console_output: bool = True


@dataclass
class GuidanceConsoleConfig:
    """Main configuration container"""
    topics: TopicsConfig = field(default_factory=TopicsConfig)
    services: ServicesConfig = field(default_factory=ServicesConfig)
    message_types: MessageTypesConfig = field(default_factory=MessageTypesConfig)
    capabilities: CapabilitiesConfig = field(default_factory=CapabilitiesConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    route: RouteConfig = field(default_factory=RouteConfig)
    params: ParamsConfig = field(default_factory=ParamsConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'GuidanceConsoleConfig':
        """Create config from dictionary"""
        config_dict = config_dict or {}
        return cls(
            topics=TopicsConfig(**config_dict.get('topics', {})),
            services=ServicesConfig(**config_dict.get('services', {})),
            message_types=MessageTypesConfig(**config_dict.get('message_types', {})),
            capabilities=CapabilitiesConfig(**config_dict.get('capabilities', {})),
            readiness=ReadinessConfig(**config_dict.get('readiness', {})),
            route=RouteConfig(**config_dict.get('route', {})),
            params=ParamsConfig(**config_dict.get('params', {})),
            session=SessionConfig(**config_dict.get('session', {})),
            ui=UIConfig(**config_dict.get('ui', {})),
            logging=LoggingConfig(**config_dict.get('logging', {}))
        )

    @classmethod
    def from_json(cls, filepath: str) -> 'GuidanceConsoleConfig':
        """Load configuration from JSON file"""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def from_yaml(cls, filepath: str) -> 'GuidanceConsoleConfig':
        """Load configuration from YAML file"""
        with open(filepath, 'r') as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def from_file(cls, filepath: str) -> 'GuidanceConsoleConfig':
        """Load configuration choosing the parser from the file extension"""
        if filepath.endswith('.json'):
            return cls.from_json(filepath)
        if filepath.endswith('.yaml') or filepath.endswith('.yml'):
            return cls.from_yaml(filepath)
        raise ValueError(f"Invalid config file format: {filepath}")

    def to_dict(self) -> dict:
        """Convert config to dictionary"""
        return {
            'topics': dict(self.topics.__dict__),
            'services': dict(self.services.__dict__),
            'message_types': dict(self.message_types.__dict__),
            'capabilities': dict(self.capabilities.__dict__),
            'readiness': dict(self.readiness.__dict__),
            'route': dict(self.route.__dict__),
            'params': dict(self.params.__dict__),
            'session': dict(self.session.__dict__),
            'ui': {
                'preselected_widgets': list(self.ui.preselected_widgets),
                'max_log_lines': self.ui.max_log_lines
            },
            'logging': dict(self.logging.__dict__)
        }

    def to_json(self, filepath: str):
        """Save configuration to JSON file"""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_yaml(self, filepath: str):
        """Save configuration to YAML file"""
        with open(filepath, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    def update_from_parameters(self, log_dir: Optional[str] = None,
                               log_level: Optional[str] = None,
                               session_file: Optional[str] = None):
        """Override configuration with node parameters; empty values are ignored"""
        if log_dir and log_dir.strip():
            self.logging.log_dir = log_dir
        if log_level and log_level.strip():
            self.logging.log_level = log_level
        if session_file and session_file.strip():
            self.session.store = 'file'
            self.session.path = session_file
