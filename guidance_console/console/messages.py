"""
Bus Message Types - tagged message variants decoded at the bus boundary

Payloads arrive from the bus as plain mappings (ROS messages converted to
dictionaries). Each decoder validates the fields the console depends on and
returns a typed dataclass; downstream code never reads raw payloads.
Missing optional fields are skipped, missing required fields raise
MessageDecodeError.
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional


class MessageDecodeError(ValueError):
    """Raised when a bus payload does not carry the expected fields"""


# === Enumerations ===

class SystemAlertType(IntEnum):
    CAUTION = 1
    WARNING = 2
    FATAL = 3
    NOT_READY = 4
    DRIVERS_READY = 5  # READY
    SHUTDOWN = 6


class GuidanceStateType(IntEnum):
    SHUTDOWN = 0
    STARTUP = 1
    DRIVERS_READY = 2
    ACTIVE = 3
    ENGAGED = 4
    INACTIVE = 5


class RouteEventType(IntEnum):
    ROUTE_LOADED = 0
    ROUTE_SELECTED = 1
    ROUTE_STARTED = 2
    ROUTE_COMPLETED = 3
    LEFT_ROUTE = 4
    ROUTE_ABORTED = 5


class SetActiveRouteError(IntEnum):
    NO_ERROR = 0
    NO_ROUTE = 1


class StartActiveRouteError(IntEnum):
    NO_ERROR = 0
    NO_ACTIVE_ROUTE = 1
    INVALID_STARTING_LOCATION = 2
    ALREADY_FOLLOWING_ROUTE = 3


class UIInstructionType(IntEnum):
    INFO = 0
    ACK_REQUIRED = 1
    NO_ACK_REQUIRED = 2


class DriverStatusType(IntEnum):
    OFF = 0
    OPERATIONAL = 1
    DEGRADED = 2
    FAULT = 3


def classify(enum_cls, raw: int):
    """Map a raw integer onto an enum member, None when unrecognized"""
    try:
        return enum_cls(raw)
    except ValueError:
        return None


def describe_code(enum_cls, raw: int) -> str:
    """Readable name of a code, or the raw code itself when unrecognized"""
    member = classify(enum_cls, raw)
    return member.name if member is not None else str(raw)


# === Field helpers ===

def _require(payload: Mapping[str, Any], name: str, kinds):
    if not isinstance(payload, Mapping):
        raise MessageDecodeError(f"Expected a mapping, got {type(payload).__name__}")
    if name not in payload or payload[name] is None:
        raise MessageDecodeError(f"Missing field '{name}'")
    value = payload[name]
    # bool is an int subclass; reject it where a number is expected
    if kinds in (int, float, (int, float)) and isinstance(value, bool):
        raise MessageDecodeError(f"Field '{name}' has type bool")
    if not isinstance(value, kinds):
        raise MessageDecodeError(f"Field '{name}' has type {type(value).__name__}")
    return value


def _optional(payload: Mapping[str, Any], name: str, default=None):
    value = payload.get(name) if isinstance(payload, Mapping) else None
    return default if value is None else value


# === Topic messages ===

@dataclass
class SystemAlert:
    raw_type: int
    description: str = ''

    @property
    def type(self) -> Optional[SystemAlertType]:
        return classify(SystemAlertType, self.raw_type)


def decode_system_alert(payload: Mapping[str, Any]) -> SystemAlert:
    return SystemAlert(
        raw_type=_require(payload, 'type', int),
        description=str(_optional(payload, 'description', ''))
    )


@dataclass
class GuidanceStateReport:
    raw_state: int
    description: str = ''

    @property
    def state(self) -> Optional[GuidanceStateType]:
        return classify(GuidanceStateType, self.raw_state)


def decode_guidance_state(payload: Mapping[str, Any]) -> GuidanceStateReport:
    return GuidanceStateReport(
        raw_state=_require(payload, 'state', int),
        description=str(_optional(payload, 'description', ''))
    )


@dataclass
class PluginDescriptor:
    name: str
    version: str
    activated: bool = False
    available: bool = False
    required: bool = False


def _decode_plugin(payload: Mapping[str, Any]) -> PluginDescriptor:
    return PluginDescriptor(
        name=_require(payload, 'name', str),
        version=str(_require(payload, 'versionId', (str, int, float))),
        activated=bool(_optional(payload, 'activated', False)),
        available=bool(_optional(payload, 'available', False)),
        required=bool(_optional(payload, 'required', False))
    )


def decode_plugin_list(payload: Optional[Mapping[str, Any]]) -> List[PluginDescriptor]:
    if payload is None:
        return []
    plugins = _optional(payload, 'plugins', [])
    if not isinstance(plugins, list):
        raise MessageDecodeError("Field 'plugins' is not a list")
    return [_decode_plugin(plugin) for plugin in plugins]


@dataclass
class RouteEvent:
    raw_event: int

    @property
    def event(self) -> Optional[RouteEventType]:
        return classify(RouteEventType, self.raw_event)


def decode_route_event(payload: Mapping[str, Any]) -> RouteEvent:
    return RouteEvent(raw_event=_require(payload, 'event', int))


@dataclass
class RouteState:
    route_id: str
    state: int
    cross_track: float = 0.0
    down_track: float = 0.0
    segment_id: Optional[Any] = None
    segment_speed_limit: Optional[float] = None
    lane_index: Optional[int] = None
    lane_count: Optional[int] = None
    required_lane_index: Optional[int] = None


def decode_route_state(payload: Mapping[str, Any]) -> RouteState:
    segment = _optional(payload, 'current_segment', {})
    waypoint = _optional(segment, 'waypoint', {}) if isinstance(segment, Mapping) else {}
    return RouteState(
        route_id=str(_require(payload, 'routeID', (str, int))),
        state=_require(payload, 'state', int),
        cross_track=float(_optional(payload, 'cross_track', 0.0)),
        down_track=float(_optional(payload, 'down_track', 0.0)),
        segment_id=_optional(waypoint, 'waypoint_id'),
        segment_speed_limit=_optional(waypoint, 'speed_limit'),
        lane_index=_optional(payload, 'lane_index'),
        lane_count=_optional(waypoint, 'lane_count'),
        required_lane_index=_optional(waypoint, 'required_lane_index')
    )


@dataclass
class ActiveRoute:
    route_name: str = ''
    segments: List[Dict[str, Any]] = field(default_factory=list)


def decode_active_route(payload: Mapping[str, Any]) -> ActiveRoute:
    segments = _optional(payload, 'segments', [])
    if not isinstance(segments, list):
        raise MessageDecodeError("Field 'segments' is not a list")
    return ActiveRoute(route_name=str(_optional(payload, 'routeName', '')), segments=segments)


@dataclass
class UIInstruction:
    raw_type: int
    msg: str
    response_service: str = ''

    @property
    def type(self) -> Optional[UIInstructionType]:
        return classify(UIInstructionType, self.raw_type)


def decode_ui_instruction(payload: Mapping[str, Any]) -> UIInstruction:
    return UIInstruction(
        raw_type=_require(payload, 'type', int),
        msg=str(_require(payload, 'msg', str)),
        response_service=str(_optional(payload, 'response_service', ''))
    )


@dataclass
class RobotEnabled:
    robot_active: bool
    robot_enabled: bool


def decode_robot_enabled(payload: Mapping[str, Any]) -> RobotEnabled:
    return RobotEnabled(
        robot_active=bool(_require(payload, 'robot_active', (bool, int))),
        robot_enabled=bool(_require(payload, 'robot_enabled', (bool, int)))
    )


# === Service responses ===

@dataclass
class RouteOption:
    route_id: str
    route_name: str
    valid: bool = True


def decode_available_routes(payload: Mapping[str, Any]) -> List[RouteOption]:
    routes = _optional(payload, 'availableRoutes', [])
    if not isinstance(routes, list):
        raise MessageDecodeError("Field 'availableRoutes' is not a list")
    return [
        RouteOption(
            route_id=str(_require(route, 'routeID', (str, int))),
            route_name=_require(route, 'routeName', str),
            valid=bool(_optional(route, 'valid', True))
        )
        for route in routes
    ]


def decode_error_status(payload: Mapping[str, Any]) -> int:
    return _require(payload, 'errorStatus', int)


def decode_plugin_activation(payload: Mapping[str, Any]) -> bool:
    return bool(_require(payload, 'newState', (bool, int)))


def decode_guidance_active(payload: Mapping[str, Any]) -> bool:
    return bool(_require(payload, 'guidance_status', (bool, int)))


def decode_driver_data(payload: Mapping[str, Any]) -> List[str]:
    drivers = _optional(payload, 'driver_data', [])
    if not isinstance(drivers, list):
        raise MessageDecodeError("Field 'driver_data' is not a list")
    return [str(topic) for topic in drivers]


@dataclass
class SystemVersion:
    system_name: str
    revision: str

    def __str__(self) -> str:
        return f"{self.system_name} {self.revision}"


def decode_system_version(payload: Mapping[str, Any]) -> SystemVersion:
    return SystemVersion(
        system_name=str(_require(payload, 'system_name', str)),
        revision=str(_optional(payload, 'revision', ''))
    )


# rcl_interfaces/msg/ParameterType
_PARAMETER_FIELDS = {
    1: 'bool_value',
    2: 'integer_value',
    3: 'double_value',
    4: 'string_value',
    5: 'byte_array_value',
    6: 'bool_array_value',
    7: 'integer_array_value',
    8: 'double_array_value',
    9: 'string_array_value',
}


def decode_parameter_values(payload: Mapping[str, Any], names: List[str]) -> Dict[str, Any]:
    """Pair requested parameter names with their values; unset parameters are skipped"""
    values = _optional(payload, 'values', [])
    if not isinstance(values, list):
        raise MessageDecodeError("Field 'values' is not a list")
    result = {}
    for name, value in zip(names, values):
        field_name = _PARAMETER_FIELDS.get(_optional(value, 'type', 0))
        if field_name is None:
            continue
        result[name] = _optional(value, field_name)
    return result
