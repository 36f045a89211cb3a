"""
Operator Command Types

Commands the operator can issue to the headless console. They arrive as
JSON objects on the operator command topic, e.g.
    {"type": "select_route", "route_id": "route_a"}
"""
from enum import Enum


class OperatorCommandType(Enum):
    """Operator intents understood by the console"""

    # Route and capabilities
    SELECT_ROUTE = "select_route"
    TOGGLE_CAPABILITY = "toggle_capability"

    # Guidance
    TOGGLE_GUIDANCE = "toggle_guidance"

    # Widgets
    SELECT_WIDGET = "select_widget"
    DESELECT_WIDGET = "deselect_widget"

    # Connection
    RECONNECT = "reconnect"


# Fields each command must carry
REQUIRED_FIELDS = {
    OperatorCommandType.SELECT_ROUTE: ('route_id',),
    OperatorCommandType.TOGGLE_CAPABILITY: ('capability_id',),
    OperatorCommandType.TOGGLE_GUIDANCE: (),
    OperatorCommandType.SELECT_WIDGET: ('widget',),
    OperatorCommandType.DESELECT_WIDGET: ('widget',),
    OperatorCommandType.RECONNECT: (),
}


def is_widget_command(cmd_type: OperatorCommandType) -> bool:
    """Check if a command changes the widget selection"""
    return cmd_type in [OperatorCommandType.SELECT_WIDGET, OperatorCommandType.DESELECT_WIDGET]


def get_command_category(cmd_type: OperatorCommandType) -> str:
    """Get the category of a command"""
    if cmd_type in [OperatorCommandType.SELECT_ROUTE, OperatorCommandType.TOGGLE_CAPABILITY]:
        return "selection"
    elif cmd_type == OperatorCommandType.TOGGLE_GUIDANCE:
        return "guidance"
    elif is_widget_command(cmd_type):
        return "widget"
    elif cmd_type == OperatorCommandType.RECONNECT:
        return "connection"
    else:
        return "unknown"
