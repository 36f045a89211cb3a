"""
Guidance Console core

Bus-agnostic guidance engagement workflow: session flags, typed bus
messages, readiness gate, route and capability selection, the engagement
state machine and the orchestrator that sequences them.
"""

from .config_main import GuidanceConsoleConfig
from .logging_utils import ConsoleLogger
from .session_state import InMemorySessionStore, SessionFlags, YamlFileSessionStore
from .bus_gateway import Bus, BusGateway, BusUnavailableError, Subscription
from .messages import MessageDecodeError
from .workflow_orchestrator import WorkflowOrchestrator

__all__ = [
    'GuidanceConsoleConfig', 'ConsoleLogger',
    'InMemorySessionStore', 'SessionFlags', 'YamlFileSessionStore',
    'Bus', 'BusGateway', 'BusUnavailableError', 'Subscription',
    'MessageDecodeError', 'WorkflowOrchestrator',
]
