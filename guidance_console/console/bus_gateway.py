"""
Bus Gateway - typed access to the vehicle bus

The Bus ABC is the transport seam: topic subscription, service calls that
complete through futures, and one-shot timers on the same event loop. The
gateway resolves configured names and types, decodes every payload into the
tagged message types in messages.py, and keeps decode or callback failures
from escaping into the transport.

Ordering: messages of one subscription arrive in publish order; nothing is
guaranteed across subscriptions or between a subscription and a service
completion.
"""
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config_main import GuidanceConsoleConfig
from .logging_utils import ConsoleLogger
from . import messages


class BusUnavailableError(RuntimeError):
    """A service has no server on the bus"""


class Subscription(ABC):
    """Handle for one topic subscription"""

    @abstractmethod
    def unsubscribe(self):
        pass


class Bus(ABC):
    """Transport capability supplied by the deployment (ROS node, test fake)"""

    @abstractmethod
    def subscribe(self, topic: str, message_type: str,
                  callback: Callable[[Mapping[str, Any]], None]) -> Subscription:
        """Deliver every message on topic to callback as a mapping"""

    @abstractmethod
    def call_service(self, service: str, service_type: str,
                     request: Dict[str, Any]) -> Future:
        """Call a service; the future resolves to the response mapping"""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], None]):
        """Run callback once after delay seconds on the bus event loop"""


def chain_future(source: Future, transform: Callable[[Any], Any]) -> Future:
    """Future resolving to transform(source.result()), or to the raised exception"""
    result = Future()

    def _done(completed: Future):
        try:
            result.set_result(transform(completed.result()))
        except Exception as e:
            result.set_exception(e)

    source.add_done_callback(_done)
    return result


class BusGateway:
    """Typed topics and services for the guidance console"""

    def __init__(self, bus: Bus, config: GuidanceConsoleConfig, logger: ConsoleLogger):
        self.bus = bus
        self.config = config
        self.logger = logger
        self.topics = config.topics
        self.services = config.services
        self.types = config.message_types

    # === Topics ===

    def _subscribe(self, topic: str, message_type: str, decoder, callback) -> Subscription:
        def _deliver(payload: Mapping[str, Any]):
            try:
                message = decoder(payload) if decoder else payload
            except messages.MessageDecodeError as e:
                self.logger.log_warning(f"[!] Dropping malformed message on '{topic}': {e}")
                return
            try:
                callback(message)
            except Exception as e:
                self.logger.log_error(f"Error in subscriber for '{topic}'", e)

        subscription = self.bus.subscribe(topic, message_type, _deliver)
        self.logger.log_bus_event("subscribed", {'topic': topic, 'type': message_type})
        return subscription

    def subscribe_system_alerts(self, callback: Callable[[messages.SystemAlert], None]) -> Subscription:
        return self._subscribe(self.topics.system_alert, self.types.system_alert,
                               messages.decode_system_alert, callback)

    def subscribe_guidance_state(self, callback: Callable[[messages.GuidanceStateReport], None]) -> Subscription:
        return self._subscribe(self.topics.guidance_state, self.types.guidance_state,
                               messages.decode_guidance_state, callback)

    def subscribe_available_plugins(self, callback: Callable[[List[messages.PluginDescriptor]], None]) -> Subscription:
        return self._subscribe(self.topics.available_plugins, self.types.plugin_list,
                               messages.decode_plugin_list, callback)

    def subscribe_active_route(self, callback: Callable[[messages.ActiveRoute], None]) -> Subscription:
        return self._subscribe(self.topics.active_route, self.types.route,
                               messages.decode_active_route, callback)

    def subscribe_route_state(self, callback: Callable[[messages.RouteState], None]) -> Subscription:
        return self._subscribe(self.topics.route_state, self.types.route_state,
                               messages.decode_route_state, callback)

    def subscribe_route_event(self, callback: Callable[[messages.RouteEvent], None]) -> Subscription:
        return self._subscribe(self.topics.route_event, self.types.route_event,
                               messages.decode_route_event, callback)

    def subscribe_ui_instructions(self, callback: Callable[[messages.UIInstruction], None]) -> Subscription:
        return self._subscribe(self.topics.ui_instructions, self.types.ui_instructions,
                               messages.decode_ui_instruction, callback)

    def subscribe_raw(self, topic: str, message_type: str, callback,
                      decoder: Optional[Callable[[Mapping[str, Any]], Any]] = None) -> Subscription:
        """Subscribe to a telemetry topic; the callback gets the mapping unless a decoder is given"""
        return self._subscribe(topic, message_type, decoder, callback)

    # === Services ===

    def _call(self, service: str, service_type: str, request: Dict[str, Any], decoder) -> Future:
        self.logger.logger.debug(f"Calling {service} with {request}")
        return chain_future(self.bus.call_service(service, service_type, request), decoder)

    def get_available_routes(self) -> Future:
        return self._call(self.services.get_available_routes, self.types.get_available_routes,
                          {}, messages.decode_available_routes)

    def set_active_route(self, route_id: str) -> Future:
        return self._call(self.services.set_active_route, self.types.set_active_route,
                          {'routeID': route_id}, messages.decode_error_status)

    def start_active_route(self) -> Future:
        return self._call(self.services.start_active_route, self.types.start_active_route,
                          {}, messages.decode_error_status)

    def get_registered_plugins(self) -> Future:
        return self._call(self.services.get_registered_plugins, self.types.get_registered_plugins,
                          {}, messages.decode_plugin_list)

    def activate_plugin(self, name: str, version: str, activated: bool) -> Future:
        request = {
            'pluginName': name,
            'pluginVersion': version,
            'activated': activated
        }
        return self._call(self.services.activate_plugin, self.types.activate_plugin,
                          request, messages.decode_plugin_activation)

    def set_guidance_active(self, guidance_active: bool) -> Future:
        return self._call(self.services.set_guidance_active, self.types.set_guidance_active,
                          {'guidance_active': guidance_active}, messages.decode_guidance_active)

    def get_drivers_with_capabilities(self, capabilities: List[str]) -> Future:
        return self._call(self.services.get_drivers_with_capabilities,
                          self.types.get_drivers_with_capabilities,
                          {'capabilities': list(capabilities)}, messages.decode_driver_data)

    def resolve_capability_topics(self, capabilities: List[str]) -> Future:
        """
        Resolve capability base names to fully qualified topic names.

        The future resolves to {capability: topic} holding only the
        capabilities that were found; an empty dict means the feature is
        unavailable, which is not an error.
        """
        def _match(driver_data: List[str]) -> Dict[str, str]:
            resolved = {}
            for capability in capabilities:
                topic = next((t for t in driver_data if t.endswith(capability)), None)
                if topic:
                    resolved[capability] = topic
            return resolved

        return chain_future(self.get_drivers_with_capabilities(capabilities), _match)

    def resolve_capability_topic(self, capability: str) -> Future:
        """Resolve one capability; the future resolves to the topic or None"""
        return chain_future(self.resolve_capability_topics([capability]),
                            lambda resolved: resolved.get(capability))

    def get_system_version(self) -> Future:
        return self._call(self.services.get_system_version, self.types.get_system_version,
                          {}, messages.decode_system_version)

    def get_parameters(self, names: List[str]) -> Future:
        service = f"{self.services.parameter_node.rstrip('/')}/get_parameters"
        return self._call(service, self.types.get_parameters, {'names': list(names)},
                          lambda payload: messages.decode_parameter_values(payload, list(names)))

    # === Timers ===

    def schedule(self, delay: float, callback: Callable[[], None]):
        def _run():
            try:
                callback()
            except Exception as e:
                self.logger.log_error("Error in scheduled callback", e)

        self.bus.schedule(delay, _run)
