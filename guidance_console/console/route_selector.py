"""
Route And Capability Selector

Route lifecycle:
    NO_ROUTE -> ROUTE_LISTED -> ROUTE_SELECTED -> ROUTE_STARTING -> ROUTE_ACTIVE

A route is chosen once per session; the selected route name is persisted only
after the vehicle has started following it. Capability toggles are reverted
in the view before the activation request goes out and corrected from the
confirmed state when the response arrives.
"""
from concurrent.futures import Future
from enum import Enum, auto
from typing import Callable, Dict, List, Optional

from .bus_gateway import BusGateway, Subscription
from .capability import Capability, capability_id, count_activated
from .console_view import ConsoleView, TABLE_ROUTE
from .logging_utils import ConsoleLogger
from .messages import (PluginDescriptor, RouteOption, SetActiveRouteError,
                       StartActiveRouteError, describe_code)
from .session_state import SessionFlags


class RouteLifecycle(Enum):
    NO_ROUTE = auto()
    ROUTE_LISTED = auto()
    ROUTE_SELECTED = auto()
    ROUTE_STARTING = auto()
    ROUTE_ACTIVE = auto()


SELECT_CAPABILITIES = 'Please select one or more capabilities to activate.'


class RouteAndCapabilitySelector:
    """Drives route selection/start and capability activation"""

    def __init__(self, gateway: BusGateway, session: SessionFlags, view: ConsoleView,
                 logger: ConsoleLogger,
                 on_route_active: Optional[Callable[[str], None]] = None,
                 on_route_selected: Optional[Callable[[], None]] = None,
                 on_capabilities_changed: Optional[Callable[[], None]] = None):
        self.gateway = gateway
        self.session = session
        self.view = view
        self.logger = logger
        self.on_route_active = on_route_active
        self.on_route_selected = on_route_selected
        self.on_capabilities_changed = on_capabilities_changed

        self.lifecycle = RouteLifecycle.NO_ROUTE
        self.routes: Dict[str, RouteOption] = {}
        self.pending_route: Optional[RouteOption] = None
        self.capabilities: Dict[str, Capability] = {}
        self.availability_subscription: Optional[Subscription] = None

    def _set_lifecycle(self, new_state: RouteLifecycle):
        if new_state != self.lifecycle:
            self.logger.log_state_transition(self.lifecycle.name, new_state.name)
            self.lifecycle = new_state

    # === Routes ===

    def list_routes(self):
        """Request the available routes and offer them to the operator"""
        self.view.show_message('Awaiting the list of available routes...')
        self.gateway.get_available_routes().add_done_callback(self._on_routes)

    def _on_routes(self, future: Future):
        try:
            routes: List[RouteOption] = future.result()
        except Exception as e:
            self.logger.log_error("Listing available routes failed", e)
            self.view.show_message(f"Listing the available routes failed ({e}). Please try again.")
            return

        if self.lifecycle not in (RouteLifecycle.NO_ROUTE, RouteLifecycle.ROUTE_LISTED):
            self.logger.log_warning(f"[!] Late route listing ignored in {self.lifecycle.name}")
            return

        self.routes = {route.route_id: route for route in routes}
        self.view.show_route_options(routes)

        if not routes:
            self.view.show_message('Sorry, there are no available routes, and cannot proceed without one. '
                                   'Please contact your System Admin.')
            self.logger.log_warning("[!] No available routes")
            return

        self.view.show_message('Please select a route.')
        self._set_lifecycle(RouteLifecycle.ROUTE_LISTED)

    def select_route(self, route_id: str) -> bool:
        """
        Activate the chosen route on the vehicle.

        Args:
            route_id: identifier of one of the listed routes

        Returns:
            bool: True if the activation request was sent
        """
        if self.lifecycle != RouteLifecycle.ROUTE_LISTED:
            self.logger.log_warning(f"[!] Route selection ignored in {self.lifecycle.name}")
            return False

        route = self.routes.get(route_id)
        if route is None:
            self.logger.log_warning(f"[!] Unknown route: {route_id}")
            self.view.set_route_selected(route_id, False)
            return False

        self.pending_route = route
        self._set_lifecycle(RouteLifecycle.ROUTE_SELECTED)
        self.view.set_route_selected(route_id, True)
        self.gateway.set_active_route(route_id).add_done_callback(self._on_route_set)
        return True

    def _on_route_set(self, future: Future):
        route_id = self.pending_route.route_id
        try:
            error_status = future.result()
        except Exception as e:
            self.logger.log_error("Setting the active route failed", e)
            self._route_failed('Setting the active route failed', str(e))
            return

        if error_status == SetActiveRouteError.NO_ERROR:
            self.logger.logger.info(f"[OK] Active route set: {route_id}")
            self._start_route()
            if self.on_route_selected:
                self.on_route_selected()
            return

        self._route_failed('Setting the active route failed',
                           describe_code(SetActiveRouteError, error_status))

    def _start_route(self):
        self._set_lifecycle(RouteLifecycle.ROUTE_STARTING)
        self.gateway.start_active_route().add_done_callback(self._on_route_started)

    def _on_route_started(self, future: Future):
        try:
            error_status = future.result()
        except Exception as e:
            self.logger.log_error("Starting the active route failed", e)
            self._route_failed('Starting the active route failed', str(e))
            return

        if error_status in (StartActiveRouteError.NO_ERROR,
                            StartActiveRouteError.ALREADY_FOLLOWING_ROUTE):
            route = self.pending_route
            self.session.selected_route_name = route.route_name
            self._set_lifecycle(RouteLifecycle.ROUTE_ACTIVE)
            self.pending_route = None
            if self.on_route_active:
                self.on_route_active(route.route_name)
            return

        self._route_failed('Starting the active route failed',
                           describe_code(StartActiveRouteError, error_status))

    def _route_failed(self, action: str, description: str):
        self.view.show_message(f"{action} ({description}). Please try again or contact your System Administrator.")
        self.view.update_status(TABLE_ROUTE, 'Error Code', description)
        if self.pending_route is not None:
            self.view.set_route_selected(self.pending_route.route_id, False)
        self.pending_route = None
        self._set_lifecycle(RouteLifecycle.ROUTE_LISTED)

    def mark_route_active(self):
        """Route restored from the session; no selection round-trip needed"""
        self._set_lifecycle(RouteLifecycle.ROUTE_ACTIVE)

    # === Capabilities ===

    def show_capabilities(self):
        """Fetch the registered plugins; each response replaces the known set"""
        self.view.append_message(SELECT_CAPABILITIES)
        self.gateway.get_registered_plugins().add_done_callback(self._on_registered_plugins)

    def _on_registered_plugins(self, future: Future):
        try:
            plugins: List[PluginDescriptor] = future.result()
        except Exception as e:
            self.logger.log_error("Fetching registered plugins failed", e)
            self.view.show_message(f"Fetching the capabilities failed ({e}). Please try again.")
            return

        self.capabilities = {}
        for plugin in plugins:
            capability = Capability(
                name=plugin.name,
                version=plugin.version,
                is_activated=plugin.activated,
                is_required=plugin.required,
                is_available=plugin.available
            )
            self.capabilities[capability.id] = capability

        self.view.show_capabilities(list(self.capabilities.values()))
        for capability in self.capabilities.values():
            self.view.activate_widget_capability(capability.id, capability.title, capability.is_activated)

        if not self.capabilities:
            self.view.show_message('Sorry, there are no selection available, and cannot proceed without one. '
                                   'Please contact your System Admin.')
            self.logger.log_warning("[!] No registered plugins")

        self._notify_changed()

    def count_active_capabilities(self) -> int:
        return count_activated(self.capabilities.values())

    def toggle_capability(self, cap_id: str, desired: Optional[bool] = None) -> bool:
        """
        Request activation or deactivation of a capability.

        Args:
            cap_id: capability id as produced by capability_id()
            desired: requested state, defaults to the opposite of the current one

        Returns:
            bool: True if the request was sent to the bus
        """
        capability = self.capabilities.get(cap_id)
        if capability is None:
            self.logger.log_warning(f"[!] Unknown capability: {cap_id}")
            return False

        if desired is None:
            desired = not capability.is_activated

        if not desired and capability.is_required:
            self.view.show_message('Sorry, this capability is required. It cannot be deactivated.')
            self.view.set_capability_checked(cap_id, True)
            return False

        if not desired and self.session.guidance_engaged:
            remaining = sum(1 for c in self.capabilities.values() if c.is_activated and c.id != cap_id)
            if remaining == 0:
                self.view.show_message('Sorry, CAV Guidance is engaged and there must be at least one '
                                       'active capability. You can choose to dis-engage to deactivate '
                                       'all capabilities.')
                self.view.set_capability_checked(cap_id, True)
                return False

        # Assume failure until the bus confirms
        self.view.set_capability_checked(cap_id, not desired)

        future = self.gateway.activate_plugin(capability.name, capability.version, desired)
        future.add_done_callback(lambda f: self._on_plugin_activation(cap_id, desired, f))
        return True

    def _on_plugin_activation(self, cap_id: str, desired: bool, future: Future):
        capability = self.capabilities.get(cap_id)
        if capability is None:
            # Capability list was replaced while the request was in flight
            return

        try:
            new_state = future.result()
        except Exception as e:
            self.logger.log_error(f"Activating capability {cap_id} failed", e)
            self.view.show_message('Activating the capability failed, please try again.')
            return

        if new_state != desired:
            self.view.show_message('Activating the capability failed, please try again.')
        else:
            self.view.show_message(SELECT_CAPABILITIES)

        capability.is_activated = new_state
        self.view.set_capability_checked(cap_id, new_state)
        self.view.activate_widget_capability(cap_id, capability.title, new_state)
        self.logger.logger.info(f"Capability {capability.title} activated={new_state}")
        self._notify_changed()

    def _notify_changed(self):
        if self.on_capabilities_changed:
            self.on_capabilities_changed()

    # === Availability ===

    def start_availability_monitoring(self):
        if self.availability_subscription is not None:
            return
        self.availability_subscription = self.gateway.subscribe_available_plugins(self.on_availability)

    def stop_availability_monitoring(self):
        if self.availability_subscription is not None:
            self.availability_subscription.unsubscribe()
            self.availability_subscription = None
        for capability in self.capabilities.values():
            if capability.is_activated:
                self.view.set_capability_available(capability.id, False)

    def on_availability(self, plugins: List[PluginDescriptor]):
        if not plugins:
            for capability in self.capabilities.values():
                capability.is_available = False
                if capability.is_activated:
                    self.view.set_capability_available(capability.id, None)
            return

        for plugin in plugins:
            capability = self.capabilities.get(capability_id(plugin.name, plugin.version))
            if capability is None:
                continue
            capability.is_available = plugin.available
            self.view.set_capability_available(capability.id, plugin.available)
