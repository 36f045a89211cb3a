"""
Guidance Engagement State Machine

Two coupled axes are tracked in the session: operator intent (active) and
vehicle-confirmed engagement (engaged). The visible button state is derived
from those flags, the bus guidance-state reports and the engagement
precondition (route selected, at least one active capability, at least one
selected widget).

Transitions:
- ENABLED / DISABLED: precondition re-evaluated after capability or widget changes
- ACTIVE: activation confirmed by the bus, or guidance reports ACTIVE
- ENGAGED: guidance reports ENGAGED (starts the engagement timer)
- INACTIVE: guidance reports INACTIVE (one alert per engagement)
- DISENGAGED: deactivation confirmed by the bus; terminal for the session
"""
from concurrent.futures import Future
from typing import Callable, Optional

from ..bus_gateway import BusGateway, Subscription
from ..logging_utils import ConsoleLogger
from ..messages import GuidanceStateReport, GuidanceStateType
from ..session_state import SessionFlags
from .guidance_state import GuidanceButtonState, GuidanceTransitionReason


MANUAL_CONTROL = 'PLEASE TAKE MANUAL CONTROL OF THE VEHICLE.'
SELECT_WIDGETS = 'Please go to Driver View to select Widgets.'
TOGGLE_FAILED = 'Guidance failed to set the value, please try again.'


class GuidanceEngagementStateMachine:
    """Owns the guidance button and reacts to guidance state reports"""

    def __init__(self, gateway: BusGateway, session: SessionFlags, view,
                 logger: ConsoleLogger, count_active_capabilities: Callable[[], int],
                 on_activated: Optional[Callable[[], None]] = None,
                 on_disengaged: Optional[Callable[[], None]] = None,
                 on_shutdown: Optional[Callable[[str], None]] = None):
        self.gateway = gateway
        self.session = session
        self.view = view
        self.logger = logger
        self.count_active_capabilities = count_active_capabilities
        self.on_activated = on_activated
        self.on_disengaged = on_disengaged
        self.on_shutdown = on_shutdown

        self.button_state = GuidanceButtonState.DISABLED
        self.host_instructions = ''
        self.guidance_subscription: Optional[Subscription] = None
        self.toggle_pending = False

        # INACTIVE alert plays once until the next ENGAGED
        self.alert_armed = True

    # === Precondition ===

    def precondition_met(self) -> bool:
        return (self.session.has_selected_route
                and self.count_active_capabilities() > 0
                and self.view.count_selected_widgets() > 0)

    def subscribe_guidance_state(self):
        if self.guidance_subscription is None:
            self.guidance_subscription = self.gateway.subscribe_guidance_state(self.on_guidance_state)

    def enable_guidance(self):
        """Re-evaluate the engagement precondition and project ENABLED or DISABLED"""
        self.subscribe_guidance_state()

        if self.button_state == GuidanceButtonState.DISENGAGED:
            return

        active = self.session.guidance_active
        engaged = self.session.guidance_engaged

        if self.precondition_met():
            if not active and not engaged:
                self._transition_to(GuidanceButtonState.ENABLED, GuidanceTransitionReason.PRECONDITION_MET)
                if self.host_instructions:
                    self.view.append_message(self.host_instructions)
            else:
                self._restore_from_session()
            return

        if self.count_active_capabilities() > 0:
            self.view.show_widget_options()
        if self.view.count_selected_widgets() == 0:
            self.view.append_message(SELECT_WIDGETS)

        if not active:
            self._transition_to(GuidanceButtonState.DISABLED, GuidanceTransitionReason.PRECONDITION_NOT_MET)
        else:
            # Capabilities may still be loading after a reload
            self.logger.log_warning(
                f"[!] Precondition not met while guidance is active; keeping {self.button_state.name}")
            self._restore_from_session()

    def _restore_from_session(self):
        """Project the persisted engagement after a reload"""
        if self.button_state not in (GuidanceButtonState.DISABLED, GuidanceButtonState.ENABLED):
            return
        if self.session.guidance_engaged:
            self._transition_to(GuidanceButtonState.ENGAGED, GuidanceTransitionReason.SESSION_RESTORED)
        elif self.session.guidance_active:
            self._transition_to(GuidanceButtonState.ACTIVE, GuidanceTransitionReason.SESSION_RESTORED)

    # === Operator toggle ===

    def toggle_guidance(self) -> bool:
        """
        Request the opposite of the current activation.

        Returns:
            bool: True if the request was sent to the bus
        """
        if self.button_state in (GuidanceButtonState.DISABLED, GuidanceButtonState.DISENGAGED):
            self.logger.log_warning(f"[!] Guidance toggle ignored in {self.button_state.name}")
            return False
        if self.toggle_pending:
            self.logger.log_warning("[!] Guidance toggle already in progress")
            return False

        desired = not self.session.guidance_active
        self.toggle_pending = True
        self.logger.logger.info(f"Requesting guidance active={desired}")
        self.gateway.set_guidance_active(desired).add_done_callback(
            lambda f: self._on_toggle_result(desired, f))
        return True

    def _on_toggle_result(self, desired: bool, future: Future):
        self.toggle_pending = False
        try:
            confirmed = future.result()
        except Exception as e:
            self.logger.log_error("Setting guidance active failed", e)
            self.view.show_message(TOGGLE_FAILED)
            return

        if confirmed != desired:
            self.logger.log_warning(f"[!] Guidance confirmed active={confirmed}, requested {desired}")
            self.view.show_message(TOGGLE_FAILED)
            return

        if not desired:
            self._transition_to(GuidanceButtonState.DISENGAGED, GuidanceTransitionReason.DEACTIVATION_CONFIRMED)
            return

        # ENGAGED may already have been reported on the state topic
        if not self.session.guidance_engaged:
            self._transition_to(GuidanceButtonState.ACTIVE, GuidanceTransitionReason.ACTIVATION_CONFIRMED)
        self.view.load_widgets()
        if self.on_activated:
            self.on_activated()

    # === Bus reports ===

    def on_guidance_state(self, report: GuidanceStateReport):
        state = report.state

        if state == GuidanceStateType.SHUTDOWN:
            message = f"System received a Guidance SHUTDOWN. {report.description} {MANUAL_CONTROL}"
            self.view.show_message(message)
            self.logger.log_warning(f"[STOP] Guidance shutdown: {report.description}")
            if self.on_shutdown:
                self.on_shutdown(message)
            self.view.show_manual_control_notice(message, redirect=False)
            return

        if state == GuidanceStateType.STARTUP:
            self.view.show_message('Guidance is starting up.')
            return

        if state == GuidanceStateType.DRIVERS_READY:
            return

        if state is None:
            self.logger.log_warning(f"[!] Unknown guidance state: {report.raw_state}")
            self.view.show_message(f"Guidance state is unknown. {report.description}")
            return

        if self.button_state == GuidanceButtonState.DISENGAGED:
            self.logger.logger.debug(f"Ignoring guidance {state.name} after disengage")
            return

        if state == GuidanceStateType.ACTIVE:
            self.view.show_message('Guidance is now ACTIVE.')
            self._transition_to(GuidanceButtonState.ACTIVE, GuidanceTransitionReason.GUIDANCE_ACTIVE)

        elif state == GuidanceStateType.ENGAGED:
            self.view.show_message('Guidance is now ENGAGED.')
            self._transition_to(GuidanceButtonState.ENGAGED, GuidanceTransitionReason.GUIDANCE_ENGAGED)
            self.session.start_engaged_timer()

        elif state == GuidanceStateType.INACTIVE:
            self.view.show_message('CAV Guidance is INACTIVE. To re-engage, double tap the ACC switch '
                                   'downward on the steering wheel.')
            self._transition_to(GuidanceButtonState.INACTIVE, GuidanceTransitionReason.GUIDANCE_INACTIVE)

    # === Projection ===

    def _transition_to(self, new_state: GuidanceButtonState, reason: GuidanceTransitionReason):
        """Apply the flag changes of new_state and project it on the view"""
        old_state = self.button_state

        if new_state in (GuidanceButtonState.ENABLED, GuidanceButtonState.DISABLED,
                         GuidanceButtonState.DISENGAGED):
            self.session.guidance_active = False
        elif new_state == GuidanceButtonState.ACTIVE:
            self.session.guidance_active = True
            self.session.guidance_engaged = False
        elif new_state == GuidanceButtonState.ENGAGED:
            self.session.guidance_engaged = True
            self.alert_armed = True
        elif new_state == GuidanceButtonState.INACTIVE:
            self.session.guidance_active = False
            if self.alert_armed:
                self.view.play_alert_sound()
                self.alert_armed = False

        self.button_state = new_state
        self.view.set_guidance_button(new_state)

        if old_state != new_state:
            self.logger.log_state_transition(old_state.name, new_state.name)
            self.logger.logger.info(f"Transition reason: {reason.name}")

        if new_state == GuidanceButtonState.DISENGAGED:
            if self.on_disengaged:
                self.on_disengaged()
            self.view.show_manual_control_notice(
                f"You are disengaging guidance. {MANUAL_CONTROL}", redirect=True)
