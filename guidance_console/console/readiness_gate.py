"""
Readiness Gate - holds the workflow until the vehicle reports SYSTEM READY

The system alert stream is subscribed once. READY and NOT_READY update the
persisted readiness flag; FATAL and SHUTDOWN are terminal: the stream is
dropped for good and the operator is told to take manual control. Any other
classification counts as not ready.

wait_for_ready() polls the readiness flag on the bus event loop with a fixed
delay and a bounded number of attempts. Running out of attempts reports the
failure to the operator; it does not raise.
"""
from typing import Callable, Optional

from .bus_gateway import BusGateway, Subscription
from .config_main import ReadinessConfig
from .console_view import ConsoleView
from .logging_utils import ConsoleLogger
from .messages import SystemAlert, SystemAlertType
from .session_state import SessionFlags


MANUAL_CONTROL = 'PLEASE TAKE MANUAL CONTROL OF THE VEHICLE.'
AWAITING_READY = 'Awaiting SYSTEM READY status ...'
READY_TIMEOUT = ('Sorry, did not receive SYSTEM READY status, '
                 'please refresh your browser to try again.')


class ReadinessGate:
    """Tracks system alerts and gates workflow entry on SYSTEM READY"""

    def __init__(self, gateway: BusGateway, session: SessionFlags, view: ConsoleView,
                 logger: ConsoleLogger, config: ReadinessConfig,
                 on_ready: Optional[Callable[[], None]] = None,
                 on_terminal: Optional[Callable[[str], None]] = None):
        self.gateway = gateway
        self.session = session
        self.view = view
        self.logger = logger
        self.config = config
        self.on_ready = on_ready
        self.on_terminal = on_terminal

        self.subscription: Optional[Subscription] = None
        self.attempts = 0
        self.waiting = False
        self.terminated = False
        self.failed = False
        # Bumped whenever a wait starts or ends; timers from older waits go quiet
        self.wait_generation = 0

    def subscribe(self):
        """Subscribe to the system alert stream (once, never after a terminal alert)"""
        if self.subscription is not None or self.terminated:
            return
        self.subscription = self.gateway.subscribe_system_alerts(self.on_system_alert)

    def unsubscribe(self):
        if self.subscription is not None:
            self.subscription.unsubscribe()
            self.subscription = None

    def on_system_alert(self, alert: SystemAlert):
        if self.terminated:
            return

        alert_type = alert.type
        description = alert.description

        if alert_type == SystemAlertType.CAUTION:
            self.view.append_message(f"System received a CAUTION message. {description}")

        elif alert_type == SystemAlertType.WARNING:
            self.view.append_message(f"System received a WARNING message. {description}")

        elif alert_type == SystemAlertType.NOT_READY:
            self.session.system_alert_ready = False
            self.view.append_message(f"System is not ready, please wait and try again. {description}")

        elif alert_type == SystemAlertType.DRIVERS_READY:
            self.session.system_alert_ready = True
            self.view.append_message(f"System is ready. {description}")
            if self.waiting:
                self._finish_waiting()

        elif alert_type == SystemAlertType.FATAL:
            self._terminate(
                "System received a FATAL message. Please wait for system to shut down. "
                f"{description} {MANUAL_CONTROL}")

        elif alert_type == SystemAlertType.SHUTDOWN:
            self._terminate(f"System received a SHUTDOWN message. {description} {MANUAL_CONTROL}")

        else:
            self.session.system_alert_ready = False
            self.view.append_message(
                f"System alert type is unknown. Assuming system is not yet ready. {description}")
            self.logger.log_warning(f"[!] Unknown system alert type: {alert.raw_type}")

    def stop(self):
        """Drop the alert stream for good"""
        self.terminated = True
        self.waiting = False
        self.wait_generation += 1
        self.unsubscribe()

    def _terminate(self, message: str):
        self.session.system_alert_ready = False
        self.stop()
        self.logger.log_warning(f"[STOP] Terminal system alert: {message}")
        self.view.append_message(message)
        self.view.show_manual_control_notice(message, redirect=False)
        if self.on_terminal:
            self.on_terminal(message)

    # === Bounded readiness polling ===

    def wait_for_ready(self):
        """Poll for readiness; calls on_ready once the system reports READY"""
        if self.terminated or self.waiting:
            return

        self.subscribe()
        self.attempts = 0
        self.failed = False
        self.waiting = True
        self.wait_generation += 1
        self.view.show_message(AWAITING_READY)
        self._schedule_poll()

    def _schedule_poll(self):
        generation = self.wait_generation
        self.gateway.schedule(self.config.retry_delay, lambda: self._poll(generation))

    def _poll(self, generation: int):
        if generation != self.wait_generation or not self.waiting:
            return

        self.attempts += 1

        if self.session.system_alert_ready:
            self._finish_waiting()
            return

        if self.attempts >= self.config.max_attempts:
            self.waiting = False
            self.failed = True
            self.view.show_message(READY_TIMEOUT)
            self.logger.log_warning(
                f"[!] No SYSTEM READY after {self.attempts} attempts "
                f"({self.config.retry_delay}s apart)")
            return

        self.logger.logger.debug(f"Awaiting SYSTEM READY ({self.attempts}/{self.config.max_attempts})")
        self.view.show_message(AWAITING_READY)
        self._schedule_poll()

    def _finish_waiting(self):
        self.waiting = False
        self.wait_generation += 1
        self.logger.logger.info("[OK] System is ready")
        if self.on_ready:
            self.on_ready()
