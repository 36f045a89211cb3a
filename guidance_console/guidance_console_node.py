"""
Guidance Console ROS 2 node

Runs the guidance engagement workflow headless on the vehicle bus:
- configuration from YAML/JSON, overridden by node parameters
- session flags in memory or in a YAML file (survives node restarts)
- operator commands as JSON on the operator command topic
- bus link watch: losing every system alert publisher counts as a closed
  connection, their return as a reconnect
"""

import json
import os

import rclpy
from rclpy.node import Node
from std_msgs.msg import String

from .console.bus_gateway import BusGateway
from .console.command_handler import OperatorCommandHandler
from .console.config_main import GuidanceConsoleConfig
from .console.console_view import LoggingConsoleView
from .console.logging_utils import ConsoleLogger
from .console.session_state import InMemorySessionStore, SessionFlags, YamlFileSessionStore
from .console.workflow_orchestrator import WorkflowOrchestrator
from .ros_bus import RosBus


DEFAULT_CONFIG = os.path.join(os.path.dirname(os.path.abspath(__file__)),
                              'console', 'config_guidance_console.yaml')


def load_config(config_file: str) -> GuidanceConsoleConfig:
    """Load the explicit config file, else the packaged default, else built-in defaults"""
    if config_file and config_file.strip():
        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Config file not found: {config_file}")
        return GuidanceConsoleConfig.from_file(config_file)
    if os.path.exists(DEFAULT_CONFIG):
        return GuidanceConsoleConfig.from_yaml(DEFAULT_CONFIG)
    return GuidanceConsoleConfig()


class GuidanceConsoleNode(Node):
    """ROS 2 host for the guidance console workflow"""

    def __init__(self):
        super().__init__('guidance_console')

        self.get_logger().info("=" * 70)
        self.get_logger().info("Initializing Guidance Console")
        self.get_logger().info("=" * 70)

        # ===== ROS PARAMETERS =====
        self.declare_parameters(
            namespace='',
            parameters=[
                ('config_file', ''),  # Custom config file path (empty = packaged default)
                ('log_dir', ''),  # Custom log directory (empty = use config default)
                ('log_level', ''),
                ('session_file', ''),  # Persist session flags to this YAML file
                ('link_check_period', 1.0),  # seconds, 0 disables the link watch
            ]
        )

        config_file = self.get_parameter('config_file').value
        log_dir = self.get_parameter('log_dir').value
        log_level = self.get_parameter('log_level').value
        session_file = self.get_parameter('session_file').value
        link_check_period = self.get_parameter('link_check_period').value

        # ===== LOAD CONFIGURATION =====
        self.config = load_config(config_file)
        self.config.update_from_parameters(log_dir=log_dir, log_level=log_level,
                                           session_file=session_file)
        self.get_logger().info(f"Topics: system_alert={self.config.topics.system_alert}, "
                               f"guidance_state={self.config.topics.guidance_state}")

        self.console_logger = ConsoleLogger(
            log_dir=self.config.logging.log_dir,
            log_level=self.config.logging.log_level,
            console_output=self.config.logging.console_output
        )

        # ===== SESSION =====
        if self.config.session.store == 'file':
            store = YamlFileSessionStore(self.config.session.path)
            self.get_logger().info(f"Session flags persisted to: {self.config.session.path}")
        else:
            store = InMemorySessionStore()
        self.session = SessionFlags(store)

        # ===== WORKFLOW =====
        self.bus = RosBus(self)
        self.gateway = BusGateway(self.bus, self.config, self.console_logger)
        self.view = LoggingConsoleView(
            self.console_logger,
            preselected_widgets=self.config.ui.preselected_widgets,
            max_log_lines=self.config.ui.max_log_lines
        )
        self.orchestrator = WorkflowOrchestrator(
            self.gateway, self.session, self.view, self.console_logger, self.config
        )
        self.command_handler = OperatorCommandHandler(self.console_logger, self.orchestrator)

        # ===== ROS SUBSCRIPTIONS =====
        self.command_sub = self.create_subscription(
            String, self.config.topics.operator_command, self._operator_command_callback, 10
        )

        # With the link watch on, the workflow starts once a system alert
        # publisher has been discovered; otherwise as soon as the executor spins
        self.link_up = False
        self.link_timer = None
        if link_check_period > 0:
            self.link_timer = self.create_timer(link_check_period, self._check_link)
        else:
            self.link_up = True
            self.bus.schedule(0.0, self.orchestrator.on_connected)

        self.get_logger().info("=" * 70)
        self.get_logger().info("Guidance Console Ready!")
        self.get_logger().info("=" * 70)

    # ===== ROS CALLBACKS =====

    def _operator_command_callback(self, msg: String):
        try:
            command = json.loads(msg.data)
        except ValueError as e:
            self.get_logger().warning(f"Ignoring malformed operator command: {e}")
            return
        if not self.command_handler.process_command(command):
            self.get_logger().warning(f"Operator command rejected: {msg.data}")

    def _check_link(self):
        """Treat the system alert publishers as the bus link"""
        publishers = self.bus.count_publishers(self.config.topics.system_alert)

        if publishers > 0:
            if not self.link_up:
                self.link_up = True
                self.get_logger().info("Bus link up")
                self.orchestrator.on_connected()
        elif self.link_up:
            self.link_up = False
            self.get_logger().warning("Bus link lost")
            self.orchestrator.on_connection_closed()

    def destroy_node(self):
        """Clean shutdown"""
        self.get_logger().info("Shutting down Guidance Console...")
        stats = self.command_handler.get_statistics()
        self.get_logger().info(f"Operator commands: {stats['commands_processed']} processed, "
                               f"{stats['commands_rejected']} rejected")
        self.orchestrator.shutdown()
        self.console_logger.close()
        super().destroy_node()


# ===== MAIN ENTRY POINT =====
def main(args=None):
    rclpy.init(args=args)

    node = None
    try:
        node = GuidanceConsoleNode()
        rclpy.spin(node)
    except KeyboardInterrupt:
        print("\nShutdown requested (Ctrl+C)")
    except Exception as e:
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
    finally:
        if node is not None:
            node.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
