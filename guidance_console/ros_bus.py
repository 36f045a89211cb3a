"""
ROS 2 implementation of the console Bus

Topics and services are addressed by name plus interface type string
('cav_msgs/msg/SystemAlert'); messages cross the boundary as ordered
dictionaries so the console core never touches generated message classes.
Service completions and timers run on the node's executor, which keeps the
console single-threaded.
"""
from concurrent.futures import Future
from typing import Any, Callable, Dict, Mapping

from rclpy.node import Node
from rosidl_runtime_py.convert import message_to_ordereddict
from rosidl_runtime_py.set_message import set_message_fields
from rosidl_runtime_py.utilities import get_message, get_service

from .console.bus_gateway import Bus, BusUnavailableError, Subscription


class RosSubscription(Subscription):

    def __init__(self, node: Node, subscription):
        self.node = node
        self.subscription = subscription

    def unsubscribe(self):
        if self.subscription is not None:
            self.node.destroy_subscription(self.subscription)
            self.subscription = None


class RosBus(Bus):
    """Bus over an rclpy node"""

    def __init__(self, node: Node, qos_depth: int = 10,
                 service_wait: float = 2.0, discovery_poll: float = 0.1):
        self.node = node
        self.qos_depth = qos_depth
        # A fresh client needs graph discovery before its server shows up
        self.service_wait = service_wait
        self.discovery_poll = discovery_poll
        self._clients = {}

    def subscribe(self, topic: str, message_type: str,
                  callback: Callable[[Mapping[str, Any]], None]) -> Subscription:
        message_class = get_message(message_type)
        subscription = self.node.create_subscription(
            message_class, topic,
            lambda msg: callback(message_to_ordereddict(msg)),
            self.qos_depth
        )
        return RosSubscription(self.node, subscription)

    def _client(self, service: str, service_type: str):
        key = (service, service_type)
        if key not in self._clients:
            self._clients[key] = self.node.create_client(get_service(service_type), service)
        return self._clients[key]

    def call_service(self, service: str, service_type: str, request: Dict[str, Any]) -> Future:
        result = Future()
        client = self._client(service, service_type)

        self._when_ready(client, service, self.service_wait,
                         lambda: self._send(client, service, request, result), result)
        return result

    def _when_ready(self, client, service: str, remaining: float,
                    send: Callable[[], None], result: Future):
        if client.service_is_ready():
            send()
        elif remaining <= 0:
            result.set_exception(BusUnavailableError(f"Service not available: {service}"))
        else:
            self.schedule(self.discovery_poll, lambda: self._when_ready(
                client, service, remaining - self.discovery_poll, send, result))

    def _send(self, client, service: str, request: Dict[str, Any], result: Future):
        ros_request = client.srv_type.Request()
        try:
            set_message_fields(ros_request, request)
        except (AttributeError, TypeError, ValueError) as e:
            result.set_exception(e)
            return

        def _done(ros_future):
            exception = ros_future.exception()
            if exception is not None:
                result.set_exception(exception)
                return
            response = ros_future.result()
            if response is None:
                result.set_exception(BusUnavailableError(f"No response from {service}"))
                return
            result.set_result(message_to_ordereddict(response))

        client.call_async(ros_request).add_done_callback(_done)

    def schedule(self, delay: float, callback: Callable[[], None]):
        timer = None

        def _fire():
            timer.cancel()
            self.node.destroy_timer(timer)
            callback()

        # rclpy timers need a positive period
        timer = self.node.create_timer(max(delay, 0.001), _fire)

    def count_publishers(self, topic: str) -> int:
        return self.node.count_publishers(topic)
