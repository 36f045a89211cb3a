"""
Operator Command Handler - parsing, validation and dispatch of operator commands

Raw commands (JSON text or already decoded dictionaries) are parsed into
CommandInfo records, validated against the required fields of their type and
handed to the workflow orchestrator. Processed and rejected commands are
counted and kept in a bounded history.
"""
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .command_types import REQUIRED_FIELDS, OperatorCommandType, get_command_category


@dataclass
class CommandInfo:
    """Information about a command"""
    command_type: OperatorCommandType
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)
    source: str = "operator"
    processed: bool = False
    valid: bool = True
    error_message: str = ""


class OperatorCommandHandler:
    """Turns operator commands into workflow calls"""

    TYPE_MAPPING = {
        'select_route': OperatorCommandType.SELECT_ROUTE,
        'toggle_capability': OperatorCommandType.TOGGLE_CAPABILITY,
        'activate_plugin': OperatorCommandType.TOGGLE_CAPABILITY,
        'toggle_guidance': OperatorCommandType.TOGGLE_GUIDANCE,
        'select_widget': OperatorCommandType.SELECT_WIDGET,
        'deselect_widget': OperatorCommandType.DESELECT_WIDGET,
        'reconnect': OperatorCommandType.RECONNECT,
    }

    def __init__(self, logger, orchestrator=None, max_history_size: int = 100):
        self.logger = logger
        self.orchestrator = orchestrator

        self.command_history: List[CommandInfo] = []
        self.max_history_size = max_history_size

        # Statistics
        self.commands_processed = 0
        self.commands_rejected = 0
        self.last_command_time = 0.0

    def process_command(self, raw_command: Union[str, bytes, Dict[str, Any]]) -> bool:
        """
        Process a raw operator command

        Args:
            raw_command: JSON text or dictionary with a 'type' (or 'command') key

        Returns:
            True if the workflow accepted the command
        """
        command_info = self._parse_command(raw_command)
        if command_info is None:
            self.commands_rejected += 1
            return False

        if not command_info.valid:
            self.commands_rejected += 1
            self.logger.log_warning(f"Rejected {command_info.command_type.value}: {command_info.error_message}")
            self._add_to_history(command_info)
            return False

        try:
            success = self.dispatch(command_info.command_type, command_info.data)
        except Exception as e:
            self.logger.log_error(f"Command '{command_info.command_type.value}' failed", e)
            success = False
            command_info.error_message = str(e)

        if success:
            self.commands_processed += 1
            command_info.processed = True
        else:
            self.commands_rejected += 1
            self.logger.log_warning(f"Command type '{command_info.command_type.value}' was not handled")

        self._add_to_history(command_info)
        self.last_command_time = command_info.timestamp
        return success

    def dispatch(self, command_type: OperatorCommandType, data: Optional[Dict[str, Any]] = None) -> bool:
        if self.orchestrator is None:
            self.logger.log_warning("[!] No workflow connected")
            return False
        self.logger.logger.info(f"[CMD] {command_type.value} ({get_command_category(command_type)})")
        return self.orchestrator.handle_command(command_type, data or {})

    def _parse_command(self, raw_command) -> Optional[CommandInfo]:
        """Parse raw command into CommandInfo structure"""
        if isinstance(raw_command, (str, bytes)):
            try:
                raw_command = json.loads(raw_command)
            except ValueError as e:
                self.logger.log_warning(f"Malformed command JSON: {e}")
                return None

        if not isinstance(raw_command, dict):
            self.logger.log_warning(f"Unrecognized command format: {raw_command}")
            return None

        cmd_type_str = raw_command.get('type', raw_command.get('command'))
        if not cmd_type_str:
            self.logger.log_warning(f"Unrecognized command format: {raw_command}")
            return None

        command_type = self.TYPE_MAPPING.get(cmd_type_str)
        if command_type is None:
            self.logger.log_warning(f"Unknown command type: {cmd_type_str}")
            return None

        command_info = CommandInfo(
            command_type=command_type,
            timestamp=time.time(),
            data=dict(raw_command),
            source=raw_command.get('source', 'operator')
        )

        missing = [name for name in REQUIRED_FIELDS[command_type] if raw_command.get(name) in (None, '')]
        if missing:
            command_info.valid = False
            command_info.error_message = f"missing {', '.join(missing)}"

        desired = raw_command.get('activated')
        if desired is not None and not isinstance(desired, bool):
            command_info.valid = False
            command_info.error_message = "'activated' must be true or false"

        return command_info

    def _add_to_history(self, command_info: CommandInfo):
        self.command_history.append(command_info)
        if len(self.command_history) > self.max_history_size:
            self.command_history = self.command_history[-self.max_history_size:]

    def get_statistics(self) -> Dict[str, Any]:
        """Get command processing statistics"""
        return {
            'commands_processed': self.commands_processed,
            'commands_rejected': self.commands_rejected,
            'last_command_time': self.last_command_time,
            'history_size': len(self.command_history)
        }
