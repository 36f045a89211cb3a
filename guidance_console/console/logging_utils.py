"""
Logging utilities for the Guidance Console
"""
import logging
import logging.handlers
import os
from datetime import datetime
from typing import Optional


class ConsoleLogger:
    """Logging for the guidance console with a buffered file handler"""

    def __init__(self, name: str = "guidance_console", log_dir: str = "logs",
                 log_level: str = "INFO", console_output: bool = True):
        self.name = name
        self.log_dir = log_dir

        # Create log directory if it doesn't exist
        os.makedirs(log_dir, exist_ok=True)

        self.logger = self._setup_logger(log_level, console_output)

    def _setup_logger(self, log_level: str, console_output: bool) -> logging.Logger:
        """Setup logging configuration"""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(self.log_dir, f"{self.name}_{timestamp}.log")
        self.log_file = log_file

        logger = logging.getLogger(f"GuidanceConsole.{self.name}")
        logger.setLevel(getattr(logging, log_level.upper()))
        logger.propagate = False

        # Remove existing handlers
        logger.handlers.clear()

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8', delay=False)
        file_handler.setLevel(logging.DEBUG)

        # Buffer records in memory, flush on ERROR or when the buffer fills
        memory_handler = logging.handlers.MemoryHandler(
            capacity=100,
            flushLevel=logging.ERROR,
            target=file_handler
        )

        file_formatter = logging.Formatter(
            '%(asctime)s - [%(name)s] - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(memory_handler)

        if console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(logging.Formatter('[%(name)s] %(levelname)s - %(message)s'))
            logger.addHandler(console_handler)

        self._file_handler = file_handler
        self._memory_handler = memory_handler

        return logger

    def log_bus_event(self, event: str, details: Optional[dict] = None):
        """Log bus-related events (connection, subscriptions, service calls)"""
        msg = f"Bus: {event}"
        if details:
            msg += f" - {details}"
        self.logger.info(msg)

    def log_state_transition(self, old_state: str, new_state: str):
        """Log state machine transitions"""
        self.logger.info(f"State transition: {old_state} -> {new_state}")

    def log_error(self, error: str, exception: Optional[Exception] = None):
        """Log errors"""
        if exception:
            self.logger.error(f"{error}: {exception}", exc_info=exception)
        else:
            self.logger.error(error)

    def log_warning(self, warning: str):
        """Log warnings"""
        self.logger.warning(warning)

    def flush(self):
        self._memory_handler.flush()

    def close(self):
        """Flush buffered records and close all handlers"""
        self._memory_handler.flush()
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
        self._file_handler.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
