"""
FILE: catalogue/core/availability.py

Availability gate consulted by every data-serving handler before it touches
the store. Pure read of the supervisor's flag; rejection is logged and
raised as StoreUnavailableError (answered as 500 "Database not available").
"""

import logging
from typing import Optional, Union

from catalogue.config.constants import UNAVAILABLE_MESSAGE
from .exceptions import StoreUnavailableError
from .store_handle import StoreHandle
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


class AvailabilityGate:
    """Request-time guard in front of the StoreHandle."""

    def __init__(self, supervisor: ConnectionSupervisor) -> None:
        self._supervisor = supervisor

    def guard(self) -> bool:
        """True when the store may be used. No side effects."""
        return self._supervisor.available

    def acquire(self, log: Optional[LoggerLike] = None) -> StoreHandle:
        """
        Pass the gate and get the handle.

        Args:
            log: Request-bound logger for the rejection line

        Raises:
            StoreUnavailableError: If guard() is False (no store call made)
        """
        if not self.guard():
            (log or logger).error(UNAVAILABLE_MESSAGE)
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE)
        return self._supervisor.store
