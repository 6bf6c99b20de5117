"""
Services package for scheduling business logic.

This package contains the components behind the scheduling endpoints:
slot generation, occupancy resolution, booking creation and patient
status derivation.
"""

from .slot_generator import SlotGenerator
from .occupancy_resolver import OccupancyResolver
from .status_derivation import StatusDerivationEngine
from .booking_store import BookingStore
from .settings_service import SettingsService
from .booking_coordinator import BookingCoordinator
from .scheduling_service import SchedulingService

__all__ = [
    "SlotGenerator",
    "OccupancyResolver",
    "StatusDerivationEngine",
    "BookingStore",
    "SettingsService",
    "BookingCoordinator",
    "SchedulingService",
]
