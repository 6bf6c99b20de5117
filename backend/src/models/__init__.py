# Package initialization
# Import all models to ensure relationships are properly established
from .clinic import Clinic
from .patient import Patient
from .treatment import Treatment
from .booking import Booking

__all__ = [
    "Clinic",
    "Patient",
    "Treatment",
    "Booking",
]
