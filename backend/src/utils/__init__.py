"""
Utility modules for the clinic CRM backend.

This package contains shared helpers used across the application, such as
clinic timezone handling.
"""

from utils.datetime_utils import CLINIC_TZ, clinic_now, ensure_clinic_tz

__all__ = ['CLINIC_TZ', 'clinic_now', 'ensure_clinic_tz']
