# pyright: reportMissingTypeStubs=false
"""
Scheduling API endpoints.

Slots, bookings and derived patient status for one clinic.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from sqlalchemy.orm import Session

from api.responses import (
    BookingCreateRequest, BookingListResponse, BookingOutcomeUpdateRequest, BookingResponse,
    BookingResultResponse, PatientStatusResponse, TimeSlotListResponse, TimeSlotResponse,
)
from core.database import get_db
from core.exceptions import (
    BookingNotFoundError, ClinicNotFoundError, ConflictError, InvalidSlotError,
    PatientNotFoundError, PersistenceError, SchedulingError,
)
from services.scheduling_service import SchedulingService
from utils.datetime_utils import parse_date_string

logger = logging.getLogger(__name__)

router = APIRouter()


def get_scheduling_service(clinic_id: int, db: Session = Depends(get_db)) -> SchedulingService:
    """FastAPI dependency building the scheduling service for the path's clinic."""
    try:
        return SchedulingService(db, clinic_id)
    except ClinicNotFoundError:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail="Clinic not found"
        )


def _to_http_exception(e: Exception) -> HTTPException:
    """Map scheduling errors to HTTP errors."""
    if isinstance(e, ConflictError):
        return HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, (BookingNotFoundError, PatientNotFoundError, ClinicNotFoundError)):
        return HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking store unavailable, please retry"
        )
    if isinstance(e, (InvalidSlotError, ValueError)):
        return HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(
        status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Scheduling request failed"
    )


@router.get("/clinics/{clinic_id}/slots",
            summary="Get a day's slots with availability",
            response_model=TimeSlotListResponse)
async def get_slots(
    clinic_id: int,
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    duration: Optional[int] = Query(None, gt=0, le=480, description="Appointment length in minutes"),
    treatment_id: Optional[int] = Query(None, description="Treatment whose duration to use"),
    service: SchedulingService = Depends(get_scheduling_service)
) -> TimeSlotListResponse:
    """
    Get every candidate slot of a day.

    Unavailable slots are included with their conflict reason so the UI can
    explain why a time cannot be picked.
    """
    try:
        day = parse_date_string(date)
        duration_minutes = service.resolve_duration(duration, treatment_id)
        slots = await service.get_slots(day, duration_minutes=duration_minutes)
        return TimeSlotListResponse(
            date=day,
            duration_minutes=duration_minutes,
            slots=[TimeSlotResponse.from_slot(slot) for slot in slots],
        )
    except (SchedulingError, ValueError) as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.exception(f"Failed to fetch slots for clinic {clinic_id} on {date}: {e}")
        raise _to_http_exception(e)


@router.post("/clinics/{clinic_id}/bookings",
             summary="Book a slot",
             status_code=http_status.HTTP_201_CREATED,
             response_model=BookingResultResponse)
async def create_booking(
    clinic_id: int,
    request: BookingCreateRequest,
    service: SchedulingService = Depends(get_scheduling_service)
) -> BookingResultResponse:
    """
    Create a booking.

    Returns 409 when the slot was taken since it was shown. A booking whose
    calendar copy could not be created still succeeds, with `warnings` set.
    """
    try:
        result = await service.book(
            patient_id=request.patient_id,
            slot_start=request.start,
            kind=request.kind,
            duration_minutes=request.duration_minutes,
            notes=request.notes,
            treatment_id=request.treatment_id,
        )
        return BookingResultResponse.from_result(result)
    except (SchedulingError, ValueError) as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.exception(f"Failed to create booking in clinic {clinic_id}: {e}")
        raise _to_http_exception(e)


@router.post("/clinics/{clinic_id}/bookings/{booking_id}/complete",
             summary="Mark a booking completed",
             response_model=BookingResultResponse)
async def complete_booking(
    clinic_id: int,
    booking_id: int,
    service: SchedulingService = Depends(get_scheduling_service)
) -> BookingResultResponse:
    try:
        return BookingResultResponse.from_result(service.complete_booking(booking_id))
    except (SchedulingError, ValueError) as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.exception(f"Failed to complete booking {booking_id}: {e}")
        raise _to_http_exception(e)


@router.patch("/clinics/{clinic_id}/bookings/{booking_id}/outcome",
              summary="Set a booking outcome",
              response_model=BookingResultResponse)
async def update_booking_outcome(
    clinic_id: int,
    booking_id: int,
    request: BookingOutcomeUpdateRequest,
    service: SchedulingService = Depends(get_scheduling_service)
) -> BookingResultResponse:
    """Set confirmed, completed, no_show or cancelled on a meeting or appointment."""
    try:
        result = await service.update_outcome(booking_id, request.outcome)
        return BookingResultResponse.from_result(result)
    except (SchedulingError, ValueError) as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.exception(f"Failed to update outcome of booking {booking_id}: {e}")
        raise _to_http_exception(e)


@router.get("/clinics/{clinic_id}/patients/{patient_id}/status",
            summary="Get a patient's derived status",
            response_model=PatientStatusResponse)
async def get_patient_status(
    clinic_id: int,
    patient_id: int,
    service: SchedulingService = Depends(get_scheduling_service)
) -> PatientStatusResponse:
    try:
        now = service.now_provider()
        return PatientStatusResponse(
            patient_id=patient_id,
            status=service.get_patient_status(patient_id, now=now),
            evaluated_at=now,
        )
    except (SchedulingError, ValueError) as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.exception(f"Failed to derive status of patient {patient_id}: {e}")
        raise _to_http_exception(e)


@router.get("/clinics/{clinic_id}/patients/{patient_id}/bookings",
            summary="List a patient's bookings",
            response_model=BookingListResponse)
async def list_patient_bookings(
    clinic_id: int,
    patient_id: int,
    service: SchedulingService = Depends(get_scheduling_service)
) -> BookingListResponse:
    try:
        bookings = service.list_patient_bookings(patient_id)
        return BookingListResponse(bookings=[BookingResponse.from_booking(b) for b in bookings])
    except (SchedulingError, ValueError) as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.exception(f"Failed to list bookings of patient {patient_id}: {e}")
        raise _to_http_exception(e)
