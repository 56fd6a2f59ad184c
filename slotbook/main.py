# slotbook/main.py

import logging
from datetime import date, datetime, time
from typing import List, Optional

from fastapi import Depends, FastAPI, Path, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from slotbook.config import Settings, load_settings
from slotbook.database import build_engine, build_session_factory, create_db_tables
from slotbook.domain import Booking, Slot
from slotbook.errors import (
    BookingNotFoundError,
    InvalidSlotError,
    InvalidTransitionError,
    InvalidWindowError,
    LockTimeoutError,
    NotAuthorizedError,
    RequesterLimitExceededError,
    SchedulingError,
    SlotTakenError,
    UnknownResourceError,
)
from slotbook.scheduler import BookingScheduler

logger = logging.getLogger(__name__)

# Most specific first: UnknownResourceError is also an InvalidSlotError.
ERROR_STATUS = [
    (UnknownResourceError, status.HTTP_404_NOT_FOUND),
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidSlotError, status.HTTP_400_BAD_REQUEST),
    (InvalidWindowError, status.HTTP_400_BAD_REQUEST),
    (SlotTakenError, status.HTTP_409_CONFLICT),
    (RequesterLimitExceededError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (NotAuthorizedError, status.HTTP_403_FORBIDDEN),
    (LockTimeoutError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


# --- Pydantic Models for API Request/Response ---
class SlotResponse(BaseModel):
    id: str
    resource_id: str
    slot_date: date
    start: time
    end: time
    is_booked: bool = False


class BookingRequest(BaseModel):
    requester_id: str


class CancelRequest(BaseModel):
    requester_id: str


class BookingResponse(BaseModel):
    id: int
    slot_id: str
    resource_id: str
    slot_date: date
    start: time
    end: time
    requester_id: str
    status: str
    created_at: datetime
    updated_at: datetime
    cancelled_by: Optional[str] = None


def _slot_response(slot: Slot, is_booked: bool) -> SlotResponse:
    return SlotResponse(
        id=slot.slot_id,
        resource_id=slot.resource_id,
        slot_date=slot.date,
        start=slot.start,
        end=slot.end,
        is_booked=is_booked,
    )


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        slot_id=booking.slot.slot_id,
        resource_id=booking.slot.resource_id,
        slot_date=booking.slot.date,
        start=booking.slot.start,
        end=booking.slot.end,
        requester_id=booking.requester_id,
        status=booking.status.value,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        cancelled_by=booking.cancelled_by,
    )


def get_scheduler(request: Request) -> BookingScheduler:
    return request.app.state.scheduler


def _status_for(exc: SchedulingError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    code = _status_for(exc)
    logger.info("%s %s -> %s (%s)", request.method, request.url.path, code, type(exc).__name__)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
        headers=headers,
    )


# Plain argument errors such as a blank requester_id. SchedulingErrors that are
# also ValueErrors resolve to the handler above first.
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    logger.info("%s %s -> 400 (%s)", request.method, request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app(settings: Optional[Settings] = None, scheduler: Optional[BookingScheduler] = None) -> FastAPI:
    settings = settings or load_settings()

    # Initialize FastAPI app
    app = FastAPI(
        title="Slot Booking API",
        description="API for generating and booking resource time slots.",
        version="0.1.0",
    )

    if scheduler is None:
        engine = build_engine(settings.database_url)
        # Create database tables if they don't exist
        create_db_tables(engine)
        scheduler = BookingScheduler.from_settings(settings, build_session_factory(engine))

    app.state.settings = settings
    app.state.scheduler = scheduler
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    # --- API Endpoints ---

    @app.get("/")
    async def read_root():
        return {"message": "Welcome to the Slot Booking API!"}

    @app.get("/api/resources/{resource_id}/slots", response_model=List[SlotResponse])
    def get_slots(
        resource_id: str,
        target_date: Optional[date] = None,
        include_booked: bool = False,
        scheduler: BookingScheduler = Depends(get_scheduler),
    ):
        """
        Generate the resource's slots for the date (today by default) from its
        working windows and mark the ones already booked.
        """
        query_date = target_date if target_date else date.today()
        board = scheduler.slot_board(resource_id, query_date)
        return [
            _slot_response(slot, is_booked)
            for slot, is_booked in board
            if include_booked or not is_booked
        ]

    @app.post("/api/slots/{slot_id}/book", response_model=BookingResponse, status_code=status.HTTP_200_OK)
    def book_slot(
        booking_details: BookingRequest,
        slot_id: str = Path(..., description="The ID of the slot to book"),
        scheduler: BookingScheduler = Depends(get_scheduler),
    ):
        """Book a generated slot for the requester."""
        slot = Slot.from_id(slot_id)
        booking = scheduler.reserve(slot.resource_id, slot.date, slot, booking_details.requester_id)
        return _booking_response(booking)

    @app.get("/api/bookings/{booking_id}", response_model=BookingResponse)
    def get_booking(booking_id: int, scheduler: BookingScheduler = Depends(get_scheduler)):
        return _booking_response(scheduler.get_booking(booking_id))

    @app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse)
    def cancel_booking(
        booking_id: int,
        cancel_details: CancelRequest,
        scheduler: BookingScheduler = Depends(get_scheduler),
    ):
        return _booking_response(scheduler.cancel(booking_id, cancel_details.requester_id))

    @app.post("/api/bookings/{booking_id}/complete", response_model=BookingResponse)
    def complete_booking(booking_id: int, scheduler: BookingScheduler = Depends(get_scheduler)):
        return _booking_response(scheduler.complete(booking_id))

    @app.get("/api/requesters/{requester_id}/bookings", response_model=List[BookingResponse])
    def requester_bookings(
        requester_id: str,
        include_terminal: bool = False,
        scheduler: BookingScheduler = Depends(get_scheduler),
    ):
        return [_booking_response(b) for b in scheduler.bookings_for(requester_id, include_terminal)]

    return app
