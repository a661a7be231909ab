"""
可用性路由 - 月历、时段切换、按月选日期
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query
from clinic.models.ontology import TimeSlot, User
from clinic.models.schemas import (
    AvailabilityDay, TimeSlotChangeRequest, TimeSlotChangeResponse,
    MonthlyDatesRequest, MonthlyDatesResponse
)
from clinic.dependencies import get_availability_service
from clinic.services.availability_service import AvailabilityService
from clinic.security.auth import get_current_user

router = APIRouter(prefix="/availability", tags=["可用性"])


@router.post("/time-slot", response_model=TimeSlotChangeResponse)
def change_time_slot(
    data: TimeSlotChangeRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_user)
):
    """切换时段，移除在新时段下已被占用的日期"""
    kept, dropped = service.change_time_slot(data.room_id, data.dates, data.time_slot)
    return TimeSlotChangeResponse(
        room_id=data.room_id, time_slot=data.time_slot, dates=kept, dropped_dates=dropped
    )


@router.post("/monthly-dates", response_model=MonthlyDatesResponse)
def select_monthly_dates(
    data: MonthlyDatesRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_user)
):
    """按月预订：选取接下来 30 个可用工作日"""
    dates = service.select_monthly_dates(data.room_id, data.time_slot, data.start_date)
    return MonthlyDatesResponse(room_id=data.room_id, time_slot=data.time_slot, dates=dates)


@router.get("/{room_id}", response_model=List[AvailabilityDay])
def check_availability(
    room_id: int,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=9999),
    time_slot: Optional[TimeSlot] = None,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_user)
):
    """房间月历：每天已占用时段与状态；指定 time_slot 时附带该时段是否可订"""
    today = date.today()
    return service.check_availability(
        room_id, month or today.month, year or today.year, today=today, time_slot=time_slot
    )
