from datetime import date
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.state import business_now, get_cache, get_policy
from app.schemas.availability_schema import (
    AvailabilityDetailsOut,
    AvailabilityOut,
    AvailabilityStatsOut,
    AvailableDatesOut,
)
from app.services import availability
from . import crud


router = APIRouter(prefix="/availability", tags=["Availability"])


@router.get("/", response_model=AvailabilityOut)
def get_availability(
    request: Request,
    business_id: UUID = Query(...),
    date_param: date = Query(..., alias="date"),
    service_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
):
    """Horários livres do dia, em ordem crescente."""
    business = crud.get_business(db, business_id)
    return availability.query_availability(
        db,
        business.id,
        date_param,
        now=business_now(request, business),
        policy=get_policy(request),
        service_id=service_id,
        cache=get_cache(request),
    )


@router.get("/details", response_model=AvailabilityDetailsOut)
def get_availability_details(
    request: Request,
    business_id: UUID = Query(...),
    date_param: date = Query(..., alias="date"),
    service_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
):
    business = crud.get_business(db, business_id)
    return availability.availability_details(
        db,
        business.id,
        date_param,
        now=business_now(request, business),
        policy=get_policy(request),
        service_id=service_id,
    )


@router.get("/dates", response_model=AvailableDatesOut)
def get_available_dates(
    request: Request,
    business_id: UUID = Query(...),
    db: Session = Depends(get_db),
):
    business = crud.get_business(db, business_id)
    dates = availability.available_dates(db, business.id, now=business_now(request, business))
    return {"business_id": business.id, "dates": dates}


@router.get("/stats", response_model=AvailabilityStatsOut)
def get_availability_stats(
    request: Request,
    business_id: UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    service_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
):
    business = crud.get_business(db, business_id)
    return availability.availability_stats(
        db,
        business.id,
        start_date,
        end_date,
        now=business_now(request, business),
        policy=get_policy(request),
        service_id=service_id,
    )
