from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.state import get_cache
from app.errors import BusinessNotFound
from app.schemas.business_schema import (
    BusinessCreate,
    BusinessOut,
    BusinessUpdate,
    CompanySettingsOut,
    CompanySettingsUpdate,
    DailyScheduleIn,
    DailyScheduleOut,
    ServiceCreate,
    ServiceOut,
    ServiceUpdate,
)
from . import crud


router = APIRouter(tags=["Businesses"])


@router.post("/businesses/", response_model=BusinessOut, status_code=status.HTTP_201_CREATED)
def create_business(payload: BusinessCreate, db: Session = Depends(get_db)):
    return crud.create_business(db, payload)


@router.get("/businesses/slug/{slug}", response_model=BusinessOut)
def get_business_by_slug(slug: str, db: Session = Depends(get_db)):
    return crud.get_business_by_slug(db, slug)


@router.get("/businesses/{business_id}", response_model=BusinessOut)
def get_business(business_id: UUID, db: Session = Depends(get_db)):
    return crud.get_business(db, business_id)


@router.put("/businesses/{business_id}", response_model=BusinessOut)
def update_business(business_id: UUID, payload: BusinessUpdate, db: Session = Depends(get_db)):
    return crud.update_business(db, business_id, payload)


@router.get("/businesses/{business_id}/settings", response_model=CompanySettingsOut)
def read_settings(business_id: UUID, db: Session = Depends(get_db)):
    crud.get_business(db, business_id)
    settings = crud.get_settings(db, business_id)
    if settings is None:
        raise BusinessNotFound("Estabelecimento sem configurações")
    return settings


@router.put("/businesses/{business_id}/settings", response_model=CompanySettingsOut)
def update_settings(
    business_id: UUID,
    payload: CompanySettingsUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    return crud.update_settings(db, business_id, payload, cache=get_cache(request))


@router.get("/businesses/{business_id}/schedules", response_model=List[DailyScheduleOut])
def list_schedules(business_id: UUID, db: Session = Depends(get_db)):
    return crud.list_daily_schedules(db, business_id)


@router.put("/businesses/{business_id}/schedules/{day_of_week}", response_model=DailyScheduleOut)
def put_schedule(
    business_id: UUID,
    payload: DailyScheduleIn,
    request: Request,
    day_of_week: int = Path(..., ge=0, le=6, description="0=Domingo ... 6=Sábado"),
    db: Session = Depends(get_db),
):
    return crud.upsert_daily_schedule(db, business_id, day_of_week, payload, cache=get_cache(request))


@router.delete("/businesses/{business_id}/schedules/{day_of_week}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    business_id: UUID,
    request: Request,
    day_of_week: int = Path(..., ge=0, le=6),
    db: Session = Depends(get_db),
):
    crud.get_business(db, business_id)
    crud.delete_daily_schedule(db, business_id, day_of_week, cache=get_cache(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/businesses/{business_id}/services", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def create_service(business_id: UUID, payload: ServiceCreate, db: Session = Depends(get_db)):
    return crud.create_service(db, business_id, payload)


@router.get("/businesses/{business_id}/services", response_model=List[ServiceOut])
def list_services(
    business_id: UUID,
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
):
    crud.get_business(db, business_id)
    return crud.list_services(db, business_id, include_inactive=include_inactive)


@router.put("/services/{service_id}", response_model=ServiceOut)
def update_service(service_id: UUID, payload: ServiceUpdate, db: Session = Depends(get_db)):
    return crud.update_service(db, service_id, payload)
