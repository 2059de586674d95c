from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.state import get_policy, get_publisher
from app.schemas.client_schema import (
    ClientOut,
    ClientUpsert,
    ClientUpsertOut,
    DeduplicationOut,
    DeduplicationRequest,
)
from app.services.client_upsert import upsert_client
from app.services.deduplication import deduplicate_clients, list_unique_clients
from . import crud


router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post("/", response_model=ClientUpsertOut)
def upsert(
    payload: ClientUpsert,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    crud.get_business(db, payload.business_id)
    policy = get_policy(request)
    result = upsert_client(
        db,
        payload.business_id,
        payload.name,
        payload.phone,
        email=payload.email,
        notes=payload.notes,
        max_attempts=policy.upsert_max_attempts,
        backoff_seconds=policy.upsert_backoff_seconds,
    )
    response.status_code = status.HTTP_201_CREATED if result.is_new else status.HTTP_200_OK
    return {"client": result.client, "is_new": result.is_new}


@router.get("/", response_model=List[ClientOut])
def list_clients(business_id: UUID = Query(...), db: Session = Depends(get_db)):
    """Um cliente por telefone, ordenado por nome."""
    crud.get_business(db, business_id)
    return list_unique_clients(db, business_id)


@router.post("/deduplicate", response_model=DeduplicationOut)
def deduplicate(payload: DeduplicationRequest, request: Request, db: Session = Depends(get_db)):
    crud.get_business(db, payload.business_id)
    summary = deduplicate_clients(db, payload.business_id, publisher=get_publisher(request))
    return summary.as_dict()
