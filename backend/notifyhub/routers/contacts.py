"""Endpoints for the caller's email address and push tokens."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from notifyhub.core.auth import get_current_user
from notifyhub.core.database import get_db
from notifyhub.repositories.contact_repository import ContactRepository
from notifyhub.schemas.contact import ContactResponse, ContactUpdate

router = APIRouter()


@router.get(
    "/me",
    response_model=ContactResponse,
    summary="Get delivery addresses",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "No delivery addresses registered"},
    },
)
async def get_contact(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> ContactResponse:
    contact = ContactRepository(db).get_by_user(user_id)
    if contact is None:
        raise HTTPException(status_code=404, detail="No delivery addresses registered")
    return ContactResponse.model_validate(contact)


@router.put(
    "/me",
    response_model=ContactResponse,
    summary="Register delivery addresses",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def upsert_contact(
    data: ContactUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> ContactResponse:
    contact = ContactRepository(db).upsert(
        user_id,
        email=str(data.email) if data.email else None,
        push_tokens=data.push_tokens,
    )
    return ContactResponse.model_validate(contact)
