from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.database import get_db
from therapy_copilot.models.user import Therapist
from therapy_copilot.api.deps import get_current_therapist
from therapy_copilot.schemas.client import ClientCreate, ClientResponse
from therapy_copilot.services.client_service import ClientService

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    data: ClientCreate,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    """Add a client to the therapist's roster. 409 if the email is taken."""
    return await ClientService(db).create(data, therapist)


@router.get("", response_model=list[ClientResponse])
async def list_clients(
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    return await ClientService(db).list_for_therapist(therapist)
