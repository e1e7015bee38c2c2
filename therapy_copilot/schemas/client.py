from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class ClientCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str = Field(min_length=1, max_length=100)


class ClientResponse(BaseModel):
    id: UUID
    user_id: UUID
    therapist_id: UUID
    display_name: str
    created_at: datetime

    class Config:
        from_attributes = True
