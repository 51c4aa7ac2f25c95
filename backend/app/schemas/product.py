"""Product request/response schemas."""
from typing import Optional
from datetime import datetime
from app.schemas.base import CamelModel, CamelORMModel


class ProductCreate(CamelModel):
    name: str
    description: Optional[str] = None


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProductResponse(CamelORMModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
