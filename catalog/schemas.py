# catalog/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, timezone
from .attributes import Attribute, AttributeName, lower_names
from .config import resolve_upload_url

class _AttributesIn(BaseModel):
    @field_validator("attributes", mode="before", check_fields=False)
    @classmethod
    def _names_lower(cls, v):
        return lower_names(v)

def _strip_name(v):
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
    return v

class ResourceCreate(_AttributesIn):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    attributes: List[Attribute] = []
    images: List[str] = []
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    coordinates: Optional[str] = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coords_as_text(cls, v):
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("name")
    @classmethod
    def _name_stripped(cls, v):
        return _strip_name(v)

class ResourceUpdate(_AttributesIn):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    attributes: Optional[List[Attribute]] = None
    images: List[str] = []
    delete_image_ids: List[int] = []
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    coordinates: Optional[str] = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coords_as_text(cls, v):
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("name")
    @classmethod
    def _name_stripped(cls, v):
        return _strip_name(v)

class AttributeOut(BaseModel):
    name: AttributeName
    value: str
    class Config:
        from_attributes = True

class CoordinateOut(BaseModel):
    latitude: float
    longitude: float
    class Config:
        from_attributes = True

class ImageOut(BaseModel):
    id: int
    url: str
    alt: Optional[str] = None
    class Config:
        from_attributes = True

    @field_validator("url")
    @classmethod
    def _public_url(cls, v):
        return resolve_upload_url(v)

class ItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., ge=0)
    price: float = Field(..., ge=0)

class ItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    quantity: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)

class ItemOut(BaseModel):
    id: int
    name: str
    quantity: int
    price: float
    class Config:
        from_attributes = True

class CommentIn(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def _message_length(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Message is required")
        if len(v) > 500:
            raise ValueError("Message too long (max 500)")
        return v

class CommentOut(BaseModel):
    id: int
    resource_id: int
    user_id: int
    message: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    class Config:
        from_attributes = True

class ResourceOut(BaseModel):
    id: int
    name: str
    description: str
    price: float
    user_id: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    attributes: List[AttributeOut] = []
    coordinates: Optional[CoordinateOut] = None
    images: List[ImageOut] = []
    items: List[ItemOut] = []
    class Config:
        from_attributes = True

class ResourceDetail(ResourceOut):
    comments: List[CommentOut] = []

class ResourcePage(BaseModel):
    items: List[ResourceOut]
    total: int
    limit: int
    offset: int
    page: int

class ResourceFilter(BaseModel):
    text: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    user_id: Optional[int] = None
    sort_by: str = "createdAt"
    order: str = "DESC"

    @field_validator("date_from", "date_to")
    @classmethod
    def _as_utc(cls, v):
        # naive bounds are UTC; store and index both compare the same instant
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

class Suggestion(BaseModel):
    id: int
    name: str
    price: Optional[float] = None
    image: Optional[str] = None

class SuggestionList(BaseModel):
    items: List[Suggestion]

class ReindexOut(BaseModel):
    success: bool
    count: int = 0
