from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Product price must be positive")
    category: Optional[str] = Field(None, max_length=50)
    available: bool = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Product name cannot be empty or whitespace only')
        return v.strip()

class ProductCreate(ProductBase):
    pass

class ProductUpdate(BaseModel):
    """Field update set: only fields present in the request are written."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    category: Optional[str] = Field(None, max_length=50)
    available: Optional[bool] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is not None and (not v or not v.strip()):
            raise ValueError('Product name cannot be empty or whitespace only')
        return v.strip() if v else v

class ProductImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    is_main: bool

class ProductOut(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    main_image_url: Optional[str] = None

class ProductDetail(ProductOut):
    created_at: datetime
    images: List[ProductImageOut] = []

class ProductAdminOut(ProductOut):
    created_by: Optional[int] = None
    creator_name: Optional[str] = None
    created_at: datetime
