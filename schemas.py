"""
Database Schemas for the Shoe Catalog API

Each Pydantic model corresponds to a MongoDB collection. Collection name is the
lowercase class name. References to other documents are stored as id
strings.
"""
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

Role = Literal["user", "admin"]
ShoeType = Literal["bertci", "trenking", "sapogi"]
Season = Literal["yozgi", "kuzgi"]


class User(BaseModel):
    name: str
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of the password")
    role: Role = "user"


class Catalog(BaseModel):
    type: ShoeType
    season: Season
    title: Optional[str] = None
    products: List[str] = Field(default_factory=list, description="Product ids")
    created_by: Optional[str] = Field(None, description="User id of the creator")


class Product(BaseModel):
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    sizes: List[Union[int, float]] = Field(default_factory=list)
    catalog: str = Field(..., description="Catalog id")
    created_by: Optional[str] = Field(None, description="User id of the creator")


def catalog_title(shoe_type: str, season: str) -> str:
    return f"{shoe_type} {season} catalog"
