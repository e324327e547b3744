from typing import Any, Union
from pydantic import BaseModel, ConfigDict, Field

# Les champs restent Any: la validation métier se fait dans ProductStore


class ProductCreate(BaseModel):
    name: Any = None
    price: Any = None


class ProductUpdate(ProductCreate):
    pass


class ProductPatch(BaseModel):
    """Partial update: only fields sent by the client are applied."""
    name: Any = None
    price: Any = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Union[int, float]


class DeleteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deleted_id: int = Field(alias="deletedId")


class ErrorResponse(BaseModel):
    error: str
