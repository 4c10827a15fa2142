"""Pydantic schemas for record query and write requests."""
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class IncludeSpec(BaseModel):
    association: str
    columns: Optional[list[str]] = None
    where: Optional[dict[str, Any]] = None


class QueryRequest(BaseModel):
    columns: Optional[list[str]] = Field(None, description="Column names; 'assoc.col' selects from an association")
    where: Optional[dict[str, Any]] = None
    include: Optional[list[Union[str, IncludeSpec]]] = None
    order: Optional[list[Union[str, list[str]]]] = None
    limit: Optional[int] = Field(None, ge=0)
    offset: Optional[int] = Field(None, ge=0)

    def include_items(self) -> Optional[list]:
        if self.include is None:
            return None
        return [i if isinstance(i, str) else i.model_dump() for i in self.include]


class InsertRequest(BaseModel):
    data: dict[str, Any]


class UpdateRequest(BaseModel):
    data: dict[str, Any]
    where: Optional[dict[str, Any]] = None


class DeleteRequest(BaseModel):
    where: Optional[dict[str, Any]] = None
    force: bool = False


class QueryResponse(BaseModel):
    table: str
    count: int
    rows: list[dict[str, Any]]
