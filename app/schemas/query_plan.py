from pydantic import BaseModel, ConfigDict
from typing import Any, List, Literal, Optional, Tuple

OperatorKind = Literal["eq", "like", "notEq", "gt", "lt", "gte", "lte", "in", "notIn", "isNull", "isNotNull"]
Direction = Literal["asc", "desc"]

class FilterSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    operator: OperatorKind
    raw_value: str
    value: Any = None

class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    direction: Direction = "asc"

class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit: int
    page: int = 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

class RelationDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: Tuple[str, ...] = ()
    contain: Tuple[str, ...] = ()

class QueryPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    filters: List[FilterSpec] = []
    sort: List[SortSpec] = []
    pagination: Pagination
    relations: RelationDirective = RelationDirective()
    keyword: Optional[str] = None
