from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class StateEntry(BaseModel):
    """One element of the States discovery response. Other keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    name: StrictStr


class SearchHit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    namus2Number: StrictInt = Field(ge=0, description="Case number within the category")


class SearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: Optional[int] = None
    results: List[SearchHit]


class Predicate(BaseModel):
    field: str
    operator: str = "IsIn"
    values: List[str]


class SearchRequest(BaseModel):
    """Body of the category search call.

    take: page size; only the first page is ever requested
    projections: fields returned for each hit
    predicates: filters, here a single state filter
    """

    take: int = Field(10000, ge=1)
    projections: List[str] = Field(default_factory=lambda: ["namus2Number"])
    predicates: List[Predicate]
