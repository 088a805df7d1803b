from pydantic import BaseModel, Field


class EntitlementsOut(BaseModel):
    success: bool = True
    content_refs: list[str] = Field(serialization_alias="contentRefs")


class EntitlementCheckOut(BaseModel):
    content_ref: str = Field(serialization_alias="contentRef")
    granted: bool


class ReconcileOut(BaseModel):
    total: int
    restored: int
    already_granted: int = Field(serialization_alias="alreadyGranted")
