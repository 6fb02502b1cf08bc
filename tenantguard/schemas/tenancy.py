"""Tenancy API schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class BindingResponse(BaseModel):
    """Response for GET /tenancy/binding: resolved context vs. server-side binding."""

    org_id: UUID = Field(..., description="Organization resolved for the caller")
    user_id: UUID = Field(..., description="Authenticated user")
    setting: str = Field(..., description="Session setting holding the binding")
    bound_value: str | None = Field(
        None, description="Raw value of the setting in this transaction"
    )
    bound_org_id: UUID | None = Field(
        None, description="current_org_id() as seen by the row policies"
    )
    consistent: bool = Field(
        ..., description="True when the database binding equals the resolved org"
    )
