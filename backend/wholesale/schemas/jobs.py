"""
Job payload schemas.

Payloads are a tagged union on job_type; a stored payload is parsed back
into exactly one of these models before dispatch.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from wholesale.models.job import JobType


class SalesOrderLineItem(BaseModel):
    item_id: str
    quantity: int
    rate: float
    name: Optional[str] = None
    sku: Optional[str] = None


class CreateCustomerPayload(BaseModel):
    """Create a Zoho Books contact for an approved user."""

    job_type: Literal["create_zoho_customer"] = JobType.CREATE_ZOHO_CUSTOMER.value
    email: str
    contact_name: str
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class PushOrderPayload(BaseModel):
    """Create a Zoho Books sales order for an approved order."""

    job_type: Literal["push_order_to_zoho"] = JobType.PUSH_ORDER_TO_ZOHO.value
    customer_id: str
    order_number: str
    line_items: list[SalesOrderLineItem] = Field(..., min_length=1)
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_zip_code: Optional[str] = None
    notes: Optional[str] = None


JobPayload = Annotated[
    Union[CreateCustomerPayload, PushOrderPayload],
    Field(discriminator="job_type"),
]

job_payload_adapter: TypeAdapter[JobPayload] = TypeAdapter(JobPayload)


def parse_job_payload(raw: Optional[str]) -> Union[CreateCustomerPayload, PushOrderPayload]:
    """Parse a stored JSON payload into its typed model."""
    return job_payload_adapter.validate_json(raw or "{}")


class JobResponse(BaseModel):
    """Schema for job API responses."""

    id: str
    job_type: str = Field(alias="jobType")
    status: str
    user_id: Optional[str] = Field(None, alias="userId")
    order_id: Optional[str] = Field(None, alias="orderId")
    attempts: int
    max_attempts: int = Field(alias="maxAttempts")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    created_at: datetime = Field(alias="createdAt")
    last_attempt_at: Optional[datetime] = Field(None, alias="lastAttemptAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class JobRunResult(BaseModel):
    """Outcome of one job during a queue drain."""

    job_id: str = Field(alias="jobId")
    job_type: str = Field(alias="jobType")
    success: bool
    status: str
    message: str

    model_config = ConfigDict(populate_by_name=True)
