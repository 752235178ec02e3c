"""
Pydantic schemas for remote payloads, webhooks, jobs and API responses.
"""
from wholesale.schemas.commerce import (
    BulkImportResult,
    BulkImportRow,
    ProductFilters,
    ProductResponse,
    ShippingInfo,
)
from wholesale.schemas.jobs import (
    CreateCustomerPayload,
    JobResponse,
    JobRunResult,
    PushOrderPayload,
    SalesOrderLineItem,
    parse_job_payload,
)
from wholesale.schemas.sync import PassResult, SyncResult, SyncRunResponse
from wholesale.schemas.webhooks import (
    BillWebhookPayload,
    CustomerWebhookPayload,
    InvoiceWebhookPayload,
    ItemWebhookPayload,
    WebhookPayloadError,
    WebhookResult,
)
from wholesale.schemas.zoho import ZohoContact, ZohoItem, ZohoItemPage

__all__ = [
    "BulkImportResult",
    "BulkImportRow",
    "ProductFilters",
    "ProductResponse",
    "ShippingInfo",
    "CreateCustomerPayload",
    "PushOrderPayload",
    "SalesOrderLineItem",
    "JobResponse",
    "JobRunResult",
    "parse_job_payload",
    "PassResult",
    "SyncResult",
    "SyncRunResponse",
    "ItemWebhookPayload",
    "CustomerWebhookPayload",
    "InvoiceWebhookPayload",
    "BillWebhookPayload",
    "WebhookPayloadError",
    "WebhookResult",
    "ZohoContact",
    "ZohoItem",
    "ZohoItemPage",
]
