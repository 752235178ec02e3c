"""
Zoho Books operations: customer contacts and sales orders.

Failures are returned as unsuccessful results with a message rather than
raised, so callers can fall back to queueing a retry job.
"""
from datetime import date
from typing import Any

from wholesale.core.logging import get_logger
from wholesale.schemas.jobs import CreateCustomerPayload, PushOrderPayload
from wholesale.schemas.zoho import CustomerCreateResult, CustomerLookupResult, SalesOrderResult
from wholesale.services.zoho_client import ZohoAPIError, ZohoClient

logger = get_logger(__name__)


def build_contact_body(payload: CreateCustomerPayload) -> dict[str, Any]:
    """Books contact body for a new wholesale customer."""
    first_name, _, last_name = payload.contact_name.partition(" ")
    body: dict[str, Any] = {
        "contact_name": payload.company_name or payload.contact_name,
        "company_name": payload.company_name,
        "contact_type": "customer",
        "status": "active",
        "contact_persons": [
            {
                "first_name": first_name,
                "last_name": last_name,
                "email": payload.email,
                "phone": payload.phone,
                "is_primary_contact": True,
            }
        ],
    }
    if payload.address or payload.city or payload.state or payload.zip_code:
        body["billing_address"] = {
            "address": payload.address,
            "city": payload.city,
            "state": payload.state,
            "zip": payload.zip_code,
            "country": "USA",
        }
    return body


def build_sales_order_body(payload: PushOrderPayload, order_date: date) -> dict[str, Any]:
    """Books sales order body; the local order number is the reference number."""
    shipping = ", ".join(
        part for part in (
            payload.shipping_address,
            payload.shipping_city,
            payload.shipping_state,
            payload.shipping_zip_code,
        )
        if part
    )
    body: dict[str, Any] = {
        "customer_id": payload.customer_id,
        "reference_number": payload.order_number,
        "date": order_date.isoformat(),
        "line_items": [
            {"item_id": line.item_id, "quantity": line.quantity, "rate": line.rate}
            for line in payload.line_items
        ],
        "notes": payload.notes or f"Web order: {payload.order_number}",
    }
    if shipping:
        body["shipping_address"] = {"address": shipping}
    return body


class ZohoBooksService:
    """Customer and sales order calls against Zoho Books."""

    def __init__(self, client: ZohoClient) -> None:
        self.client = client

    async def get_contact(self, customer_id: str) -> CustomerLookupResult:
        """
        Look up a Books contact by id.

        A 404 is reported as not found; other API errors are raised so the
        caller can record them.
        """
        contact = await self.client.get_contact(customer_id)
        if contact is None:
            return CustomerLookupResult(
                found=False,
                active=False,
                message="Customer account not found.",
            )

        return CustomerLookupResult(
            found=True,
            active=contact.is_active,
            customer_id=contact.contact_id,
            customer_name=contact.contact_name,
            company_name=contact.company_name,
            message="Customer account verified" if contact.is_active else "Customer account is inactive",
        )

    async def create_customer(self, payload: CreateCustomerPayload) -> CustomerCreateResult:
        logger.info("Creating Zoho Books customer", email=payload.email)
        try:
            contact = await self.client.create_contact(build_contact_body(payload))
        except ZohoAPIError as e:
            logger.error("Zoho Books customer creation failed", email=payload.email, error=str(e))
            return CustomerCreateResult(success=False, message=str(e) or "Failed to create customer")

        customer_id = contact.get("contact_id")
        if not customer_id:
            return CustomerCreateResult(success=False, message="Zoho Books returned no contact id")

        logger.info("Zoho Books customer created", customer_id=customer_id)
        return CustomerCreateResult(
            success=True,
            customer_id=str(customer_id),
            message="Customer created successfully in Zoho Books",
        )

    async def create_sales_order(self, payload: PushOrderPayload) -> SalesOrderResult:
        logger.info(
            "Creating Zoho Books sales order",
            customer_id=payload.customer_id,
            order_number=payload.order_number,
        )
        try:
            sales_order = await self.client.create_sales_order(
                build_sales_order_body(payload, date.today())
            )
        except ZohoAPIError as e:
            logger.error(
                "Zoho Books sales order creation failed",
                order_number=payload.order_number,
                error=str(e),
            )
            return SalesOrderResult(success=False, message=str(e) or "Failed to create sales order")

        sales_order_id = sales_order.get("salesorder_id")
        if not sales_order_id:
            return SalesOrderResult(success=False, message="Zoho Books returned no sales order id")

        logger.info("Zoho Books sales order created", sales_order_id=sales_order_id)
        return SalesOrderResult(
            success=True,
            sales_order_id=str(sales_order_id),
            sales_order_number=sales_order.get("salesorder_number"),
            message="Sales order created successfully",
        )
