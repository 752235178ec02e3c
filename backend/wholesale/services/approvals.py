"""
Admin approval flows for accounts and orders.

Approval is local first. The Zoho Books call is attempted inline and, when
it fails, queued as a retry job so the admin action never blocks on Zoho.
"""
from typing import Optional

from wholesale.core.database import SessionContextFactory, utc_now
from wholesale.core.logging import get_logger
from wholesale.models.order import OrderStatus
from wholesale.models.user import User, UserRole, UserStatus
from wholesale.repositories.job import JobRepository
from wholesale.repositories.order import OrderRepository
from wholesale.repositories.product import ProductRepository
from wholesale.repositories.user import UserRepository
from wholesale.schemas.commerce import ApprovalResult
from wholesale.schemas.jobs import CreateCustomerPayload, PushOrderPayload, SalesOrderLineItem
from wholesale.services.commerce import CommerceError, RecordNotFoundError
from wholesale.services.job_worker import mark_order_pushed
from wholesale.services.zoho_books import ZohoBooksService

logger = get_logger(__name__)

APPROVABLE_ORDER_STATUSES = {OrderStatus.PENDING_APPROVAL.value}
REJECTABLE_ORDER_STATUSES = {OrderStatus.PENDING_APPROVAL.value, OrderStatus.PROCESSING.value}


class OrderStateError(CommerceError):
    """The order's current status does not allow the requested transition."""
    pass


def customer_payload_for(user: User) -> CreateCustomerPayload:
    return CreateCustomerPayload(
        email=user.email,
        contact_name=user.contact_name or user.business_name or user.email,
        company_name=user.business_name,
        phone=user.phone,
        address=user.address,
        city=user.city,
        state=user.state,
        zip_code=user.zip_code,
    )


class ApprovalService:
    def __init__(self, books: ZohoBooksService, session_context: SessionContextFactory) -> None:
        self.books = books
        self.session_context = session_context

    async def approve_user(self, user_id: str) -> ApprovalResult:
        """
        Approve an account, creating its Zoho Books contact first when missing.

        If the contact cannot be created the account stays unapproved and a
        create_zoho_customer job is queued; the job backfills the Zoho id.
        """
        async with self.session_context() as session:
            user = await UserRepository(session).get_by_id(user_id)
            if user is None:
                raise RecordNotFoundError("User not found")
            if user.status == UserStatus.APPROVED.value:
                raise CommerceError("User is already approved")
            zoho_customer_id = user.zoho_customer_id
            payload = customer_payload_for(user)

        if not zoho_customer_id:
            result = await self.books.create_customer(payload)
            if not result.success:
                async with self.session_context() as session:
                    job = await JobRepository(session).create_job(payload, user_id=user_id)
                    job_id = job.id
                logger.warning("Customer creation queued for retry", user_id=user_id, job_id=job_id)
                return ApprovalResult(
                    success=False,
                    zoho_error=True,
                    job_id=job_id,
                    message=(
                        f"Failed to create customer in Zoho Books: {result.message}. "
                        "A retry job has been created."
                    ),
                )
            zoho_customer_id = result.customer_id

        async with self.session_context() as session:
            users = UserRepository(session)
            user = await users.get_by_id(user_id)
            await users.update(user, {
                "zoho_customer_id": zoho_customer_id,
                "zoho_is_active": True,
                "status": UserStatus.APPROVED.value,
                "role": UserRole.CUSTOMER.value,
            })

        logger.info("User approved", user_id=user_id, zoho_customer_id=zoho_customer_id)
        return ApprovalResult(
            success=True,
            zoho_customer_id=zoho_customer_id,
            message="User approved successfully",
        )

    async def reject_user(self, user_id: str) -> ApprovalResult:
        async with self.session_context() as session:
            users = UserRepository(session)
            user = await users.get_by_id(user_id)
            if user is None:
                raise RecordNotFoundError("User not found")
            await users.update(user, {"status": UserStatus.REJECTED.value})

        logger.info("User rejected", user_id=user_id)
        return ApprovalResult(success=True, message="User rejected")

    async def approve_order(self, order_id: str, approved_by: Optional[str] = None) -> ApprovalResult:
        """
        Approve an order and push it to Zoho Books as a sales order.

        Only lines whose product carries a Zoho item id are sent. A failed
        push leaves the order in processing with a push_order_to_zoho job.
        """
        async with self.session_context() as session:
            orders = OrderRepository(session)
            order = await orders.get_by_id(order_id)
            if order is None:
                raise RecordNotFoundError("Order not found")
            if order.status not in APPROVABLE_ORDER_STATUSES:
                raise OrderStateError(f"Cannot approve order with status {order.status}")

            await orders.update(order, {
                "status": OrderStatus.APPROVED.value,
                "approved_by": approved_by,
                "approved_at": utc_now(),
            })

            customer = await UserRepository(session).get_by_id(order.user_id)
            products = await ProductRepository(session).get_many([item.product_id for item in order.items])

            line_items = []
            for item in order.items:
                product = products.get(item.product_id)
                if product is None or not product.zoho_item_id:
                    logger.info("Skipping line without Zoho item id", order=order.order_number, sku=item.sku)
                    continue
                line_items.append(SalesOrderLineItem(
                    item_id=product.zoho_item_id,
                    quantity=item.quantity,
                    rate=float(item.unit_price),
                    name=item.product_name,
                    sku=item.sku,
                ))

            if customer is None or not customer.zoho_customer_id:
                return ApprovalResult(
                    success=True,
                    message="Order approved (not pushed to Zoho - no customer ID)",
                )
            if not line_items:
                return ApprovalResult(
                    success=True,
                    message="Order approved (not pushed to Zoho - no mapped products)",
                )

            customer_id = customer.id
            payload = PushOrderPayload(
                customer_id=customer.zoho_customer_id,
                order_number=order.order_number,
                line_items=line_items,
                shipping_address=order.shipping_address,
                shipping_city=order.shipping_city,
                shipping_state=order.shipping_state,
                shipping_zip_code=order.shipping_zip_code,
                notes=f"Web order from {customer.business_name or customer.email}",
            )

        result = await self.books.create_sales_order(payload)
        if result.success:
            await mark_order_pushed(self.session_context, order_id, result.sales_order_id)
            logger.info("Order pushed to Zoho", order_number=payload.order_number, sales_order_id=result.sales_order_id)
            return ApprovalResult(
                success=True,
                zoho_sales_order_id=result.sales_order_id,
                message="Order approved and pushed to Zoho Books",
            )

        async with self.session_context() as session:
            job = await JobRepository(session).create_job(payload, user_id=customer_id, order_id=order_id)
            job_id = job.id
            orders = OrderRepository(session)
            order = await orders.get_by_id(order_id)
            await orders.update(order, {"status": OrderStatus.PROCESSING.value})

        logger.warning("Order push queued for retry", order_number=payload.order_number, job_id=job_id)
        return ApprovalResult(
            success=True,
            zoho_error=True,
            job_id=job_id,
            message=f"Order approved but Zoho push failed: {result.message}. A retry job has been created.",
        )

    async def reject_order(
        self,
        order_id: str,
        rejected_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ApprovalResult:
        async with self.session_context() as session:
            orders = OrderRepository(session)
            order = await orders.get_by_id(order_id)
            if order is None:
                raise RecordNotFoundError("Order not found")
            if order.status not in REJECTABLE_ORDER_STATUSES:
                raise OrderStateError(f"Cannot reject order with status {order.status}")
            await orders.update(order, {
                "status": OrderStatus.REJECTED.value,
                "rejected_by": rejected_by,
                "rejected_at": utc_now(),
                "rejection_reason": reason,
            })

        logger.info("Order rejected", order_id=order_id, reason=reason)
        return ApprovalResult(success=True, message="Order rejected")
