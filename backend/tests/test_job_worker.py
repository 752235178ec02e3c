"""
Tests for the outbound job queue processor.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from wholesale.models.job import Job, JobStatus, JobType
from wholesale.models.order import Order, OrderStatus
from wholesale.repositories.job import JobRepository
from wholesale.repositories.order import OrderRepository
from wholesale.repositories.user import UserRepository
from wholesale.schemas.jobs import CreateCustomerPayload, PushOrderPayload, SalesOrderLineItem
from wholesale.schemas.zoho import CustomerCreateResult, SalesOrderResult
from wholesale.services.job_worker import JobQueueProcessor


@pytest.fixture
def books():
    books = MagicMock()
    books.create_customer = AsyncMock(return_value=CustomerCreateResult(
        success=True,
        customer_id="ZC-1",
        message="Customer created successfully in Zoho Books",
    ))
    books.create_sales_order = AsyncMock(return_value=SalesOrderResult(
        success=True,
        sales_order_id="SO-1",
        sales_order_number="SO-00001",
        message="Sales order created successfully",
    ))
    return books


@pytest.fixture
def processor(books, session_context, settings):
    return JobQueueProcessor(books, session_context, settings=settings)


async def queue_job(session_context, payload, **kwargs) -> Job:
    async with session_context() as session:
        return await JobRepository(session).create_job(payload, **kwargs)


async def get_job(session_context, job_id) -> Job:
    async with session_context() as session:
        return await JobRepository(session).get_by_id(job_id)


async def make_order(session_context, user_id, **overrides) -> Order:
    values = {
        "order_number": "WH-TEST-0001",
        "user_id": user_id,
        "status": OrderStatus.PROCESSING.value,
        "subtotal": Decimal("20.00"),
        "total_amount": Decimal("20.00"),
    }
    values.update(overrides)
    async with session_context() as session:
        order = Order(**values)
        session.add(order)
        await session.flush()
    return order


def push_payload(order_number="WH-TEST-0001") -> PushOrderPayload:
    return PushOrderPayload(
        customer_id="ZC-1",
        order_number=order_number,
        line_items=[SalesOrderLineItem(item_id="Z1", quantity=2, rate=10.0)],
    )


def customer_payload(email="buyer@example.com") -> CreateCustomerPayload:
    return CreateCustomerPayload(email=email, contact_name="Jane Buyer", company_name="Buyer LLC")


class TestCreateCustomerJob:
    async def test_success_backfills_customer_id(self, processor, books, make_user, session_context):
        user = await make_user(zoho_customer_id=None)
        job = await queue_job(session_context, customer_payload(user.email), user_id=user.id)

        results = await processor.process_job_queue()

        assert len(results) == 1
        assert results[0].success is True
        assert results[0].job_type == JobType.CREATE_ZOHO_CUSTOMER.value
        stored = await get_job(session_context, job.id)
        assert stored.status == JobStatus.COMPLETED.value
        assert stored.attempts == 1
        assert stored.completed_at is not None
        assert stored.error_message is None
        async with session_context() as session:
            assert (await UserRepository(session).get_by_id(user.id)).zoho_customer_id == "ZC-1"
        books.create_customer.assert_awaited_once()

    async def test_failure_retried_until_max_attempts(self, processor, books, session_context):
        books.create_customer.return_value = CustomerCreateResult(success=False, message="Duplicate email")
        job = await queue_job(session_context, customer_payload(), max_attempts=2)

        first = await processor.process_job_queue()
        after_first = await get_job(session_context, job.id)
        second = await processor.process_job_queue()
        after_second = await get_job(session_context, job.id)
        third = await processor.process_job_queue()

        assert first[0].success is False
        assert after_first.status == JobStatus.PENDING.value
        assert after_first.error_message == "Duplicate email"
        assert after_second.status == JobStatus.FAILED.value
        assert after_second.attempts == 2
        assert second[0].status == JobStatus.FAILED.value
        # Failed jobs are not picked up again
        assert third == []
        assert books.create_customer.await_count == 2

    async def test_unexpected_error_counts_as_failure(self, processor, books, session_context):
        books.create_customer.side_effect = RuntimeError("connection reset")
        job = await queue_job(session_context, customer_payload(), max_attempts=1)

        results = await processor.process_job_queue()

        assert results[0].success is False
        assert results[0].message == "connection reset"
        assert (await get_job(session_context, job.id)).status == JobStatus.FAILED.value


class TestPushOrderJob:
    async def test_success_marks_order_pushed(self, processor, books, make_user, session_context):
        user = await make_user(zoho_customer_id="ZC-1")
        order = await make_order(session_context, user.id)
        job = await queue_job(session_context, push_payload(), user_id=user.id, order_id=order.id)

        result = await processor.process_job(job.id)

        assert result.success is True
        assert "SO-00001" in result.message
        async with session_context() as session:
            stored = await OrderRepository(session).get_by_id(order.id)
        assert stored.status == OrderStatus.APPROVED.value
        assert stored.zoho_sales_order_id == "SO-1"
        assert stored.zoho_pushed_at is not None

    async def test_already_pushed_order_not_sent_twice(self, processor, books, make_user, session_context):
        user = await make_user(zoho_customer_id="ZC-1")
        order = await make_order(session_context, user.id, zoho_sales_order_id="SO-EXISTING")
        job = await queue_job(session_context, push_payload(), order_id=order.id)

        result = await processor.process_job(job.id)

        assert result.success is True
        assert result.message == "Order already pushed as SO-EXISTING"
        books.create_sales_order.assert_not_awaited()

    async def test_failed_push_keeps_order_processing(self, processor, books, make_user, session_context):
        books.create_sales_order.return_value = SalesOrderResult(success=False, message="Item inactive")
        user = await make_user(zoho_customer_id="ZC-1")
        order = await make_order(session_context, user.id)
        job = await queue_job(session_context, push_payload(), order_id=order.id)

        result = await processor.process_job(job.id)

        assert result.success is False
        assert result.status == JobStatus.PENDING.value
        async with session_context() as session:
            stored = await OrderRepository(session).get_by_id(order.id)
        assert stored.status == OrderStatus.PROCESSING.value
        assert stored.zoho_sales_order_id is None


class TestJobLifecycle:
    async def test_invalid_payload_fails(self, processor, books, session_context):
        async with session_context() as session:
            job = await JobRepository(session).create({
                "job_type": JobType.PUSH_ORDER_TO_ZOHO.value,
                "payload": '{"job_type": "push_order_to_zoho", "customer_id": "ZC-1"}',
                "max_attempts": 1,
            })

        result = await processor.process_job(job.id)

        assert result.success is False
        assert result.status == JobStatus.FAILED.value
        books.create_sales_order.assert_not_awaited()

    async def test_non_pending_job_skipped(self, processor, session_context):
        job = await queue_job(session_context, customer_payload())
        async with session_context() as session:
            jobs = JobRepository(session)
            await jobs.update(await jobs.get_by_id(job.id), {"status": JobStatus.COMPLETED.value})

        assert await processor.process_job(job.id) is None
        assert await processor.process_job("missing") is None

    async def test_retry_rearms_failed_job(self, session_context):
        job = await queue_job(session_context, customer_payload())
        async with session_context() as session:
            jobs = JobRepository(session)
            stored = await jobs.update(await jobs.get_by_id(job.id), {
                "status": JobStatus.FAILED.value,
                "attempts": 3,
                "error_message": "boom",
            })
            retried = await jobs.retry_job(stored)

        assert retried.status == JobStatus.PENDING.value
        assert retried.attempts == 0
        assert retried.error_message is None

    async def test_jobs_run_oldest_first(self, processor, books, session_context):
        first = await queue_job(session_context, customer_payload("a@example.com"))
        second = await queue_job(session_context, customer_payload("b@example.com"))

        results = await processor.process_job_queue()

        assert [r.job_id for r in results] == [first.id, second.id]
