"""Bulk operations built on the batch runner.

Each operation wraps one remote call per item and hands pacing, retries and
progress accounting to ``BatchRunner`` under its own preset policy:

    dispatch_to_courier   bounded worker pool, no retry
    print_documents       strictly sequential, fixed delay between documents
    create_variants       sequential, retried on rate limiting; failures stay
                          available through ``failed_items()`` for requeueing
"""

import asyncio

import structlog

from shared.errors import TerminalBusinessError

from bulk.adapters import get_catalogue, get_courier, get_printer
from bulk.policy import COURIER_DISPATCH, SEQUENTIAL_PRINT, VARIANT_CREATION, BatchPolicy
from bulk.progress import BatchProgress
from bulk.runner import BatchRunner, ProgressCallback

logger = structlog.get_logger(__name__)


async def dispatch_to_courier(
    order_ids: list[str],
    courier=None,
    policy: BatchPolicy | None = None,
    on_progress: ProgressCallback | None = None,
    cancel: asyncio.Event | None = None,
    sleep=asyncio.sleep,
) -> BatchProgress:
    courier = courier or get_courier()

    async def dispatch(order_id):
        data = (await courier.bulk_dispatch([order_id])).unwrap()
        refused = next((f for f in data.get("failed", []) if str(f.get("order_id")) == str(order_id)), None)
        if refused is not None:
            raise TerminalBusinessError(refused.get("reason") or f"Courier refused order {order_id}")
        return data

    runner = BatchRunner(policy or COURIER_DISPATCH.from_env("COURIER_DISPATCH"), sleep=sleep)
    progress = await runner.run(order_ids, dispatch, on_progress=on_progress, cancel=cancel)
    logger.info("Courier dispatch completed", dispatched=progress.success_count, failed=progress.fail_count)
    return progress


async def print_documents(
    document_ids: list[str],
    document_type: str = "invoice",
    printer=None,
    policy: BatchPolicy | None = None,
    on_progress: ProgressCallback | None = None,
    cancel: asyncio.Event | None = None,
    sleep=asyncio.sleep,
) -> BatchProgress:
    printer = printer or get_printer()
    policy = policy or SEQUENTIAL_PRINT.from_env("SEQUENTIAL_PRINT")

    async def print_one(document_id):
        return await printer.print_document(document_id, document_type)

    progress = await BatchRunner(policy, sleep=sleep).run(document_ids, print_one, on_progress=on_progress, cancel=cancel)
    logger.info(
        "Bulk print completed",
        document_type=document_type,
        printed=progress.success_count,
        failed=progress.fail_count,
    )
    return progress


async def create_variants(
    payloads: list[dict],
    catalogue=None,
    policy: BatchPolicy | None = None,
    on_progress: ProgressCallback | None = None,
    cancel: asyncio.Event | None = None,
    sleep=asyncio.sleep,
) -> BatchProgress:
    catalogue = catalogue or get_catalogue()
    runner = BatchRunner(policy or VARIANT_CREATION.from_env("VARIANT_CREATION"), sleep=sleep)
    progress = await runner.run(payloads, catalogue.create_variant, on_progress=on_progress, cancel=cancel)
    if progress.fail_count:
        logger.warning(
            "Variants left in queue",
            failed=progress.fail_count,
            skus=[p.get("sku") for p in progress.failed_items()],
        )
    return progress
