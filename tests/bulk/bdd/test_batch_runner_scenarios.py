"""BDD tests for resilient batch execution."""

import asyncio
from collections import Counter

import pytest
from bulk.policy import BatchPolicy
from bulk.runner import BatchRunner
from pytest_bdd import given, parsers, scenarios, then, when
from shared.errors import RateLimitError, TerminalBusinessError

scenarios("features/batch_runner.feature")


@pytest.fixture()
def failures():
    return {"rate_limited": {}, "permanent": set()}


@given(
    parsers.cfparse("a policy with batch size {size:d}, {workers:d} {noun} and {retries:d} retries"),
    target_fixture="policy",
)
def batch_policy(size, workers, noun, retries):
    return BatchPolicy(batch_size=size, worker_count=workers, max_retries=retries, backoff_factor=0.8)


@given(parsers.cfparse("item {item:d} is rate limited {times:d} times before succeeding"))
def rate_limited_item(failures, item, times):
    failures["rate_limited"][item] = times


@given(parsers.cfparse("items {first:d} and {second:d} always fail"))
def permanently_failing_items(failures, first, second):
    failures["permanent"].update({first, second})


@when(parsers.cfparse("{count:d} items are run"), target_fixture="progress")
def run_items(policy, failures, sleep, count):
    attempts = Counter()

    async def operation(item):
        attempts[item] += 1
        if item in failures["permanent"]:
            raise TerminalBusinessError(f"Item {item} rejected")
        if attempts[item] <= failures["rate_limited"].get(item, 0):
            raise RateLimitError("Too many requests")
        return item

    return asyncio.run(BatchRunner(policy, sleep=sleep).run(range(count), operation))


@then(parsers.cfparse("{succeeded:d} items succeed and {failed:d} fail"))
def outcome_counts(progress, succeeded, failed):
    assert progress.success_count == succeeded
    assert progress.fail_count == failed
    assert progress.completed == progress.total


@then(parsers.cfparse("{count:d} batches are processed"))
def batches_processed(progress, count):
    assert progress.batches_processed == count


@then("the failed items are queued for another attempt")
def failed_items_queued(progress, failures):
    assert progress.failed_items() == sorted(failures["permanent"])
