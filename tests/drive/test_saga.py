"""Saga 原语：ABORT 步骤失败即中止，CONTINUE 步骤失败只记录。"""

import pytest

from app.packages.drive.core.exceptions import StoreError
from app.packages.drive.services.saga import (
    Saga,
    SagaStatus,
    StepPolicy,
    StepResult,
    StepStatus,
    gather_best_effort,
)


def _store_error():
    return StoreError("boom", store="records:sql", operation="update")


def _saga():
    return Saga(
        "entity.test",
        owner_id="u1",
        target="entities/Shopify",
        steps=[("strict", StepPolicy.ABORT), ("loose", StepPolicy.CONTINUE), ("tail", StepPolicy.CONTINUE)],
    )


@pytest.mark.asyncio
async def test_abort_step_propagates_and_marks_rest_skipped():
    saga = _saga()
    with pytest.raises(StoreError):
        async with saga.step("strict"):
            raise _store_error()

    report = saga.finish()
    assert report.status is SagaStatus.ABORTED
    assert report.step("strict").status is StepStatus.FAILED
    assert report.step("loose").status is StepStatus.SKIPPED
    assert report.finished_at is not None


@pytest.mark.asyncio
async def test_continue_step_failure_is_swallowed():
    saga = _saga()
    async with saga.step("strict"):
        pass
    async with saga.step("loose"):
        raise _store_error()
    async with saga.step("tail"):
        pass

    report = saga.finish()
    assert report.status is SagaStatus.SUCCEEDED
    assert report.step("loose").status is StepStatus.FAILED
    assert report.step("loose").error == "boom"
    assert report.step("tail").status is StepStatus.OK


@pytest.mark.asyncio
async def test_programming_errors_are_never_swallowed():
    saga = _saga()
    with pytest.raises(RuntimeError):
        async with saga.step("loose"):
            raise RuntimeError("bug")


@pytest.mark.asyncio
async def test_gather_best_effort_counts_each_item():
    result = StepResult(name="rewrite", policy=StepPolicy.CONTINUE)
    seen = []

    async def update(item: int) -> None:
        seen.append(item)
        if item % 2:
            raise _store_error()

    await gather_best_effort(result, range(5), update)

    assert sorted(seen) == [0, 1, 2, 3, 4]
    assert (result.attempted, result.succeeded, result.failed) == (5, 3, 2)


@pytest.mark.asyncio
async def test_partial_status_when_some_items_fail():
    saga = _saga()
    async with saga.step("loose") as step:
        step.attempted, step.succeeded, step.failed = 3, 2, 1
    assert saga.report.step("loose").status is StepStatus.PARTIAL
    assert saga.report.to_dict()["failedItems"] == 1
