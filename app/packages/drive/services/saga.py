"""Saga 原语：跨多个独立存储的多步操作，没有共享事务，也没有补偿回滚。

每个步骤声明自己的失败策略：
- ``ABORT``：失败即向上抛出，整个操作中止；
- ``CONTINUE``：失败只记录日志，后续步骤照常执行。

扇出子操作（逐条更新/删除）的单条失败总是被捕获并计数，
最终汇总到 ``SagaReport``，由调用方返回并持久化。
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import now_iso

T = TypeVar("T")


class StepPolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"


class StepStatus(str, Enum):
    PENDING = "pending"
    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class SagaStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


@dataclass
class StepResult:
    name: str
    policy: StepPolicy
    status: StepStatus = StepStatus.PENDING
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "policy": self.policy.value,
            "status": self.status.value,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "error": self.error,
        }


@dataclass
class SagaReport:
    operation: str
    owner_id: str
    target: str
    steps: List[StepResult]
    id: str = field(default_factory=lambda: f"SAGA_{uuid.uuid4().hex}")
    status: SagaStatus = SagaStatus.RUNNING
    started_at: str = field(default_factory=now_iso)
    finished_at: Optional[str] = None

    def step(self, name: str) -> StepResult:
        for result in self.steps:
            if result.name == name:
                return result
        raise KeyError(f"undeclared saga step: {name}")

    @property
    def failed_items(self) -> int:
        return sum(s.failed for s in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation,
            "ownerId": self.owner_id,
            "target": self.target,
            "status": self.status.value,
            "failedItems": self.failed_items,
            "steps": [s.to_dict() for s in self.steps],
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


class Saga:
    """有序步骤列表 + 每步策略；通过 ``async with saga.step(name)`` 执行单步。"""

    def __init__(self, operation: str, *, owner_id: str, target: str, steps: Sequence[Tuple[str, StepPolicy]]) -> None:
        self.report = SagaReport(
            operation=operation,
            owner_id=owner_id,
            target=target,
            steps=[StepResult(name=name, policy=policy) for name, policy in steps],
        )

    @property
    def operation(self) -> str:
        return self.report.operation

    @asynccontextmanager
    async def step(self, name: str) -> AsyncIterator[StepResult]:
        result = self.report.step(name)
        try:
            yield result
        except AppException as exc:
            result.status = StepStatus.FAILED
            result.error = str(exc.detail)
            if result.policy is StepPolicy.ABORT:
                self.report.status = SagaStatus.ABORTED
                logger.error("%s.%s aborted target=%s: %s", self.operation, name, self.report.target, exc.detail)
                raise
            logger.warning("%s.%s failed, continuing target=%s: %s", self.operation, name, self.report.target, exc.detail)
        else:
            if result.status is StepStatus.PENDING:
                result.status = StepStatus.PARTIAL if result.failed else StepStatus.OK

    def skip(self, name: str, reason: str) -> None:
        result = self.report.step(name)
        result.status = StepStatus.SKIPPED
        result.error = reason
        logger.warning("%s.%s skipped target=%s: %s", self.operation, name, self.report.target, reason)

    def finish(self) -> SagaReport:
        report = self.report
        if report.status is SagaStatus.RUNNING:
            report.status = SagaStatus.SUCCEEDED
        for result in report.steps:
            if result.status is StepStatus.PENDING:
                result.status = StepStatus.SKIPPED
        report.finished_at = now_iso()
        logger.info(
            "%s.done target=%s status=%s failed_items=%s",
            report.operation,
            report.target,
            report.status.value,
            report.failed_items,
            extra={"saga_id": report.id, "operation": report.operation, "target": report.target},
        )
        return report


async def gather_best_effort(
    result: StepResult,
    items: Iterable[T],
    fn: Callable[[T], Awaitable[Any]],
    *,
    label: Callable[[T], str] = str,
) -> None:
    """并发执行所有子操作并一起等待；单条失败只计数并记日志。

    没有并发上限：结果集越大，同时发出的请求就越多。
    """
    batch = list(items)
    result.attempted += len(batch)

    async def _one(item: T) -> None:
        try:
            await fn(item)
        except AppException as exc:
            result.failed += 1
            logger.warning("%s item %s failed: %s", result.name, label(item), exc.detail)
        else:
            result.succeeded += 1

    await asyncio.gather(*(_one(item) for item in batch))
