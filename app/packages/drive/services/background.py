"""后台任务：命名的“分离任务”，调用方只负责调度，不等待完成。

任务不落盘：进程在任务执行前退出，任务即丢失，没有至少一次的投递保证。
优雅停机时 ``drain`` 会尽量等待剩余任务完成。
"""

from __future__ import annotations

import asyncio
from typing import Coroutine, List, Optional, Set

from app.packages.drive.core.logger import logger


class DetachedTaskRunner:
    def __init__(self) -> None:
        # 事件循环只持有任务的弱引用，这里保留强引用直到完成
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, name: str, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("background.scheduled name=%s", name)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        name = task.get_name()
        if task.cancelled():
            logger.warning("background.cancelled name=%s", name)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background.failed name=%s", name, exc_info=exc)
        else:
            logger.info("background.done name=%s", name)

    def pending(self) -> List[str]:
        return sorted(t.get_name() for t in self._tasks if not t.done())

    async def drain(self, timeout: Optional[float] = None) -> int:
        """等待当前所有任务结束，返回已完成的任务数。"""
        tasks = list(self._tasks)
        if not tasks:
            return 0
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning("background.drain_timeout pending=%s", sorted(t.get_name() for t in pending))
        return len(done)
