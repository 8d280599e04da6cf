"""防抖执行器 (Debouncer) - 静默期计时 + 单个进行中任务

业务定义：
- schedule()：重置计时器，静默期结束后执行一次动作
- run_now()：立即执行；已有进行中的执行时丢弃本次请求
- 计时器到期时如果仍有进行中的执行，本次触发被丢弃（不排队）
- 完成订阅者在每次执行结束后收到结果

设计原则：
- 只依赖 asyncio 事件循环，计时器用 loop.call_later
- 进行中的执行以 asyncio.Task 表示，外部可以有界等待它结束
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    def __init__(self, action: Callable[[], Awaitable[T]], delay: float, *, name: str = "debounce") -> None:
        self._action = action
        self._delay = delay
        self._name = name
        self._timer: asyncio.TimerHandle | None = None
        self._in_flight: asyncio.Task[T] | None = None
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """是否有尚未到期的计时器"""
        return self._timer is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def subscribe(self, callback: Callable[[T], None]) -> None:
        self._subscribers.append(callback)

    def schedule(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._on_timer)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def run_now(self) -> asyncio.Task[T] | None:
        """立即执行动作

        返回：
            新建的执行任务；已有进行中的执行时返回 None
        """
        if self.in_flight:
            logger.debug(f"[{self._name}] 已有进行中的执行，丢弃本次请求")
            return None

        self.cancel()
        task = asyncio.get_running_loop().create_task(self._action())
        self._in_flight = task
        task.add_done_callback(self._on_done)
        return task

    async def wait_in_flight(self, timeout: float) -> bool:
        """等待进行中的执行结束

        返回：
            True 表示没有进行中的执行或已在超时前结束，False 表示超时
        """
        task = self._in_flight
        if task is None or task.done():
            return True

        done, _ = await asyncio.wait({task}, timeout=timeout)
        return task in done

    async def flush(self) -> T | None:
        """取消计时器并立即执行一次，等待其完成（用于关闭前落盘）"""
        had_pending = self.pending
        self.cancel()

        if self.in_flight:
            await asyncio.wait({self._in_flight})  # type: ignore[arg-type]
        if not had_pending:
            return None

        task = self.run_now()
        if task is None:
            return None
        return await task

    def _on_timer(self) -> None:
        self._timer = None
        if self.in_flight:
            logger.debug(f"[{self._name}] 计时器到期时仍有进行中的执行，丢弃本次触发")
            return
        self.run_now()

    def _on_done(self, task: asyncio.Task[T]) -> None:
        if self._in_flight is task:
            self._in_flight = None

        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            logger.error(f"[{self._name}] 执行异常: {error}", exc_info=error)
            return

        result = task.result()
        for callback in list(self._subscribers):
            try:
                callback(result)
            except Exception as e:
                logger.error(f"[{self._name}] 完成回调异常: {e}", exc_info=True)
