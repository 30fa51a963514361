"""
exit_handlers.py - 退出处理器链

职责:
1. 按注册顺序 (FIFO) 保存无参清理回调
2. 进程终止前恰好执行一次全部回调
3. 提供唯一的进程终止入口 terminate()

信号触发的终止与业务代码主动调用的终止共用同一条路径，
通过单次守卫保证处理器链只执行一次。
"""
import os
import sys
import logging
import threading
from typing import Callable, List, Optional

from procboot.utils.logging_setup import flush_logging

logger = logging.getLogger(__name__)

ExitHandler = Callable[[], None]


def _flush_stdio() -> None:
    """os._exit 不会刷新标准输出缓冲"""
    for stream in (sys.stdout, sys.stderr):
        try:
            if stream is not None:
                stream.flush()
        except (OSError, ValueError):
            pass


class ExitHandlerChain:
    """
    退出处理器链

    处理器按注册顺序执行，且在进程生命周期内最多执行一次。
    注册与执行可能发生在不同线程 (主线程 / 信号分发线程)，内部以互斥锁保护。

    Attributes:
        exit_func: 结束进程的函数，默认为 os._exit (任意线程调用均可结束进程)
        flush_func: 执行处理器前刷新日志的函数
        shutdown_func: 执行处理器后关闭日志系统的函数
    """

    def __init__(
        self,
        exit_func: Callable[[int], None] = os._exit,
        flush_func: Callable[[], None] = flush_logging,
        shutdown_func: Callable[[], None] = logging.shutdown,
    ) -> None:
        self.exit_func = exit_func
        self.flush_func = flush_func
        self.shutdown_func = shutdown_func

        self._handlers: List[ExitHandler] = []
        self._lock = threading.Lock()
        self._drained = False

        # 终止守卫
        self._terminate_lock = threading.Lock()
        self._terminating_thread: Optional[int] = None
        self._terminated = threading.Event()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    @property
    def drained(self) -> bool:
        """处理器链是否已经执行过"""
        with self._lock:
            return self._drained

    @property
    def terminating(self) -> bool:
        """是否已进入终止流程"""
        return self._terminating_thread is not None

    def register(self, handler: ExitHandler) -> None:
        """
        追加一个退出处理器

        Args:
            handler: 无参回调
        """
        with self._lock:
            if self._drained:
                logger.warning(f"退出处理器链已执行，忽略新注册的处理器: {handler!r}")
                return
            self._handlers.append(handler)

    def run_all(self) -> None:
        """
        按注册顺序执行全部处理器 (至多一次)

        处理器抛出的异常不会被吞掉，剩余处理器不再执行。
        """
        with self._lock:
            if self._drained:
                return
            self._drained = True
            handlers = self._handlers
            self._handlers = []

        for handler in handlers:
            handler()

    def terminate(self, code: int) -> None:
        """
        刷新日志、执行处理器链并以 code 结束进程

        并发调用时只有第一个调用者执行处理器链，其余调用者阻塞直到进程结束。
        处理器内部再次调用 terminate 时直接返回。

        Args:
            code: 进程退出码
        """
        if not self._terminate_lock.acquire(blocking=False):
            if self._terminating_thread == threading.get_ident():
                logger.debug(f"终止流程已在当前线程进行中，忽略 terminate({code})")
                return
            self._terminated.wait()
            return

        self._terminating_thread = threading.get_ident()
        try:
            self.flush_func()
            try:
                self.run_all()
            except Exception:
                logger.exception("退出处理器执行失败")
                code = 1
            self.shutdown_func()
            _flush_stdio()
            self.exit_func(code)
        finally:
            # 仅当 exit_func 返回时 (测试替身) 才会走到这里
            self._terminated.set()
