"""
信号处理模块：提供进程信号的统一接收与分发。

SignalDispatcher 在后台线程中接收投递给进程的全部异步信号，
按信号查找已注册的处理器并同步调用；未注册处理器的信号被静默吸收。
"""
import queue
import signal
import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

SignalCallback = Callable[[], None]

# 待处理信号缓冲上限，缓冲满时新到达的信号被丢弃
SIGNAL_BUFFER_SIZE = 100

# 同步故障信号与不可捕获信号不接管
_EXCLUDED_SIGNAL_NAMES = (
    "SIGKILL", "SIGSTOP",
    "SIGSEGV", "SIGBUS", "SIGFPE", "SIGILL", "SIGTRAP", "SIGABRT",
)

# 通知分发线程退出
_STOP = object()


def catchable_signals() -> Set[signal.Signals]:
    """可安装处理器的全部异步信号"""
    excluded = {
        getattr(signal, name) for name in _EXCLUDED_SIGNAL_NAMES if hasattr(signal, name)
    }
    return {sig for sig in signal.valid_signals() if sig not in excluded}


def _as_signal(sig: int) -> Any:
    try:
        return signal.Signals(sig)
    except ValueError:
        # 实时信号等没有枚举名的编号
        return sig


class SignalDispatcher:
    """
    信号分发器

    为全部可捕获信号安装只负责入队的处理器，信号放入有界缓冲；
    分发线程按投递顺序逐个取出并调用已注册的处理器。
    分发线程是守护线程，随进程结束而结束。

    处理器在分发线程中执行，与主线程并发，修改共享状态时需自行同步。
    """

    def __init__(self, buffer_size: int = SIGNAL_BUFFER_SIZE) -> None:
        self._handlers: Dict[Any, SignalCallback] = {}
        self._lock = threading.Lock()
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=buffer_size)

        self._started = False
        self._worker: Optional[threading.Thread] = None
        self._previous: Dict[Any, Any] = {}

        # 缓冲满时丢弃的信号数量
        self.dropped = 0
        self._reported_dropped = 0

    @property
    def started(self) -> bool:
        return self._started

    @property
    def pending(self) -> int:
        """缓冲中尚未分发的信号数量"""
        return self._queue.qsize()

    def register_handler(self, sig: int, handler: SignalCallback) -> None:
        """
        为指定信号注册处理器 (覆盖已有的处理器)

        Args:
            sig: 信号
            handler: 无参回调
        """
        with self._lock:
            self._handlers[_as_signal(sig)] = handler

    def unregister_handler(self, sig: int) -> None:
        """移除指定信号的处理器，不存在时忽略"""
        with self._lock:
            self._handlers.pop(_as_signal(sig), None)

    def get_handler(self, sig: int) -> Optional[SignalCallback]:
        with self._lock:
            return self._handlers.get(_as_signal(sig))

    def dispatch(self, sig: int) -> bool:
        """
        调用信号对应的处理器

        Returns:
            True 如果找到并执行了处理器
        """
        handler = self.get_handler(sig)
        if handler is None:
            logger.debug(f"信号 {sig} 无处理器，已忽略")
            return False
        handler()
        return True

    def enqueue(self, sig: int) -> bool:
        """
        把信号放入待处理缓冲 (在信号处理上下文中调用，不做日志输出)

        Returns:
            False 如果缓冲已满、信号被丢弃
        """
        try:
            self._queue.put_nowait(_as_signal(sig))
        except queue.Full:
            self.dropped += 1
            return False
        return True

    def start(self) -> None:
        """
        启动信号接收与后台分发

        必须在主线程调用 (signal.signal 的限制)，重复调用无副作用。
        """
        with self._lock:
            if self._started:
                return
            self._started = True

        for sig in sorted(catchable_signals()):
            try:
                self._previous[sig] = signal.signal(sig, self._on_signal)
            except (OSError, ValueError, RuntimeError):
                # 部分编号被运行库保留，无法安装处理器
                continue

        self._worker = threading.Thread(
            target=self._dispatch_loop, name="signal-dispatcher", daemon=True
        )
        self._worker.start()
        logger.debug(f"信号分发器已启动，接管 {len(self._previous)} 个信号")

    def restore(self) -> None:
        """
        恢复启动前的信号处置并停止分发线程（仅用于测试）

        之后可以再次调用 start()。
        """
        for sig, previous in self._previous.items():
            if previous is not None:
                signal.signal(sig, previous)
        self._previous.clear()

        worker = self._worker
        if worker is not None and worker.is_alive():
            self._queue.put(_STOP)
            worker.join(timeout=5)
        self._worker = None

        with self._lock:
            self._started = False

    def _on_signal(self, signum: int, frame) -> None:
        self.enqueue(signum)

    def _dispatch_loop(self) -> None:
        while True:
            sig = self._queue.get()
            try:
                if sig is _STOP:
                    return
                if self.dropped != self._reported_dropped:
                    logger.warning(
                        f"信号缓冲已满，累计丢弃 {self.dropped - self._reported_dropped} 个信号"
                    )
                    self._reported_dropped = self.dropped
                try:
                    self.dispatch(sig)
                except Exception:
                    # 处理器异常不影响后续信号的分发
                    logger.exception(f"信号 {sig} 的处理器执行失败")
            finally:
                self._queue.task_done()
