"""
process_lock.py - 单实例进程锁

锁协议:
1. 在目录下创建带 PID 的锁文件 {name}-{pid}.lock
2. 以硬链接方式原子地创建稳定路径 {name}.lock
3. 链接成功即持有锁；失败说明已有同名实例在运行，删除自己的锁文件

硬链接创建对所有进程要么完全成功、要么完全失败，
不存在 "先检查再创建" 的竞态。
进程异常崩溃会残留锁文件，需要运维手动清理。
"""
import os
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from procboot.process.exceptions import LockContentionError
from procboot.process.exit_handlers import ExitHandlerChain

logger = logging.getLogger(__name__)


def lock_file_path(directory: str, name: str, pid: Optional[int] = None) -> str:
    """带 PID 的锁文件路径"""
    if pid is None:
        pid = os.getpid()
    return os.path.join(directory, f"{name}-{pid}.lock")


def link_path(directory: str, name: str) -> str:
    """其他实例探测的稳定锁路径"""
    return os.path.join(directory, f"{name}.lock")


def pid_file_path(directory: str, name: str) -> str:
    """PID 文件路径"""
    return os.path.join(directory, f"{name}.pid")


def _remove(path: str) -> None:
    """删除文件，文件不存在不视为错误"""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@dataclass
class Lock:
    """
    已获取的单实例锁

    Attributes:
        link: 稳定锁路径
        lock_file: 本进程创建的带 PID 锁文件
        acquired: 是否仍持有锁
    """
    link: str
    lock_file: str
    acquired: bool = True
    _release_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def release(self) -> None:
        """释放锁，删除两个锁文件；重复调用安全"""
        with self._release_lock:
            if not self.acquired:
                return
            self.acquired = False
            _remove(self.lock_file)
            _remove(self.link)
        logger.debug(f"已释放进程锁: {self.link}")

    def __enter__(self) -> "Lock":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def acquire_lock(
    directory: str,
    name: str,
    chain: Optional[ExitHandlerChain] = None,
) -> Lock:
    """
    获取目录范围内的单实例锁

    Args:
        directory: 存放锁文件的目录
        name: 实例名称
        chain: 退出处理器链，成功时在其上注册锁释放

    Returns:
        已获取的 Lock

    Raises:
        LockContentionError: 已有同名实例持有锁
        OSError: 无法创建带 PID 的锁文件
    """
    lock_file = lock_file_path(directory, name)
    link = link_path(directory, name)

    with open(lock_file, "w"):
        pass

    try:
        os.link(lock_file, link)
    except OSError as e:
        _remove(lock_file)
        raise LockContentionError(link, lock_file, e) from e

    lock = Lock(link=link, lock_file=lock_file)
    if chain is not None:
        chain.register(lock.release)

    logger.debug(f"已获取进程锁: {link}")
    return lock


def create_pid_file(path: str) -> None:
    """
    写入当前进程 PID (十进制，无换行)

    Raises:
        OSError: 写入失败
    """
    with open(path, "w", encoding="utf-8") as f:
        f.write(str(os.getpid()))
