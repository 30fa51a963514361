"""进程运行时异常类型定义"""

from typing import Sequence


class ProcessLockError(Exception):
    """进程锁错误基类"""


class LockContentionError(ProcessLockError):
    """进程锁已被其他实例持有"""

    def __init__(self, link: str, lock_file: str, original_error: Exception) -> None:
        self.link = link
        self.lock_file = lock_file
        self.original_error = original_error
        super().__init__(
            f"Another instance already holds the lock {link} "
            f"(could not link {lock_file}): {original_error}"
        )


class CommandError(Exception):
    """外部命令无法启动或输出读取失败（非零退出码不属于此类）"""

    def __init__(self, command: str, args: Sequence[str]) -> None:
        self.command = command
        self.argv = list(args)
        super().__init__(
            f"Couldn't successfully execute: {command} {self.argv}"
        )


class ConfigError(Exception):
    """运行时配置错误"""
