"""
cpu.py - CPU 数量探测

通过平台相关的系统命令统计可用处理器数量，任何失败都回退为 1。
"""
import sys
import logging
from typing import Callable, Optional, Sequence

from procboot.utils.command import run_command

logger = logging.getLogger(__name__)

PLATFORM = sys.platform

SYSCTL_COMMAND = ["/usr/sbin/sysctl", "-n", "hw.ncpu"]
CPUINFO_COMMAND = ["/bin/cat", "/proc/cpuinfo"]


def _is_bsd(platform: str) -> bool:
    return platform == "darwin" or platform.startswith("freebsd")


def detect_cpu_count(
    platform: Optional[str] = None,
    runner: Callable[[Sequence[str]], str] = run_command,
) -> int:
    """
    探测当前机器的 CPU 数量

    - BSD 系统 (darwin/freebsd): sysctl -n hw.ncpu
    - Linux: 统计 /proc/cpuinfo 中以 processor 开头的行
    - 其他平台假定只有一个处理器

    Args:
        platform: 平台标识，默认为 sys.platform
        runner: 命令执行函数，默认为 run_command

    Returns:
        CPU 数量，始终 >= 1
    """
    platform = platform or PLATFORM
    count = 0

    try:
        if _is_bsd(platform):
            output = runner(SYSCTL_COMMAND)
            count = int(output.strip())
        elif platform.startswith("linux"):
            output = runner(CPUINFO_COMMAND)
            count = sum(
                1 for line in output.split("\n") if line.startswith("processor")
            )
    except Exception as e:
        logger.debug(f"CPU 数量探测失败，回退为 1: {e}")
        return 1

    if count < 1:
        return 1
    return count
