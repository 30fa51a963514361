"""
command.py - 外部命令执行

同步运行外部程序并捕获其标准输出。
标准输入与标准错误被丢弃，子进程继承当前环境变量与工作目录。
"""
import logging
import subprocess
from typing import Sequence

from procboot.process.exceptions import CommandError

logger = logging.getLogger(__name__)


def run_command(args: Sequence[str]) -> str:
    """
    运行外部命令并返回其标准输出

    Args:
        args: 命令及参数，args[0] 必须为可执行文件路径

    Returns:
        解码后的标准输出文本

    Raises:
        ValueError: args 为空
        CommandError: 启动、等待或读取输出失败
    """
    if not args:
        raise ValueError("run_command 需要至少一个参数")

    argv = [str(arg) for arg in args]

    try:
        with subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        ) as process:
            # 先读完输出再等待，避免管道写满导致子进程阻塞
            output = process.stdout.read()
            return_code = process.wait()
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        raise CommandError(argv[0], argv) from e

    if return_code != 0:
        logger.debug(f"命令 {argv} 退出码: {return_code}")

    return output.decode("utf-8", errors="replace")
