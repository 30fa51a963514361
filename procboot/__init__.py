"""
procboot - 长驻服务进程的运行时启动工具

导出:
    - get_runtime: 获取进程级运行时注册表 (首次调用时完成初始化)
    - register_exit_handler / register_signal_handler / terminate: 绑定到进程级运行时
    - start_signals: 启动信号分发 (initialize 与 default_opts 在获取进程锁前自动调用)
    - acquire_lock: 获取单实例进程锁
    - detect_cpu_count: 探测 CPU 数量
    - run_command: 运行外部命令并捕获标准输出
"""
from procboot.bootstrap.runtime import Runtime
from procboot.process.process_lock import Lock
from procboot.utils.command import run_command
from procboot.utils.cpu import detect_cpu_count

__all__ = [
    "Runtime",
    "Lock",
    "get_runtime",
    "register_exit_handler",
    "register_signal_handler",
    "start_signals",
    "terminate",
    "acquire_lock",
    "detect_cpu_count",
    "run_command",
]


def get_runtime() -> Runtime:
    """获取进程级运行时注册表"""
    return Runtime.get_instance()


def register_exit_handler(handler) -> None:
    get_runtime().register_exit_handler(handler)


def register_signal_handler(sig: int, handler) -> None:
    get_runtime().register_signal_handler(sig, handler)


def start_signals() -> None:
    get_runtime().start_signals()


def terminate(code: int) -> None:
    get_runtime().terminate(code)


def acquire_lock(directory: str, name: str) -> Lock:
    return get_runtime().acquire_lock(directory, name)
