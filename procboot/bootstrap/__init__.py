"""
procboot/bootstrap/ - 运行时注册表与启动编排

导出:
    - Runtime: 进程级注册表，持有退出处理器链与信号分发器
    - BootstrapResult: default_opts() 的返回值
    - RuntimeOptions: 默认运行时选项
    - build_parser: 构建带默认运行时选项的参数解析器
"""
from procboot.bootstrap.options import RuntimeOptions, build_parser
from procboot.bootstrap.runtime import BootstrapResult, Runtime

__all__ = [
    "Runtime",
    "BootstrapResult",
    "RuntimeOptions",
    "build_parser",
]
