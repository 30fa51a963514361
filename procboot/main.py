"""
main.py - 服务进程运行入口

完成运行时初始化 (进程锁、PID 文件、日志、信号) 后保持运行，
直到收到 SIGINT / SIGTERM 或达到 --serve-seconds 指定的时长。

命令行参数:
    config: 配置文件或实例目录路径
    --name: 进程名称 (锁文件、PID 文件、日志文件名)
    --serve-seconds: 运行指定秒数后正常退出
"""
import sys
import time
import logging
from typing import List, Optional

from procboot.bootstrap.options import build_parser
from procboot.bootstrap.runtime import Runtime

logger = logging.getLogger(__name__)

DEFAULT_NAME = "procboot"


def serve(runtime: Runtime, serve_seconds: Optional[float] = None) -> None:
    """
    空转等待终止

    信号由分发线程处理并直接结束进程；
    指定 serve_seconds 时到期后经 terminate(0) 正常退出。
    """
    deadline = None
    if serve_seconds is not None:
        deadline = time.monotonic() + serve_seconds

    while deadline is None or time.monotonic() < deadline:
        time.sleep(0.1)

    logger.info("运行时长已到，正在退出")
    runtime.terminate(0)


def main(argv: Optional[List[str]] = None) -> None:
    """主函数"""
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser(DEFAULT_NAME, description="长驻服务进程运行入口")
    parser.add_argument(
        "--name",
        type=str,
        default=DEFAULT_NAME,
        help="进程名称 [procboot]"
    )
    parser.add_argument(
        "--serve-seconds",
        type=float,
        default=None,
        dest="serve_seconds",
        help="运行指定秒数后正常退出 (默认一直运行)"
    )
    known, _ = parser.parse_known_args(argv)

    runtime = Runtime.get_instance()
    result = runtime.default_opts(known.name, argv, parser=parser)

    logger.info(
        f"进程 {known.name} 已就绪: instance_dir={result.instance_dir}, "
        f"log_path={result.log_path}"
    )
    runtime.register_exit_handler(lambda: logger.info(f"进程 {known.name} 已停止"))

    serve(runtime, known.serve_seconds)


if __name__ == "__main__":
    main()
