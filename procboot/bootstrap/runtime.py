"""运行时注册表（单例）与启动编排。

职责:
- 持有进程级的退出处理器链与信号处理表
- 探测 CPU 数量并设置并发提示
- 获取单实例进程锁、写入 PID 文件
- 注册默认的 SIGINT / SIGTERM 处理器 (干净退出)
- 解析默认运行时选项、加载配置、初始化目录与日志

所有致命错误统一经 error() / standard_error() 以退出码 1 结束进程，不做重试。
"""

import os
import sys
import stat
import signal
import logging
import argparse
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional

from procboot.bootstrap.options import RuntimeOptions, build_parser
from procboot.process.exceptions import ConfigError, ProcessLockError
from procboot.process.exit_handlers import ExitHandler, ExitHandlerChain
from procboot.process.process_lock import (
    Lock,
    acquire_lock,
    create_pid_file,
    pid_file_path,
)
from procboot.utils.config_loader import ConfigLoader, join_path
from procboot.utils.cpu import detect_cpu_count
from procboot.utils.logging_setup import setup_logging
from procboot.utils.signal_handler import SignalCallback, SignalDispatcher

logger = logging.getLogger(__name__)


@dataclass
class BootstrapResult:
    """default_opts() 的返回值"""
    debug: bool = False
    instance_dir: str = ""
    run_path: str = ""
    log_path: str = ""
    usage_shown: bool = False
    options: RuntimeOptions = field(default_factory=RuntimeOptions)


class Runtime:
    """
    运行时注册表

    Attributes:
        exit_handlers: 退出处理器链
        signals: 信号分发器
        cpu_count: 探测到的 CPU 数量
        concurrency_hint: 建议的并发度 (CPU 数量的两倍)
        profile: 配置文件名 (不含扩展名)，实例目录启动时为 default
        lock: 当前持有的进程锁
        config: 合并后的配置字典
    """

    _instance: ClassVar[Optional["Runtime"]] = None

    def __init__(
        self,
        exit_handlers: Optional[ExitHandlerChain] = None,
        signals: Optional[SignalDispatcher] = None,
        cpu_detector: Callable[[], int] = detect_cpu_count,
        platform: Optional[str] = None,
    ) -> None:
        self.exit_handlers = exit_handlers or ExitHandlerChain()
        self.signals = signals or SignalDispatcher()
        self.cpu_detector = cpu_detector
        self.platform = platform or sys.platform

        self.cpu_count: int = 1
        self.concurrency_hint: int = 1
        self.profile: str = ""
        self.lock: Optional[Lock] = None
        self.config: Dict[str, Any] = {}

        self._initialized = False

    @classmethod
    def get_instance(cls) -> "Runtime":
        """获取已初始化的单例实例。"""
        if cls._instance is None:
            cls._instance = cls()
            cls._instance.initialize()
        return cls._instance

    def reset(self) -> None:
        """重置单例（仅用于测试）。"""
        Runtime._instance = None

    def initialize(self) -> None:
        """
        进程启动时的初始化

        - 探测 CPU 数量
        - SIGINT / SIGTERM 默认映射为 terminate(0)
        - 启动信号分发器
        """
        if self._initialized:
            return
        self._initialized = True

        self.cpu_count = self.cpu_detector()
        self.concurrency_hint = self.cpu_count

        self.register_signal_handler(signal.SIGINT, lambda: self.terminate(0))
        self.register_signal_handler(signal.SIGTERM, lambda: self.terminate(0))
        self.start_signals()

    def start_signals(self) -> None:
        """启动信号分发器，重复调用无副作用"""
        self.signals.start()

    # ------------------------------------------------------------------
    # 退出与信号
    # ------------------------------------------------------------------

    def register_exit_handler(self, handler: ExitHandler) -> None:
        self.exit_handlers.register(handler)

    def register_signal_handler(self, sig: int, handler: SignalCallback) -> None:
        self.signals.register_handler(sig, handler)

    def run_exit_handlers(self) -> None:
        self.exit_handlers.run_all()

    def terminate(self, code: int) -> None:
        """唯一的进程终止入口"""
        self.exit_handlers.terminate(code)

    def error(self, message: str) -> None:
        """记录致命错误并以退出码 1 结束进程"""
        logger.error(message)
        self.terminate(1)

    def standard_error(self, err: BaseException) -> None:
        """记录异常并以退出码 1 结束进程"""
        logger.error(f"{type(err).__name__}: {err}")
        self.terminate(1)

    # ------------------------------------------------------------------
    # 进程资源
    # ------------------------------------------------------------------

    def acquire_lock(self, directory: str, name: str) -> Lock:
        """获取进程锁，并在退出处理器链上注册释放"""
        lock = acquire_lock(directory, name, chain=self.exit_handlers)
        self.lock = lock
        return lock

    def create_pid_file(self, path: str) -> None:
        """写入 PID 文件，失败视为致命错误"""
        try:
            create_pid_file(path)
        except OSError as e:
            self.standard_error(e)

    def init(self) -> None:
        """设置并发提示为 CPU 数量的两倍"""
        self.concurrency_hint = self.cpu_count * 2

    def init_process(self, name: str, run_path: str) -> None:
        """
        获取进程锁并写入 PID 文件

        同名实例已在运行时直接失败，不会写入 PID 文件。
        """
        # 获取运行锁，保证同一运行目录下同名进程只有一个
        try:
            lock = self.acquire_lock(run_path, name)
        except (ProcessLockError, OSError) as e:
            self.error(f"Couldn't successfully acquire a process lock:\n\n\t{e}\n")
            return

        logger.debug(f"已获取进程锁 {lock.link}")

        # 写入进程 ID 供外部脚本使用
        self.create_pid_file(pid_file_path(run_path, name))

    # ------------------------------------------------------------------
    # 启动编排
    # ------------------------------------------------------------------

    def _load_config_file(self, path: str) -> Dict[str, Any]:
        try:
            return ConfigLoader.load_yaml(path)
        except (OSError, ConfigError) as e:
            self.standard_error(e)
            return {}

    def _make_dirs(self, path: str) -> None:
        try:
            os.makedirs(path, mode=0o755, exist_ok=True)
        except OSError as e:
            self.standard_error(e)

    def default_opts(
        self,
        name: str,
        argv: Optional[List[str]] = None,
        auto_exit: bool = True,
        parser: Optional[argparse.ArgumentParser] = None,
    ) -> BootstrapResult:
        """
        处理默认运行时命令行选项并完成进程初始化

        Args:
            name: 进程名称 (锁文件、PID 文件、日志文件名)
            argv: 命令行参数，默认为 sys.argv[1:]
            auto_exit: 未提供配置路径时打印用法并退出
            parser: 自定义解析器 (需由 build_parser 构建)

        Returns:
            BootstrapResult
        """
        parser = parser or build_parser(name)
        args = parser.parse_args(argv)
        options = RuntimeOptions.from_args(args)

        # 打印默认 YAML 配置
        if options.gen_config:
            print(ConfigLoader.dump_default_config(name))
            self.terminate(0)
            return BootstrapResult(options=options)

        # 获取进程锁之前必须已经接管 SIGINT / SIGTERM
        self.start_signals()

        # 尽早启用控制台日志
        setup_logging(options.log_level, None, console=not options.no_console_log)

        if options.config_path is None:
            if auto_exit:
                parser.print_usage()
                self.terminate(0)
            return BootstrapResult(usage_shown=True, options=options)

        # 配置文件所在目录即实例目录
        config_path = os.path.abspath(os.path.normpath(options.config_path))
        try:
            stat_info = os.stat(config_path)
        except OSError as e:
            self.standard_error(e)
            return BootstrapResult(options=options)

        config: Dict[str, Any] = {}
        if stat.S_ISDIR(stat_info.st_mode):
            instance_dir = config_path
            self.profile = "default"
        else:
            config = self._load_config_file(config_path)
            instance_dir = os.path.dirname(config_path)
            self.profile = os.path.basename(config_path).split(".")[0]

        env_overrides = ConfigLoader.load_env(instance_dir)

        # 额外配置文件，路径同样遵循 "配置 < 环境变量 < 命令行"
        extra = (
            args.extra_config
            or env_overrides.get("extra-config")
            or config.get("extra-config")
            or ""
        )
        if extra:
            extra_path = join_path(instance_dir, str(extra))
            config = ConfigLoader.merge(config, self._load_config_file(extra_path))

        config = ConfigLoader.merge(config, env_overrides)

        unknown = ConfigLoader.unknown_keys(config)
        if unknown:
            logger.debug(f"忽略非运行时配置项: {', '.join(unknown)}")

        self.config = config
        options = RuntimeOptions.from_args(args, config)
        if options.debug:
            options.log_level = "DEBUG"

        # 创建日志目录与运行目录
        log_path = join_path(instance_dir, options.log_dir)
        self._make_dirs(log_path)
        run_path = join_path(instance_dir, options.run_dir)
        self._make_dirs(run_path)

        # 文件与控制台日志
        if not options.rotate_valid:
            self.error(f"Unknown log rotation format {options.log_rotate!r}")
            return BootstrapResult(options=options)

        try:
            setup_logging(
                options.log_level,
                log_path,
                f"{name}.log",
                rotate=options.log_rotate,
                console=not options.no_console_log,
            )
        except (OSError, ConfigError) as e:
            self.error(f"Couldn't initialise logfile: {e}")
            return BootstrapResult(options=options)

        self.init()

        if not self.platform.startswith("win"):
            self.init_process(name, run_path)

        logger.info(
            f"{name} 启动完成: profile={self.profile}, cpus={self.cpu_count}, "
            f"concurrency={self.concurrency_hint}, run_path={run_path}"
        )

        return BootstrapResult(
            debug=options.debug,
            instance_dir=instance_dir,
            run_path=run_path,
            log_path=log_path,
            usage_shown=False,
            options=options,
        )
