"""
运行时选项

默认命令行参数定义，以及 "默认值 < 配置文件 < 环境变量 < 命令行" 的合并规则。
命令行参数默认值均为 None，由 RuntimeOptions.from_args() 决定是否覆盖。
"""

import argparse
from dataclasses import dataclass
from typing import Any, Dict, Optional

from procboot.utils.logging_setup import ROTATE_CHOICES

# 配置键 -> RuntimeOptions 字段
_CONFIG_FIELDS = {
    "run-dir": "run_dir",
    "log-dir": "log_dir",
    "log-rotate": "log_rotate",
    "log-level": "log_level",
    "no-console-log": "no_console_log",
    "extra-config": "extra_config",
}

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def build_parser(name: str, description: Optional[str] = None) -> argparse.ArgumentParser:
    """构建带默认运行时选项的参数解析器"""
    parser = argparse.ArgumentParser(
        prog=name,
        description=description or f"{name} 运行入口",
    )
    parser.add_argument(
        "config", nargs="?", default=None,
        help="配置文件或实例目录路径",
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", default=None,
        help="enable debug mode",
    )
    parser.add_argument(
        "-g", "--gen-config", action="store_true", default=None, dest="gen_config",
        help="show the default yaml config",
    )
    parser.add_argument(
        "--run-dir", type=str, default=None, dest="run_dir",
        help="the path to the run directory to store locks, pid files, etc. [run]",
    )
    parser.add_argument(
        "--log-dir", type=str, default=None, dest="log_dir",
        help="the path to the log directory [log]",
    )
    parser.add_argument(
        "--log-rotate", type=str, default=None, dest="log_rotate",
        help="specify one of 'hourly', 'daily' or 'never' [never]",
    )
    parser.add_argument(
        "--log-level", type=str, default=None, dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别 [INFO]",
    )
    parser.add_argument(
        "--no-console-log", action="store_true", default=None, dest="no_console_log",
        help="disable logging to the console [false]",
    )
    parser.add_argument(
        "--extra-config", type=str, default=None, dest="extra_config",
        help="path to a YAML config file with additional options",
    )
    return parser


@dataclass
class RuntimeOptions:

    config_path: Optional[str] = None
    debug: bool = False
    gen_config: bool = False
    run_dir: str = "run"
    log_dir: str = "log"
    log_rotate: str = "never"
    log_level: str = "INFO"
    no_console_log: bool = False
    extra_config: str = ""

    def apply_config(self, config: Dict[str, Any]) -> None:
        """用配置文件 / 环境变量中的键覆盖当前值"""
        for key, attr in _CONFIG_FIELDS.items():
            if key not in config or config[key] is None:
                continue
            value = config[key]
            if attr == "no_console_log":
                value = _as_bool(value)
            else:
                value = str(value)
            setattr(self, attr, value)

    def apply_args(self, args: argparse.Namespace) -> None:
        """命令行参数非 None 时覆盖当前值"""
        if getattr(args, "config", None) is not None:
            self.config_path = args.config
        if getattr(args, "debug", None) is not None:
            self.debug = args.debug
        if getattr(args, "gen_config", None) is not None:
            self.gen_config = args.gen_config
        for attr in _CONFIG_FIELDS.values():
            value = getattr(args, attr, None)
            if value is not None:
                setattr(self, attr, value)

    @property
    def rotate_valid(self) -> bool:
        return self.log_rotate in ROTATE_CHOICES

    @classmethod
    def from_args(
        cls,
        args: argparse.Namespace,
        config: Optional[Dict[str, Any]] = None,
    ) -> "RuntimeOptions":
        """
        从命令行参数与配置构建选项。

        config 中的值覆盖默认值；CLI 参数非 None 时再覆盖 config。
        """
        options = cls()
        if config:
            options.apply_config(config)
        options.apply_args(args)
        return options
