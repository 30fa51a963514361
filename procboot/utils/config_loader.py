"""
config_loader.py - 配置加载器

支持:
1. YAML 配置文件 (运行时目录、日志选项)
2. 环境变量 (.env，PROCBOOT_ 前缀)
3. 默认配置导出 (--gen-config)
"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dotenv import load_dotenv

from procboot.process.exceptions import ConfigError

ENV_PREFIX = "PROCBOOT_"

# 配置键 -> 默认值
DEFAULT_CONFIG: Dict[str, Any] = {
    "run-dir": "run",
    "log-dir": "log",
    "log-rotate": "never",
    "log-level": "INFO",
    "no-console-log": False,
    "extra-config": "",
}

# 配置键说明，导出默认配置时作为注释
CONFIG_HELP: Dict[str, str] = {
    "run-dir": "the path to the run directory to store locks, pid files, etc.",
    "log-dir": "the path to the log directory",
    "log-rotate": "specify one of 'hourly', 'daily' or 'never'",
    "log-level": "one of DEBUG, INFO, WARNING, ERROR",
    "no-console-log": "disable logging to the console",
    "extra-config": "path to a YAML config file with additional options",
}


def join_path(directory: str, path: str) -> str:
    """
    把 path 拼接到 directory 下；path 为绝对路径时原样返回
    """
    if os.path.isabs(path):
        return path
    return os.path.join(directory, os.path.normpath(path))


class ConfigLoader:
    """
    配置加载器

    - 运行时配置: 从 YAML 文件加载
    - 覆盖项: 从环境变量加载 (.env)
    """

    @staticmethod
    def load_yaml(path: str) -> Dict[str, Any]:
        """
        加载 YAML 配置文件

        Raises:
            ConfigError: 文件无法解析或顶层不是映射
            OSError: 文件无法读取
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"无法解析配置文件 {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"配置文件顶层必须是映射: {path}")
        return data

    @staticmethod
    def load_env(instance_dir: Optional[str] = None) -> Dict[str, Any]:
        """
        从环境变量加载覆盖项

        优先加载实例目录下的 .env，已存在的环境变量不被覆盖。
        PROCBOOT_RUN_DIR -> run-dir，以此类推。

        Returns:
            配置键 -> 字符串值
        """
        if instance_dir:
            env_path = Path(instance_dir) / ".env"
            if env_path.exists():
                load_dotenv(dotenv_path=env_path)

        overrides: Dict[str, Any] = {}
        for key in DEFAULT_CONFIG:
            val = os.getenv(ENV_PREFIX + key.upper().replace("-", "_"))
            if val:
                overrides[key] = val
        return overrides

    @staticmethod
    def merge(base_config: Dict[str, Any], override_config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        合并配置，override_config 中的键覆盖 base_config

        Returns:
            合并后的新配置字典
        """
        merged = base_config.copy()
        if override_config:
            merged.update(override_config)
        return merged

    @staticmethod
    def unknown_keys(config: Dict[str, Any]) -> List[str]:
        """返回配置中不属于运行时选项的键 (按字母排序)"""
        return sorted(str(key) for key in set(config) - set(DEFAULT_CONFIG))

    @staticmethod
    def dump_default_config(name: str) -> str:
        """
        生成默认 YAML 配置文本

        Args:
            name: 进程名称，写入文件头注释
        """
        lines = [f"# Default configuration for {name}", ""]
        for key, value in DEFAULT_CONFIG.items():
            lines.append(f"# {CONFIG_HELP[key]}")
            lines.append(yaml.safe_dump({key: value}, default_flow_style=False).strip())
            lines.append("")
        return "\n".join(lines)
