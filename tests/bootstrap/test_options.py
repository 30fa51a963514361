"""
tests for procboot/bootstrap/options.py
命令行参数解析与 "默认值 < 配置 < 命令行" 合并规则
"""

from procboot.bootstrap.options import RuntimeOptions, build_parser


class TestBuildParser:
    """所有参数默认 None，由 RuntimeOptions 决定是否覆盖。"""

    def test_no_args_all_none(self):
        args = build_parser("svc").parse_args([])
        assert args.config is None
        assert args.debug is None
        assert args.gen_config is None
        assert args.run_dir is None
        assert args.log_dir is None
        assert args.log_rotate is None
        assert args.log_level is None
        assert args.no_console_log is None
        assert args.extra_config is None

    def test_all_args_provided(self):
        args = build_parser("svc").parse_args([
            "conf/svc.yaml",
            "-d",
            "-g",
            "--run-dir", "r",
            "--log-dir", "l",
            "--log-rotate", "daily",
            "--log-level", "WARNING",
            "--no-console-log",
            "--extra-config", "extra.yaml",
        ])
        assert args.config == "conf/svc.yaml"
        assert args.debug is True
        assert args.gen_config is True
        assert args.run_dir == "r"
        assert args.log_dir == "l"
        assert args.log_rotate == "daily"
        assert args.log_level == "WARNING"
        assert args.no_console_log is True
        assert args.extra_config == "extra.yaml"

    def test_long_flags(self):
        args = build_parser("svc").parse_args(["--debug", "--gen-config"])
        assert args.debug is True
        assert args.gen_config is True


class TestRuntimeOptions:

    def test_defaults(self):
        options = RuntimeOptions()
        assert options.run_dir == "run"
        assert options.log_dir == "log"
        assert options.log_rotate == "never"
        assert options.log_level == "INFO"
        assert options.no_console_log is False
        assert options.extra_config == ""
        assert options.rotate_valid is True

    def test_config_overrides_defaults(self):
        args = build_parser("svc").parse_args([])
        options = RuntimeOptions.from_args(args, {"run-dir": "var/run", "log-rotate": "hourly"})
        assert options.run_dir == "var/run"
        assert options.log_rotate == "hourly"
        assert options.log_dir == "log"

    def test_cli_overrides_config(self):
        args = build_parser("svc").parse_args(["--run-dir", "cli-run"])
        options = RuntimeOptions.from_args(args, {"run-dir": "cfg-run", "log-dir": "cfg-log"})
        assert options.run_dir == "cli-run"
        assert options.log_dir == "cfg-log"

    def test_boolean_config_values(self):
        args = build_parser("svc").parse_args([])
        assert RuntimeOptions.from_args(args, {"no-console-log": "true"}).no_console_log is True
        assert RuntimeOptions.from_args(args, {"no-console-log": "0"}).no_console_log is False
        assert RuntimeOptions.from_args(args, {"no-console-log": True}).no_console_log is True

    def test_none_config_values_ignored(self):
        args = build_parser("svc").parse_args([])
        options = RuntimeOptions.from_args(args, {"run-dir": None})
        assert options.run_dir == "run"

    def test_invalid_rotation_detected(self):
        args = build_parser("svc").parse_args(["--log-rotate", "weekly"])
        assert RuntimeOptions.from_args(args).rotate_valid is False
