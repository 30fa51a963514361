"""
procboot/utils/ - 工具模块

包含外部命令执行、CPU 探测、信号分发、配置加载和日志设置。
"""
