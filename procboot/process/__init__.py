"""
procboot/process/ - 进程级资源

包含退出处理器链、单实例进程锁和异常类型定义。
"""
