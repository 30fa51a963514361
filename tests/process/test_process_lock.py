"""
tests for procboot/process/process_lock.py
硬链接单实例锁：获取、争用、释放、PID 文件
"""

import os
import subprocess
import sys
import textwrap
import time
from pathlib import Path

import pytest

from procboot.process.exceptions import LockContentionError, ProcessLockError
from procboot.process.exit_handlers import ExitHandlerChain
from procboot.process.process_lock import (
    Lock,
    acquire_lock,
    create_pid_file,
    link_path,
    lock_file_path,
    pid_file_path,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _hold_foreign_lock(directory: Path, name: str, pid: int = 999999) -> Path:
    """模拟另一个进程已持有锁。"""
    foreign = directory / f"{name}-{pid}.lock"
    foreign.write_text("")
    os.link(foreign, directory / f"{name}.lock")
    return foreign


class TestPaths:

    def test_lock_file_path_includes_pid(self, tmp_path):
        assert lock_file_path(str(tmp_path), "svc", 42) == os.path.join(str(tmp_path), "svc-42.lock")

    def test_lock_file_path_defaults_to_current_pid(self, tmp_path):
        assert lock_file_path(str(tmp_path), "svc").endswith(f"svc-{os.getpid()}.lock")

    def test_link_and_pid_paths(self, tmp_path):
        assert link_path(str(tmp_path), "svc") == os.path.join(str(tmp_path), "svc.lock")
        assert pid_file_path(str(tmp_path), "svc") == os.path.join(str(tmp_path), "svc.pid")


class TestAcquire:
    """验证获取与争用。"""

    def test_acquire_creates_linked_files(self, tmp_path):
        lock = acquire_lock(str(tmp_path), "svc")

        assert lock.acquired is True
        assert lock.link == str(tmp_path / "svc.lock")
        assert lock.lock_file == str(tmp_path / f"svc-{os.getpid()}.lock")
        assert os.path.exists(lock.link)
        assert os.path.samefile(lock.link, lock.lock_file)

        lock.release()

    def test_contention_raises_and_cleans_own_file(self, tmp_path):
        foreign = _hold_foreign_lock(tmp_path, "svc")

        with pytest.raises(LockContentionError) as exc_info:
            acquire_lock(str(tmp_path), "svc")

        err = exc_info.value
        assert isinstance(err, ProcessLockError)
        assert err.link == str(tmp_path / "svc.lock")
        assert "svc.lock" in str(err)
        assert isinstance(err.original_error, FileExistsError)

        # 自己的 PID 锁文件被删除，持有者的文件保持不变
        assert not (tmp_path / f"svc-{os.getpid()}.lock").exists()
        assert foreign.exists()
        assert (tmp_path / "svc.lock").exists()

    def test_different_names_do_not_contend(self, tmp_path):
        a = acquire_lock(str(tmp_path), "alpha")
        b = acquire_lock(str(tmp_path), "beta")
        assert a.acquired and b.acquired
        a.release()
        b.release()

    def test_same_name_different_directories(self, tmp_path):
        (tmp_path / "one").mkdir()
        (tmp_path / "two").mkdir()
        a = acquire_lock(str(tmp_path / "one"), "svc")
        b = acquire_lock(str(tmp_path / "two"), "svc")
        assert a.acquired and b.acquired
        a.release()
        b.release()

    def test_missing_directory_is_filesystem_error(self, tmp_path):
        with pytest.raises(OSError) as exc_info:
            acquire_lock(str(tmp_path / "missing"), "svc")
        assert not isinstance(exc_info.value, ProcessLockError)

    def test_registers_release_on_chain(self, tmp_path):
        chain = ExitHandlerChain(exit_func=lambda code: None, flush_func=lambda: None, shutdown_func=lambda: None)
        lock = acquire_lock(str(tmp_path), "svc", chain=chain)
        assert len(chain) == 1

        chain.run_all()

        assert lock.acquired is False
        assert not os.path.exists(lock.link)
        assert not os.path.exists(lock.lock_file)

    def test_contention_does_not_register_on_chain(self, tmp_path):
        _hold_foreign_lock(tmp_path, "svc")
        chain = ExitHandlerChain(exit_func=lambda code: None, flush_func=lambda: None, shutdown_func=lambda: None)

        with pytest.raises(LockContentionError):
            acquire_lock(str(tmp_path), "svc", chain=chain)

        assert len(chain) == 0


class TestRelease:
    """验证释放的幂等性。"""

    def test_release_removes_both_files(self, tmp_path):
        lock = acquire_lock(str(tmp_path), "svc")
        lock.release()

        assert not os.path.exists(lock.link)
        assert not os.path.exists(lock.lock_file)
        assert list(tmp_path.iterdir()) == []

    def test_release_twice(self, tmp_path):
        lock = acquire_lock(str(tmp_path), "svc")
        lock.release()
        lock.release()
        assert lock.acquired is False

    def test_release_after_external_removal(self, tmp_path):
        lock = acquire_lock(str(tmp_path), "svc")
        os.remove(lock.link)
        os.remove(lock.lock_file)
        lock.release()

    def test_reacquire_after_release(self, tmp_path):
        first = acquire_lock(str(tmp_path), "svc")
        first.release()

        second = acquire_lock(str(tmp_path), "svc")
        assert second.acquired is True
        second.release()

    def test_context_manager_releases(self, tmp_path):
        with acquire_lock(str(tmp_path), "svc") as lock:
            assert os.path.exists(lock.link)
        assert not os.path.exists(lock.link)

    def test_unacquired_lock_release_is_noop(self, tmp_path):
        keep = tmp_path / "svc.lock"
        keep.write_text("")
        lock = Lock(link=str(keep), lock_file=str(tmp_path / "svc-1.lock"), acquired=False)
        lock.release()
        assert keep.exists()


class TestPidFile:

    def test_writes_decimal_pid_without_newline(self, tmp_path):
        path = tmp_path / "svc.pid"
        create_pid_file(str(path))
        assert path.read_text() == str(os.getpid())

    def test_overwrites_existing_content(self, tmp_path):
        path = tmp_path / "svc.pid"
        path.write_text("123456789012")
        create_pid_file(str(path))
        assert path.read_text() == str(os.getpid())

    def test_unwritable_location_raises(self, tmp_path):
        with pytest.raises(OSError):
            create_pid_file(str(tmp_path / "missing" / "svc.pid"))


_CONTENDER = textwrap.dedent(
    """
    import sys, time
    from procboot.process.exceptions import LockContentionError
    from procboot.process.process_lock import acquire_lock

    directory, start_at = sys.argv[1], float(sys.argv[2])
    while time.time() < start_at:
        time.sleep(0.005)
    try:
        lock = acquire_lock(directory, "svc")
    except LockContentionError:
        print("busy", flush=True)
        sys.exit(0)
    print("ok", flush=True)
    time.sleep(3.0)
    lock.release()
    """
)


class TestCrossProcess:
    """多个进程同时争用同一把锁，只有一个成功。"""

    def test_exactly_one_process_acquires(self, tmp_path):
        env = dict(os.environ, PYTHONPATH=str(PROJECT_ROOT))
        start_at = time.time() + 2.0
        procs = [
            subprocess.Popen(
                [sys.executable, "-c", _CONTENDER, str(tmp_path), str(start_at)],
                stdout=subprocess.PIPE,
                env=env,
                text=True,
            )
            for _ in range(5)
        ]
        results = [p.communicate(timeout=30)[0].strip() for p in procs]

        assert sorted(results) == ["busy", "busy", "busy", "busy", "ok"]
        assert all(p.returncode == 0 for p in procs)
        assert list(tmp_path.iterdir()) == []
