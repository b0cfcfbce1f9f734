# tests/test_execution.py
import os
import stat

import pytest

from runscripts.config import const
from runscripts.core.runtime import TempDir
from runscripts.errors import ShellOptionError
from runscripts.services.runner.execution import IS_WINDOWS, create_script_executor
from runscripts.services.runner.shell import resolve_script_shell, validate_script_shell_option


def test_shell_defaults_to_system():
    assert resolve_script_shell() == const.SHELL_SYSTEM
    assert resolve_script_shell("") == const.SHELL_SYSTEM
    assert resolve_script_shell("bash") == "bash"


def test_invalid_shell_lists_accepted_values():
    with pytest.raises(ShellOptionError) as ei:
        validate_script_shell_option("zsh")
    assert ei.value.shell == "zsh"
    assert "system, bash" in str(ei.value)
    assert isinstance(ei.value, ValueError)


def test_system_executor_materializes_command(tmp_path):
    temp = TempDir(parent=tmp_path / "v")
    ex = create_script_executor("echo hello", "system", temp_dir=temp)
    script = ex.argv[-1]
    assert os.path.dirname(script) == str(temp.dir)
    if IS_WINDOWS:
        assert ex.argv[:5] == ["cmd", "/d", "/s", "/c", "call"]
        assert open(script, encoding="utf-8", newline="").read() == "@echo off\r\necho hello\r\n"
    else:
        assert ex.argv[0] == "sh"
        assert open(script, encoding="utf-8").read() == "echo hello"
        assert stat.S_IMODE(os.stat(script).st_mode) == 0o755
        assert stat.S_IMODE(os.stat(temp.dir).st_mode) == 0o700

    ex.cleanup()
    assert not os.path.exists(script)
    ex.cleanup()  # повторно без ошибок


def test_bash_executor(tmp_path):
    temp = TempDir(parent=tmp_path / "v")
    ex = create_script_executor("echo $0", "bash", temp_dir=temp)
    assert ex.argv[0] == "bash"
    assert ex.argv[1].endswith(".sh")
    ex.cleanup()


def test_executor_rejects_bad_shell(tmp_path):
    with pytest.raises(ShellOptionError):
        create_script_executor("echo", "fish", temp_dir=TempDir(parent=tmp_path))


def test_each_command_gets_its_own_file(tmp_path):
    temp = TempDir(parent=tmp_path / "v")
    a = create_script_executor("echo a", temp_dir=temp)
    b = create_script_executor("echo b", temp_dir=temp)
    assert a.argv[-1] != b.argv[-1]
    temp.cleanup()
    assert not temp.dir.exists()


def test_stale_version_dirs_are_removed(tmp_path):
    base = tmp_path / "runscripts"
    (base / "0.0.1" / "old").mkdir(parents=True)
    temp = TempDir(parent=base / "0.1.0")
    temp.initialize(clean=True)
    assert temp.dir.exists()
    assert not (base / "0.0.1").exists()
