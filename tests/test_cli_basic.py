# tests/test_cli_basic.py
import json
import time

import psutil
import pytest
from typer.testing import CliRunner

from fakes import posix_only

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    # без чужого .env в текущем каталоге
    monkeypatch.chdir(tmp_path)


def test_help(cli_app):
    result = runner.invoke(cli_app, ["--help"])
    assert result.exit_code == 0
    for name in ("run", "file", "parallel"):
        assert name in result.stdout


def test_parallel_command(cli_app, monkeypatch):
    import runscripts.services.runner.parallel as parallel_mod

    monkeypatch.setattr(parallel_mod, "available_parallelism", lambda: 8)
    assert runner.invoke(cli_app, ["parallel", "3"]).stdout.strip() == "3"
    assert runner.invoke(cli_app, ["parallel", "50%"]).stdout.strip() == "4"
    assert runner.invoke(cli_app, ["parallel"]).stdout.strip() == "8"
    assert runner.invoke(cli_app, ["parallel", "unbounded"]).stdout.strip() == "unbounded"
    assert runner.invoke(cli_app, ["parallel", "0"]).exit_code == 2


@posix_only
def test_run_prints_prefixed_output_and_summary(cli_app):
    result = runner.invoke(cli_app, ["run", "echo hi", "--parallel", "2"])
    assert result.exit_code == 0, result.stdout
    assert "[0:echo hi] hi" in result.stdout
    assert "1/1 succeeded" in result.stdout


@posix_only
def test_run_json_summary(cli_app):
    result = runner.invoke(cli_app, ["run", "true", "exit 3", "--json"])
    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert data["total_count"] == 2
    assert data["failure_count"] == 1
    assert [r["exit_code"] for r in data["script_results"]] == [0, 3]


@posix_only
def test_run_passes_env_and_strips_ansi(cli_app):
    result = runner.invoke(
        cli_app,
        ["run", r"""printf '\033[32m%s\033[0m\n' "$GREETING" """, "--env", "GREETING=hello", "--strip-ansi"],
    )
    assert result.exit_code == 0, result.stdout
    assert "hello" in result.stdout
    assert "\x1b[32m" not in result.stdout


def test_run_rejects_bad_options(cli_app):
    assert runner.invoke(cli_app, ["run", "true", "--parallel", "abc"]).exit_code == 2
    assert runner.invoke(cli_app, ["run", "true", "--shell", "fish"]).exit_code == 2
    assert runner.invoke(cli_app, ["run", "true", "--env", "NOEQUALS"]).exit_code == 2


@posix_only
def test_file_command(cli_app, tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "scripts.yaml").write_text(
        "parallel: 2\n"
        "scripts:\n"
        "  - echo plain\n"
        "  - name: where\n"
        "    command: basename \"$(pwd)\"\n"
        "    cwd: sub\n"
        "  - name: env\n"
        "    command: echo \"$X\"\n"
        "    env: {X: 42}\n",
        encoding="utf-8",
    )
    result = runner.invoke(cli_app, ["file", str(tmp_path / "scripts.yaml"), "--json"])
    assert result.exit_code == 0, result.stdout
    start = result.stdout.index("{\n")
    data = json.loads(result.stdout[start:])
    assert [r["metadata"]["name"] for r in data["script_results"]] == ["echo plain", "where", "env"]
    assert "[1:where] sub" in result.stdout
    assert "[2:env] 42" in result.stdout


def test_file_command_rejects_bad_yaml(cli_app, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("scripts: 5\n", encoding="utf-8")
    assert runner.invoke(cli_app, ["file", str(path)]).exit_code == 2


def _running_with(marker):
    found = []
    for proc in psutil.process_iter(["cmdline", "status"]):
        try:
            if proc.info["status"] == psutil.STATUS_ZOMBIE:
                continue
            if marker in " ".join(proc.info["cmdline"] or []):
                found.append(proc.pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return found


@posix_only
def test_launch_error_stops_already_started_scripts(cli_app, tmp_path):
    marker = "sleep 31.457"
    (tmp_path / "scripts.yaml").write_text(
        "parallel: unbounded\n"
        "scripts:\n"
        f"  - {marker}\n"
        "  - name: broken\n"
        "    command: echo never\n"
        "    cwd: missing-dir\n",
        encoding="utf-8",
    )
    result = runner.invoke(cli_app, ["file", str(tmp_path / "scripts.yaml")])
    assert result.exit_code == 2

    deadline = time.monotonic() + 3
    while _running_with(marker) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert _running_with(marker) == []
