# src/runscripts/apps/cli/app.py
from __future__ import annotations

import asyncio
import functools
import json
import os
import signal
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from dotenv import load_dotenv, find_dotenv
from rich.console import Console
from rich.table import Table
from rich.text import Text

# загружаем .env один раз (RUNSCRIPTS_PARALLEL / RUNSCRIPTS_SHELL / ...)
load_dotenv(find_dotenv(usecwd=True))

from runscripts.domain import OutputEnvelope, ScriptSpec, Summary
from runscripts.errors import ParallelMaxError, ScriptLaunchError, ShellOptionError
from runscripts.services.eventbus import LocalEventBus
from runscripts.services.logging import attach_event_logger, setup_logging
from runscripts.services.runner import determine_parallel_max, format_parallel_max, run_scripts
from runscripts.services.settings import Settings

app = typer.Typer(help="Run shell scripts concurrently and stream their output")

_PALETTE = ("cyan", "magenta", "green", "yellow", "blue", "red")

# -------- вспомогательные --------


def _run_safe(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception:
            if os.getenv("RUNSCRIPTS_CLI_DEBUG") == "1":
                traceback.print_exc()
            raise

    return wrapper


def _parse_kv(items: List[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for s in items:
        if "=" not in s:
            raise typer.BadParameter(f"Invalid --env '{s}', use KEY=VAL")
        k, v = s.split("=", 1)
        out[k] = v
    return out


def _settings(ctx: typer.Context) -> Settings:
    obj = ctx.obj or {}
    return obj.get("settings") or Settings.from_sources()


def _script_name(envelope_or_meta: Any, index: int) -> str:
    if isinstance(envelope_or_meta, dict) and envelope_or_meta.get("name"):
        return str(envelope_or_meta["name"])
    return str(index)


class _LinePrinter:
    """Печатает вывод построчно с префиксом [index:name]; незавершённые строки копит по (index, stream)."""

    def __init__(self, console: Console, strip_ansi: bool) -> None:
        self._console = console
        self._strip = strip_ansi
        self._partial: Dict[tuple, str] = {}
        self._names: Dict[int, str] = {}

    def _emit(self, index: int, name: str, stream: str, line: str) -> None:
        style = _PALETTE[index % len(_PALETTE)]
        prefix = Text(f"[{index}:{name}] ", style=f"bold {style}" if stream == "stdout" else f"bold {style} italic")
        body = Text(line) if self._strip else Text.from_ansi(line)
        self._console.print(Text.assemble(prefix, body), soft_wrap=True, highlight=False)

    def feed(self, envelope: OutputEnvelope) -> None:
        chunk = envelope.output_chunk
        key = (envelope.index, chunk.stream_name)
        text = self._partial.pop(key, "") + chunk.decode(strip_ansi=self._strip)
        *lines, rest = text.split("\n")
        name = _script_name(envelope.metadata, envelope.index)
        for line in lines:
            self._emit(envelope.index, name, chunk.stream_name, line.rstrip("\r"))
        if rest:
            self._partial[key] = rest
        self._names[envelope.index] = name

    def flush(self) -> None:
        for (index, stream), rest in sorted(self._partial.items()):
            self._emit(index, self._names.get(index, str(index)), stream, rest)
        self._partial.clear()


def _print_summary(console: Console, summary: Summary) -> None:
    table = Table(title=f"{summary.success_count}/{summary.total_count} succeeded in {summary.duration_ms} ms")
    table.add_column("#", justify="right")
    table.add_column("script")
    table.add_column("exit", justify="right")
    table.add_column("signal")
    table.add_column("ms", justify="right")
    table.add_column("status")
    for i, rec in enumerate(summary.script_results):
        table.add_row(
            str(i),
            _script_name(rec.metadata, i),
            str(rec.exit_code),
            rec.signal or "",
            str(rec.duration_ms),
            "[green]ok[/green]" if rec.success else "[red]failed[/red]",
        )
    console.print(table)


async def _stop_started(started: List[Any]) -> None:
    """Первая партия запустилась не целиком: уже запущенные скрипты останавливаем и дожидаемся."""
    for result in started:
        result.kill()
    await asyncio.gather(*(result.exit for result in started), return_exceptions=True)


async def _execute(specs: List[ScriptSpec], *, parallel: Any, shell: str, strip_ansi: bool, console: Console) -> Summary:
    bus = LocalEventBus()
    attach_event_logger(bus)

    try:
        result = await run_scripts(specs, parallel=parallel, shell=shell, bus=bus)
    except ScriptLaunchError as e:
        await _stop_started(e.started)
        raise

    loop = asyncio.get_running_loop()
    try:
        # Ctrl+C: остановить все запущенные скрипты; сводку всё равно дождёмся
        loop.add_signal_handler(signal.SIGINT, result.kill)
    except (NotImplementedError, RuntimeError):
        pass

    printer = _LinePrinter(console, strip_ansi)
    try:
        async for envelope in result.output:
            printer.feed(envelope)
        printer.flush()
        return await result.summary
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def _run_specs(ctx: typer.Context, specs: List[ScriptSpec], *, parallel: Optional[str], shell: Optional[str], strip_ansi: bool, as_json: bool) -> None:
    settings = _settings(ctx).with_overrides(parallel=parallel, shell=shell)
    console = Console()
    try:
        summary = asyncio.run(
            _execute(
                specs,
                parallel=settings.parallel_option(),
                shell=settings.shell,
                strip_ansi=strip_ansi,
                console=console,
            )
        )
    except (ParallelMaxError, ShellOptionError) as e:
        raise typer.BadParameter(str(e))
    except ScriptLaunchError as e:
        typer.echo(f"runscripts: {e}", err=True)
        raise typer.Exit(code=2)

    if as_json:
        typer.echo(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2, default=str))
    else:
        _print_summary(console, summary)
    if not summary.all_success:
        raise typer.Exit(code=1)


def _load_scripts_file(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise typer.BadParameter(f"{path}: invalid YAML: {e}")
    if isinstance(data, list):
        data = {"scripts": data}
    if not isinstance(data, dict) or not isinstance(data.get("scripts"), list):
        raise typer.BadParameter(f"{path}: expected a 'scripts' list")
    return data


def _spec_from_item(item: Any, index: int, base_dir: Path) -> ScriptSpec:
    if isinstance(item, str):
        return ScriptSpec(command=item, working_directory=str(base_dir), metadata={"name": item})
    if not isinstance(item, dict) or not item.get("command"):
        raise typer.BadParameter(f"scripts[{index}]: expected a command string or a mapping with 'command'")
    cwd = item.get("cwd")
    env = item.get("env") or {}
    if not isinstance(env, dict):
        raise typer.BadParameter(f"scripts[{index}].env must be a mapping")
    return ScriptSpec(
        command=str(item["command"]),
        working_directory=str((base_dir / cwd).resolve()) if cwd else str(base_dir),
        env={str(k): str(v) for k, v in env.items()},
        metadata={"name": str(item.get("name") or item["command"])},
    )


# -------- корневой callback --------


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG | INFO | WARNING | ERROR (default from RUNSCRIPTS_LOG_LEVEL)"),
    log_dir: Optional[str] = typer.Option(None, "--log-dir", help="Write a rotating runscripts.log into this directory"),
):
    """
    Вызывается перед любыми подкомандами: читает настройки (ENV/.env) и настраивает логирование.
    """
    settings = Settings.from_sources().with_overrides(log_level=log_level, log_dir=log_dir)
    setup_logging(settings.log_level, settings.log_dir)
    ctx.obj = {"settings": settings}


# -------- команды --------


@app.command("run")
@_run_safe
def run(
    ctx: typer.Context,
    commands: List[str] = typer.Argument(..., help="Commands to run (quote each one)"),
    parallel: Optional[str] = typer.Option(None, "--parallel", "-p", help="false | true | N | auto | unbounded | N%"),
    shell: Optional[str] = typer.Option(None, "--shell", help="system | bash"),
    cwd: Optional[str] = typer.Option(None, "--cwd", help="Working directory for every command"),
    env: List[str] = typer.Option([], "--env", help="Extra environment KEY=VAL (repeatable)"),
    strip_ansi: bool = typer.Option(False, "--strip-ansi", help="Remove ANSI escape codes from output"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
):
    """Run commands and print a summary."""
    extra_env = _parse_kv(env)
    specs = [ScriptSpec(command=c, working_directory=cwd, env=extra_env, metadata={"name": c}) for c in commands]
    _run_specs(ctx, specs, parallel=parallel, shell=shell, strip_ansi=strip_ansi, as_json=as_json)


@app.command("file")
@_run_safe
def run_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="YAML file with a 'scripts' list"),
    parallel: Optional[str] = typer.Option(None, "--parallel", "-p", help="Overrides 'parallel' from the file"),
    shell: Optional[str] = typer.Option(None, "--shell", help="Overrides 'shell' from the file"),
    strip_ansi: bool = typer.Option(False, "--strip-ansi", help="Remove ANSI escape codes from output"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
):
    """Run scripts described in a YAML file."""
    data = _load_scripts_file(path)
    base_dir = path.resolve().parent
    specs = [_spec_from_item(item, i, base_dir) for i, item in enumerate(data["scripts"])]
    file_parallel = data.get("parallel")
    if parallel is None and file_parallel is not None:
        parallel = str(file_parallel).lower() if isinstance(file_parallel, bool) else str(file_parallel)
    _run_specs(ctx, specs, parallel=parallel, shell=shell or data.get("shell"), strip_ansi=strip_ansi, as_json=as_json)


@app.command("parallel")
def show_parallel(value: str = typer.Argument("auto", help="N | auto | unbounded | N%")):
    """Print the concurrency limit a value resolves to on this machine."""
    try:
        typer.echo(format_parallel_max(determine_parallel_max(value)))
    except ParallelMaxError as e:
        raise typer.BadParameter(str(e))


if __name__ == "__main__":
    app()
