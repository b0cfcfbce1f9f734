"""runscripts: run shell scripts concurrently, stream their output, summarize exits."""

from runscripts.__version__ import __version__
from runscripts.domain import ExitRecord, OutputChunk, OutputEnvelope, ScriptSpec, Summary
from runscripts.errors import ParallelMaxError, ScriptLaunchError, ShellOptionError
from runscripts.services.runner import (
    RunScriptResult,
    RunScriptsResult,
    ScriptStartDetails,
    determine_parallel_max,
    run_script,
    run_scripts,
)

__all__ = [
    "__version__",
    "ExitRecord",
    "OutputChunk",
    "OutputEnvelope",
    "ScriptSpec",
    "Summary",
    "ParallelMaxError",
    "ScriptLaunchError",
    "ShellOptionError",
    "RunScriptResult",
    "RunScriptsResult",
    "ScriptStartDetails",
    "determine_parallel_max",
    "run_script",
    "run_scripts",
]
