from .execution import ScriptExecutor, create_script_executor
from .parallel import available_parallelism, determine_parallel_max, default_parallel_max_hint, format_parallel_max
from .run_script import RunScriptResult, run_script
from .run_scripts import RunScriptsResult, ScriptStartDetails, run_scripts
from .scheduler import AdmissionScheduler
from .shell import resolve_script_shell, validate_script_shell_option

__all__ = [
    "ScriptExecutor",
    "create_script_executor",
    "available_parallelism",
    "determine_parallel_max",
    "default_parallel_max_hint",
    "format_parallel_max",
    "RunScriptResult",
    "run_script",
    "RunScriptsResult",
    "ScriptStartDetails",
    "run_scripts",
    "AdmissionScheduler",
    "resolve_script_shell",
    "validate_script_shell_option",
]
