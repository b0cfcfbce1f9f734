# src/runscripts/domain/types.py
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Literal, Mapping, Optional

from runscripts.core.text import decode_output

OutputStreamName = Literal["stdout", "stderr"]


@dataclass(frozen=True, slots=True)
class ScriptSpec:
    command: str
    working_directory: Optional[str] = None
    env: Mapping[str, str] = field(default_factory=dict)
    metadata: Any = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ExitOutcome:
    code: int
    signal: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OutputChunk:
    """Raw output captured from a script subprocess."""

    stream_name: OutputStreamName
    raw: bytes

    def decode(self, strip_ansi: bool = False) -> str:
        return decode_output(self.raw, strip=strip_ansi)


@dataclass(frozen=True, slots=True)
class OutputEnvelope:
    output_chunk: OutputChunk
    metadata: Any
    index: int


@dataclass(frozen=True, slots=True)
class ExitRecord:
    exit_code: int
    signal: Optional[str]
    success: bool
    start_time_iso: str
    end_time_iso: str
    duration_ms: int
    metadata: Any = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Summary:
    total_count: int
    success_count: int
    failure_count: int
    all_success: bool
    start_time_iso: str
    end_time_iso: str
    duration_ms: int
    script_results: list[ExitRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["script_results"] = [r.to_dict() for r in self.script_results]
        return data


@dataclass(frozen=True, slots=True)
class Event:
    type: str
    payload: Mapping[str, Any]
    source: str
    ts: float
