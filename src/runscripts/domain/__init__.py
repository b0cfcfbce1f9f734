from .types import ScriptSpec, ExitOutcome, OutputChunk, OutputEnvelope, ExitRecord, Summary, Event, OutputStreamName

__all__ = ["ScriptSpec", "ExitOutcome", "OutputChunk", "OutputEnvelope", "ExitRecord", "Summary", "Event", "OutputStreamName"]
