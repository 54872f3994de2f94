from .state_store import StateStore
from .transcript import DiagnosticSink, Transcript, TranscriptSink

__all__ = ["DiagnosticSink", "StateStore", "Transcript", "TranscriptSink"]
