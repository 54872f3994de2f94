"""
DualChat Orchestrators.

- SessionOrchestrator: session lifecycle (start, stop, manual retry, resume)
- run_dualchat: one-shot convenience wrapper
"""

from .session_orchestrator import SessionOrchestrator, run_dualchat

__all__ = ["SessionOrchestrator", "run_dualchat"]
