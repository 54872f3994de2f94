"""
DualChat runtime: cancellation, single-step execution and the turn loop.
"""

from .cancellation import CancelToken
from .discussion_loop import DiscussionLoop, DiscussionRunState, LoopOutcome, LoopResult
from .step_executor import FlowContext, FlowState, StepExecutor

__all__ = [
    "CancelToken",
    "DiscussionLoop",
    "DiscussionRunState",
    "LoopOutcome",
    "LoopResult",
    "FlowContext",
    "FlowState",
    "StepExecutor",
]
