"""
DualChat: two-agent deliberative chat with a shared Markdown notepad.

Two model personas, Cognito (logical) and Muse (creative, skeptical), discuss
a user query turn by turn and edit a shared notepad through structured JSON
actions. Cognito closes each session by writing the final answer into the
notepad.

Architecture:
- core/: message model, reply protocol parser, notepad engine
- config/: settings snapshot and model catalog
- agents/: personas and prompt builders
- llm_backends/: Gemini and OpenAI-compatible REST backends
- runtime/: cancellation, step executor with retry, discussion loop
- orchestrators/: session lifecycle, manual retry and resume
- storage/: transcript and on-disk state

Quick Start:
    from DualChat import run_dualchat

    orchestrator = await run_dualchat("Is P = NP likely to be resolved soon?")
    print(orchestrator.notepad.content)
"""

__version__ = "0.1.0"

from .config import ChatSettings, load_settings
from .core import DiscussionMode, ImagePart, Message, Notepad, Sender, parse_ai_response
from .llm_backends import GeminiBackend, LLMBackend, OpenAIBackend, create_backend
from .orchestrators import SessionOrchestrator, run_dualchat
from .storage import StateStore, Transcript
from .utils import console

__all__ = [
    "ChatSettings",
    "load_settings",
    "DiscussionMode",
    "ImagePart",
    "Message",
    "Notepad",
    "Sender",
    "parse_ai_response",
    "GeminiBackend",
    "LLMBackend",
    "OpenAIBackend",
    "create_backend",
    "SessionOrchestrator",
    "run_dualchat",
    "StateStore",
    "Transcript",
    "console",
]
