"""
Console output formatting for DualChat.

Styled terminal output for the two agents, system notices and the notepad.
"""

import sys
from typing import Optional


class Style:
    """ANSI escape codes for terminal styling."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    ITALIC = "\033[3m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"


class StatusIcon:
    """Status icons for different message kinds."""
    SUCCESS = "✓"
    FAILURE = "✗"
    WARNING = "⚠"
    INFO = "ℹ"
    ARROW = "→"
    BRAIN = "🧠"


# Agent colours in the transcript
AGENT_STYLES = {
    "cognito": Style.BLUE,
    "muse": Style.MAGENTA,
    "user": Style.GREEN,
    "system": Style.DIM,
}


class Console:
    """
    Styled console output for DualChat.

    - Coloured status indicators
    - Agent messages with per-agent colours
    - Collapsible reasoning traces (shown in verbose mode)
    """

    _enabled = True  # Can disable colors for non-TTY
    _verbose = False

    @classmethod
    def enable_colors(cls, enabled: bool = True) -> None:
        cls._enabled = enabled

    @classmethod
    def set_verbose(cls, verbose: bool = True) -> None:
        cls._verbose = verbose

    @classmethod
    def _style(cls, text: str, *styles: str) -> str:
        """Apply styles to text if colors are enabled."""
        if not cls._enabled or not sys.stdout.isatty():
            return text
        return f"{''.join(styles)}{text}{Style.RESET}"

    @classmethod
    def _status(cls, icon: str, message: str, detail: Optional[str]) -> None:
        if detail:
            print(f"{icon} {message} {cls._style(f'({detail})', Style.DIM)}")
        else:
            print(f"{icon} {message}")

    # === Status Messages ===

    @classmethod
    def success(cls, message: str, detail: Optional[str] = None) -> None:
        cls._status(
            cls._style(StatusIcon.SUCCESS, Style.GREEN, Style.BOLD),
            cls._style(message, Style.GREEN),
            detail,
        )

    @classmethod
    def error(cls, message: str, detail: Optional[str] = None) -> None:
        cls._status(
            cls._style(StatusIcon.FAILURE, Style.RED, Style.BOLD),
            cls._style(message, Style.RED),
            detail,
        )

    @classmethod
    def warning(cls, message: str, detail: Optional[str] = None) -> None:
        cls._status(
            cls._style(StatusIcon.WARNING, Style.YELLOW),
            cls._style(message, Style.YELLOW),
            detail,
        )

    @classmethod
    def info(cls, message: str, detail: Optional[str] = None) -> None:
        cls._status(cls._style(StatusIcon.INFO, Style.BLUE), message, detail)

    @classmethod
    def debug(cls, message: str) -> None:
        """Print only in verbose mode."""
        if cls._verbose:
            print(cls._style(f"  {message}", Style.DIM))

    # === Discussion ===

    @classmethod
    def agent_message(
        cls,
        agent_name: str,
        message: str,
        duration_ms: Optional[float] = None,
        thoughts: Optional[str] = None,
    ) -> None:
        """Display a message from an agent."""
        color = AGENT_STYLES.get(agent_name.lower(), Style.CYAN)
        name = cls._style(f"[{agent_name.upper()}]:", Style.BOLD, color)
        timing_text = ""
        if duration_ms is not None:
            timing_text = " " + cls._style(f"({duration_ms / 1000:.1f}s)", Style.DIM)
        print(f"\n{name}{timing_text} {message}")
        if thoughts and cls._verbose:
            icon = cls._style(StatusIcon.BRAIN, Style.DIM)
            print(cls._style(f"  {icon} {thoughts}", Style.DIM, Style.ITALIC))

    @classmethod
    def system_notice(cls, message: str) -> None:
        icon = cls._style(StatusIcon.ARROW, Style.DIM)
        print(f"{icon} {cls._style(message, Style.DIM)}")

    @classmethod
    def user_prompt(cls, prompt: str = "YOU") -> str:
        """Show user input prompt and get input."""
        return input(cls._style(f"[{prompt}]: ", Style.BOLD, Style.WHITE))

    # === Separators and Headers ===

    @classmethod
    def header(cls, text: str, width: int = 60) -> None:
        line = cls._style("=" * width, Style.DIM)
        print(f"\n{line}")
        print(cls._style(text.center(width), Style.BOLD))
        print(line)

    @classmethod
    def separator(cls, char: str = "─", width: int = 50) -> None:
        print(cls._style(char * width, Style.DIM))


# Convenience singleton
console = Console()


from .timing import (
    AgentCallStats,
    ProcessingTimer,
    print_timing_summary,
    summarize_call_timings,
)

__all__ = [
    # Console
    "Style",
    "StatusIcon",
    "Console",
    "console",
    # Timing
    "AgentCallStats",
    "ProcessingTimer",
    "print_timing_summary",
    "summarize_call_timings",
]
