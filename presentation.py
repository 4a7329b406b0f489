# presentation.py - Terminal view for the voice coach
"""
A rich Live view of the conversation plus a line-based command reader.

Each tick the view reads the current SessionState and draws:
- the avatar glyph for the lifecycle (paused overrides it)
- the status text
- frequency bars from the visualizer while listening
- pulsing rings while speaking
- the last few conversation turns and the current practice activity

Commands typed on stdin are parsed into Command objects and handed to the
app controller; the view never touches the state machine directly.
"""

import asyncio
import math
import sys
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from session_state import Category, Lifecycle, Role, SessionState

AVATARS = {
    Lifecycle.IDLE: "◉",
    Lifecycle.LISTENING: "🎙",
    Lifecycle.PROCESSING: "⟳",
    Lifecycle.SPEAKING: "♫",
}
PAUSED_AVATAR = "⏸"

SESSION_TITLES = {
    Category.VOCALS: "Vocal Guru Session",
    Category.INSTRUMENTS: "Instrumental Guru Session",
}

PURPLE = "rgb(168,85,247)"
INDIGO = "rgb(99,102,241)"
AMBER = "rgb(251,191,36)"

COMMANDS = ("pause", "voice", "rate", "pitch", "category", "practice", "jam",
            "transform", "sing", "melody", "help", "quit")
ALIASES = {"p": "pause", "q": "quit", "exit": "quit", "?": "help"}

HELP_TEXT = (
    "space/p  pause or resume        voice female|male     rate <0.5-1.5>   pitch <0.5-1.5>\n"
    "category vocals|instruments     practice [record|done]  sing [title]\n"
    "jam <instrument>   transform <instrument>   melody <prompt>   quit"
)


@dataclass(frozen=True)
class Command:
    name: str
    arg: str = ""


@dataclass
class Activity:
    """What the practice panel below the avatar shows."""
    title: str
    body: object = ""
    style: str = "cyan"


def parse_command(line: str) -> Optional[Command]:
    if line.strip("\r\n") == " ":
        return Command("pause")
    words = line.strip().split(maxsplit=1)
    if not words:
        return None
    name = ALIASES.get(words[0].lower(), words[0].lower())
    if name not in COMMANDS:
        print(f"[View] Unknown command '{words[0]}'. Type 'help' for the list.")
        return None
    return Command(name, words[1].strip() if len(words) > 1 else "")


def avatar_for(state: SessionState) -> Text:
    if state.paused:
        return Text(PAUSED_AVATAR, style=f"bold {AMBER}")
    return Text(AVATARS[state.lifecycle], style=f"bold {PURPLE}")


def render_bars(frame: np.ndarray, columns: int = 32, height: int = 6) -> Text:
    """Vertical bars, one per group of frequency bins."""
    levels = [0] * columns
    if len(frame):
        groups = np.array_split(frame.astype(np.float32), columns)
        levels = [int(round(group.mean() / 255.0 * height)) if len(group) else 0 for group in groups]

    lines = []
    for row in range(height, 0, -1):
        lines.append("".join("█" if level >= row else " " for level in levels))
    return Text("\n".join(lines), style=PURPLE)


def render_rings(now: float, rings: int = 4) -> Text:
    """Pulsing rings drawn around the avatar while the coach speaks."""
    text = Text(justify="center")
    for i in range(1, rings + 1):
        radius = 50 + i * 20 + math.sin(now * 2 + i) * 10
        opacity = 0.5 - i * 0.1 + math.cos(now * 2 + i) * 0.1
        width = max(1, int(radius / 5))
        style = INDIGO if opacity >= 0.25 else f"dim {INDIGO}"
        text.append("●" * width + "\n", style=style)
    return text


def render_history(history: Sequence, limit: int = 4) -> Table:
    table = Table(show_header=False, box=None, expand=True, padding=(0, 1))
    table.add_column("who", style="bold", width=8, no_wrap=True)
    table.add_column("text", overflow="fold")
    for turn in history[-limit:]:
        if turn.role is Role.MODEL:
            table.add_row(Text("Coach", style=PURPLE), turn.text)
        else:
            table.add_row(Text("You", style=INDIGO), turn.text)
    return table


def render_marked(marked) -> Text:
    """Lyrics with the words the scorer flagged shown in red."""
    text = Text()
    for word in marked:
        text.append(word.word, style="green" if word.correct else "bold red underline")
    return text


def render_recitation(tokens: Sequence[str], highlighted: int) -> Text:
    text = Text()
    for index, token in enumerate(tokens):
        text.append(token, style="bold black on cyan" if index == highlighted else "")
    return text


def build_view(state: SessionState, frame: Optional[np.ndarray], now: float,
               activity: Optional[Activity] = None):
    parts = [Align.center(avatar_for(state))]

    if state.lifecycle is Lifecycle.LISTENING and not state.paused and frame is not None:
        parts.append(Align.center(render_bars(frame)))
    elif state.lifecycle is Lifecycle.SPEAKING and not state.paused:
        parts.append(Align.center(render_rings(now)))
    else:
        parts.append(Text(""))

    parts.append(Align.center(Text(state.status_text, style="bold")))
    parts.append(render_history(state.history))

    if activity is not None:
        parts.append(Panel(activity.body, title=activity.title, border_style=activity.style))

    parts.append(Text(HELP_TEXT, style="dim"))
    return Panel(Group(*parts),
                 title=SESSION_TITLES[state.category],
                 border_style=AMBER if state.paused else PURPLE)


class CoachView:
    def __init__(self, app, console: Optional[Console] = None, refresh_per_second: int = 20):
        self.app = app
        self.console = console or Console()
        self.refresh_per_second = refresh_per_second
        self._tasks = set()

    def render(self):
        state = self.app.manager.state
        frame = None
        if state.lifecycle is Lifecycle.LISTENING and not state.paused:
            frame = self.app.visualizer.frame()
        return build_view(state, frame, time.monotonic(), self.app.activity)

    def submit(self, line: str) -> Optional[asyncio.Task]:
        command = parse_command(line)
        if command is None:
            return None
        task = asyncio.get_running_loop().create_task(self._run_command(command))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_command(self, command: Command) -> None:
        try:
            await self.app.handle(command)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"[View] Command '{command.name}' failed: {e}")

    def _on_stdin(self) -> None:
        line = sys.stdin.readline()
        if not line:
            # EOF
            self.app.quit_requested = True
            return
        self.submit(line)

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        loop.add_reader(sys.stdin.fileno(), self._on_stdin)
        try:
            with Live(self.render(), console=self.console, auto_refresh=False,
                      redirect_stdout=True, redirect_stderr=True) as live:
                while not self.app.quit_requested:
                    live.update(self.render(), refresh=True)
                    await asyncio.sleep(1.0 / self.refresh_per_second)
        finally:
            loop.remove_reader(sys.stdin.fileno())
            for task in list(self._tasks):
                task.cancel()
