"""Live terminal rendering of a diagnosis session."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from seqdx.executor import STREAMING, TERMINAL_STATES, DriverSnapshot
from seqdx.transcript import DifferentialSnapshot, Turn
from seqdx.ui import console, render_markdown


AGENT_ICONS = (
    ("Challenger",   "🧪"),
    ("Stewardship",  "💳"),
    ("Specialist",   "🩺"),
    ("Orchestrator", "🤖"),
)
DEFAULT_AGENT_ICON = "🤖"


def agent_icon(name: str) -> str:
    for key, icon in AGENT_ICONS:
        if key in name:
            return icon
    return DEFAULT_AGENT_ICON


def differential_table(snapshot: DifferentialSnapshot) -> Table:
    table = Table(
        title="Top Differential Diagnoses",
        box=box.SIMPLE,
        header_style="bold cyan",
        title_justify="left",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Diagnosis")
    table.add_column("Probability", justify="right", style="bold")
    for rank, item in enumerate(snapshot.items, 1):
        table.add_row(str(rank), Text(item.diagnosis), Text(item.probability))
    return table


class TranscriptRenderer:
    """
    StreamDriver observer that prints the transcript incrementally.

    Turns are append-only and agent content only ever grows, so each
    update prints just what is new: fresh turn headers, then content
    lines past the count already printed for that turn.
    """

    def __init__(self, target: Console | None = None):
        self.console = target or console
        self._session: str | None = None
        self._printed_lines: dict[str, int] = {}
        self._last_turn_id: str | None = None
        self._differential: DifferentialSnapshot | None = None
        self._state: str | None = None

    def __call__(self, driver):
        self.update(driver.snapshot())

    def update(self, snap: DriverSnapshot):
        if snap.session_uuid != self._session:
            self._session = snap.session_uuid
            self._printed_lines.clear()
            self._last_turn_id = None
            self._differential = None
            self._state = None

        for turn in snap.turns:
            self._render_turn(turn)

        if snap.differential is not None and snap.differential != self._differential:
            self._differential = snap.differential
            self.console.print(differential_table(snap.differential))

        if snap.state != self._state:
            self._state = snap.state
            self._render_state(snap)

    def _render_turn(self, turn: Turn):
        is_new = turn.id not in self._printed_lines
        if turn.kind == "status":
            if is_new:
                self._printed_lines[turn.id] = 0
                self.console.print(Text.assemble(
                    (f"  {turn.timestamp}  ", "dim"),
                    (turn.status_text, "yellow"),
                ))
                self._last_turn_id = turn.id
            return

        lines = turn.lines
        done = self._printed_lines.get(turn.id, 0)
        if not is_new and done >= len(lines):
            return
        if is_new or self._last_turn_id != turn.id:
            suffix = "" if is_new else " (cont.)"
            self.console.print(Text.assemble(
                (f"{agent_icon(turn.agent_name)} ", ""),
                (turn.agent_name, "bold magenta"),
                (f"{suffix}  {turn.timestamp}", "dim"),
            ))
        if len(lines) > done:
            # hard breaks: each backend line stays on its own line
            render_markdown("  \n".join(lines[done:]), self.console)
        self._printed_lines[turn.id] = len(lines)
        self._last_turn_id = turn.id

    def _render_state(self, snap: DriverSnapshot):
        # Failures are reported on stderr by the caller.
        if snap.state == STREAMING:
            self.console.print(Text("  Orchestrating Agents...", style="dim"))
        elif snap.state in TERMINAL_STATES:
            self.console.print(Text("  System Ready", style="dim"))
