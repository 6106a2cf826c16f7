"""Reconstructed transcript: turns, the turn accumulator, the differential."""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from typing import Union

from seqdx.stream_parser import Classification, DifferentialItem


DEFAULT_AGENT = "System Orchestrator"


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class AgentTurn:
    """One agent's accumulated message. Only TurnAccumulator grows `content`."""
    agent_name: str
    content: str = ""
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=time.time)

    kind = "agent"

    @property
    def lines(self) -> list[str]:
        return self.content.split("\n") if self.content else []

    @property
    def last_line(self) -> str:
        return self.content.rsplit("\n", 1)[-1]

    @property
    def timestamp(self) -> str:
        return time.strftime("%H:%M", time.localtime(self.created_at))


@dataclass(frozen=True)
class StatusTurn:
    status_text: str
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=time.time)

    kind = "status"

    @property
    def timestamp(self) -> str:
        return time.strftime("%H:%M", time.localtime(self.created_at))


Turn = Union[AgentTurn, StatusTurn]


@dataclass(frozen=True)
class DifferentialSnapshot:
    items: tuple[DifferentialItem, ...]
    raw_text: str


class TurnAccumulator:
    """
    Folds classified lines into an ordered, append-only turn list.

    - An agent header opens a new turn only when the name changes, so a
      header re-rendered over several lines collapses into one turn.
    - Content that repeats the current turn's last line is dropped; the
      backend repeats its last line on every redraw.
    - Content with no agent turn open goes to a synthesized
      "System Orchestrator" turn.
    """

    def __init__(self):
        self.turns: list[Turn] = []
        self.current_agent_name: str | None = None
        self.current_turn_id: str | None = None
        self._current: AgentTurn | None = None

    def reset(self):
        self.turns.clear()
        self.current_agent_name = None
        self.current_turn_id = None
        self._current = None

    def apply(self, c: Classification) -> bool:
        """Apply one classification. Returns True if the turn list changed."""
        if c.kind == "agent":
            return self._on_agent(c.text)
        if c.kind == "status":
            self.add_status(c.text)
            return True
        if c.kind == "content":
            return self._on_content(c.text)
        return False

    def add_status(self, text: str) -> StatusTurn:
        turn = StatusTurn(text)
        self.turns.append(turn)
        return turn

    def snapshot(self) -> list[Turn]:
        """Copies of the turns, safe to hand to another thread."""
        return [dataclasses.replace(t) for t in self.turns]

    def _open_agent_turn(self, name: str) -> AgentTurn:
        turn = AgentTurn(name)
        self.turns.append(turn)
        self.current_agent_name = name
        self.current_turn_id = turn.id
        self._current = turn
        return turn

    def _on_agent(self, name: str) -> bool:
        if name == self.current_agent_name:
            return False
        self._open_agent_turn(name)
        return True

    def _on_content(self, text: str) -> bool:
        turn = self._current
        if turn is None:
            turn = self._open_agent_turn(DEFAULT_AGENT)
        elif turn.content and turn.last_line == text:
            return False
        turn.content = f"{turn.content}\n{text}" if turn.content else text
        return True


class DifferentialTracker:
    """Holds only the latest differential; each update replaces it whole."""

    def __init__(self):
        self.snapshot: DifferentialSnapshot | None = None

    def reset(self):
        self.snapshot = None

    def apply(self, c: Classification) -> bool:
        if c.kind != "differential":
            return False
        self.snapshot = DifferentialSnapshot(items=c.items, raw_text=c.text)
        return True
