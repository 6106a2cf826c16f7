"""Line reassembly and classification for the diagnosis backend's text feed.

The backend streams terminal-style output, not a designed protocol:

    data: 🤔 Gathering history...
    data: ╭───── Agent Name: Dr. Hypothesis ─────╮
    data: │ Consider vasculitis given the rash.   │
    data: ╰───────────────────────────────────────╯
    data: 📊 Differential Diagnosis Updated: - Lupus: 42%

Structure is recovered line by line with a fixed precedence of text
patterns. `classify` never raises: anything unrecognised degrades to
"content", "empty" or "ignored".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal


EVENT_PREFIX = "data: "

_ANSI_SGR_RE = re.compile(r"\x1b\[[0-9;]*m")

DIFFERENTIAL_MARKERS = (
    "TOP DIFFERENTIAL DIAGNOSES",
    "📊 Differential Diagnosis Updated",
)
# "1. Lupus   Probability: 80%" or "- Lupus: 80%"
_DIFFERENTIAL_ITEM_RE = re.compile(
    r"(?:\d+\.\s+|- )([^:]+?)(?:\s+Probability: |:\s+)(\d+)%"
)
MAX_DIFFERENTIAL_ITEMS = 3

AGENT_MARKER = "Agent Name"
_AGENT_RE = re.compile(r"Agent Name:\s*([a-zA-Z.\- ]+)")

STATUS_ICONS = "🤔💰🩺🔬🧠🤝✅🏁⭐❌📊📈📉🏥🧬🧪"
_STATUS_RE = re.compile(f"^.{{0,5}}[{STATUS_ICONS}]")
MAX_STATUS_LENGTH = 150

BOX_CHARS = "╭╮╯╰─│"
_BOX_RE = re.compile(f"[{BOX_CHARS}]")
_FILLER_RE = re.compile(r"[\s\-_]")


Kind = Literal["ignored", "empty", "differential", "agent", "status", "content"]


@dataclass(frozen=True)
class DifferentialItem:
    diagnosis: str
    probability: str  # "NN%"


@dataclass(frozen=True)
class Classification:
    """Result of classifying one line.

    `text` carries the payload: the agent name for "agent", the full line
    for "status" and "differential", the cleaned text for "content".
    """
    kind: Kind
    text: str = ""
    items: tuple[DifferentialItem, ...] = ()


IGNORED = Classification("ignored")
EMPTY = Classification("empty")


class LineReassembler:
    """Turns arbitrarily split text chunks into complete lines.

    The trailing piece after the last newline is held back until more text
    arrives. Whatever is still pending at `close()` is dropped.
    """

    def __init__(self):
        self.pending: str = ""
        self.closed: bool = False

    def feed(self, chunk: str) -> list[str]:
        if self.closed:
            raise RuntimeError("feed() after close()")
        if not chunk:
            return []
        parts = (self.pending + chunk).split("\n")
        self.pending = parts.pop()
        return parts

    def close(self) -> str:
        """End of stream. Returns the discarded unterminated fragment."""
        dropped = self.pending
        self.pending = ""
        self.closed = True
        return dropped


def strip_ansi(text: str) -> str:
    return _ANSI_SGR_RE.sub("", text)


def parse_differential(content: str) -> tuple[DifferentialItem, ...]:
    """Extract up to three (diagnosis, probability) pairs from a line."""
    items = []
    for m in _DIFFERENTIAL_ITEM_RE.finditer(content):
        items.append(DifferentialItem(m.group(1).strip(), m.group(2) + "%"))
        if len(items) >= MAX_DIFFERENTIAL_ITEMS:
            break
    return tuple(items)


def is_status_line(content: str) -> bool:
    return (
        _STATUS_RE.match(content) is not None
        and len(content) < MAX_STATUS_LENGTH
        and AGENT_MARKER not in content
    )


def strip_box_drawing(content: str) -> str | None:
    """Remove framing glyphs. None when the line was only a border."""
    cleaned = _BOX_RE.sub("", content)
    if not _FILLER_RE.sub("", cleaned):
        return None
    return cleaned.strip()


def classify(line: str) -> Classification:
    trimmed = line.strip()
    if not trimmed.startswith(EVENT_PREFIX):
        return IGNORED

    content = strip_ansi(trimmed[len(EVENT_PREFIX):].strip())
    if not content:
        return IGNORED

    if any(marker in content for marker in DIFFERENTIAL_MARKERS):
        items = parse_differential(content)
        if items:
            return Classification("differential", content, items)

    m = _AGENT_RE.search(content)
    if m:
        name = m.group(1).strip()
        return Classification("agent", name) if name else EMPTY

    if is_status_line(content):
        return Classification("status", content)

    cleaned = strip_box_drawing(content)
    if cleaned is None:
        return EMPTY
    return Classification("content", cleaned)
