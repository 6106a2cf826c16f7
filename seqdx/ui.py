"""ANSI colors, output helpers, markdown rendering."""

from __future__ import annotations

import sys

from rich.console import Console
from rich.markdown import Markdown
from rich.padding import Padding
from rich.theme import Theme

from seqdx.state import config


# ── Rich console ────────────────────────────────────────────────────────────

_theme = Theme({"markdown.heading": "bold cyan"})
console = Console(theme=_theme, highlight=False)


def render_markdown(text: str, target: Console | None = None):
    """Render markdown text to the terminal."""
    out = target or console
    out.print(
        Padding(Markdown(text), (0, 0, 0, 2)),
        width=min(out.width, 100),
    )


# ── ANSI Colors ─────────────────────────────────────────────────────────────

class C:
    CYAN    = "\033[1;36m"
    DIM     = "\033[2m"
    YELLOW  = "\033[1;33m"
    GREEN   = "\033[1;32m"
    RED     = "\033[1;31m"
    BOLD    = "\033[1m"
    RESET   = "\033[0m"


# ── Output helpers ──────────────────────────────────────────────────────────

def dim(msg: str):
    print(f"  {C.DIM}{msg}{C.RESET}", flush=True)


def error(msg: str):
    print(f"  {C.RED}[Error] {msg}{C.RESET}", file=sys.stderr, flush=True)


def success(msg: str):
    print(f"  {C.GREEN}{msg}{C.RESET}", flush=True)


def dbg(msg: str):
    if config.debug:
        print(f"{C.YELLOW}[DEBUG] {msg}{C.RESET}", file=sys.stderr, flush=True)


def dbg_block(label: str, content: str):
    if config.debug:
        preview = content[:500] + ("..." if len(content) > 500 else "")
        print(f"{C.YELLOW}── {label} ──{C.RESET}", file=sys.stderr, flush=True)
        print(f"{C.DIM}{preview}{C.RESET}", file=sys.stderr, flush=True)
