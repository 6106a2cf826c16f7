"""Stream driver: runs one diagnosis session against the backend."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable

from seqdx.errors import TransportError, ValidationError
from seqdx.state import SessionState
from seqdx.stream_parser import LineReassembler, classify
from seqdx.transcript import DifferentialSnapshot, Turn
from seqdx.transport import DiagnosisRequest, HttpTransport
from seqdx.ui import dbg


IDLE = "idle"
STREAMING = "streaming"
COMPLETED = "completed"
CANCELED = "canceled"
FAILED = "failed"
TERMINAL_STATES = (COMPLETED, CANCELED, FAILED)

STOPPED_BY_USER = "🏁 Process stopped by user."
REQUIRED_FIELDS_MESSAGE = "Please fill in the required fields."

_EOF = object()
_POLL_SECS = 0.2
_JOIN_SECS = 2.0


@dataclass
class DriverSnapshot:
    state: str
    turns: list[Turn]
    differential: DifferentialSnapshot | None
    error: str | None
    session_uuid: str


class StreamDriver:
    """
    Owns the session state machine:

        idle → streaming → completed | canceled | failed

    `start()` blocks in the calling thread until the stream ends. Chunks are
    read on a helper thread and handed over through a queue; every line of
    a chunk is classified and folded under `_lock` before observers are
    notified, so `snapshot()` never sees half a chunk.
    """

    def __init__(self, transport=None, session: SessionState | None = None):
        self.transport = transport or HttpTransport()
        self.session = session or SessionState()
        self.state: str = IDLE
        self._lock = threading.RLock()
        self._observers: list[Callable[["StreamDriver"], None]] = []
        self._cancelled = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._stream = None
        self._generation = 0

    # ── Observation ──

    def subscribe(self, callback: Callable[["StreamDriver"], None]):
        self._observers.append(callback)

    def snapshot(self) -> DriverSnapshot:
        with self._lock:
            return DriverSnapshot(
                state=self.state,
                turns=self.session.turns.snapshot(),
                differential=self.session.differential.snapshot,
                error=self.session.error,
                session_uuid=self.session.session_uuid,
            )

    def _notify(self):
        for callback in list(self._observers):
            callback(self)

    # ── Session control ──

    def start(self, initial_info: str, full_case: str, ground_truth: str = "") -> str:
        """Run one diagnosis. Returns the terminal state reached."""
        if not (initial_info or "").strip() or not (full_case or "").strip():
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        request = DiagnosisRequest(initial_info, full_case, ground_truth or "")

        if self.state == STREAMING:
            self.cancel()
            self._idle.wait()

        with self._lock:
            self._generation += 1
            generation = self._generation
            self.session.reset()
            self._cancelled.clear()
            self._idle.clear()
            self.state = STREAMING
        dbg(f"session {self.session.session_uuid[:8]} started")
        self._notify()

        try:
            return self._run(request, generation)
        finally:
            self._idle.set()

    def cancel(self):
        """Stop the running session. No-op unless streaming."""
        with self._lock:
            if self.state != STREAMING:
                return
            self._cancelled.set()
            stream = self._stream
        if stream is not None:
            stream.close()

    # ── Read loop ──

    def _run(self, request: DiagnosisRequest, generation: int) -> str:
        try:
            stream = self.transport.open(request)
        except TransportError as e:
            return self._finish(generation, FAILED, str(e))
        except Exception as e:
            dbg(f"unexpected error opening stream: {e!r}")
            return self._finish(generation, FAILED, str(e) or type(e).__name__)

        with self._lock:
            self._stream = stream
        if self._cancelled.is_set():
            stream.close()

        chunks: queue.Queue = queue.Queue()

        def _reader():
            try:
                for chunk in stream:
                    chunks.put(chunk)
            except Exception as e:  # handed to the driver thread
                chunks.put(e)
            chunks.put(_EOF)

        reader = threading.Thread(target=_reader, daemon=True)
        reader.start()

        reassembler = LineReassembler()
        failure: str | None = None
        try:
            while True:
                try:
                    item = chunks.get(timeout=_POLL_SECS)
                except queue.Empty:
                    if self._cancelled.is_set():
                        break
                    continue
                if item is _EOF:
                    break
                if isinstance(item, Exception):
                    if not self._cancelled.is_set():
                        failure = str(item) or type(item).__name__
                    break
                self._process_chunk(item, reassembler, generation)
                if self._cancelled.is_set():
                    self._drain(chunks, reassembler, generation)
                    break
        finally:
            stream.close()
            reader.join(timeout=_JOIN_SECS)
            if reader.is_alive():
                dbg("reader thread still blocked after close")
            with self._lock:
                if self._stream is stream:
                    self._stream = None
            dropped = reassembler.close()
            if dropped:
                dbg(f"dropping unterminated line: {dropped[:80]!r}")

        if self._cancelled.is_set():
            return self._finish(generation, CANCELED)
        if failure is not None:
            return self._finish(generation, FAILED, failure)
        return self._finish(generation, COMPLETED)

    def _drain(self, chunks: queue.Queue, reassembler: LineReassembler, generation: int):
        """Fold chunks that were already read before the cancel took effect."""
        while True:
            try:
                item = chunks.get_nowait()
            except queue.Empty:
                return
            if item is _EOF or isinstance(item, Exception):
                return
            self._process_chunk(item, reassembler, generation)

    def _process_chunk(self, chunk: str, reassembler: LineReassembler, generation: int):
        changed = False
        with self._lock:
            if generation != self._generation:
                return
            for line in reassembler.feed(chunk):
                c = classify(line)
                if c.kind == "differential":
                    changed = self.session.differential.apply(c) or changed
                else:
                    changed = self.session.turns.apply(c) or changed
        if changed:
            self._notify()

    def _finish(self, generation: int, state: str, error: str | None = None) -> str:
        with self._lock:
            if generation != self._generation:
                return state
            if state == CANCELED:
                self.session.turns.add_status(STOPPED_BY_USER)
            elif state == FAILED:
                self.session.error = f"Failed to connect to backend: {error}"
                dbg(f"transport error: {error}")
            self.state = state
        dbg(f"session {self.session.session_uuid[:8]} {state}")
        self._notify()
        return state
