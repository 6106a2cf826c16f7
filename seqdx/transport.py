"""HTTP transport: POST a case to the backend and stream the response text."""

from __future__ import annotations

import codecs
import http.client
import json
import socket
import threading
import urllib.error
import urllib.request
from dataclasses import asdict, dataclass
from typing import Iterator

from seqdx.errors import TransportError
from seqdx.state import config, diagnose_url
from seqdx.ui import dbg, dbg_block


@dataclass
class DiagnosisRequest:
    initial_info: str
    full_case: str
    ground_truth: str = ""

    def to_payload(self) -> dict:
        return asdict(self)


class ChunkStream:
    """Iterates decoded text chunks of one streaming response.

    Bytes are decoded incrementally, so a multi-byte character split
    across two reads comes out whole. `close()` may be called from another
    thread; a read failing because of it ends iteration quietly.
    """

    def __init__(self, resp, chunk_size: int):
        self._resp = resp
        self._chunk_size = chunk_size
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lock = threading.Lock()
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        while True:
            try:
                data = self._resp.read1(self._chunk_size)
            except (OSError, ValueError, http.client.HTTPException) as e:
                if self.closed:
                    return
                raise TransportError(str(e) or type(e).__name__) from e
            if not data:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    yield tail
                return
            text = self._decoder.decode(data)
            if text:
                yield text

    def close(self):
        with self._lock:
            if self.closed:
                return
            self.closed = True
        sock = _response_socket(self._resp)
        try:
            # wakes a reader blocked in recv() and drops the connection
            if sock is not None:
                sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self._resp.close()
        except OSError:
            pass


def _response_socket(resp):
    raw = getattr(getattr(resp, "fp", None), "raw", None)
    return getattr(raw, "_sock", None)


class HttpTransport:
    def __init__(self, url: str | None = None, timeout: float | None = None,
                 chunk_size: int | None = None):
        self.url = url or diagnose_url()
        self.timeout = timeout or config.timeout
        self.chunk_size = chunk_size or config.chunk_size

    def open(self, request: DiagnosisRequest) -> ChunkStream:
        """Send the case. Raises TransportError on connect failure or non-2xx."""
        payload = json.dumps(request.to_payload()).encode("utf-8")
        dbg(f"POST {self.url} ({len(payload)} bytes)")
        dbg_block("request", json.dumps(request.to_payload(), ensure_ascii=False, indent=2))
        try:
            req = urllib.request.Request(
                self.url,
                data=payload,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            resp = urllib.request.urlopen(req, timeout=self.timeout)
        except urllib.error.HTTPError as e:
            e.close()
            raise TransportError(f"HTTP error! status: {e.code}") from e
        except urllib.error.URLError as e:
            raise TransportError(str(e.reason)) from e
        except (OSError, ValueError, http.client.HTTPException) as e:
            raise TransportError(str(e) or type(e).__name__) from e
        return ChunkStream(resp, self.chunk_size)
