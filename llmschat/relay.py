"""Push-to-pull bridge between a provider's streaming callback and a reader.

The producer runs on its own thread and pushes chunks into a bounded queue;
the reader iterates the relay. An exception raised by the producer becomes
one last chunk carrying the error text, and a single end marker closes the
sequence.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Iterator

from .errors import ChatError

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64
DEFAULT_POLL_INTERVAL = 0.1

_END = object()

Emit = Callable[[str], bool]
Producer = Callable[[Emit, threading.Event], None]


class StreamRelay:
    def __init__(
        self,
        maxsize: int = DEFAULT_QUEUE_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max(1, maxsize))
        self._poll_interval = poll_interval
        self._cancel = cancel_event or threading.Event()
        self._thread: threading.Thread | None = None
        self._finished = False
        self._error: str | None = None
        self._lock = threading.Lock()

    @classmethod
    def run(
        cls,
        produce: Producer,
        *,
        maxsize: int = DEFAULT_QUEUE_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        cancel_event: threading.Event | None = None,
        name: str = "stream-relay",
    ) -> "StreamRelay":
        relay = cls(maxsize=maxsize, poll_interval=poll_interval, cancel_event=cancel_event)
        relay.start(produce, name=name)
        return relay

    # Producer side ------------------------------------------------------
    def start(self, produce: Producer, name: str = "stream-relay") -> None:
        if self._thread is not None:
            raise RuntimeError("StreamRelay has already been started.")
        self._thread = threading.Thread(
            target=self._run_producer,
            args=(produce,),
            name=name,
            daemon=True,
        )
        self._thread.start()

    def emit(self, chunk: str) -> bool:
        """Queue one chunk; returns False once the reader has gone away."""

        if not chunk:
            return not self._cancel.is_set()
        return self._put(chunk)

    def _run_producer(self, produce: Producer) -> None:
        try:
            produce(self.emit, self._cancel)
        except ChatError as exc:
            logger.warning("Stream ended with error: %s", exc)
            self._error = str(exc)
            self._put(self._error)
        except Exception as exc:  # pragma: no cover - runtime safety
            logger.exception("Unexpected failure in stream producer")
            self._error = f"unexpected stream error: {exc}"
            self._put(self._error)
        finally:
            self._put(_END)

    def _put(self, item: object) -> bool:
        # 読み手が止まっても生産側が永久にブロックしないよう、定期的にキャンセルを確認する
        while not self._cancel.is_set():
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return True
            except queue.Full:
                continue
        return False

    # Consumer side ------------------------------------------------------
    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        while True:
            if self._finished:
                raise StopIteration
            try:
                item = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                if self._cancel.is_set() or not self._producer_alive():
                    self._finish()
                continue
            if item is _END:
                self._finish()
                continue
            return item  # type: ignore[return-value]

    def close(self) -> None:
        """Abandon the stream and release a producer blocked on a full queue."""

        with self._lock:
            if not self._finished:
                self._cancel.set()
                self._finished = True
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def join(self, timeout: float | None = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def error(self) -> str | None:
        """Error text sent as the final chunk, if the producer failed."""

        return self._error

    def __enter__(self) -> "StreamRelay":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _finish(self) -> None:
        with self._lock:
            self._finished = True

    def _producer_alive(self) -> bool:
        if self._thread is None:
            return True
        # スレッド終了後に残ったチャンクは取りこぼさない
        return self._thread.is_alive() or not self._queue.empty()
