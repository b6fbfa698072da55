"""Tests for the producer/consumer stream relay."""

import threading

import pytest

from llmschat.errors import ProviderError
from llmschat.relay import StreamRelay

POLL = 0.01


def _run(produce, **kwargs):
    kwargs.setdefault("poll_interval", POLL)
    return StreamRelay.run(produce, **kwargs)


class TestStreamRelay:
    """Tests for chunk ordering, errors and cancellation."""

    def test_chunks_arrive_in_order(self):
        def produce(emit, cancel):
            for chunk in ["a", "b", "c"]:
                emit(chunk)

        relay = _run(produce)
        assert list(relay) == ["a", "b", "c"]
        assert relay.error is None
        assert relay.finished

    def test_empty_chunks_are_skipped(self):
        def produce(emit, cancel):
            emit("")
            emit("x")

        assert list(_run(produce)) == ["x"]

    def test_error_is_the_last_chunk(self):
        def produce(emit, cancel):
            emit("partial")
            raise ProviderError("openai chat error: boom")

        relay = _run(produce)
        assert list(relay) == ["partial", "openai chat error: boom"]
        assert relay.error == "openai chat error: boom"

    def test_unexpected_exception_is_reported(self):
        def produce(emit, cancel):
            raise KeyError("missing")

        relay = _run(produce)
        chunks = list(relay)
        assert len(chunks) == 1
        assert chunks[0].startswith("unexpected stream error:")
        assert relay.error == chunks[0]

    def test_terminates_exactly_once(self):
        def produce(emit, cancel):
            emit("only")

        relay = _run(produce)
        assert list(relay) == ["only"]
        assert list(relay) == []

    def test_close_releases_blocked_producer(self):
        results = []

        def produce(emit, cancel):
            for index in range(100):
                accepted = emit(str(index))
                results.append(accepted)
                if not accepted:
                    return

        relay = _run(produce, maxsize=1)
        assert next(relay) == "0"
        relay.close()

        assert relay.join(timeout=2.0)
        assert relay.cancelled
        assert results[-1] is False
        assert list(relay) == []

    def test_normal_exit_does_not_cancel(self):
        def produce(emit, cancel):
            emit("done")

        with _run(produce) as relay:
            assert list(relay) == ["done"]
        assert not relay.cancelled

    def test_external_cancel_ends_iteration(self):
        cancel = threading.Event()
        release = threading.Event()

        def produce(emit, cancel_event):
            emit("first")
            release.wait(2.0)
            emit("second")

        relay = _run(produce, cancel_event=cancel)
        assert next(relay) == "first"
        cancel.set()
        release.set()
        assert list(relay) == []
        assert relay.join(timeout=2.0)

    def test_start_twice_is_rejected(self):
        relay = _run(lambda emit, cancel: None)
        with pytest.raises(RuntimeError):
            relay.start(lambda emit, cancel: None)
        relay.close()
