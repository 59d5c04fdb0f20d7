"""Tests for the predicate-driven retry loop (no network involved)."""

from __future__ import annotations

import threading

import pytest

from presscache.output import OutputFormat, OutputManager, set_output
from presscache.retry import RetryPolicy


@pytest.fixture(autouse=True)
def _clean_output():
    set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True))
    yield


def _counter(results: list):
    """Operation returning *results* one by one, repeating the last."""
    calls = {"n": 0}

    def operation():
        index = min(calls["n"], len(results) - 1)
        calls["n"] += 1
        return results[index]

    return operation, calls


def _no_sleep(delays: list[float]):
    return lambda seconds: delays.append(seconds)


class TestRetryPolicy:
    def test_accepted_first_time_runs_once(self) -> None:
        operation, calls = _counter([[1, 2]])
        policy = RetryPolicy(predicate=bool)
        delays: list[float] = []
        assert policy.run(operation, sleep=_no_sleep(delays)) == [1, 2]
        assert calls["n"] == 1
        assert delays == []

    def test_retries_until_predicate_holds(self) -> None:
        operation, calls = _counter([[], [], [3]])
        policy = RetryPolicy(max_retries=3, delay=2.0, predicate=bool)
        delays: list[float] = []
        assert policy.run(operation, sleep=_no_sleep(delays)) == [3]
        assert calls["n"] == 3
        assert delays == [2.0, 2.0]

    def test_exhaustion_returns_last_result_and_warns(self, capsys) -> None:
        operation, calls = _counter([[]])
        policy = RetryPolicy(max_retries=3, delay=0.5, predicate=bool, failure_message="gave up")
        result = policy.run(operation, sleep=_no_sleep([]))
        assert result == []
        assert calls["n"] == 4
        assert "gave up" in capsys.readouterr().err

    def test_no_predicate_accepts_anything(self) -> None:
        operation, calls = _counter([None])
        assert RetryPolicy().run(operation, sleep=_no_sleep([])) is None
        assert calls["n"] == 1

    def test_zero_retries(self) -> None:
        operation, calls = _counter([[]])
        RetryPolicy(max_retries=0, predicate=bool).run(operation, sleep=_no_sleep([]))
        assert calls["n"] == 1

    def test_cancel_event_interrupts_wait(self) -> None:
        operation, calls = _counter([[]])
        event = threading.Event()
        event.set()
        policy = RetryPolicy(max_retries=3, delay=60, predicate=bool)
        assert policy.run(operation, cancel_event=event) == []
        assert calls["n"] == 1
        assert event.is_set()

    def test_real_wait_without_cancel(self) -> None:
        operation, calls = _counter([[], [1]])
        policy = RetryPolicy(max_retries=1, delay=0, predicate=bool)
        assert policy.run(operation) == [1]
        assert calls["n"] == 2
