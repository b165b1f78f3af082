from __future__ import annotations

import pytest

from plnr.core.helpers import expand_list, get_anything, try_again


def test_expand_list_enumeration_order():
    assert expand_list(a=[1, 2], b=["x", "y"]) == [
        {"a": 1, "b": "x"},
        {"a": 1, "b": "y"},
        {"a": 2, "b": "x"},
        {"a": 2, "b": "y"},
    ]


def test_expand_list_accepts_iterables_and_empty_axes():
    assert expand_list(a=range(3)) == [{"a": 0}, {"a": 1}, {"a": 2}]
    assert expand_list(a=[1, 2], b=[]) == []
    assert expand_list() == [{}]


def test_get_anything():
    assert get_anything("plan_fixtures:scaled_sum").__name__ == "scaled_sum"
    assert get_anything("os.path.join") is not None
    assert get_anything("plan_fixtures:nope", default="fallback") == "fallback"
    assert get_anything("no_such_module_plnr:thing") is None


def test_try_again_retries_then_succeeds():
    attempts = {"count": 0}
    sleeps: list[float] = []
    messages: list[str] = []

    def flaky(value):
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise ConnectionError("down")
        return value * 2

    result = try_again(
        flaky,
        21,
        times=3,
        delay_seconds=1.0,
        backoff=2.0,
        logger=messages.append,
        sleep=sleeps.append,
    )
    assert result == 42
    assert sleeps == [1.0, 2.0]
    assert len(messages) == 2
    assert messages[0].startswith("[RETRY] attempt 1/3 failed: ConnectionError")


def test_try_again_reraises_last_error():
    sleeps: list[float] = []

    def broken():
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError, match="nope"):
        try_again(broken, times=2, delay_seconds=0.5, sleep=sleeps.append)
    assert sleeps == [0.5]


def test_try_again_only_catches_listed_exceptions():
    sleeps: list[float] = []

    def broken():
        raise KeyError("k")

    with pytest.raises(KeyError):
        try_again(broken, times=5, exceptions=(ConnectionError,), sleep=sleeps.append)
    assert sleeps == []
    with pytest.raises(ValueError):
        try_again(broken, times=0)
