"""
Tests for the exponential backoff decorator
"""

import pytest

from catalog_sync.utils.retry import with_backoff


class Flaky(Exception):
    pass


def _failing(times, exc=Flaky):
    calls = {"count": 0}

    def func():
        calls["count"] += 1
        if calls["count"] <= times:
            raise exc("boom")
        return "ok"

    return func, calls


def test_succeeds_after_retries_with_doubling_delays(_no_sleep):
    func, calls = _failing(2)
    wrapped = with_backoff(max_retries=3, initial_delay=2.0, exceptions=(Flaky,))(func)

    assert wrapped() == "ok"
    assert calls["count"] == 3
    assert _no_sleep == [2.0, 4.0]


def test_reraises_after_max_retries(_no_sleep):
    func, calls = _failing(10)
    wrapped = with_backoff(max_retries=3, initial_delay=2.0, exceptions=(Flaky,))(func)

    with pytest.raises(Flaky):
        wrapped()

    assert calls["count"] == 4
    assert _no_sleep == [2.0, 4.0, 8.0]


def test_other_exceptions_are_not_retried(_no_sleep):
    func, calls = _failing(1, exc=KeyError)
    wrapped = with_backoff(max_retries=3, exceptions=(Flaky,))(func)

    with pytest.raises(KeyError):
        wrapped()

    assert calls["count"] == 1
    assert _no_sleep == []


def test_on_retry_callback_receives_retry_number_and_delay(_no_sleep):
    seen = []
    func, _ = _failing(2)
    wrapped = with_backoff(
        max_retries=3,
        initial_delay=1.0,
        exponential_base=3.0,
        exceptions=(Flaky,),
        on_retry=lambda n, delay, error: seen.append((n, delay, type(error))),
    )(func)

    wrapped()

    assert seen == [(1, 1.0, Flaky), (2, 3.0, Flaky)]


def test_preserves_function_name():
    @with_backoff()
    def fetch_batch():
        return None

    assert fetch_batch.__name__ == "fetch_batch"
