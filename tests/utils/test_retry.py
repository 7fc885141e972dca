import pytest

from kubeseed.utils.retry import RetryError, RetryPolicy, retry


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def sleep(self, s):
        self.sleeps.append(s)
        self.now += s

    def __call__(self):
        return self.now


@pytest.mark.parametrize(
    "timeout,interval,expected",
    [(30, 2, 15), (10, 3, 4), (1, 5, 1), (0.3, 0.1, 3)],
)
def test_from_timeout_uses_ceiling(timeout, interval, expected):
    assert RetryPolicy.from_timeout(timeout, interval).max_attempts == expected


def test_poll_delay_first_sleeps_before_every_probe():
    clock = FakeClock()
    calls = []

    def probe():
        calls.append(clock.now)
        return False

    result = RetryPolicy(max_attempts=3, interval=2, delay_first=True).poll(
        probe, sleep=clock.sleep, clock=clock
    )
    assert not result.succeeded
    assert result.attempts == 3
    assert calls == [2, 4, 6]


def test_poll_immediate_first_probe_and_no_trailing_sleep():
    clock = FakeClock()
    seen = iter([False, False, True])
    result = RetryPolicy(max_attempts=5, interval=1).poll(
        lambda: next(seen), sleep=clock.sleep, clock=clock
    )
    assert result.succeeded
    assert result.attempts == 3
    assert clock.sleeps == [1, 1]


def test_poll_respects_deadline():
    clock = FakeClock()
    result = RetryPolicy(max_attempts=100, interval=1, deadline=3).poll(
        lambda: False, sleep=clock.sleep, clock=clock
    )
    assert not result.succeeded
    assert result.attempts == 4


def test_policy_rejects_bad_bounds():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0, interval=1)
    with pytest.raises(ValueError):
        RetryPolicy.from_timeout(10, 0)


def test_retry_decorator_retries_then_raises():
    attempts = []

    @retry(retries=3, delay=0, retry_on=(ConnectionError,), on_retry=lambda a, e: attempts.append(a), sleep=lambda s: None)
    def flaky():
        raise ConnectionError("down")

    with pytest.raises(RetryError) as ei:
        flaky()
    assert attempts == [1, 2, 3]
    assert isinstance(ei.value.__cause__, ConnectionError)


def test_retry_decorator_returns_first_success():
    results = iter([ConnectionError("x"), "ok"])

    @retry(retries=3, delay=0, retry_on=(ConnectionError,), sleep=lambda s: None)
    def sometimes():
        r = next(results)
        if isinstance(r, Exception):
            raise r
        return r

    assert sometimes() == "ok"
