"""
test_retry.py - 지수 백오프 재시도 테스트
"""

import pytest

from codebrick.utils.retry import backoff_delays, retry_with_exponential_backoff


class Flaky:
    """처음 n번 실패 후 성공."""

    def __init__(self, failures: int, exc: type[Exception] = ConnectionError) -> None:
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def __call__(self, value: str = "ok") -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"fail #{self.calls}")
        return value


class TestRetryWithExponentialBackoff:
    """retry_with_exponential_backoff 테스트."""

    def test_success_without_retry(self):
        func = Flaky(0)
        delays: list[float] = []

        assert retry_with_exponential_backoff(func, "x", sleep=delays.append) == "x"
        assert func.calls == 1
        assert delays == []

    def test_retries_then_succeeds(self):
        func = Flaky(2)
        delays: list[float] = []

        result = retry_with_exponential_backoff(
            func,
            value="done",
            initial_delay=1.0,
            exceptions=(ConnectionError,),
            sleep=delays.append,
        )

        assert result == "done"
        assert func.calls == 3
        assert delays == [1.0, 2.0]

    def test_delay_capped(self):
        func = Flaky(3)
        delays: list[float] = []

        retry_with_exponential_backoff(
            func,
            max_retries=3,
            initial_delay=4.0,
            max_delay=5.0,
            sleep=delays.append,
        )

        assert delays == [4.0, 5.0, 5.0]

    def test_exhausted_raises_last_error(self):
        func = Flaky(5)

        with pytest.raises(ConnectionError, match="fail #3"):
            retry_with_exponential_backoff(func, max_retries=2, sleep=lambda _: None)

        assert func.calls == 3

    def test_unlisted_exception_not_retried(self):
        func = Flaky(1, exc=ValueError)

        with pytest.raises(ValueError):
            retry_with_exponential_backoff(
                func,
                exceptions=(ConnectionError,),
                sleep=lambda _: None,
            )

        assert func.calls == 1


class TestBackoffDelays:
    def test_sequence(self):
        delays = backoff_delays(0.5, 3.0)

        assert [next(delays) for _ in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]
