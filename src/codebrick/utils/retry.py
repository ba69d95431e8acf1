"""
재시도 로직 유틸리티.

원격(GitHub) 호출의 일시적 전송 오류에만 사용합니다.
템플릿 엔진 자체는 재시도하지 않습니다.
"""

import logging
import time
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delays(
    initial_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> Iterator[float]:
    """initial_delay부터 exponential_base배씩 증가, max_delay에서 고정."""
    delay = initial_delay
    while True:
        yield min(delay, max_delay)
        delay *= exponential_base


def retry_with_exponential_backoff(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    label: str | None = None,
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 동기 재시도.

    Args:
        func: 재시도할 함수
        *args: func에 전달할 위치 인자
        max_retries: 최대 재시도 횟수 (총 시도 = max_retries + 1)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들 (그 외 예외는 즉시 전파)
        sleep: 대기 함수 (테스트에서 교체)
        label: 로그에 표시할 작업 이름 (기본: func 이름)
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    name = label or getattr(func, "__name__", "call")
    attempts = max_retries + 1
    delays = backoff_delays(initial_delay, max_delay, exponential_base)

    for attempt in range(1, attempts + 1):
        try:
            result = func(*args, **kwargs)
        except exceptions as e:
            if attempt == attempts:
                logger.error(f"{name}: giving up after {attempts} attempts ({e})")
                raise
            delay = next(delays)
            logger.warning(f"{name}: attempt {attempt}/{attempts} failed ({e}), retrying in {delay:.1f}s")
            sleep(delay)
            continue

        if attempt > 1:
            logger.info(f"{name}: succeeded on attempt {attempt}/{attempts}")
        return result

    raise RuntimeError(f"{name}: retry loop exited without result")
