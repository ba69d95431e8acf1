"""
로깅 설정.

- 각 모듈: logger = logging.getLogger(__name__)
- CLI 시작 시 setup_logging() 한 번 호출
- 기본 WARNING (콘솔 출력은 rich가 담당), --verbose 시 DEBUG
"""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 외부 라이브러리 로거 (verbose가 아니면 조용히)
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(verbose: bool = False) -> None:
    """
    루트 로거 설정.

    Args:
        verbose: True면 DEBUG, 아니면 WARNING
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
