"""
원자적 JSON 쓰기: store.json, brick.json 공용.

규칙:
- 중간 상태 없음: 같은 디렉토리 temp → rename
- rename 전에 중단되면 기존 파일 그대로 유지
- 가능한 환경에서 내구성 강화: 파일 fsync + 디렉토리 fsync
- fsync 실패 시 경고 남기고 계속 진행
- 락 없음: 동시 실행 시 마지막 쓰기가 이김 (단일 사용자 도구)
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _fsync_dir(dir_path: Path) -> None:
    """
    디렉토리 fsync (가능한 환경에서).

    rename 후 디렉토리 엔트리까지 내구성을 강화하려면 필요.
    Windows 등 O_DIRECTORY 미지원 환경에서는 debug 로그만 남긴다.

    Args:
        dir_path: fsync할 디렉토리 경로
    """
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.debug(f"Directory fsync skipped for {dir_path}: {e}")


def atomic_write_json(path: Path, data: Any) -> None:
    """
    원자적 JSON 쓰기.

    동작:
    - temp 파일에 전체 기록 + fsync
    - os.replace로 대상 교체 (원자적)
    - 실패 시 temp 파일 삭제, 원본 유지

    Args:
        path: 저장할 파일 경로
        data: JSON 직렬화할 데이터

    Raises:
        OSError: 쓰기/rename 실패 (호출자가 도메인 에러로 변환)
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.warning(f"Failed to remove temp file {temp_path}")
        raise


def read_json(path: Path) -> Any | None:
    """
    JSON 파일 읽기.

    Returns:
        파싱된 데이터. 파일이 없거나 파싱 실패 시 None
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read {path}: {e}")
        return None
