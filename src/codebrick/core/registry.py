"""
Registry: store.json (템플릿 이름 → 요약 항목).

규칙:
- name = 시스템 전체의 유일 키 (local/remote 공통)
- 파일 전체를 메모리로 읽고, 변경 시 전체를 다시 쓴다 (부분 갱신 없음)
- 목록 순서 = 삽입 순서 (정렬하지 않음, 인덱스 선택의 기준)
- 쓰기는 temp → rename (atomic_write_json)
- 락 없음: 다른 프로세스와 동시에 쓰면 마지막 쓰기가 이김
"""

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Any

from codebrick.core.atomic import atomic_write_json
from codebrick.domain.constants import (
    STORE_FILENAME,
    STORE_VERSION,
    TEMPLATE_NAME_PATTERN,
    TEMPLATES_DIRNAME,
)
from codebrick.domain.errors import (
    BrickError,
    ErrorCodes,
    InvalidTemplateNameError,
    IOFailureError,
)
from codebrick.domain.schemas import RegistryEntry

logger = logging.getLogger(__name__)


def validate_template_name(name: str) -> None:
    """
    템플릿 이름 검증.

    규칙: 영문자, 숫자, 하이픈, 언더스코어만 허용 ([A-Za-z0-9_-]+)

    Raises:
        InvalidTemplateNameError: INVALID_TEMPLATE_NAME
    """
    if not name or not TEMPLATE_NAME_PATTERN.fullmatch(name):
        raise InvalidTemplateNameError(
            ErrorCodes.INVALID_TEMPLATE_NAME,
            f"Invalid template name '{name}': only letters, numbers, "
            f"hyphens and underscores are allowed",
            name=name,
            pattern=TEMPLATE_NAME_PATTERN.pattern,
        )


class Registry:
    """
    store.json 핸들.

    사용법:
        with Registry.open(root) as registry:
            entry = registry.get("demo")
    """

    def __init__(
        self,
        root: Path,
        templates: dict[str, RegistryEntry] | None = None,
        version: str = STORE_VERSION,
    ) -> None:
        self.root = root
        self.version = version
        self._templates: dict[str, RegistryEntry] = dict(templates or {})

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @classmethod
    def open(cls, root: Path) -> "Registry":
        """
        store.json 로드.

        파일이 없으면 빈 Registry. 파싱 실패는 데이터 유실 방지를 위해 에러.

        Args:
            root: CodeBrick 루트 디렉토리

        Returns:
            Registry

        Raises:
            BrickError: STORE_CORRUPT
        """
        store_path = root / STORE_FILENAME
        if not store_path.exists():
            return cls(root)

        try:
            data = json.loads(store_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BrickError(
                ErrorCodes.STORE_CORRUPT,
                f"Cannot read registry {store_path}: {e}",
                path=str(store_path),
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("templates", {}), dict):
            raise BrickError(
                ErrorCodes.STORE_CORRUPT,
                f"Registry {store_path} has an unexpected shape",
                path=str(store_path),
            )

        templates: dict[str, RegistryEntry] = {}
        for name, raw_entry in data.get("templates", {}).items():
            try:
                templates[name] = RegistryEntry.from_dict(raw_entry)
            except (KeyError, TypeError, ValueError) as e:
                raise BrickError(
                    ErrorCodes.STORE_CORRUPT,
                    f"Registry entry '{name}' is invalid: {e}",
                    path=str(store_path),
                    name=name,
                ) from e

        return cls(root, templates, version=str(data.get("version", STORE_VERSION)))

    def flush(self) -> None:
        """
        store.json 전체 다시 쓰기.

        Raises:
            IOFailureError: STORE_WRITE_FAILED
        """
        try:
            atomic_write_json(self.store_path, self.to_dict())
        except OSError as e:
            raise IOFailureError(
                ErrorCodes.STORE_WRITE_FAILED,
                f"Failed to write registry {self.store_path}: {e}",
                path=str(self.store_path),
            ) from e

    def close(self) -> None:
        self.flush()

    def __enter__(self) -> "Registry":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        # 예외 시에는 메모리 상태를 버린다 (마지막 성공 쓰기가 유지됨)
        if exc_type is None:
            self.close()

    # =========================================================================
    # Contract
    # =========================================================================

    @property
    def store_path(self) -> Path:
        return self.root / STORE_FILENAME

    def get(self, name: str) -> RegistryEntry | None:
        return self._templates.get(name)

    def put(self, name: str, entry: RegistryEntry) -> None:
        """
        항목 추가/교체 후 즉시 저장.

        기존 이름이면 목록 위치를 유지한 채 교체된다.
        """
        validate_template_name(name)
        self._templates[name] = entry
        self.flush()
        logger.debug(f"Registry put '{name}' ({entry.type.value})")

    def remove(self, name: str) -> bool:
        """
        항목 삭제 후 즉시 저장.

        Returns:
            삭제 여부 (없던 이름이면 False, 파일 변경 없음)
        """
        if name not in self._templates:
            return False
        del self._templates[name]
        self.flush()
        logger.debug(f"Registry removed '{name}'")
        return True

    def names(self) -> list[str]:
        return list(self._templates)

    def list(self) -> dict[str, RegistryEntry]:
        """name → entry (삽입 순서) 사본."""
        return dict(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    # =========================================================================
    # Helpers
    # =========================================================================

    def storage_path(self, name: str) -> Path:
        """
        로컬 템플릿 저장 경로.

        항목에 기록된 path를 우선하고, 없으면 templates/<name>.
        """
        entry = self._templates.get(name)
        if entry is not None and entry.is_local and entry.path:
            path = Path(entry.path)
            return path if path.is_absolute() else self.root / path
        return self.root / TEMPLATES_DIRNAME / name

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "templates": {name: e.to_dict() for name, e in self._templates.items()},
        }
