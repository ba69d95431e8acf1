"""
Error definitions for CodeBrick.

규칙:
- 조용한 실패 금지 → BrickError 계열로 명시적 실패
- 구조/식별 에러(NotFound, AlreadyExists, InvalidArchive, UnsupportedType)는
  변경 전에 검사하여 즉시 중단
- 개별 파일 I/O 실패는 Report에 수집 (배치 중단 없음)
- 메타데이터/레지스트리 쓰기 실패는 중단
"""

from typing import Any


class BrickError(Exception):
    """
    CodeBrick 에러 베이스.

    Usage:
        raise NotFoundError(ErrorCodes.TEMPLATE_NOT_FOUND, "Template 'x' not found", name="x")
    """

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            "message": self.message,
            **self.context,
        }


class NotFoundError(BrickError):
    """이름/경로/파일을 찾을 수 없음."""


class AlreadyExistsError(BrickError):
    """이름 충돌 (덮어쓰기 미확인)."""


class InvalidArchiveError(BrickError):
    """잘못된 .brick 컨테이너."""


class UnsupportedTypeError(BrickError):
    """템플릿 저장 타입에 맞지 않는 작업 (예: remote export)."""


class RemoteFetchError(BrickError):
    """원격(GitHub) 조회 실패. 재시도하지 않고 전파."""


class IOFailureError(BrickError):
    """파일시스템 에러."""


class InvalidTemplateNameError(BrickError):
    """템플릿 이름 규칙 위반."""


class NotInitializedError(BrickError):
    """루트 디렉토리가 초기화되지 않음 (brick init 필요)."""


class OperationCancelledError(BrickError):
    """사용자 취소. 현재 작업 중단, 상태 변경 없음."""

    def __init__(self, message: str = "Operation cancelled", **context: Any) -> None:
        super().__init__(ErrorCodes.CANCELLED, message, **context)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Identity ===
    INVALID_TEMPLATE_NAME = "INVALID_TEMPLATE_NAME"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    TEMPLATE_EXISTS = "TEMPLATE_EXISTS"
    TEMPLATE_NOT_LOCAL = "TEMPLATE_NOT_LOCAL"
    METADATA_NOT_FOUND = "METADATA_NOT_FOUND"
    STORAGE_NOT_FOUND = "STORAGE_NOT_FOUND"
    PATH_NOT_FOUND = "PATH_NOT_FOUND"
    NO_FILES = "NO_FILES"

    # === Storage ===
    NOT_INITIALIZED = "NOT_INITIALIZED"
    STORE_CORRUPT = "STORE_CORRUPT"
    METADATA_WRITE_FAILED = "METADATA_WRITE_FAILED"
    STORE_WRITE_FAILED = "STORE_WRITE_FAILED"
    FILE_IO_FAILED = "FILE_IO_FAILED"

    # === Type ===
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"

    # === Archive ===
    INVALID_ARCHIVE = "INVALID_ARCHIVE"

    # === Remote ===
    INVALID_REMOTE_SPEC = "INVALID_REMOTE_SPEC"
    REMOTE_FETCH_FAILED = "REMOTE_FETCH_FAILED"

    # === Clean ===
    INVALID_PATTERN = "INVALID_PATTERN"

    # === User ===
    CANCELLED = "CANCELLED"
