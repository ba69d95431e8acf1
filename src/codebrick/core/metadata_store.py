"""
Metadata Store: templates/<name>/brick.json.

규칙:
- load: 파일 없음/파싱 실패 → None ("not found"), 크래시 없음
- save: temp → rename (중간에 중단되어도 기존 brick.json 유지)
- save 실패는 작업 전체 중단 (이후 모든 작업이 메타데이터에 의존)
"""

import logging
from pathlib import Path

from codebrick.core.atomic import atomic_write_json, read_json
from codebrick.core.registry import Registry
from codebrick.domain.constants import METADATA_FILENAME
from codebrick.domain.errors import ErrorCodes, IOFailureError
from codebrick.domain.schemas import TemplateMetadata

logger = logging.getLogger(__name__)


class MetadataStore:
    """brick.json 읽기/쓰기."""

    def __init__(self, registry: Registry) -> None:
        self.registry = registry

    def path_for(self, name: str) -> Path:
        return self.registry.storage_path(name) / METADATA_FILENAME

    def load(self, name: str) -> TemplateMetadata | None:
        """
        메타데이터 로드.

        Args:
            name: 템플릿 이름

        Returns:
            TemplateMetadata 또는 None (없음/파싱 실패)
        """
        meta_path = self.path_for(name)
        data = read_json(meta_path)
        if data is None:
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed metadata {meta_path}")
            return None

        try:
            return TemplateMetadata.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed metadata {meta_path}: {e}")
            return None

    def save(self, name: str, metadata: TemplateMetadata) -> Path:
        """
        메타데이터 원자적 저장.

        Args:
            name: 템플릿 이름
            metadata: 저장할 메타데이터

        Returns:
            brick.json 경로

        Raises:
            IOFailureError: METADATA_WRITE_FAILED
        """
        meta_path = self.path_for(name)
        try:
            atomic_write_json(meta_path, metadata.to_dict())
        except OSError as e:
            raise IOFailureError(
                ErrorCodes.METADATA_WRITE_FAILED,
                f"Failed to write metadata for '{name}': {e}",
                name=name,
                path=str(meta_path),
            ) from e
        return meta_path
