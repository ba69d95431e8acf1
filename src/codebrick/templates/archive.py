"""
Archive 브리지: 로컬 템플릿 ↔ .brick 파일.

.brick 구조 (tar.gz):
├── brick.json     # 메타데이터
└── template/      # manifest 파일
    └── ...

규칙:
- remote 템플릿은 export 불가 (pull 먼저)
- export는 manifest 기준 (디스크에만 있는 파일은 제외, 없는 파일은 경고)
- import 이름 충돌은 결정 콜백으로 처리 (콜백 없으면 AlreadyExists)
- 추출은 tarfile "data" 필터 사용 (절대 경로/.. 탈출 거부)
"""

import json
import logging
import shutil
import tarfile
import tempfile
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Any

from codebrick.core.files import collect_files, copy_file, to_posix
from codebrick.core.metadata_store import MetadataStore
from codebrick.core.registry import Registry, validate_template_name
from codebrick.domain.constants import (
    ARCHIVE_TEMPLATE_DIRNAME,
    METADATA_FILENAME,
    TEMPLATES_DIRNAME,
)
from codebrick.domain.errors import (
    AlreadyExistsError,
    ErrorCodes,
    InvalidArchiveError,
    NotFoundError,
    OperationCancelledError,
    UnsupportedTypeError,
)
from codebrick.domain.schemas import (
    ExportReport,
    ImportAction,
    ImportResolution,
    RegistryEntry,
    SourceInfo,
    TemplateMetadata,
    TemplateType,
)

logger = logging.getLogger(__name__)

ImportConflictCallback = Callable[[str], ImportResolution]


# =============================================================================
# Codec
# =============================================================================

class TarGzCodec:
    """디렉토리 ↔ tar.gz 스트림."""

    COMPRESSLEVEL = 9

    def pack_directory(
        self,
        directory: Path,
        fileobj: IO[bytes],
        exclude: Iterable[str] = (),
    ) -> None:
        """
        directory 내용을 fileobj에 tar.gz로 기록.

        Args:
            directory: 원본 디렉토리 (아카이브 루트)
            fileobj: 쓰기용 바이너리 스트림
            exclude: 제외할 루트 기준 상대 경로
        """
        excluded = set(exclude)
        with tarfile.open(fileobj=fileobj, mode="w:gz", compresslevel=self.COMPRESSLEVEL) as tar:
            for path in sorted(directory.rglob("*")):
                rel = to_posix(path.relative_to(directory))
                if rel in excluded or not path.is_file():
                    continue
                tar.add(path, arcname=rel, recursive=False)

    def unpack(self, fileobj: IO[bytes], dest: Path) -> None:
        """
        fileobj의 tar.gz를 dest에 추출.

        Raises:
            InvalidArchiveError: 압축 해제 실패 또는 안전하지 않은 항목
        """
        try:
            with tarfile.open(fileobj=fileobj, mode="r:gz") as tar:
                tar.extractall(dest, filter="data")
        except (tarfile.TarError, EOFError, OSError) as e:
            raise InvalidArchiveError(
                ErrorCodes.INVALID_ARCHIVE,
                f"Cannot unpack archive: {e}",
            ) from e


# =============================================================================
# Bridge
# =============================================================================

class ArchiveBridge:
    """
    export/import 처리기.

    사용법:
        bridge = ArchiveBridge(registry)
        with open("demo.brick", "wb") as f:
            report = bridge.export("demo", f)
    """

    def __init__(
        self,
        registry: Registry,
        store: MetadataStore | None = None,
        codec: TarGzCodec | None = None,
    ) -> None:
        self.registry = registry
        self.store = store or MetadataStore(registry)
        self.codec = codec or TarGzCodec()

    # =========================================================================
    # Export
    # =========================================================================

    def export(self, name: str, fileobj: IO[bytes]) -> ExportReport:
        """
        로컬 템플릿 → .brick 스트림.

        Args:
            name: 템플릿 이름
            fileobj: 쓰기용 바이너리 스트림

        Returns:
            ExportReport

        Raises:
            NotFoundError: 템플릿/메타데이터/저장 디렉토리 없음
            UnsupportedTypeError: remote 템플릿
        """
        entry = self.registry.get(name)
        if entry is None:
            raise NotFoundError(
                ErrorCodes.TEMPLATE_NOT_FOUND,
                f"Template '{name}' not found",
                name=name,
            )
        if entry.is_remote:
            raise UnsupportedTypeError(
                ErrorCodes.UNSUPPORTED_TYPE,
                f"Cannot export remote template '{name}'. Run 'brick pull {name}' first.",
                name=name,
            )

        template_dir = self.registry.storage_path(name)
        if not template_dir.is_dir():
            raise NotFoundError(
                ErrorCodes.STORAGE_NOT_FOUND,
                f"Storage directory for '{name}' does not exist: {template_dir}",
                name=name,
                path=str(template_dir),
            )
        metadata = self.store.load(name)
        if metadata is None:
            raise NotFoundError(
                ErrorCodes.METADATA_NOT_FOUND,
                f"Metadata for template '{name}' is missing or unreadable",
                name=name,
            )

        report = ExportReport(name=name)
        for rel in metadata.files:
            if (template_dir / rel).is_file():
                report.files.append(rel)
            else:
                report.missing.append(rel)
        listed = set(metadata.files)
        report.unlisted = [f for f in collect_files(template_dir) if f not in listed]

        if report.missing:
            logger.warning(f"Template '{name}' is missing {len(report.missing)} listed files")
        if report.unlisted:
            logger.warning(f"Template '{name}' has {len(report.unlisted)} unlisted files (not exported)")

        with tempfile.TemporaryDirectory(prefix=".brick-export-") as tmp:
            staging = Path(tmp)
            (staging / METADATA_FILENAME).write_text(
                json.dumps(metadata.to_dict(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            for rel in report.files:
                copy_file(template_dir / rel, staging / ARCHIVE_TEMPLATE_DIRNAME / rel)
            self.codec.pack_directory(staging, fileobj)

        logger.info(f"Exported '{name}' ({len(report.files)} files)")
        return report

    # =========================================================================
    # Import
    # =========================================================================

    def import_archive(
        self,
        fileobj: IO[bytes],
        name_override: str | None = None,
        on_conflict: ImportConflictCallback | None = None,
        source_label: str = "",
    ) -> str:
        """
        .brick 스트림 → 로컬 템플릿.

        Args:
            fileobj: 읽기용 바이너리 스트림
            name_override: 아카이브 메타데이터 이름 대신 사용할 이름
            on_conflict: 이름 충돌 결정 콜백 (name → ImportResolution)
            source_label: source.path에 기록할 값 (보통 아카이브 파일명)

        Returns:
            최종 템플릿 이름

        Raises:
            InvalidArchiveError: 압축 해제 실패 또는 brick.json 누락/손상
            AlreadyExistsError: 이름 충돌 + 콜백 없음
            OperationCancelledError: 콜백이 CANCEL 반환
            InvalidTemplateNameError: 잘못된 이름
        """
        self.registry.root.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix=".brick-import-", dir=self.registry.root) as tmp:
            staging = Path(tmp)
            self.codec.unpack(fileobj, staging)
            archived = self._read_archive_metadata(staging)

            name = name_override or archived.name
            validate_template_name(name)
            name, overwrite = self._resolve_name(name, on_conflict)

            if overwrite:
                existing = self.registry.get(name)
                if existing is not None and existing.is_local:
                    shutil.rmtree(self.registry.storage_path(name), ignore_errors=True)

            target_dir = self.registry.root / TEMPLATES_DIRNAME / name
            if target_dir.exists():
                shutil.rmtree(target_dir)
            target_dir.parent.mkdir(parents=True, exist_ok=True)

            files_dir = staging / ARCHIVE_TEMPLATE_DIRNAME
            if files_dir.is_dir():
                shutil.move(str(files_dir), str(target_dir))
            else:
                target_dir.mkdir()
                for item in staging.iterdir():
                    if item.name != METADATA_FILENAME:
                        shutil.move(str(item), str(target_dir / item.name))

        files = sorted(
            to_posix(p.relative_to(target_dir)) for p in target_dir.rglob("*") if p.is_file()
        )

        now = datetime.now(UTC).isoformat()
        metadata = TemplateMetadata(
            name=name,
            files=files,
            version=archived.version,
            description=archived.description,
            source=SourceInfo(origin="imported", path=source_label),
            dependencies=archived.dependencies,
            dev_dependencies=archived.dev_dependencies,
            tags=archived.tags,
            created_at=archived.created_at or now,
            updated_at=now,
        )
        self.store.save(name, metadata)
        self.registry.put(name, RegistryEntry(
            type=TemplateType.LOCAL,
            path=f"{TEMPLATES_DIRNAME}/{name}",
            description=metadata.description,
            tags=list(metadata.tags),
            created_at=metadata.created_at,
            updated_at=now,
        ))

        logger.info(f"Imported template '{name}' ({len(files)} files)")
        return name

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    @staticmethod
    def _read_archive_metadata(staging: Path) -> TemplateMetadata:
        metadata_path = staging / METADATA_FILENAME
        if not metadata_path.is_file():
            raise InvalidArchiveError(
                ErrorCodes.INVALID_ARCHIVE,
                f"Invalid .brick file: missing {METADATA_FILENAME}",
            )
        try:
            data: Any = json.loads(metadata_path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("metadata must be a JSON object")
            return TemplateMetadata.from_dict(data)
        except (OSError, UnicodeDecodeError, KeyError, ValueError) as e:
            raise InvalidArchiveError(
                ErrorCodes.INVALID_ARCHIVE,
                f"Invalid .brick file: unreadable {METADATA_FILENAME}: {e}",
            ) from e

    def _resolve_name(
        self,
        name: str,
        on_conflict: ImportConflictCallback | None,
    ) -> tuple[str, bool]:
        """충돌 해결 → (최종 이름, 덮어쓰기 여부)."""
        while name in self.registry:
            if on_conflict is None:
                raise AlreadyExistsError(
                    ErrorCodes.TEMPLATE_EXISTS,
                    f"Template '{name}' already exists",
                    name=name,
                )
            resolution = on_conflict(name)
            if resolution.action == ImportAction.OVERWRITE:
                return name, True
            if resolution.action == ImportAction.CANCEL or not resolution.new_name:
                raise OperationCancelledError("Import cancelled", name=name)
            validate_template_name(resolution.new_name)
            name = resolution.new_name
        return name, False
