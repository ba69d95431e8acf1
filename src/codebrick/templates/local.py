"""
로컬 템플릿 엔진: 저장소 파일 세트 CRUD.

규칙:
- name 중복 시 에러 (덮어쓰기는 호출자가 명시적으로 확인한 경우만)
- 구조/식별 에러는 변경 전에 검사 (fail-fast)
- 개별 파일 복사 실패는 CopyReport에 수집, 배치 계속
- files(manifest)는 구조 변경마다 정렬된 스냅샷으로 갱신
- 메타데이터 → Registry 순서로 기록
- 다중 파일 복사는 원자적이지 않음 (중간 실패 시 디렉토리 불일치 가능)

구조:
templates/<name>/
├── brick.json
└── ...        # 템플릿 파일
"""

import logging
import re
import shutil
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from codebrick.core.files import (
    collect_files,
    compute_stats,
    copy_file,
    expand_paths,
    prune_empty_dirs,
    safe_relative_path,
    write_chunks,
)
from codebrick.core.metadata_store import MetadataStore
from codebrick.core.registry import Registry, validate_template_name
from codebrick.domain.constants import METADATA_FILENAME, TEMPLATES_DIRNAME
from codebrick.domain.errors import (
    AlreadyExistsError,
    BrickError,
    ErrorCodes,
    IOFailureError,
    NotFoundError,
    RemoteFetchError,
    UnsupportedTypeError,
)
from codebrick.domain.schemas import (
    CleanedFile,
    CleanReport,
    CopyReport,
    DirectoryStats,
    FileFailure,
    RegistryEntry,
    RemoteRef,
    SourceInfo,
    TemplateInfo,
    TemplateMetadata,
    TemplateType,
)
from codebrick.templates import cleaner
from codebrick.templates.remote import RemoteFetcher

logger = logging.getLogger(__name__)


class LocalTemplateEngine:
    """
    로컬 템플릿 관리자.

    Registry + MetadataStore를 함께 갱신한다.
    """

    def __init__(self, registry: Registry, store: MetadataStore | None = None) -> None:
        self.registry = registry
        self.store = store or MetadataStore(registry)

    # =========================================================================
    # Lookup
    # =========================================================================

    def storage_path(self, name: str) -> Path:
        return self.registry.storage_path(name)

    def get_entry(self, name: str) -> RegistryEntry:
        """
        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND
        """
        entry = self.registry.get(name)
        if entry is None:
            raise NotFoundError(
                ErrorCodes.TEMPLATE_NOT_FOUND,
                f"Template '{name}' not found",
                name=name,
            )
        return entry

    def _require_local(self, name: str) -> RegistryEntry:
        entry = self.get_entry(name)
        if entry.is_remote:
            raise NotFoundError(
                ErrorCodes.TEMPLATE_NOT_LOCAL,
                f"Template '{name}' is remote. Run 'brick pull {name}' to convert it to local first.",
                name=name,
            )
        return entry

    def get_metadata(self, name: str) -> TemplateMetadata:
        """
        로컬 템플릿 메타데이터 (필수).

        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND, TEMPLATE_NOT_LOCAL, METADATA_NOT_FOUND
        """
        self._require_local(name)
        metadata = self.store.load(name)
        if metadata is None:
            raise NotFoundError(
                ErrorCodes.METADATA_NOT_FOUND,
                f"Metadata for template '{name}' is missing or unreadable",
                name=name,
                path=str(self.store.path_for(name)),
            )
        return metadata

    def info(self, name: str) -> TemplateInfo:
        """Registry 항목 + 메타데이터 (remote/누락 시 None)."""
        entry = self.get_entry(name)
        metadata = self.store.load(name) if entry.is_local else None
        if entry.is_local and metadata is None:
            logger.warning(f"Template '{name}' is registered but its metadata is missing")
        return TemplateInfo(name=name, entry=entry, metadata=metadata)

    def stats(self, name: str) -> DirectoryStats:
        metadata = self.get_metadata(name)
        return compute_stats(self.storage_path(name), metadata.files)

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        name: str,
        source_dir: Path,
        files: list[str],
        description: str = "",
        tags: list[str] | None = None,
        overwrite: bool = False,
        dependencies: dict[str, str] | None = None,
        dev_dependencies: dict[str, str] | None = None,
    ) -> CopyReport:
        """
        source_dir의 파일로 새 로컬 템플릿 생성.

        Args:
            name: 템플릿 이름
            source_dir: 원본 디렉토리
            files: source_dir 기준 상대 경로 목록
            description: 설명
            tags: 태그
            overwrite: 기존 템플릿 덮어쓰기 (호출자가 확인한 경우만 True)
            dependencies: package → 버전 제약
            dev_dependencies: package → 버전 제약

        Returns:
            CopyReport (복사된 파일 + 실패 목록)

        Raises:
            InvalidTemplateNameError: INVALID_TEMPLATE_NAME
            AlreadyExistsError: TEMPLATE_EXISTS
            NotFoundError: PATH_NOT_FOUND, NO_FILES
            IOFailureError: FILE_IO_FAILED (모든 파일 복사 실패)
        """
        validate_template_name(name)

        if not source_dir.is_dir():
            raise NotFoundError(
                ErrorCodes.PATH_NOT_FOUND,
                f"Source directory does not exist: {source_dir}",
                path=str(source_dir),
            )
        if not files:
            raise NotFoundError(
                ErrorCodes.NO_FILES,
                f"No files found in {source_dir}",
                path=str(source_dir),
            )

        existing = self.registry.get(name)
        if existing is not None and not overwrite:
            raise AlreadyExistsError(
                ErrorCodes.TEMPLATE_EXISTS,
                f"Template '{name}' already exists",
                name=name,
            )

        target_dir = self.registry.root / TEMPLATES_DIRNAME / name
        if existing is not None and existing.is_local:
            self._remove_dir(self.storage_path(name))
        self._remove_dir(target_dir)

        report = self._copy_into(name, source_dir, target_dir, files)
        if not report.files:
            self._remove_dir(target_dir)
            raise IOFailureError(
                ErrorCodes.FILE_IO_FAILED,
                f"No files could be copied into template '{name}'",
                name=name,
                failures=[f.to_dict() for f in report.failures],
            )

        now = datetime.now(UTC).isoformat()
        tags = sorted(set(tags or []))
        metadata = TemplateMetadata(
            name=name,
            files=list(report.files),
            description=description,
            source=SourceInfo(origin="local", path=str(source_dir.resolve())),
            dependencies=dict(dependencies or {}),
            dev_dependencies=dict(dev_dependencies or {}),
            tags=tags,
            created_at=now,
            updated_at=now,
        )
        entry = RegistryEntry(
            type=TemplateType.LOCAL,
            path=f"{TEMPLATES_DIRNAME}/{name}",
            description=description,
            tags=tags,
            created_at=now,
            updated_at=now,
        )
        self._commit(name, metadata, entry)

        logger.info(f"Saved template '{name}' ({len(report.files)} files)")
        return report

    def link(
        self,
        name: str,
        remote: RemoteRef,
        description: str = "",
        tags: list[str] | None = None,
        overwrite: bool = False,
    ) -> RegistryEntry:
        """
        원격(GitHub) 템플릿 등록.

        Raises:
            InvalidTemplateNameError, AlreadyExistsError
        """
        validate_template_name(name)

        existing = self.registry.get(name)
        if existing is not None and not overwrite:
            raise AlreadyExistsError(
                ErrorCodes.TEMPLATE_EXISTS,
                f"Template '{name}' already exists",
                name=name,
            )
        if existing is not None and existing.is_local:
            self._remove_dir(self.storage_path(name))

        now = datetime.now(UTC).isoformat()
        entry = RegistryEntry(
            type=TemplateType.REMOTE,
            remote=remote,
            description=description,
            tags=sorted(set(tags or [])),
            created_at=now,
            updated_at=now,
        )
        self.registry.put(name, entry)
        logger.info(f"Linked remote template '{name}' → {remote.display()}")
        return entry

    # =========================================================================
    # Update
    # =========================================================================

    def add_files(self, name: str, source_dir: Path, paths: list[str]) -> CopyReport:
        """
        로컬 템플릿에 파일 추가.

        디렉토리 경로는 하위 파일 전체로 확장된다.

        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND, TEMPLATE_NOT_LOCAL, METADATA_NOT_FOUND, PATH_NOT_FOUND
        """
        metadata = self.get_metadata(name)

        try:
            missing = [p for p in paths if not (source_dir / safe_relative_path(p)).exists()]
            expanded = expand_paths(source_dir, paths)
        except ValueError as e:
            raise NotFoundError(ErrorCodes.PATH_NOT_FOUND, str(e), name=name) from e
        if missing:
            raise NotFoundError(
                ErrorCodes.PATH_NOT_FOUND,
                f"Path(s) not found in {source_dir}: {', '.join(missing)}",
                name=name,
                paths=missing,
            )

        report = self._copy_into(name, source_dir, self.storage_path(name), expanded)

        metadata.files = sorted(set(metadata.files) | set(report.files))
        metadata.updated_at = datetime.now(UTC).isoformat()
        self._commit(name, metadata)

        logger.info(f"Added {len(report.files)} files to '{name}'")
        return report

    def remove_files(self, name: str, paths: list[str]) -> CopyReport:
        """
        로컬 템플릿에서 파일 제거.

        디렉토리 경로는 그 접두사로 시작하는 manifest 항목 전체를 제거한다.

        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND, TEMPLATE_NOT_LOCAL, METADATA_NOT_FOUND, PATH_NOT_FOUND
        """
        metadata = self.get_metadata(name)
        manifest = set(metadata.files)

        targets: set[str] = set()
        unmatched: list[str] = []
        for raw in paths:
            try:
                rel = safe_relative_path(raw).rstrip("/")
            except ValueError as e:
                raise NotFoundError(ErrorCodes.PATH_NOT_FOUND, str(e), name=name) from e
            matched = {f for f in manifest if f == rel or f.startswith(rel + "/")}
            if not matched:
                unmatched.append(raw)
            targets |= matched

        if unmatched:
            raise NotFoundError(
                ErrorCodes.PATH_NOT_FOUND,
                f"Not part of template '{name}': {', '.join(unmatched)}",
                name=name,
                paths=unmatched,
            )

        template_dir = self.storage_path(name)
        report = CopyReport(name=name)
        for rel in sorted(targets):
            path = template_dir / rel
            try:
                path.unlink(missing_ok=True)
                prune_empty_dirs(template_dir, path.parent)
                report.files.append(rel)
            except OSError as e:
                logger.warning(f"Failed to remove {rel} from '{name}': {e}")
                report.failures.append(FileFailure(rel, str(e)))

        metadata.files = sorted(manifest - set(report.files))
        metadata.updated_at = datetime.now(UTC).isoformat()
        self._commit(name, metadata)

        logger.info(f"Removed {len(report.files)} files from '{name}'")
        return report

    def update(self, name: str) -> CopyReport:
        """
        원본 디렉토리(source.path)에서 다시 스냅샷.

        새 디렉토리에 복사한 뒤 교체한다. createdAt 유지.

        Raises:
            UnsupportedTypeError: 원본이 로컬 디렉토리가 아님 (import/pull)
            NotFoundError: 원본 디렉토리 없음
            IOFailureError: FILE_IO_FAILED (복사 전체 실패 또는 디렉토리 교체 실패, 기존 내용 유지)
        """
        metadata = self.get_metadata(name)
        if metadata.source.origin != "local" or not metadata.source.path:
            raise UnsupportedTypeError(
                ErrorCodes.UNSUPPORTED_TYPE,
                f"Template '{name}' was not saved from a local directory "
                f"(origin: {metadata.source.origin})",
                name=name,
                origin=metadata.source.origin,
            )

        source_dir = Path(metadata.source.path)
        if not source_dir.is_dir():
            raise NotFoundError(
                ErrorCodes.PATH_NOT_FOUND,
                f"Source directory no longer exists: {source_dir}",
                name=name,
                path=str(source_dir),
            )

        files = collect_files(source_dir)
        if not files:
            raise NotFoundError(
                ErrorCodes.NO_FILES,
                f"No files found in {source_dir}",
                path=str(source_dir),
            )

        template_dir = self.storage_path(name)
        staging_dir = template_dir.with_name(f".{name}.updating")
        self._remove_dir(staging_dir)

        report = self._copy_into(name, source_dir, staging_dir, files)
        if not report.files:
            self._remove_dir(staging_dir)
            raise IOFailureError(
                ErrorCodes.FILE_IO_FAILED,
                f"No files could be copied from {source_dir}",
                name=name,
            )

        # 기존 디렉토리는 옆으로 옮겨 두고 교체 실패 시 복원
        previous_dir = template_dir.with_name(f".{name}.previous")
        self._remove_dir(previous_dir)
        try:
            if template_dir.exists():
                template_dir.rename(previous_dir)
            staging_dir.rename(template_dir)
        except OSError as e:
            if previous_dir.exists() and not template_dir.exists():
                try:
                    previous_dir.rename(template_dir)
                except OSError as restore_error:
                    logger.error(f"Failed to restore {template_dir} from {previous_dir}: {restore_error}")
            self._remove_dir(staging_dir)
            raise IOFailureError(
                ErrorCodes.FILE_IO_FAILED,
                f"Failed to replace storage of '{name}': {e}",
                name=name,
                path=str(template_dir),
            ) from e
        self._remove_dir(previous_dir)

        metadata.files = list(report.files)
        metadata.updated_at = datetime.now(UTC).isoformat()
        self._commit(name, metadata)

        logger.info(f"Updated template '{name}' from {source_dir} ({len(report.files)} files)")
        return report

    def pull(self, name: str, fetcher: RemoteFetcher) -> CopyReport:
        """
        원격 템플릿 → 로컬 변환.

        이름과 목록 위치는 유지되고 Registry 항목 타입만 교체된다.
        조회 실패 시 부분 다운로드를 지우고 remote 상태를 유지한다.

        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND
            UnsupportedTypeError: 이미 로컬
            RemoteFetchError: 원격 조회 실패 (재시도 없음)
        """
        entry = self.get_entry(name)
        if not entry.is_remote or entry.remote is None:
            raise UnsupportedTypeError(
                ErrorCodes.UNSUPPORTED_TYPE,
                f"Template '{name}' is already local",
                name=name,
            )

        remote = entry.remote
        files = fetcher.list_files(remote)

        target_dir = self.registry.root / TEMPLATES_DIRNAME / name
        self._remove_dir(target_dir)

        report = CopyReport(name=name)
        try:
            for rel in files:
                if rel == METADATA_FILENAME:
                    logger.warning(f"Skipping upstream {METADATA_FILENAME} in '{name}'")
                    continue
                write_chunks(target_dir / safe_relative_path(rel), fetcher.read_file(remote, rel))
                report.files.append(rel)
        except RemoteFetchError:
            self._remove_dir(target_dir)
            raise
        except (OSError, ValueError) as e:
            self._remove_dir(target_dir)
            raise IOFailureError(
                ErrorCodes.FILE_IO_FAILED,
                f"Failed to write pulled files for '{name}': {e}",
                name=name,
            ) from e

        now = datetime.now(UTC).isoformat()
        metadata = TemplateMetadata(
            name=name,
            files=sorted(report.files),
            description=entry.description,
            source=SourceInfo(origin="github", path=remote.display()),
            tags=list(entry.tags),
            created_at=entry.created_at or now,
            updated_at=now,
        )
        local_entry = RegistryEntry(
            type=TemplateType.LOCAL,
            path=f"{TEMPLATES_DIRNAME}/{name}",
            description=entry.description,
            tags=list(entry.tags),
            created_at=entry.created_at or now,
            updated_at=now,
        )
        self._commit(name, metadata, local_entry)

        logger.info(f"Pulled '{name}' from {remote.display()} ({len(report.files)} files)")
        return report

    def clean(
        self,
        name: str,
        pattern: str | None = None,
        dry_run: bool = False,
        keep_external: bool = True,
    ) -> CleanReport:
        """
        로컬 import 라인 제거.

        dry_run이면 분석만 한다. 파일 목록은 변하지 않으므로 updatedAt만 갱신.

        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND, METADATA_NOT_FOUND
            UnsupportedTypeError: remote 템플릿
            BrickError: INVALID_PATTERN
        """
        entry = self.get_entry(name)
        if entry.is_remote:
            raise UnsupportedTypeError(
                ErrorCodes.UNSUPPORTED_TYPE,
                f"Cannot clean remote template '{name}'. Run 'brick pull {name}' first.",
                name=name,
            )
        metadata = self.get_metadata(name)

        if pattern:
            try:
                re.compile(pattern)
            except re.error as e:
                raise BrickError(
                    ErrorCodes.INVALID_PATTERN,
                    f"Invalid pattern '{pattern}': {e}",
                    pattern=pattern,
                ) from e

        template_dir = self.storage_path(name)
        project_name = cleaner.detect_project_name(template_dir)
        report = CleanReport(name=name, dry_run=dry_run, project_name=project_name)

        for rel in sorted(metadata.files):
            ext = PurePosixPath(rel).suffix.lower()
            if not pattern and not cleaner.is_supported(ext):
                continue
            line_filter = cleaner.build_filter(ext, pattern, project_name, keep_external)
            if line_filter is None:
                continue

            path = template_dir / rel
            try:
                content = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.debug(f"Skipping non-text file {rel}")
                continue
            except OSError as e:
                report.failures.append(FileFailure(rel, str(e)))
                continue

            cleaned, removed = cleaner.clean_content(content, line_filter)
            if removed == 0:
                continue

            if not dry_run:
                try:
                    path.write_text(cleaned, encoding="utf-8")
                except OSError as e:
                    logger.warning(f"Failed to write cleaned file {rel}: {e}")
                    report.failures.append(FileFailure(rel, str(e)))
                    continue
            report.files.append(CleanedFile(rel, removed))

        if not dry_run and report.files:
            metadata.updated_at = datetime.now(UTC).isoformat()
            self._commit(name, metadata)
            logger.info(f"Cleaned {report.total_removed} imports in '{name}'")

        return report

    # =========================================================================
    # Delete / Clone
    # =========================================================================

    def delete(self, name: str) -> None:
        """
        템플릿 삭제 (저장 디렉토리 + 메타데이터 + Registry 항목).

        디렉토리가 이미 없어도 성공한다.

        Raises:
            NotFoundError: TEMPLATE_NOT_FOUND
        """
        entry = self.get_entry(name)
        if entry.is_local:
            self._remove_dir(self.storage_path(name))
        self.registry.remove(name)
        logger.info(f"Deleted template '{name}'")

    def clone(self, name: str, new_name: str) -> RegistryEntry:
        """
        템플릿 복제 (createdAt 새로 생성).

        local: 저장 디렉토리 + 메타데이터 복사
        remote: 좌표 항목 복사

        Raises:
            NotFoundError, AlreadyExistsError, InvalidTemplateNameError
        """
        validate_template_name(new_name)
        entry = self.get_entry(name)
        if new_name in self.registry:
            raise AlreadyExistsError(
                ErrorCodes.TEMPLATE_EXISTS,
                f"Template '{new_name}' already exists",
                name=new_name,
            )

        now = datetime.now(UTC).isoformat()

        if entry.is_remote:
            new_entry = replace(entry, tags=list(entry.tags), created_at=now, updated_at=now)
            self.registry.put(new_name, new_entry)
            logger.info(f"Cloned remote template '{name}' → '{new_name}'")
            return new_entry

        metadata = self.get_metadata(name)
        source_dir = self.storage_path(name)
        target_dir = self.registry.root / TEMPLATES_DIRNAME / new_name
        self._remove_dir(target_dir)
        try:
            shutil.copytree(source_dir, target_dir)
        except OSError as e:
            self._remove_dir(target_dir)
            raise IOFailureError(
                ErrorCodes.FILE_IO_FAILED,
                f"Failed to copy template '{name}': {e}",
                name=name,
            ) from e

        new_metadata = replace(
            metadata,
            name=new_name,
            files=list(metadata.files),
            tags=list(metadata.tags),
            created_at=now,
            updated_at=now,
        )
        new_entry = RegistryEntry(
            type=TemplateType.LOCAL,
            path=f"{TEMPLATES_DIRNAME}/{new_name}",
            description=entry.description,
            tags=list(entry.tags),
            created_at=now,
            updated_at=now,
        )
        self._commit(new_name, new_metadata, new_entry)

        logger.info(f"Cloned template '{name}' → '{new_name}'")
        return new_entry

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _copy_into(
        self,
        name: str,
        source_dir: Path,
        target_dir: Path,
        files: list[str],
    ) -> CopyReport:
        """정렬 순서로 복사, 실패는 수집."""
        report = CopyReport(name=name)
        for raw in sorted(set(files)):
            try:
                rel = safe_relative_path(raw)
                if rel == METADATA_FILENAME:
                    logger.warning(f"Skipping {METADATA_FILENAME} (reserved for template metadata)")
                    continue
                copy_file(source_dir / rel, target_dir / rel)
                report.files.append(rel)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to copy {raw} into '{name}': {e}")
                report.failures.append(FileFailure(raw, str(e)))
        return report

    def _commit(
        self,
        name: str,
        metadata: TemplateMetadata,
        entry: RegistryEntry | None = None,
    ) -> None:
        """메타데이터 저장 후 Registry 항목 갱신."""
        self.store.save(name, metadata)

        if entry is None:
            entry = self.get_entry(name)
            entry = replace(entry, updated_at=metadata.updated_at)
        self.registry.put(name, entry)

    @staticmethod
    def _remove_dir(path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to remove directory {path}: {e}")
