"""
Apply 엔진: 템플릿 파일을 대상 디렉토리로 복사.

처리 순서:
1. 충돌 없는 파일 먼저 기록
2. 이미 존재하는 파일은 옵션/결정 콜백에 따라 처리
   - force → 덮어쓰기
   - skip_existing → 건너뛰기
   - 콜백 → 파일별 결정 (CANCEL이면 남은 충돌 전체 건너뛰기)
   - 콜백 없음 / dry_run → CONFLICT 상태로 보고

파일 내용은 chunk 스트림으로 복사 (local, remote 공통).
부분 실패는 예외가 아니라 ApplyReport로 보고.
"""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

from codebrick.core.files import iter_file_chunks, safe_relative_path, write_chunks
from codebrick.core.metadata_store import MetadataStore
from codebrick.core.registry import Registry
from codebrick.domain.errors import (
    ErrorCodes,
    NotFoundError,
    RemoteFetchError,
    UnsupportedTypeError,
)
from codebrick.domain.schemas import (
    ApplyOptions,
    ApplyReport,
    ConflictDecision,
    FileOutcome,
    FileStatus,
)
from codebrick.templates.remote import RemoteFetcher

logger = logging.getLogger(__name__)

ConflictCallback = Callable[[str], ConflictDecision]
ChunkSource = Callable[[str], Iterator[bytes]]


class ApplyEngine:
    """
    템플릿 적용기.

    사용법:
        engine = ApplyEngine(registry, fetcher=fetcher)
        report = engine.apply("demo", Path("./app"), ApplyOptions(skip_existing=True))
    """

    def __init__(
        self,
        registry: Registry,
        store: MetadataStore | None = None,
        fetcher: RemoteFetcher | None = None,
    ) -> None:
        self.registry = registry
        self.store = store or MetadataStore(registry)
        self.fetcher = fetcher

    def apply(
        self,
        name: str,
        destination: Path,
        options: ApplyOptions | None = None,
        on_conflict: ConflictCallback | None = None,
    ) -> ApplyReport:
        """
        템플릿 적용.

        Args:
            name: 템플릿 이름
            destination: 대상 디렉토리 (없으면 생성)
            options: ApplyOptions
            on_conflict: 충돌 파일별 결정 콜백 (relative_path → ConflictDecision)

        Returns:
            ApplyReport

        Raises:
            NotFoundError: 템플릿/메타데이터 없음
            UnsupportedTypeError: remote 템플릿인데 fetcher 없음
            RemoteFetchError: 원격 파일 목록 조회 실패
        """
        options = options or ApplyOptions()
        files, source = self._resolve_source(name)

        report = ApplyReport(
            template=name,
            destination=str(destination),
            dry_run=options.dry_run,
        )

        fresh: list[str] = []
        for raw in sorted(files):
            try:
                rel = safe_relative_path(raw)
            except ValueError as e:
                report.outcomes.append(FileOutcome(raw, FileStatus.FAILED, str(e)))
                continue
            if (destination / rel).exists():
                report.conflicts.append(rel)
            else:
                fresh.append(rel)

        if not options.dry_run:
            destination.mkdir(parents=True, exist_ok=True)

        # === 1. 충돌 없는 파일 ===
        for rel in fresh:
            report.outcomes.append(
                self._write(destination, rel, source, FileStatus.CREATED, options.dry_run)
            )

        # === 2. 충돌 파일 ===
        for rel in report.conflicts:
            if report.cancelled:
                report.outcomes.append(FileOutcome(rel, FileStatus.SKIPPED))
                continue

            if options.force:
                decision = ConflictDecision.OVERWRITE
            elif options.skip_existing:
                decision = ConflictDecision.SKIP
            elif options.dry_run or on_conflict is None:
                report.outcomes.append(FileOutcome(rel, FileStatus.CONFLICT))
                continue
            else:
                decision = on_conflict(rel)

            if decision == ConflictDecision.OVERWRITE:
                report.outcomes.append(
                    self._write(destination, rel, source, FileStatus.OVERWRITTEN, options.dry_run)
                )
            elif decision == ConflictDecision.SKIP:
                report.outcomes.append(FileOutcome(rel, FileStatus.SKIPPED))
            else:
                logger.info(f"Apply of '{name}' cancelled at {rel}")
                report.cancelled = True
                report.outcomes.append(FileOutcome(rel, FileStatus.SKIPPED))

        report.outcomes.sort(key=lambda o: o.path)

        logger.info(
            f"Applied '{name}' → {destination}: "
            f"{len(report.created)} created, {len(report.overwritten)} overwritten, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
            + (" (dry run)" if options.dry_run else "")
        )
        return report

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _resolve_source(self, name: str) -> tuple[list[str], ChunkSource]:
        """템플릿 타입별 (파일 목록, chunk 제공자)."""
        entry = self.registry.get(name)
        if entry is None:
            raise NotFoundError(
                ErrorCodes.TEMPLATE_NOT_FOUND,
                f"Template '{name}' not found",
                name=name,
            )

        if entry.is_remote and entry.remote is not None:
            if self.fetcher is None:
                raise UnsupportedTypeError(
                    ErrorCodes.UNSUPPORTED_TYPE,
                    f"Template '{name}' is remote and no fetcher is configured",
                    name=name,
                )
            remote = entry.remote
            fetcher = self.fetcher
            return fetcher.list_files(remote), lambda rel: fetcher.read_file(remote, rel)

        metadata = self.store.load(name)
        if metadata is None:
            raise NotFoundError(
                ErrorCodes.METADATA_NOT_FOUND,
                f"Metadata for template '{name}' is missing or unreadable",
                name=name,
            )
        template_dir = self.registry.storage_path(name)
        return metadata.files, lambda rel: iter_file_chunks(template_dir / rel)

    @staticmethod
    def _write(
        destination: Path,
        rel: str,
        source: ChunkSource,
        status: FileStatus,
        dry_run: bool,
    ) -> FileOutcome:
        if dry_run:
            return FileOutcome(rel, status)

        target = destination / rel
        existed = target.exists()
        try:
            write_chunks(target, source(rel))
        except (OSError, RemoteFetchError) as e:
            logger.warning(f"Failed to write {rel}: {e}")
            if not existed and target.is_file():
                target.unlink(missing_ok=True)
            return FileOutcome(rel, FileStatus.FAILED, str(e))
        return FileOutcome(rel, status)
