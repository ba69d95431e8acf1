"""
Data schemas for CodeBrick.

규칙:
- 디스크(JSON) 키는 camelCase (createdAt, devDependencies 등)
- 파이썬 속성은 snake_case
- from_dict에서 알 수 없는 필드는 버리고, 누락된 선택 필드는 기본값 적용
- files(manifest)는 항상 정렬된 POSIX 상대 경로
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codebrick.domain.constants import DEFAULT_REMOTE_REF, DEFAULT_TEMPLATE_VERSION

# =============================================================================
# Enums
# =============================================================================

class TemplateType(str, Enum):
    """템플릿 저장 타입."""
    LOCAL = "local"    # 루트 아래에 파일이 실제로 존재
    REMOTE = "remote"  # GitHub 좌표만 저장, 내용은 필요 시 조회


class ConflictDecision(str, Enum):
    """apply 시 파일 충돌 결정."""
    OVERWRITE = "overwrite"
    SKIP = "skip"
    CANCEL = "cancel"  # 남은 충돌 전체 취소


class FileStatus(str, Enum):
    """apply 파일별 결과."""
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    SKIPPED = "skipped"
    CONFLICT = "conflict"  # 결정 대기 (콜백 없음 / dry-run)
    FAILED = "failed"


class ImportAction(str, Enum):
    """import 시 이름 충돌 처리."""
    OVERWRITE = "overwrite"
    RENAME = "rename"
    CANCEL = "cancel"


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


# =============================================================================
# Registry
# =============================================================================

@dataclass
class RemoteRef:
    """
    GitHub 원격 좌표.

    commit이 지정되면 ref 대신 commit 기준으로 조회한다.
    """
    owner: str
    repo: str
    path: str = ""
    ref: str = DEFAULT_REMOTE_REF
    commit: str | None = None

    @property
    def revision(self) -> str:
        """실제 조회에 사용할 revision (commit 우선)."""
        return self.commit or self.ref

    def display(self) -> str:
        location = f"{self.owner}/{self.repo}"
        if self.path:
            location += f"/{self.path}"
        suffix = self.commit[:7] if self.commit else self.ref
        return f"{location}@{suffix}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "owner": self.owner,
            "repo": self.repo,
            "path": self.path,
            "ref": self.ref,
        }
        if self.commit:
            data["commit"] = self.commit
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteRef":
        return cls(
            owner=data["owner"],
            repo=data["repo"],
            path=data.get("path", "") or "",
            ref=data.get("ref") or DEFAULT_REMOTE_REF,
            commit=data.get("commit"),
        )


@dataclass
class RegistryEntry:
    """store.json의 템플릿 요약 항목 (name이 키)."""
    type: TemplateType
    path: str | None = None          # local: 루트 기준 상대 경로
    remote: RemoteRef | None = None  # remote: GitHub 좌표
    description: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_local(self) -> bool:
        return self.type == TemplateType.LOCAL

    @property
    def is_remote(self) -> bool:
        return self.type == TemplateType.REMOTE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.is_local:
            data["path"] = self.path
        elif self.remote is not None:
            data["remote"] = self.remote.to_dict()
        data.update({
            "description": self.description,
            "tags": sorted(set(self.tags)),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryEntry":
        entry_type = TemplateType(data["type"])
        remote = None
        if entry_type == TemplateType.REMOTE:
            remote = RemoteRef.from_dict(data["remote"])

        return cls(
            type=entry_type,
            path=data.get("path") if entry_type == TemplateType.LOCAL else None,
            remote=remote,
            description=data.get("description", "") or "",
            tags=_str_list(data.get("tags")),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


# =============================================================================
# Metadata (brick.json)
# =============================================================================

@dataclass
class SourceInfo:
    """템플릿 출처."""
    origin: str = "local"  # local, imported, github
    path: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"origin": self.origin, "path": self.path}

    @classmethod
    def from_dict(cls, data: Any) -> "SourceInfo":
        if not isinstance(data, dict):
            return cls()
        return cls(
            origin=str(data.get("origin", "local")),
            path=str(data.get("path", "")),
        )


@dataclass
class TemplateMetadata:
    """
    템플릿 메타데이터 (brick.json).

    files는 마지막 구조 변경(save/add/remove/update/pull/import) 시점의
    스냅샷이다. 읽을 때 파일시스템에서 다시 계산하지 않는다.
    """
    name: str
    files: list[str] = field(default_factory=list)
    type: TemplateType = TemplateType.LOCAL
    version: str = DEFAULT_TEMPLATE_VERSION
    description: str = ""
    source: SourceInfo = field(default_factory=SourceInfo)
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "version": self.version,
            "description": self.description,
            "source": self.source.to_dict(),
            "files": sorted(self.files),
            "dependencies": dict(self.dependencies),
            "devDependencies": dict(self.dev_dependencies),
            "tags": sorted(set(self.tags)),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateMetadata":
        """
        brick.json dict → TemplateMetadata.

        Raises:
            KeyError: name 누락
            ValueError: files가 리스트가 아니거나 type이 잘못됨
        """
        files = data["files"] if "files" in data else None
        if not isinstance(files, list):
            raise ValueError("files must be a list")

        return cls(
            name=str(data["name"]),
            files=sorted(str(f) for f in files),
            type=TemplateType(data.get("type", TemplateType.LOCAL.value)),
            version=str(data.get("version", DEFAULT_TEMPLATE_VERSION)),
            description=data.get("description", "") or "",
            source=SourceInfo.from_dict(data.get("source")),
            dependencies=_str_map(data.get("dependencies")),
            dev_dependencies=_str_map(data.get("devDependencies")),
            tags=_str_list(data.get("tags")),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class TemplateInfo:
    """info 조회 결과. remote이거나 메타데이터가 없으면 metadata=None."""
    name: str
    entry: RegistryEntry
    metadata: TemplateMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entry": self.entry.to_dict(),
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


# =============================================================================
# Selector (CLI name-or-index)
# =============================================================================

@dataclass(frozen=True)
class ByName:
    """이름으로 선택."""
    name: str


@dataclass(frozen=True)
class ByIndex:
    """
    1-based 인덱스로 선택.

    범위를 벗어나면 raw 문자열을 이름으로 조회한다.
    """
    index: int
    raw: str


Selector = ByName | ByIndex


# =============================================================================
# Reports
# =============================================================================

@dataclass
class FileFailure:
    """개별 파일 I/O 실패."""
    path: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "error": self.error}


@dataclass
class CopyReport:
    """save/add/remove/update/pull 결과."""
    name: str
    files: list[str] = field(default_factory=list)  # 이번 작업에서 처리된 파일
    failures: list[FileFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "files": list(self.files),
            "failures": [f.to_dict() for f in self.failures],
        }


@dataclass
class ApplyOptions:
    """
    apply 옵션.

    force와 skip_existing은 동시에 지정할 수 없다.
    둘 다 False면 충돌 파일마다 결정 콜백을 호출한다.
    """
    force: bool = False
    skip_existing: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.force and self.skip_existing:
            raise ValueError("force and skip_existing are mutually exclusive")


@dataclass
class FileOutcome:
    """apply 파일별 결과."""
    path: str
    status: FileStatus
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "status": self.status.value}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ApplyReport:
    """
    apply 결과 집계.

    부분 실패는 예외가 아니라 정상 결과로 취급한다.
    conflicts: 대상에 이미 존재했던 파일 목록 (최종 결정과 무관)
    """
    template: str
    destination: str
    dry_run: bool = False
    outcomes: list[FileOutcome] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    cancelled: bool = False

    def _paths(self, status: FileStatus) -> list[str]:
        return [o.path for o in self.outcomes if o.status == status]

    @property
    def created(self) -> list[str]:
        return self._paths(FileStatus.CREATED)

    @property
    def overwritten(self) -> list[str]:
        return self._paths(FileStatus.OVERWRITTEN)

    @property
    def skipped(self) -> list[str]:
        return self._paths(FileStatus.SKIPPED)

    @property
    def pending(self) -> list[str]:
        return self._paths(FileStatus.CONFLICT)

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == FileStatus.FAILED]

    @property
    def has_failures(self) -> bool:
        return any(o.status == FileStatus.FAILED for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template,
            "destination": self.destination,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "conflicts": list(self.conflicts),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class ExportReport:
    """export 결과."""
    name: str
    files: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)  # manifest에 있으나 디스크에 없음
    unlisted: list[str] = field(default_factory=list)  # 디스크에 있으나 manifest에 없음


@dataclass
class ImportResolution:
    """import 이름 충돌 결정."""
    action: ImportAction
    new_name: str | None = None

    @classmethod
    def overwrite(cls) -> "ImportResolution":
        return cls(ImportAction.OVERWRITE)

    @classmethod
    def rename(cls, new_name: str) -> "ImportResolution":
        return cls(ImportAction.RENAME, new_name)

    @classmethod
    def cancel(cls) -> "ImportResolution":
        return cls(ImportAction.CANCEL)


@dataclass
class CleanedFile:
    """clean 대상 파일."""
    path: str
    removed: int


@dataclass
class CleanReport:
    """clean 결과."""
    name: str
    dry_run: bool = False
    project_name: str | None = None
    files: list[CleanedFile] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)

    @property
    def total_removed(self) -> int:
        return sum(f.removed for f in self.files)


@dataclass
class DirectoryStats:
    """템플릿 크기 통계."""
    files: int = 0
    directories: int = 0
    total_size: int = 0
