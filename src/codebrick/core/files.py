"""
파일 수집/복사 유틸리티.

정책:
- 상대 경로는 항상 POSIX 형식 ("sub/b.ts")
- 숨김 파일/폴더, node_modules, __pycache__, brick.json은 수집 제외
- 결과는 사전순 정렬 (표시/배치 처리 순서 동일)
- manifest/원격/아카이브에서 온 경로는 safe_relative_path로 검증
"""

import fnmatch
import shutil
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePosixPath
from typing import Any

from codebrick.domain.constants import IGNORED_DIRNAMES, METADATA_FILENAME
from codebrick.domain.schemas import DirectoryStats

CHUNK_SIZE = 64 * 1024


def to_posix(path: Path) -> str:
    """상대 Path → POSIX 문자열."""
    return PurePosixPath(*path.parts).as_posix()


def safe_relative_path(rel: str) -> str:
    """
    상대 경로 정규화 + 검증.

    절대 경로, 드라이브, ".." 포함 경로는 거부 (대상 디렉토리 탈출 방지).

    Args:
        rel: 상대 경로 문자열

    Returns:
        정규화된 POSIX 상대 경로

    Raises:
        ValueError: 안전하지 않은 경로
    """
    normalized = rel.replace("\\", "/").strip()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    pure = PurePosixPath(normalized)

    if not pure.parts or pure.is_absolute() or ":" in pure.parts[0]:
        raise ValueError(f"Unsafe relative path: {rel!r}")
    if any(part in ("..", "") for part in pure.parts):
        raise ValueError(f"Unsafe relative path: {rel!r}")

    return pure.as_posix()


def _is_ignored(parts: Iterable[str], is_file: bool) -> bool:
    parts = list(parts)
    for part in parts:
        if part.startswith("."):
            return True
    for part in parts[:-1] if is_file else parts:
        if part in IGNORED_DIRNAMES:
            return True
    if is_file and parts and parts[-1] == METADATA_FILENAME and len(parts) == 1:
        return True
    return False


def _walk(base: Path, current: Path) -> Iterator[str]:
    for entry in sorted(current.iterdir(), key=lambda p: p.name):
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            if entry.name in IGNORED_DIRNAMES:
                continue
            yield from _walk(base, entry)
        elif entry.is_file():
            rel = to_posix(entry.relative_to(base))
            if rel == METADATA_FILENAME:
                continue
            yield rel


def _matches(rel: str, pattern: str) -> bool:
    pattern = pattern.strip().rstrip("/")
    if not pattern:
        return False
    if fnmatch.fnmatch(rel, pattern):
        return True
    if PurePosixPath(rel).match(pattern):
        return True
    # 디렉토리 이름만 준 경우: 접두사 매칭
    return rel.startswith(pattern + "/")


def split_patterns(value: str | None) -> list[str]:
    """쉼표로 구분된 glob 패턴 문자열 → 리스트."""
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def collect_files(
    source_dir: Path,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
) -> list[str]:
    """
    디렉토리에서 템플릿 대상 파일 수집.

    Args:
        source_dir: 원본 디렉토리
        include: glob 패턴 (지정 시 매칭된 파일만)
        exclude: 제외 glob 패턴

    Returns:
        정렬된 POSIX 상대 경로 목록
    """
    if include:
        found: set[str] = set()
        for pattern in include:
            for match in source_dir.glob(pattern):
                if not match.is_file():
                    continue
                rel_path = match.relative_to(source_dir)
                if _is_ignored(rel_path.parts, is_file=True):
                    continue
                found.add(to_posix(rel_path))
        files = sorted(found)
    else:
        files = list(_walk(source_dir, source_dir))

    if exclude:
        files = [f for f in files if not any(_matches(f, p) for p in exclude)]

    return sorted(files)


def expand_paths(base: Path, paths: Iterable[str]) -> list[str]:
    """
    상대 경로 목록 확장: 디렉토리는 하위 파일 전체로.

    Args:
        base: 기준 디렉토리
        paths: base 기준 상대 경로 (파일 또는 디렉토리)

    Returns:
        정렬된 파일 상대 경로 (존재하지 않는 경로는 그대로 포함 → 복사 시 실패 처리).
        루트의 brick.json은 제외
    """
    result: set[str] = set()
    for raw in paths:
        rel = safe_relative_path(raw)
        if rel == METADATA_FILENAME:
            continue
        target = base / rel
        if target.is_dir():
            for sub in _walk(base, target):
                result.add(sub)
        else:
            result.add(rel)
    return sorted(result)


def copy_file(src: Path, dst: Path) -> None:
    """파일 복사 (중간 디렉토리 생성, 메타 보존)."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)


def iter_file_chunks(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """파일을 chunk 단위로 읽기 (전체 버퍼링 없음)."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


def write_chunks(dst: Path, chunks: Iterable[bytes]) -> None:
    """chunk 스트림을 파일로 기록 (중간 디렉토리 생성)."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    with open(dst, "wb") as f:
        for chunk in chunks:
            f.write(chunk)


def prune_empty_dirs(root: Path, start: Path) -> None:
    """start부터 root 직전까지 빈 디렉토리 제거."""
    current = start
    while current != root and root in current.parents:
        try:
            current.rmdir()
        except OSError:
            break
        current = current.parent


def compute_stats(root: Path, files: Iterable[str]) -> DirectoryStats:
    """
    manifest 기준 크기 통계.

    디스크에 없는 파일은 건너뛴다.
    """
    stats = DirectoryStats()
    directories: set[str] = set()
    for rel in files:
        path = root / rel
        if not path.is_file():
            continue
        stats.files += 1
        stats.total_size += path.stat().st_size
        parent = PurePosixPath(rel).parent
        while str(parent) not in (".", ""):
            directories.add(parent.as_posix())
            parent = parent.parent
    stats.directories = len(directories)
    return stats


def build_tree(files: Iterable[str]) -> dict[str, Any]:
    """
    manifest → 중첩 dict 트리.

    디렉토리는 dict, 파일은 None 값.
    """
    tree: dict[str, Any] = {}
    for rel in sorted(files):
        node = tree
        parts = PurePosixPath(rel).parts
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if child is None:
                child = node[part] = {}
            node = child
        node.setdefault(parts[-1], None)
    return tree


def format_size(size: int) -> str:
    """바이트 → 사람이 읽을 수 있는 크기."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
