"""
test_local.py - 로컬 템플릿 엔진 테스트

검증:
- save → load: files == 정렬된 복사 경로
- create → delete → list: 이름/디렉토리 없음
- add_files → remove_files: manifest 복원
- 구조 에러는 변경 전에 검사
- 개별 파일 실패는 Report에 수집
"""

import json
from pathlib import Path

import pytest

from codebrick.core.metadata_store import MetadataStore
from codebrick.core.registry import Registry
from codebrick.domain.errors import (
    AlreadyExistsError,
    BrickError,
    ErrorCodes,
    InvalidTemplateNameError,
    IOFailureError,
    NotFoundError,
    RemoteFetchError,
    UnsupportedTypeError,
)
from codebrick.domain.schemas import RemoteRef, TemplateType
from codebrick.templates.local import LocalTemplateEngine

# =============================================================================
# Fakes
# =============================================================================


class FakeFetcher:
    """메모리 기반 RemoteFetcher."""

    def __init__(self, files: dict[str, bytes], fail_on: str | None = None) -> None:
        self.files = files
        self.fail_on = fail_on

    def list_files(self, remote: RemoteRef) -> list[str]:
        return sorted(self.files)

    def read_file(self, remote: RemoteRef, relative_path: str):
        if relative_path == self.fail_on:
            raise RemoteFetchError(ErrorCodes.REMOTE_FETCH_FAILED, f"boom: {relative_path}")
        yield self.files[relative_path]


REMOTE = RemoteRef(owner="acme", repo="kits", path="react", ref="main")


# =============================================================================
# create 테스트
# =============================================================================


class TestCreate:
    """LocalTemplateEngine.create 테스트."""

    def test_manifest_is_sorted_copied_paths(
        self,
        engine: LocalTemplateEngine,
        store: MetadataStore,
        sample_project: Path,
    ):
        report = engine.create("demo", sample_project, ["sub/b.ts", "a.ts"])

        assert report.files == ["a.ts", "sub/b.ts"]
        assert not report.has_failures
        metadata = store.load("demo")
        assert metadata is not None
        assert metadata.files == ["a.ts", "sub/b.ts"]
        assert metadata.source.origin == "local"
        assert metadata.source.path == str(sample_project.resolve())

    def test_files_copied(self, engine: LocalTemplateEngine, sample_project: Path, brick_root: Path):
        engine.create("demo", sample_project, ["a.ts", "sub/b.ts"])

        template_dir = brick_root / "templates" / "demo"
        assert (template_dir / "a.ts").read_text() == (sample_project / "a.ts").read_text()
        assert (template_dir / "sub" / "b.ts").exists()
        assert (template_dir / "brick.json").exists()

    def test_registry_entry(self, engine: LocalTemplateEngine, sample_project: Path, brick_root: Path):
        engine.create("demo", sample_project, ["a.ts"], description="Demo", tags=["b", "a", "b"])

        entry = Registry.open(brick_root).get("demo")
        assert entry is not None
        assert entry.type == TemplateType.LOCAL
        assert entry.path == "templates/demo"
        assert entry.description == "Demo"
        assert entry.tags == ["a", "b"]
        assert entry.created_at == entry.updated_at

    def test_duplicate_rejected(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path):
        with pytest.raises(AlreadyExistsError) as exc_info:
            engine.create(saved_demo, sample_project, ["a.ts"])

        assert exc_info.value.code == ErrorCodes.TEMPLATE_EXISTS

    def test_overwrite_replaces_contents(
        self,
        engine: LocalTemplateEngine,
        saved_demo: str,
        sample_project: Path,
        brick_root: Path,
    ):
        """덮어쓰기: 이전 파일 제거."""
        engine.create(saved_demo, sample_project, ["a.ts"], overwrite=True)

        assert not (brick_root / "templates" / "demo" / "sub").exists()
        assert engine.get_metadata(saved_demo).files == ["a.ts"]

    def test_invalid_name(self, engine: LocalTemplateEngine, sample_project: Path, brick_root: Path):
        with pytest.raises(InvalidTemplateNameError):
            engine.create("bad name", sample_project, ["a.ts"])

        assert list((brick_root / "templates").iterdir()) == []

    def test_missing_source_dir(self, engine: LocalTemplateEngine, tmp_path: Path):
        with pytest.raises(NotFoundError) as exc_info:
            engine.create("demo", tmp_path / "nope", ["a.ts"])

        assert exc_info.value.code == ErrorCodes.PATH_NOT_FOUND

    def test_no_files(self, engine: LocalTemplateEngine, sample_project: Path):
        with pytest.raises(NotFoundError) as exc_info:
            engine.create("demo", sample_project, [])

        assert exc_info.value.code == ErrorCodes.NO_FILES

    def test_partial_failure_collected(self, engine: LocalTemplateEngine, sample_project: Path):
        """없는 파일 → 실패 수집, 나머지는 저장."""
        report = engine.create("demo", sample_project, ["a.ts", "ghost.ts"])

        assert report.files == ["a.ts"]
        assert [f.path for f in report.failures] == ["ghost.ts"]
        assert engine.get_metadata("demo").files == ["a.ts"]


# =============================================================================
# add_files / remove_files 테스트
# =============================================================================


class TestAddRemoveFiles:
    """파일 추가/제거 테스트."""

    def test_add_then_remove_restores_manifest(
        self,
        engine: LocalTemplateEngine,
        saved_demo: str,
        sample_project: Path,
        write_tree,
    ):
        write_tree(sample_project, {"lib/c.ts": "c", "lib/d.ts": "d"})
        before = engine.get_metadata(saved_demo).files

        added = engine.add_files(saved_demo, sample_project, ["lib"])
        assert added.files == ["lib/c.ts", "lib/d.ts"]
        assert engine.get_metadata(saved_demo).files == ["a.ts", "lib/c.ts", "lib/d.ts", "sub/b.ts"]

        engine.remove_files(saved_demo, ["lib/c.ts", "lib/d.ts"])
        assert engine.get_metadata(saved_demo).files == before

    def test_add_metadata_file_ignored(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path):
        """원본의 brick.json은 manifest에 들어가지 않는다."""
        (sample_project / "brick.json").write_text('{"name": "other"}')

        report = engine.add_files(saved_demo, sample_project, ["brick.json"])

        assert report.files == []
        metadata = engine.get_metadata(saved_demo)
        assert metadata.files == ["a.ts", "sub/b.ts"]
        assert metadata.name == saved_demo

    def test_remove_directory_prefix(
        self,
        engine: LocalTemplateEngine,
        saved_demo: str,
        brick_root: Path,
    ):
        report = engine.remove_files(saved_demo, ["sub"])

        assert report.files == ["sub/b.ts"]
        assert engine.get_metadata(saved_demo).files == ["a.ts"]
        assert not (brick_root / "templates" / "demo" / "sub").exists()

    def test_remove_unknown_path_no_change(self, engine: LocalTemplateEngine, saved_demo: str):
        """일치하지 않는 경로 → 변경 없이 에러."""
        with pytest.raises(NotFoundError) as exc_info:
            engine.remove_files(saved_demo, ["a.ts", "ghost.ts"])

        assert exc_info.value.code == ErrorCodes.PATH_NOT_FOUND
        assert engine.get_metadata(saved_demo).files == ["a.ts", "sub/b.ts"]

    def test_add_missing_path(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path):
        with pytest.raises(NotFoundError) as exc_info:
            engine.add_files(saved_demo, sample_project, ["ghost.ts"])

        assert exc_info.value.code == ErrorCodes.PATH_NOT_FOUND

    def test_add_updates_timestamp(
        self,
        engine: LocalTemplateEngine,
        saved_demo: str,
        sample_project: Path,
        brick_root: Path,
        write_tree,
    ):
        write_tree(sample_project, {"c.ts": "c"})
        created = engine.get_metadata(saved_demo).created_at

        engine.add_files(saved_demo, sample_project, ["c.ts"])

        metadata = engine.get_metadata(saved_demo)
        assert metadata.created_at == created
        assert Registry.open(brick_root).get(saved_demo).updated_at == metadata.updated_at

    def test_remote_rejected(self, engine: LocalTemplateEngine, sample_project: Path):
        engine.link("kit", REMOTE)

        with pytest.raises(NotFoundError) as exc_info:
            engine.add_files("kit", sample_project, ["a.ts"])

        assert exc_info.value.code == ErrorCodes.TEMPLATE_NOT_LOCAL


# =============================================================================
# delete / clone 테스트
# =============================================================================


class TestDeleteClone:
    """delete / clone 테스트."""

    def test_delete(self, engine: LocalTemplateEngine, saved_demo: str, brick_root: Path):
        engine.delete(saved_demo)

        assert saved_demo not in Registry.open(brick_root).list()
        assert not (brick_root / "templates" / "demo").exists()

    def test_delete_with_missing_directory(
        self,
        engine: LocalTemplateEngine,
        saved_demo: str,
        brick_root: Path,
    ):
        """디렉토리가 이미 없어도 성공."""
        import shutil

        shutil.rmtree(brick_root / "templates" / "demo")

        engine.delete(saved_demo)

        assert saved_demo not in engine.registry

    def test_delete_unknown(self, engine: LocalTemplateEngine):
        with pytest.raises(NotFoundError):
            engine.delete("ghost")

    def test_clone_local(self, engine: LocalTemplateEngine, saved_demo: str, brick_root: Path):
        engine.clone(saved_demo, "demo2")

        metadata = engine.get_metadata("demo2")
        assert metadata.name == "demo2"
        assert metadata.files == ["a.ts", "sub/b.ts"]
        assert (brick_root / "templates" / "demo2" / "sub" / "b.ts").exists()
        assert engine.registry.names() == ["demo", "demo2"]

    def test_clone_remote_copies_pointer(self, engine: LocalTemplateEngine):
        engine.link("kit", REMOTE, description="React kit")

        engine.clone("kit", "kit2")

        entry = engine.get_entry("kit2")
        assert entry.is_remote
        assert entry.remote == REMOTE
        assert entry.description == "React kit"

    def test_clone_target_exists(self, engine: LocalTemplateEngine, saved_demo: str):
        engine.link("kit", REMOTE)

        with pytest.raises(AlreadyExistsError):
            engine.clone(saved_demo, "kit")


# =============================================================================
# link / pull 테스트
# =============================================================================


class TestLinkPull:
    """원격 템플릿 테스트."""

    def test_link(self, engine: LocalTemplateEngine, brick_root: Path):
        engine.link("kit", REMOTE, tags=["react"])

        data = json.loads((brick_root / "store.json").read_text(encoding="utf-8"))
        entry = data["templates"]["kit"]
        assert entry["type"] == "remote"
        assert entry["remote"] == {"owner": "acme", "repo": "kits", "path": "react", "ref": "main"}
        assert "path" not in entry

    def test_link_duplicate(self, engine: LocalTemplateEngine, saved_demo: str):
        with pytest.raises(AlreadyExistsError):
            engine.link(saved_demo, REMOTE)

    def test_pull_converts_to_local(self, engine: LocalTemplateEngine, saved_demo: str, brick_root: Path):
        """이름 + 목록 위치 유지, 타입만 교체."""
        engine.link("kit", REMOTE, description="React kit")
        fetcher = FakeFetcher({"index.ts": b"export {};\n", "ui/button.tsx": b"<button/>"})

        report = engine.pull("kit", fetcher)

        assert report.files == ["index.ts", "ui/button.tsx"]
        entry = engine.get_entry("kit")
        assert entry.is_local
        assert engine.registry.names() == ["demo", "kit"]
        metadata = engine.get_metadata("kit")
        assert metadata.files == ["index.ts", "ui/button.tsx"]
        assert metadata.source.origin == "github"
        assert metadata.description == "React kit"
        assert (brick_root / "templates" / "kit" / "ui" / "button.tsx").read_bytes() == b"<button/>"

    def test_pull_skips_upstream_metadata(self, engine: LocalTemplateEngine, brick_root: Path):
        """공유된 CodeBrick 템플릿 디렉토리: 원격 brick.json은 가져오지 않는다."""
        engine.link("kit", REMOTE)
        fetcher = FakeFetcher({"brick.json": b'{"name": "upstream"}', "main.py": b"print()\n"})

        report = engine.pull("kit", fetcher)

        assert report.files == ["main.py"]
        metadata = engine.get_metadata("kit")
        assert metadata.files == ["main.py"]
        assert metadata.name == "kit"

    def test_pull_failure_keeps_remote(self, engine: LocalTemplateEngine, brick_root: Path):
        """조회 실패 → 부분 다운로드 삭제, remote 유지."""
        engine.link("kit", REMOTE)
        fetcher = FakeFetcher({"a.ts": b"a", "b.ts": b"b"}, fail_on="b.ts")

        with pytest.raises(RemoteFetchError):
            engine.pull("kit", fetcher)

        assert engine.get_entry("kit").is_remote
        assert not (brick_root / "templates" / "kit").exists()

    def test_pull_local_rejected(self, engine: LocalTemplateEngine, saved_demo: str):
        with pytest.raises(UnsupportedTypeError):
            engine.pull(saved_demo, FakeFetcher({}))


# =============================================================================
# update 테스트
# =============================================================================


class TestUpdate:
    """update (원본 디렉토리 재스냅샷) 테스트."""

    def test_resnapshot(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path, write_tree):
        write_tree(sample_project, {"new.ts": "new", "a.ts": "changed"})
        created = engine.get_metadata(saved_demo).created_at

        report = engine.update(saved_demo)

        assert report.files == ["a.ts", "new.ts", "sub/b.ts"]
        metadata = engine.get_metadata(saved_demo)
        assert metadata.files == ["a.ts", "new.ts", "sub/b.ts"]
        assert metadata.created_at == created
        assert (engine.storage_path(saved_demo) / "a.ts").read_text() == "changed"

    def test_source_removed(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path):
        import shutil

        shutil.rmtree(sample_project)

        with pytest.raises(NotFoundError):
            engine.update(saved_demo)

        assert engine.get_metadata(saved_demo).files == ["a.ts", "sub/b.ts"]

    def test_swap_failure_keeps_previous(
        self,
        engine: LocalTemplateEngine,
        saved_demo: str,
        sample_project: Path,
        brick_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """교체 rename 실패 → IOFailure, 기존 저장 내용 + manifest 유지, 임시 디렉토리 없음."""
        (sample_project / "new.ts").write_text("new")
        original_rename = Path.rename

        def failing_rename(self: Path, target):
            if self.name == f".{saved_demo}.updating":
                raise OSError("device busy")
            return original_rename(self, target)

        monkeypatch.setattr(Path, "rename", failing_rename)

        with pytest.raises(IOFailureError) as exc_info:
            engine.update(saved_demo)

        assert exc_info.value.code == ErrorCodes.FILE_IO_FAILED
        assert engine.get_metadata(saved_demo).files == ["a.ts", "sub/b.ts"]
        assert (engine.storage_path(saved_demo) / "a.ts").exists()
        assert sorted(p.name for p in (brick_root / "templates").iterdir()) == [saved_demo]

    def test_pulled_template_rejected(self, engine: LocalTemplateEngine):
        engine.link("kit", REMOTE)
        engine.pull("kit", FakeFetcher({"a.ts": b"a"}))

        with pytest.raises(UnsupportedTypeError):
            engine.update("kit")


# =============================================================================
# clean 테스트
# =============================================================================


class TestClean:
    """clean (로컬 import 제거) 테스트."""

    def test_dry_run_does_not_write(self, engine: LocalTemplateEngine, saved_demo: str):
        report = engine.clean(saved_demo, dry_run=True)

        assert [(f.path, f.removed) for f in report.files] == [("a.ts", 1)]
        assert "./sub/b" in (engine.storage_path(saved_demo) / "a.ts").read_text()

    def test_clean_writes_and_keeps_manifest(self, engine: LocalTemplateEngine, saved_demo: str):
        before = engine.get_metadata(saved_demo)

        report = engine.clean(saved_demo)

        assert report.total_removed == 1
        content = (engine.storage_path(saved_demo) / "a.ts").read_text()
        assert "import" not in content
        assert "export const a" in content
        after = engine.get_metadata(saved_demo)
        assert after.files == before.files
        assert after.created_at == before.created_at

    def test_custom_pattern(self, engine: LocalTemplateEngine, saved_demo: str):
        report = engine.clean(saved_demo, pattern=r"^export const b", dry_run=True)

        assert {f.path for f in report.files} == {"a.ts", "sub/b.ts"}

    def test_unsupported_extension_untouched(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path):
        """지원하지 않는 확장자는 기본 전략으로 정리하지 않는다."""
        (sample_project / "notes.md").write_text("import x from './x';\n")
        engine.add_files(saved_demo, sample_project, ["notes.md"])

        report = engine.clean(saved_demo, dry_run=True)

        assert [f.path for f in report.files] == ["a.ts"]

    def test_invalid_pattern(self, engine: LocalTemplateEngine, saved_demo: str):
        with pytest.raises(BrickError) as exc_info:
            engine.clean(saved_demo, pattern="([")

        assert exc_info.value.code == ErrorCodes.INVALID_PATTERN

    def test_remote_rejected(self, engine: LocalTemplateEngine):
        engine.link("kit", REMOTE)

        with pytest.raises(UnsupportedTypeError):
            engine.clean("kit")


# =============================================================================
# info / stats 테스트
# =============================================================================


class TestInfoStats:
    """info / stats 테스트."""

    def test_info_local(self, engine: LocalTemplateEngine, saved_demo: str):
        info = engine.info(saved_demo)

        assert info.entry.is_local
        assert info.metadata is not None
        assert info.metadata.files == ["a.ts", "sub/b.ts"]
        assert info.to_dict()["metadata"]["name"] == "demo"

    def test_info_remote_has_no_metadata(self, engine: LocalTemplateEngine):
        engine.link("kit", REMOTE)

        info = engine.info("kit")

        assert info.metadata is None
        assert info.to_dict()["entry"]["remote"]["repo"] == "kits"

    def test_info_missing_metadata(self, engine: LocalTemplateEngine, saved_demo: str):
        engine.store.path_for(saved_demo).unlink()

        assert engine.info(saved_demo).metadata is None
        with pytest.raises(NotFoundError) as exc_info:
            engine.get_metadata(saved_demo)
        assert exc_info.value.code == ErrorCodes.METADATA_NOT_FOUND

    def test_stats(self, engine: LocalTemplateEngine, saved_demo: str, sample_project: Path):
        stats = engine.stats(saved_demo)

        expected = (sample_project / "a.ts").stat().st_size + (sample_project / "sub" / "b.ts").stat().st_size
        assert stats.files == 2
        assert stats.directories == 1
        assert stats.total_size == expected
