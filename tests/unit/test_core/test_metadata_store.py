"""
test_metadata_store.py - brick.json 읽기/쓰기 테스트
"""

import json
from pathlib import Path

from codebrick.core.metadata_store import MetadataStore
from codebrick.core.registry import Registry
from codebrick.domain.schemas import SourceInfo, TemplateMetadata


class TestMetadataStore:
    """MetadataStore 테스트."""

    def test_save_then_load(self, brick_root: Path):
        store = MetadataStore(Registry.open(brick_root))
        metadata = TemplateMetadata(
            name="demo",
            files=["sub/b.ts", "a.ts"],
            description="Demo",
            source=SourceInfo(origin="local", path="/work/demo"),
            dependencies={"react": "^18.0.0"},
            dev_dependencies={"vitest": "*"},
            tags=["ts"],
            created_at="2026-01-01T00:00:00+00:00",
            updated_at="2026-01-02T00:00:00+00:00",
        )

        path = store.save("demo", metadata)
        loaded = store.load("demo")

        assert path == brick_root / "templates" / "demo" / "brick.json"
        assert loaded is not None
        assert loaded.files == ["a.ts", "sub/b.ts"]
        assert loaded.dependencies == {"react": "^18.0.0"}
        assert loaded.dev_dependencies == {"vitest": "*"}
        assert loaded.source.path == "/work/demo"

    def test_on_disk_keys_are_camel_case(self, brick_root: Path):
        store = MetadataStore(Registry.open(brick_root))
        store.save("demo", TemplateMetadata(name="demo", files=["a.ts"]))

        data = json.loads(store.path_for("demo").read_text(encoding="utf-8"))

        assert set(data) == {
            "name", "type", "version", "description", "source", "files",
            "dependencies", "devDependencies", "tags", "createdAt", "updatedAt",
        }
        assert data["version"] == "1.0.0"
        assert data["type"] == "local"

    def test_missing_returns_none(self, brick_root: Path):
        store = MetadataStore(Registry.open(brick_root))

        assert store.load("ghost") is None

    def test_malformed_returns_none(self, brick_root: Path):
        """files가 리스트가 아님 → None (크래시 없음)."""
        store = MetadataStore(Registry.open(brick_root))
        path = store.path_for("demo")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"name": "demo", "files": "a.ts"}), encoding="utf-8")

        assert store.load("demo") is None

    def test_missing_name_returns_none(self, brick_root: Path):
        store = MetadataStore(Registry.open(brick_root))
        path = store.path_for("demo")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"files": []}), encoding="utf-8")

        assert store.load("demo") is None

    def test_unknown_fields_ignored(self, brick_root: Path):
        store = MetadataStore(Registry.open(brick_root))
        path = store.path_for("demo")
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps({"name": "demo", "files": ["a.ts"], "author": "someone"}),
            encoding="utf-8",
        )

        loaded = store.load("demo")

        assert loaded is not None
        assert loaded.files == ["a.ts"]
        assert loaded.version == "1.0.0"
