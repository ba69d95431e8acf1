"""
Pytest fixtures for CodeBrick tests.

테스트 구성:
- 루트 디렉토리는 항상 tmp_path 아래 (실제 ~/.codebrick 사용 금지)
- 네트워크는 httpx.MockTransport로 대체
- 대화형 입력은 ScriptedPrompter로 대체
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from codebrick.core.config import Settings
from codebrick.core.metadata_store import MetadataStore
from codebrick.core.registry import Registry
from codebrick.domain.errors import OperationCancelledError
from codebrick.templates.local import LocalTemplateEngine

# =============================================================================
# Root Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """환경변수 격리 (CODEBRICK_HOME, GITHUB_TOKEN)."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("CODEBRICK_HOME", str(tmp_path / "home-root"))


@pytest.fixture
def brick_root(tmp_path: Path) -> Path:
    """초기화된 CodeBrick 루트."""
    root = tmp_path / "brick-root"
    Settings.load(root).initialize()
    return root


@pytest.fixture
def registry(brick_root: Path) -> Registry:
    return Registry.open(brick_root)


@pytest.fixture
def store(registry: Registry) -> MetadataStore:
    return MetadataStore(registry)


@pytest.fixture
def engine(registry: Registry, store: MetadataStore) -> LocalTemplateEngine:
    return LocalTemplateEngine(registry, store)


# =============================================================================
# Project Fixtures
# =============================================================================

def write_files(base: Path, files: dict[str, str]) -> Path:
    """상대 경로 → 내용 dict로 파일 생성."""
    for rel, content in files.items():
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return base


@pytest.fixture
def write_tree() -> Callable[[Path, dict[str, str]], Path]:
    return write_files


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """
    샘플 프로젝트.

    포함:
    - a.ts, sub/b.ts (수집 대상)
    - .env, node_modules/, __pycache__/ (수집 제외)
    """
    return write_files(tmp_path / "project", {
        "a.ts": "import { b } from './sub/b';\nexport const a = b + 1;\n",
        "sub/b.ts": "export const b = 1;\n",
        ".env": "SECRET=1\n",
        "node_modules/left-pad/index.js": "module.exports = 1;\n",
        "__pycache__/x.pyc": "compiled",
    })


@pytest.fixture
def saved_demo(engine: LocalTemplateEngine, sample_project: Path) -> str:
    """sample_project를 'demo'로 저장 후 이름 반환."""
    engine.create("demo", sample_project, ["a.ts", "sub/b.ts"], description="Demo app", tags=["ts"])
    return "demo"


# =============================================================================
# Prompter Fixtures
# =============================================================================

class ScriptedPrompter:
    """
    미리 정한 응답을 순서대로 돌려주는 Prompter.

    응답이 소진되면 OperationCancelledError (Ctrl-C와 동일).
    """

    def __init__(self, *answers: bool | str) -> None:
        self.answers = list(answers)
        self.messages: list[str] = []

    def _next(self, message: str) -> bool | str:
        self.messages.append(message)
        if not self.answers:
            raise OperationCancelledError()
        return self.answers.pop(0)

    def confirm(self, message: str, default: bool = False) -> bool:
        return bool(self._next(message))

    def choose_one(self, message: str, options: list[str]) -> str:
        answer = str(self._next(message))
        assert answer in options
        return answer

    def text(
        self,
        message: str,
        validator: Callable[[str], str | None] | None = None,
        default: str | None = None,
    ) -> str:
        answer = str(self._next(message))
        if validator is not None:
            assert validator(answer) is None
        return answer


@pytest.fixture
def prompter_factory() -> Callable[..., ScriptedPrompter]:
    return ScriptedPrompter
