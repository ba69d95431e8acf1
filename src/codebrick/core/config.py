"""
설정: 루트 디렉토리, config.json, GitHub 토큰.

우선순위:
- 루트: --root > CODEBRICK_HOME > ~/.codebrick
- 토큰: GITHUB_TOKEN 환경변수 > config.json의 githubToken

config.json은 자유 형식이며 이 모듈은 통째로 읽고/쓰기만 한다.
.env 파일은 CLI 시작 시 python-dotenv로 로드된다.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from codebrick.core.atomic import atomic_write_json, read_json
from codebrick.domain.constants import (
    CONFIG_FILENAME,
    DEFAULT_ROOT_DIRNAME,
    GITHUB_TOKEN_CONFIG_KEY,
    GITHUB_TOKEN_ENV_VAR,
    ROOT_ENV_VAR,
    STORE_FILENAME,
    STORE_VERSION,
    TEMPLATES_DIRNAME,
)
from codebrick.domain.errors import ErrorCodes, NotInitializedError

logger = logging.getLogger(__name__)


def default_root() -> Path:
    """환경변수 또는 홈 디렉토리 기준 루트."""
    env_root = os.environ.get(ROOT_ENV_VAR)
    if env_root:
        return Path(env_root).expanduser()
    return Path.home() / DEFAULT_ROOT_DIRNAME


def load_config(root: Path) -> dict[str, Any]:
    """config.json 로드 (없거나 깨졌으면 빈 dict)."""
    data = read_json(root / CONFIG_FILENAME)
    return data if isinstance(data, dict) else {}


def save_config(root: Path, config: dict[str, Any]) -> None:
    atomic_write_json(root / CONFIG_FILENAME, config)


@dataclass
class Settings:
    """실행 설정."""
    root: Path
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, root: Path | str | None = None) -> "Settings":
        resolved = Path(root).expanduser() if root else default_root()
        return cls(root=resolved, config=load_config(resolved))

    @property
    def templates_dir(self) -> Path:
        return self.root / TEMPLATES_DIRNAME

    @property
    def github_token(self) -> str | None:
        token = os.environ.get(GITHUB_TOKEN_ENV_VAR)
        if token:
            return token
        value = self.config.get(GITHUB_TOKEN_CONFIG_KEY)
        return str(value) if value else None

    def is_initialized(self) -> bool:
        return (self.root / STORE_FILENAME).exists() and self.templates_dir.is_dir()

    def require_initialized(self) -> None:
        """
        Raises:
            NotInitializedError: NOT_INITIALIZED
        """
        if not self.is_initialized():
            raise NotInitializedError(
                ErrorCodes.NOT_INITIALIZED,
                f"CodeBrick is not initialized at {self.root}. Run 'brick init' first.",
                root=str(self.root),
            )

    def initialize(self) -> bool:
        """
        루트 구조 생성.

        Returns:
            새로 초기화했으면 True, 이미 초기화되어 있으면 False
        """
        if self.is_initialized():
            return False

        self.templates_dir.mkdir(parents=True, exist_ok=True)
        store_path = self.root / STORE_FILENAME
        if not store_path.exists():
            atomic_write_json(store_path, {"version": STORE_VERSION, "templates": {}})
        if not (self.root / CONFIG_FILENAME).exists():
            save_config(self.root, self.config)

        logger.info(f"Initialized CodeBrick at {self.root}")
        return True
