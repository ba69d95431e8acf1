"""
Domain Constants: 전역 상수.

파일명 정책, 루트 디렉토리 구조 등 시스템 전반에서 사용되는 값들.
"""

import re

# =============================================================================
# Root Directory Structure (루트 디렉토리 구조)
# =============================================================================
# ~/.codebrick/
# ├── config.json        # 자유 형식 설정 (githubToken 등)
# ├── store.json         # Registry (name → entry)
# └── templates/
#     └── <name>/
#         ├── brick.json # 메타데이터
#         └── ...        # 템플릿 파일 (원본 그대로)

DEFAULT_ROOT_DIRNAME = ".codebrick"
ROOT_ENV_VAR = "CODEBRICK_HOME"

CONFIG_FILENAME = "config.json"
STORE_FILENAME = "store.json"
TEMPLATES_DIRNAME = "templates"
METADATA_FILENAME = "brick.json"

STORE_VERSION = "1.0"
DEFAULT_TEMPLATE_VERSION = "1.0.0"

# =============================================================================
# Archive Container (.brick 파일 구조)
# =============================================================================
# <name>.brick (tar.gz)
# ├── brick.json
# └── template/
#     └── ...

ARCHIVE_EXTENSION = ".brick"
ARCHIVE_TEMPLATE_DIRNAME = "template"

# =============================================================================
# Template Naming (템플릿 이름 규칙)
# =============================================================================

TEMPLATE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# =============================================================================
# File Collection (파일 수집 정책)
# =============================================================================
# 숨김 파일/폴더(. 으로 시작)는 항상 제외

IGNORED_DIRNAMES = frozenset({"node_modules", "__pycache__"})

# =============================================================================
# Remote (GitHub)
# =============================================================================

GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"
GITHUB_TOKEN_CONFIG_KEY = "githubToken"
DEFAULT_REMOTE_REF = "main"
