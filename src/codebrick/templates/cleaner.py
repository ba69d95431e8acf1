"""
템플릿 import 정리: 프로젝트 로컬 import 라인 제거.

구조:
- 확장자별 전략 = 순수 함수 (line) -> bool (True면 라인 제거)
- 사용자 정의 정규식은 모든 파일에 적용
- Dart: package:<project>/ import 제거, 잘 알려진 외부 패키지는 유지
- 제거 후 3줄 이상 연속 빈 줄은 2줄로 축소

파일 추가/삭제는 하지 않으므로 manifest는 그대로 유효하다.
"""

import json
import logging
import re
import tomllib
from collections.abc import Callable
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

LineFilter = Callable[[str], bool]

_JS_IMPORT_PATTERNS = [
    re.compile(r"""^import\s+.*from\s+['"]\.\.?/[^'"]+['"]\s*;?\s*$"""),
    re.compile(r"""^import\s+['"]\.\.?/[^'"]+['"]\s*;?\s*$"""),
    re.compile(r"""^export\s+.*from\s+['"]\.\.?/[^'"]+['"]\s*;?\s*$"""),
]
_JS_REQUIRE_PATTERN = re.compile(
    r"""^const\s+\w+\s*=\s*require\s*\(\s*['"]\.\.?/[^'"]+['"]\s*\)\s*;?\s*$"""
)

LOCAL_IMPORT_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    ".ts": _JS_IMPORT_PATTERNS,
    ".tsx": _JS_IMPORT_PATTERNS,
    ".js": [*_JS_IMPORT_PATTERNS, _JS_REQUIRE_PATTERN],
    ".jsx": _JS_IMPORT_PATTERNS,
    ".py": [
        re.compile(r"^from\s+\.\S*\s+import\s+.*$"),
        re.compile(r"^import\s+\.\S+.*$"),
    ],
    ".rs": [
        re.compile(r"^use\s+crate::.*;\s*$"),
        re.compile(r"^use\s+super::.*;\s*$"),
    ],
    # Dart는 프로젝트 이름 기반 (dart_project_filter)
    ".dart": [],
}

# 제거하지 않을 외부 패키지 접두사
EXTERNAL_PREFIXES: dict[str, tuple[str, ...]] = {
    ".dart": (
        "package:flutter/",
        "package:flutter_",
        "package:dart:",
        "package:go_router/",
        "package:dio/",
        "package:http/",
        "package:provider/",
        "package:bloc/",
        "package:flutter_bloc/",
        "package:get/",
        "package:riverpod/",
        "package:hooks_riverpod/",
        "package:freezed_annotation/",
        "package:json_annotation/",
        "package:equatable/",
        "package:dartz/",
        "package:injectable/",
        "package:get_it/",
        "package:shared_preferences/",
        "package:path_provider/",
        "package:sqflite/",
        "package:hive/",
        "package:firebase_",
        "package:cloud_firestore/",
        "package:intl/",
        "package:cached_network_image/",
        "package:image_picker/",
        "package:url_launcher/",
        "package:connectivity",
        "package:permission_handler/",
        "package:auto_route/",
        "package:mockito/",
        "package:test/",
        "package:flutter_test/",
    ),
}

_BLANK_RUN = re.compile(r"\n{3,}")


def is_supported(ext: str) -> bool:
    return ext.lower() in LOCAL_IMPORT_PATTERNS


def is_external_import(line: str, ext: str) -> bool:
    return any(prefix in line for prefix in EXTERNAL_PREFIXES.get(ext, ()))


def pattern_filter(patterns: list[re.Pattern[str]], ext: str, keep_external: bool) -> LineFilter:
    """정규식 목록 기반 전략."""

    def drop(line: str) -> bool:
        stripped = line.strip()
        for pattern in patterns:
            if pattern.match(stripped):
                return not (keep_external and is_external_import(line, ext))
        return False

    return drop


def dart_project_filter(project_name: str, keep_external: bool) -> LineFilter:
    """Dart: package:<project>/ import/export 제거."""
    pattern = re.compile(rf"""^(import|export)\s+['"]package:{re.escape(project_name)}/""")

    def drop(line: str) -> bool:
        if not pattern.match(line.strip()):
            return False
        return not (keep_external and is_external_import(line, ".dart"))

    return drop


def custom_filter(expression: str) -> LineFilter:
    """
    사용자 정의 정규식 전략.

    Raises:
        re.error: 잘못된 정규식
    """
    pattern = re.compile(expression)
    return lambda line: bool(pattern.search(line))


def build_filter(
    ext: str,
    custom_pattern: str | None = None,
    project_name: str | None = None,
    keep_external: bool = True,
) -> LineFilter | None:
    """
    확장자에 맞는 전략 조합.

    Returns:
        LineFilter 또는 None (적용할 전략 없음)
    """
    ext = ext.lower()
    filters: list[LineFilter] = []

    if custom_pattern:
        filters.append(custom_filter(custom_pattern))
    if ext == ".dart" and project_name:
        filters.append(dart_project_filter(project_name, keep_external))
    patterns = LOCAL_IMPORT_PATTERNS.get(ext)
    if patterns:
        filters.append(pattern_filter(patterns, ext, keep_external))

    if not filters:
        return None

    return lambda line: any(f(line) for f in filters)


def clean_content(content: str, line_filter: LineFilter) -> tuple[str, int]:
    """
    파일 내용에서 제거 대상 라인 삭제.

    Returns:
        (정리된 내용, 제거된 라인 수)
    """
    kept: list[str] = []
    removed = 0
    for line in content.split("\n"):
        if line_filter(line):
            removed += 1
        else:
            kept.append(line)

    if removed == 0:
        return content, 0

    return _BLANK_RUN.sub("\n\n", "\n".join(kept)), removed


def detect_project_name(template_dir: Path) -> str | None:
    """
    프로젝트 이름 감지.

    순서: pubspec.yaml (Dart) → package.json (Node) → pyproject.toml (Python)
    읽기/파싱 실패는 다음 후보로 넘어간다.
    """
    pubspec = template_dir / "pubspec.yaml"
    if pubspec.is_file():
        try:
            data = yaml.safe_load(pubspec.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.debug(f"Cannot read {pubspec}: {e}")
        else:
            if isinstance(data, dict) and data.get("name"):
                return str(data["name"])

    package_json = template_dir / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Cannot read {package_json}: {e}")
        else:
            if isinstance(data, dict) and data.get("name"):
                return re.sub(r"^@[^/]+/", "", str(data["name"]))

    pyproject = template_dir / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
            logger.debug(f"Cannot read {pyproject}: {e}")
        else:
            project = data.get("project") or data.get("tool", {}).get("poetry") or {}
            if isinstance(project, dict) and project.get("name"):
                return str(project["name"])

    return None
