"""
의존성 감지 (save --detect-deps).

기본 수준의 정규식 스캔:
- JS/TS: import ... from "pkg", require("pkg"): 상대 경로 제외, scoped 패키지는 @scope/pkg
- Python: 최상위 import 모듈 (일부 표준 라이브러리 제외)
"""

import logging
import re
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

_JS_IMPORT = re.compile(r"""import\s+.*?\s+from\s+['"]([^'"./][^'"]*)['"]""")
_JS_REQUIRE = re.compile(r"""require\s*\(\s*['"]([^'"./][^'"]*)['"]\s*\)""")
_PY_IMPORT = re.compile(r"^(?:from|import)\s+(\w+)", re.MULTILINE)

PY_STDLIB_SKIP = frozenset({"os", "sys", "json", "re", "typing", "dataclasses"})


def _package_name(specifier: str) -> str | None:
    parts = specifier.split("/")
    if not specifier.startswith("@"):
        return parts[0]
    if len(parts) >= 2:
        return f"{parts[0]}/{parts[1]}"
    return None


def detect_dependencies(content: str, filename: str) -> list[str]:
    """
    파일 내용에서 외부 패키지 이름 감지.

    Args:
        content: 파일 내용
        filename: 확장자 판별용 파일명

    Returns:
        발견 순서대로 중복 없는 패키지 목록
    """
    found: dict[str, None] = {}

    if filename.endswith(JS_EXTENSIONS):
        for pattern in (_JS_IMPORT, _JS_REQUIRE):
            for match in pattern.finditer(content):
                name = _package_name(match.group(1))
                if name:
                    found[name] = None

    if filename.endswith(".py"):
        for match in _PY_IMPORT.finditer(content):
            module = match.group(1)
            if module not in PY_STDLIB_SKIP:
                found[module] = None

    return list(found)


def scan_dependencies(source_dir: Path, files: Iterable[str]) -> dict[str, str]:
    """
    파일 목록 전체 스캔.

    텍스트로 읽을 수 없는 파일은 건너뛴다.

    Returns:
        package → "*" (버전 제약 없음)
    """
    detected: dict[str, str] = {}
    for rel in files:
        try:
            content = (source_dir / rel).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug(f"Skipping non-text file {rel} during dependency scan")
            continue
        for name in detect_dependencies(content, rel):
            detected.setdefault(name, "*")
    return detected
