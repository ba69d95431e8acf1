"""
test_cleaner.py - import 정리 전략 테스트
"""

import json
from pathlib import Path

import pytest

from codebrick.templates.cleaner import (
    build_filter,
    clean_content,
    detect_project_name,
    is_supported,
)


def clean(ext: str, content: str, **kwargs) -> tuple[str, int]:
    line_filter = build_filter(ext, **kwargs)
    assert line_filter is not None
    return clean_content(content, line_filter)


class TestBuiltinStrategies:
    """확장자별 기본 전략 테스트."""

    def test_typescript_relative_imports(self):
        content = (
            "import React from 'react';\n"
            "import { util } from './util';\n"
            "import '../styles.css';\n"
            "export * from './types';\n"
            "const x = 1;\n"
        )

        cleaned, removed = clean(".ts", content)

        assert removed == 3
        assert cleaned == "import React from 'react';\nconst x = 1;\n"

    def test_javascript_require(self):
        content = "const fs = require('fs');\nconst util = require('./util');\n"

        cleaned, removed = clean(".js", content)

        assert removed == 1
        assert "require('fs')" in cleaned

    def test_python_relative_imports(self):
        content = "import os\nfrom .models import User\nfrom ..core import x\nprint(os)\n"

        cleaned, removed = clean(".py", content)

        assert removed == 2
        assert cleaned == "import os\nprint(os)\n"

    def test_rust_crate_imports(self):
        content = "use std::io;\nuse crate::config::Config;\nuse super::util;\nfn main() {}\n"

        cleaned, removed = clean(".rs", content)

        assert removed == 2
        assert cleaned.startswith("use std::io;\n")

    def test_dart_project_imports(self):
        content = (
            "import 'package:flutter/material.dart';\n"
            "import 'package:my_app/widgets/button.dart';\n"
            "export 'package:my_app/models.dart';\n"
            "void main() {}\n"
        )

        cleaned, removed = clean(".dart", content, project_name="my_app")

        assert removed == 2
        assert "package:flutter/material.dart" in cleaned

    def test_dart_without_project_name(self):
        assert build_filter(".dart") is None

    def test_unsupported_extension(self):
        assert build_filter(".md") is None
        assert not is_supported(".md")
        assert is_supported(".TSX")


class TestCustomPattern:
    def test_applies_to_any_extension(self):
        cleaned, removed = clean(".md", "keep\n<!-- internal -->\nkeep too\n", custom_pattern="internal")

        assert removed == 1
        assert cleaned == "keep\nkeep too\n"


class TestCleanContent:
    """clean_content 테스트."""

    def test_collapses_blank_runs(self):
        content = "a\n\nimport x from './x';\n\n\nb\n"

        cleaned, removed = clean(".ts", content)

        assert removed == 1
        assert cleaned == "a\n\nb\n"

    def test_unchanged_when_nothing_removed(self):
        content = "a\n\n\n\nb\n"

        cleaned, removed = clean(".ts", content)

        assert removed == 0
        assert cleaned == content


class TestDetectProjectName:
    """프로젝트 이름 감지 테스트."""

    def test_pubspec(self, tmp_path: Path):
        (tmp_path / "pubspec.yaml").write_text("name: my_app\nversion: 1.0.0\n")

        assert detect_project_name(tmp_path) == "my_app"

    def test_package_json_strips_scope(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(json.dumps({"name": "@acme/web"}))

        assert detect_project_name(tmp_path) == "web"

    def test_pyproject(self, tmp_path: Path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "tool"\n')

        assert detect_project_name(tmp_path) == "tool"

    @pytest.mark.parametrize("content", ["{broken", "[]"])
    def test_bad_package_json(self, tmp_path: Path, content: str):
        (tmp_path / "package.json").write_text(content)

        assert detect_project_name(tmp_path) is None
