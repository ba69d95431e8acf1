"""
test_resolver.py - 이름/번호 선택 테스트

검증:
- [A, B, C]에서 "2" → B
- A 삭제 후 "2" → 새 목록의 두 번째 (C)
- 범위 밖 숫자 → 문자열 이름으로 조회
"""

from pathlib import Path

import pytest

from codebrick.core.registry import Registry
from codebrick.core.resolver import parse_selector, resolve, resolve_name
from codebrick.domain.errors import ErrorCodes, NotFoundError
from codebrick.domain.schemas import ByIndex, ByName, RegistryEntry, TemplateType


@pytest.fixture
def abc_registry(tmp_path: Path) -> Registry:
    registry = Registry.open(tmp_path)
    for name in ["A", "B", "C"]:
        registry.put(name, RegistryEntry(type=TemplateType.LOCAL, path=f"templates/{name}"))
    return registry


class TestParseSelector:
    """parse_selector 테스트."""

    def test_positive_integer_is_index(self):
        assert parse_selector("2") == ByIndex(index=2, raw="2")

    def test_name(self):
        assert parse_selector("demo") == ByName(name="demo")

    def test_zero_is_name(self):
        """0은 1-based 인덱스가 아님."""
        assert parse_selector("0") == ByName(name="0")

    def test_mixed_is_name(self):
        assert parse_selector("2a") == ByName(name="2a")


class TestResolve:
    """resolve 테스트."""

    def test_index(self, abc_registry: Registry):
        assert resolve_name(abc_registry, "1") == "A"
        assert resolve_name(abc_registry, "2") == "B"
        assert resolve_name(abc_registry, "3") == "C"

    def test_index_follows_current_order(self, abc_registry: Registry):
        """삭제 후 인덱스는 새 목록 기준."""
        abc_registry.remove("A")

        assert resolve_name(abc_registry, "2") == "C"

    def test_name(self, abc_registry: Registry):
        assert resolve(abc_registry, ByName("B")) == "B"

    def test_out_of_range_falls_back_to_name(self, tmp_path: Path):
        """숫자 이름 템플릿: 범위 밖이면 문자열 그대로 조회."""
        registry = Registry.open(tmp_path)
        registry.put("2024", RegistryEntry(type=TemplateType.LOCAL, path="templates/2024"))

        assert resolve_name(registry, "2024") == "2024"
        assert resolve_name(registry, "1") == "2024"

    def test_unknown_raises(self, abc_registry: Registry):
        with pytest.raises(NotFoundError) as exc_info:
            resolve_name(abc_registry, "ghost")

        assert exc_info.value.code == ErrorCodes.TEMPLATE_NOT_FOUND

    def test_out_of_range_unknown_raises(self, abc_registry: Registry):
        with pytest.raises(NotFoundError):
            resolve_name(abc_registry, "9")
