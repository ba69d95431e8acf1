"""
Template Resolver: CLI 인자(이름 또는 1-based 인덱스) → 정규 이름.

CLI 경계에서 한 번만 Selector로 파싱하고, 이후에는 정규 이름만 전달한다.
인덱스는 현재 list() 순서(삽입 순서) 기준이며, 목록 변경 후 안정성은 보장하지 않는다.
"""

from codebrick.core.registry import Registry
from codebrick.domain.errors import ErrorCodes, NotFoundError
from codebrick.domain.schemas import ByIndex, ByName, Selector


def parse_selector(raw: str) -> Selector:
    """
    문자열 → Selector.

    양의 정수로 파싱되면 ByIndex, 아니면 ByName.
    """
    text = raw.strip()
    if text.isdigit() and int(text) >= 1:
        return ByIndex(index=int(text), raw=text)
    return ByName(name=text)


def resolve(registry: Registry, selector: Selector) -> str:
    """
    Selector → 정규 템플릿 이름.

    ByIndex가 [1, count] 범위면 해당 위치의 이름,
    범위를 벗어나면 raw 문자열을 이름으로 조회.

    Raises:
        NotFoundError: TEMPLATE_NOT_FOUND
    """
    names = registry.names()

    if isinstance(selector, ByIndex):
        if 1 <= selector.index <= len(names):
            return names[selector.index - 1]
        candidate = selector.raw
    else:
        candidate = selector.name

    if candidate in registry:
        return candidate

    raise NotFoundError(
        ErrorCodes.TEMPLATE_NOT_FOUND,
        f"Template '{candidate}' not found",
        selector=candidate,
        count=len(names),
    )


def resolve_name(registry: Registry, raw: str) -> str:
    """parse_selector + resolve."""
    return resolve(registry, parse_selector(raw))
