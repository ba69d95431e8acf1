"""
Core layer: 상태 저장소 (store.json, brick.json).

이 모듈만 건드리면 데이터 유실 → 가장 보수적으로 관리

역할:
- Registry (store.json), Metadata Store (brick.json)
- 원자적 쓰기, Resolver, 설정
"""

from .atomic import atomic_write_json, read_json
from .config import Settings
from .metadata_store import MetadataStore
from .registry import Registry, validate_template_name
from .resolver import parse_selector, resolve, resolve_name

__all__ = [
    # atomic
    "atomic_write_json",
    "read_json",
    # config
    "Settings",
    # registry
    "Registry",
    "validate_template_name",
    # metadata_store
    "MetadataStore",
    # resolver
    "parse_selector",
    "resolve",
    "resolve_name",
]
