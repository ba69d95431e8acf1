"""
템플릿 엔진.

- local: 로컬 템플릿 CRUD (save/add/remove/delete/clone/link/pull/update/clean)
- apply: 템플릿 → 대상 디렉토리
- archive: .brick export/import
- remote: GitHub 좌표 + fetcher
"""

from .apply import ApplyEngine
from .archive import ArchiveBridge, TarGzCodec
from .local import LocalTemplateEngine
from .remote import GitHubFetcher, RemoteFetcher, parse_remote_spec

__all__ = [
    "ApplyEngine",
    "ArchiveBridge",
    "GitHubFetcher",
    "LocalTemplateEngine",
    "RemoteFetcher",
    "TarGzCodec",
    "parse_remote_spec",
]
