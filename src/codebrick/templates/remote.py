"""
원격 템플릿: GitHub 좌표 파싱 + 파일 조회.

- 원격 템플릿은 Registry에 좌표(owner/repo/path/ref/commit)만 저장
- 파일 내용은 필요할 때 조회, 캐시하지 않음
- 파일 내용은 chunk 스트림으로 제공 (전체 템플릿을 메모리에 올리지 않음)
- 일시적 전송 오류만 fetcher 내부에서 재시도, 최종 실패는 RemoteFetchError
"""

import logging
import re
from collections.abc import Iterator
from types import TracebackType
from typing import Protocol
from urllib.parse import quote

import httpx

from codebrick.core.files import safe_relative_path
from codebrick.domain.constants import (
    DEFAULT_REMOTE_REF,
    GITHUB_API_URL,
    GITHUB_RAW_URL,
    METADATA_FILENAME,
)
from codebrick.domain.errors import BrickError, ErrorCodes, RemoteFetchError
from codebrick.domain.schemas import RemoteRef
from codebrick.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/"
    r"(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?"
    r"(?:/(?:tree|blob)/(?P<ref>[^/]+)(?:/(?P<path>.+?))?)?/?$"
)
SHORT_SPEC_PATTERN = re.compile(
    r"^(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+)"
    r"(?:/(?P<path>[^@]+?))?/?(?:@(?P<ref>[^@]+))?$"
)


# =============================================================================
# Remote Spec Parsing
# =============================================================================

def parse_remote_spec(
    spec: str,
    ref: str | None = None,
    commit: str | None = None,
) -> RemoteRef:
    """
    GitHub 지정 문자열 → RemoteRef.

    지원 형식:
    - owner/repo
    - owner/repo/path/to/dir@ref
    - https://github.com/owner/repo/tree/<ref>/<path>

    명시적으로 전달된 ref가 문자열 안의 ref보다 우선한다.

    Raises:
        BrickError: INVALID_REMOTE_SPEC
    """
    text = spec.strip()
    match = GITHUB_URL_PATTERN.match(text) or SHORT_SPEC_PATTERN.match(text)
    if not match:
        raise BrickError(
            ErrorCodes.INVALID_REMOTE_SPEC,
            f"Cannot parse GitHub location '{spec}'. "
            f"Use owner/repo[/path][@ref] or a github.com URL.",
            spec=spec,
        )

    path = (match.group("path") or "").strip("/")
    return RemoteRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        path=path,
        ref=ref or match.group("ref") or DEFAULT_REMOTE_REF,
        commit=commit,
    )


# =============================================================================
# Fetcher Protocol (for dependency injection)
# =============================================================================

class RemoteFetcher(Protocol):
    """원격 템플릿 파일 조회 인터페이스."""

    def list_files(self, remote: RemoteRef) -> list[str]:
        """
        원격 템플릿 파일 목록.

        Returns:
            remote.path 기준 정렬된 상대 경로

        Raises:
            RemoteFetchError
        """
        ...

    def read_file(self, remote: RemoteRef, relative_path: str) -> Iterator[bytes]:
        """
        원격 파일 내용 스트림.

        Raises:
            RemoteFetchError
        """
        ...


# =============================================================================
# GitHub Fetcher
# =============================================================================

class GitHubFetcher:
    """
    GitHub REST API + raw.githubusercontent.com 기반 fetcher.

    사용법:
        with GitHubFetcher(token=settings.github_token) as fetcher:
            files = fetcher.list_files(remote)
    """

    TIMEOUT = 30.0
    MAX_RETRIES = 2

    def __init__(
        self,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
        api_url: str = GITHUB_API_URL,
        raw_url: str = GITHUB_RAW_URL,
        retry_delay: float = 1.0,
    ) -> None:
        headers = {"Accept": "application/vnd.github+json", "User-Agent": "codebrick"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.api_url = api_url.rstrip("/")
        self.raw_url = raw_url.rstrip("/")
        self.retry_delay = retry_delay
        self._client = httpx.Client(
            headers=headers,
            timeout=self.TIMEOUT,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubFetcher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _get(self, url: str, stream: bool = False) -> httpx.Response:
        request = self._client.build_request("GET", url)
        return retry_with_exponential_backoff(
            self._client.send,
            request,
            stream=stream,
            max_retries=self.MAX_RETRIES,
            initial_delay=self.retry_delay,
            exceptions=(httpx.TransportError,),
            label=f"GET {request.url.host}{request.url.path}",
        )

    def list_files(self, remote: RemoteRef) -> list[str]:
        url = (
            f"{self.api_url}/repos/{remote.owner}/{remote.repo}"
            f"/git/trees/{quote(remote.revision, safe='')}?recursive=1"
        )
        try:
            response = self._get(url)
            response.raise_for_status()
            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError("unexpected tree response")
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteFetchError(
                ErrorCodes.REMOTE_FETCH_FAILED,
                f"Failed to list files for {remote.display()}: {e}",
                remote=remote.display(),
            ) from e

        if payload.get("truncated"):
            logger.warning(f"GitHub tree listing truncated for {remote.display()}")

        prefix = f"{remote.path}/" if remote.path else ""
        files: list[str] = []
        for item in payload.get("tree", []):
            if item.get("type") != "blob":
                continue
            item_path = item.get("path", "")
            if prefix and not item_path.startswith(prefix):
                continue
            try:
                rel = safe_relative_path(item_path[len(prefix):])
            except ValueError:
                logger.warning(f"Skipping unsafe remote path {item_path!r}")
                continue
            if rel == METADATA_FILENAME:
                continue
            files.append(rel)

        if not files:
            raise RemoteFetchError(
                ErrorCodes.REMOTE_FETCH_FAILED,
                f"No files found at {remote.display()}",
                remote=remote.display(),
            )

        logger.debug(f"Listed {len(files)} files from {remote.display()}")
        return sorted(files)

    def read_file(self, remote: RemoteRef, relative_path: str) -> Iterator[bytes]:
        rel = safe_relative_path(relative_path)
        full_path = f"{remote.path}/{rel}" if remote.path else rel
        url = (
            f"{self.raw_url}/{remote.owner}/{remote.repo}/"
            f"{quote(remote.revision, safe='')}/{quote(full_path)}"
        )

        try:
            response = self._get(url, stream=True)
        except httpx.HTTPError as e:
            raise RemoteFetchError(
                ErrorCodes.REMOTE_FETCH_FAILED,
                f"Failed to fetch {rel} from {remote.display()}: {e}",
                remote=remote.display(),
                path=rel,
            ) from e

        if response.is_error:
            status = response.status_code
            response.close()
            raise RemoteFetchError(
                ErrorCodes.REMOTE_FETCH_FAILED,
                f"Failed to fetch {rel} from {remote.display()}: HTTP {status}",
                remote=remote.display(),
                path=rel,
                status=status,
            )

        return self._iter_response(response, remote, rel)

    @staticmethod
    def _iter_response(
        response: httpx.Response,
        remote: RemoteRef,
        rel: str,
    ) -> Iterator[bytes]:
        try:
            yield from response.iter_bytes()
        except httpx.HTTPError as e:
            raise RemoteFetchError(
                ErrorCodes.REMOTE_FETCH_FAILED,
                f"Connection lost while reading {rel} from {remote.display()}: {e}",
                remote=remote.display(),
                path=rel,
            ) from e
        finally:
            response.close()
