"""
brick - CodeBrick CLI

코드 템플릿 저장/적용 도구.

사용법:
    # 초기화
    brick init

    # 현재 디렉토리를 템플릿으로 저장
    brick save my-app . -d "Starter app" -t react,vite

    # 목록 (번호로도 선택 가능)
    brick list
    brick info 1

    # 적용
    brick apply my-app ./new-project --skip-existing

    # GitHub 템플릿 등록 후 로컬로 가져오기
    brick link ui owner/repo/templates/ui@main
    brick pull ui

    # 공유
    brick export my-app -o my-app.brick
    brick import my-app.brick --name my-app-copy

종료 코드: 0 성공/취소, 1 에러 또는 일부 파일 실패, 2 잘못된 인자
"""

import argparse
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from codebrick import __version__
from codebrick.cli import render
from codebrick.cli.prompts import Prompter, RichPrompter
from codebrick.core.config import Settings
from codebrick.core.files import collect_files, split_patterns
from codebrick.core.logging import setup_logging
from codebrick.core.registry import Registry, validate_template_name
from codebrick.core.resolver import resolve_name
from codebrick.domain.constants import ARCHIVE_EXTENSION
from codebrick.domain.errors import (
    BrickError,
    ErrorCodes,
    IOFailureError,
    NotFoundError,
    OperationCancelledError,
)
from codebrick.domain.schemas import (
    ApplyOptions,
    ConflictDecision,
    ImportResolution,
)
from codebrick.templates.apply import ApplyEngine
from codebrick.templates.archive import ArchiveBridge
from codebrick.templates.deps import scan_dependencies
from codebrick.templates.local import LocalTemplateEngine
from codebrick.templates.remote import GitHubFetcher, parse_remote_spec

logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """명령 실행 컨텍스트."""
    settings: Settings
    console: Console
    prompter: Prompter
    fetcher_factory: Callable[[], GitHubFetcher] | None = None

    def open_registry(self) -> Registry:
        self.settings.require_initialized()
        return Registry.open(self.settings.root)

    def open_fetcher(self) -> GitHubFetcher:
        if self.fetcher_factory is not None:
            return self.fetcher_factory()
        return GitHubFetcher(token=self.settings.github_token)


def _split_tags(value: str | None) -> list[str]:
    return split_patterns(value)


def _name_validator(registry: Registry) -> Callable[[str], str | None]:
    def validate(value: str) -> str | None:
        try:
            validate_template_name(value)
        except BrickError as e:
            return e.message
        if value in registry:
            return f"Template '{value}' already exists"
        return None

    return validate


# =============================================================================
# Commands
# =============================================================================

def cmd_init(args: argparse.Namespace, ctx: CommandContext) -> int:
    if ctx.settings.initialize():
        ctx.console.print(f"[green]✓ CodeBrick initialized at {ctx.settings.root}[/green]")
        ctx.console.print("[dim]  brick save <name> \\[path]   save a template[/dim]")
        ctx.console.print("[dim]  brick list                 list templates[/dim]")
    else:
        ctx.console.print(f"[yellow]CodeBrick is already initialized at {ctx.settings.root}[/yellow]")
    return 0


def cmd_save(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    engine = LocalTemplateEngine(registry)

    validate_template_name(args.name)
    source_dir = Path(args.path).expanduser().resolve()
    if not source_dir.is_dir():
        raise NotFoundError(
            ErrorCodes.PATH_NOT_FOUND,
            f"Source directory does not exist: {source_dir}",
            path=str(source_dir),
        )

    overwrite = args.force
    if args.name in registry and not overwrite:
        if not ctx.prompter.confirm(f"Template '{args.name}' already exists. Overwrite?"):
            raise OperationCancelledError()
        overwrite = True

    files = collect_files(source_dir, split_patterns(args.include), split_patterns(args.exclude))
    dependencies = scan_dependencies(source_dir, files) if args.detect_deps else None
    if dependencies:
        ctx.console.print(f"[dim]Detected {len(dependencies)} dependencies: {escape(', '.join(dependencies))}[/dim]")
        if not ctx.prompter.confirm("Add these to template metadata?", default=True):
            dependencies = None

    description = args.description
    if description is None:
        description = ctx.prompter.text("Template description (optional)", default="")

    report = engine.create(
        args.name,
        source_dir,
        files,
        description=description.strip(),
        tags=_split_tags(args.tags),
        overwrite=overwrite,
        dependencies=dependencies,
    )
    render.render_copy_report(ctx.console, report, "Saved")
    return 1 if report.has_failures else 0


def cmd_list(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    templates = registry.list()
    if args.json:
        ctx.console.print_json(render.list_as_json(templates))
    else:
        render.render_list(ctx.console, templates)
    return 0


def cmd_info(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    info = LocalTemplateEngine(registry).info(name)
    render.render_info(ctx.console, info, args.format)
    return 0


def cmd_tree(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    engine = LocalTemplateEngine(registry)

    entry = engine.get_entry(name)
    if entry.is_remote and entry.remote is not None:
        with ctx.open_fetcher() as fetcher:
            files = fetcher.list_files(entry.remote)
    else:
        files = engine.get_metadata(name).files

    render.render_tree(ctx.console, name, files)
    return 0


def cmd_size(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    stats = LocalTemplateEngine(registry).stats(name)
    render.render_stats(ctx.console, name, stats)
    return 0


def cmd_apply(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    destination = Path(args.destination).expanduser().resolve()
    options = ApplyOptions(force=args.force, skip_existing=args.skip_existing, dry_run=args.dry_run)

    def on_conflict(path: str) -> ConflictDecision:
        choice = ctx.prompter.choose_one(
            f"'{path}' already exists",
            [d.value for d in ConflictDecision],
        )
        return ConflictDecision(choice)

    entry = registry.get(name)
    if entry is not None and entry.is_remote:
        with ctx.open_fetcher() as fetcher:
            report = ApplyEngine(registry, fetcher=fetcher).apply(name, destination, options, on_conflict)
    else:
        report = ApplyEngine(registry).apply(name, destination, options, on_conflict)

    render.render_apply_report(ctx.console, report)
    return 1 if report.has_failures else 0


def cmd_add(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    source_dir = Path(args.source).expanduser().resolve()
    report = LocalTemplateEngine(registry).add_files(name, source_dir, args.paths)
    render.render_copy_report(ctx.console, report, "Added")
    return 1 if report.has_failures else 0


def cmd_remove(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    report = LocalTemplateEngine(registry).remove_files(name, args.paths)
    render.render_copy_report(ctx.console, report, "Removed")
    return 1 if report.has_failures else 0


def cmd_delete(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    if not args.yes and not ctx.prompter.confirm(f"Delete template '{name}'?"):
        raise OperationCancelledError()

    LocalTemplateEngine(registry).delete(name)
    ctx.console.print(f"[green]✓ Deleted template '{name}'[/green]")
    return 0


def cmd_clone(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    LocalTemplateEngine(registry).clone(name, args.new_name)
    ctx.console.print(f"[green]✓ Cloned '{name}' → '{args.new_name}'[/green]")
    return 0


def cmd_link(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    validate_template_name(args.name)
    remote = parse_remote_spec(args.spec, ref=args.ref, commit=args.commit)

    overwrite = False
    if args.name in registry:
        if not ctx.prompter.confirm(f"Template '{args.name}' already exists. Overwrite?"):
            raise OperationCancelledError()
        overwrite = True

    LocalTemplateEngine(registry).link(
        args.name,
        remote,
        description=args.description or "",
        tags=_split_tags(args.tags),
        overwrite=overwrite,
    )
    ctx.console.print(f"[green]✓ Linked '{args.name}' → {remote.display()}[/green]")
    ctx.console.print(f"[dim]  brick pull {args.name}   download as a local template[/dim]")
    return 0


def cmd_pull(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    with ctx.open_fetcher() as fetcher:
        report = LocalTemplateEngine(registry).pull(name, fetcher)
    render.render_copy_report(ctx.console, report, "Pulled")
    return 0


def cmd_update(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    report = LocalTemplateEngine(registry).update(name)
    render.render_copy_report(ctx.console, report, "Updated")
    return 1 if report.has_failures else 0


def cmd_clean(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    engine = LocalTemplateEngine(registry)
    keep_external = not args.no_keep_external

    analysis = engine.clean(name, pattern=args.pattern, dry_run=True, keep_external=keep_external)
    render.render_clean_report(ctx.console, analysis)
    if args.dry_run or not analysis.files:
        return 0

    if not ctx.prompter.confirm(f"Remove {analysis.total_removed} import lines?", default=True):
        raise OperationCancelledError()

    report = engine.clean(name, pattern=args.pattern, keep_external=keep_external)
    ctx.console.print(
        f"[green]✓ Cleaned {report.total_removed} import lines in {len(report.files)} files[/green]"
    )
    for failure in report.failures:
        ctx.console.print(f"  [red]✗ {escape(failure.path)}: {escape(failure.error)}[/red]")
    return 1 if report.failures else 0


def cmd_export(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    name = resolve_name(registry, args.template)
    output = Path(args.output or f"{name}{ARCHIVE_EXTENSION}").expanduser().resolve()
    bridge = ArchiveBridge(registry)

    # 같은 디렉토리 temp에 쓰고 성공 시에만 교체 (기존 파일 보존)
    temp_path = None
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=output.parent,
            prefix=f".{output.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            temp_path = Path(f.name)
            report = bridge.export(name, f)
        os.replace(temp_path, output)
    except BrickError:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise
    except OSError as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise IOFailureError(
            ErrorCodes.FILE_IO_FAILED,
            f"Failed to write {output}: {e}",
            path=str(output),
        ) from e

    for rel in report.missing:
        ctx.console.print(f"  [yellow]⚠ listed but missing: {escape(rel)}[/yellow]")
    if report.unlisted:
        ctx.console.print(f"  [yellow]⚠ {len(report.unlisted)} unlisted files not exported[/yellow]")
    ctx.console.print(f"[green]✓ Exported '{name}' ({len(report.files)} files) → {output}[/green]")
    return 0


def cmd_import(args: argparse.Namespace, ctx: CommandContext) -> int:
    registry = ctx.open_registry()
    archive_path = Path(args.file).expanduser().resolve()
    if not archive_path.is_file():
        raise NotFoundError(
            ErrorCodes.PATH_NOT_FOUND,
            f"File not found: {archive_path}",
            path=str(archive_path),
        )
    if archive_path.suffix != ARCHIVE_EXTENSION:
        ctx.console.print(f"[yellow]⚠ File does not have {ARCHIVE_EXTENSION} extension[/yellow]")

    def on_conflict(name: str) -> ImportResolution:
        if args.force:
            return ImportResolution.overwrite()
        if ctx.prompter.confirm(f"Template '{name}' already exists. Overwrite?"):
            return ImportResolution.overwrite()
        new_name = ctx.prompter.text(
            "New template name",
            validator=_name_validator(registry),
            default=f"{name}-imported",
        )
        return ImportResolution.rename(new_name)

    with open(archive_path, "rb") as f:
        name = ArchiveBridge(registry).import_archive(
            f,
            name_override=args.name,
            on_conflict=on_conflict,
            source_label=archive_path.name,
        )

    ctx.console.print(f"[green]✓ Imported template '{name}'[/green]")
    ctx.console.print(f"[dim]  brick tree {name}   view structure[/dim]")
    return 0


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brick",
        description="CodeBrick - 코드 템플릿 저장/적용 도구",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--root",
        type=str,
        help="CodeBrick 루트 디렉토리 (기본: $CODEBRICK_HOME 또는 ~/.codebrick)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="디버그 로그 출력")

    sub = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    def add(name: str, func: Callable[[argparse.Namespace, CommandContext], int], help_text: str):
        p = sub.add_parser(name, help=help_text, description=help_text)
        p.set_defaults(func=func)
        return p

    def selector(p: argparse.ArgumentParser) -> None:
        p.add_argument("template", help="템플릿 이름 또는 목록 번호")

    add("init", cmd_init, "루트 디렉토리 초기화")

    p = add("save", cmd_save, "디렉토리를 템플릿으로 저장")
    p.add_argument("name", help="템플릿 이름")
    p.add_argument("path", nargs="?", default=".", help="원본 디렉토리 (기본: 현재 디렉토리)")
    p.add_argument("-d", "--description", help="설명")
    p.add_argument("-t", "--tags", help="태그 (쉼표 구분)")
    p.add_argument("--include", help="포함 glob 패턴 (쉼표 구분)")
    p.add_argument("--exclude", help="제외 glob 패턴 (쉼표 구분)")
    p.add_argument("--detect-deps", action="store_true", help="import 문에서 의존성 감지")
    p.add_argument("-f", "--force", action="store_true", help="확인 없이 덮어쓰기")

    p = add("list", cmd_list, "템플릿 목록")
    p.add_argument("--json", action="store_true", help="JSON 출력")

    p = add("info", cmd_info, "템플릿 상세 정보")
    selector(p)
    p.add_argument("--format", choices=["text", "json", "yaml"], default="text", help="출력 형식")

    selector(add("tree", cmd_tree, "템플릿 파일 트리"))
    selector(add("size", cmd_size, "템플릿 크기 통계"))

    p = add("apply", cmd_apply, "템플릿을 대상 디렉토리에 적용")
    selector(p)
    p.add_argument("destination", nargs="?", default=".", help="대상 디렉토리 (기본: 현재 디렉토리)")
    policy = p.add_mutually_exclusive_group()
    policy.add_argument("--force", action="store_true", help="기존 파일 덮어쓰기")
    policy.add_argument("--skip-existing", action="store_true", help="기존 파일 건너뛰기")
    p.add_argument("--dry-run", action="store_true", help="변경 없이 결과만 출력")

    p = add("add", cmd_add, "템플릿에 파일 추가")
    selector(p)
    p.add_argument("paths", nargs="+", help="추가할 파일/디렉토리")
    p.add_argument("--from", dest="source", default=".", help="원본 디렉토리 (기본: 현재 디렉토리)")

    p = add("remove", cmd_remove, "템플릿에서 파일 제거")
    selector(p)
    p.add_argument("paths", nargs="+", help="제거할 파일/디렉토리")

    p = add("delete", cmd_delete, "템플릿 삭제")
    selector(p)
    p.add_argument("-y", "--yes", action="store_true", help="확인 없이 삭제")

    p = add("clone", cmd_clone, "템플릿 복제")
    selector(p)
    p.add_argument("new_name", help="새 템플릿 이름")

    p = add("link", cmd_link, "GitHub 템플릿 등록")
    p.add_argument("name", help="템플릿 이름")
    p.add_argument("spec", help="owner/repo[/path][@ref] 또는 github.com URL")
    p.add_argument("--ref", help="브랜치/태그 (기본: main)")
    p.add_argument("--commit", help="고정 commit SHA")
    p.add_argument("-d", "--description", help="설명")
    p.add_argument("-t", "--tags", help="태그 (쉼표 구분)")

    selector(add("pull", cmd_pull, "원격 템플릿을 로컬로 가져오기"))
    selector(add("update", cmd_update, "원본 디렉토리에서 다시 저장"))

    p = add("clean", cmd_clean, "로컬 import 라인 제거")
    selector(p)
    p.add_argument("--pattern", help="추가로 제거할 라인 정규식")
    p.add_argument("--dry-run", action="store_true", help="분석만 수행")
    p.add_argument("--no-keep-external", action="store_true", help="외부 패키지 import도 제거 대상에 포함")

    p = add("export", cmd_export, "템플릿을 .brick 파일로 내보내기")
    selector(p)
    p.add_argument("-o", "--output", help="출력 파일 (기본: <name>.brick)")

    p = add("import", cmd_import, ".brick 파일 가져오기")
    p.add_argument("file", help=".brick 파일")
    p.add_argument("--name", help="가져올 템플릿 이름")
    p.add_argument("-f", "--force", action="store_true", help="이름 충돌 시 덮어쓰기")

    return parser


def main(
    argv: list[str] | None = None,
    console: Console | None = None,
    prompter: Prompter | None = None,
    fetcher_factory: Callable[[], GitHubFetcher] | None = None,
) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    console = console or Console()
    ctx = CommandContext(
        settings=Settings.load(args.root),
        console=console,
        prompter=prompter or RichPrompter(console),
        fetcher_factory=fetcher_factory,
    )

    try:
        return args.func(args, ctx)
    except OperationCancelledError:
        console.print("[yellow]Operation cancelled[/yellow]")
        return 0
    except BrickError as e:
        logger.debug(f"{args.command} failed: {e.to_dict()}")
        console.print(f"[red]✗ {escape(e.message)}[/red]")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
