"""
대화형 입력 (rich.prompt).

엔진은 프롬프트를 직접 호출하지 않고 결정 콜백만 받는다.
CLI가 Prompter로 콜백을 만들어 전달한다.

Ctrl-C / EOF → OperationCancelledError
"""

import sys
from collections.abc import Callable
from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm, Prompt

from codebrick.domain.errors import OperationCancelledError

Validator = Callable[[str], str | None]  # 에러 메시지 또는 None


class Prompter(Protocol):
    """대화형 입력 인터페이스."""

    def confirm(self, message: str, default: bool = False) -> bool: ...

    def choose_one(self, message: str, options: list[str]) -> str: ...

    def text(
        self,
        message: str,
        validator: Validator | None = None,
        default: str | None = None,
    ) -> str: ...


class RichPrompter:
    """
    rich 기반 Prompter.

    터미널이 아니면 (파이프, CI) 묻지 않고 기본값을 사용한다.
    기본값이 없는 선택은 취소로 처리.
    """

    def __init__(self, console: Console | None = None, interactive: bool | None = None) -> None:
        self.console = console or Console()
        self.interactive = sys.stdin.isatty() if interactive is None else interactive

    def confirm(self, message: str, default: bool = False) -> bool:
        if not self.interactive:
            return default
        try:
            return Confirm.ask(message, default=default, console=self.console)
        except (KeyboardInterrupt, EOFError) as e:
            raise OperationCancelledError() from e

    def choose_one(self, message: str, options: list[str]) -> str:
        if not self.interactive:
            raise OperationCancelledError(f"Cannot ask without a terminal: {message}")
        try:
            return Prompt.ask(message, choices=options, default=options[0], console=self.console)
        except (KeyboardInterrupt, EOFError) as e:
            raise OperationCancelledError() from e

    def text(
        self,
        message: str,
        validator: Validator | None = None,
        default: str | None = None,
    ) -> str:
        if not self.interactive:
            if default is None or (validator and validator(default)):
                raise OperationCancelledError(f"Cannot ask without a terminal: {message}")
            return default

        while True:
            try:
                if default is None:
                    value = Prompt.ask(message, console=self.console)
                else:
                    value = Prompt.ask(message, default=default, console=self.console)
            except (KeyboardInterrupt, EOFError) as e:
                raise OperationCancelledError() from e

            error = validator(value) if validator else None
            if error is None:
                return value
            self.console.print(f"[red]{error}[/red]")
