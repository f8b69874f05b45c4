from __future__ import annotations

import functools
from typing import TYPE_CHECKING

import click

from shaderedit import exceptions

if TYPE_CHECKING:
    from collections.abc import Callable


def _handle_shaderedit_error(e: exceptions.ShaderEditError) -> click.ClickException:
    """Convert ShaderEditError to user-friendly ClickException."""
    message = e.format_user_message()
    if suggestion := e.get_suggestion():
        message = f"{message}\n\nTip: {suggestion}"
    return click.ClickException(message)


def with_error_handling[**P, R](func: Callable[P, R]) -> Callable[P, R]:
    """Wrap a command so shaderedit errors print as messages, not tracebacks.

        @click.command()
        @with_error_handling
        def files(...):
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except exceptions.ShaderEditError as e:
            raise _handle_shaderedit_error(e) from e

    return wrapper
