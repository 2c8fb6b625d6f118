# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Executable units accepted by the sandbox engine.

Both are single-shot: submitted, executed once in a fresh sandbox instance,
then discarded.
"""

import inspect
import textwrap
from dataclasses import dataclass
from typing import Any, Callable

from shared.errors import ValidationError


@dataclass(frozen=True)
class CodeModule:
    """A generated function definition and the name of the function to call.

    The function is called with the declared inputs as keyword arguments.
    """

    source: str
    function_name: str

    def __post_init__(self):
        if not self.function_name.isidentifier():
            raise ValidationError(f"Invalid function name: {self.function_name!r}")

    @classmethod
    def from_callable(cls, func: Callable[..., Any]) -> "CodeModule":
        """Re-stringify a host function so it can be shipped into a sandbox.

        Only the function's own source crosses the boundary: closures, globals
        and default values bound on the host side do not.
        """
        try:
            source = textwrap.dedent(inspect.getsource(func))
        except (OSError, TypeError) as e:
            raise ValidationError(f"Cannot read source of {func!r}: {e}", cause=e) from e
        return cls(source=source, function_name=func.__name__)

    def to_source(self) -> str:
        return f"{self.source.rstrip()}\n\n__result__ = {self.function_name}(**__inputs__)\n"


@dataclass(frozen=True)
class Script:
    """Raw source run against an injected context.

    The result is the value of the final expression statement, if the script
    ends with one, otherwise the value of a global named ``result``.
    """

    source: str

    def to_source(self) -> str:
        return self.source
