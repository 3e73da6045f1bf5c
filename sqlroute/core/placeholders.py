"""Placeholder scanning for prepared and callable statements.

Placeholders inside string literals, quoted identifiers and comments are
ignored. PostgreSQL JSON operators (``??``, ``?|``, ``?&``) and ``::`` casts
are not placeholders.
"""

import re
from typing import Final, NamedTuple, Optional

from sqlroute.core.settings import ParameterStyle

__all__ = ("ProcedureCall", "count_placeholders", "find_placeholders", "parse_procedure_call")


_PLACEHOLDER_REGEX: Final = re.compile(
    r"""
    (?P<dquote>"(?:[^"\\]|\\.)*") |
    (?P<squote>'(?:[^'\\]|\\.)*') |
    (?P<dollar_quoted_string>\$(?P<dollar_quote_tag_inner>\w*)\$[\s\S]*?\$(?P=dollar_quote_tag_inner)\$) |
    (?P<line_comment>--[^\r\n]*) |
    (?P<block_comment>/\*(?:[^*]|\*(?!/))*\*/) |
    (?P<pg_q_operator>\?\?|\?\||\?&) |
    (?P<pg_cast>::\w+) |
    (?P<pyformat_pos>%s) |
    (?P<positional_colon>:(?P<colon_num>\d+)) |
    (?P<numeric>\$(?P<numeric_num>\d+)) |
    (?P<qmark>\?)
    """,
    re.VERBOSE | re.MULTILINE | re.DOTALL,
)

_STYLE_GROUPS: Final = {
    ParameterStyle.QMARK: "qmark",
    ParameterStyle.NUMERIC: "numeric",
    ParameterStyle.POSITIONAL_COLON: "positional_colon",
    ParameterStyle.POSITIONAL_PYFORMAT: "pyformat_pos",
}

_CALL_REGEX: Final = re.compile(
    r"""
    ^\s*
    (?:
        \{\s*call\s+(?P<escaped_name>[\w.$"]+)\s*(?:\((?P<escaped_args>.*)\))?\s*\}
        |
        call\s+(?P<plain_name>[\w.$"]+)\s*(?:\((?P<plain_args>.*)\))?
    )
    \s*;?\s*$
    """,
    re.VERBOSE | re.IGNORECASE | re.DOTALL,
)


class ProcedureCall(NamedTuple):
    """Routine name and argument text extracted from a call statement."""

    name: str
    arguments: str

    @property
    def call_sql(self) -> str:
        return f"CALL {self.name}({self.arguments})"


def find_placeholders(sql: str, style: "ParameterStyle | str" = ParameterStyle.QMARK) -> "list[str]":
    """Return the placeholder tokens of ``style`` in order of appearance."""
    group = _STYLE_GROUPS[ParameterStyle(style)]
    return [match.group(group) for match in _PLACEHOLDER_REGEX.finditer(sql) if match.group(group)]


def count_placeholders(sql: str, style: "ParameterStyle | str" = ParameterStyle.QMARK) -> int:
    """Count the positional values a statement expects.

    Anonymous styles count every occurrence; numbered styles count up to the
    highest index, since ``$1`` may be referenced more than once.
    """
    style = ParameterStyle(style)
    tokens = find_placeholders(sql, style)
    if style in {ParameterStyle.NUMERIC, ParameterStyle.POSITIONAL_COLON}:
        return max((int(token[1:]) for token in tokens), default=0)
    return len(tokens)


def parse_procedure_call(sql: str) -> Optional[ProcedureCall]:
    """Extract the routine from ``{call name(...)}`` or ``CALL name(...)`` text."""
    match = _CALL_REGEX.match(sql)
    if match is None:
        return None
    name = match.group("escaped_name") or match.group("plain_name")
    arguments = match.group("escaped_args") if match.group("escaped_name") else match.group("plain_args")
    return ProcedureCall(name=name, arguments=(arguments or "").strip())
