"""
String and sequence filters available to changelog templates.

Each filter takes the piped value as its first argument followed by
keyword arguments from the template, e.g.
``{{ commit.description | replace(from="(#", to="([#") }}``. Template
argument names that are Python keywords are passed with a trailing
underscore (``from`` becomes ``from_``).
"""

from __future__ import annotations

import inspect
import keyword
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from vc_changelog.errors import TemplateError


_TAG_RE = re.compile(r"<!--.*?-->|<[^>]+>", re.DOTALL)
_PR_REF_RE = re.compile(r"\(#(\d+)\)")


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise TypeError(f"expected a string, got {type(value).__name__}")


def upper_first(value: Any) -> str:
    text = _text(value)
    return text[:1].upper() + text[1:]


def lower(value: Any) -> str:
    return _text(value).lower()


def upper(value: Any) -> str:
    return _text(value).upper()


def trim(value: Any) -> str:
    return _text(value).strip()


def trim_start_matches(value: Any, pat: str) -> str:
    text = _text(value)
    if not pat:
        return text
    while text.startswith(pat):
        text = text[len(pat):]
    return text


def trim_end_matches(value: Any, pat: str) -> str:
    text = _text(value)
    if not pat:
        return text
    while text.endswith(pat):
        text = text[: -len(pat)]
    return text


def first_line(value: Any) -> str:
    lines = _text(value).splitlines()
    return lines[0] if lines else ""


def split(value: Any, pat: str) -> List[str]:
    if not pat:
        raise ValueError("split pattern must not be empty")
    return _text(value).split(pat)


def first(value: Any) -> Any:
    if isinstance(value, (str, list, tuple)):
        return value[0] if value else None
    raise TypeError(f"expected a sequence, got {type(value).__name__}")


def last(value: Any) -> Any:
    if isinstance(value, (str, list, tuple)):
        return value[-1] if value else None
    raise TypeError(f"expected a sequence, got {type(value).__name__}")


def replace(value: Any, from_: str, to: str) -> str:
    """Literal replacement; inserted text is never matched again."""
    return _text(value).replace(from_, to)


def link_refs(value: Any) -> str:
    """Rewrite ``(#123)`` as ``([#123])`` so it becomes a reference link."""
    return _PR_REF_RE.sub(r"([#\1])", _text(value))


def striptags(value: Any) -> str:
    return _TAG_RE.sub("", _text(value))


def date(value: Any, format: str = "%Y-%m-%d") -> str:
    """Format a timestamp (seconds since the epoch, UTC) or datetime."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        moment = datetime.fromtimestamp(int(value), tz=timezone.utc)
    else:
        raise TypeError(f"expected a timestamp, got {type(value).__name__}")
    return moment.strftime(format)


def length(value: Any) -> int:
    return len(value)


def join(value: Any, sep: str = "") -> str:
    if isinstance(value, str):
        raise TypeError("expected a sequence, got str")
    return sep.join(_text(item) for item in value)


def default(obj: Any, value: Any = "") -> Any:
    if obj is None or obj == "":
        return value
    return obj


FILTERS: Dict[str, Callable[..., Any]] = {
    "upper_first": upper_first,
    "lower": lower,
    "upper": upper,
    "trim": trim,
    "trim_start_matches": trim_start_matches,
    "trim_end_matches": trim_end_matches,
    "first_line": first_line,
    "split": split,
    "first": first,
    "last": last,
    "replace": replace,
    "link_refs": link_refs,
    "striptags": striptags,
    "date": date,
    "length": length,
    "join": join,
    "default": default,
}

# Filters that still run when the piped value is missing.
NONE_AWARE_FILTERS = frozenset({"default"})


def python_arg_name(name: str) -> str:
    return f"{name}_" if keyword.iskeyword(name) else name


def get_filter(name: str, arg_names: Optional[List[str]] = None) -> Callable[..., Any]:
    """Look up a filter and check that it accepts ``arg_names``.

    Raises
    ------
    TemplateError
        If the filter is unknown or the arguments do not fit its signature.
    """
    func = FILTERS.get(name)
    if func is None:
        raise TemplateError(f"Unknown filter {name!r}")
    if arg_names is not None:
        placeholders = {python_arg_name(arg): None for arg in arg_names}
        try:
            inspect.signature(func).bind(None, **placeholders)
        except TypeError as exc:
            raise TemplateError(f"Invalid arguments for filter {name!r}: {exc}") from exc
    return func
