from __future__ import annotations

from typing import Iterable

from envshell.dialects.api import Dialect, ShellType
from envshell.dialects.builtin import builtin_dialects
from envshell.errors import UnsupportedShellError


class DialectRegistry:
    """
    Name/alias -> Dialect lookup over the closed set of ShellType members.

    Construction fails if any ShellType has no table, so adding a shell means
    adding one enum member plus one entry in builtin_dialects().
    """

    def __init__(self, dialects: Iterable[Dialect]) -> None:
        by_type: dict[ShellType, Dialect] = {}
        by_name: dict[str, Dialect] = {}
        for dialect in dialects:
            if dialect.type in by_type:
                raise ValueError(f"Duplicate dialect table for {dialect.name}")
            by_type[dialect.type] = dialect
            for name in dialect.names:
                if not isinstance(name, str) or not name:
                    raise ValueError(f"Dialect {dialect.name} has an invalid name: {name!r}")
                key = name.lower()
                if key in by_name:
                    other = by_name[key]
                    raise ValueError(f"Duplicate dialect name {name!r}: {other.name} and {dialect.name}")
                by_name[key] = dialect

        missing = [t.value for t in ShellType if t not in by_type]
        if missing:
            raise ValueError(f"No dialect table for: {', '.join(missing)}")

        self._by_type = by_type
        self._by_name = by_name

    @property
    def registered_names(self) -> list[str]:
        return [t.value for t in ShellType]

    def __iter__(self):
        return iter(self._by_type[t] for t in ShellType)

    def get(self, name: str | ShellType) -> Dialect:
        if isinstance(name, ShellType):
            return self._by_type[name]
        dialect = self._by_name.get(name.strip().lower()) if isinstance(name, str) else None
        if dialect is None:
            known = ", ".join(self.registered_names)
            raise UnsupportedShellError(
                f"Unsupported shell type {name!r} (known: {known}). Pass one of them with --shell."
            )
        return dialect

    def find(self, name: str) -> Dialect | None:
        try:
            return self.get(name)
        except UnsupportedShellError:
            return None


_DEFAULT: DialectRegistry | None = None


def default_registry() -> DialectRegistry:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = DialectRegistry(builtin_dialects())
    return _DEFAULT
