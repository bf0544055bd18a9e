"""
Shell dialects supported by envshell.

Each dialect is a data table (syntax, startup files, hook template) registered
in a DialectRegistry. Core code asks the registry; it never compares shell
names itself.
"""

from envshell.dialects.api import Dialect, Family, HookParams, ShellType, Syntax
from envshell.dialects.registry import DialectRegistry, default_registry

__all__ = ["Dialect", "DialectRegistry", "Family", "HookParams", "ShellType", "Syntax", "default_registry"]
