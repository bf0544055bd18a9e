from __future__ import annotations

from typing import Protocol

HKEY_CURRENT_USER = "HKEY_CURRENT_USER"
HKEY_LOCAL_MACHINE = "HKEY_LOCAL_MACHINE"

REG_SZ = "REG_SZ"
REG_EXPAND_SZ = "REG_EXPAND_SZ"
REG_DWORD = "REG_DWORD"


class Registry(Protocol):
    """Minimal registry access. Values are (data, kind) pairs; missing -> None."""

    def get_value(self, hive: str, key: str, name: str) -> tuple[str | int, str] | None: ...

    def set_value(self, hive: str, key: str, name: str, data: str | int, kind: str) -> None: ...

    def delete_value(self, hive: str, key: str, name: str) -> None: ...


def display_name(hive: str, key: str, name: str) -> str:
    short = {HKEY_CURRENT_USER: "HKCU", HKEY_LOCAL_MACHINE: "HKLM"}.get(hive, hive)
    return f"{short}\\{key}\\{name}"


class WinRegistry:
    """Registry backed by the `winreg` module; only usable on Windows."""

    def _winreg(self):
        import winreg

        return winreg

    def _hive(self, hive: str):
        return getattr(self._winreg(), hive)

    def get_value(self, hive: str, key: str, name: str) -> tuple[str | int, str] | None:
        winreg = self._winreg()
        try:
            with winreg.OpenKey(self._hive(hive), key, 0, winreg.KEY_READ) as handle:
                data, kind = winreg.QueryValueEx(handle, name)
        except FileNotFoundError:
            return None
        kinds = {winreg.REG_SZ: REG_SZ, winreg.REG_EXPAND_SZ: REG_EXPAND_SZ, winreg.REG_DWORD: REG_DWORD}
        return data, kinds.get(kind, REG_SZ)

    def set_value(self, hive: str, key: str, name: str, data: str | int, kind: str) -> None:
        winreg = self._winreg()
        with winreg.CreateKeyEx(self._hive(hive), key, 0, winreg.KEY_WRITE) as handle:
            winreg.SetValueEx(handle, name, 0, getattr(winreg, kind), data)

    def delete_value(self, hive: str, key: str, name: str) -> None:
        winreg = self._winreg()
        try:
            with winreg.OpenKey(self._hive(hive), key, 0, winreg.KEY_WRITE) as handle:
                winreg.DeleteValue(handle, name)
        except FileNotFoundError:
            pass
