"""
WindowsRegistryStore - ConfigStore backed by the Windows registry.

Paths are full hive paths such as
``HKEY_LOCAL_MACHINE\\SYSTEM\\CurrentControlSet\\Control\\PriorityControl``.
Short hive aliases (HKLM, HKCU, HKCR, HKU) are accepted as well.
"""

import logging
from typing import Optional, Tuple

from .base import ConfigStore, ConfigValue
from ..protocol.errors import AdapterError, PermissionDeniedError

logger = logging.getLogger(__name__)

HIVE_ALIASES = {
    "HKEY_LOCAL_MACHINE": "HKEY_LOCAL_MACHINE",
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKEY_CURRENT_USER": "HKEY_CURRENT_USER",
    "HKCU": "HKEY_CURRENT_USER",
    "HKEY_CLASSES_ROOT": "HKEY_CLASSES_ROOT",
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKEY_USERS": "HKEY_USERS",
    "HKU": "HKEY_USERS",
}

DWORD_MAX = 0xFFFFFFFF


def split_hive(path: str) -> Tuple[str, str]:
    """
    Split a registry path into (canonical hive name, sub key).

    Raises:
        ValueError: if the path does not start with a known hive
    """
    hive, _, sub_key = path.partition("\\")
    canonical = HIVE_ALIASES.get(hive.upper())
    if canonical is None:
        raise ValueError(f"Unknown registry hive in path: {path}")
    return canonical, sub_key


class WindowsRegistryStore(ConfigStore):
    """ConfigStore over ``winreg``. Only constructible on Windows."""

    def __init__(self):
        import winreg
        self._winreg = winreg

    def _hive(self, path: str):
        hive_name, sub_key = split_hive(path)
        return getattr(self._winreg, hive_name), sub_key

    def get(self, path: str, name: str) -> Optional[ConfigValue]:
        winreg = self._winreg
        hive, sub_key = self._hive(path)
        try:
            with winreg.OpenKey(hive, sub_key, 0, winreg.KEY_READ) as key:
                value, value_type = winreg.QueryValueEx(key, name)
        except FileNotFoundError:
            return None
        except PermissionError as e:
            raise PermissionDeniedError(f"Access denied reading {path}\\{name}: {e}", target=path)
        except OSError as e:
            raise AdapterError(f"Failed to read {path}\\{name}: {e}", target=path)

        if value_type == winreg.REG_BINARY:
            return bytes(value)
        if value_type == winreg.REG_MULTI_SZ:
            return "\0".join(value)
        return value

    def set(self, path: str, name: str, value: ConfigValue) -> None:
        winreg = self._winreg
        hive, sub_key = self._hive(path)
        value_type = self._value_type(value)
        try:
            with winreg.CreateKeyEx(hive, sub_key, 0, winreg.KEY_SET_VALUE) as key:
                winreg.SetValueEx(key, name, 0, value_type, value)
        except PermissionError as e:
            raise PermissionDeniedError(f"Access denied writing {path}\\{name}: {e}", target=path)
        except OSError as e:
            raise AdapterError(f"Failed to write {path}\\{name}: {e}", target=path)
        logger.debug("Set %s\\%s = %r", path, name, value)

    def delete(self, path: str, name: str) -> None:
        winreg = self._winreg
        hive, sub_key = self._hive(path)
        try:
            with winreg.OpenKey(hive, sub_key, 0, winreg.KEY_SET_VALUE) as key:
                winreg.DeleteValue(key, name)
        except FileNotFoundError:
            return
        except PermissionError as e:
            raise PermissionDeniedError(f"Access denied deleting {path}\\{name}: {e}", target=path)
        except OSError as e:
            raise AdapterError(f"Failed to delete {path}\\{name}: {e}", target=path)
        logger.debug("Deleted %s\\%s", path, name)

    def _value_type(self, value: ConfigValue) -> int:
        winreg = self._winreg
        if isinstance(value, bool):
            return winreg.REG_DWORD
        if isinstance(value, int):
            if value < 0:
                raise AdapterError(f"Negative registry integers are not supported: {value}")
            return winreg.REG_DWORD if value <= DWORD_MAX else winreg.REG_QWORD
        if isinstance(value, bytes):
            return winreg.REG_BINARY
        if isinstance(value, str):
            return winreg.REG_SZ
        raise AdapterError(f"Unsupported registry value type: {type(value).__name__}")
