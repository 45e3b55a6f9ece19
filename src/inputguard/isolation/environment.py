"""Child-process environment construction.

The child environment is always built explicitly from the sandbox
policy.  Nothing is copied from ``os.environ``: not ``PATH``, not
``HOME``, not the locale.
"""
from __future__ import annotations

import re
from collections.abc import Mapping

from inputguard.core.errors import EnvironmentInvalid

_ENV_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def is_valid_env_name(name: str) -> bool:
    """``True`` for a portable variable name (letters, digits, underscore)."""
    return _ENV_NAME_RE.fullmatch(name) is not None


class EnvironmentManager:
    """Builds the child environment from an explicit mapping.

    Usage::

        mgr = EnvironmentManager({"LANG": "C"})
        env = mgr.build_child_env()
        # env == {"LANG": "C"}
    """

    def __init__(self, variables: Mapping[str, str] | None = None) -> None:
        self._variables = dict(variables or {})

    def build_child_env(self) -> dict[str, str]:
        """Return a fresh environment mapping for one child process.

        Raises
        ------
        EnvironmentInvalid
            If a name is not a portable identifier or a value is not a
            NUL-free string.
        """
        env: dict[str, str] = {}
        for name, value in self._variables.items():
            if not isinstance(name, str) or not is_valid_env_name(name):
                raise EnvironmentInvalid(
                    f"Invalid environment variable name {name!r}",
                    details={"name": str(name)},
                )
            if not isinstance(value, str) or "\x00" in value:
                raise EnvironmentInvalid(
                    f"Environment variable {name} has an invalid value",
                    details={"name": name},
                )
            env[name] = value
        return env
