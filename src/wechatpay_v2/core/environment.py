"""
Layered settings sources for the gateway client.

Values come from ``os.environ`` (or an explicit base mapping), a ``.env``
file that only fills gaps, and keyword overrides that always win. The result
is a plain mapping fed into :class:`wechatpay_v2.core.config.ClientConfig`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Mapping, MutableMapping, Optional, Tuple

__all__ = [
    "ENV_PREFIX",
    "SettingsEnvironment",
    "build_environment",
    "load_env_file",
]

ENV_PREFIX = "WECHATPAY_"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _iter_assignments(text: str) -> Iterator[Tuple[str, str]]:
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name or name.startswith("#"):
            continue
        yield name, _unquote(value.strip())


def _read_env_file(path: Path) -> Dict[str, str]:
    """Gateway settings found in ``path``; a missing file yields nothing."""
    if not path.is_file():
        return {}
    assignments = _iter_assignments(path.read_text(encoding="utf-8"))
    return {name: value for name, value in assignments if name.startswith(ENV_PREFIX)}


def load_env_file(
    path: str = ".env",
    *,
    environ: Optional[MutableMapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Copy ``WECHATPAY_*`` settings from ``path`` into ``environ``.

    Keys already present in ``environ`` keep their value.
    """
    target = os.environ if environ is None else environ
    for name, value in _read_env_file(Path(path)).items():
        if name not in target:
            target[name] = value
    return dict(target)


@dataclass(frozen=True)
class SettingsEnvironment:
    variables: Mapping[str, str]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)


def build_environment(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> SettingsEnvironment:
    """``base`` defaults to :data:`os.environ`; ``env_file=None`` skips the file."""
    merged = _read_env_file(Path(env_file)) if env_file is not None else {}
    merged.update(os.environ if base is None else base)
    merged.update(overrides or {})
    return SettingsEnvironment(variables=merged)
