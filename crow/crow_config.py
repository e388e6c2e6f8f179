"""
Runner configuration, loadable from a YAML file and the environment.

Example `crow.yaml`:

    search-path:
      - lib
      - ~/crow/modules
    include-cwd: true
    debug: false
    allow-host-reflection: false
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, List, Mapping, Optional

import yaml


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


@dataclass
class CrowConfig:
    search_path: List[str] = field(default_factory=list)
    # Append the current working directory after the configured directories.
    include_cwd: bool = True
    debug: bool = False
    allow_host_reflection: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'CrowConfig':
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = str(key).replace("-", "_")
            if name not in known:
                raise ValueError(f"Unknown configuration key: {key!r}")
            kwargs[name] = value

        if "search_path" in kwargs:
            sp = kwargs["search_path"]
            if isinstance(sp, str):
                sp = [sp]
            if not isinstance(sp, list) or not all(isinstance(p, str) for p in sp):
                raise ValueError("search-path must be a list of directory strings")
            kwargs["search_path"] = list(sp)
        for flag in ("include_cwd", "debug", "allow_host_reflection"):
            if flag in kwargs:
                kwargs[flag] = _as_bool(kwargs[flag])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: str) -> 'CrowConfig':
        """Loads a YAML config file. The file's directory anchors relative search paths."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"{path}: configuration must be a mapping")
        cfg = cls.from_mapping(data)
        base = os.path.dirname(os.path.abspath(path))
        cfg.search_path = [
            p if os.path.isabs(os.path.expanduser(p)) else os.path.join(base, p)
            for p in cfg.search_path
        ]
        return cfg

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> 'CrowConfig':
        """Overlays CROW_PATH (prepended) and CROW_DEBUG from the environment."""
        env = os.environ if environ is None else environ
        cfg = replace(self, search_path=list(self.search_path))
        extra = [p for p in env.get("CROW_PATH", "").split(os.pathsep) if p]
        if extra:
            cfg.search_path = extra + cfg.search_path
        if "CROW_DEBUG" in env:
            cfg.debug = _as_bool(env["CROW_DEBUG"])
        return cfg

    def resolved_search_path(self) -> List[str]:
        paths = list(self.search_path)
        if self.include_cwd:
            paths.append(os.getcwd())
        return paths
