from __future__ import annotations
import os
import re
from typing import Iterable, List, Optional

MODULE_EXTENSION = ".cr"

_SEGMENT = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def module_segments(name: str) -> List[str]:
    """Splits a dotted module name; returns [] when any segment is not an identifier."""
    segments = name.strip().split(".")
    if not all(_SEGMENT.match(s) for s in segments):
        return []
    return segments


def module_candidates(name: str, search_path: Iterable[str]) -> List[str]:
    """Every file path `name` could resolve to, in search-path order."""
    segments = module_segments(name)
    if not segments:
        return []
    out = []
    for base in search_path:
        base = os.path.expanduser(base) if base else os.getcwd()
        out.append(os.path.normpath(os.path.join(base, *segments)) + MODULE_EXTENSION)
    return out


def find_module(name: str, search_path: Iterable[str]) -> Optional[str]:
    """Returns the first existing candidate for `name`, or None."""
    for path in module_candidates(name, search_path):
        if os.path.isfile(path):
            return path
    return None


def read_source(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()
