"""
The host-call bridge behind the `sys` special form.

Scripts can only reach host objects an embedder registered in the
HostBridge table. Inside a CrowHost, only methods marked with
`@crow_api_method` are visible. Unrestricted reflection over Python
builtins is available only when the bridge is built with
`allow_reflection=True`.
"""

import builtins
import collections.abc
import inspect
from typing import Any, Dict, Iterable, List

from crow.crow_datatypes import HostCallError


def crow_api_method(func):
    """A decorator to explicitly mark methods as safe for Crow execution."""
    func._is_crow_api = True
    return func


def native_name(fn) -> str:
    """The script-facing name of a Python callable; StdLib `_name` methods lose the underscore."""
    return getattr(fn, "__name__", type(fn).__name__).lstrip("_") or "<native>"


def is_api_method(member) -> bool:
    if getattr(member, "_is_crow_api", False):
        return True
    # The decorator may have marked the underlying function of a bound method.
    func = getattr(member, "__func__", None)
    return func is not None and getattr(func, "_is_crow_api", False)


class CrowHost:
    """Base class for Python objects exposed to Crow scripts."""

    def api_methods(self) -> Dict[str, Any]:
        """The @crow_api_method members of this host, keyed by name."""
        out = {}
        for name, member in inspect.getmembers(self):
            if callable(member) and is_api_method(member):
                out[name] = member
        return out


class HostBridge:
    """A capability table of host objects reachable through `sys`."""

    def __init__(self, allow_reflection: bool = False):
        self.allow_reflection = allow_reflection
        self.registry: Dict[str, Any] = {}

    def register(self, dotted_name: str, obj: Any):
        """Exposes `obj` under a dotted name, e.g. `math.sqrt`."""
        parts = [p for p in dotted_name.split(".") if p]
        if not parts:
            raise ValueError(f"Invalid host name: {dotted_name!r}")
        node = self.registry
        for seg in parts[:-1]:
            child = node.get(seg)
            if not isinstance(child, dict):
                child = node[seg] = {}
            node = child
        node[parts[-1]] = obj

    def _step(self, current: Any, seg: str, is_first: bool) -> Any:
        missing = HostCallError(f"Unknown host symbol '{seg}'")
        if isinstance(current, collections.abc.Mapping):
            if seg in current:
                return current[seg]
            if is_first and self.allow_reflection and hasattr(builtins, seg):
                return getattr(builtins, seg)
            raise missing
        if isinstance(current, CrowHost) and not self.allow_reflection:
            member = getattr(current, seg, None)
            if member is None or not is_api_method(member):
                raise missing
            return member
        if seg.startswith("_") and not self.allow_reflection:
            raise missing
        try:
            return getattr(current, seg)
        except AttributeError:
            raise missing from None

    def resolve(self, segments: Iterable[str]) -> Any:
        """Walks the registry by successive property lookup."""
        segments = list(segments)
        if not segments:
            raise HostCallError("Empty host path")
        current: Any = self.registry
        for i, seg in enumerate(segments):
            current = self._step(current, seg, i == 0)
        return current

    def call(self, segments: List[str], args: List[Any]) -> Any:
        target = self.resolve(segments)
        if not callable(target):
            raise HostCallError(f"Host symbol '{'.'.join(segments)}' is not callable")
        try:
            return target(*args)
        except Exception as e:
            raise HostCallError(f"Host call '{'.'.join(segments)}' failed: {type(e).__name__}: {e}") from e
