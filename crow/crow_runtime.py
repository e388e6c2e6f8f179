import inspect
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

import pystache

from crow.crow_config import CrowConfig
from crow.crow_datatypes import Value, CrowError
from crow.crow_host import CrowHost, HostBridge, crow_api_method
from crow.crow_interpreter import Evaluator
from crow.crow_printer import Printer
from crow.crow_transformer import build_ast

__all__ = [
    "ExecutionResult", "ScriptRunner", "StdLib", "format_error",
    "CrowHost", "crow_api_method",
]


# ===================================================================
# 1. Error formatting
# ===================================================================

ERROR_TEMPLATE = (
    "{{kind}}: {{message}}{{#location}} ({{file}}:{{line}}){{/location}}"
    "{{#frames}}\n\t{{file}}:{{line}}\t{{closure}}:{{function}}(){{/frames}}"
)


def _loc_text(value) -> str:
    return "?" if value is None else str(value)


def format_error(err: CrowError) -> str:
    """Renders an error and its call stack, innermost frame first."""
    location = None
    if err.line is not None:
        location = {"file": _loc_text(err.file), "line": str(err.line)}
    frames = [
        {
            "file": _loc_text(f.file),
            "line": _loc_text(f.line),
            "closure": f.closure_name,
            "function": f.function_name,
        }
        for f in reversed(err.stack or ())
    ]
    context = {
        "kind": err.kind.value,
        "message": err.message,
        "location": location or False,
        "frames": frames,
    }
    renderer = pystache.Renderer(escape=lambda u: u)
    return renderer.render(ERROR_TEMPLATE, context)


# ===================================================================
# 2. Built-in natives
# ===================================================================

class StdLib:
    """Python implementations of the natives bound in the root closure.

    Every `_name` method is exposed to scripts as `name`. Arguments arrive
    unwrapped (Python ints, strs, lists); results are wrapped back by the
    evaluator.
    """
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator

    def bind(self, closure):
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                closure.set_var(name[1:], Value.native(member))

    def _emit(self, *message_parts):
        """Records a line of script output as a `stdout` side effect."""
        message = " ".join(self._to_str(p) for p in message_parts)
        self.evaluator.side_effects.append({"topics": ["stdout"], "message": message})
        return None

    def _len(self, collection): return len(collection)

    def _get(self, array, index):
        if not isinstance(index, int) or isinstance(index, bool):
            raise TypeError("index must be an integer")
        if index < 0:
            raise IndexError(f"negative index {index}")
        return array[index]

    def _to_str(self, value):
        if isinstance(value, str):
            return value
        return Printer().pformat(Value.wrap(value))

    def _to_int(self, value):
        if isinstance(value, bool):
            raise TypeError("cannot convert a boolean to an integer")
        return int(value)

    def _type_of(self, value):
        return Value.wrap(value).kind.name.lower()


# ===================================================================
# 3. Script execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Optional[Value] = None
    error_message: Optional[str] = None
    error: Optional[CrowError] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return self.error_message or "Unknown error"


class ScriptRunner:
    """Parses and executes Crow code for an embedding application.

    With no `config`, settings come from `CrowConfig` overlaid with the
    CROW_PATH and CROW_DEBUG environment variables. Explicit `search_path`
    entries are searched before the configured ones.
    """

    def __init__(self, search_path: Optional[List[str]] = None, host_object: Optional[CrowHost] = None,
                 config: Optional[CrowConfig] = None, load_stdlib: bool = True):
        self.config = config if config is not None else CrowConfig().with_env()
        paths = list(search_path or []) + self.config.resolved_search_path()
        self.host = HostBridge(allow_reflection=self.config.allow_host_reflection)
        self.evaluator = Evaluator(search_path=paths, host=self.host, debug=self.config.debug)
        self.host_object = host_object

        if load_stdlib:
            StdLib(self.evaluator).bind(self.evaluator.root)
        if host_object is not None:
            self._bind_host_api_methods()

    @property
    def root(self):
        return self.evaluator.root

    def _bind_host_api_methods(self):
        """Binds the host's @crow_api_method methods and exposes the host to `sys`."""
        for name, member in self.host_object.api_methods().items():
            self.evaluator.root.set_var(name, Value.native(member))
        self.host.register("host", self.host_object)

    def define(self, name: str, obj: Any):
        self.evaluator.define(name, obj)

    def register_native(self, dotted_name: str, obj: Any):
        """Makes a Python object reachable through `sys`."""
        self.host.register(dotted_name, obj)

    def get_var(self, name: str) -> Value:
        return self.evaluator.get_var(name)

    def dump(self) -> str:
        return self.evaluator.dump()

    def _error_result(self, err: CrowError) -> ExecutionResult:
        msg = format_error(err)
        self.evaluator.side_effects.append({'topics': ['stderr'], 'message': msg})
        return ExecutionResult(
            status='error',
            error_message=msg,
            error=err,
            side_effects=list(self.evaluator.side_effects),
        )

    def run(self, ast: List[Any]) -> ExecutionResult:
        """Executes an already built AST in the root closure."""
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        try:
            value = self.evaluator.run(ast)
        except CrowError as e:
            return self._error_result(e)
        return ExecutionResult(
            status='success',
            value=value,
            side_effects=list(self.evaluator.side_effects),
        )

    def handle_script(self, source_code: str, file: str = "<script>") -> ExecutionResult:
        """The main entry point to execute a script."""
        try:
            ast = build_ast(source_code, file)
        except CrowError as e:
            self.evaluator.side_effects.clear()
            return self._error_result(e)
        return self.run(ast)

    def run_file(self, path: str) -> ExecutionResult:
        with open(path, "r", encoding="utf-8") as f:
            source = f.read()
        return self.handle_script(source, os.path.abspath(path))
