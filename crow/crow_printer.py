"""
A pretty-printer for Crow values, AST nodes and interpreter state.
"""
import json

from crow.crow_datatypes import Value, Kind, Token, Lambda, Closure, CallFrame
from crow.crow_host import native_name


class Printer:
    """Formats Crow objects into readable Crow source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        return self._get_handler(obj)(obj)

    def _get_handler(self, obj):
        handler = self._handlers.get(type(obj))
        if handler is not None:
            return handler
        if isinstance(obj, list):
            return self._pformat_node_list
        if callable(obj):
            return self._pformat_native
        return repr

    def _create_handlers(self):
        return {
            Value: self._pformat_value,
            Token: self._pformat_token,
            Lambda: self._pformat_lambda,
            CallFrame: self._pformat_frame,
            Closure: self.dump_closure,
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
        }

    def _pformat_primitive(self, obj):
        return str(obj)

    def _pformat_str(self, obj):
        return json.dumps(obj, ensure_ascii=False)

    def _pformat_bool(self, obj):
        return "true" if obj else "false"

    def _pformat_none(self, obj):
        return "null"

    def _pformat_native(self, fn):
        return f"<native {native_name(fn)}>"

    def _pformat_lambda(self, fn: Lambda):
        params = " ".join(fn.params)
        if fn.name.startswith("<lambda"):
            return f"<func <{params}> ...>"
        return f"<func {fn.name} <{params}> ...>"

    def _pformat_value(self, value: Value):
        match value.kind:
            case Kind.NULL:
                return "null"
            case Kind.BOOLEAN:
                return self._pformat_bool(value.content)
            case Kind.NUMBER:
                return self._pformat_primitive(value.content)
            case Kind.STRING:
                return self._pformat_str(value.content)
            case Kind.ARRAY:
                items = " ".join(self.pformat(v) for v in value.content)
                return f"<array {items}>" if items else "<array>"
            case Kind.LAMBDA:
                return self._pformat_lambda(value.content)
            case Kind.NATIVE:
                return self._pformat_native(value.content)
        return repr(value)

    def _pformat_token(self, tok: Token):
        return tok.text

    def _pformat_node_list(self, nodes):
        return "<" + " ".join(self.pformat(n) for n in nodes) + ">"

    def pformat_program(self, nodes):
        """Formats a top-level node sequence, one node per line."""
        return "\n".join(self.pformat(n) for n in nodes)

    def _pformat_frame(self, frame: CallFrame):
        return f"{frame.file}:{frame.line}\t{frame.closure_name}:{frame.function_name}()"

    def dump_closure(self, closure: Closure):
        """Lists the flattened bindings of `closure` and each of its ancestors."""
        out = []
        for i, clo in enumerate(closure.chain()):
            ns = f" (namespace {'.'.join(clo.namespace)})" if clo.namespace else ""
            out.append(f"{self._indent_char * i}[{clo.name}]{ns}")
            for name, value in sorted(clo.flat_bindings().items()):
                out.append(f"{self._indent_char * (i + 1)}{name} = {self.pformat(value)}")
        return "\n".join(out)

    def dump_state(self, closure: Closure, stack):
        lines = ["Closures:", self.dump_closure(closure), "Call stack:"]
        if not stack:
            lines.append(f"{self._indent_char}(empty)")
        for frame in reversed(stack):
            lines.append(f"{self._indent_char}{self._pformat_frame(frame)}")
        return "\n".join(lines)
