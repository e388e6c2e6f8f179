"""
The core Crow interpreter: the Evaluator.

The Evaluator walks the AST produced by `crow_transformer.build_ast`. It owns
the root closure and the diagnostic call stack, and dispatches every list on
the kind of its leading element: special forms, arithmetic, or calls.
"""
import operator
import sys
from typing import Any, List, Optional

from crow.crow_datatypes import (
    Token, TokenKind, Value, Kind, Lambda, Closure, CallFrame,
    NULL, TRUE, FALSE, ROOT_CLOSURE_NAME, first_token, split_name,
    CrowError, UndefinedOperatorError, UndefinedArithmeticError, NotCallableError,
    ArityError, UnknownModuleError, HostCallError, EvaluationError,
)
from crow.crow_file import find_module, read_source
from crow.crow_host import HostBridge, native_name
from crow.crow_printer import Printer
from crow.crow_transformer import build_ast


def _is_comment(node: Any) -> bool:
    return isinstance(node, Token) and node.kind is TokenKind.COMMENT


def _is_name(node: Any) -> bool:
    return isinstance(node, Token) and node.kind is TokenKind.NAME


def _divide(a, b):
    # Exact integer division stays an integer.
    if type(a) is int and type(b) is int and b != 0 and a % b == 0:
        return a // b
    return a / b


_FOLDS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
    "&": operator.and_,
    "|": operator.or_,
}

_COMPARISONS = ("==", "!=")

# Python frame budget while a program runs; each Crow call costs roughly a
# dozen frames.
RECURSION_LIMIT = 20000


class Evaluator:
    """The Crow execution engine."""

    def __init__(self, search_path: Optional[List[str]] = None, host: Optional[HostBridge] = None,
                 debug: bool = False):
        self.root = Closure(None, ROOT_CLOSURE_NAME)
        self.current_closure = self.root
        self.current_node = None
        self.call_stack: List[CallFrame] = []
        self.host = host if host is not None else HostBridge()
        self.debug = debug
        # Output recorded by natives such as `emit`.
        self.side_effects: List[dict] = []
        self.search_path = list(search_path or [])

        self.root.set_var("true", TRUE)
        self.root.set_var("false", FALSE)
        self.root.set_var("null", NULL)
        self.root.set_var("PATH", Value.array(Value.string(p) for p in self.search_path))

    def _dbg(self, *parts):
        if self.debug:
            print("[DBG]", *parts, file=sys.stderr)

    # --- Embedding API ---

    def run(self, ast: List[Any]) -> Value:
        """Executes a program in the root closure and returns its last value."""
        saved_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(max(saved_limit, RECURSION_LIMIT))
        try:
            return self.execute(ast, self.root)
        except RecursionError:
            err = EvaluationError("Maximum call depth exceeded")
            err.locate(self.current_node)
            err.capture(self.call_stack)
            raise err from None
        except CrowError as e:
            e.capture(self.call_stack)
            raise
        finally:
            sys.setrecursionlimit(saved_limit)

    def define(self, name: str, obj: Any):
        """Binds a host object (wrapped as a Value) in the root closure."""
        self.root.set_var(name, Value.wrap(obj))

    def get_var(self, name: str) -> Value:
        """Looks `name` up from the currently active closure."""
        return self.current_closure.get_var(name)

    def dump(self) -> str:
        """Textual dump of the active closure chain and the call stack."""
        return Printer().dump_state(self.current_closure, self.call_stack)

    # --- Evaluation ---

    def execute(self, nodes: List[Any], closure: Closure) -> Value:
        """Evaluates a sequence in order; the last value is the result."""
        result = NULL
        for node in nodes:
            if _is_comment(node):
                continue
            result = self.evaluate(node, closure)
        return result

    def evaluate(self, node: Any, closure: Closure) -> Value:
        """Recursive dispatcher for evaluating any AST node."""
        self.current_node = node
        try:
            if isinstance(node, list):
                return self._eval_list(node, closure)
            return self._eval_leaf(node, closure)
        except CrowError as e:
            e.locate(node)
            raise

    def _eval_leaf(self, tok: Token, closure: Closure) -> Value:
        match tok.kind:
            case TokenKind.NUMBER:
                return Value.number(tok.value)
            case TokenKind.STRING:
                return Value.string(tok.value)
            case TokenKind.NAME:
                return closure.get_var(tok.text)
            case TokenKind.COMMENT:
                return NULL
        raise EvaluationError(f"'{tok.text}' cannot be used as a value")

    def _eval_args(self, nodes: List[Any], closure: Closure) -> List[Value]:
        return [self.evaluate(n, closure) for n in nodes if not _is_comment(n)]

    def _eval_list(self, node: List[Any], closure: Closure) -> Value:
        items = [n for n in node if not _is_comment(n)]
        if not items:
            return NULL
        head, args = items[0], items[1:]

        if isinstance(head, list):
            return self._call(self.evaluate(head, closure), args, closure, node)

        match head.kind:
            case TokenKind.OPERATOR:
                return self._special_form(head, args, closure, node)
            case TokenKind.ARITHMETIC:
                return self._arithmetic(head, args, closure)
            case TokenKind.NAME:
                return self._call(closure.get_var(head.text), args, closure, node)
        raise NotCallableError(f"{head.kind.name} {head.text} is not callable")

    # --- Calls ---

    def _call(self, callee: Value, arg_nodes: List[Any], closure: Closure, call_site: Any) -> Value:
        if not callee.is_callable:
            raise NotCallableError(f"{Printer().pformat(callee)} is not callable")
        args = self._eval_args(arg_nodes, closure)
        return self.apply(callee, args, closure, call_site)

    def apply(self, callee: Value, args: List[Value], closure: Closure, call_site: Any = None) -> Value:
        """Calls a LAMBDA or NATIVE value with already-evaluated arguments."""
        match callee.kind:
            case Kind.LAMBDA:
                return self._call_lambda(callee.content, args, closure, call_site)
            case Kind.NATIVE:
                return self._call_native(callee.content, args)
        raise NotCallableError(f"{Printer().pformat(callee)} is not callable")

    def _call_lambda(self, fn: Lambda, args: List[Value], closure: Closure, call_site: Any) -> Value:
        site = first_token(call_site)
        self.call_stack.append(CallFrame(
            site.file if site else None,
            site.line if site else None,
            closure.name,
            fn.name,
        ))
        self._dbg("call", fn.name, "argc", len(args), "depth", len(self.call_stack))

        # The new frame hangs off the defining closure, not the caller's.
        call_closure = fn.closure.create_closure(fn.name, fn.namespace)
        for i, param in enumerate(fn.params):
            call_closure.set_var(param, args[i] if i < len(args) else NULL)
        call_closure.set_var("__arguments__", Value.array(args))
        call_closure.set_var("__name__", Value.string(fn.name))

        prev_closure = self.current_closure
        self.current_closure = call_closure
        try:
            return self.execute(fn.body, call_closure)
        except RecursionError:
            err = EvaluationError("Maximum call depth exceeded")
            err.locate(call_site)
            err.capture(self.call_stack)
            raise err from None
        except CrowError as e:
            e.capture(self.call_stack)
            raise
        finally:
            self.current_closure = prev_closure
            self.call_stack.pop()

    def _call_native(self, fn: Any, args: List[Value]) -> Value:
        name = native_name(fn)
        self._dbg("native", name, "argc", len(args))
        try:
            result = fn(*[a.unwrap() for a in args])
        except CrowError:
            raise
        except Exception as e:
            raise HostCallError(f"Native '{name}' failed: {type(e).__name__}: {e}") from e
        return self._wrap_host(result, name)

    def _wrap_host(self, result: Any, name: str) -> Value:
        try:
            return Value.wrap(result)
        except TypeError as e:
            raise HostCallError(f"'{name}' returned an unsupported value: {e}") from None

    # --- Special forms ---

    def _special_form(self, head: Token, args: List[Any], closure: Closure, node: List[Any]) -> Value:
        match head.text:
            case "let":
                return self._op_let(args, closure)
            case "func":
                return self._op_func(head, args, closure)
            case "if":
                return self._op_if(args, closure)
            case "array":
                return Value.array(self._eval_args(args, closure))
            case "import":
                return self._op_import(args, closure)
            case "sys":
                return self._op_sys(args, closure)
            case "reduce":
                return self._op_reduce(args, closure, node)
        raise UndefinedOperatorError(f"Undefined operator {head.text}")

    def _op_let(self, args: List[Any], closure: Closure) -> Value:
        if len(args) != 2 or not _is_name(args[0]):
            raise ArityError("let expects a name and a value")
        name = args[0].text
        value = self.evaluate(args[1], closure)
        if closure.get_own(name) is not None:
            self._dbg("redefine", name, "in", closure.name)
        closure.set_var(name, value)
        return value

    def _op_func(self, head: Token, args: List[Any], closure: Closure) -> Value:
        if args and isinstance(args[0], list):
            if len(args) < 2:
                raise ArityError("func expects a parameter list and at least one body expression")
            name = f"<lambda {head.file}:{head.line}>"
            params_node, body = args[0], args[1:]
            namespace = None
            named = False
        elif args and _is_name(args[0]):
            name = args[0].text
            if len(args) < 3:
                raise ArityError(f"func {name} expects a parameter list and at least one body expression")
            if not isinstance(args[1], list):
                raise ArityError(f"func {name}: parameters must be a list")
            params_node, body = args[1], args[2:]
            path, _ = split_name(name)
            namespace = path or None
            named = True
        else:
            raise ArityError("func expects a name or a parameter list")

        params = []
        for p in params_node:
            if _is_comment(p):
                continue
            if not _is_name(p):
                raise ArityError(f"func {name}: parameters must be names")
            params.append(p.text)

        value = Value.lambda_(Lambda(name, params, body, closure, namespace))
        if named:
            if closure.get_own(name) is not None:
                self._dbg("redefine", name, "in", closure.name)
            closure.set_var(name, value)
        return value

    def _op_if(self, args: List[Any], closure: Closure) -> Value:
        if len(args) not in (2, 3):
            raise ArityError("if expects a condition, a then branch and an optional else branch")
        if self.evaluate(args[0], closure).truthy():
            return self.evaluate(args[1], closure)
        if len(args) == 3:
            return self.evaluate(args[2], closure)
        return NULL

    def _module_search_path(self, closure: Closure) -> List[str]:
        path_value = closure.lookup("PATH")
        if path_value is None:
            return self.search_path
        if path_value.kind is not Kind.ARRAY or any(p.kind is not Kind.STRING for p in path_value.content):
            raise EvaluationError("PATH must be an array of directory strings")
        return [p.content for p in path_value.content]

    def _op_import(self, args: List[Any], closure: Closure) -> Value:
        if len(args) != 1:
            raise ArityError("import expects a module name")
        target = self.evaluate(args[0], closure)
        if target.kind is not Kind.STRING:
            raise EvaluationError("import expects a string module name")
        name = target.content
        path = find_module(name, self._module_search_path(closure))
        if path is None:
            raise UnknownModuleError(f"Unknown module {name}")
        self._dbg("import", name, "->", path, "into", closure.name)
        try:
            source = read_source(path)
        except OSError as e:
            raise UnknownModuleError(f"Cannot read module {name}: {e}") from e
        # Bindings land directly in the importing closure.
        return self.execute(build_ast(source, path), closure)

    def _op_sys(self, args: List[Any], closure: Closure) -> Value:
        if len(args) < 2 or not isinstance(args[-1], list):
            raise ArityError("sys expects a host path followed by an argument list")
        segments: List[str] = []
        for part in self._eval_args(args[:-1], closure):
            if part.kind is not Kind.STRING:
                raise HostCallError("sys path elements must evaluate to strings")
            segments.extend(s for s in part.content.split(".") if s)
        call_args = [a.unwrap() for a in self._eval_args(args[-1], closure)]
        target = ".".join(segments)
        self._dbg("sys", target, "argc", len(call_args))
        return self._wrap_host(self.host.call(segments, call_args), target)

    def _op_reduce(self, args: List[Any], closure: Closure, node: List[Any]) -> Value:
        if len(args) != 3:
            raise ArityError("reduce expects an array, a function and an initial value")
        data = self.evaluate(args[0], closure)
        fn = self.evaluate(args[1], closure)
        acc = self.evaluate(args[2], closure)
        if data.kind is not Kind.ARRAY:
            raise EvaluationError("reduce expects an array as its first argument")
        if not fn.is_callable:
            raise NotCallableError(f"{Printer().pformat(fn)} is not callable")
        for item in data.content:
            acc = self.apply(fn, [acc, item], closure, node)
        return acc

    # --- Arithmetic ---

    def _arithmetic(self, head: Token, args: List[Any], closure: Closure) -> Value:
        op = head.text
        if op not in _FOLDS and op not in _COMPARISONS and op != "!":
            raise UndefinedArithmeticError(f"Undefined arithmetic {op}")
        values = self._eval_args(args, closure)

        if op in _COMPARISONS:
            if len(values) < 2:
                raise ArityError(f"{op} expects two arguments")
            same = values[0] == values[1]
            return Value.boolean(same if op == "==" else not same)

        if op == "!":
            if not values:
                raise ArityError("! expects one argument")
            return Value.boolean(not values[0].truthy())

        if not values:
            raise ArityError(f"{op} expects at least one argument")
        fold = _FOLDS[op]
        acc = values[0].unwrap()
        try:
            for v in values[1:]:
                acc = fold(acc, v.unwrap())
        except ZeroDivisionError:
            raise EvaluationError("Division by zero") from None
        except OverflowError:
            raise EvaluationError(f"Numeric overflow in {op}") from None
        except TypeError:
            kinds = " ".join(v.kind.name for v in values)
            raise EvaluationError(f"Invalid operands for {op}: {kinds}") from None
        return Value.wrap(acc)
