"""
Defines the core data types for the Crow language runtime.

This module provides the token and value representations shared by the
lexer, parser, AST builder and evaluator, the Closure environment chain
with its dotted-namespace resolution, call-stack frames, and the error
hierarchy raised throughout the interpreter.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple, Iterable


# =================================================================
# Tokens
# =================================================================

class TokenKind(Enum):
    STRING = "STRING"
    NUMBER = "NUMBER"
    NAME = "NAME"
    OPERATOR = "OPERATOR"
    ARITHMETIC = "ARITHMETIC"
    COMMENT = "COMMENT"
    START_LIST = "START_LIST"
    END_LIST = "END_LIST"


@dataclass(frozen=True)
class Token:
    """A single lexeme with its source location.

    `text` is the raw lexeme. `value` holds the typed literal once the AST
    builder has run (an int/float for NUMBER, unescaped text for STRING);
    for every other kind it is the same as `text`.
    """
    kind: TokenKind
    text: str
    value: Any = None
    file: Optional[str] = None
    line: int = 1

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.text!r}, {self.file}:{self.line})"


def first_token(node: Any) -> Optional[Token]:
    """Returns the leftmost token of a node, descending into nested lists."""
    while isinstance(node, list):
        if not node:
            return None
        node = node[0]
    return node if isinstance(node, Token) else None


# =================================================================
# Runtime values
# =================================================================

class Kind(Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"
    ARRAY = "ARRAY"
    LAMBDA = "LAMBDA"
    NATIVE = "NATIVE"


class Lambda:
    """A function defined in Crow with `func`.

    This is a closure: it bundles the parameter names, the body nodes and
    the Closure that was active where the function was declared.
    """
    def __init__(self, name: str, params: List[str], body: List[Any], closure: 'Closure',
                 namespace: Optional[Iterable[str]] = None):
        self.name = name
        self.params = params
        self.body = body
        self.closure = closure
        # Path prefix the call frame uses for unqualified lookups.
        self.namespace = closure.namespace if namespace is None else tuple(namespace)

    def __repr__(self) -> str:
        return f"<Lambda {self.name} ({' '.join(self.params)})>"


@dataclass(frozen=True)
class Value:
    """The tagged runtime representation of every Crow value."""
    kind: Kind
    content: Any = None

    @classmethod
    def number(cls, n) -> 'Value':
        return cls(Kind.NUMBER, n)

    @classmethod
    def string(cls, s: str) -> 'Value':
        return cls(Kind.STRING, s)

    @classmethod
    def boolean(cls, b: bool) -> 'Value':
        return TRUE if b else FALSE

    @classmethod
    def array(cls, items: Iterable['Value']) -> 'Value':
        return cls(Kind.ARRAY, tuple(items))

    @classmethod
    def lambda_(cls, fn: Lambda) -> 'Value':
        return cls(Kind.LAMBDA, fn)

    @classmethod
    def native(cls, fn) -> 'Value':
        return cls(Kind.NATIVE, fn)

    @classmethod
    def wrap(cls, obj: Any) -> 'Value':
        """Converts a host Python object into a Value.

        Raises TypeError for objects with no Crow counterpart.
        """
        match obj:
            case Value():
                return obj
            case None:
                return NULL
            case bool():
                return cls.boolean(obj)
            case int() | float():
                return cls.number(obj)
            case str():
                return cls.string(obj)
            case list() | tuple():
                return cls.array(cls.wrap(item) for item in obj)
            case Lambda():
                return cls.lambda_(obj)
            case _ if callable(obj):
                return cls.native(obj)
        raise TypeError(f"Cannot convert {type(obj).__name__} to a Crow value")

    def unwrap(self) -> Any:
        """Converts the Value back into a plain Python object."""
        if self.kind is Kind.ARRAY:
            return [item.unwrap() for item in self.content]
        return self.content

    @property
    def is_callable(self) -> bool:
        return self.kind in (Kind.LAMBDA, Kind.NATIVE)

    def truthy(self) -> bool:
        match self.kind:
            case Kind.NULL:
                return False
            case Kind.BOOLEAN | Kind.NUMBER | Kind.STRING:
                return bool(self.content)
            case _:
                return True

    def __repr__(self) -> str:
        if self.kind is Kind.NULL:
            return "NULL"
        return f"{self.kind.name}({self.content!r})"


NULL = Value(Kind.NULL)
TRUE = Value(Kind.BOOLEAN, True)
FALSE = Value(Kind.BOOLEAN, False)


# =================================================================
# Errors
# =================================================================

class ErrorKind(Enum):
    PARSE = "ParseError"
    UNKNOWN_VARIABLE = "UnknownVariableError"
    UNDEFINED_OPERATOR = "UndefinedOperatorError"
    UNDEFINED_ARITHMETIC = "UndefinedArithmeticError"
    NOT_CALLABLE = "NotCallableError"
    ARITY = "ArityError"
    MODULE_NOT_FOUND = "ModuleNotFoundError"
    HOST_CALL = "HostCallError"
    EVALUATION = "EvaluationError"


class CrowError(Exception):
    """Base class for every error raised while building or running Crow code.

    Carries the error kind, the innermost source location that was being
    evaluated, and a snapshot of the call stack taken at the failure site.
    """
    kind = ErrorKind.EVALUATION

    def __init__(self, message: str, file: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line
        self.stack: Optional[Tuple['CallFrame', ...]] = None

    def locate(self, node: Any):
        """Records the location of `node` unless a location is already set."""
        if self.line is not None:
            return
        tok = first_token(node)
        if tok is not None:
            self.file = tok.file
            self.line = tok.line

    def capture(self, stack: Iterable['CallFrame']):
        """Snapshots the call stack the first time the error is seen."""
        if self.stack is None:
            self.stack = tuple(stack)


class ParseError(CrowError):
    kind = ErrorKind.PARSE


class UnknownVariableError(CrowError):
    kind = ErrorKind.UNKNOWN_VARIABLE

    def __init__(self, name: str):
        super().__init__(f"Unknown variable {name}")
        self.name = name


class UndefinedOperatorError(CrowError):
    kind = ErrorKind.UNDEFINED_OPERATOR


class UndefinedArithmeticError(CrowError):
    kind = ErrorKind.UNDEFINED_ARITHMETIC


class NotCallableError(CrowError):
    kind = ErrorKind.NOT_CALLABLE


class ArityError(CrowError):
    kind = ErrorKind.ARITY


class UnknownModuleError(CrowError):
    kind = ErrorKind.MODULE_NOT_FOUND


class HostCallError(CrowError):
    kind = ErrorKind.HOST_CALL


class EvaluationError(CrowError):
    kind = ErrorKind.EVALUATION


# =================================================================
# Call stack
# =================================================================

@dataclass(frozen=True)
class CallFrame:
    """Diagnostic record pushed for every lambda invocation."""
    file: Optional[str]
    line: Optional[int]
    closure_name: str
    function_name: str


# =================================================================
# Closures
# =================================================================

ROOT_CLOSURE_NAME = "__G"


def split_name(dotted: str) -> Tuple[List[str], str]:
    """Splits `a.b.c` into (['a', 'b'], 'c')."""
    parts = [p for p in dotted.split('.') if p]
    if not parts:
        raise ValueError(f"Invalid variable name: {dotted!r}")
    return parts[:-1], parts[-1]


class Closure:
    """A mutable namespace of bindings plus a pointer to its lexical parent.

    Bindings are stored as nested dicts keyed by dotted-path segment; leaves
    are Values. Lookups shrink the namespace qualifier inside one closure
    before climbing to the parent (see `get_var`).
    """
    def __init__(self, parent: Optional['Closure'] = None, name: str = ROOT_CLOSURE_NAME,
                 namespace: Iterable[str] = ()):
        self.parent = parent
        self.name = name
        self.namespace: Tuple[str, ...] = tuple(namespace)
        self.bindings: Dict[str, Any] = {}

    def create_closure(self, name: str, namespace: Optional[Iterable[str]] = None) -> 'Closure':
        """Creates a child closure; it inherits this closure's namespace by default."""
        return Closure(self, name, self.namespace if namespace is None else namespace)

    def set_var(self, dotted: str, value: Value):
        """Binds `value` at the dotted path in this closure's own bindings."""
        path, name = split_name(dotted)
        node = self.bindings
        for seg in path:
            child = node.get(seg)
            if not isinstance(child, dict):
                # A plain value in the way is replaced by a namespace.
                child = node[seg] = {}
            node = child
        node[name] = value

    def _resolve_local(self, segments: List[str]) -> Optional[Value]:
        node: Any = self.bindings
        for seg in segments:
            if not isinstance(node, dict) or seg not in node:
                return None
            node = node[seg]
        return node if isinstance(node, Value) else None

    def get_own(self, dotted: str) -> Optional[Value]:
        """The value bound at exactly this dotted path in this closure, if any."""
        path, name = split_name(dotted)
        return self._resolve_local(path + [name])

    def lookup(self, dotted: str) -> Optional[Value]:
        """Like `get_var` but returns None when nothing matches."""
        path, name = split_name(dotted)
        path = list(self.namespace) + path
        closure = self
        while closure is not None:
            # Shrink the qualifier from the right before climbing.
            for cut in range(len(path), -1, -1):
                found = closure._resolve_local(path[:cut] + [name])
                if found is not None:
                    return found
            closure = closure.parent
        return None

    def get_var(self, dotted: str) -> Value:
        found = self.lookup(dotted)
        if found is None:
            raise UnknownVariableError(dotted)
        return found

    def chain(self) -> List['Closure']:
        """This closure followed by its lexical ancestors up to the root."""
        out = []
        cur = self
        while cur is not None:
            out.append(cur)
            cur = cur.parent
        return out

    def flat_bindings(self) -> Dict[str, Value]:
        """Flattens this closure's own bindings into `dotted.name -> Value`."""
        out: Dict[str, Value] = {}

        def walk(prefix, node):
            for key, val in node.items():
                full = f"{prefix}.{key}" if prefix else key
                if isinstance(val, dict):
                    walk(full, val)
                else:
                    out[full] = val
        walk("", self.bindings)
        return out

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent = f", parent={self.parent.name}" if self.parent else ""
        return f"<Closure {self.name} bindings=[{keys}]{parent}>"
