from crow.crow_datatypes import (
    Value, Kind, Lambda, Closure, CallFrame, Token, TokenKind, ErrorKind,
    NULL, TRUE, FALSE,
    CrowError, ParseError, UnknownVariableError, UndefinedOperatorError,
    UndefinedArithmeticError, NotCallableError, ArityError, UnknownModuleError,
    HostCallError, EvaluationError,
)
from crow.crow_config import CrowConfig
from crow.crow_host import CrowHost, HostBridge, crow_api_method
from crow.crow_interpreter import Evaluator
from crow.crow_printer import Printer
from crow.crow_runtime import ScriptRunner, ExecutionResult, StdLib, format_error
from crow.crow_transformer import build_ast

__all__ = [
    "Value", "Kind", "Lambda", "Closure", "CallFrame", "Token", "TokenKind", "ErrorKind",
    "NULL", "TRUE", "FALSE",
    "CrowError", "ParseError", "UnknownVariableError", "UndefinedOperatorError",
    "UndefinedArithmeticError", "NotCallableError", "ArityError", "UnknownModuleError",
    "HostCallError", "EvaluationError",
    "CrowConfig", "CrowHost", "HostBridge", "crow_api_method", "Evaluator",
    "Printer", "ScriptRunner", "ExecutionResult", "StdLib", "format_error", "build_ast",
]
