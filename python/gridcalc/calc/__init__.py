"""gridcalc.calc - formula parsing, dependency tracking and recalculation."""

from gridcalc.calc._ast import BinaryOp, CellRef, Expression, FunctionCall, Literal, RangeRef, UnaryOp
from gridcalc.calc._engine import EngineState, RecalcEngine
from gridcalc.calc._evaluator import Evaluator
from gridcalc.calc._functions import CellError, CellValue, ErrorKind, FunctionRegistry, RangeValue, is_supported
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import function_names, parse, parse_command, parse_content, references
from gridcalc.calc._protocol import CalcEngine, CellDelta, RecalcResult

__all__ = [
    "BinaryOp",
    "CalcEngine",
    "CellDelta",
    "CellError",
    "CellRef",
    "CellValue",
    "DependencyGraph",
    "EngineState",
    "ErrorKind",
    "Evaluator",
    "Expression",
    "FunctionCall",
    "FunctionRegistry",
    "Literal",
    "RangeRef",
    "RangeValue",
    "RecalcEngine",
    "RecalcResult",
    "UnaryOp",
    "function_names",
    "is_supported",
    "parse",
    "parse_command",
    "parse_content",
    "references",
]
