"""
Exec dispatch: resolve an export, coerce string arguments, render results.

Arguments are coerced positionally, one per declared parameter. Missing
arguments are an error; extra trailing arguments are ignored, matching the
behaviour of ``wasmtime run --invoke``.
"""

import logging
import math
import re
import struct
from decimal import Decimal
from typing import Any, Callable, List, Optional, Sequence

from wasmtime import Func, Store, Trap, Val, ValType, WasmtimeError

from wasilet.exceptions import ArgumentError, ExecutionError, ExportLookupError
from wasilet.modules.exec import Command

logger = logging.getLogger("wasilet.runtime.dispatch")

_INTEGER = re.compile(r"[+-]?[0-9]+")
_I32_RANGE = (-(2 ** 31), 2 ** 31 - 1)
_I64_RANGE = (-(2 ** 63), 2 ** 63 - 1)


def _parse_int(text: str, bounds) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    low, high = bounds
    if value < low:
        raise ValueError("number too small to fit in target type")
    if value > high:
        raise ValueError("number too large to fit in target type")
    return value


def _parse_float(text: str) -> float:
    # float() also accepts surrounding whitespace and digit separators
    if not text or text != text.strip() or "_" in text:
        raise ValueError("invalid float literal")
    return float(text)


def _round_f32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


_COERCERS = (
    (ValType.i32(), lambda text: Val.i32(_parse_int(text, _I32_RANGE))),
    (ValType.i64(), lambda text: Val.i64(_parse_int(text, _I64_RANGE))),
    (ValType.f32(), lambda text: Val.f32(_parse_float(text))),
    (ValType.f64(), lambda text: Val.f64(_parse_float(text))),
)


def _coercer_for(param: ValType) -> Optional[Callable[[str], Val]]:
    for kind, coerce in _COERCERS:
        if param == kind:
            return coerce
    return None


def coerce_args(params: Sequence[ValType], args: Sequence[str]) -> List[Val]:
    """
    Convert string arguments into typed values for a call.

    Args:
        params: Declared parameter types of the export
        args: Positional string arguments from the exec request

    Returns:
        One typed value per declared parameter

    Raises:
        ArgumentError: Too few arguments, an unsupported parameter type,
            or a value that does not parse as its parameter type
    """
    remaining = iter(args)
    values = []
    for index, param in enumerate(params):
        arg = next(remaining, None)
        if arg is None:
            raise ArgumentError("Error parsing the args: Not enough arguments")

        coerce = _coercer_for(param)
        if coerce is None:
            raise ArgumentError(f"Error parsing the args: Unsupported argument type {param}")

        try:
            values.append(coerce(arg))
        except (ValueError, OverflowError) as e:
            raise ArgumentError(
                f"Error parsing the args: argument {index} ({arg!r}) is not a valid {param}: {e}"
            ) from e
    return values


def _format_decimal(digits: str) -> str:
    text = format(Decimal(digits), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_float(value: float, single: bool) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if not single:
        return _format_decimal(repr(value))

    # shortest decimal that survives a round trip through single precision
    for precision in range(1, 10):
        digits = f"{value:.{precision}g}"
        if _round_f32(float(digits)) == value:
            return _format_decimal(digits)
    return _format_decimal(repr(value))


def render_value(kind: ValType, value: Any) -> str:
    """Render one returned value in its canonical decimal form."""
    if kind == ValType.f32():
        return _format_float(value, single=True)
    if kind == ValType.f64():
        return _format_float(value, single=False)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Func) or kind == ValType.funcref():
        return "<funcref>"
    return "<externref>"


def render_results(result_types: Sequence[ValType], results: Any) -> str:
    """Render a call's return value(s), one per line."""
    if results is None:
        values = []
    elif len(result_types) > 1:
        values = list(results)
    else:
        values = [results]
    return "\n".join(render_value(kind, value) for kind, value in zip(result_types, values))


def dispatch_command(store: Store, exports, command: Command) -> str:
    """
    Run one exec command against an instance's exports.

    Must be called on the worker thread that owns ``store``.

    Raises:
        ExportLookupError: No exported function named ``command.function``
        ArgumentError: The arguments do not fit the export's signature
        ExecutionError: The call trapped or was interrupted
    """
    func = exports.get(command.function)
    if not isinstance(func, Func):
        raise ExportLookupError(command.function)

    func_type = func.type(store)
    args = coerce_args(func_type.params, command.args)
    logger.info("Parsed args: %s", [arg.value for arg in args])

    try:
        results = func(store, *args)
    except (Trap, WasmtimeError) as e:
        raise ExecutionError(f"Error executing command: {e}") from e

    message = render_results(func_type.results, results)
    logger.info("Exec command result: %s", message)
    return message
