"""Canonical text rendering of the public API and atomic file output."""

from __future__ import annotations

import contextlib
import math
import os
import struct
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Tuple

from .bytecode import ClassFormatError, render_descriptor, render_method_descriptor
from .bytecode.constants import (
    ACC_VARARGS,
    CLASS_KEYWORDS,
    CLASS_MASK,
    FIELD_KEYWORDS,
    INTERFACE_MASK,
    METHOD_KEYWORDS,
    modifier_keywords,
)
from .errors import OutputError
from .filters import VisibilityFilter
from .logging import get_logger
from .models import ClassRecord, MemberRecord

BLOCK_TERMINATOR = "##"
MEMBER_INDENT = "  "
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}

logger = get_logger("writer")


class ApiWriter:
    """Renders included classes and their members as line-oriented blocks.

    A block is the class header (preceded by its visible annotations), one line
    per included method then field, and the ``##`` terminator.
    """

    def __init__(self, api_filter: VisibilityFilter) -> None:
        self._filter = api_filter

    def render(self, classes: Iterable[ClassRecord]) -> str:
        lines: List[str] = []
        for record in classes:
            lines.extend(self.render_class(record))
        return "".join(f"{line}\n" for line in lines)

    def render_class(self, record: ClassRecord) -> List[str]:
        lines = _annotation_lines(self._filter.class_annotations(record).visible, "")
        lines.append(class_header(record))
        for method in self._filter.public_methods(record):
            lines.extend(_annotation_lines(self._filter.member_annotations(method).visible, MEMBER_INDENT))
            lines.append(MEMBER_INDENT + method_line(method))
        for info in self._filter.public_fields(record):
            lines.extend(_annotation_lines(self._filter.member_annotations(info).visible, MEMBER_INDENT))
            lines.append(MEMBER_INDENT + field_line(info))
        lines.append(BLOCK_TERMINATOR)
        return lines


def class_header(record: ClassRecord) -> str:
    mask = INTERFACE_MASK if record.is_interface else CLASS_MASK
    parts = modifier_keywords(record.modifiers & mask, CLASS_KEYWORDS)
    if record.is_annotation:
        parts.extend(["@interface", record.name])
    elif record.is_interface:
        parts.extend(["interface", record.name])
        if record.interfaces:
            parts.extend(["extends", ", ".join(record.interfaces)])
    else:
        parts.extend(["class", record.name])
        if record.superclass:
            parts.extend(["extends", record.superclass])
        if record.interfaces:
            parts.extend(["implements", ", ".join(record.interfaces)])
    return " ".join(parts)


def method_line(method: MemberRecord) -> str:
    params, returns = _method_types(method)
    parts = modifier_keywords(method.modifiers, METHOD_KEYWORDS)
    if not method.is_constructor:
        parts.append(returns)
    parts.append(f"{method.name}({', '.join(params)})")
    return " ".join(parts)


def field_line(info: MemberRecord) -> str:
    parts = modifier_keywords(info.modifiers, FIELD_KEYWORDS)
    parts.extend([_field_type(info), info.name])
    line = " ".join(parts)
    if info.constant_value is not None:
        line += " = " + format_constant(info.constant_value, info.descriptor)
    return line


def format_constant(value: Any, descriptor: str) -> str:
    """Render a compile-time constant the way Java source would spell it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        quote = "'" if descriptor == "C" else '"'
        return quote + _escape(value, quote) + quote
    if isinstance(value, float):
        return java_float(value, single=descriptor == "F")
    return str(value)


def java_float(value: float, *, single: bool = False) -> str:
    """Format ``value`` like ``Double.toString``/``Float.toString``."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "-0.0" if math.copysign(1.0, value) < 0 else "0.0"

    digits = Decimal(_shortest_repr(value, single))
    if 1e-3 <= abs(value) < 1e7:
        text = format(digits, "f")
        return text if "." in text else text + ".0"

    sign, digit_tuple, exponent = digits.as_tuple()
    significant = "".join(str(digit) for digit in digit_tuple).rstrip("0") or "0"
    power = int(exponent) + len(digit_tuple) - 1
    mantissa = significant[0] + "." + (significant[1:] or "0")
    return ("-" if sign else "") + f"{mantissa}E{power}"


def write_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` so that readers never observe a partial file."""
    temp_path: Path | None = None
    replaced = False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="\n",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(text)
        os.replace(temp_path, path)
        replaced = True
    except OSError as exc:
        raise OutputError(f"Failed to write API file {path}: {exc}") from exc
    finally:
        if temp_path is not None and not replaced:
            with contextlib.suppress(OSError):
                temp_path.unlink()
    logger.debug("Wrote %d bytes to %s", len(text.encode("utf-8")), path)


def _annotation_lines(names: Sequence[str], indent: str) -> List[str]:
    return [f"{indent}@{name.rsplit('.', 1)[-1]}" for name in names]


def _method_types(method: MemberRecord) -> Tuple[List[str], str]:
    varargs = bool(method.modifiers & ACC_VARARGS)
    if method.signature:
        try:
            return render_method_descriptor(method.signature, varargs=varargs)
        except ClassFormatError as exc:
            logger.debug("Ignoring generic signature of %s.%s: %s", method.owner, method.name, exc)
    return render_method_descriptor(method.descriptor, varargs=varargs)


def _field_type(info: MemberRecord) -> str:
    if info.signature:
        try:
            return render_descriptor(info.signature)
        except ClassFormatError as exc:
            logger.debug("Ignoring generic signature of %s.%s: %s", info.owner, info.name, exc)
    return render_descriptor(info.descriptor)


def _shortest_repr(value: float, single: bool) -> str:
    if not single:
        return repr(value)
    for precision in range(1, 10):
        candidate = f"{value:.{precision}g}"
        if struct.unpack(">f", struct.pack(">f", float(candidate)))[0] == value:
            return candidate
    return repr(value)


def _escape(text: str, quote: str) -> str:
    escaped: List[str] = []
    for char in text:
        if char == quote or char == "\\":
            escaped.append("\\" + char)
        elif char in _CONTROL_ESCAPES:
            escaped.append(_CONTROL_ESCAPES[char])
        elif char.isprintable() and not "\ud800" <= char <= "\udfff":
            escaped.append(char)
        else:
            escaped.append(_unicode_escape(char))
    return "".join(escaped)


def _unicode_escape(char: str) -> str:
    code = ord(char)
    if code <= 0xFFFF:
        return f"\\u{code:04x}"
    # Supplementary characters are spelled as their UTF-16 surrogate pair.
    high, low = divmod(code - 0x10000, 0x400)
    return f"\\u{0xD800 + high:04x}\\u{0xDC00 + low:04x}"


__all__ = [
    "ApiWriter",
    "BLOCK_TERMINATOR",
    "class_header",
    "field_line",
    "format_constant",
    "java_float",
    "method_line",
    "write_atomic",
]
