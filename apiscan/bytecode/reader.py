"""Parser for JVM class files.

Only the parts of the format that describe a type's declared surface are
decoded: the constant pool, access flags, super types, fields, methods and the
attributes listed in ``_CLASS_ATTRIBUTES``/``_MEMBER_ATTRIBUTES``. Code and
debugging attributes are skipped without inspection.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

_MAGIC = 0xCAFEBABE

_UTF8 = 1
_INTEGER = 3
_FLOAT = 4
_LONG = 5
_DOUBLE = 6
_CLASS = 7
_STRING = 8
_FIELDREF = 9
_METHODREF = 10
_INTERFACE_METHODREF = 11
_NAME_AND_TYPE = 12
_METHOD_HANDLE = 15
_METHOD_TYPE = 16
_DYNAMIC = 17
_INVOKE_DYNAMIC = 18
_MODULE = 19
_PACKAGE = 20

# Payload size in bytes for constant-pool tags that carry no variable data.
_FIXED_SIZES = {
    _INTEGER: 4,
    _FLOAT: 4,
    _LONG: 8,
    _DOUBLE: 8,
    _CLASS: 2,
    _STRING: 2,
    _FIELDREF: 4,
    _METHODREF: 4,
    _INTERFACE_METHODREF: 4,
    _NAME_AND_TYPE: 4,
    _METHOD_HANDLE: 3,
    _METHOD_TYPE: 2,
    _DYNAMIC: 4,
    _INVOKE_DYNAMIC: 4,
    _MODULE: 2,
    _PACKAGE: 2,
}

_VISIBLE_ANNOTATIONS = "RuntimeVisibleAnnotations"
_INVISIBLE_ANNOTATIONS = "RuntimeInvisibleAnnotations"


class ClassFormatError(ValueError):
    """Raised when bytes do not form a readable class file."""


@dataclass(frozen=True)
class EnumConstant:
    """An enum constant used as an annotation element value."""

    type_name: str
    const_name: str


@dataclass(frozen=True)
class ClassLiteral:
    """A class literal used as an annotation element value."""

    descriptor: str


@dataclass
class AnnotationInfo:
    """One annotation occurrence with its decoded element values."""

    type_name: str
    values: Dict[str, Any] = field(default_factory=dict)
    visible: bool = True


@dataclass
class FieldInfo:
    access_flags: int
    name: str
    descriptor: str
    signature: Optional[str] = None
    constant_value: Any = None
    annotations: List[AnnotationInfo] = field(default_factory=list)


@dataclass
class MethodInfo:
    access_flags: int
    name: str
    descriptor: str
    signature: Optional[str] = None
    annotations: List[AnnotationInfo] = field(default_factory=list)
    annotation_default: Any = None


@dataclass
class InnerClassEntry:
    inner_name: str
    outer_name: Optional[str]
    simple_name: Optional[str]
    access_flags: int


@dataclass
class EnclosingMethod:
    owner: str
    method_name: Optional[str]
    method_descriptor: Optional[str]


@dataclass
class ClassFile:
    """Decoded class file. Class names use dotted binary form (``a.b.Outer$Inner``)."""

    major_version: int
    minor_version: int
    access_flags: int
    name: str
    superclass: Optional[str]
    interfaces: List[str]
    fields: List[FieldInfo]
    methods: List[MethodInfo]
    signature: Optional[str] = None
    annotations: List[AnnotationInfo] = field(default_factory=list)
    inner_classes: List[InnerClassEntry] = field(default_factory=list)
    enclosing_method: Optional[EnclosingMethod] = None


def internal_to_binary(name: str) -> str:
    """Convert an internal name (``java/util/Map$Entry``) to ``java.util.Map$Entry``."""
    return name.replace("/", ".")


def descriptor_to_binary(descriptor: str) -> str:
    """Return the binary class name of an object descriptor such as ``Lfoo/Bar;``."""
    if descriptor.startswith("L") and descriptor.endswith(";"):
        return internal_to_binary(descriptor[1:-1])
    return internal_to_binary(descriptor)


def decode_modified_utf8(raw: bytes) -> str:
    """Decode Java's modified UTF-8 (``C0 80`` nulls, CESU-8 surrogate pairs)."""
    try:
        text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    except UnicodeDecodeError as exc:
        raise ClassFormatError(f"Malformed constant pool string: {exc}") from exc
    if any("\ud800" <= ch <= "\udfff" for ch in text):
        text = text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")
    return text


class _Cursor:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise ClassFormatError("Unexpected end of class file")
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def unpack(self, fmt: str) -> Tuple[Any, ...]:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))

    def u1(self) -> int:
        return self.unpack(">B")[0]

    def u2(self) -> int:
        return self.unpack(">H")[0]

    def u4(self) -> int:
        return self.unpack(">I")[0]


class _ConstantPool:
    def __init__(self, cursor: _Cursor) -> None:
        count = cursor.u2()
        self._entries: List[Optional[Tuple[int, Any]]] = [None] * count
        index = 1
        while index < count:
            tag = cursor.u1()
            if tag == _UTF8:
                length = cursor.u2()
                self._entries[index] = (tag, decode_modified_utf8(cursor.take(length)))
            elif tag == _INTEGER:
                self._entries[index] = (tag, cursor.unpack(">i")[0])
            elif tag == _FLOAT:
                self._entries[index] = (tag, cursor.unpack(">f")[0])
            elif tag == _LONG:
                self._entries[index] = (tag, cursor.unpack(">q")[0])
            elif tag == _DOUBLE:
                self._entries[index] = (tag, cursor.unpack(">d")[0])
            elif tag in (_CLASS, _STRING, _METHOD_TYPE, _MODULE, _PACKAGE):
                self._entries[index] = (tag, cursor.u2())
            elif tag in _FIXED_SIZES:
                self._entries[index] = (tag, cursor.take(_FIXED_SIZES[tag]))
            else:
                raise ClassFormatError(f"Unknown constant pool tag {tag} at index {index}")
            # Longs and doubles occupy two slots.
            index += 2 if tag in (_LONG, _DOUBLE) else 1

    def _entry(self, index: int, *tags: int) -> Tuple[int, Any]:
        entry = self._entries[index] if 0 < index < len(self._entries) else None
        if entry is None:
            raise ClassFormatError(f"Invalid constant pool index {index}")
        if tags and entry[0] not in tags:
            raise ClassFormatError(f"Constant pool index {index} has tag {entry[0]}, expected {tags}")
        return entry

    def utf8(self, index: int) -> str:
        return self._entry(index, _UTF8)[1]

    def class_name(self, index: int) -> str:
        return internal_to_binary(self.utf8(self._entry(index, _CLASS)[1]))

    def optional_class_name(self, index: int) -> Optional[str]:
        return self.class_name(index) if index else None

    def constant(self, index: int) -> Any:
        tag, value = self._entry(index, _INTEGER, _FLOAT, _LONG, _DOUBLE, _STRING, _UTF8)
        if tag == _STRING:
            return self.utf8(value)
        return value

    def name_and_type(self, index: int) -> Tuple[str, str]:
        raw = self._entry(index, _NAME_AND_TYPE)[1]
        name_index, type_index = struct.unpack(">HH", raw)
        return self.utf8(name_index), self.utf8(type_index)


def parse_class(data: bytes) -> ClassFile:
    """Decode ``data`` into a :class:`ClassFile`."""
    cursor = _Cursor(data)
    if cursor.u4() != _MAGIC:
        raise ClassFormatError("Not a class file (bad magic number)")
    minor, major = cursor.u2(), cursor.u2()
    pool = _ConstantPool(cursor)

    access_flags = cursor.u2()
    name = pool.class_name(cursor.u2())
    superclass = pool.optional_class_name(cursor.u2())
    interfaces = [pool.class_name(cursor.u2()) for _ in range(cursor.u2())]

    fields = [_read_field(cursor, pool) for _ in range(cursor.u2())]
    methods = [_read_method(cursor, pool) for _ in range(cursor.u2())]

    class_file = ClassFile(
        major_version=major,
        minor_version=minor,
        access_flags=access_flags,
        name=name,
        superclass=superclass,
        interfaces=interfaces,
        fields=fields,
        methods=methods,
    )
    for attr_name, body in _iter_attributes(cursor, pool):
        attr = _Cursor(body)
        if attr_name == "Signature":
            class_file.signature = pool.utf8(attr.u2())
        elif attr_name in (_VISIBLE_ANNOTATIONS, _INVISIBLE_ANNOTATIONS):
            class_file.annotations.extend(
                _read_annotations(attr, pool, visible=attr_name == _VISIBLE_ANNOTATIONS)
            )
        elif attr_name == "InnerClasses":
            class_file.inner_classes.extend(_read_inner_classes(attr, pool))
        elif attr_name == "EnclosingMethod":
            owner = pool.class_name(attr.u2())
            method_index = attr.u2()
            method_name, method_descriptor = (
                pool.name_and_type(method_index) if method_index else (None, None)
            )
            class_file.enclosing_method = EnclosingMethod(owner, method_name, method_descriptor)
    return class_file


def _iter_attributes(cursor: _Cursor, pool: _ConstantPool) -> List[Tuple[str, bytes]]:
    attributes = []
    for _ in range(cursor.u2()):
        attr_name = pool.utf8(cursor.u2())
        length = cursor.u4()
        attributes.append((attr_name, cursor.take(length)))
    return attributes


def _read_field(cursor: _Cursor, pool: _ConstantPool) -> FieldInfo:
    access_flags = cursor.u2()
    info = FieldInfo(
        access_flags=access_flags,
        name=pool.utf8(cursor.u2()),
        descriptor=pool.utf8(cursor.u2()),
    )
    for attr_name, body in _iter_attributes(cursor, pool):
        attr = _Cursor(body)
        if attr_name == "ConstantValue":
            info.constant_value = _coerce_constant(pool.constant(attr.u2()), info.descriptor)
        elif attr_name == "Signature":
            info.signature = pool.utf8(attr.u2())
        elif attr_name in (_VISIBLE_ANNOTATIONS, _INVISIBLE_ANNOTATIONS):
            info.annotations.extend(
                _read_annotations(attr, pool, visible=attr_name == _VISIBLE_ANNOTATIONS)
            )
    return info


def _read_method(cursor: _Cursor, pool: _ConstantPool) -> MethodInfo:
    access_flags = cursor.u2()
    info = MethodInfo(
        access_flags=access_flags,
        name=pool.utf8(cursor.u2()),
        descriptor=pool.utf8(cursor.u2()),
    )
    for attr_name, body in _iter_attributes(cursor, pool):
        attr = _Cursor(body)
        if attr_name == "Signature":
            info.signature = pool.utf8(attr.u2())
        elif attr_name in (_VISIBLE_ANNOTATIONS, _INVISIBLE_ANNOTATIONS):
            info.annotations.extend(
                _read_annotations(attr, pool, visible=attr_name == _VISIBLE_ANNOTATIONS)
            )
        elif attr_name == "AnnotationDefault":
            info.annotation_default = _read_element_value(attr, pool)
    return info


def _read_inner_classes(cursor: _Cursor, pool: _ConstantPool) -> List[InnerClassEntry]:
    entries = []
    for _ in range(cursor.u2()):
        inner_index, outer_index, name_index, flags = cursor.unpack(">HHHH")
        entries.append(
            InnerClassEntry(
                inner_name=pool.class_name(inner_index),
                outer_name=pool.optional_class_name(outer_index),
                simple_name=pool.utf8(name_index) if name_index else None,
                access_flags=flags,
            )
        )
    return entries


def _read_annotations(
    cursor: _Cursor, pool: _ConstantPool, *, visible: bool
) -> List[AnnotationInfo]:
    return [_read_annotation(cursor, pool, visible=visible) for _ in range(cursor.u2())]


def _read_annotation(cursor: _Cursor, pool: _ConstantPool, *, visible: bool = True) -> AnnotationInfo:
    type_name = descriptor_to_binary(pool.utf8(cursor.u2()))
    values: Dict[str, Any] = {}
    for _ in range(cursor.u2()):
        element_name = pool.utf8(cursor.u2())
        values[element_name] = _read_element_value(cursor, pool)
    return AnnotationInfo(type_name=type_name, values=values, visible=visible)


def _read_element_value(cursor: _Cursor, pool: _ConstantPool) -> Any:
    tag = chr(cursor.u1())
    if tag in "BIJS":
        return int(pool.constant(cursor.u2()))
    if tag in "DF":
        return float(pool.constant(cursor.u2()))
    if tag == "Z":
        return bool(pool.constant(cursor.u2()))
    if tag == "C":
        return chr(pool.constant(cursor.u2()))
    if tag == "s":
        return pool.utf8(cursor.u2())
    if tag == "e":
        type_name = descriptor_to_binary(pool.utf8(cursor.u2()))
        return EnumConstant(type_name, pool.utf8(cursor.u2()))
    if tag == "c":
        return ClassLiteral(pool.utf8(cursor.u2()))
    if tag == "@":
        return _read_annotation(cursor, pool)
    if tag == "[":
        return [_read_element_value(cursor, pool) for _ in range(cursor.u2())]
    raise ClassFormatError(f"Unknown annotation element tag {tag!r}")


def _coerce_constant(value: Any, descriptor: str) -> Any:
    if descriptor == "Z":
        return bool(value)
    if descriptor == "C":
        return chr(value)
    return value


__all__ = [
    "AnnotationInfo",
    "ClassFile",
    "ClassFormatError",
    "ClassLiteral",
    "EnclosingMethod",
    "EnumConstant",
    "FieldInfo",
    "InnerClassEntry",
    "MethodInfo",
    "decode_modified_utf8",
    "descriptor_to_binary",
    "internal_to_binary",
    "parse_class",
]
