"""Assemble real JVM class files and jars for tests without a JDK."""

from __future__ import annotations

import struct
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from apiscan.bytecode.constants import (
    ACC_ABSTRACT,
    ACC_ANNOTATION,
    ACC_ENUM,
    ACC_FINAL,
    ACC_INTERFACE,
    ACC_PUBLIC,
    ACC_STATIC,
    ACC_SUPER,
)

_MAGIC = 0xCAFEBABE
_JAVA_8 = 52

_VISIBLE = "RuntimeVisibleAnnotations"
_INVISIBLE = "RuntimeInvisibleAnnotations"


@dataclass
class Annotation:
    """An annotation to attach to a class or member."""

    type_name: str
    values: Dict[str, Any] = field(default_factory=dict)
    visible: bool = True


@dataclass
class Member:
    name: str
    descriptor: str
    access: int
    annotations: Sequence[Annotation | str] = ()
    signature: Optional[str] = None
    constant: Any = None
    default: Any = None


class ConstantPool:
    """Allocates constant-pool entries, reusing identical ones."""

    def __init__(self) -> None:
        self._entries: List[bytes] = []
        self._lookup: Dict[Tuple[Any, ...], int] = {}
        self._next = 1

    def _add(self, key: Tuple[Any, ...], payload: bytes, slots: int = 1) -> int:
        if key in self._lookup:
            return self._lookup[key]
        index = self._next
        self._entries.append(payload)
        self._lookup[key] = index
        self._next += slots
        return index

    def utf8(self, text: str) -> int:
        raw = text.encode("utf-8")
        return self._add(("utf8", text), struct.pack(">BH", 1, len(raw)) + raw)

    def class_ref(self, binary_name: str) -> int:
        name_index = self.utf8(binary_name.replace(".", "/"))
        return self._add(("class", binary_name), struct.pack(">BH", 7, name_index))

    def integer(self, value: int) -> int:
        return self._add(("int", value), struct.pack(">Bi", 3, value))

    def float32(self, value: float) -> int:
        return self._add(("float", value), struct.pack(">Bf", 4, value))

    def long(self, value: int) -> int:
        return self._add(("long", value), struct.pack(">Bq", 5, value), slots=2)

    def double(self, value: float) -> int:
        return self._add(("double", value), struct.pack(">Bd", 6, value), slots=2)

    def string(self, value: str) -> int:
        text_index = self.utf8(value)
        return self._add(("string", value), struct.pack(">BH", 8, text_index))

    def name_and_type(self, name: str, descriptor: str) -> int:
        name_index = self.utf8(name)
        type_index = self.utf8(descriptor)
        return self._add(("nat", name, descriptor), struct.pack(">BHH", 12, name_index, type_index))

    def to_bytes(self) -> bytes:
        return struct.pack(">H", self._next) + b"".join(self._entries)


def descriptor_of(binary_name: str) -> str:
    return "L" + binary_name.replace(".", "/") + ";"


class ClassFileBuilder:
    """Fluent builder producing the bytes of one class file."""

    def __init__(
        self,
        name: str,
        *,
        access: int = ACC_PUBLIC | ACC_SUPER,
        superclass: Optional[str] = "java.lang.Object",
        interfaces: Iterable[str] = (),
        annotations: Iterable[Annotation | str] = (),
        signature: Optional[str] = None,
    ) -> None:
        self.name = name
        self.access = access
        self.superclass = superclass
        self.interfaces = list(interfaces)
        self.annotations = list(annotations)
        self.signature = signature
        self.fields: List[Member] = []
        self.methods: List[Member] = []
        self.inner_classes: List[Tuple[str, Optional[str], Optional[str], int]] = []
        self.enclosing: Optional[Tuple[str, Optional[str], Optional[str]]] = None

    @property
    def entry_name(self) -> str:
        return self.name.replace(".", "/") + ".class"

    def field(
        self,
        name: str,
        descriptor: str,
        access: int = ACC_PUBLIC,
        *,
        annotations: Sequence[Annotation | str] = (),
        constant: Any = None,
        signature: Optional[str] = None,
    ) -> "ClassFileBuilder":
        self.fields.append(Member(name, descriptor, access, annotations, signature, constant))
        return self

    def method(
        self,
        name: str,
        descriptor: str,
        access: int = ACC_PUBLIC,
        *,
        annotations: Sequence[Annotation | str] = (),
        signature: Optional[str] = None,
        default: Any = None,
    ) -> "ClassFileBuilder":
        self.methods.append(
            Member(name, descriptor, access, annotations, signature, default=default)
        )
        return self

    def constructor(self, descriptor: str = "()V", access: int = ACC_PUBLIC, **kwargs: Any) -> "ClassFileBuilder":
        return self.method("<init>", descriptor, access, **kwargs)

    def inner_class(
        self, inner: str, outer: Optional[str], simple_name: Optional[str], access: int
    ) -> "ClassFileBuilder":
        self.inner_classes.append((inner, outer, simple_name, access))
        return self

    def enclosing_method(
        self, owner: str, name: Optional[str] = None, descriptor: Optional[str] = None
    ) -> "ClassFileBuilder":
        self.enclosing = (owner, name, descriptor)
        return self

    def build(self) -> bytes:
        pool = ConstantPool()
        this_index = pool.class_ref(self.name)
        super_index = pool.class_ref(self.superclass) if self.superclass else 0
        interface_indexes = [pool.class_ref(name) for name in self.interfaces]
        fields = [self._member(pool, member, is_field=True) for member in self.fields]
        methods = [self._member(pool, member, is_field=False) for member in self.methods]
        attributes = self._class_attributes(pool)

        body = struct.pack(">HHH", self.access, this_index, super_index)
        body += struct.pack(">H", len(interface_indexes))
        body += b"".join(struct.pack(">H", index) for index in interface_indexes)
        body += struct.pack(">H", len(fields)) + b"".join(fields)
        body += struct.pack(">H", len(methods)) + b"".join(methods)
        body += struct.pack(">H", len(attributes)) + b"".join(attributes)
        return struct.pack(">IHH", _MAGIC, 0, _JAVA_8) + pool.to_bytes() + body

    # ------------------------------------------------------------------
    # Encoding helpers

    def _class_attributes(self, pool: ConstantPool) -> List[bytes]:
        attributes = _annotation_attributes(pool, self.annotations)
        if self.signature:
            attributes.append(_attribute(pool, "Signature", struct.pack(">H", pool.utf8(self.signature))))
        if self.inner_classes:
            body = struct.pack(">H", len(self.inner_classes))
            for inner, outer, simple_name, access in self.inner_classes:
                body += struct.pack(
                    ">HHHH",
                    pool.class_ref(inner),
                    pool.class_ref(outer) if outer else 0,
                    pool.utf8(simple_name) if simple_name else 0,
                    access,
                )
            attributes.append(_attribute(pool, "InnerClasses", body))
        if self.enclosing is not None:
            owner, name, descriptor = self.enclosing
            method_index = pool.name_and_type(name, descriptor) if name and descriptor else 0
            attributes.append(
                _attribute(pool, "EnclosingMethod", struct.pack(">HH", pool.class_ref(owner), method_index))
            )
        return attributes

    def _member(self, pool: ConstantPool, member: Member, *, is_field: bool) -> bytes:
        attributes = _annotation_attributes(pool, member.annotations)
        if member.signature:
            attributes.append(_attribute(pool, "Signature", struct.pack(">H", pool.utf8(member.signature))))
        if is_field and member.constant is not None:
            index = _constant_index(pool, member.constant, member.descriptor)
            attributes.append(_attribute(pool, "ConstantValue", struct.pack(">H", index)))
        if not is_field and member.default is not None:
            attributes.append(_attribute(pool, "AnnotationDefault", _element_value(pool, member.default)))
        header = struct.pack(
            ">HHH", member.access, pool.utf8(member.name), pool.utf8(member.descriptor)
        )
        return header + struct.pack(">H", len(attributes)) + b"".join(attributes)


def _attribute(pool: ConstantPool, name: str, body: bytes) -> bytes:
    return struct.pack(">HI", pool.utf8(name), len(body)) + body


def _annotation_attributes(pool: ConstantPool, annotations: Iterable[Annotation | str]) -> List[bytes]:
    normalised = [Annotation(item) if isinstance(item, str) else item for item in annotations]
    attributes = []
    for attr_name, visible in ((_VISIBLE, True), (_INVISIBLE, False)):
        selected = [annotation for annotation in normalised if annotation.visible == visible]
        if selected:
            body = struct.pack(">H", len(selected))
            body += b"".join(_annotation(pool, annotation) for annotation in selected)
            attributes.append(_attribute(pool, attr_name, body))
    return attributes


def _annotation(pool: ConstantPool, annotation: Annotation) -> bytes:
    data = struct.pack(">HH", pool.utf8(descriptor_of(annotation.type_name)), len(annotation.values))
    for key, value in annotation.values.items():
        data += struct.pack(">H", pool.utf8(key)) + _element_value(pool, value)
    return data


def _element_value(pool: ConstantPool, value: Any) -> bytes:
    if isinstance(value, bool):
        return struct.pack(">BH", ord("Z"), pool.integer(int(value)))
    if isinstance(value, int):
        return struct.pack(">BH", ord("I"), pool.integer(value))
    if isinstance(value, float):
        return struct.pack(">BH", ord("D"), pool.double(value))
    if isinstance(value, str):
        return struct.pack(">BH", ord("s"), pool.utf8(value))
    if isinstance(value, Annotation):
        return b"@" + _annotation(pool, value)
    if isinstance(value, (list, tuple)):
        return struct.pack(">BH", ord("["), len(value)) + b"".join(
            _element_value(pool, item) for item in value
        )
    raise TypeError(f"Unsupported annotation value: {value!r}")


def _constant_index(pool: ConstantPool, value: Any, descriptor: str) -> int:
    if descriptor in ("I", "S", "B"):
        return pool.integer(int(value))
    if descriptor == "Z":
        return pool.integer(1 if value else 0)
    if descriptor == "C":
        return pool.integer(ord(value))
    if descriptor == "J":
        return pool.long(int(value))
    if descriptor == "F":
        return pool.float32(float(value))
    if descriptor == "D":
        return pool.double(float(value))
    return pool.string(str(value))


# ----------------------------------------------------------------------
# Shorthands for common declarations


def annotation_type(
    name: str,
    *,
    meta: Iterable[Annotation | str] = (),
    access: int = ACC_PUBLIC,
) -> ClassFileBuilder:
    """Declare an annotation type, optionally meta-annotated."""
    return ClassFileBuilder(
        name,
        access=access | ACC_INTERFACE | ACC_ABSTRACT | ACC_ANNOTATION,
        interfaces=["java.lang.annotation.Annotation"],
        annotations=meta,
    )


def interface_type(
    name: str,
    *,
    extends: Iterable[str] = (),
    annotations: Iterable[Annotation | str] = (),
    access: int = ACC_PUBLIC,
) -> ClassFileBuilder:
    return ClassFileBuilder(
        name,
        access=access | ACC_INTERFACE | ACC_ABSTRACT,
        interfaces=extends,
        annotations=annotations,
    )


def enum_type(name: str, constants: Iterable[str], *, constructor_access: int) -> ClassFileBuilder:
    """Declare an enum the way javac lays it out."""
    builder = ClassFileBuilder(
        name,
        access=ACC_PUBLIC | ACC_FINAL | ACC_SUPER | ACC_ENUM,
        superclass="java.lang.Enum",
        signature=f"Ljava/lang/Enum<{descriptor_of(name)}>;",
    )
    for constant in constants:
        builder.field(constant, descriptor_of(name), ACC_PUBLIC | ACC_STATIC | ACC_FINAL | ACC_ENUM)
    builder.method("values", f"()[{descriptor_of(name)}", ACC_PUBLIC | ACC_STATIC)
    builder.method("valueOf", f"(Ljava/lang/String;){descriptor_of(name)}", ACC_PUBLIC | ACC_STATIC)
    builder.constructor("(Ljava/lang/String;I)V", constructor_access, signature="()V")
    return builder


def write_jar(path: Path, classes: Iterable[ClassFileBuilder], resources: Dict[str, bytes] | None = None) -> Path:
    """Write ``classes`` (and optional extra entries) into a jar at ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        for builder in classes:
            archive.writestr(builder.entry_name, builder.build())
        for entry, data in (resources or {}).items():
            archive.writestr(entry, data)
    return path


def corrupt_entry(path: Path, entry: str) -> None:
    """Scramble the compressed bytes of ``entry`` while keeping the zip directory valid."""
    with zipfile.ZipFile(path) as archive:
        info = archive.getinfo(entry)
    data = bytearray(path.read_bytes())
    offset = info.header_offset
    name_length, extra_length = struct.unpack("<HH", data[offset + 26 : offset + 30])
    start = offset + 30 + name_length + extra_length
    for index in range(start + 2, start + info.compress_size):
        data[index] ^= 0x5A
    path.write_bytes(bytes(data))


def write_class_dir(root: Path, classes: Iterable[ClassFileBuilder]) -> Path:
    """Lay ``classes`` out as a compiler output directory under ``root``."""
    for builder in classes:
        target = root / builder.entry_name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(builder.build())
    return root


class ArtifactBuilder:
    """Writes jars into a throwaway directory, mirroring a build's libs folder."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "libs"
        self.root.mkdir()

    def jar(self, name: str, *classes: ClassFileBuilder, resources: Dict[str, bytes] | None = None) -> Path:
        return write_jar(self.root / name, classes, resources)

    def classes_dir(self, name: str, *classes: ClassFileBuilder) -> Path:
        return write_class_dir(self.root / name, classes)


__all__ = [
    "Annotation",
    "ArtifactBuilder",
    "ClassFileBuilder",
    "ConstantPool",
    "corrupt_entry",
    "annotation_type",
    "descriptor_of",
    "enum_type",
    "interface_type",
    "write_class_dir",
    "write_jar",
]
