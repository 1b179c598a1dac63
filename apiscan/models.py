"""Core data models shared across apiscan components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

ClassKind = Literal["class", "interface", "annotation", "enum"]
MemberKind = Literal["method", "constructor", "field"]

CONSTRUCTOR_NAME = "<init>"


@dataclass(frozen=True)
class ScanTarget:
    """One artifact to scan together with the classpath it is resolved against."""

    source: Path
    classpath: Tuple[Path, ...]
    output: Path


@dataclass
class MemberRecord:
    """A declared method, constructor or field.

    ``constant_value`` is the compile-time constant of a static final field.
    """

    name: str
    descriptor: str
    modifiers: int
    owner: str
    kind: MemberKind
    annotations: List[str] = field(default_factory=list)
    signature: Optional[str] = None
    constant_value: Any = None

    @property
    def is_constructor(self) -> bool:
        return self.kind == "constructor"

    @property
    def sort_key(self) -> Tuple[str, str]:
        return self.name, self.descriptor


@dataclass
class ClassRecord:
    """Declared metadata for one class, interface, enum or annotation type.

    ``modifiers`` follows reflective ``Class.getModifiers()`` semantics: for a
    nested class it holds the flags from its ``InnerClasses`` entry.
    """

    name: str
    kind: ClassKind
    modifiers: int
    superclass: Optional[str] = None
    interfaces: List[str] = field(default_factory=list)
    annotations: List[str] = field(default_factory=list)
    methods: List[MemberRecord] = field(default_factory=list)
    fields: List[MemberRecord] = field(default_factory=list)
    is_external: bool = False
    is_synthetic: bool = False
    enclosing_method: Optional[str] = None
    annotation_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    signature: Optional[str] = None

    @property
    def package(self) -> str:
        head, _, _ = self.name.rpartition(".")
        return head

    @property
    def is_annotation(self) -> bool:
        return self.kind == "annotation"

    @property
    def is_interface(self) -> bool:
        return self.kind in ("interface", "annotation")


@dataclass(frozen=True)
class AnnotationNames:
    """Annotation names on one entity, split by whether they are rendered."""

    visible: Tuple[str, ...] = ()
    hidden: Tuple[str, ...] = ()


__all__ = [
    "AnnotationNames",
    "CONSTRUCTOR_NAME",
    "ClassKind",
    "ClassRecord",
    "MemberKind",
    "MemberRecord",
    "ScanTarget",
]
