"""Enumerate every class reachable from a scan target."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .bytecode import ClassFile
from .bytecode.constants import (
    ACC_ANNOTATION,
    ACC_ENUM,
    ACC_INTERFACE,
    ACC_SYNTHETIC,
)
from .classpath import ClassUniverseHandle
from .logging import get_logger
from .models import CONSTRUCTOR_NAME, ClassKind, ClassRecord, MemberRecord

logger = get_logger("universe")


@dataclass
class ClassUniverse:
    """All class records reachable from one scan target.

    ``records`` also holds classes that are only needed for hierarchy walks
    (excluded artifact classes, dependencies, unresolved placeholders);
    ``candidates`` names the classes the filter pipeline considers.
    """

    records: Dict[str, ClassRecord] = field(default_factory=dict)
    candidates: List[str] = field(default_factory=list)

    def get(self, name: str) -> Optional[ClassRecord]:
        return self.records.get(name)

    def classes(self) -> List[ClassRecord]:
        return [self.records[name] for name in self.candidates]

    def annotations(self) -> List[ClassRecord]:
        return [record for record in self.records.values() if record.is_annotation]

    def superclass_chain(self, record: ClassRecord) -> List[ClassRecord]:
        """Return the superclasses of ``record`` nearest first, as far as they resolve."""
        chain: List[ClassRecord] = []
        seen = {record.name}
        current = record.superclass
        while current and current not in seen:
            seen.add(current)
            parent = self.records.get(current)
            if parent is None:
                break
            chain.append(parent)
            current = parent.superclass
        return chain

    def implemented_interfaces(self, record: ClassRecord) -> List[ClassRecord]:
        """Interfaces of ``record`` and its superclasses, with their super-interfaces."""
        roots = [record]
        if not record.is_interface:
            roots.extend(self.superclass_chain(record))
        pending: Deque[str] = deque(name for root in roots for name in root.interfaces)
        found: Dict[str, ClassRecord] = {}
        while pending:
            name = pending.popleft()
            if name in found or name == record.name:
                continue
            interface = self.records.get(name)
            if interface is None:
                continue
            found[name] = interface
            pending.extend(interface.interfaces)
        return list(found.values())

    def extends(self, record: ClassRecord, base_name: str) -> bool:
        return any(parent.name == base_name for parent in self.superclass_chain(record))


class UniverseEnumerator:
    """Builds a :class:`ClassUniverse` from an open resolution handle.

    Package and class exclusion patterns use shell-style wildcards. A package
    pattern also covers its sub-packages.
    """

    def __init__(
        self,
        exclude_packages: Sequence[str] = (),
        exclude_classes: Sequence[str] = (),
    ) -> None:
        self._exclude_packages = [pattern.strip(".") for pattern in exclude_packages if pattern]
        self._exclude_classes = [pattern for pattern in exclude_classes if pattern]

    def enumerate(self, handle: ClassUniverseHandle) -> ClassUniverse:
        universe = ClassUniverse()
        pending: Deque[Tuple[str, ClassKind]] = deque()

        for name in handle.target_class_names():
            if self.is_excluded(name):
                logger.debug("Excluded by pattern: %s", name)
                continue
            record = self._load(handle, name, "class")
            universe.records[name] = record
            universe.candidates.append(name)
            pending.extend(_references(record))

        # Close over referenced types so hierarchy and meta-annotation lookups resolve.
        while pending:
            name, kind_hint = pending.popleft()
            if name in universe.records:
                continue
            record = self._load(handle, name, kind_hint)
            universe.records[name] = record
            if record.is_external:
                universe.candidates.append(name)
            pending.extend(_references(record))

        logger.debug(
            "Enumerated %d classes (%d from the artifact) for %s",
            len(universe.records),
            sum(1 for record in universe.classes() if not record.is_external),
            handle.target,
        )
        return universe

    def is_excluded(self, class_name: str) -> bool:
        package = class_name.rpartition(".")[0]
        for pattern in self._exclude_packages:
            if package == pattern or package.startswith(pattern + ".") or fnmatchcase(package, pattern):
                return True
        return any(
            class_name == pattern or fnmatchcase(class_name, pattern)
            for pattern in self._exclude_classes
        )

    @staticmethod
    def _load(handle: ClassUniverseHandle, name: str, kind_hint: ClassKind) -> ClassRecord:
        loaded = handle.load(name)
        if loaded is None:
            return ClassRecord(
                name=name, kind=kind_hint, modifiers=0, is_external=True
            )
        class_file, external = loaded
        return build_record(class_file, is_external=external)


def build_record(class_file: ClassFile, *, is_external: bool = False) -> ClassRecord:
    """Convert a parsed class file into a :class:`ClassRecord`."""
    modifiers = class_file.access_flags
    for entry in class_file.inner_classes:
        if entry.inner_name == class_file.name:
            modifiers = entry.access_flags
            break

    enclosing = class_file.enclosing_method
    enclosing_method = None
    if enclosing is not None:
        enclosing_method = f"{enclosing.owner}.{enclosing.method_name or '<clinit>'}"

    record = ClassRecord(
        name=class_file.name,
        kind=_kind_of(class_file.access_flags),
        modifiers=modifiers,
        superclass=class_file.superclass,
        interfaces=list(class_file.interfaces),
        annotations=_unique(annotation.type_name for annotation in class_file.annotations),
        is_external=is_external,
        is_synthetic=bool((class_file.access_flags | modifiers) & ACC_SYNTHETIC),
        enclosing_method=enclosing_method,
        annotation_values={
            annotation.type_name: annotation.values for annotation in class_file.annotations
        },
        signature=class_file.signature,
    )
    record.methods = [
        MemberRecord(
            name=method.name,
            descriptor=method.descriptor,
            modifiers=method.access_flags,
            owner=record.name,
            kind="constructor" if method.name == CONSTRUCTOR_NAME else "method",
            annotations=_unique(annotation.type_name for annotation in method.annotations),
            signature=method.signature,
        )
        for method in class_file.methods
    ]
    record.fields = [
        MemberRecord(
            name=info.name,
            descriptor=info.descriptor,
            modifiers=info.access_flags,
            owner=record.name,
            kind="field",
            annotations=_unique(annotation.type_name for annotation in info.annotations),
            signature=info.signature,
            constant_value=info.constant_value,
        )
        for info in class_file.fields
    ]
    return record


def _kind_of(access_flags: int) -> ClassKind:
    if access_flags & ACC_ANNOTATION:
        return "annotation"
    if access_flags & ACC_INTERFACE:
        return "interface"
    if access_flags & ACC_ENUM:
        return "enum"
    return "class"


def _references(record: ClassRecord) -> Iterable[Tuple[str, ClassKind]]:
    if record.superclass:
        yield record.superclass, "class"
    for name in record.interfaces:
        yield name, "interface"
    annotation_names: Set[str] = set(record.annotations)
    for member in (*record.methods, *record.fields):
        annotation_names.update(member.annotations)
    for name in sorted(annotation_names):
        yield name, "annotation"


def _unique(names: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(names))


__all__ = ["ClassUniverse", "UniverseEnumerator", "build_record"]
