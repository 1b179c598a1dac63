"""Visibility rules deciding which classes and members form the public API."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Set, Tuple

from .bytecode.constants import FIELD_MASK, METHOD_MASK, is_visible, within_mask
from .classifier import AnnotationContext
from .config import MarkerConfig
from .logging import get_logger
from .metadata import KotlinMetadataReader
from .models import AnnotationNames, ClassRecord, MemberRecord
from .universe import ClassUniverse

ENUM_BASE_CLASS = "java.lang.Enum"
INTERNAL_SCOPE_MARKER = "$"
_PLATFORM_PREFIXES = ("java.", "kotlin.")

logger = get_logger("filters")


def order_annotations(names: Iterable[str], pinned: Optional[str] = None) -> Tuple[str, ...]:
    """Sort ``names`` lexicographically, placing ``pinned`` first when present."""
    return tuple(sorted(set(names), key=lambda name: (name != pinned, name)))


class VisibilityFilter:
    """Applies the class, method and field inclusion rules for one scan.

    Every decision reads only the frozen :class:`AnnotationContext`, the
    universe and the configuration, so entities can be judged independently.
    """

    def __init__(
        self,
        universe: ClassUniverse,
        context: AnnotationContext,
        markers: MarkerConfig,
        *,
        exclude_methods: Optional[Mapping[str, Set[str]]] = None,
        metadata: Optional[KotlinMetadataReader] = None,
    ) -> None:
        self._universe = universe
        self._context = context
        self._markers = markers
        self._exclude_methods = exclude_methods or {}
        self._metadata = metadata

    # ------------------------------------------------------------------
    # Classes

    def exclusion_reason(self, record: ClassRecord) -> Optional[str]:
        """Return why ``record`` is not public API, or ``None`` when it is.

        Rules are checked in order and the first match wins.
        """
        if self._markers.internal_package in record.name:
            return "internal package"
        if record.is_external:
            return "external class"
        if record.is_annotation and not self._context.is_visible(record.name):
            return "invisible annotation type"
        if self._context.has_internal(record.annotations):
            return "internal annotation"
        if not is_visible(record.modifiers):
            return "not public or protected"
        if record.enclosing_method is not None:
            return f"local class of {record.enclosing_method}"
        if record.is_synthetic:
            return "synthetic class"
        if self._metadata is not None and self._metadata.is_synthetic(record):
            return "synthetic Kotlin class"
        return None

    def include_class(self, record: ClassRecord) -> bool:
        reason = self.exclusion_reason(record)
        if reason is not None and not record.is_external:
            logger.debug("Skipping %s: %s", record.name, reason)
        return reason is None

    def included_classes(self) -> List[ClassRecord]:
        """Return the public API classes of the universe sorted by name."""
        selected = [record for record in self._universe.classes() if self.include_class(record)]
        return sorted(selected, key=lambda record: record.name)

    def class_annotations(self, record: ClassRecord) -> AnnotationNames:
        """Partition the annotations rendered on a class header.

        Inherited annotations come from superclasses and implemented interfaces;
        annotation types render none.
        """
        if record.is_annotation:
            return AnnotationNames()
        names: Set[str] = set(record.annotations)
        if record.is_interface:
            ancestors = self._universe.implemented_interfaces(record)
        else:
            ancestors = [
                *self._universe.superclass_chain(record),
                *self._universe.implemented_interfaces(record),
            ]
        for ancestor in ancestors:
            names.update(name for name in ancestor.annotations if name in self._context.inherited)

        application = [name for name in names if not name.startswith(_PLATFORM_PREFIXES)]
        visible = [name for name in application if self._context.is_visible(name)]
        hidden = [name for name in application if not self._context.is_visible(name)]
        return AnnotationNames(
            visible=order_annotations(visible, self._markers.do_not_implement),
            hidden=order_annotations(hidden),
        )

    # ------------------------------------------------------------------
    # Members

    def include_method(self, method: MemberRecord) -> bool:
        return (
            is_visible(method.modifiers)
            and within_mask(method.modifiers, METHOD_MASK)
            and not self.is_excluded_method(method)
            and not self._context.has_internal(method.annotations)
            and not self.is_enum_constructor(method)
            and INTERNAL_SCOPE_MARKER not in method.name
        )

    def include_field(self, field: MemberRecord) -> bool:
        return (
            is_visible(field.modifiers)
            and within_mask(field.modifiers, FIELD_MASK)
            and not self._context.has_internal(field.annotations)
        )

    def is_excluded_method(self, method: MemberRecord) -> bool:
        signatures = self._exclude_methods.get(method.owner)
        return bool(signatures) and (method.name + method.descriptor) in signatures

    def is_enum_constructor(self, method: MemberRecord) -> bool:
        # Enum types cannot be extended, so their constructors are never API
        # whatever visibility the compiler gave them.
        if not method.is_constructor:
            return False
        owner = self._universe.get(method.owner)
        return owner is not None and self._universe.extends(owner, ENUM_BASE_CLASS)

    def member_annotations(self, member: MemberRecord) -> AnnotationNames:
        visible = [name for name in member.annotations if self._context.is_visible(name)]
        hidden = [name for name in member.annotations if not self._context.is_visible(name)]
        return AnnotationNames(visible=order_annotations(visible), hidden=order_annotations(hidden))

    def public_methods(self, record: ClassRecord) -> List[MemberRecord]:
        """Declared methods and constructors of ``record`` that are API, in canonical order."""
        return [
            method
            for method in sorted(record.methods, key=lambda member: member.sort_key)
            if self.include_method(method)
        ]

    def public_fields(self, record: ClassRecord) -> List[MemberRecord]:
        return [
            info
            for info in sorted(record.fields, key=lambda member: member.sort_key)
            if self.include_field(info)
        ]


__all__ = ["ENUM_BASE_CLASS", "INTERNAL_SCOPE_MARKER", "VisibilityFilter", "order_annotations"]
