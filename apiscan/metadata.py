"""Optional access to the Kotlin compiler's class metadata.

Kotlin marks every class it emits with ``@kotlin.Metadata``. Its ``k`` element
classifies the class; kind ``3`` denotes a synthetic class (lambdas, ``$WhenMappings``
and similar) that is never part of an API. The reader is only available when
``kotlin.Metadata`` itself resolves, so scans of pure Java artifacts skip the
check entirely.
"""

from __future__ import annotations

from typing import Any, Optional

from .classpath import ClassUniverseHandle
from .errors import ReflectiveAccessError
from .logging import get_logger
from .models import ClassRecord

KOTLIN_METADATA = "kotlin.Metadata"
KIND_ELEMENT = "k"
KIND_DESCRIPTOR = "()I"
KOTLIN_SYNTHETIC = 3

# Declared default of Metadata.k (KotlinClassHeader.Kind.CLASS).
_FALLBACK_KIND = 1

logger = get_logger("metadata")


class KotlinMetadataReader:
    """Reads the ``k`` (kind) element of a class's ``@kotlin.Metadata``."""

    def __init__(self, default_kind: Any = _FALLBACK_KIND) -> None:
        self._default_kind = default_kind

    @classmethod
    def resolve(cls, handle: ClassUniverseHandle) -> Optional["KotlinMetadataReader"]:
        """Return a reader when ``kotlin.Metadata`` declares a ``k`` element, else ``None``."""
        loaded = handle.load(KOTLIN_METADATA)
        if loaded is None:
            logger.debug("%s is not on the classpath; skipping synthetic-kind checks", KOTLIN_METADATA)
            return None
        class_file, _ = loaded
        for method in class_file.methods:
            if method.name == KIND_ELEMENT and method.descriptor == KIND_DESCRIPTOR:
                default = method.annotation_default
                return cls(_FALLBACK_KIND if default is None else default)
        logger.debug("%s has no %s() element; skipping synthetic-kind checks", KOTLIN_METADATA, KIND_ELEMENT)
        return None

    def kind_of(self, record: ClassRecord) -> int:
        """Return the metadata kind of ``record`` or ``0`` when it carries no metadata."""
        values = record.annotation_values.get(KOTLIN_METADATA)
        if values is None:
            return 0
        kind = values.get(KIND_ELEMENT, self._default_kind)
        if isinstance(kind, bool) or not isinstance(kind, int):
            raise ReflectiveAccessError(
                f"Failed to read Kotlin annotation on {record.name}: {KIND_ELEMENT}={kind!r}"
            )
        return kind

    def is_synthetic(self, record: ClassRecord) -> bool:
        return self.kind_of(record) == KOTLIN_SYNTHETIC


__all__ = ["KOTLIN_METADATA", "KOTLIN_SYNTHETIC", "KotlinMetadataReader"]
