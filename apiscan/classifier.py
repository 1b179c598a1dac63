"""Classify annotation types before any inclusion decision is made."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable

from .config import MarkerConfig
from .logging import format_names, get_logger
from .universe import ClassUniverse

INHERITED_MARKER = "java.lang.annotation.Inherited"

logger = get_logger("classifier")


@dataclass(frozen=True)
class AnnotationContext:
    """Frozen annotation-name sets derived once per scan.

    ``invisible`` always contains ``internal`` and the static blacklist. The
    context is shared read-only by every filter decision in the scan.
    """

    internal: FrozenSet[str]
    invisible: FrozenSet[str]
    inherited: FrozenSet[str]

    def is_visible(self, name: str) -> bool:
        return name not in self.invisible

    def has_internal(self, names: Iterable[str]) -> bool:
        return any(name in self.internal for name in names)

    def log(self) -> None:
        logger.info("Annotations:")
        logger.info("- Inherited: %s", format_names(self.inherited))
        logger.info("- Internal:  %s", format_names(self.internal))
        logger.info("- Invisible: %s", format_names(self.invisible))


def classify(universe: ClassUniverse, markers: MarkerConfig) -> AnnotationContext:
    """Derive the internal, invisible and inherited annotation sets for ``universe``."""
    annotation_types = universe.annotations()

    internal = {
        record.name for record in annotation_types if record.name.endswith(markers.internal_suffix)
    }
    internal.add(markers.default_internal)

    invisible = set(markers.annotation_blacklist)
    invisible.update(internal)
    invisible.update(
        record.name
        for record in annotation_types
        if any(meta in internal for meta in record.annotations)
    )

    inherited = {
        record.name for record in annotation_types if INHERITED_MARKER in record.annotations
    }

    return AnnotationContext(
        internal=frozenset(internal),
        invisible=frozenset(invisible),
        inherited=frozenset(inherited),
    )


__all__ = ["AnnotationContext", "INHERITED_MARKER", "classify"]
