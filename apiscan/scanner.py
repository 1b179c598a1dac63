"""Drives the resolve, enumerate, classify, filter and render pipeline per target."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence

from .bytecode import ClassFormatError
from .classifier import classify
from .classpath import ClassUniverseHandle, resolve
from .config import ScanConfig
from .errors import ResolutionError, ScanError
from .filters import VisibilityFilter
from .logging import get_logger
from .metadata import KotlinMetadataReader
from .universe import UniverseEnumerator
from .writer import ApiWriter, write_atomic


class Scanner:
    """Produces one API file per configured source artifact.

    Each target is resolved in its own scope. Targets are independent, so with
    ``config.jobs > 1`` they are scanned on a thread pool.
    """

    def __init__(self, config: ScanConfig, enumerator: UniverseEnumerator | None = None) -> None:
        self.config = config
        self.enumerator = enumerator or UniverseEnumerator(
            config.exclude_packages, config.exclude_classes
        )
        self.logger = get_logger("scanner")

    def scan_all(self, sources: Optional[Sequence[Path]] = None) -> List[Path]:
        """Scan ``sources`` (defaults to the configured ones) and return the written files."""
        targets = list(self.config.sources if sources is None else sources)
        if self.config.jobs <= 1 or len(targets) <= 1:
            return [self.scan(source) for source in targets]
        self.logger.debug("Scanning %d artifacts with %d workers", len(targets), self.config.jobs)
        with ThreadPoolExecutor(max_workers=min(self.config.jobs, len(targets))) as executor:
            return list(executor.map(self.scan, targets))

    def scan(self, source: Path) -> Path:
        """Scan one artifact and atomically write its API file."""
        target = self.config.target(source)
        self.logger.info("API file: %s", target.output.resolve())
        try:
            with resolve(target.source, target.classpath) as handle:
                text = self.render(handle)
            write_atomic(target.output, text)
        except ScanError as exc:
            self.logger.error("API scan of %s has failed: %s", source, exc)
            raise
        return target.output

    def render(self, handle: ClassUniverseHandle) -> str:
        """Return the canonical API text for the artifact behind ``handle``."""
        universe = self.enumerator.enumerate(handle)
        context = classify(universe, self.config.markers)
        context.log()

        api_filter = VisibilityFilter(
            universe,
            context,
            self.config.markers,
            exclude_methods=self.config.exclude_methods,
            metadata=KotlinMetadataReader.resolve(handle),
        )
        classes = api_filter.included_classes()
        try:
            text = ApiWriter(api_filter).render(classes)
        except ClassFormatError as exc:
            raise ResolutionError(f"Malformed type descriptor in {handle.target}: {exc}") from exc
        self.logger.info("%s: %d public API classes", handle.target.name, len(classes))
        return text


__all__ = ["Scanner"]
