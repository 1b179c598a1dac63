"""Type-resolution scopes built from a scan target and its classpath."""

from __future__ import annotations

import os
import zipfile
import zlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .bytecode import ClassFile, ClassFormatError, parse_class
from .errors import ResolutionError
from .logging import get_logger

_CLASS_SUFFIX = ".class"
_IGNORED_SIMPLE_NAMES = {"module-info", "package-info"}

logger = get_logger("classpath")


def entry_to_class_name(entry: str) -> Optional[str]:
    """Map an archive entry such as ``a/b/C$D.class`` to ``a.b.C$D``.

    Returns ``None`` for resources, module/package descriptors and
    multi-release overlays under ``META-INF/``.
    """
    entry = entry.replace(os.sep, "/")
    if not entry.endswith(_CLASS_SUFFIX) or entry.startswith("META-INF/"):
        return None
    stem = entry[: -len(_CLASS_SUFFIX)]
    if stem.rsplit("/", 1)[-1] in _IGNORED_SIMPLE_NAMES:
        return None
    return stem.replace("/", ".")


class ClassSource(ABC):
    """A single classpath entry: an archive or a directory of class files."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @abstractmethod
    def names(self) -> List[str]:
        """Return the binary names of the classes this entry defines."""

    @abstractmethod
    def read(self, name: str) -> Optional[bytes]:
        """Return the class file bytes for ``name`` or ``None`` when not defined here."""

    def close(self) -> None:
        """Release any open file handles."""


class ArchiveSource(ClassSource):
    """Classes packaged in a jar (zip) archive."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._archive = zipfile.ZipFile(path)
        self._entries: Dict[str, str] = {}
        for info in self._archive.infolist():
            if info.is_dir():
                continue
            name = entry_to_class_name(info.filename)
            if name is not None:
                self._entries.setdefault(name, info.filename)

    def names(self) -> List[str]:
        return list(self._entries)

    def read(self, name: str) -> Optional[bytes]:
        entry = self._entries.get(name)
        if entry is None:
            return None
        return self._archive.read(entry)

    def close(self) -> None:
        self._archive.close()


class DirectorySource(ClassSource):
    """Classes laid out under a compiler output directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._entries: Dict[str, Path] = {}
        for class_file in sorted(path.rglob(f"*{_CLASS_SUFFIX}")):
            name = entry_to_class_name(class_file.relative_to(path).as_posix())
            if name is not None and class_file.is_file():
                self._entries.setdefault(name, class_file)

    def names(self) -> List[str]:
        return list(self._entries)

    def read(self, name: str) -> Optional[bytes]:
        entry = self._entries.get(name)
        if entry is None:
            return None
        return entry.read_bytes()


def open_source(path: Path) -> ClassSource:
    """Open ``path`` as a classpath entry, raising :class:`ResolutionError` on failure."""
    try:
        if path.is_dir():
            return DirectorySource(path)
        return ArchiveSource(path)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ResolutionError(f"Cannot open classpath entry {path}: {exc}") from exc


class ClassScope:
    """An ordered set of class sources with an optional parent scope.

    Lookups consult this scope's own sources before delegating to the parent,
    so the artifact under scan shadows anything on its classpath.
    """

    def __init__(self, sources: Sequence[ClassSource], parent: Optional["ClassScope"] = None) -> None:
        self.sources = list(sources)
        self.parent = parent

    def find(self, name: str) -> Optional[Tuple[bytes, "ClassScope"]]:
        for source in self.sources:
            data = source.read(name)
            if data is not None:
                return data, self
        if self.parent is not None:
            return self.parent.find(name)
        return None

    def names(self) -> List[str]:
        seen: Dict[str, None] = {}
        for source in self.sources:
            for name in source.names():
                seen.setdefault(name, None)
        return list(seen)

    def close(self) -> None:
        for source in self.sources:
            source.close()


class ClassUniverseHandle:
    """Scoped access to a target artifact and its dependency classpath.

    Use as a context manager; every archive is closed on exit, whether the scan
    succeeded or failed.
    """

    def __init__(self, target: Path, dependency_scope: ClassScope, target_scope: ClassScope) -> None:
        self.target = target
        self.dependency_scope = dependency_scope
        self.target_scope = target_scope
        self._parsed: Dict[str, Optional[Tuple[ClassFile, bool]]] = {}

    def __enter__(self) -> "ClassUniverseHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.target_scope.close()
        self.dependency_scope.close()

    def target_class_names(self) -> List[str]:
        """Binary names of every class the artifact under scan defines."""
        return sorted(self.target_scope.names())

    def load(self, name: str) -> Optional[Tuple[ClassFile, bool]]:
        """Parse ``name`` and report whether it came from the dependency scope.

        Returns ``None`` for classes no scope defines (such as JDK types).
        """
        if name in self._parsed:
            return self._parsed[name]
        try:
            found = self.target_scope.find(name)
        except (OSError, EOFError, zipfile.BadZipFile, zlib.error) as exc:
            raise ResolutionError(f"Cannot read class {name} from {self.target}: {exc}") from exc
        result: Optional[Tuple[ClassFile, bool]] = None
        if found is not None:
            data, scope = found
            try:
                class_file = parse_class(data)
            except ClassFormatError as exc:
                raise ResolutionError(f"Cannot parse class {name}: {exc}") from exc
            result = (class_file, scope is not self.target_scope)
        self._parsed[name] = result
        return result


def resolve(target: Path, classpath: Sequence[Path]) -> ClassUniverseHandle:
    """Open ``classpath`` as the dependency scope and ``target`` as a child scope."""
    opened: List[ClassSource] = []
    try:
        for entry in classpath:
            opened.append(open_source(entry))
        dependency_scope = ClassScope(opened)
        target_source = open_source(target)
    except ResolutionError:
        for source in opened:
            source.close()
        raise
    logger.debug("Resolved %s against %d classpath entries", target, len(opened))
    return ClassUniverseHandle(target, dependency_scope, ClassScope([target_source], dependency_scope))


__all__ = [
    "ArchiveSource",
    "ClassScope",
    "ClassSource",
    "ClassUniverseHandle",
    "DirectorySource",
    "entry_to_class_name",
    "open_source",
    "resolve",
]
