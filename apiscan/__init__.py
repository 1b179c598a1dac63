"""Extract a canonical, diffable summary of the public API of JVM artifacts."""

from .classifier import AnnotationContext, classify
from .classpath import ClassUniverseHandle, resolve
from .config import ConfigError, MarkerConfig, ScanConfig, load_config
from .errors import OutputError, ReflectiveAccessError, ResolutionError, ScanError
from .filters import VisibilityFilter
from .scanner import Scanner
from .universe import ClassUniverse, UniverseEnumerator
from .writer import ApiWriter

__all__ = [
    "AnnotationContext",
    "ApiWriter",
    "ClassUniverse",
    "ClassUniverseHandle",
    "ConfigError",
    "MarkerConfig",
    "OutputError",
    "ReflectiveAccessError",
    "ResolutionError",
    "ScanConfig",
    "ScanError",
    "Scanner",
    "UniverseEnumerator",
    "VisibilityFilter",
    "classify",
    "load_config",
    "resolve",
]
