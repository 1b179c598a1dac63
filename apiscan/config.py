"""Configuration loading for apiscan (apiscan.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import yaml

from .models import ScanTarget

CONFIG_FILENAME = "apiscan.yml"
DEFAULT_OUTPUT_DIR = Path("build") / "api"

_BASE_BLACKLIST: Tuple[str, ...] = (
    "kotlin.jvm.JvmField",
    "kotlin.jvm.JvmOverloads",
    "kotlin.jvm.JvmStatic",
    "kotlin.jvm.JvmDefault",
    "kotlin.Deprecated",
    "java.lang.Deprecated",
)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass(frozen=True)
class MarkerConfig:
    """Annotation and package markers that drive API classification."""

    internal_suffix: str = ".CordaInternal"
    default_internal: str = "net.corda.core.CordaInternal"
    do_not_implement: str = "net.corda.core.DoNotImplement"
    internal_package: str = ".internal."
    blacklist: Tuple[str, ...] = ()

    @property
    def annotation_blacklist(self) -> Tuple[str, ...]:
        """Annotation names never rendered, in declaration order without duplicates."""
        names = (*_BASE_BLACKLIST, self.default_internal, *self.blacklist)
        return tuple(dict.fromkeys(names))


@dataclass
class ScanConfig:
    """Inputs for one apiscan invocation, normally supplied by a build tool."""

    root: Path
    sources: List[Path] = field(default_factory=list)
    classpath: List[Path] = field(default_factory=list)
    output_dir: Path = DEFAULT_OUTPUT_DIR
    exclude_packages: List[str] = field(default_factory=list)
    exclude_classes: List[str] = field(default_factory=list)
    exclude_methods: Dict[str, Set[str]] = field(default_factory=dict)
    verbose: bool = False
    jobs: int = 1
    markers: MarkerConfig = field(default_factory=MarkerConfig)

    def output_path(self, source: Path) -> Path:
        """Return the API file written for ``source`` (``foo.jar`` -> ``foo.txt``)."""
        name = source.name
        if name.endswith(".jar"):
            name = name[: -len(".jar")]
        return self.output_dir / f"{name}.txt"

    def target(self, source: Path) -> ScanTarget:
        return ScanTarget(
            source=source,
            classpath=tuple(self.classpath),
            output=self.output_path(source),
        )


def load_config(config_path: Path) -> ScanConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ScanConfig(root=root, output_dir=root / DEFAULT_OUTPUT_DIR)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    output_dir_str = _as_str(data.get("output_dir"))
    jobs = _as_int(data.get("jobs"))
    if jobs is not None and jobs < 1:
        raise ConfigError("jobs must be a positive integer")

    return ScanConfig(
        root=root,
        sources=[root / entry for entry in _as_str_list(data.get("sources"))],
        classpath=[root / entry for entry in _as_str_list(data.get("classpath"))],
        output_dir=root / (output_dir_str or DEFAULT_OUTPUT_DIR),
        exclude_packages=_as_str_list(data.get("exclude_packages")),
        exclude_classes=_as_str_list(data.get("exclude_classes")),
        exclude_methods=_as_method_exclusions(data.get("exclude_methods")),
        verbose=_as_bool(data.get("verbose")) or False,
        jobs=jobs or 1,
        markers=_as_markers(_as_dict(data.get("markers"))),
    )


def parse_method_exclusion(entry: str) -> Tuple[str, str]:
    """Split a ``com.example.Foo#bar(I)V`` entry into class name and signature."""
    class_name, sep, signature = entry.partition("#")
    if not sep or not class_name.strip() or not signature.strip():
        raise ConfigError(f"Method exclusion must look like CLASS#NAME(DESCRIPTOR): {entry!r}")
    return class_name.strip(), signature.strip()


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_markers(data: Dict[str, Any]) -> MarkerConfig:
    defaults = MarkerConfig()
    return MarkerConfig(
        internal_suffix=_as_str(data.get("internal_suffix")) or defaults.internal_suffix,
        default_internal=_as_str(data.get("default_internal")) or defaults.default_internal,
        do_not_implement=_as_str(data.get("do_not_implement")) or defaults.do_not_implement,
        internal_package=_as_str(data.get("internal_package")) or defaults.internal_package,
        blacklist=tuple(_as_str_list(data.get("blacklist"))),
    )


def _as_method_exclusions(value: Any) -> Dict[str, Set[str]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("exclude_methods must map class names to lists of signatures")
    exclusions: Dict[str, Set[str]] = {}
    for class_name, signatures in value.items():
        names = _as_str_list(signatures)
        if names:
            exclusions.setdefault(str(class_name), set()).update(names)
    return exclusions


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_OUTPUT_DIR",
    "MarkerConfig",
    "ScanConfig",
    "load_config",
    "parse_method_exclusion",
]
