"""Tests for classpath resolution scopes."""

from __future__ import annotations

from pathlib import Path

import pytest

from apiscan.classpath import entry_to_class_name, resolve
from apiscan.errors import ResolutionError
from tests._fixtures.classfile_builder import ArtifactBuilder, ClassFileBuilder, corrupt_entry


@pytest.mark.parametrize(
    ("entry", "expected"),
    [
        ("com/example/Widget.class", "com.example.Widget"),
        ("com/example/Outer$Inner.class", "com.example.Outer$Inner"),
        ("com/example/package-info.class", None),
        ("module-info.class", None),
        ("META-INF/versions/11/com/example/Widget.class", None),
        ("com/example/messages.properties", None),
    ],
)
def test_entry_to_class_name(entry: str, expected: str | None) -> None:
    assert entry_to_class_name(entry) == expected


def test_resolve_lists_only_target_classes(artifacts: ArtifactBuilder) -> None:
    dependency = artifacts.jar("dep.jar", ClassFileBuilder("org.dep.Base"))
    target = artifacts.jar(
        "lib.jar",
        ClassFileBuilder("com.example.B"),
        ClassFileBuilder("com.example.A", superclass="org.dep.Base"),
        resources={"com/example/package-info.class": b"", "config.yml": b"x: 1"},
    )

    with resolve(target, [dependency]) as handle:
        assert handle.target_class_names() == ["com.example.A", "com.example.B"]

        class_file, external = handle.load("org.dep.Base")
        assert class_file.name == "org.dep.Base"
        assert external is True

        class_file, external = handle.load("com.example.A")
        assert class_file.superclass == "org.dep.Base"
        assert external is False

        assert handle.load("java.lang.Object") is None


def test_target_shadows_dependency_classes(artifacts: ArtifactBuilder) -> None:
    dependency = artifacts.jar("dep.jar", ClassFileBuilder("com.example.Shared", superclass="org.dep.Old"))
    target = artifacts.jar("lib.jar", ClassFileBuilder("com.example.Shared"))

    with resolve(target, [dependency]) as handle:
        class_file, external = handle.load("com.example.Shared")

    assert class_file.superclass == "java.lang.Object"
    assert external is False


def test_resolve_accepts_class_directories(artifacts: ArtifactBuilder) -> None:
    target = artifacts.classes_dir("classes", ClassFileBuilder("com.example.Widget"))

    with resolve(target, []) as handle:
        assert handle.target_class_names() == ["com.example.Widget"]
        assert handle.load("com.example.Widget")[0].name == "com.example.Widget"


def test_handle_closes_archives_on_exit(artifacts: ArtifactBuilder) -> None:
    dependency = artifacts.jar("dep.jar", ClassFileBuilder("org.dep.Base"))
    target = artifacts.jar("lib.jar", ClassFileBuilder("com.example.A"))

    with resolve(target, [dependency]) as handle:
        pass

    archives = [*handle.target_scope.sources, *handle.dependency_scope.sources]
    assert all(source._archive.fp is None for source in archives)


def test_resolve_rejects_missing_classpath_entry(artifacts: ArtifactBuilder, tmp_path: Path) -> None:
    target = artifacts.jar("lib.jar", ClassFileBuilder("com.example.A"))

    with pytest.raises(ResolutionError, match="missing.jar"):
        resolve(target, [tmp_path / "missing.jar"])


def test_resolve_rejects_corrupt_target(tmp_path: Path) -> None:
    target = tmp_path / "broken.jar"
    target.write_bytes(b"not a zip archive")

    with pytest.raises(ResolutionError, match="broken.jar"):
        resolve(target, [])


def test_load_wraps_malformed_class_files(artifacts: ArtifactBuilder) -> None:
    target = artifacts.jar("lib.jar", resources={"com/example/Bad.class": b"\xca\xfe"})

    with resolve(target, []) as handle:
        with pytest.raises(ResolutionError, match="com.example.Bad"):
            handle.load("com.example.Bad")


def test_load_wraps_corrupt_archive_entries(artifacts: ArtifactBuilder) -> None:
    target = artifacts.jar("lib.jar", ClassFileBuilder("com.example.A").method("run", "()V"))
    corrupt_entry(target, "com/example/A.class")

    with resolve(target, []) as handle:
        assert handle.target_class_names() == ["com.example.A"]
        with pytest.raises(ResolutionError, match="com.example.A"):
            handle.load("com.example.A")
