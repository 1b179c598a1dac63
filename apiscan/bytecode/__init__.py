"""Class-file introspection used to build the class universe."""

from .descriptors import render_descriptor, render_method_descriptor, simplify_type_name
from .reader import (
    AnnotationInfo,
    ClassFile,
    ClassFormatError,
    EnclosingMethod,
    FieldInfo,
    MethodInfo,
    parse_class,
)

__all__ = [
    "AnnotationInfo",
    "ClassFile",
    "ClassFormatError",
    "EnclosingMethod",
    "FieldInfo",
    "MethodInfo",
    "parse_class",
    "render_descriptor",
    "render_method_descriptor",
    "simplify_type_name",
]
