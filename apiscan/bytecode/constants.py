"""Access flags and modifier masks from the JVM class-file format."""

from __future__ import annotations

ACC_PUBLIC = 0x0001
ACC_PRIVATE = 0x0002
ACC_PROTECTED = 0x0004
ACC_STATIC = 0x0008
ACC_FINAL = 0x0010
ACC_SYNCHRONIZED = 0x0020
ACC_SUPER = 0x0020
ACC_VOLATILE = 0x0040
ACC_BRIDGE = 0x0040
ACC_TRANSIENT = 0x0080
ACC_VARARGS = 0x0080
ACC_NATIVE = 0x0100
ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400
ACC_STRICT = 0x0800
ACC_SYNTHETIC = 0x1000
ACC_ANNOTATION = 0x2000
ACC_ENUM = 0x4000

VISIBILITY_MASK = ACC_PUBLIC | ACC_PROTECTED

CLASS_MASK = (
    ACC_PUBLIC | ACC_PROTECTED | ACC_PRIVATE | ACC_ABSTRACT | ACC_STATIC | ACC_FINAL | ACC_STRICT
)
INTERFACE_MASK = ACC_PUBLIC | ACC_PROTECTED | ACC_PRIVATE | ACC_STATIC | ACC_STRICT

# Varargs shares its bit with transient and synthetic methods are let through;
# bridge methods (0x0040) fall outside the mask.
METHOD_MASK = (
    ACC_PUBLIC
    | ACC_PROTECTED
    | ACC_PRIVATE
    | ACC_ABSTRACT
    | ACC_STATIC
    | ACC_FINAL
    | ACC_SYNCHRONIZED
    | ACC_NATIVE
    | ACC_STRICT
    | ACC_VARARGS
    | ACC_SYNTHETIC
)
FIELD_MASK = (
    ACC_PUBLIC | ACC_PROTECTED | ACC_PRIVATE | ACC_STATIC | ACC_FINAL | ACC_TRANSIENT | ACC_VOLATILE
)

# Keyword order follows java.lang.reflect.Modifier.toString.
CLASS_KEYWORDS: tuple[tuple[int, str], ...] = (
    (ACC_PUBLIC, "public"),
    (ACC_PROTECTED, "protected"),
    (ACC_PRIVATE, "private"),
    (ACC_ABSTRACT, "abstract"),
    (ACC_STATIC, "static"),
    (ACC_FINAL, "final"),
    (ACC_STRICT, "strictfp"),
)

METHOD_KEYWORDS: tuple[tuple[int, str], ...] = (
    (ACC_PUBLIC, "public"),
    (ACC_PROTECTED, "protected"),
    (ACC_PRIVATE, "private"),
    (ACC_ABSTRACT, "abstract"),
    (ACC_STATIC, "static"),
    (ACC_FINAL, "final"),
    (ACC_SYNCHRONIZED, "synchronized"),
    (ACC_NATIVE, "native"),
    (ACC_STRICT, "strictfp"),
)

FIELD_KEYWORDS: tuple[tuple[int, str], ...] = (
    (ACC_PUBLIC, "public"),
    (ACC_PROTECTED, "protected"),
    (ACC_PRIVATE, "private"),
    (ACC_STATIC, "static"),
    (ACC_FINAL, "final"),
    (ACC_TRANSIENT, "transient"),
    (ACC_VOLATILE, "volatile"),
)


def modifier_keywords(flags: int, keywords: tuple[tuple[int, str], ...]) -> list[str]:
    """Return the source keywords for ``flags`` in canonical order."""
    return [word for bit, word in keywords if flags & bit]


def is_visible(flags: int) -> bool:
    return bool(flags & VISIBILITY_MASK)


def within_mask(flags: int, mask: int) -> bool:
    return (flags & mask) == flags

