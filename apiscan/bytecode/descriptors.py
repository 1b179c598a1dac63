"""Render type descriptors and generic signatures as Java source text."""

from __future__ import annotations

from typing import List, Tuple

from .reader import ClassFormatError, internal_to_binary

_PRIMITIVES = {
    "B": "byte",
    "C": "char",
    "D": "double",
    "F": "float",
    "I": "int",
    "J": "long",
    "S": "short",
    "Z": "boolean",
    "V": "void",
}

_JAVA_LANG = "java.lang."


def simplify_type_name(name: str) -> str:
    """Drop the ``java.lang.`` qualifier from types declared directly in that package."""
    if name.startswith(_JAVA_LANG) and "." not in name[len(_JAVA_LANG) :]:
        return name[len(_JAVA_LANG) :]
    return name


class _Parser:
    """Recursive-descent parser shared by descriptors and signatures.

    Descriptors are a subset of the signature grammar, so one parser serves both.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise ClassFormatError(f"Expected {char!r} at {self.pos} in {self.text!r}")
        self.pos += 1

    def identifier(self, stops: str) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in stops:
            self.pos += 1
        if self.pos == start or self.pos >= len(self.text):
            raise ClassFormatError(f"Malformed identifier at {start} in {self.text!r}")
        return self.text[start : self.pos]

    def skip_type_parameters(self) -> None:
        if self.peek() != "<":
            return
        self.pos += 1
        while self.peek() != ">":
            self.identifier(":")
            while self.peek() == ":":
                self.pos += 1
                if self.peek() in ("L", "T", "["):
                    self.java_type()
        self.pos += 1

    def java_type(self) -> str:
        char = self.peek()
        if char in _PRIMITIVES:
            self.pos += 1
            return _PRIMITIVES[char]
        if char == "[":
            self.pos += 1
            return self.java_type() + "[]"
        if char == "T":
            self.pos += 1
            name = self.identifier(";")
            self.expect(";")
            return name
        if char == "L":
            return self.class_type()
        raise ClassFormatError(f"Unexpected {char!r} at {self.pos} in {self.text!r}")

    def class_type(self) -> str:
        self.expect("L")
        name = simplify_type_name(internal_to_binary(self.identifier("<;.")))
        text = name + self.type_arguments()
        while self.peek() == ".":
            self.pos += 1
            text += "$" + self.identifier("<;.") + self.type_arguments()
        self.expect(";")
        return text

    def type_arguments(self) -> str:
        if self.peek() != "<":
            return ""
        self.pos += 1
        arguments: List[str] = []
        while self.peek() != ">":
            char = self.peek()
            if char == "*":
                self.pos += 1
                arguments.append("?")
            elif char == "+":
                self.pos += 1
                arguments.append("? extends " + self.java_type())
            elif char == "-":
                self.pos += 1
                arguments.append("? super " + self.java_type())
            else:
                arguments.append(self.java_type())
        self.pos += 1
        return "<" + ", ".join(arguments) + ">"

    def method(self) -> Tuple[List[str], str]:
        self.skip_type_parameters()
        self.expect("(")
        params: List[str] = []
        while self.peek() != ")":
            params.append(self.java_type())
        self.pos += 1
        return params, self.java_type()

    def finish(self) -> None:
        # Method signatures may carry trailing ^Throws clauses, which are not rendered.
        if self.pos < len(self.text) and self.text[self.pos] != "^":
            raise ClassFormatError(f"Trailing data at {self.pos} in {self.text!r}")


def render_descriptor(descriptor: str) -> str:
    """Render a field descriptor or field signature, e.g. ``[Ljava/lang/String;`` -> ``String[]``."""
    parser = _Parser(descriptor)
    rendered = parser.java_type()
    parser.finish()
    return rendered


def render_method_descriptor(descriptor: str, *, varargs: bool = False) -> Tuple[List[str], str]:
    """Return ``(parameter types, return type)`` for a method descriptor or signature."""
    parser = _Parser(descriptor)
    params, returns = parser.method()
    parser.finish()
    if varargs and params and params[-1].endswith("[]"):
        params[-1] = params[-1][:-2] + "..."
    return params, returns


__all__ = [
    "render_descriptor",
    "render_method_descriptor",
    "simplify_type_name",
]
