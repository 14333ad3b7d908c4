"""
Code entities handed in by the C++ syntax index.

A ``CodeEntity`` tree mirrors the declarations of one source file: the raw
doc comment attached to each declaration, its signature and its unique id.
Also holds the name utilities shared by the documentation builder and the
linker (scope splitting and decoration stripping of C++ ids).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto


class EntityKind(Enum):
    FILE = auto()
    NAMESPACE = auto()
    CLASS = auto()
    STRUCT = auto()
    UNION = auto()
    ENUM = auto()
    ENUMERATOR = auto()
    FUNCTION = auto()
    MEMBER_FUNCTION = auto()
    CONSTRUCTOR = auto()
    DESTRUCTOR = auto()
    VARIABLE = auto()
    MEMBER_VARIABLE = auto()
    TYPE_ALIAS = auto()
    MACRO = auto()
    FUNCTION_PARAMETER = auto()
    TEMPLATE_PARAMETER = auto()
    BASE_CLASS = auto()


SCOPE_KINDS = frozenset(
    {
        EntityKind.NAMESPACE,
        EntityKind.CLASS,
        EntityKind.STRUCT,
        EntityKind.UNION,
        EntityKind.ENUM,
    }
)

_MEMBER_SUFFIX_KINDS = frozenset({EntityKind.FUNCTION_PARAMETER, EntityKind.TEMPLATE_PARAMETER})


@dataclass(eq=False)
class CodeEntity:
    kind: EntityKind
    name: str
    id: str = ""
    signature: str = ""
    comment: str | None = None
    children: list[CodeEntity] = field(default_factory=list)
    parent: CodeEntity | None = field(default=None, repr=False)

    def __post_init__(self):
        for child in self.children:
            child.parent = self

    def add_child(self, child):
        child.parent = self
        self.children.append(child)
        return child

    @property
    def unique_id(self):
        if self.id:
            return self.id
        if self.kind is EntityKind.FILE or self.parent is None:
            return self.name
        if self.kind in _MEMBER_SUFFIX_KINDS:
            return f"{self.parent.unique_id}.{self.name}"
        if self.kind is EntityKind.BASE_CLASS:
            return f"{self.parent.unique_id}::{self.name}"
        scope = self.enclosing_scope()
        return f"{scope.unique_id}::{self.name}" if scope is not None else self.name

    def enclosing_scope(self):
        cur = self.parent
        while cur is not None and cur.kind not in SCOPE_KINDS:
            cur = cur.parent
        return cur

    def scope_chain(self):
        """Ids of the scopes a name inside this entity is looked up in, outermost first."""
        chain = []
        cur = self if self.kind in SCOPE_KINDS else self.enclosing_scope()
        while cur is not None:
            chain.append(cur.unique_id)
            cur = cur.enclosing_scope()
        chain.reverse()
        return chain

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


# ── Name utilities ──

_WS_RE = re.compile(r"\s+")


def normalize_id(text):
    return _WS_RE.sub("", text)


def split_scopes(text):
    """Split a C++ name on top-level ``::``, keeping template/parameter lists intact."""
    parts = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in "(<":
            depth += 1
        elif ch in ")>":
            depth = max(depth - 1, 0)
        elif ch == ":" and depth == 0 and text.startswith("::", i):
            parts.append(text[start:i])
            i += 2
            start = i
            continue
        i += 1
    parts.append(text[start:])
    return [p.strip() for p in parts]


def strip_decoration(component):
    """Drop parameter lists, template arguments and qualifiers from one name component."""
    component = component.strip()
    if component.startswith("operator"):
        rest = component[len("operator"):]
        if rest.lstrip().startswith("()"):
            return "operator()"
        end = rest.find("(")
        return "operator" + (rest if end < 0 else rest[:end]).strip()
    end = len(component)
    for ch in "(<":
        idx = component.find(ch)
        if idx >= 0:
            end = min(end, idx)
    return component[:end].strip()


def is_decorated(component):
    return strip_decoration(component) != component.strip()


def stripped_name(text):
    return "::".join(strip_decoration(c) for c in split_scopes(text))


def stripped_scope(text):
    return tuple(strip_decoration(c) for c in split_scopes(text))
