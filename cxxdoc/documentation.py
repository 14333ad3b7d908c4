"""
Documentation tree built from code entities.

Each file's ``CodeEntity`` tree is turned into ``EntityDocumentation`` nodes:
one per entity that carries a comment or has documented descendants.
Sibling declarations tagged with the same group key collapse into a single
documentation unit that shares the first member's comment and lists every
member's signature, numbered in declaration order.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .comment import CommentParser
from .config import CommandKind, load_config
from .entity import EntityKind

_KIND_LABELS = {
    EntityKind.FILE: "Header file",
    EntityKind.NAMESPACE: "Namespace",
    EntityKind.CLASS: "Class",
    EntityKind.STRUCT: "Struct",
    EntityKind.UNION: "Union",
    EntityKind.ENUM: "Enumeration",
    EntityKind.ENUMERATOR: "Enumerator",
    EntityKind.FUNCTION: "Function",
    EntityKind.MEMBER_FUNCTION: "Function",
    EntityKind.CONSTRUCTOR: "Constructor",
    EntityKind.DESTRUCTOR: "Destructor",
    EntityKind.VARIABLE: "Variable",
    EntityKind.MEMBER_VARIABLE: "Variable",
    EntityKind.TYPE_ALIAS: "Type alias",
    EntityKind.MACRO: "Macro",
    EntityKind.FUNCTION_PARAMETER: "Parameter",
    EntityKind.TEMPLATE_PARAMETER: "Template parameter",
    EntityKind.BASE_CLASS: "Base class",
}

_INLINE_KINDS = {
    CommandKind.PARAM: EntityKind.FUNCTION_PARAMETER,
    CommandKind.TPARAM: EntityKind.TEMPLATE_PARAMETER,
    CommandKind.BASE: EntityKind.BASE_CLASS,
}

_INLINE_SECTION_NAMES = {
    EntityKind.FUNCTION_PARAMETER: "Parameters",
    EntityKind.TEMPLATE_PARAMETER: "Template parameters",
    EntityKind.BASE_CLASS: "Base classes",
    EntityKind.MEMBER_VARIABLE: "Member variables",
    EntityKind.ENUMERATOR: "Enumerators",
}

_FOLDED_KINDS = frozenset({EntityKind.MEMBER_VARIABLE, EntityKind.ENUMERATOR})


def heading_for(entity):
    label = _KIND_LABELS.get(entity.kind, "")
    return f"{label} {entity.name}" if label else entity.name


@dataclass(eq=False)
class EntityGroup:
    key: str
    name: str = ""
    members: list = field(default_factory=list)

    def signatures(self):
        return [(number, m.signature) for number, m in enumerate(self.members, start=1)]


@dataclass(eq=False)
class InlineDocumentation:
    kind: EntityKind
    name: str
    id: str
    content: object
    entity: object = None


@dataclass(eq=False)
class EntityDocumentation:
    entity: object
    id: str
    heading: str = ""
    comment: object = None
    module: str | None = None
    group: EntityGroup | None = None
    inlines: list[InlineDocumentation] = field(default_factory=list)
    children: list[EntityDocumentation] = field(default_factory=list)

    @property
    def name(self):
        return self.entity.name

    @property
    def synopsis(self):
        if self.group is None:
            return [self.entity.signature] if self.entity.signature else []
        return [f"({number}) {signature}" for number, signature in self.group.signatures()]

    def inline_sections(self):
        """Inline documentation bucketed under its section heading, in first-seen order."""
        sections = {}
        for inline in self.inlines:
            sections.setdefault(_INLINE_SECTION_NAMES[inline.kind], []).append(inline)
        return sections

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(eq=False)
class FileDocumentation(EntityDocumentation):
    pass


@dataclass(eq=False)
class Document:
    id: str
    title: str = ""
    files: list[FileDocumentation] = field(default_factory=list)

    def walk(self):
        for file_doc in self.files:
            yield from file_doc.walk()


def build_documentation(file_entity, config=None):
    config = config or load_config()
    comment = _parse(file_entity, config)
    doc = FileDocumentation(
        entity=file_entity,
        id=file_entity.unique_id,
        heading=heading_for(file_entity),
        comment=comment,
    )
    if comment is not None:
        doc.module = comment.metadata.module
    doc.children = _document_children(file_entity, config)
    return doc


def build_document(document_id, file_entities, config=None, title=""):
    config = config or load_config()
    return Document(
        id=document_id,
        title=title or document_id,
        files=[build_documentation(f, config) for f in file_entities],
    )


def _parse(entity, config):
    if entity.comment is None:
        return None
    return CommentParser(config, entity.unique_id).parse(entity.comment)


def _document_children(entity, config):
    docs = []
    groups = {}
    for child in entity.children:
        doc = _document(child, config)
        if doc is None:
            continue
        metadata = doc.comment.metadata if doc.comment is not None else None
        if metadata is None or metadata.group is None:
            docs.append(doc)
            continue

        key, name = metadata.group
        group = groups.get(key)
        if group is not None:
            # later members only contribute their declaration
            group.members.append(child)
            if not group.name and name:
                group.name = name
            continue
        group = groups[key] = EntityGroup(key=key, name=name, members=[child])
        doc.group = group
        docs.append(doc)

    for doc in docs:
        if doc.group is not None and doc.group.name:
            doc.heading = doc.group.name
    return docs


def _document(entity, config):
    if entity.kind in _INLINE_SECTION_NAMES:
        return None
    comment = _parse(entity, config)
    if comment is not None and comment.metadata.exclude:
        return None

    children = _document_children(entity, config)
    members = _fold_members(entity, config)
    if comment is None and not children and not members:
        return None

    doc = EntityDocumentation(
        entity=entity,
        id=_documentation_id(entity, comment),
        heading=heading_for(entity),
        comment=comment,
        children=children,
    )
    if comment is not None:
        doc.module = comment.metadata.module
        doc.inlines = [_inline(doc, inline) for inline in comment.inlines]
    doc.inlines.extend(members)
    return doc


def _fold_members(entity, config):
    """Documented member variables and enumerators, as inline documentation of ``entity``."""
    members = []
    for child in entity.children:
        if child.kind not in _FOLDED_KINDS:
            continue
        comment = _parse(child, config)
        if comment is None or comment.metadata.exclude:
            continue
        members.append(
            InlineDocumentation(
                kind=child.kind,
                name=child.name,
                id=child.unique_id,
                content=comment,
                entity=child,
            )
        )
    return members


def _documentation_id(entity, comment):
    unique_name = comment.metadata.unique_name if comment is not None else None
    if not unique_name:
        return entity.unique_id
    if unique_name.startswith("*"):
        scope = entity.enclosing_scope()
        rest = unique_name[1:]
        return f"{scope.unique_id}::{rest}" if scope is not None else rest
    return unique_name


def _inline(owner, inline):
    kind = _INLINE_KINDS[inline.kind]
    sep = "::" if kind is EntityKind.BASE_CLASS else "."
    entity = next(
        (c for c in owner.entity.children if c.kind is kind and c.name == inline.name), None
    )
    return InlineDocumentation(
        kind=kind,
        name=inline.name,
        id=f"{owner.id}{sep}{inline.name}",
        content=inline.content,
        entity=entity,
    )
