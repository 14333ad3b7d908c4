"""
Typed documentation markup.

The comment parser materializes the generic Python-Markdown tree into these
entities. Containers own children and are pushed while walking; everything
else is a leaf. Links that point at documented entities are kept as
``LinkReference`` until the linker swaps them for a ``ResolvedLink``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from .mdtree import NodeKind


class SectionType(Enum):
    UNCLASSIFIED = auto()
    BRIEF = auto()
    DETAILS = auto()
    REQUIRES = auto()
    EFFECTS = auto()
    SYNCHRONIZATION = auto()
    POSTCONDITIONS = auto()
    RETURNS = auto()
    THROWS = auto()
    COMPLEXITY = auto()
    REMARKS = auto()
    ERROR_CONDITIONS = auto()
    NOTES = auto()
    SEE = auto()


@dataclass(eq=False)
class MdEntity:
    container = False

    def plain_text(self):
        return ""


@dataclass(eq=False)
class MdContainer(MdEntity):
    container = True

    children: list[MdEntity] = field(default_factory=list)

    def add_entity(self, entity):
        self.children.append(entity)

    def remove_entity(self, entity):
        self.children = [c for c in self.children if c is not entity]

    def plain_text(self):
        return "".join(c.plain_text() for c in self.children)

    def walk(self):
        for child in self.children:
            yield child
            if isinstance(child, MdContainer):
                yield from child.walk()


# ── Leaves ──


@dataclass(eq=False)
class Text(MdEntity):
    string: str = ""

    def plain_text(self):
        return self.string


@dataclass(eq=False)
class SoftBreak(MdEntity):
    def plain_text(self):
        return "\n"


@dataclass(eq=False)
class LineBreak(MdEntity):
    def plain_text(self):
        return "\n"


@dataclass(eq=False)
class Code(MdEntity):
    string: str = ""

    def plain_text(self):
        return self.string


@dataclass(eq=False)
class HtmlInline(MdEntity):
    html: str = ""


@dataclass(eq=False)
class HtmlBlock(MdEntity):
    html: str = ""


@dataclass(eq=False)
class CodeBlock(MdEntity):
    code: str = ""
    info: str = ""


@dataclass(eq=False)
class ThematicBreak(MdEntity):
    pass


# ── Containers ──


@dataclass(eq=False)
class Paragraph(MdContainer):
    section_type: SectionType = SectionType.UNCLASSIFIED
    section_name: str = ""
    command: object = None
    line: int = 0
    column: int = 0

    def set_section_type(self, section_type, name):
        self.section_type = section_type
        self.section_name = name


@dataclass(eq=False)
class Heading(MdContainer):
    level: int = 1


@dataclass(eq=False)
class BlockQuote(MdContainer):
    pass


@dataclass(eq=False)
class ListBlock(MdContainer):
    ordered: bool = False
    start: int = 1


@dataclass(eq=False)
class ListItem(MdContainer):
    pass


@dataclass(eq=False)
class Emphasis(MdContainer):
    pass


@dataclass(eq=False)
class Strong(MdContainer):
    pass


@dataclass(eq=False)
class Link(MdContainer):
    url: str = ""
    title: str = ""


@dataclass(eq=False)
class Image(MdContainer):
    url: str = ""
    title: str = ""


_RELATIVE_MARKERS = "*?"


@dataclass(eq=False)
class LinkReference(MdContainer):
    """A link to a documented entity that has not been resolved yet.

    ``explicit_target`` is the target written in the link URL; when it is
    empty the link text itself names the target (``[foo::bar]()``).
    """

    explicit_target: str = ""
    title: str = ""

    @property
    def target(self):
        return self.explicit_target or self.plain_text().strip()

    def resolve(self, destination):
        children = list(self.children)
        if not self.explicit_target and children and isinstance(children[0], Text):
            first = children[0]
            children[0] = Text(string=first.string.lstrip(_RELATIVE_MARKERS))
        if not "".join(c.plain_text() for c in children).strip():
            children = [Text(string=destination.name)]
        return ResolvedLink(
            children=children,
            document_id=destination.document_id,
            entity_id=destination.entity_id,
            title=self.title,
        )


@dataclass(eq=False)
class ResolvedLink(MdContainer):
    document_id: str = ""
    entity_id: str = ""
    title: str = ""


@dataclass(eq=False)
class CommentMetadata:
    group: tuple[str, str] | None = None
    module: str | None = None
    unique_name: str | None = None
    exclude: bool = False


@dataclass(eq=False)
class InlineComment:
    kind: object
    name: str
    content: Paragraph


@dataclass(eq=False)
class DocumentationComment(MdContainer):
    metadata: CommentMetadata = field(default_factory=CommentMetadata)
    inlines: list[InlineComment] = field(default_factory=list)

    def sections(self, section_type):
        return [
            c for c in self.children if isinstance(c, Paragraph) and c.section_type is section_type
        ]

    @property
    def brief(self):
        found = self.sections(SectionType.BRIEF)
        return found[0] if found else None

    @property
    def details(self):
        return self.sections(SectionType.DETAILS)


# ── Generic node → markup dispatch ──


def _link_from_node(node, config):
    scheme = config.link_scheme
    if not node.url:
        return LinkReference(title=node.title)
    if scheme and node.url.startswith(scheme):
        target = node.url[len(scheme):].rstrip("/")
        return LinkReference(explicit_target=target, title=node.title)
    return Link(url=node.url, title=node.title)


_ENTITY_FACTORIES = {
    NodeKind.PARAGRAPH: lambda node, cfg: Paragraph(line=node.start_line, column=node.start_column),
    NodeKind.HEADING: lambda node, cfg: Heading(level=node.level),
    NodeKind.BLOCK_QUOTE: lambda node, cfg: BlockQuote(),
    NodeKind.LIST: lambda node, cfg: ListBlock(ordered=node.ordered, start=node.start),
    NodeKind.ITEM: lambda node, cfg: ListItem(),
    NodeKind.CODE_BLOCK: lambda node, cfg: CodeBlock(code=node.literal, info=node.info),
    NodeKind.HTML_BLOCK: lambda node, cfg: HtmlBlock(html=node.literal),
    NodeKind.THEMATIC_BREAK: lambda node, cfg: ThematicBreak(),
    NodeKind.TEXT: lambda node, cfg: Text(string=node.literal),
    NodeKind.SOFTBREAK: lambda node, cfg: SoftBreak(),
    NodeKind.LINEBREAK: lambda node, cfg: LineBreak(),
    NodeKind.CODE: lambda node, cfg: Code(string=node.literal),
    NodeKind.HTML_INLINE: lambda node, cfg: HtmlInline(html=node.literal),
    NodeKind.EMPH: lambda node, cfg: Emphasis(),
    NodeKind.STRONG: lambda node, cfg: Strong(),
    NodeKind.LINK: _link_from_node,
    NodeKind.IMAGE: lambda node, cfg: Image(url=node.url, title=node.title),
}


def make_entity(node, config):
    try:
        factory = _ENTITY_FACTORIES[node.kind]
    except KeyError:
        raise ValueError(f"no markup entity for node kind {node.kind.name}") from None
    return factory(node, config)
