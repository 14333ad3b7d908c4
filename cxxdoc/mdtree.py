"""
Generic markdown tree fed by Python-Markdown.

``MarkdownSession`` takes stripped comment lines one at a time and, once
finished, runs Python-Markdown's preprocessors, block parser and tree
processors over them. The resulting ElementTree is flattened into a
``MarkdownTree``: an arena of nodes addressed by index, with parent and
sibling links, walked by a ``TreeWalker`` cursor that emits enter/exit
events and can be repositioned when a node is cut out mid-walk.
"""

from __future__ import annotations

import copy
import html
import xml.etree.ElementTree as etree
from dataclasses import dataclass
from enum import Enum, auto

import markdown
from markdown import util


class NodeKind(Enum):
    DOCUMENT = auto()
    PARAGRAPH = auto()
    HEADING = auto()
    BLOCK_QUOTE = auto()
    LIST = auto()
    ITEM = auto()
    CODE_BLOCK = auto()
    HTML_BLOCK = auto()
    THEMATIC_BREAK = auto()
    TEXT = auto()
    SOFTBREAK = auto()
    LINEBREAK = auto()
    CODE = auto()
    HTML_INLINE = auto()
    EMPH = auto()
    STRONG = auto()
    LINK = auto()
    IMAGE = auto()


LEAF_KINDS = frozenset(
    {
        NodeKind.CODE_BLOCK,
        NodeKind.HTML_BLOCK,
        NodeKind.THEMATIC_BREAK,
        NodeKind.TEXT,
        NodeKind.SOFTBREAK,
        NodeKind.LINEBREAK,
        NodeKind.CODE,
        NodeKind.HTML_INLINE,
    }
)


@dataclass(eq=False)
class Node:
    kind: NodeKind
    literal: str = ""
    url: str = ""
    title: str = ""
    info: str = ""
    level: int = 0
    ordered: bool = False
    start: int = 1
    start_line: int = 0
    start_column: int = 0
    parent: int | None = None
    first_child: int | None = None
    last_child: int | None = None
    prev: int | None = None
    next: int | None = None
    freed: bool = False


class MarkdownTree:
    root = 0

    def __init__(self):
        self.nodes = [Node(NodeKind.DOCUMENT)]

    def __getitem__(self, index):
        node = self.nodes[index]
        if node.freed:
            raise KeyError(f"node {index} has been freed")
        return node

    def __len__(self):
        return sum(1 for n in self.nodes if not n.freed)

    def is_leaf(self, index):
        return self.nodes[index].kind in LEAF_KINDS

    def append_child(self, parent, kind, **attrs):
        index = len(self.nodes)
        node = Node(kind, parent=parent, **attrs)
        self.nodes.append(node)
        owner = self.nodes[parent]
        if owner.last_child is None:
            owner.first_child = index
        else:
            self.nodes[owner.last_child].next = index
            node.prev = owner.last_child
        owner.last_child = index
        return index

    def children(self, index):
        cur = self.nodes[index].first_child
        while cur is not None:
            yield cur
            cur = self.nodes[cur].next

    def unlink(self, index):
        node = self.nodes[index]
        if node.prev is not None:
            self.nodes[node.prev].next = node.next
        if node.next is not None:
            self.nodes[node.next].prev = node.prev
        if node.parent is not None:
            parent = self.nodes[node.parent]
            if parent.first_child == index:
                parent.first_child = node.next
            if parent.last_child == index:
                parent.last_child = node.prev
        node.parent = node.prev = node.next = None

    def free(self, index):
        stack = [index]
        while stack:
            cur = stack.pop()
            stack.extend(self.children(cur))
            self.nodes[cur].freed = True

    def walker(self):
        return TreeWalker(self)


class Event(Enum):
    NONE = auto()
    ENTER = auto()
    EXIT = auto()
    DONE = auto()


class TreeWalker:
    """Depth-first enter/exit cursor over a ``MarkdownTree``.

    Leaves only produce an ENTER event. The cursor is the last emitted
    ``(event, index)`` pair; ``reset`` moves it so the next call continues
    as if that pair had just been emitted.
    """

    def __init__(self, tree, root=MarkdownTree.root):
        self.tree = tree
        self.root = root
        self._event = Event.NONE
        self._index = None

    def next(self):
        if self._event is Event.DONE:
            return Event.DONE, None
        if self._event is Event.NONE:
            self._event, self._index = Event.ENTER, self.root
            return self._event, self._index

        nodes = self.tree.nodes
        event, cur = self._event, self._index
        if event is Event.ENTER and not self.tree.is_leaf(cur):
            first = nodes[cur].first_child
            if first is None:
                self._event = Event.EXIT
            else:
                self._event, self._index = Event.ENTER, first
        elif cur == self.root:
            self._event, self._index = Event.DONE, None
        elif nodes[cur].next is not None:
            self._event, self._index = Event.ENTER, nodes[cur].next
        elif nodes[cur].parent is not None:
            self._event, self._index = Event.EXIT, nodes[cur].parent
        else:
            self._event, self._index = Event.DONE, None
        return self._event, self._index

    def reset(self, index, event):
        self._event, self._index = event, index

    def excise(self, index):
        """Cut ``index`` out of the tree without disturbing the walk.

        The cursor resumes as if the previous sibling had just been exited,
        or, without one, as if the parent had just been entered.
        """
        node = self.tree.nodes[index]
        previous, parent = node.prev, node.parent
        self.tree.unlink(index)
        if previous is not None:
            self.reset(previous, Event.EXIT)
        else:
            self.reset(parent, Event.ENTER)
        self.tree.free(index)


# ── Python-Markdown session ──

_HEADING_TAGS = {f"h{n}": n for n in range(1, 7)}
_CONTAINER_TAGS = {"blockquote": NodeKind.BLOCK_QUOTE, "li": NodeKind.ITEM}
_BLOCK_TAGS = frozenset(
    {"p", "pre", "hr", "ul", "ol", "li", "blockquote", "div", "table", "dl"} | set(_HEADING_TAGS)
)
_INLINE_TAGS = {
    "em": NodeKind.EMPH,
    "strong": NodeKind.STRONG,
    "a": NodeKind.LINK,
    "img": NodeKind.IMAGE,
    "code": NodeKind.CODE,
    "br": NodeKind.LINEBREAK,
}
_POSITIONED_TAGS = frozenset({"p", "li"} | set(_HEADING_TAGS))


class MarkdownSession:
    def __init__(self, extensions=()):
        self._md = markdown.Markdown(extensions=list(extensions))
        self._chunks = []
        self._lines = []
        self._line_no = 0

    def feed(self, text, synthetic=False):
        """Append ``text`` (one line plus its newline) to the session source."""
        self._chunks.append(text)
        if not synthetic:
            self._line_no += 1
        self._lines.append((text.rstrip("\n"), None if synthetic else self._line_no))

    def finish(self):
        md = self._md
        lines = "".join(self._chunks).split("\n")
        for prep in md.preprocessors:
            lines = prep.run(lines)
        root = md.parser.parseDocument(lines).getroot()
        positions = self._locate_blocks(root)

        md.treeprocessors.deregister("prettify", strict=False)
        for processor in md.treeprocessors:
            new_root = processor.run(root)
            if new_root is not None:
                root = new_root

        return _TreeBuilder(md, positions).build(root)

    def _locate_blocks(self, root):
        # Python-Markdown keeps no source positions, so match the raw block
        # text of each paragraph-like element against the fed lines in order.
        positions = {}
        cursor = 0
        for elem in root.iter():
            if elem.tag not in _POSITIONED_TAGS or not elem.text or not elem.text.strip():
                continue
            first = elem.text.strip().split("\n", 1)[0].strip()
            for offset, (line, line_no) in enumerate(self._lines[cursor:]):
                col = line.find(first) if line_no is not None else -1
                if col >= 0:
                    positions[elem] = (line_no, col + 1)
                    cursor += offset + 1
                    break
        return positions


class _TreeBuilder:
    def __init__(self, md, positions):
        self.md = md
        self.positions = positions
        self.tree = MarkdownTree()

    def build(self, root):
        self._convert_container(root, MarkdownTree.root)
        return self.tree

    def _restore(self, text):
        stash = self.md.htmlStash.rawHtmlBlocks

        def replace(m):
            raw = stash[int(m.group(1))]
            return raw if isinstance(raw, str) else etree.tostring(raw, encoding="unicode")

        return util.HTML_PLACEHOLDER_RE.sub(replace, text)

    def _position(self, elem):
        line, column = self.positions.get(elem, (0, 0))
        return {"start_line": line, "start_column": column}

    def _convert_block(self, elem, parent):
        tag = elem.tag
        tree = self.tree
        if tag == "p":
            text = (elem.text or "").strip()
            if len(elem) == 0 and util.HTML_PLACEHOLDER_RE.fullmatch(text):
                tree.append_child(parent, NodeKind.HTML_BLOCK, literal=self._restore(text))
                return
            index = tree.append_child(parent, NodeKind.PARAGRAPH, **self._position(elem))
            self._convert_pieces(list(_pieces(elem)), index)
        elif tag in _HEADING_TAGS:
            index = tree.append_child(
                parent, NodeKind.HEADING, level=_HEADING_TAGS[tag], **self._position(elem)
            )
            self._convert_pieces(list(_pieces(elem)), index)
        elif tag == "pre":
            code = elem[0] if len(elem) and elem[0].tag == "code" else elem
            info = ""
            for cls in (code.get("class") or "").split():
                if cls.startswith("language-"):
                    info = cls[len("language-"):]
            tree.append_child(
                parent, NodeKind.CODE_BLOCK, literal=html.unescape(code.text or ""), info=info
            )
        elif tag == "hr":
            tree.append_child(parent, NodeKind.THEMATIC_BREAK)
        elif tag in ("ul", "ol"):
            index = tree.append_child(
                parent, NodeKind.LIST, ordered=tag == "ol", start=int(elem.get("start", 1))
            )
            for child in elem:
                self._convert_block(child, index)
        elif tag in _CONTAINER_TAGS:
            index = tree.append_child(parent, _CONTAINER_TAGS[tag])
            self._convert_container(elem, index)
        else:
            tree.append_child(parent, NodeKind.HTML_BLOCK, literal=_serialize(elem))

    def _convert_container(self, elem, index):
        # Loose inline content of a block container (tight list items) is
        # wrapped into a paragraph of its own.
        pending = []
        for piece in _pieces(elem):
            if isinstance(piece, str) or piece.tag not in _BLOCK_TAGS:
                pending.append(piece)
                continue
            self._flush(pending, elem, index)
            pending = []
            self._convert_block(piece, index)
        self._flush(pending, elem, index)

    def _flush(self, pending, owner, parent):
        if not any(not isinstance(p, str) or p.strip() for p in pending):
            return
        index = self.tree.append_child(parent, NodeKind.PARAGRAPH, **self._position(owner))
        self._convert_pieces(pending, index)

    def _convert_pieces(self, pieces, parent):
        if pieces and isinstance(pieces[0], str):
            pieces[0] = pieces[0].lstrip()
        if pieces and isinstance(pieces[-1], str):
            pieces[-1] = pieces[-1].rstrip()
        for piece in pieces:
            if isinstance(piece, str):
                self._emit_text(piece, parent)
            else:
                self._convert_inline(piece, parent)

    def _convert_inline(self, elem, parent):
        tree = self.tree
        kind = _INLINE_TAGS.get(elem.tag)
        if kind is NodeKind.CODE:
            tree.append_child(parent, kind, literal=html.unescape(self._restore(elem.text or "")))
        elif kind is NodeKind.LINEBREAK:
            tree.append_child(parent, kind)
        elif kind is NodeKind.IMAGE:
            index = tree.append_child(
                parent, kind, url=elem.get("src", ""), title=elem.get("title", "")
            )
            self._emit_text(elem.get("alt", ""), index)
        elif kind is NodeKind.LINK:
            index = tree.append_child(
                parent, kind, url=elem.get("href", ""), title=elem.get("title", "")
            )
            self._convert_pieces(list(_pieces(elem)), index)
        elif kind is not None:
            index = tree.append_child(parent, kind)
            self._convert_pieces(list(_pieces(elem)), index)
        else:
            tree.append_child(parent, NodeKind.HTML_INLINE, literal=_serialize(elem))

    def _emit_text(self, text, parent):
        text = self._restore(text)
        for i, part in enumerate(text.split("\n")):
            if i:
                self.tree.append_child(parent, NodeKind.SOFTBREAK)
            if part:
                self.tree.append_child(parent, NodeKind.TEXT, literal=part)


def _pieces(elem):
    if elem.text:
        yield elem.text
    for child in elem:
        yield child
        if child.tail:
            yield child.tail


def _serialize(elem):
    clone = copy.copy(elem)
    clone.tail = None
    return etree.tostring(clone, encoding="unicode")
