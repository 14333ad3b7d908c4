"""
Documentation comment parser.

Strips the comment leaders off a raw C++ comment, feeds the lines into a
Python-Markdown session and materializes the resulting tree into the typed
entities of :mod:`cxxdoc.markup`. Every paragraph is classified on exit:
the first one defaults to the brief section, later ones to details, and a
leading command word (``\\effects``, ``\\group`` ...) overrides that.
A paragraph with a malformed command is reported and cut out of the tree.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .config import ARGUMENT_COMMANDS, CommandKind, INLINE_COMMANDS, load_config
from .markup import (
    DocumentationComment,
    InlineComment,
    Paragraph,
    SectionType,
    Text,
    make_entity,
)
from .mdtree import Event, MarkdownSession, NodeKind

log = logging.getLogger("cxxdoc")

_WORD_RE = re.compile(r"\S*")


# ── Line stripping ──


def strip_comment_line(line, leaders="/!"):
    s = line.lstrip(" \t")
    if s and s[0] in leaders:
        s = s.lstrip(leaders)
        s = s.lstrip(" \t")
    return s


def strip_comment(raw, leaders="/!"):
    return [strip_comment_line(line, leaders) for line in raw.split("\n")]


def feed_markdown(lines, config):
    session = MarkdownSession(config.markdown_extensions)
    last = len(lines) - 1
    for i, line in enumerate(lines):
        if (
            i
            and not config.implicit_paragraph
            and line.startswith(config.command_character)
            and lines[i - 1].strip()
        ):
            # a command line always opens a paragraph of its own
            session.feed("\n", synthetic=True)
        session.feed(line if i == last else line + "\n")
        if config.implicit_paragraph and i != last:
            session.feed("\n", synthetic=True)
    return session.finish()


# ── Parsing ──


@dataclass(frozen=True)
class ParseError:
    message: str
    line: int
    column: int

    def __str__(self):
        return f"({self.line}:{self.column}): {self.message}"


class CommentParser:
    """Parses the raw comments of one documented entity.

    ``name`` identifies the owning entity in warnings.
    """

    def __init__(self, config=None, name=""):
        self.config = config or load_config()
        self.name = name
        self.first_paragraph = True

    def parse(self, raw):
        self.first_paragraph = True
        tree = feed_markdown(strip_comment(raw, self.config.comment_leaders), self.config)
        comment = self._materialize(tree)
        self._collect_commands(comment)
        return comment

    def _materialize(self, tree):
        comment = DocumentationComment()
        containers = [comment]
        direct_children = []
        attached = {}

        walker = tree.walker()
        while True:
            event, index = walker.next()
            if event is Event.DONE:
                break
            node = tree[index]
            if node.kind is NodeKind.DOCUMENT:
                continue

            if event is Event.ENTER:
                entity = make_entity(node, self.config)
                parent = containers[-1]
                if entity.container:
                    containers.append(entity)
                if node.parent == tree.root:
                    direct_children.append(entity)
                else:
                    parent.add_entity(entity)
                attached[index] = (entity, parent)
            else:
                top = containers.pop()
                if not isinstance(top, Paragraph):
                    continue
                error = self.classify(top, node)
                if error is None:
                    continue
                log.warning(
                    "cxxdoc: %s (%d:%d): %s", self.name, error.line, error.column, error.message
                )
                entity, parent = attached.pop(index)
                if node.parent == tree.root:
                    direct_children = [e for e in direct_children if e is not entity]
                else:
                    parent.remove_entity(entity)
                walker.excise(index)

        for entity in direct_children:
            comment.add_entity(entity)
        return comment

    def classify(self, paragraph, node):
        config = self.config
        first = self.first_paragraph
        default = SectionType.BRIEF if self.first_paragraph else SectionType.DETAILS
        paragraph.set_section_type(default, config.section_name(default))
        self.first_paragraph = False

        if not paragraph.children or not isinstance(paragraph.children[0], Text):
            # emphasis, links, code ... never start a command
            return None
        text = paragraph.children[0]
        if not text.string.startswith(config.command_character):
            return None

        rest = text.string[len(config.command_character):]
        word = _WORD_RE.match(rest).group(0)
        command = config.try_get_command(word)
        if command is None:
            return ParseError(f"Unknown command '{word}'", node.start_line, node.start_column)

        text.string = rest[len(word):].lstrip()
        if command.kind is CommandKind.SECTION:
            paragraph.set_section_type(
                command.section_type, config.section_name(command.section_type)
            )
            return None

        if command.kind in ARGUMENT_COMMANDS and not _first_line(paragraph):
            return ParseError(
                f"Missing argument for command '{word}'", node.start_line, node.start_column
            )
        paragraph.command = command
        # command paragraphs never become sections
        self.first_paragraph = first
        return None

    def _collect_commands(self, comment):
        metadata = comment.metadata
        for paragraph in list(comment.children):
            if not isinstance(paragraph, Paragraph) or paragraph.command is None:
                continue
            comment.remove_entity(paragraph)
            kind = paragraph.command.kind
            argument = _first_line(paragraph)

            if kind is CommandKind.GROUP:
                key, _, name = argument.partition(" ")
                metadata.group = (key, name.strip())
            elif kind is CommandKind.MODULE:
                metadata.module = argument
            elif kind is CommandKind.UNIQUE_NAME:
                metadata.unique_name = argument
            elif kind is CommandKind.EXCLUDE:
                metadata.exclude = True
            elif kind in INLINE_COMMANDS:
                name = argument.split(None, 1)[0]
                first = paragraph.children[0] if paragraph.children else None
                if isinstance(first, Text) and first.string.startswith(name):
                    first.string = first.string[len(name):].lstrip()
                comment.inlines.append(InlineComment(kind, name, paragraph))


def _first_line(paragraph):
    return paragraph.plain_text().split("\n", 1)[0].strip()


def parse_comment(raw, name="", config=None):
    return CommentParser(config, name).parse(raw)
