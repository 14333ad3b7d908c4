"""
Comment configuration.

Options are declared as a MkDocs config schema so they validate the same way
plugin options do; ``load_config`` turns a validated option set into the
frozen ``CommentConfig`` that the parser and classifier are handed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType

from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig
from mkdocs.config.base import ValidationError
from mkdocs.exceptions import ConfigurationError

from .markup import SectionType

log = logging.getLogger("cxxdoc")


class CommandKind(Enum):
    SECTION = auto()
    GROUP = auto()
    MODULE = auto()
    UNIQUE_NAME = auto()
    EXCLUDE = auto()
    PARAM = auto()
    TPARAM = auto()
    BASE = auto()


ENTITY_COMMANDS = frozenset(
    {CommandKind.GROUP, CommandKind.MODULE, CommandKind.UNIQUE_NAME, CommandKind.EXCLUDE}
)
INLINE_COMMANDS = frozenset({CommandKind.PARAM, CommandKind.TPARAM, CommandKind.BASE})
ARGUMENT_COMMANDS = (ENTITY_COMMANDS | INLINE_COMMANDS) - {CommandKind.EXCLUDE}


@dataclass(frozen=True)
class Command:
    word: str
    kind: CommandKind
    section_type: SectionType | None = None


_DEFAULT_SECTION_COMMANDS = {
    "brief": SectionType.BRIEF,
    "details": SectionType.DETAILS,
    "requires": SectionType.REQUIRES,
    "effects": SectionType.EFFECTS,
    "synchronization": SectionType.SYNCHRONIZATION,
    "postconditions": SectionType.POSTCONDITIONS,
    "returns": SectionType.RETURNS,
    "throws": SectionType.THROWS,
    "complexity": SectionType.COMPLEXITY,
    "remarks": SectionType.REMARKS,
    "error_conditions": SectionType.ERROR_CONDITIONS,
    "notes": SectionType.NOTES,
    "see": SectionType.SEE,
}

_DEFAULT_SECTION_NAMES = {
    SectionType.BRIEF: "",
    SectionType.DETAILS: "",
    SectionType.REQUIRES: "Requires",
    SectionType.EFFECTS: "Effects",
    SectionType.SYNCHRONIZATION: "Synchronization",
    SectionType.POSTCONDITIONS: "Postconditions",
    SectionType.RETURNS: "Return values",
    SectionType.THROWS: "Throws",
    SectionType.COMPLEXITY: "Complexity",
    SectionType.REMARKS: "Remarks",
    SectionType.ERROR_CONDITIONS: "Error conditions",
    SectionType.NOTES: "Notes",
    SectionType.SEE: "See also",
}

_COMMAND_OPTIONS = {
    "group_command": CommandKind.GROUP,
    "module_command": CommandKind.MODULE,
    "unique_name_command": CommandKind.UNIQUE_NAME,
    "exclude_command": CommandKind.EXCLUDE,
    "param_command": CommandKind.PARAM,
    "tparam_command": CommandKind.TPARAM,
    "base_command": CommandKind.BASE,
}


def _builtin_commands():
    commands = {
        word: Command(word, CommandKind.SECTION, section)
        for word, section in _DEFAULT_SECTION_COMMANDS.items()
    }
    for option, kind in _COMMAND_OPTIONS.items():
        word = option[: -len("_command")]
        commands[word] = Command(word, kind)
    return commands


def _section_type(name):
    try:
        section = SectionType[str(name).upper()]
    except KeyError:
        raise ValidationError(f"Unknown section type '{name}'") from None
    if section is SectionType.UNCLASSIFIED:
        raise ValidationError("Section type 'unclassified' cannot be assigned")
    return section


class _Character(config_options.Type):
    def __init__(self, default):
        super().__init__(str, default=default)

    def run_validation(self, value):
        value = super().run_validation(value)
        if len(value) != 1:
            raise ValidationError(f"Expected a single character, got {value!r}")
        return value


class _SectionMapping(config_options.Type):
    """Mapping whose values (or keys, with ``keys=True``) name section types."""

    def __init__(self, keys=False):
        super().__init__(dict, default={})
        self.keys = keys

    def run_validation(self, value):
        value = super().run_validation(value)
        for k, v in value.items():
            _section_type(k if self.keys else v)
        return value


class CommentOptions(MkDocsConfig):
    command_character = _Character(default="\\")
    comment_leaders = config_options.Type(str, default="/!")
    implicit_paragraph = config_options.Type(bool, default=False)
    link_scheme = config_options.Type(str, default="cxxdoc://")
    section_commands = _SectionMapping()
    section_names = _SectionMapping(keys=True)
    group_command = config_options.Type(str, default="group")
    module_command = config_options.Type(str, default="module")
    unique_name_command = config_options.Type(str, default="unique_name")
    exclude_command = config_options.Type(str, default="exclude")
    param_command = config_options.Type(str, default="param")
    tparam_command = config_options.Type(str, default="tparam")
    base_command = config_options.Type(str, default="base")
    markdown_extensions = config_options.Type(list, default=[])


@dataclass(frozen=True)
class CommentConfig:
    command_character: str = "\\"
    comment_leaders: str = "/!"
    implicit_paragraph: bool = False
    link_scheme: str = "cxxdoc://"
    markdown_extensions: tuple = ()
    commands: MappingProxyType = field(
        default_factory=lambda: MappingProxyType(_builtin_commands())
    )
    section_names: MappingProxyType = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_SECTION_NAMES))
    )

    @classmethod
    def from_options(cls, opts):
        commands = {
            word: Command(word, CommandKind.SECTION, section)
            for word, section in _DEFAULT_SECTION_COMMANDS.items()
        }
        for word, name in opts["section_commands"].items():
            commands[word] = Command(word, CommandKind.SECTION, _section_type(name))
        for option, kind in _COMMAND_OPTIONS.items():
            word = opts[option]
            commands[word] = Command(word, kind)

        names = dict(_DEFAULT_SECTION_NAMES)
        for key, name in opts["section_names"].items():
            names[_section_type(key)] = name

        return cls(
            command_character=opts["command_character"],
            comment_leaders=opts["comment_leaders"],
            implicit_paragraph=opts["implicit_paragraph"],
            link_scheme=opts["link_scheme"],
            markdown_extensions=tuple(opts["markdown_extensions"]),
            commands=MappingProxyType(commands),
            section_names=MappingProxyType(names),
        )

    def try_get_command(self, word):
        return self.commands.get(word)

    def section_name(self, section_type):
        return self.section_names.get(section_type, "")


def load_config(options=None):
    opts = CommentOptions()
    opts.load_dict(dict(options or {}))
    errors, warnings = opts.validate()
    for key, warning in warnings:
        log.warning("cxxdoc: config value '%s': %s", key, warning)
    if errors:
        raise ConfigurationError(
            "\n".join(f"cxxdoc: config value '{key}': {error}" for key, error in errors)
        )
    return CommentConfig.from_options(opts)
