"""
Cross-document linker.

Linking runs in two phases over the whole document set. Every document is
registered into a ``RegistryBuilder`` first; ``freeze()`` then hands out the
read-only ``EntityRegistry`` that ``resolve_links`` looks references up in.
References come in three forms:

  - long: ``ns::foo<T>::bar(int)``; parameter and template decoration only
    picks between overloads
  - short: ``bar``, optionally with a member suffix ``bar.param``
  - relative: ``*bar`` looks in the comment owner's scope, every ``?``
    climbs one enclosing scope further

Lookups start in the owning scope and move outward to the global scope.
Undocumented entities resolve to their nearest documented ancestor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType

from .entity import (
    EntityKind,
    is_decorated,
    normalize_id,
    split_scopes,
    strip_decoration,
    stripped_name,
    stripped_scope,
)
from .markup import LinkReference, MdContainer

log = logging.getLogger("cxxdoc")

_SCOPE_MEMBER_KINDS = frozenset({EntityKind.MEMBER_VARIABLE, EntityKind.ENUMERATOR})


class RegistryFrozenError(RuntimeError):
    pass


@dataclass(frozen=True)
class Destination:
    document_id: str
    entity_id: str
    name: str = ""


@dataclass(frozen=True)
class _Candidate:
    destination: Destination
    scope: tuple
    last: str


# ── Registration ──


class RegistryBuilder:
    def __init__(self):
        self._ids = {}
        self._names = {}
        self._short = {}
        self._fallback = {}
        self._frozen = False

    def register(self, document):
        if self._frozen:
            raise RegistryFrozenError(
                f"cannot register '{document.id}': links are already being resolved"
            )
        for file_doc in document.files:
            docs = {}
            grouped = {}
            for doc in file_doc.walk():
                docs[doc.entity] = doc
                if doc.group is not None:
                    for member in doc.group.members[1:]:
                        grouped[member] = doc
            self._walk(document.id, file_doc.entity, docs, grouped, None)

    def _walk(self, document_id, entity, docs, grouped, nearest):
        doc = docs.get(entity)
        if doc is not None:
            nearest = self._add(document_id, doc)
        else:
            owner = grouped.get(entity)
            if owner is not None:
                nearest = Destination(document_id, owner.id, owner.name)
            self._fallback.setdefault(normalize_id(entity.unique_id), nearest)
        for child in entity.children:
            self._walk(document_id, child, docs, grouped, nearest)

    def _add(self, document_id, doc):
        entity = doc.entity
        dest = Destination(document_id, doc.id, entity.name)
        self._ids[normalize_id(doc.id)] = dest
        self._index(dest, entity.unique_id)
        self._index_short(dest, entity.name, entity.unique_id)
        if doc.id != entity.unique_id:
            # explicit unique name; the natural id still leads here
            self._index(dest, doc.id)
            self._fallback.setdefault(normalize_id(entity.unique_id), dest)
        for inline in doc.inlines:
            inline_dest = Destination(document_id, inline.id, inline.name)
            self._ids[normalize_id(inline.id)] = inline_dest
            if inline.kind in _SCOPE_MEMBER_KINDS:
                self._index(inline_dest, inline.id)
                self._index_short(inline_dest, inline.name, inline.id)
        return dest

    def _index(self, dest, qualified):
        candidate = _Candidate(dest, stripped_scope(qualified)[:-1], _last(qualified))
        self._names.setdefault(stripped_name(qualified), []).append(candidate)

    def _index_short(self, dest, name, qualified):
        candidate = _Candidate(dest, stripped_scope(qualified)[:-1], _last(qualified))
        self._short.setdefault(name, []).append(candidate)

    def freeze(self):
        self._frozen = True
        return EntityRegistry(
            ids=dict(self._ids),
            names={k: tuple(v) for k, v in self._names.items()},
            short={k: tuple(v) for k, v in self._short.items()},
            fallback=dict(self._fallback),
        )


def _last(qualified):
    return normalize_id(split_scopes(qualified)[-1])


# ── Link targets ──


class LinkForm(Enum):
    LONG = auto()
    SHORT = auto()
    RELATIVE = auto()


@dataclass(frozen=True)
class LinkTarget:
    text: str
    form: LinkForm
    path: str
    climb: int = 0
    global_only: bool = False
    base: str = ""
    member: str = ""


def parse_link_target(text):
    text = text.strip()
    path = text
    relative = False
    climb = 0
    while path and path[0] in "*?":
        relative = True
        if path[0] == "?":
            climb += 1
        path = path[1:]

    global_only = path.startswith("::")
    if global_only:
        path = path[2:]

    if relative:
        form = LinkForm.RELATIVE
    elif "::" in path or is_decorated(path) or global_only:
        form = LinkForm.LONG
    else:
        form = LinkForm.SHORT

    base, member = _split_member(path)
    return LinkTarget(
        text=text,
        form=form,
        path=path,
        climb=climb,
        global_only=global_only,
        base=base,
        member=member,
    )


def _split_member(path):
    depth = 0
    split = -1
    for i, ch in enumerate(path):
        if ch in "(<":
            depth += 1
        elif ch in ")>":
            depth = max(depth - 1, 0)
        elif ch == "." and depth == 0:
            split = i
    if split <= 0:
        return path, ""
    member = path[split + 1:]
    if not member or not (member[0].isalpha() or member[0] == "_"):
        return path, ""
    return path[:split], member


# ── Lookup ──

_AMBIGUOUS = object()


class EntityRegistry:
    """Frozen lookup structure produced by ``RegistryBuilder.freeze``."""

    def __init__(self, ids, names, short, fallback):
        self._ids = MappingProxyType(ids)
        self._names = MappingProxyType(names)
        self._short = MappingProxyType(short)
        self._fallback = MappingProxyType(fallback)

    def __contains__(self, entity_id):
        return normalize_id(entity_id) in self._ids

    def destination(self, entity_id):
        key = normalize_id(entity_id)
        return self._ids.get(key) or self._fallback.get(key)

    def lookup(self, text, scope_chain=()):
        """Resolve link text written inside the scopes ``scope_chain`` (outermost first)."""
        target = parse_link_target(text)
        chain = list(scope_chain)
        if target.form is LinkForm.RELATIVE:
            chain = chain[: max(len(chain) - target.climb, 0)]
        if target.global_only:
            chain = []

        if target.member:
            base = self._find(target.base, chain, target)
            if base is _AMBIGUOUS:
                return None
            if base is not None:
                return self.destination(f"{base.entity_id}.{target.member}") or base

        found = self._find(target.path, chain, target)
        return None if found is _AMBIGUOUS else found

    def _find(self, path, chain, target):
        if not path:
            return None
        written_last = normalize_id(split_scopes(path)[-1])
        prefixes = [] if target.global_only else list(reversed(chain))
        for prefix in prefixes + [""]:
            full = f"{prefix}::{path}" if prefix else path
            dest = self.destination(full)
            if dest is not None:
                return dest
            candidates = self._names.get(stripped_name(full))
            if candidates:
                return self._choose(candidates, written_last, target)

        if target.global_only or len(split_scopes(path)) > 1:
            return None
        name = strip_decoration(path)
        candidates = self._short.get(name)
        if not candidates:
            return None
        owner = stripped_scope(chain[-1]) if chain else ()
        best = max(_common_prefix(c.scope, owner) for c in candidates)
        nearest = [c for c in candidates if _common_prefix(c.scope, owner) == best]
        return self._choose(nearest, written_last, target)

    def _choose(self, candidates, written_last, target):
        if is_decorated(written_last):
            exact = [c for c in candidates if c.last == written_last]
            if exact:
                candidates = exact
        destinations = list(dict.fromkeys(c.destination for c in candidates))
        if len(destinations) == 1:
            return destinations[0]
        log.warning(
            "cxxdoc: ambiguous link '%s': %s",
            target.text,
            ", ".join(d.entity_id for d in destinations),
        )
        return _AMBIGUOUS


def _common_prefix(a, b):
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n


# ── Resolution ──


def resolve_links(document, registry):
    """Replace resolvable references in ``document`` and return the ones left unresolved."""
    unresolved = []
    for doc in document.walk():
        chain = doc.entity.scope_chain()
        if doc.comment is not None:
            _resolve_container(doc.comment, chain, registry, unresolved)
        for inline in doc.inlines:
            _resolve_container(inline.content, chain, registry, unresolved)
    return unresolved


def _resolve_container(container, chain, registry, unresolved):
    for i, child in enumerate(container.children):
        if isinstance(child, LinkReference):
            dest = registry.lookup(child.target, chain)
            if dest is None:
                log.debug("cxxdoc: unresolved link '%s'", child.target)
                unresolved.append(child)
            else:
                container.children[i] = child.resolve(dest)
        elif isinstance(child, MdContainer):
            _resolve_container(child, chain, registry, unresolved)


def link_documents(documents):
    builder = RegistryBuilder()
    for document in documents:
        builder.register(document)
    registry = builder.freeze()
    for document in documents:
        resolve_links(document, registry)
    return registry
