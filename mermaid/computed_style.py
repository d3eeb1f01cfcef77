"""
mermaid/computed_style.py

Resolve the computed ``fill``, ``stroke`` and ``stroke-dasharray`` of SVG
elements.

Mermaid styles its output three ways at once: presentation attributes
(``fill="#fff"``), an embedded ``<style>`` sheet scoped to the root id
(``#my-svg .node rect{fill:#ECECFF}``), and inline ``style`` attributes
from ``classDef``/``style`` statements.  The cascade implemented here is:

    presentation attribute < sheet rule (specificity, then source order)
    < inline style < ``!important`` sheet rule < ``!important`` inline style

Unset properties inherit from the nearest ancestor.  Only descendant
combinators with tag, class and id selectors are understood; selectors
with pseudo-classes, attribute tests or child/sibling combinators are
skipped.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from mermaid.tree import VectorTree, class_tokens, local_name
from utils import parse_float

# Properties resolved (all inherited in CSS)
STYLE_PROPERTIES = ("fill", "stroke", "stroke-dasharray")

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_RULE_RE = re.compile(r"([^{}]+)\{([^{}]*)\}")
_COMPOUND_RE = re.compile(r"^(?P<tag>\*|[A-Za-z][\w-]*)?(?P<rest>(?:[.#][\w-]+)*)$")


@dataclass(frozen=True)
class _Compound:
    tag: Optional[str]
    classes: Tuple[str, ...]
    ids: Tuple[str, ...]

    def matches(self, el: ET.Element) -> bool:
        if self.tag and self.tag != "*" and local_name(el.tag) != self.tag:
            return False
        if self.ids and el.get("id") not in self.ids:
            return False
        tokens = class_tokens(el)
        return all(c in tokens for c in self.classes)


@dataclass(frozen=True)
class _Rule:
    compounds: Tuple[_Compound, ...]   # left to right
    specificity: Tuple[int, int, int]
    order: int
    declarations: Dict[str, Tuple[str, bool]]


def parse_declarations(text: str) -> Dict[str, Tuple[str, bool]]:
    """Parse ``prop: value; ...`` into ``{prop: (value, important)}``."""
    result: Dict[str, Tuple[str, bool]] = {}
    for decl in (text or "").split(";"):
        if ":" not in decl:
            continue
        prop, value = decl.split(":", 1)
        prop = prop.strip().lower()
        value = value.strip()
        important = False
        if value.lower().endswith("!important"):
            value = value[: -len("!important")].strip()
            important = True
        if prop and value:
            result[prop] = (value, important)
    return result


def _parse_selector(selector: str) -> Optional[Tuple[Tuple[_Compound, ...], Tuple[int, int, int]]]:
    selector = selector.strip()
    if not selector or any(ch in selector for ch in ":[>+~"):
        return None
    compounds: List[_Compound] = []
    ids = classes = tags = 0
    for part in selector.split():
        m = _COMPOUND_RE.match(part)
        if not m:
            return None
        rest = m.group("rest") or ""
        cls = tuple(re.findall(r"\.([\w-]+)", rest))
        idents = tuple(re.findall(r"#([\w-]+)", rest))
        tag = m.group("tag")
        compounds.append(_Compound(tag, cls, idents))
        ids += len(idents)
        classes += len(cls)
        tags += 1 if tag and tag != "*" else 0
    return tuple(compounds), (ids, classes, tags)


def parse_style_sheet(css: str, start_order: int = 0) -> List[_Rule]:
    """Parse a style sheet into rules touching the resolved properties."""
    rules: List[_Rule] = []
    order = start_order
    for m in _RULE_RE.finditer(_COMMENT_RE.sub("", css or "")):
        decls = {
            k: v for k, v in parse_declarations(m.group(2)).items()
            if k in STYLE_PROPERTIES
        }
        if not decls:
            continue
        for selector in m.group(1).split(","):
            parsed = _parse_selector(selector)
            if parsed is None:
                continue
            compounds, spec = parsed
            rules.append(_Rule(compounds, spec, order, decls))
            order += 1
    return rules


def parse_dash_array(value: Optional[str]) -> Optional[Tuple[float, ...]]:
    """Parse ``stroke-dasharray`` into a tuple of lengths.

    Units are stripped, commas and whitespace both separate values and
    ``none`` (or an all-zero pattern) yields None.
    """
    if not value:
        return None
    value = value.strip()
    if value.lower() in ("none", "inherit", "initial"):
        return None
    parts = [p for p in re.split(r"[\s,]+", value) if p]
    if not parts:
        return None
    lengths = tuple(parse_float(p) for p in parts)
    if any(v < 0 for v in lengths) or not any(v > 0 for v in lengths):
        return None
    return lengths


class ComputedStyle:
    """Cascade and inheritance for one vector tree.

    Results are cached per element; the tree must not change afterwards.

    Args:
        tree: The vector tree whose ``<style>`` sheets apply.
    """

    def __init__(self, tree: VectorTree):
        self._tree = tree
        self._rules: List[_Rule] = []
        for css in tree.style_sheets():
            self._rules.extend(parse_style_sheet(css, start_order=len(self._rules)))
        self._cache: Dict[ET.Element, Dict[str, Optional[str]]] = {}

    def _matches(self, rule: _Rule, el: ET.Element) -> bool:
        *ancestors_sel, subject = rule.compounds
        if not subject.matches(el):
            return False
        # Right-to-left descendant matching
        candidates = self._tree.ancestors(el)
        for compound in reversed(ancestors_sel):
            for anc in candidates:
                if compound.matches(anc):
                    break
            else:
                return False
        return True

    def _specified(self, el: ET.Element) -> Dict[str, str]:
        """Cascaded (not inherited) values of the resolved properties."""
        ranked: Dict[str, Tuple[Tuple, str]] = {}

        def offer(prop: str, value: str, rank: Tuple) -> None:
            if prop not in ranked or rank >= ranked[prop][0]:
                ranked[prop] = (rank, value)

        for prop in STYLE_PROPERTIES:
            attr = el.get(prop)
            if attr is not None and attr.strip():
                offer(prop, attr.strip(), (0,))

        for rule in self._rules:
            if self._matches(rule, el):
                for prop, (value, important) in rule.declarations.items():
                    offer(prop, value, (3 if important else 1, rule.specificity, rule.order))

        for prop, (value, important) in parse_declarations(el.get("style", "")).items():
            if prop in STYLE_PROPERTIES:
                offer(prop, value, (4 if important else 2,))

        return {prop: value for prop, (_, value) in ranked.items()}

    def computed(self, el: ET.Element) -> Dict[str, Optional[str]]:
        """Computed values of ``fill``, ``stroke`` and ``stroke-dasharray``.

        A property that is never specified on the element or its ancestors
        is None.
        """
        cached = self._cache.get(el)
        if cached is not None:
            return cached
        parent = self._tree.parent(el)
        inherited = self.computed(parent) if parent is not None else dict.fromkeys(STYLE_PROPERTIES)
        values = dict(inherited)
        for prop, value in self._specified(el).items():
            if value.lower() == "inherit":
                continue
            values[prop] = value
        self._cache[el] = values
        return values

    def fill(self, el: ET.Element) -> Optional[str]:
        return self.computed(el)["fill"]

    def stroke(self, el: ET.Element) -> Optional[str]:
        return self.computed(el)["stroke"]

    def dash_pattern(self, el: ET.Element) -> Optional[Tuple[float, ...]]:
        return parse_dash_array(self.computed(el)["stroke-dasharray"])
