"""
mermaid/tree.py

Namespace-agnostic view over a rendered Mermaid SVG.

ElementTree has no parent pointers and qualifies every tag with its
namespace (``{http://www.w3.org/2000/svg}g``).  ``VectorTree`` builds a
parent map once and exposes helpers keyed on local tag names and class
tokens so the extractors never deal with namespaces.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional

_SVG_NS = "http://www.w3.org/2000/svg"
_XHTML_NS = "http://www.w3.org/1999/xhtml"


def local_name(tag) -> str:
    """Strip any ``{namespace}`` prefix from an element tag."""
    if not isinstance(tag, str):
        # Comments and processing instructions
        return ""
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def class_tokens(el: ET.Element) -> List[str]:
    """Whitespace-separated tokens of the element's ``class`` attribute."""
    return (el.get("class") or "").split()


def has_class(el: ET.Element, name: str) -> bool:
    return name in class_tokens(el)


class VectorTree:
    """A parsed SVG document with parent links.

    Args:
        root: Root ``<svg>`` element.
    """

    def __init__(self, root: ET.Element):
        self.root = root
        self._parents: Dict[ET.Element, ET.Element] = {c: p for p in root.iter() for c in p}

    @classmethod
    def from_string(cls, svg_text: str) -> "VectorTree":
        """Parse SVG text.

        Raises:
            xml.etree.ElementTree.ParseError: If the text is not well-formed XML.
        """
        return cls(ET.fromstring(svg_text))

    @classmethod
    def from_file(cls, svg_path: str) -> "VectorTree":
        return cls(ET.parse(svg_path).getroot())

    def parent(self, el: ET.Element) -> Optional[ET.Element]:
        return self._parents.get(el)

    def ancestors(self, el: ET.Element) -> Iterator[ET.Element]:
        """Yield the parent chain of *el*, nearest first, including the root."""
        p = self._parents.get(el)
        while p is not None:
            yield p
            p = self._parents.get(p)

    def iter_tag(self, name: str, start: Optional[ET.Element] = None) -> Iterator[ET.Element]:
        """Yield descendants (and *start* itself) with local tag *name*, in document order."""
        for el in (start if start is not None else self.root).iter():
            if local_name(el.tag) == name:
                yield el

    def iter_elements(self) -> Iterator[ET.Element]:
        for el in self.root.iter():
            if local_name(el.tag):
                yield el

    def style_sheets(self) -> List[str]:
        """Text of every ``<style>`` element in the document."""
        return ["".join(el.itertext()) for el in self.iter_tag("style")]

    def view_box(self):
        """Return ``(x, y, w, h)`` from the root ``viewBox``, or None if absent/invalid."""
        raw = (self.root.get("viewBox") or "").replace(",", " ").split()
        if len(raw) != 4:
            return None
        try:
            x, y, w, h = (float(v) for v in raw)
        except ValueError:
            return None
        if w <= 0 or h <= 0:
            return None
        return (x, y, w, h)
