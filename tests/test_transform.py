"""
tests/test_transform.py

Cumulative translation from a shape up to the document root.
"""

from __future__ import annotations

import pytest

from mermaid.transform import cumulative_translation, parse_translate
from mermaid.tree import VectorTree


class TestParseTranslate:

    @pytest.mark.parametrize("transform, expected", [
        ("translate(10, 20)", (10.0, 20.0)),
        ("translate(10 20)", (10.0, 20.0)),
        ("translate(10,20)", (10.0, 20.0)),
        ("translate(-5.5, +2.25)", (-5.5, 2.25)),
        ("translate(7)", (7.0, 0.0)),
        ("translate(1e1, -1e1)", (10.0, -10.0)),
        ("translate(10, 20) translate(-5,5)", (5.0, 25.0)),
        ("scale(2) translate(3, 4)", (3.0, 4.0)),
        ("", (0.0, 0.0)),
        ("rotate(45)", (0.0, 0.0)),
        ("translate(", (0.0, 0.0)),
    ])
    def test_parse(self, transform, expected):
        assert parse_translate(transform) == pytest.approx(expected)

    def test_none_is_zero(self):
        assert parse_translate(None) == (0.0, 0.0)


class TestCumulativeTranslation:

    SVG = (
        '<svg xmlns="http://www.w3.org/2000/svg" transform="translate(1000, 1000)">'
        '<g transform="translate(100,100)">'
        '<g transform="translate(-20.5 4)">'
        '<g><rect id="r" transform="translate(0.5, -4)" x="10" y="20" width="30" height="40"/></g>'
        '</g></g></svg>'
    )

    def test_sums_every_ancestor(self):
        tree = VectorTree.from_string(self.SVG)
        rect = next(tree.iter_tag("rect"))
        assert cumulative_translation(tree, rect) == pytest.approx((80.0, 100.0))

    def test_root_is_excluded(self):
        tree = VectorTree.from_string(self.SVG)
        assert cumulative_translation(tree, tree.root) == (0.0, 0.0)

    @pytest.mark.parametrize("chain", [
        [(1, 2), (3, 4)],
        [(-1.5, 0.25), (10, -10), (0, 0)],
        [(100, 100)],
    ])
    def test_equals_vector_sum(self, chain):
        opening = "".join(f'<g transform="translate({dx}, {dy})">' for dx, dy in chain)
        svg = f'<svg xmlns="http://www.w3.org/2000/svg">{opening}<circle r="1"/>{"</g>" * len(chain)}</svg>'
        tree = VectorTree.from_string(svg)
        circle = next(tree.iter_tag("circle"))
        expected = (sum(dx for dx, _ in chain), sum(dy for _, dy in chain))
        assert cumulative_translation(tree, circle) == pytest.approx(expected)
