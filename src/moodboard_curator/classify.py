"""Keyword classifier mapping a candidate onto the fixed garment taxonomy."""

from __future__ import annotations

import re

from moodboard_curator.models import Category


def _family(*words: str) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(words) + r")\b")


# Checked in this order; the first family that matches wins.
_FAMILIES: tuple[tuple[Category, re.Pattern[str]], ...] = (
    (
        "shoes",
        _family(
            r"boots?", r"shoes?", r"sneakers?", r"trainers?", r"loafers?", r"derby", r"derbies",
            r"oxfords?", r"mocs?", r"moccasins?", r"clogs?", r"sandals?", r"mules?", r"heels?", r"footwear",
        ),
    ),
    (
        "accessories",
        _family(
            r"belts?", r"watch(?:es)?", r"bags?", r"totes?", r"backpacks?", r"sunglass(?:es)?", r"hats?",
            r"caps?", r"beanies?", r"scarf", r"scarves", r"wallets?", r"jewell?ery", r"bracelets?", r"rings?",
            r"necklaces?", r"earrings?", r"gloves?",
        ),
    ),
    (
        "outerwear",
        _family(
            r"jackets?", r"coats?", r"overcoats?", r"bombers?", r"outerwear", r"parkas?", r"blazers?",
            r"trench", r"puffers?", r"anoraks?", r"windbreakers?", r"gilets?",
        ),
    ),
    (
        "bottoms",
        _family(
            r"pants?", r"trousers?", r"jeans?", r"denim", r"chinos?", r"cargos?", r"slacks", r"shorts",
            r"skirts?", r"joggers?", r"leggings",
        ),
    ),
    (
        "tops",
        _family(
            r"shirts?", r"t-shirts?", r"tees?", r"tops?", r"knits?", r"knitwear", r"sweaters?",
            r"sweatshirts?", r"hoodies?", r"polos?", r"button-ups?", r"button downs?", r"blouses?",
            r"cardigans?", r"tanks?", r"turtlenecks?",
        ),
    ),
)


def classify(origin_query: str, title: str, source_link: str) -> Category:
    text = f"{origin_query} {title} {source_link}".lower()
    for category, pattern in _FAMILIES:
        if pattern.search(text):
            return category
    return "other"
