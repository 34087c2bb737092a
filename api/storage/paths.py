"""
Turn owning-record type names into storage path segments.

"Inventory::InventoryItem" -> "inventory/inventory_items"

Namespaces become directories, every component is snake_cased and the
whole path is pluralized with a fixed rule table. The table follows the
default English inflections of Rails, so paths match the ones
``String#tableize`` produced for files that are already stored.
"""

import re

NAMESPACE_SEPARATOR = "::"

_ACRONYM_BOUNDARY = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")
_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9_/]")

UNCOUNTABLE = (
    "equipment",
    "fish",
    "information",
    "jeans",
    "money",
    "police",
    "rice",
    "series",
    "sheep",
    "species",
)

# singular -> plural, matched as a suffix: "salesperson" -> "salespeople"
IRREGULAR = {
    "person": "people",
    "man": "men",
    "child": "children",
    "sex": "sexes",
    "move": "moves",
    "zombie": "zombies",
}

_UNCOUNTABLE_RULES = [re.compile(rf"\b{word}\Z", re.IGNORECASE) for word in UNCOUNTABLE]


def _irregular_rules():
    rules = []
    for singular, plural in IRREGULAR.items():
        rules.append((re.compile(rf"({plural[0]}){plural[1:]}$", re.IGNORECASE), rf"\g<1>{plural[1:]}"))
        rules.append((re.compile(rf"({singular[0]}){singular[1:]}$", re.IGNORECASE), rf"\g<1>{plural[1:]}"))
    return rules


# First match wins
PLURAL_RULES = _irregular_rules() + [
    (re.compile(r"(quiz)$", re.IGNORECASE), r"\1zes"),
    (re.compile(r"^(oxen)$", re.IGNORECASE), r"\1"),
    (re.compile(r"^(ox)$", re.IGNORECASE), r"\1en"),
    (re.compile(r"^(m|l)ice$", re.IGNORECASE), r"\1ice"),
    (re.compile(r"^(m|l)ouse$", re.IGNORECASE), r"\1ice"),
    (re.compile(r"(matr|vert|ind)(?:ix|ex)$", re.IGNORECASE), r"\1ices"),
    (re.compile(r"(x|ch|ss|sh)$", re.IGNORECASE), r"\1es"),
    (re.compile(r"([^aeiouy]|qu)y$", re.IGNORECASE), r"\1ies"),
    (re.compile(r"(hive)$", re.IGNORECASE), r"\1s"),
    (re.compile(r"(?:([^f])fe|([lr])f)$", re.IGNORECASE), r"\1\2ves"),
    (re.compile(r"sis$", re.IGNORECASE), "ses"),
    (re.compile(r"([ti])a$", re.IGNORECASE), r"\1a"),
    (re.compile(r"([ti])um$", re.IGNORECASE), r"\1a"),
    (re.compile(r"(buffal|tomat)o$", re.IGNORECASE), r"\1oes"),
    (re.compile(r"(bu)s$", re.IGNORECASE), r"\1ses"),
    (re.compile(r"(alias|status)$", re.IGNORECASE), r"\1es"),
    (re.compile(r"(octop|vir)i$", re.IGNORECASE), r"\1i"),
    (re.compile(r"(octop|vir)us$", re.IGNORECASE), r"\1i"),
    (re.compile(r"^(ax|test)is$", re.IGNORECASE), r"\1es"),
    (re.compile(r"s$", re.IGNORECASE), "s"),
    (re.compile(r"$"), "s"),
]


def underscore(type_name: str) -> str:
    """
    Snake_case a type name, turning namespace separators into slashes.

    >>> underscore("Inventory::InventoryItem")
    'inventory/inventory_item'
    >>> underscore("HTMLPage")
    'html_page'
    """
    word = type_name.replace(NAMESPACE_SEPARATOR, "/")
    word = _ACRONYM_BOUNDARY.sub(r"\1_\2", word)
    word = _CAMEL_BOUNDARY.sub(r"\1_\2", word)
    return word.replace("-", "_").lower()


def pluralize(word: str) -> str:
    """
    Pluralize the end of a word or path.

    >>> pluralize("inventory/inventory_item")
    'inventory/inventory_items'
    >>> pluralize("salesperson")
    'salespeople'
    """
    if not word or any(rule.search(word) for rule in _UNCOUNTABLE_RULES):
        return word
    for pattern, replacement in PLURAL_RULES:
        if pattern.search(word):
            return pattern.sub(replacement, word, count=1)
    return word


def sanitize_record_type(record_type: str | None) -> str | None:
    """
    Map a record type name to a slash-delimited storage sub-path.

    Returns None for a missing or blank type name, or one with nothing
    usable left after stripping.

    >>> sanitize_record_type("Inventory::InventoryItem")
    'inventory/inventory_items'
    >>> sanitize_record_type("Account")
    'accounts'
    """
    if record_type is None or not record_type.strip():
        return None

    segments = [_UNSAFE_CHARACTERS.sub("", s) for s in underscore(record_type.strip()).split("/")]
    segments = [s for s in segments if s]
    if not segments:
        return None
    return pluralize("/".join(segments))
