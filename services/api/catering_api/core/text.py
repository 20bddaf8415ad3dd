import re

_AMPERSAND_ACRONYM = re.compile(r"^[A-Za-z]&[A-Za-z]$")
_ALL_CAPS = re.compile(r"^[A-Z]{2,}$")


def to_title_case(text):
    """Title-case each whitespace separated word.

    "X&Y" style tokens are upper-cased (g&t -> G&T) and tokens that are
    already all caps with 2+ letters (USA, IPA) are kept verbatim.
    Non-strings are returned unchanged.
    """
    if not isinstance(text, str):
        return text
    trimmed = text.strip()
    if not trimmed:
        return trimmed

    words = []
    for word in trimmed.split():
        if _AMPERSAND_ACRONYM.match(word):
            words.append(word.upper())
        elif _ALL_CAPS.match(word):
            words.append(word)
        else:
            words.append(word[:1].upper() + word[1:].lower())
    return " ".join(words)


def split_list(text, sep: str = ",") -> list[str]:
    """Split a delimited string into trimmed, non-empty parts."""
    if not text or not isinstance(text, str):
        return []
    return [part.strip() for part in text.split(sep) if part.strip()]


def same_text(a, b) -> bool:
    """Case-insensitive, whitespace-trimmed comparison."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    return a.strip().lower() == b.strip().lower()
