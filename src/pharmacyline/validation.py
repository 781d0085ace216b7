import re


def match_any_keyword(text: str, keywords: frozenset[str] | set[str]) -> bool:
    """Check if any keyword appears anywhere in text ("anymore" matches "more")."""
    lower = text.lower()
    return any(kw in lower for kw in keywords)


WORD_TO_DIGIT = {
    "zero": "0", "oh": "0", "o": "0",
    "one": "1", "two": "2", "three": "3", "four": "4",
    "five": "5", "six": "6", "seven": "7", "eight": "8", "nine": "9",
}


def words_to_digits(text: str) -> str:
    """Convert number words and single digits to a digit string.

    Only handles single-digit words (one through nine, zero, oh, o).
    Example: "four four five five six six" → "445566"
    """
    tokens = re.findall(r"[a-zA-Z]+|\d", text.lower())
    digits = []
    for tok in tokens:
        if tok in WORD_TO_DIGIT:
            digits.append(WORD_TO_DIGIT[tok])
        elif tok.isdigit():
            digits.append(tok)
    return "".join(digits)


def normalize_prescription_number(value: str | None) -> str:
    """Collapse a spoken or keyed prescription number to digits.

    Applies only when every word in the utterance is a digit word; anything
    else (e.g. "RX 12 B") is returned stripped but otherwise untouched.
    """
    if not value:
        return ""
    cleaned = value.strip()
    words = re.findall(r"[a-zA-Z]+", cleaned.lower())
    if any(w not in WORD_TO_DIGIT for w in words):
        return cleaned
    if re.search(r"[^\w\s\-.,]", cleaned):
        return cleaned
    return words_to_digits(cleaned) or cleaned
