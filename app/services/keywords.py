"""Keyword extraction and lexical similarity used for FAQ matching."""
import re

# Articles, auxiliary verbs, pronouns, conjunctions, prepositions and wh-words.
STOP_WORDS = frozenset({
    "a", "an", "the",
    "am", "are", "be", "been", "being", "can", "could", "did", "does", "had",
    "has", "have", "is", "may", "might", "must", "shall", "should", "was",
    "were", "will", "would",
    "he", "her", "him", "his", "its", "our", "she", "their", "them", "they",
    "this", "that", "these", "those", "we", "you", "your",
    "and", "but", "nor", "or", "so", "yet",
    "as", "at", "by", "for", "from", "in", "into", "of", "on", "to", "with",
    "how", "what", "when", "where", "which", "who", "whom", "why",
})

MIN_KEYWORD_LENGTH = 3

_NON_ALNUM = re.compile(r"[\W_]+")


def extract_keywords(text: str) -> set[str]:
    """
    Normalize text into its set of significant terms.

    Lowercases, turns every non-alphanumeric character into a separator,
    then drops short tokens and stop words. "Check-in" yields {"check"}.
    """
    if not text:
        return set()

    tokens = _NON_ALNUM.sub(" ", text.lower()).split()
    return {
        token
        for token in tokens
        if len(token) >= MIN_KEYWORD_LENGTH and token not in STOP_WORDS
    }


def similarity(text1: str, text2: str) -> float:
    """
    Jaccard coefficient of the two texts' keyword sets, in [0, 1].

    Two texts with no keywords at all score 0.0 rather than NaN.
    """
    keywords1 = extract_keywords(text1)
    keywords2 = extract_keywords(text2)

    union = keywords1 | keywords2
    if not union:
        return 0.0

    return len(keywords1 & keywords2) / len(union)
