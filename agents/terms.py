"""
Term extraction: hashtags and significant keywords from mention text.
"""

from collections import Counter
from typing import Iterable, List, Tuple
import re

from config.settings import settings

HASHTAG_RE = re.compile(r"#\w+", re.ASCII)
WORD_RE = re.compile(r"\w+", re.ASCII)
LONG_WORD_RE = re.compile(r"\b\w{4,}\b", re.ASCII)

STOPWORDS = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i", "it",
    "for", "not", "on", "with", "he", "as", "you", "do", "at", "this", "but",
    "his", "by", "from", "they", "we", "say", "her", "she", "or", "an",
    "will", "my", "one", "all", "would", "there", "their",
    "is", "was", "were", "are", "has", "had", "no", "so", "if", "can", "did",
    "could", "should", "just", "very", "also", "more", "than", "been",
    "which", "who", "what", "when", "how", "your", "our",
})


def extract_hashtags(text: str) -> List[str]:
    """Case-folded hashtags (with the leading '#'), in order of appearance."""
    return [h.lower() for h in HASHTAG_RE.findall(text or "")]


def extract_keywords(text: str, min_length: int = None) -> List[str]:
    """
    Case-folded word tokens from `text` with hashtags removed, dropping
    stop-words and anything shorter than `min_length` (default 4).
    """
    min_length = settings.MIN_TERM_LENGTH if min_length is None else min_length
    stripped = HASHTAG_RE.sub(" ", text or "")
    return [
        w for w in (t.lower() for t in WORD_RE.findall(stripped))
        if len(w) >= min_length and w not in STOPWORDS
    ]


def split_terms(text: str) -> Tuple[List[str], List[str]]:
    """(unique keywords, unique hashtags) for one mention, first-seen order."""
    keywords = list(dict.fromkeys(extract_keywords(text)))
    hashtags = list(dict.fromkeys(extract_hashtags(text)))
    return keywords, hashtags


def extract_terms(contents: Iterable[str]) -> Counter:
    """Frequency of every hashtag and keyword across a batch of texts."""
    counts: Counter = Counter()
    for text in contents:
        counts.update(extract_hashtags(text))
        counts.update(extract_keywords(text))
    return counts


def top_words(contents: Iterable[str], n: int = 20) -> List[str]:
    """The `n` most frequent words of 4+ word characters, no stop-word filter."""
    counts: Counter = Counter()
    for text in contents:
        counts.update(w.lower() for w in LONG_WORD_RE.findall(text or ""))
    return [w for w, _ in counts.most_common(n)]
