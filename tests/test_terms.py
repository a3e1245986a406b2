"""
Term extraction tests.
"""

from agents.terms import extract_hashtags, extract_keywords, extract_terms, split_terms, top_words


class TestHashtags:
    def test_hashtags_are_case_folded(self):
        assert extract_hashtags("Big #Launch today with #AI") == ["#launch", "#ai"]

    def test_no_hashtags(self):
        assert extract_hashtags("nothing tagged here") == []
        assert extract_hashtags("") == []


class TestKeywords:
    def test_drops_short_tokens_and_stopwords(self):
        assert extract_keywords("The quick brown fox has been there") == ["quick", "brown"]

    def test_hashtags_removed_before_tokenizing(self):
        keywords = extract_keywords("#launch party tonight")
        assert "launch" not in keywords
        assert keywords == ["party", "tonight"]

    def test_splits_on_non_word_boundaries(self):
        assert extract_keywords("Checkout-flow,BROKEN!!") == ["checkout", "flow", "broken"]

    def test_duplicates_are_kept(self):
        assert extract_keywords("outage outage outage") == ["outage"] * 3


class TestExtractTerms:
    def test_counts_hashtags_and_keywords_across_batch(self):
        counts = extract_terms(["#launch is live", "#LAUNCH party", "party time"])
        assert counts["#launch"] == 2
        assert counts["party"] == 2
        assert counts["live"] == 1
        assert counts["time"] == 1
        assert "is" not in counts

    def test_split_terms_unique_in_first_seen_order(self):
        keywords, hashtags = split_terms("payment payment checkout #Fail #fail")
        assert keywords == ["payment", "checkout"]
        assert hashtags == ["#fail"]

    def test_top_words_keeps_stopwords(self):
        assert top_words(["that that that outage", "outage"], 2) == ["that", "outage"]
