"""
Unit tests for the text normalizer.

Tests tokenization, stopword removal, suffix stripping and the pluggable
reduction strategies.
"""

import pytest

from reflective_prompts.text.normalizer import (
    IdentityReduction,
    PorterReduction,
    SuffixStripper,
    get_reduction_strategy,
    normalize,
    tokenize,
)
from reflective_prompts.text.stopwords import STOPWORDS_EN


class TestTokenize:
    """Test lowercase + non-alphanumeric splitting."""

    @pytest.mark.unit
    def test_splits_on_punctuation(self):
        assert tokenize("Work deadlines, again!") == ["work", "deadlines", "again"]

    @pytest.mark.unit
    def test_apostrophes_split_contractions(self):
        assert tokenize("Don't stop") == ["don", "t", "stop"]

    @pytest.mark.unit
    def test_empty_text(self):
        assert tokenize("") == []


class TestSuffixStripper:
    """Test ordered suffix rules."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "word,expected",
        [
            ("worries", "worry"),
            ("working", "work"),
            ("stressed", "stress"),
            ("deadlines", "deadline"),
            ("grateful", "grate"),
            ("happiness", "happi"),
            ("anxious", "anxi"),
        ],
    )
    def test_rules(self, word, expected):
        assert SuffixStripper().reduce(word) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("word", ["stress", "focus", "crisis"])
    def test_plural_rule_keeps_protected_endings(self, word):
        assert SuffixStripper().reduce(word) == word

    @pytest.mark.unit
    def test_short_words_untouched(self):
        """Rules only fire above their minimum length."""
        assert SuffixStripper().reduce("bed") == "bed"
        assert SuffixStripper().reduce("sing") == "sing"


class TestNormalize:
    """Test the full normalization pipeline."""

    @pytest.mark.unit
    def test_example_sentence(self):
        assert normalize("I feel stressed about work deadlines") == ["stress", "work", "deadline"]

    @pytest.mark.unit
    def test_all_stopwords_gives_empty(self):
        assert normalize("the and of") == []
        assert normalize("") == []

    @pytest.mark.unit
    def test_repetitions_preserved(self):
        assert normalize("work work rest") == ["work", "work", "rest"]

    @pytest.mark.unit
    def test_reduced_form_checked_against_stopwords(self):
        """'thinks' is not a stopword but reduces to 'think', which is."""
        assert "thinks" not in STOPWORDS_EN
        assert normalize("thinks") == []

    @pytest.mark.unit
    def test_min_length(self):
        assert normalize("calm sky", min_length=4) == ["calm"]

    @pytest.mark.unit
    def test_custom_stopwords(self):
        assert normalize("work stress", stopwords=frozenset({"work"})) == ["stress"]

    @pytest.mark.unit
    def test_identity_strategy(self):
        assert normalize("stressed deadlines", strategy=IdentityReduction()) == [
            "stressed",
            "deadlines",
        ]

    @pytest.mark.unit
    def test_porter_strategy(self):
        assert normalize("running stressed", strategy=PorterReduction()) == ["run", "stress"]


class TestStopwords:
    """Test stopword list contents."""

    @pytest.mark.unit
    def test_list_is_large_enough(self):
        assert len(STOPWORDS_EN) >= 150

    @pytest.mark.unit
    @pytest.mark.parametrize("word", ["stress", "work", "grateful", "worry", "anxious"])
    def test_signal_words_not_stopwords(self, word):
        assert word not in STOPWORDS_EN


class TestStrategyFactory:
    """Test get_reduction_strategy()."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "name,cls",
        [("suffix", SuffixStripper), ("porter", PorterReduction), ("none", IdentityReduction)],
    )
    def test_known_names(self, name, cls):
        strategy = get_reduction_strategy(name)
        assert isinstance(strategy, cls)
        assert strategy.name == name

    @pytest.mark.unit
    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown normalizer strategy"):
            get_reduction_strategy("lancaster")
