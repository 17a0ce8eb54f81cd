"""Tests for candidate confidence scoring."""

import pytest

from enrich.clients.base import CatalogCandidate
from enrich.models import ConfidenceBand
from enrich.scoring import author_score, band_for, rank_candidates, score_candidate, title_score


def candidate(candidate_id="c1", title="Nineteen Eighty-Four", authors=("George Orwell",), isbn13=None, cover_url=None):
    return CatalogCandidate(
        candidate_id=candidate_id,
        title=title,
        authors=list(authors),
        isbn13=isbn13,
        cover_url=cover_url,
        source="test",
    )


class TestComponentScores:
    def test_title_exact_after_normalization(self):
        """Test titles equal after normalization score 1.0."""
        assert title_score("nineteen eighty-four", "Nineteen Eighty-Four") == 1.0

    def test_title_partial(self):
        """Test a partial title match."""
        assert 0.0 < title_score("Nineteen Eighty", "Nineteen Eighty-Four") < 1.0

    def test_author_best_pair(self):
        """Test the best author pair is used."""
        assert author_score("Deleuze & Guattari", ["Félix Guattari", "Guattari"]) == 1.0

    def test_author_neutral_when_both_missing(self):
        """Test the author score is neutral when both sides lack authors."""
        assert author_score(None, []) == 0.5
        assert author_score("Unknown Author", []) == 0.5

    def test_author_zero_when_one_side_missing(self):
        """Test the author score is zero when one side lacks authors."""
        assert author_score(None, ["George Orwell"]) == 0.0
        assert author_score("George Orwell", []) == 0.0


class TestScoreCandidate:
    def test_perfect_match(self):
        """Test a perfect match."""
        c = candidate(isbn13="9780451524935", cover_url="https://img")
        assert score_candidate(c, "Nineteen Eighty-Four", "George Orwell") == 1.0

    def test_title_and_author_only(self):
        """Test title and author alone."""
        assert score_candidate(candidate(), "Nineteen Eighty-Four", "George Orwell") == pytest.approx(0.85)

    def test_no_authors_anywhere(self):
        """Test scoring when no side has authors."""
        c = candidate(authors=())
        assert score_candidate(c, "Nineteen Eighty-Four", None) == pytest.approx(0.725)

    def test_known_id_scores_one(self):
        """Test a known external id scores 1.0."""
        c = candidate(candidate_id="known", title="Something Else", authors=())
        assert score_candidate(c, "Nineteen Eighty-Four", known_ids={"known"}) == 1.0

    def test_known_isbn_scores_one(self):
        """Test a known ISBN scores 1.0."""
        c = candidate(title="Something Else", isbn13="9780451524935")
        assert score_candidate(c, "X", known_isbns={"9780451524935"}) == 1.0

    def test_bounded(self):
        """Test scores stay within 0..1."""
        c = candidate(title="Completely Different", authors=("Nobody",))
        assert 0.0 <= score_candidate(c, "Nineteen Eighty-Four", "George Orwell") <= 1.0


class TestRankCandidates:
    def test_best_first(self):
        """Test ranking puts the best candidate first."""
        weak = candidate("weak", title="Animal Farm")
        strong = candidate("strong")
        ranked = rank_candidates([weak, strong], "Nineteen Eighty-Four", "George Orwell")
        assert [r.candidate.candidate_id for r in ranked] == ["strong", "weak"]

    def test_ties_prefer_isbn_then_cover(self):
        """Test ties prefer an ISBN, then a cover."""
        # Both score 1.0; only the second carries an ISBN and a cover
        complete = candidate("complete", isbn13="9780451524935", cover_url="https://img")
        with_known = candidate("known", title="Other")
        ranked = rank_candidates(
            [with_known, complete], "Nineteen Eighty-Four", "George Orwell", known_ids={"known"}
        )
        assert [r.confidence for r in ranked] == [1.0, 1.0]
        assert ranked[0].candidate.candidate_id == "complete"

    def test_empty(self):
        """Test ranking no candidates."""
        assert rank_candidates([], "Anything") == []


class TestBandFor:
    @pytest.mark.parametrize(
        "confidence, band",
        [
            (1.0, ConfidenceBand.AUTO),
            (0.9, ConfidenceBand.AUTO),
            (0.89, ConfidenceBand.CONFIRM),
            (0.7, ConfidenceBand.CONFIRM),
            (0.69, ConfidenceBand.PROVISIONAL),
            (0.0, ConfidenceBand.PROVISIONAL),
        ],
    )
    def test_thresholds(self, confidence, band):
        """Test confidence band thresholds."""
        assert band_for(confidence) == band
