from __future__ import annotations

from tuf_tracker.catalog import KNOWN_MAX_TOTAL
from tuf_tracker.models import Candidate, DifficultyStats
from tuf_tracker.reconcile import reconcile, split_difficulty


def test_ratio_split_example_and_sum_invariant():
    d = split_difficulty(187)
    assert (d.easy, d.medium, d.hard) == (74, 84, 29)
    for total in range(KNOWN_MAX_TOTAL + 1):
        d = split_difficulty(total)
        assert d.total == total
        assert min(d.easy, d.medium, d.hard) >= 0


def test_maximum_total_wins_and_out_of_range_is_ignored():
    cands = [
        Candidate(heuristic="pattern", rank=0, total=120),
        Candidate(heuristic="embedded", rank=2, total=500),
        Candidate(heuristic="structural", rank=3, total=187),
    ]
    rec = reconcile(cands, "someone")
    assert rec.total_solved == 187
    assert rec.total_source == "structural"
    assert rec.as_tuple() == (187, DifficultyStats(74, 84, 29), True)
    assert rec.difficulty_source == "ratio"


def test_ties_go_to_the_more_trusted_heuristic():
    cands = [
        Candidate(heuristic="meta", rank=4, total=150),
        Candidate(heuristic="pattern", rank=0, total=150),
    ]
    assert reconcile(cands).total_source == "pattern"


def test_complete_triple_matching_total_is_used():
    cands = [
        Candidate(heuristic="pattern", rank=0, total=150),
        Candidate(heuristic="label", rank=1, easy=70, medium=50, hard=20),  # sums to 140
        Candidate(heuristic="embedded", rank=2, total=150, easy=60, medium=60, hard=30),
    ]
    rec = reconcile(cands)
    assert rec.difficulty == DifficultyStats(60, 60, 30)
    assert rec.difficulty_source == "embedded"


def test_triple_alone_implies_total():
    rec = reconcile([Candidate(heuristic="label", rank=1, easy=95, medium=75, hard=36)])
    assert rec.total_solved == 206
    assert rec.total_source == "label:sum"
    assert rec.difficulty == DifficultyStats(95, 75, 36)
    assert rec.provisional_validity


def test_no_candidates_is_not_valid():
    rec = reconcile([])
    assert rec.as_tuple() == (0, DifficultyStats(0, 0, 0), False)
    assert rec.total_source is None


def test_zero_total_is_not_valid():
    rec = reconcile([Candidate(heuristic="pattern", rank=0, total=0)])
    assert rec.total_solved == 0
    assert not rec.provisional_validity


def test_topics_come_from_first_topic_candidate_and_are_clamped():
    cands = [
        Candidate(heuristic="pattern", rank=0, total=100),
        Candidate(heuristic="topics", rank=5, topics={"Arrays": 80, "Trie": 2, "Nope": 4}),
    ]
    assert dict(reconcile(cands).topic_solved) == {"Arrays": 53, "Trie": 2}
