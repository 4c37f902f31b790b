#!/usr/bin/env python3
"""
Unit tests for the daily pick (candidates, filtering and scoring).

Run with:
    python -m pytest tests/test_pick_service.py
"""
import datetime
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rotation.services.pick_service import (
    build_candidates,
    last_entry_for_date,
    pick_today,
    score_pair,
)

NOW = datetime.datetime(2026, 3, 10, 12, 0, 0)
TODAY = '2026-03-10'
YESTERDAY = '2026-03-09'


def ts(days_ago: float) -> str:
    return (NOW - datetime.timedelta(days=days_ago)).isoformat(timespec='seconds')


def console(cid, weight=1.0, name=None):
    return {'id': cid, 'name': name or cid, 'weight': weight}


def game(gid, console_id, status='active', last_played=None):
    return {'id': gid, 'consoleId': console_id, 'title': gid, 'status': status,
            'lastPlayed': last_played, 'completedAt': None}


def make_doc(consoles, games, history=None, today=None, skips=None):
    return {
        'meta': {'createdAt': ts(100), 'version': 2},
        'consoles': consoles,
        'games': games,
        'history': history or [],
        'today': today,
        'skips': skips or {},
    }


def pair(cid, gid):
    return {'consoleId': cid, 'gameId': gid}


# ===========================================================================
# Candidates
# ===========================================================================

class TestBuildCandidates(unittest.TestCase):

    def test_only_active_games_with_a_console(self):
        doc = make_doc(
            [console('C1'), console('C2')],
            [game('G1', 'C1'), game('G2', 'C1', status='done'),
             game('G3', None), game('G4', 'C2'), game('G5', 'C9')],
        )
        self.assertEqual(build_candidates(doc), [pair('C1', 'G1'), pair('C2', 'G4')])

    def test_console_order_then_game_order(self):
        doc = make_doc(
            [console('C2'), console('C1')],
            [game('G1', 'C1'), game('G2', 'C2'), game('G3', 'C1')],
        )
        self.assertEqual(
            build_candidates(doc),
            [pair('C2', 'G2'), pair('C1', 'G1'), pair('C1', 'G3')],
        )

    def test_empty(self):
        self.assertEqual(build_candidates(make_doc([console('C1')], [])), [])


class TestLastEntryForDate(unittest.TestCase):

    def test_returns_latest_matching_entry(self):
        history = [
            {'date': YESTERDAY, 'consoleId': 'C1', 'gameId': 'G1'},
            {'date': '2026-03-08', 'consoleId': 'C1', 'gameId': 'G2'},
            {'date': YESTERDAY, 'consoleId': 'C2', 'gameId': 'G3'},
        ]
        self.assertEqual(last_entry_for_date(history, YESTERDAY)['gameId'], 'G3')

    def test_missing_date(self):
        self.assertIsNone(last_entry_for_date([], YESTERDAY))


# ===========================================================================
# Scoring
# ===========================================================================

class TestScorePair(unittest.TestCase):

    def test_never_played(self):
        doc = make_doc([console('C1')], [game('G1', 'C1')])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 1)

    def test_staleness_in_whole_days(self):
        doc = make_doc([console('C1')], [game('G1', 'C1', last_played=ts(3.5))])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -3 + 1)

    def test_staleness_capped_at_ten(self):
        doc = make_doc([console('C1')], [game('G1', 'C1', last_played=ts(40))])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 1)

    def test_played_moments_ago_has_no_bonus(self):
        doc = make_doc([console('C1')], [game('G1', 'C1', last_played=ts(0.2))])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), 1)

    def test_future_last_played_is_floored_at_zero(self):
        doc = make_doc([console('C1')], [game('G1', 'C1', last_played=ts(-2))])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), 1)

    def test_recent_console_plays_are_penalised(self):
        history = [{'date': f'2026-02-0{i}', 'consoleId': 'C1', 'gameId': 'G1'} for i in range(1, 4)]
        doc = make_doc([console('C1')], [game('G1', 'C1')], history=history)
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 6 + 1)

    def test_recency_window_is_last_fourteen_entries(self):
        history = [{'date': '2025-01-01', 'consoleId': 'C2', 'gameId': 'G2'}]
        history += [{'date': f'2025-02-{d:02d}', 'consoleId': 'C1', 'gameId': 'G1'}
                    for d in range(1, 15)]
        doc = make_doc([console('C1'), console('C2')],
                       [game('G1', 'C1'), game('G2', 'C2')], history=history)
        # The single C2 entry is the 15th most recent, so it falls outside the window.
        self.assertAlmostEqual(score_pair(doc, pair('C2', 'G2'), NOW), -10 + 1)
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 28 + 1)

    def test_weight_nudge(self):
        doc = make_doc([console('C1', weight=2), console('C2', weight=0.5)],
                       [game('G1', 'C1'), game('G2', 'C2')])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 0.5)
        self.assertAlmostEqual(score_pair(doc, pair('C2', 'G2'), NOW), -10 + 2)

    def test_weight_clamped_below(self):
        doc = make_doc([console('C1', weight=0.01)], [game('G1', 'C1')])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 4)

    def test_invalid_weight_counts_as_one(self):
        doc = make_doc([console('C1', weight='heavy')], [game('G1', 'C1')])
        self.assertAlmostEqual(score_pair(doc, pair('C1', 'G1'), NOW), -10 + 1)


# ===========================================================================
# pick_today
# ===========================================================================

class TestPickToday(unittest.TestCase):

    def test_no_candidates_is_no_plan(self):
        doc = make_doc([console('C1')], [game('G1', 'C1', status='done')])
        today = pick_today(doc, NOW)
        self.assertEqual(today, {'date': TODAY, 'consoleId': None, 'gameId': None})
        self.assertIs(doc['today'], today)

    def test_never_played_beats_three_days_ago(self):
        doc = make_doc([console('C1')],
                       [game('G1', 'C1'), game('G2', 'C1', last_played=ts(3))])
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G1')

    def test_stalest_game_wins(self):
        doc = make_doc([console('C1')],
                       [game('G1', 'C1', last_played=ts(1)),
                        game('G2', 'C1', last_played=ts(5))])
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G2')

    def test_ties_broken_by_order(self):
        doc = make_doc([console('C1'), console('C2')],
                       [game('G2', 'C2'), game('G1', 'C1')])
        self.assertEqual(pick_today(doc, NOW), {'date': TODAY, 'consoleId': 'C1', 'gameId': 'G1'})

    def test_cached_pick_returned_unchanged(self):
        cached = {'date': TODAY, 'consoleId': 'C1', 'gameId': 'G2'}
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1')], today=dict(cached))
        self.assertEqual(pick_today(doc, NOW), cached)

    def test_stale_cached_pick_recomputed(self):
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1')],
                       today={'date': YESTERDAY, 'consoleId': 'C1', 'gameId': 'G2'})
        self.assertEqual(pick_today(doc, NOW)['date'], TODAY)

    def test_force_new_ignores_cache(self):
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1')],
                       today={'date': TODAY, 'consoleId': 'C1', 'gameId': 'G2'})
        self.assertEqual(pick_today(doc, NOW, force_new=True)['gameId'], 'G1')

    def test_deterministic(self):
        doc = make_doc([console('C1', 1.5), console('C2')],
                       [game('G1', 'C1', last_played=ts(2)), game('G2', 'C2', last_played=ts(2)),
                        game('G3', 'C1')])
        first = dict(pick_today(doc, NOW))
        second = pick_today(doc, NOW)
        third = pick_today(doc, NOW, force_new=True)
        self.assertEqual(first, second)
        self.assertEqual(first, third)

    def test_avoids_yesterdays_pair(self):
        history = [{'date': YESTERDAY, 'consoleId': 'C1', 'gameId': 'G1'}]
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1', last_played=ts(1))],
                       history=history)
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G2')

    def test_yesterdays_pair_kept_when_only_option(self):
        history = [{'date': YESTERDAY, 'consoleId': 'C1', 'gameId': 'G1'}]
        doc = make_doc([console('C1')], [game('G1', 'C1')], history=history)
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G1')

    def test_older_history_does_not_block(self):
        history = [{'date': '2026-03-08', 'consoleId': 'C1', 'gameId': 'G1'}]
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1', last_played=ts(1))],
                       history=history)
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G1')

    def test_skipped_pairs_excluded(self):
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1', last_played=ts(1))],
                       skips={TODAY: [pair('C1', 'G1')]})
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G2')

    def test_skips_from_other_days_ignored(self):
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1', last_played=ts(1))],
                       skips={YESTERDAY: [pair('C1', 'G1')]})
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G1')

    def test_wraparound_when_everything_skipped(self):
        doc = make_doc([console('C1')], [game('G1', 'C1'), game('G2', 'C1', last_played=ts(1))],
                       skips={TODAY: [pair('C1', 'G1'), pair('C1', 'G2')]})
        self.assertEqual(pick_today(doc, NOW)['gameId'], 'G1')
        self.assertEqual(doc['skips'][TODAY], [])

    def test_recently_used_console_loses(self):
        history = [{'date': '2026-03-01', 'consoleId': 'C1', 'gameId': 'G1'}]
        doc = make_doc([console('C1'), console('C2')], [game('G1', 'C1'), game('G2', 'C2')],
                       history=history)
        self.assertEqual(pick_today(doc, NOW)['consoleId'], 'C2')

    def test_heavier_console_wins_a_tie(self):
        doc = make_doc([console('C1', 1), console('C2', 3)], [game('G1', 'C1'), game('G2', 'C2')])
        self.assertEqual(pick_today(doc, NOW)['consoleId'], 'C2')


if __name__ == '__main__':
    unittest.main()
