"""Daily pick: candidate generation, filtering and scoring.

Everything here is a pure function of the document and the current time;
the only state touched is ``document['today']`` and, on wraparound, today's
entry in ``document['skips']``.  There is no randomness, so the same document
and clock always produce the same pick.
"""

from __future__ import annotations

import datetime
import logging
from typing import Dict, List, Optional

from .document_service import (
    STATUS_ACTIVE,
    coerce_weight,
    find_by_id,
    iso_date,
    parse_timestamp,
    yesterday_iso,
)

logger = logging.getLogger('rotator.pick')

# ---------------------------------------------------------------------------
# Scoring constants (lower score = more due)
# ---------------------------------------------------------------------------
_NEVER_PLAYED_BONUS  = 10    # subtracted for a game that was never played
_MAX_STALENESS_DAYS  = 10    # cap for the days-since-last-played bonus
_RECENT_WINDOW       = 14    # last N history *entries*, not days
_RECENT_PLAY_PENALTY = 2     # added per recent entry on the same console
_MIN_WEIGHT          = 0.25  # floor for the weight nudge denominator

_SECONDS_PER_DAY = 86400


def same_pair(a: Optional[Dict], b: Optional[Dict]) -> bool:
    if not a or not b:
        return False
    return a.get('consoleId') == b.get('consoleId') and a.get('gameId') == b.get('gameId')


def build_candidates(document: Dict) -> List[Dict]:
    """Every (console, active game) pair, in console order then game order.

    Games without a console never appear.
    """
    pairs = []
    for console in document['consoles']:
        for game in document['games']:
            if game.get('status') == STATUS_ACTIVE and game.get('consoleId') == console['id']:
                pairs.append({'consoleId': console['id'], 'gameId': game['id']})
    return pairs


def last_entry_for_date(history: List[Dict], date: str) -> Optional[Dict]:
    for entry in reversed(history):
        if entry.get('date') == date:
            return entry
    return None


def _days_since(last: datetime.datetime, now: datetime.datetime) -> int:
    # Mixed naive/aware values come from hand-edited or imported documents.
    if (last.tzinfo is None) != (now.tzinfo is None):
        if last.tzinfo is not None:
            last = last.astimezone().replace(tzinfo=None)
        else:
            last = last.replace(tzinfo=now.tzinfo)
    seconds = (now - last).total_seconds()
    return max(0, int(seconds // _SECONDS_PER_DAY))


def score_pair(document: Dict, pair: Dict, now: datetime.datetime) -> float:
    """Score a candidate pair; the lowest score is picked."""
    game = find_by_id(document['games'], pair['gameId'])
    console = find_by_id(document['consoles'], pair['consoleId'])

    score = 0.0

    last_played = parse_timestamp(game.get('lastPlayed')) if game else None
    if last_played is None:
        score -= _NEVER_PLAYED_BONUS
    else:
        score -= min(_MAX_STALENESS_DAYS, _days_since(last_played, now))

    recent = document['history'][-_RECENT_WINDOW:]
    console_count = sum(1 for h in recent if h.get('consoleId') == pair['consoleId'])
    score += _RECENT_PLAY_PENALTY * console_count

    weight = coerce_weight(console.get('weight') if console else None)
    score += 1.0 / max(_MIN_WEIGHT, weight)
    return score


def pick_today(document: Dict, now: datetime.datetime,
               force_new: bool = False) -> Dict:
    """Return today's suggestion, computing and storing it when needed.

    Args:
        document:  The rotation document (mutated in place).
        now:       Current local time.
        force_new: Recompute even if a suggestion for today is cached.

    Returns:
        ``document['today']``: ``{'date', 'consoleId', 'gameId'}``, with both
        ids ``None`` when there is nothing to play.
    """
    today = iso_date(now)
    cached = document.get('today')
    if not force_new and cached and cached.get('date') == today:
        return cached

    candidates = build_candidates(document)
    if not candidates:
        logger.debug("No active candidates for %s.", today)
        document['today'] = {'date': today, 'consoleId': None, 'gameId': None}
        return document['today']

    skipped = document['skips'].get(today, [])
    remaining = [p for p in candidates if not any(same_pair(p, s) for s in skipped)]
    if not remaining:
        # Every candidate was rejected today: start the cycle over.
        logger.info("All %d candidates skipped on %s; resetting skip list.",
                    len(candidates), today)
        document['skips'][today] = []
        remaining = candidates

    y_pick = last_entry_for_date(document['history'], yesterday_iso(now))
    if y_pick:
        not_yesterday = [p for p in remaining if not same_pair(p, y_pick)]
        if not_yesterday:
            remaining = not_yesterday

    best = None
    best_score = None
    for pair in remaining:
        score = score_pair(document, pair, now)
        if best_score is None or score < best_score:
            best, best_score = pair, score

    document['today'] = {'date': today, 'consoleId': best['consoleId'], 'gameId': best['gameId']}
    logger.debug("Picked %s/%s for %s (score %.2f).",
                 best['consoleId'], best['gameId'], today, best_score)
    return document['today']
