"""Seeding, migration and small helpers for the rotation document."""
import datetime
import logging
import math
import uuid
from typing import Any, Dict, List, Optional

logger = logging.getLogger('rotator.document')

SCHEMA_VERSION = 2

STATUS_ACTIVE = 'active'
STATUS_DONE = 'done'
VALID_STATUSES = (STATUS_ACTIVE, STATUS_DONE)

DEFAULT_WEIGHT = 1.0
MAX_ACTIVE_PER_CONSOLE = 2

# Consoles and the placeholder game created on first use.
_SEED_CONSOLES = ('PS5', 'Switch')
_SEED_GAME_TITLE = 'Add your games'

# Epoch values above this are milliseconds (browser ``Date.now()``), not seconds.
_MS_THRESHOLD = 10 ** 11


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------

def new_id(prefix: str) -> str:
    """Return a fresh identifier such as ``c_3f2a9b1c0d4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def iso_date(moment: datetime.datetime) -> str:
    """Calendar date of *moment* as ``YYYY-MM-DD``."""
    return moment.date().isoformat()


def yesterday_iso(moment: datetime.datetime) -> str:
    return (moment.date() - datetime.timedelta(days=1)).isoformat()


def timestamp(moment: datetime.datetime) -> str:
    return moment.isoformat(timespec='seconds')


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Parse a stored timestamp (ISO-8601 string or epoch number).

    Returns ``None`` for anything that cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000.0 if abs(value) >= _MS_THRESHOLD else float(value)
        try:
            return datetime.datetime.fromtimestamp(seconds)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return datetime.datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def coerce_weight(value: Any) -> float:
    """Coerce *value* to a finite float, falling back to ``DEFAULT_WEIGHT``."""
    if value is None or isinstance(value, bool):
        return DEFAULT_WEIGHT
    try:
        weight = float(value)
    except (TypeError, ValueError):
        return DEFAULT_WEIGHT
    if not math.isfinite(weight):
        return DEFAULT_WEIGHT
    return weight


def find_by_id(items: List[Dict], item_id: Optional[str]) -> Optional[Dict]:
    if item_id is None:
        return None
    for item in items:
        if item.get('id') == item_id:
            return item
    return None


def active_games_for_console(document: Dict, console_id: Optional[str]) -> List[Dict]:
    """Active games assigned to *console_id*, in document order."""
    return [
        g for g in document['games']
        if g.get('consoleId') == console_id and g.get('status') == STATUS_ACTIVE
    ]


# ---------------------------------------------------------------------------
# Seeding and migration
# ---------------------------------------------------------------------------

def seed_document(now: datetime.datetime) -> Dict:
    """Return a brand-new document with two default consoles and one placeholder game."""
    consoles = [
        {'id': new_id('c'), 'name': name, 'weight': DEFAULT_WEIGHT}
        for name in _SEED_CONSOLES
    ]
    return {
        'meta': {'createdAt': timestamp(now), 'version': SCHEMA_VERSION},
        'consoles': consoles,
        'games': [{
            'id': new_id('g'),
            'consoleId': consoles[0]['id'],
            'title': _SEED_GAME_TITLE,
            'status': STATUS_ACTIVE,
            'lastPlayed': None,
            'completedAt': None,
        }],
        'history': [],
        'today': None,
        'skips': {},
    }


def _normalise_ts(value: Any) -> Optional[str]:
    parsed = parse_timestamp(value)
    return timestamp(parsed) if parsed is not None else None


def _normalise_pair(raw: Any) -> Optional[Dict]:
    if not isinstance(raw, dict):
        return None
    return {'consoleId': raw.get('consoleId'), 'gameId': raw.get('gameId')}


def _is_iso_date(value: Any) -> bool:
    # Only the extended YYYY-MM-DD form; basic and week dates never match iso_date().
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        return datetime.date.fromisoformat(value).isoformat() == value
    except ValueError:
        return False


def is_document(raw: Any) -> bool:
    """True when *raw* has the structure :func:`load_document` can repair."""
    return (isinstance(raw, dict)
            and isinstance(raw.get('consoles'), list)
            and isinstance(raw.get('games'), list)
            and isinstance(raw.get('history', []), list))


def _enforce_capacity(games: List[Dict], now: datetime.datetime) -> List[str]:
    """Demote active games beyond the per-console cap to done, in document order.

    Returns the ids of the demoted games.
    """
    seen: Dict[str, int] = {}
    demoted: List[str] = []
    for game in games:
        console_id = game['consoleId']
        if game['status'] != STATUS_ACTIVE or console_id is None:
            continue
        seen[console_id] = seen.get(console_id, 0) + 1
        if seen[console_id] > MAX_ACTIVE_PER_CONSOLE:
            logger.warning("Console %s has more than %d active games; marking %s as done.",
                           console_id, MAX_ACTIVE_PER_CONSOLE, game['id'])
            game['status'] = STATUS_DONE
            game['completedAt'] = timestamp(now)
            demoted.append(game['id'])
    return demoted


def load_document(raw: Any, now: datetime.datetime) -> Dict:
    """Turn whatever the persistence port returned into a usable document.

    A missing or structurally broken document is replaced by a fresh seed.
    Otherwise missing sections (``meta``, ``today``, ``skips``, ``history``)
    are defaulted, malformed entries are dropped, weights and statuses are
    coerced, legacy epoch-millisecond timestamps are converted and active
    games beyond the per-console cap are marked done.  Never raises.
    """
    if raw is None:
        logger.info("No stored document; seeding a new one.")
        return seed_document(now)
    if not is_document(raw):
        logger.warning("Stored document is malformed; replacing it with a fresh seed.")
        return seed_document(now)

    consoles: List[Dict] = []
    for entry in raw['consoles']:
        if not isinstance(entry, dict) or not isinstance(entry.get('id'), str):
            continue
        consoles.append({
            'id': entry['id'],
            'name': str(entry.get('name') or '').strip() or entry['id'],
            'weight': coerce_weight(entry.get('weight')),
        })

    games: List[Dict] = []
    for entry in raw['games']:
        if not isinstance(entry, dict) or not isinstance(entry.get('id'), str):
            continue
        status = entry.get('status')
        if status not in VALID_STATUSES:
            status = STATUS_ACTIVE
        console_id = entry.get('consoleId')
        games.append({
            'id': entry['id'],
            'consoleId': console_id if isinstance(console_id, str) and console_id else None,
            'title': str(entry.get('title') or '').strip() or entry['id'],
            'status': status,
            'lastPlayed': _normalise_ts(entry.get('lastPlayed')),
            'completedAt': _normalise_ts(entry.get('completedAt')),
        })
    demoted = _enforce_capacity(games, now)

    history: List[Dict] = []
    for entry in raw.get('history', []):
        if not isinstance(entry, dict) or not _is_iso_date(entry.get('date')):
            continue
        history.append({
            'date': entry['date'],
            'consoleId': entry.get('consoleId'),
            'gameId': entry.get('gameId'),
        })

    today = raw.get('today')
    if isinstance(today, dict) and _is_iso_date(today.get('date')):
        today = {
            'date': today['date'],
            'consoleId': today.get('consoleId'),
            'gameId': today.get('gameId'),
        }
        if today['gameId'] in demoted:
            today = None
    else:
        today = None

    skips: Dict[str, List[Dict]] = {}
    raw_skips = raw.get('skips')
    if isinstance(raw_skips, dict):
        for date, pairs in raw_skips.items():
            if not _is_iso_date(date) or not isinstance(pairs, list):
                continue
            skips[date] = [p for p in (_normalise_pair(x) for x in pairs) if p]

    meta = raw.get('meta') if isinstance(raw.get('meta'), dict) else {}
    created = _normalise_ts(meta.get('createdAt')) or timestamp(now)

    return {
        'meta': {'createdAt': created, 'version': SCHEMA_VERSION},
        'consoles': consoles,
        'games': games,
        'history': history,
        'today': today,
        'skips': skips,
    }
