"""Read-only view model for the front end."""
from typing import Dict, List, Optional

from .document_service import (
    MAX_ACTIVE_PER_CONSOLE,
    STATUS_ACTIVE,
    active_games_for_console,
    find_by_id,
)

UNASSIGNED_LABEL = 'Unassigned'


def _last_used(history: List[Dict], console_id: str) -> Optional[str]:
    for entry in reversed(history):
        if entry.get('consoleId') == console_id:
            return entry.get('date')
    return None


def build_view(document: Dict) -> Dict:
    """Flatten *document* into what the front end renders.

    ``today`` is ``None`` when there is no plan; otherwise it carries the
    console and game names alongside their ids.  Console entries include the
    ``"n/2"`` capacity label and the date the console was last used.
    """
    today_view = None
    today = document.get('today')
    if today and today.get('consoleId') and today.get('gameId'):
        console = find_by_id(document['consoles'], today['consoleId'])
        game = find_by_id(document['games'], today['gameId'])
        today_view = {
            'date': today['date'],
            'console_id': today['consoleId'],
            'console_name': console['name'] if console else None,
            'game_id': today['gameId'],
            'game_title': game['title'] if game else None,
            'status': game['status'] if game else None,
            'last_played': game.get('lastPlayed') if game else None,
        }

    consoles = []
    for console in document['consoles']:
        active_count = len(active_games_for_console(document, console['id']))
        consoles.append({
            'id': console['id'],
            'name': console['name'],
            'weight': console['weight'],
            'active_count': active_count,
            'capacity_label': f"{active_count}/{MAX_ACTIVE_PER_CONSOLE}",
            'last_used': _last_used(document['history'], console['id']),
        })

    games = []
    for game in document['games']:
        console = find_by_id(document['consoles'], game.get('consoleId'))
        games.append({
            'id': game['id'],
            'title': game['title'],
            'console_id': game.get('consoleId'),
            'console_name': console['name'] if console else UNASSIGNED_LABEL,
            'status': game['status'],
            'active': game['status'] == STATUS_ACTIVE,
            'last_played': game.get('lastPlayed'),
            'completed_at': game.get('completedAt'),
        })

    return {
        'date': today['date'] if today else None,
        'today': today_view,
        'consoles': consoles,
        'games': games,
    }
