"""The rotation store: owner of the document and every user-facing operation."""
import copy
import datetime
import logging
import os
from typing import Any, Callable, Dict, Optional

from ..errors import (
    CapacityExceeded,
    NoGame,
    NoPlan,
    NotFound,
    OperationResult,
    RotationError,
    ValidationError,
)
from ..repositories.document_repository import DocumentRepository
from .document_service import (
    MAX_ACTIVE_PER_CONSOLE,
    STATUS_ACTIVE,
    STATUS_DONE,
    VALID_STATUSES,
    active_games_for_console,
    coerce_weight,
    find_by_id,
    iso_date,
    is_document,
    load_document,
    new_id,
    timestamp,
)
from .pick_service import pick_today, same_pair
from .view_service import build_view


class RotationStore:
    """Owns the rotation document in memory and persists it after every change.

    Every public method is one read-modify-persist step.  Domain errors are
    never raised to the caller: they come back as
    :class:`~rotation.errors.OperationResult` with ``error`` set, and the
    document is restored to exactly what it was before the call.

    Args:
        repository: Persistence port exposing ``load() -> Optional[dict]``
                    and ``save(document)``.
        clock:      Returns the current local time; defaults to
                    :meth:`datetime.datetime.now`.
    """

    def __init__(self, repository,
                 clock: Optional[Callable[[], datetime.datetime]] = None) -> None:
        self._repo = repository
        self._clock = clock or datetime.datetime.now
        self._log = logging.getLogger('rotator.store')
        self._op_now: Optional[datetime.datetime] = None
        raw = self._repo.load()
        self._doc = load_document(raw, self._clock())
        if raw != self._doc:
            self._persist()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def document(self) -> Dict:
        """A deep copy of the current document."""
        return copy.deepcopy(self._doc)

    def _now(self) -> datetime.datetime:
        # Fixed for the duration of one operation so dates and stamps agree.
        return self._op_now if self._op_now is not None else self._clock()

    def _persist(self) -> None:
        try:
            self._repo.save(self._doc)
        except (IOError, OSError) as exc:
            self._log.error("Could not save rotation document: %s", exc)
            raise

    def _run(self, name: str, operation: Callable[..., Any], *args, **kwargs) -> OperationResult:
        """Run *operation* against the document; roll back on a domain error."""
        snapshot = copy.deepcopy(self._doc)
        self._op_now = self._clock()
        try:
            value = operation(*args, **kwargs)
        except RotationError as exc:
            self._doc = snapshot
            self._log.info("%s rejected (%s): %s", name, exc.code, exc)
            return OperationResult(error=exc.code, message=str(exc))
        finally:
            self._op_now = None
        if self._doc != snapshot:
            try:
                self._persist()
            except (IOError, OSError):
                self._doc = snapshot
                raise
        self._log.debug("%s ok", name)
        return OperationResult(value=copy.deepcopy(value))

    def _invalidate_today(self) -> None:
        self._doc['today'] = None

    def _console(self, console_id: Optional[str]) -> Dict:
        console = find_by_id(self._doc['consoles'], console_id)
        if console is None:
            raise NotFound(f"Console {console_id!r} does not exist.")
        return console

    def _game(self, game_id: Optional[str]) -> Dict:
        game = find_by_id(self._doc['games'], game_id)
        if game is None:
            raise NotFound(f"Game {game_id!r} does not exist.")
        return game

    def _check_capacity(self, console_id: Optional[str],
                        exclude_game_id: Optional[str] = None) -> None:
        if console_id is None:
            return
        active = [g for g in active_games_for_console(self._doc, console_id)
                  if g['id'] != exclude_game_id]
        if len(active) >= MAX_ACTIVE_PER_CONSOLE:
            raise CapacityExceeded(
                f"That console already has {MAX_ACTIVE_PER_CONSOLE} active games. "
                "Complete one first."
            )

    def _ensure_today(self, force_new: bool = False) -> Dict:
        return pick_today(self._doc, self._now(), force_new=force_new)

    def _has_valid_pair(self, today: Optional[Dict]) -> bool:
        return bool(today and today.get('consoleId') and today.get('gameId'))

    # ------------------------------------------------------------------
    # Consoles
    # ------------------------------------------------------------------

    def add_console(self, name: str, weight: Any = 1) -> OperationResult:
        """Add a console.  Returns the new console dict as ``value``."""
        return self._run('add_console', self._add_console, name, weight)

    def _add_console(self, name, weight):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Console name is required.")
        console = {'id': new_id('c'), 'name': name, 'weight': coerce_weight(weight)}
        self._doc['consoles'].append(console)
        self._invalidate_today()
        return console

    def edit_console(self, console_id: str, name: Optional[str] = None,
                     weight: Any = None) -> OperationResult:
        """Rename and/or re-weight a console.  Omitted fields are kept."""
        return self._run('edit_console', self._edit_console, console_id, name, weight)

    def _edit_console(self, console_id, name, weight):
        console = self._console(console_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Console name is required.")
            console['name'] = name
        if weight is not None:
            console['weight'] = coerce_weight(weight)
        self._invalidate_today()
        return console

    def delete_console(self, console_id: str) -> OperationResult:
        """Remove a console; its games stay, unassigned."""
        return self._run('delete_console', self._delete_console, console_id)

    def _delete_console(self, console_id):
        console = self._console(console_id)
        self._doc['consoles'].remove(console)
        orphaned = 0
        for game in self._doc['games']:
            if game.get('consoleId') == console_id:
                game['consoleId'] = None
                orphaned += 1
        self._invalidate_today()
        self._log.info("Deleted console %s; %d game(s) now unassigned.", console_id, orphaned)
        return console

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def add_game(self, title: str, console_id: Optional[str],
                 status: str = STATUS_ACTIVE) -> OperationResult:
        """Add a game to a console.

        Returns:
            The new game dict as ``value``; ``validation_error`` for an empty
            title, missing/unknown console or bad status;
            ``capacity_exceeded`` when adding an active game to a full console.
        """
        return self._run('add_game', self._add_game, title, console_id, status)

    def _add_game(self, title, console_id, status):
        title = (title or '').strip()
        if not title:
            raise ValidationError("Game title is required.")
        if not console_id:
            raise ValidationError("A console must be selected.")
        if find_by_id(self._doc['consoles'], console_id) is None:
            raise ValidationError(f"Console {console_id!r} does not exist.")
        if status not in VALID_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(VALID_STATUSES)}.")
        if status == STATUS_ACTIVE:
            self._check_capacity(console_id)
        game = {
            'id': new_id('g'),
            'consoleId': console_id,
            'title': title,
            'status': status,
            'lastPlayed': None,
            'completedAt': timestamp(self._now()) if status == STATUS_DONE else None,
        }
        self._doc['games'].append(game)
        self._invalidate_today()
        return game

    def edit_game(self, game_id: str, title: Optional[str] = None,
                  console_id: Optional[str] = None,
                  status: Optional[str] = None) -> OperationResult:
        """Edit a game's title, console and/or status.  Omitted fields are kept."""
        return self._run('edit_game', self._edit_game, game_id, title, console_id, status)

    def _edit_game(self, game_id, title, console_id, status):
        game = self._game(game_id)
        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationError("Game title is required.")
        if console_id is not None and find_by_id(self._doc['consoles'], console_id) is None:
            raise ValidationError(f"Console {console_id!r} does not exist.")
        if status is not None and status not in VALID_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(VALID_STATUSES)}.")

        target_console = console_id if console_id is not None else game.get('consoleId')
        target_status = status if status is not None else game['status']
        if target_status == STATUS_ACTIVE:
            self._check_capacity(target_console, exclude_game_id=game['id'])

        if title is not None:
            game['title'] = title
        if target_status != game['status']:
            game['completedAt'] = (timestamp(self._now())
                                   if target_status == STATUS_DONE else None)
        game['consoleId'] = target_console
        game['status'] = target_status
        self._invalidate_today()
        return game

    def delete_game(self, game_id: str) -> OperationResult:
        """Remove a game together with its history and skip entries."""
        return self._run('delete_game', self._delete_game, game_id)

    def _delete_game(self, game_id):
        game = self._game(game_id)
        self._doc['games'].remove(game)
        self._doc['history'] = [h for h in self._doc['history'] if h.get('gameId') != game_id]
        self._doc['skips'] = {
            date: [p for p in pairs if p.get('gameId') != game_id]
            for date, pairs in self._doc['skips'].items()
        }
        today = self._doc.get('today')
        if today and today.get('gameId') == game_id:
            self._invalidate_today()
        return game

    def toggle_game(self, game_id: str) -> OperationResult:
        """Flip a game between active and done."""
        return self._run('toggle_game', self._toggle_game, game_id)

    def _toggle_game(self, game_id):
        game = self._game(game_id)
        if game['status'] == STATUS_ACTIVE:
            game['status'] = STATUS_DONE
            game['completedAt'] = timestamp(self._now())
        else:
            self._check_capacity(game.get('consoleId'), exclude_game_id=game['id'])
            game['status'] = STATUS_ACTIVE
            game['completedAt'] = None
        self._invalidate_today()
        return game

    # ------------------------------------------------------------------
    # Daily actions
    # ------------------------------------------------------------------

    def pick_today(self, force_new: bool = False) -> OperationResult:
        """Return today's suggestion (computing it if needed) as ``value``."""
        return self._run('pick_today', self._ensure_today, force_new)

    def mark_played(self) -> OperationResult:
        """Record today's suggestion in the history and stamp ``lastPlayed``."""
        return self._run('mark_played', self._mark_played)

    def _mark_played(self):
        today = self._ensure_today()
        if not self._has_valid_pair(today):
            raise NoPlan("Nothing to mark: add consoles and active games first.")
        entry = {'date': today['date'], 'consoleId': today['consoleId'], 'gameId': today['gameId']}
        self._doc['history'] = [h for h in self._doc['history'] if h.get('date') != entry['date']]
        self._doc['history'].append(entry)
        game = find_by_id(self._doc['games'], today['gameId'])
        if game is not None:
            game['lastPlayed'] = timestamp(self._now())
        return entry

    def swap(self) -> OperationResult:
        """Reject today's suggestion and pick another one."""
        return self._run('swap', self._swap)

    def _swap(self):
        today = self._ensure_today()
        if self._has_valid_pair(today):
            skipped = self._doc['skips'].setdefault(today['date'], [])
            pair = {'consoleId': today['consoleId'], 'gameId': today['gameId']}
            if not any(same_pair(pair, s) for s in skipped):
                skipped.append(pair)
        return self._ensure_today(force_new=True)

    def complete_today(self) -> OperationResult:
        """Mark today's game as done, freeing a slot on its console."""
        return self._run('complete_today', self._complete_today)

    def _complete_today(self):
        today = self._ensure_today()
        game = find_by_id(self._doc['games'], today.get('gameId'))
        if game is None:
            raise NoGame("There is no game to complete.")
        game['status'] = STATUS_DONE
        game['completedAt'] = timestamp(self._now())
        self._invalidate_today()
        return game

    def reset_today(self) -> OperationResult:
        """Forget today's suggestion and today's skips."""
        return self._run('reset_today', self._reset_today)

    def _reset_today(self):
        self._invalidate_today()
        self._doc['skips'].pop(iso_date(self._now()), None)

    # ------------------------------------------------------------------
    # Read model, export and import
    # ------------------------------------------------------------------

    def view(self) -> Dict:
        """Ensure today's pick exists and return the view model."""
        self.pick_today()
        return build_view(self._doc)

    def export_document(self, filepath: str) -> OperationResult:
        """Write the current document to *filepath* as JSON with an export stamp.

        Raises:
            OSError: If the file cannot be written.
        """
        export_data: Dict = {
            'document': copy.deepcopy(self._doc),
            'exported_at': timestamp(self._now()),
        }
        try:
            DocumentRepository(filepath).save(export_data)
        except (IOError, OSError) as exc:
            self._log.error("Could not export to %s: %s", filepath, exc)
            raise
        self._log.info("Exported rotation document to %s", filepath)
        return OperationResult(value=filepath)

    def import_document(self, filepath: str) -> OperationResult:
        """Replace the current document with one read from *filepath*.

        Accepts either an export produced by :meth:`export_document` or a bare
        document.  A file that cannot be read or does not look like a
        document is rejected without touching the current state.

        Returns:
            ``{'consoles': n, 'games': n, 'history': n}`` counts as ``value``.
        """
        return self._run('import_document', self._import_document, filepath)

    def _import_document(self, filepath):
        if not os.path.exists(filepath):
            raise ValidationError(f"{filepath} does not exist.")
        raw = DocumentRepository(filepath).load()
        if isinstance(raw, dict) and isinstance(raw.get('document'), dict):
            raw = raw['document']
        if not is_document(raw):
            raise ValidationError(f"{filepath} does not contain a rotation document.")
        self._doc = load_document(raw, self._now())
        self._log.info("Imported rotation document from %s", filepath)
        return {
            'consoles': len(self._doc['consoles']),
            'games': len(self._doc['games']),
            'history': len(self._doc['history']),
        }
