"""Repositories for the rotation document (the whole app state in one dict)."""
import copy
import json
import logging
import os
import tempfile
from typing import Dict, Optional


class DocumentRepository:
    """Persists the rotation document to a single JSON file.

    Schema::

        {
            "meta":     {"createdAt": "<ISO-8601>", "version": 2},
            "consoles": [{"id": "c_...", "name": "<str>", "weight": 1.0}],
            "games":    [{"id": "g_...", "consoleId": "c_..." | null,
                          "title": "<str>", "status": "active" | "done",
                          "lastPlayed": "<ISO-8601>" | null,
                          "completedAt": "<ISO-8601>" | null}],
            "history":  [{"date": "<YYYY-MM-DD>", "consoleId": "...", "gameId": "..."}],
            "today":    {"date": "<YYYY-MM-DD>", "consoleId": ..., "gameId": ...} | null,
            "skips":    {"<YYYY-MM-DD>": [{"consoleId": "...", "gameId": "..."}]}
        }

    Keys are written sorted so that saving an unchanged document produces an
    identical file.  Writes go to a sibling temp file which then replaces the
    data file, so a crash mid-save leaves the previous document intact.

    No validation happens here; :func:`~rotation.services.document_service.load_document`
    turns whatever was read into a usable document.
    """

    def __init__(self, file_path: str = '.rotator_data.json') -> None:
        self._path = file_path
        self._log = logging.getLogger('rotator.repository.document')

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> Optional[Dict]:
        """Return the raw parsed document, or ``None`` if absent or unreadable.

        A missing file is the normal first-run case and is only logged at
        debug level; a file that exists but cannot be parsed is a warning,
        since the caller is about to replace it.
        """
        if not os.path.exists(self._path):
            self._log.debug("No data file at %s yet.", self._path)
            return None
        try:
            with open(self._path, 'r', encoding='utf-8') as fh:
                return json.load(fh)
        except json.JSONDecodeError as exc:
            self._log.warning("%s is not valid JSON (line %d): %s",
                              self._path, exc.lineno, exc.msg)
        except (UnicodeDecodeError, IOError) as exc:
            self._log.warning("Could not read %s: %s", self._path, exc)
        return None

    def save(self, document: Dict) -> None:
        """Write *document* to the data file, replacing it atomically.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        target_dir = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(target_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=target_dir, prefix='.rotator-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(document, fh, indent=2, sort_keys=True, ensure_ascii=False)
                fh.write('\n')
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        self._log.debug("Saved rotation document to %s", self._path)


class MemoryDocumentRepository:
    """In-memory stand-in for :class:`DocumentRepository`.

    Stores deep copies so callers cannot mutate the "persisted" state by
    accident.  ``save_count`` lets tests assert whether an operation wrote.
    """

    def __init__(self, document: Optional[Dict] = None) -> None:
        self.data: Optional[Dict] = copy.deepcopy(document)
        self.save_count = 0

    def load(self) -> Optional[Dict]:
        return copy.deepcopy(self.data)

    def save(self, document: Dict) -> None:
        self.data = copy.deepcopy(document)
        self.save_count += 1
