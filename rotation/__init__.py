"""
Game Rotator application package.

Layered the same way throughout:

  rotation/repositories/ : pure I/O: loading and persisting the rotation document.
  rotation/services/     : business logic: seeding, migration, the daily pick,
                            the store operations and the view model.

``RotationStore`` (in ``rotation/services/rotation_service.py``) is the
integration point: it owns the in-memory document, receives a persistence
port and a clock in ``__init__`` and exposes one method per user action.
``rotator.py`` is the terminal front end; it only ever talks to the store.
"""
