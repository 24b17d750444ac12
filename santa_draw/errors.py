from __future__ import annotations


class DrawError(RuntimeError):
    pass


class StoreUnavailable(DrawError):
    pass


class InvalidInput(DrawError):
    pass


class TargetTaken(DrawError):
    """The chosen card was claimed by another session before our commit landed."""


class AlreadyDrawn(DrawError):
    """The acting participant already has a committed draw."""
