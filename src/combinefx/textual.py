"""Textual integration for combinefx. Opt-in — requires textual.

Binds stream values to widgets. Guard, NoMatches handling and the thread
hop live here, not at call sites; core combinefx stays UI-agnostic.
_paused_apps is owned by this module: an id is present exactly while that
app is inside a pause() block.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend bindings during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def bind(app, stream, effect_fn, on_completion=None):
    """sink() that safely bridges stream values to Textual widgets.

    Skips values while the app is paused or not running, swallows NoMatches
    from widget queries, and marshals deliveries from other threads via
    call_from_thread. Returns the Subscription; keep it.
    """
    _main = threading.get_ident()

    def _guarded(value):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, value)
        else:
            _safe(value)

    def _safe(value):
        try:
            effect_fn(value)
        except NoMatches:
            pass

    return stream.sink(_guarded, on_completion)


def assign(app, stream, selector, attribute):
    """Set app.query_one(selector).<attribute> to every value.

    Usage:
        sub = stx.assign(app, vm.title, "#title", "renderable")
    """

    def _set(value):
        setattr(app.query_one(selector), attribute, value)

    return bind(app, stream, _set)
