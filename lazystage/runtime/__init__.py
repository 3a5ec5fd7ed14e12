"""Runtime orchestration entry points.

``run_app`` starts the interactive session; the request executor and loop
contracts live in ``lazystage.runtime.app``.
"""

from __future__ import annotations


def run_app(*args, **kwargs):
    """Lazily import the session entrypoint to keep package imports lightweight."""
    from .app import run_app as _run_app

    return _run_app(*args, **kwargs)


__all__ = ["run_app"]
