"""App import resolution: resolves ``"module:attribute"`` strings to App instances.

Shared by ``perch run`` and ``perch routes``.
"""

import importlib

from perch.app import App
from perch.extension import Extension


def resolve_app(import_string: str) -> App:
    """Resolve an import string to a perch App instance.

    Accepts ``"module:attribute"``; the attribute defaults to ``app``.
    The attribute may be an ``App``, a root ``Extension`` (wrapped in a
    default ``App``), or a zero-argument factory returning either.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the attribute does not exist on the module.
        TypeError: If the resolved object is neither an App nor an Extension.
    """
    module_path, _, attr_name = import_string.partition(":")
    if not attr_name:
        attr_name = "app"

    module = importlib.import_module(module_path)
    obj = getattr(module, attr_name)

    if callable(obj) and not isinstance(obj, (App, Extension)):
        try:
            obj = obj()
        except Exception as exc:
            msg = f"Factory function {import_string!r} raised an error: {exc}"
            raise TypeError(msg) from exc

    if isinstance(obj, Extension):
        obj = App(obj)
    if not isinstance(obj, App):
        msg = f"{import_string!r} resolved to {type(obj).__name__}, not a perch App or Extension"
        raise TypeError(msg)

    return obj
