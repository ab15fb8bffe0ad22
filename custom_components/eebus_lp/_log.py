"""Logger factory shared by all modules of the integration."""

from __future__ import annotations

import logging

_PACKAGE = __name__.rpartition(".")[0]


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the integration's package logger.

    Modules pass ``__name__``; anything outside the package (e.g. tests
    importing a module by path) is re-parented so that a single
    ``logger: custom_components.eebus_lp: debug`` entry enables all output.
    """
    if name == _PACKAGE or name.startswith(f"{_PACKAGE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_PACKAGE}.{name.rpartition('.')[2]}")
