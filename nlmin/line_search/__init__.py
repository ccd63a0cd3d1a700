"""Step-size searches and their factory."""

from __future__ import annotations

from typing import Optional

from ..config import LINE_SEARCH_ALIASES, LineSearchConfig
from .backtracking import Backtracking
from .base import LineSearch
from .none import NoLineSearch
from .wolfe import StrongWolfe

_LINE_SEARCHES = {
    "Backtracking": Backtracking,
    "StrongWolfe": StrongWolfe,
    "None": NoLineSearch,
}


def create_line_search(config: Optional[LineSearchConfig] = None) -> LineSearch:
    """
    Create a line search from a configuration.

    Raises:
        ValueError: If the method name is not supported.
    """
    config = config if config is not None else LineSearchConfig()
    method = LINE_SEARCH_ALIASES.get(config.method)
    if method is None:
        raise ValueError(
            f"Unsupported line search '{config.method}'. "
            f"Supported names: {sorted(LINE_SEARCH_ALIASES)}"
        )
    return _LINE_SEARCHES[method](config)


__all__ = [
    "Backtracking",
    "LineSearch",
    "NoLineSearch",
    "StrongWolfe",
    "create_line_search",
]
