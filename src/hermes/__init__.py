"""
Hermes - a declarative block language for API collections.

Loads .hermes collections (requests, headers, queries, bodies, and
environments spread over several files) into a fully resolved model.
"""

from ._version import get_version

# Re-export commonly used types for convenience
from .core import ir
from .core.errors import HermesError, LexError, LinkError, ParseError
from .core.project import load_collection

__version__ = get_version()

__all__ = [
    "__version__",
    "ir",
    "load_collection",
    "HermesError",
    "LexError",
    "ParseError",
    "LinkError",
]
