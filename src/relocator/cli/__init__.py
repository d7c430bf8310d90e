"""relocator CLI: move files and directory trees, across volumes if need be."""

from ._helpers import main  # noqa: F401  (entry point)

# Import command modules to register Click commands with the main group.
from . import _mv, _sweep  # noqa: F401
