# autopublish/cli/commands: one module per CLI command.

from .clear import clear
from .run import run
from .status import status
from .upload import upload

__all__ = [
    "clear",
    "run",
    "status",
    "upload",
]
