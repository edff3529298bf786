"""Platform abstraction layer."""

from .files import atomic_write_text, is_executable_file, list_dir_names
from .process import ProcessError, run, run_silent

__all__ = [
    # files
    "atomic_write_text",
    "is_executable_file",
    "list_dir_names",
    # process
    "ProcessError",
    "run",
    "run_silent",
]
