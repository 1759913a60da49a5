import os
import shutil

__all__ = ["safe_delete", "safe_rmtree"]


def safe_delete(path: str | None) -> None:
    """Remove a file if it exists, ignoring missing files."""
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def safe_rmtree(path: str | None) -> None:
    """Remove a scratch directory and everything in it."""
    if not path:
        return
    shutil.rmtree(path, ignore_errors=True)
