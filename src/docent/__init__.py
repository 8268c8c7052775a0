"""Docent - A narrated code review walkthrough for the terminal."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("docent")
except PackageNotFoundError:
    # Running from a source checkout that was never installed
    __version__ = "0.0.0+unknown"
