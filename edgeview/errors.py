"""
errors.py - Exception types raised by the viewer.

Every failure the viewer can report derives from ViewerError so callers
can catch the whole family at once.  Each class also derives from the
closest builtin, so code that already expects ValueError / IndexError /
RuntimeError keeps working.
"""


class ViewerError(Exception):
    """Base class for all viewer errors."""


class InvalidArgument(ViewerError, ValueError):
    """A kernel, grid, or configuration value is malformed (empty, ragged, ...)."""


class OutOfBounds(ViewerError, IndexError):
    """A requested slice lies outside the decoded intensity buffer."""


class DecodeFailure(ViewerError, RuntimeError):
    """The selected file(s) could not be decoded into a volumetric image."""
