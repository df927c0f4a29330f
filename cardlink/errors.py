"""
Exceptions raised by CardLink.
"""


class CardLinkError(Exception):
    """Base class for CardLink errors."""


class LayoutError(CardLinkError, ValueError):
    """A layout document could not be parsed or does not have the layout shape."""
