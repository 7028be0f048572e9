"""notevault — offline semantic search for a markdown note vault."""

__version__ = "0.1.0"
