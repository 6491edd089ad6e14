"""Local speech-to-text dictation with a stdio tool server."""

__version__ = "1.0.0"
