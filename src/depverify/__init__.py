"""depverify - verify and self-heal external content units before a build."""

__version__ = "0.3.0"
