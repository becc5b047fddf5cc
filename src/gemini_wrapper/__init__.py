"""Delegation layer that runs the Gemini CLI as a resumable, session-tracked subprocess."""

__version__ = "1.0.0"
