"""MeetScribe - meeting recorder and transcriber."""

__version__ = "0.1.0"
