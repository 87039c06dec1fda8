"""amalive - realtime aggregation core for live Q&A sessions."""

__version__ = "0.1.0"
