"""HTTP and websocket backend for console chrome user state, dashboard templates and notifications."""

__version__ = "0.1.0"