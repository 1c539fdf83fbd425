"""pollex — asynchronous command execution with poll-based result delivery."""

__version__ = "0.3.0"
