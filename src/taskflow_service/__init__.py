"""TaskFlow service: task lifecycle and payout settlement for a two-party marketplace."""

__version__ = "0.1.0"
