"""ConsultDesk: consultation booking, provider matching and reminders."""

__version__ = "0.1.0"
