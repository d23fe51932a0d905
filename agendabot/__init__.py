"""Agenda Bot: meeting agendas with time monitoring for chat rooms."""

__version__ = "1.0.0"
