"""Per-user model access settings, quota and diagnostics."""

from teller.assistant.settings import AssistantDiagnostics, SqliteAssistantSettings

__all__ = ["AssistantDiagnostics", "SqliteAssistantSettings"]
