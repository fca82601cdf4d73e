"""teller - conversational wallet assistant with guarded transfers."""

__version__ = "0.3.0"
__logo__ = "🪙"
