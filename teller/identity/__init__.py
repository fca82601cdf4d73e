"""Identity linking and recipient resolution."""

from teller.identity.directory import LinkedIdentity, SqliteIdentityDirectory
from teller.identity.resolver import RecipientResolver, is_hex_address

__all__ = ["LinkedIdentity", "RecipientResolver", "SqliteIdentityDirectory", "is_hex_address"]
