from mindlink.storage.models import Turn, ROLES
from mindlink.storage.sqlite_store import ConversationStore

__all__ = ["Turn", "ROLES", "ConversationStore"]
