from app.models.connection import Connection, ConnectionSecret, LegacyInstanceToken
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.message import Message
from app.models.workspace import Workspace, WorkspaceSettings

__all__ = [
    "Connection",
    "ConnectionSecret",
    "Contact",
    "Conversation",
    "LegacyInstanceToken",
    "Message",
    "Workspace",
    "WorkspaceSettings",
]
