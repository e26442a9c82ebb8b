from campus_messaging.client.api import MessagingApiClient
from campus_messaging.client.inbox import Inbox
from campus_messaging.client.live import LiveFeed, websocket_connector
from campus_messaging.client.profiles import ProfileCache
from campus_messaging.client.state import MessageState, merge_records
from campus_messaging.client.view import ConversationView

__all__ = [
    "MessagingApiClient", "Inbox", "LiveFeed", "websocket_connector",
    "ProfileCache", "MessageState", "merge_records", "ConversationView",
]
