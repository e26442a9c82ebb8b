from campus_messaging.models.profile import Profile
from campus_messaging.models.message import Message

__all__ = [
	"Profile",
	"Message",
]
