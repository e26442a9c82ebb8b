from typing import Optional

from campus_messaging.errors import ValidationError

MAX_ID_LENGTH = 64


def validate_id(value, field: str = "id") -> str:
    if not isinstance(value, str) or not value.strip() or len(value) > MAX_ID_LENGTH:
        raise ValidationError(f"Malformed {field}")
    return value


def validate_content(content, max_length: Optional[int] = None) -> str:
    """Reject blank or oversized message bodies. Returns the body unchanged."""
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Message content cannot be empty")
    if max_length is not None and len(content) > max_length:
        raise ValidationError(f"Message content exceeds {max_length} characters")
    return content


def validate_participants(sender_id: str, recipient_id: str) -> None:
    validate_id(sender_id, "sender_id")
    validate_id(recipient_id, "recipient_id")
    if sender_id == recipient_id:
        raise ValidationError("Cannot message yourself")
