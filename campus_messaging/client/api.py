import httpx
from typing import Iterable, List, Optional

from campus_messaging.errors import NotFoundError, TransportError, error_for_status
from campus_messaging.schemas.message import MessageRecord
from campus_messaging.schemas.profile import ProfileDto


class MessagingApiClient:
    """Client for the messaging REST API.

    Failures come back as the same error classes the server raises:
    HTTP status codes are mapped back, and network failures become
    TransportError.
    """

    def __init__(self, base_url: str, token: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = None
            raise error_for_status(response.status_code, str(detail or response.reason_phrase))
        return response

    async def send_message(self, recipient_id: str, content: str) -> MessageRecord:
        response = await self._request("POST", "/messages", json={"recipient_id": recipient_id, "content": content})
        return MessageRecord.model_validate(response.json())

    async def list_messages(self, user_id: Optional[str] = None) -> List[MessageRecord]:
        params = {"user_id": user_id} if user_id else None
        response = await self._request("GET", "/messages", params=params)
        return [MessageRecord.model_validate(item) for item in response.json()]

    async def mark_read(self, message_ids: Iterable[str]) -> List[str]:
        response = await self._request("POST", "/messages/read", json={"message_ids": sorted(message_ids)})
        return response.json()["updated"]

    async def get_profile(self, profile_id: str) -> Optional[ProfileDto]:
        try:
            response = await self._request("GET", f"/profiles/{profile_id}")
        except NotFoundError:
            return None
        return ProfileDto.model_validate(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()
