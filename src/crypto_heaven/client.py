"""Async HTTP client for a community chat view.

The client keeps a cached copy of the recent message window and refreshes
it after every mutation instead of subscribing to live updates.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class ChatClientError(RuntimeError):
    """Raised when a chat request fails.

    The message is always generic; details are logged instead.
    """

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE) -> None:
        super().__init__(message)


class CommunityChatClient:
    """Chat client bound to one community and one signed-in user."""

    def __init__(
        self,
        base_url: str,
        token: str,
        community_id: str,
        current_user_id: str,
        *,
        page_size: int | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.community_id = community_id
        self.current_user_id = current_user_id
        self.page_size = page_size
        self.messages: list[dict[str, Any]] = []
        self._pending_likes: set[str] = set()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def __aenter__(self) -> CommunityChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, f"/api/v1{path}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "%s %s failed with %s: %s",
                method,
                path,
                exc.response.status_code,
                exc.response.text,
            )
            raise ChatClientError() from exc
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ChatClientError() from exc
        return response.json()

    def _cached(self, message_id: str) -> dict[str, Any] | None:
        return next((m for m in self.messages if m.get("id") == message_id), None)

    async def refresh(self) -> list[dict[str, Any]]:
        """Re-fetch the recent message window, oldest first."""
        params = {"limit": self.page_size} if self.page_size else None
        self.messages = await self._request(
            "GET", f"/communities/{self.community_id}/messages", params=params
        )
        return self.messages

    async def send(
        self,
        text: str | None = None,
        image: str | None = None,
        reply_to_id: str | None = None,
    ) -> dict[str, Any]:
        payload = {"text": text, "image": image, "reply_to_id": reply_to_id}
        result = await self._request(
            "POST", f"/communities/{self.community_id}/messages", json=payload
        )
        await self.refresh()
        return result["message"]

    async def like(self, message_id: str) -> None:
        """Toggle a like optimistically.

        Calls for a message whose previous like is still in flight are
        ignored. The cached likes are restored if the request fails.
        """
        if message_id in self._pending_likes:
            logger.debug("Like already in flight for %s", message_id)
            return

        message = self._cached(message_id)
        previous = list(message.get("likes", [])) if message is not None else None
        if message is not None:
            if self.current_user_id in previous:
                message["likes"] = [uid for uid in previous if uid != self.current_user_id]
            else:
                message["likes"] = [*previous, self.current_user_id]

        self._pending_likes.add(message_id)
        try:
            await self._request("POST", f"/messages/{message_id}/like")
        except ChatClientError:
            if message is not None:
                message["likes"] = previous
            raise
        finally:
            self._pending_likes.discard(message_id)
        await self.refresh()

    async def delete(self, message_id: str) -> bool:
        """Delete one of the current user's messages.

        Returns False without contacting the server when the cached message
        is missing or was written by someone else.
        """
        message = self._cached(message_id)
        author = (message or {}).get("author") or {}
        if author.get("id") != self.current_user_id:
            logger.debug("Refusing to delete %s: not authored by current user", message_id)
            return False

        await self._request("DELETE", f"/messages/{message_id}")
        await self.refresh()
        return True

    async def join(self) -> str:
        """Join the community; returns ``joined`` or ``requested``."""
        result = await self._request("POST", f"/communities/{self.community_id}/join")
        if result["status"] == "joined":
            await self.refresh()
        return result["status"]

    async def leave(self) -> None:
        await self._request("POST", f"/communities/{self.community_id}/leave")
        # Non-members cannot read the feed.
        self.messages = []
