"""Expo push notification transport."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from hasanat.exceptions import TransportFailure

logger = logging.getLogger(__name__)

# Ticket errors meaning the endpoint will never accept messages again
INVALID_ENDPOINT_ERRORS = frozenset({"DeviceNotRegistered", "InvalidCredentials"})


@dataclass(frozen=True)
class PushMessage:
    """One message to one Expo push token."""

    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    sound: str = "default"

    def to_payload(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "sound": self.sound,
        }


@dataclass(frozen=True)
class PushTicket:
    """Per-message delivery result, aligned by index with the sent messages."""

    status: str
    id: str | None = None
    message: str | None = None
    error: str | None = None

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "PushTicket":
        details = raw.get("details") or {}
        return cls(
            status=raw.get("status", "error"),
            id=raw.get("id"),
            message=raw.get("message"),
            error=details.get("error"),
        )

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def invalid_endpoint(self) -> bool:
        return self.status == "error" and self.error in INVALID_ENDPOINT_ERRORS


class PushTransport(Protocol):
    """Anything that can deliver a batch of push messages."""

    async def send(self, messages: Sequence[PushMessage]) -> list[PushTicket]: ...


def chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    """Split ``items`` into consecutive slices of at most ``size``."""
    return [items[i : i + size] for i in range(0, len(items), size)]


class ExpoPushTransport:
    """
    Sends messages to Expo's push API in batches.

    A failed batch is logged and reported as error tickets; it never raises
    to the caller and is not retried.
    """

    def __init__(
        self,
        url: str,
        access_token: str | None = None,
        batch_size: int = 100,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.access_token = access_token
        self.batch_size = batch_size
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(self, messages: Sequence[PushMessage]) -> list[PushTicket]:
        if not messages:
            return []

        tickets: list[PushTicket] = []
        if self._client is not None:
            for chunk in chunked(messages, self.batch_size):
                tickets.extend(await self._send_chunk_safely(self._client, chunk))
            return tickets

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for chunk in chunked(messages, self.batch_size):
                tickets.extend(await self._send_chunk_safely(client, chunk))
        return tickets

    async def _send_chunk_safely(
        self, client: httpx.AsyncClient, chunk: Sequence[PushMessage]
    ) -> list[PushTicket]:
        try:
            return await self._send_chunk(client, chunk)
        except TransportFailure as exc:
            logger.warning("Expo push batch of %d failed: %s", len(chunk), exc.message)
            return [
                PushTicket(status="error", message=exc.message, error=TransportFailure.code)
                for _ in chunk
            ]

    async def _send_chunk(
        self, client: httpx.AsyncClient, chunk: Sequence[PushMessage]
    ) -> list[PushTicket]:
        try:
            response = await client.post(
                self.url,
                json=[message.to_payload() for message in chunk],
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Expo push error: {exc}") from exc

        if not response.is_success:
            raise TransportFailure(
                f"Expo push failed: {response.status_code} {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportFailure("Expo push returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise TransportFailure("Expo push returned an unexpected body")
        raw_tickets = body.get("data") or []
        if not isinstance(raw_tickets, list):
            raise TransportFailure("Expo push returned an unexpected body")

        tickets = [PushTicket.from_json(raw) for raw in raw_tickets[: len(chunk)]]
        # Expo returns one ticket per message; anything missing is unknown
        tickets.extend(
            PushTicket(status="error", message="No ticket returned")
            for _ in range(len(chunk) - len(tickets))
        )
        return tickets
