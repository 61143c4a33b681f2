"""Test doubles for the embedding API and the chat host."""

import asyncio
import hashlib
import json
from typing import Any, Dict, List, Optional, Sequence

from table_memory.services.embedding.transport import TransportResponse
from table_memory.services.vector_db.sources import ConversationContext

EMBEDDINGS_API_URL = "http://embeddings.test/v1"


class FakeTransport:
    """
    Embedding API double.

    Texts listed in ``vectors`` embed to the given vector, any other text
    to a deterministic vector derived from its md5 digest.
    """

    def __init__(self, dimension: int = 8, vectors: Optional[Dict[str, List[float]]] = None):
        self.dimension = dimension
        self.vectors = dict(vectors or {})
        # Raised one per request, in order, before answering normally
        self.errors: List[Exception] = []
        self.status = 200
        self.body: Optional[str] = None
        # When set, requests wait for the event before answering
        self.gate: Optional[asyncio.Event] = None
        self.pending = 0

        self.calls: List[List[str]] = []
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def vector_for(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.md5(text.encode("utf-8")).digest()
        return [digest[i % len(digest)] / 255.0 - 0.5 for i in range(self.dimension)]

    async def post_json(self, url, payload, headers) -> TransportResponse:
        self.calls.append(list(payload["input"]))
        self.requests.append({"url": url, "payload": payload, "headers": headers})

        if self.gate is not None:
            self.pending += 1
            await self.gate.wait()
            self.pending -= 1

        if self.errors:
            raise self.errors.pop(0)

        if self.status != 200:
            return TransportResponse(status=self.status, text='{"error": "denied"}')

        if self.body is not None:
            return TransportResponse(status=200, text=self.body)

        data = [
            {"object": "embedding", "index": i, "embedding": self.vector_for(text)}
            for i, text in enumerate(payload["input"])
        ]
        return TransportResponse(status=200, text=json.dumps({"data": data}))

    async def close(self) -> None:
        self.closed = True


class FakeHost:
    """Table engine and chat host of a single open conversation."""

    def __init__(
        self,
        tables: Sequence[Any] = (),
        character_name: Optional[str] = "Alice",
        chat_id: Optional[str] = "chat1",
    ):
        self.tables = list(tables)
        self.context: Optional[ConversationContext] = ConversationContext(
            character_name=character_name,
            chat_id=chat_id,
        )

    def get_chat_sheets(self):
        return self.tables

    def get_context(self) -> Optional[ConversationContext]:
        return self.context

    def open_chat(self, chat_id: str, tables: Sequence[Any] = ()) -> None:
        self.context = ConversationContext(character_name="Alice", chat_id=chat_id)
        self.tables = list(tables)


async def wait_for_pending_request(transport: FakeTransport) -> None:
    """Yield to the event loop until a request is held at the transport gate."""
    while transport.pending == 0:
        await asyncio.sleep(0)
