"""Response types for audio streaming."""

import anyio
from starlette.concurrency import run_in_threadpool
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from music_library.streaming import TrackStream


class TrackStreamResponse(StreamingResponse):
    """Streams a TrackStream body, one flushed ASGI message per chunk.

    The blob reader is closed however the response ends: body exhausted,
    storage error mid-body, or the task cancelled because the client hung up.
    """

    def __init__(self, stream: TrackStream):
        self.track_stream = stream
        super().__init__(
            stream.iter_body(),
            status_code=stream.status_code,
            headers=stream.headers,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # close() may wait on a read still running in the threadpool;
            # shielded so a cancelled request still releases the reader
            with anyio.CancelScope(shield=True):
                await run_in_threadpool(self.track_stream.close)
