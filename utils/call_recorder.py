"""
Call recording.

A `CallRecorder` owns one audio mixer for the lifetime of a recording. The mixer
merges the local and remote tracks and hands back encoded chunks; the recorder
polls it once per chunk interval and joins the chunks into a single blob on stop.

A mixer is any object with:

    add_tracks(local_stream, remote_stream)
    read_chunk() -> bytes
    close()

Recording is optional. Any failure to start is reported through `on_error` and
the call keeps going.
"""

import asyncio
import logging
from typing import Any, Callable, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

RECORDING_MIME_TYPE = "audio/webm;codecs=opus"
CHUNK_INTERVAL_SECONDS = 1.0


class RecordingResult(NamedTuple):
    blob: bytes
    duration_seconds: int
    size_bytes: int
    mime_type: str


class CallRecorder:
    def __init__(
        self,
        mixer_factory: Callable[[], Any],
        *,
        on_error: Optional[Callable[[Exception], None]] = None,
        chunk_interval: float = CHUNK_INTERVAL_SECONDS,
        mime_type: str = RECORDING_MIME_TYPE,
    ):
        self._mixer_factory = mixer_factory
        self._on_error = on_error
        self._chunk_interval = chunk_interval
        self._mime_type = mime_type
        self._mixer = None
        self._collector: Optional[asyncio.Task] = None
        self._chunks: List[bytes] = []
        self._started_at: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self._collector is not None

    async def start(self, local_stream, remote_stream) -> bool:
        """Begin recording both sides. Returns False, without raising, if the mixer could not be set up."""
        if self.is_recording:
            return False
        try:
            self._mixer = self._mixer_factory()
            self._mixer.add_tracks(local_stream, remote_stream)
        except Exception as e:
            logger.warning(f"Could not start call recording: {e}")
            self._close_mixer()
            if self._on_error is not None:
                self._on_error(e)
            return False

        loop = asyncio.get_running_loop()
        self._chunks = []
        self._started_at = loop.time()
        self._collector = loop.create_task(self._collect())
        logger.debug("Call recording started")
        return True

    async def stop(self) -> Optional[RecordingResult]:
        """Finish the recording and return it as one blob. None if nothing was recording."""
        if not self.is_recording:
            return None
        duration = asyncio.get_running_loop().time() - self._started_at
        try:
            await self._stop_collector()
            self._read_chunk()
        finally:
            self._close_mixer()

        blob = b"".join(self._chunks)
        self._chunks = []
        self._started_at = None
        logger.debug(f"Call recording stopped: {len(blob)} bytes, {duration:.1f}s")
        return RecordingResult(
            blob=blob,
            duration_seconds=int(round(duration)),
            size_bytes=len(blob),
            mime_type=self._mime_type,
        )

    async def close(self) -> None:
        """Drop any recording in progress and release the mixer. Safe to call more than once."""
        try:
            await self._stop_collector()
        finally:
            self._close_mixer()
            self._chunks = []
            self._started_at = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _collect(self) -> None:
        while True:
            await asyncio.sleep(self._chunk_interval)
            try:
                self._read_chunk()
            except Exception as e:
                logger.warning(f"Call recording interrupted: {e}")
                if self._on_error is not None:
                    self._on_error(e)
                return

    def _read_chunk(self) -> None:
        chunk = self._mixer.read_chunk() if self._mixer is not None else None
        if chunk:
            self._chunks.append(chunk)

    async def _stop_collector(self) -> None:
        task, self._collector = self._collector, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _close_mixer(self) -> None:
        mixer, self._mixer = self._mixer, None
        if mixer is None:
            return
        try:
            mixer.close()
        except Exception as e:
            logger.warning(f"Audio mixer did not close cleanly: {e}")
