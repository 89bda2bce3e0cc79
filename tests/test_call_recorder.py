import asyncio

import pytest

from utils.call_recorder import RECORDING_MIME_TYPE, CallRecorder


class FakeMixer:
    def __init__(self, chunks=None, fail_on_add=False, fail_on_read=False):
        self.chunks = list(chunks or [])
        self.fail_on_add = fail_on_add
        self.fail_on_read = fail_on_read
        self.tracks = None
        self.closed = False

    def add_tracks(self, local_stream, remote_stream):
        if self.fail_on_add:
            raise RuntimeError("no audio context")
        self.tracks = (local_stream, remote_stream)

    def read_chunk(self):
        if self.fail_on_read:
            raise RuntimeError("track ended")
        return self.chunks.pop(0) if self.chunks else b""

    def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_recording_joins_chunks_into_one_blob():
    mixer = FakeMixer(chunks=[b"aa", b"bb", b"cc"])
    recorder = CallRecorder(lambda: mixer, chunk_interval=0.01)

    assert await recorder.start("local", "remote") is True
    assert recorder.is_recording
    assert mixer.tracks == ("local", "remote")

    await asyncio.sleep(0.1)
    result = await recorder.stop()

    assert result.blob == b"aabbcc"
    assert result.size_bytes == 6
    assert result.mime_type == RECORDING_MIME_TYPE
    assert result.duration_seconds == 0
    assert mixer.closed
    assert not recorder.is_recording


@pytest.mark.asyncio
async def test_stop_collects_the_tail_chunk():
    mixer = FakeMixer(chunks=[b"tail"])
    recorder = CallRecorder(lambda: mixer, chunk_interval=10)

    await recorder.start("local", "remote")
    result = await recorder.stop()

    assert result.blob == b"tail"


@pytest.mark.asyncio
async def test_start_failure_is_reported_not_raised():
    errors = []
    mixer = FakeMixer(fail_on_add=True)
    recorder = CallRecorder(lambda: mixer, on_error=errors.append)

    assert await recorder.start("local", "remote") is False

    assert len(errors) == 1
    assert "no audio context" in str(errors[0])
    assert mixer.closed
    assert not recorder.is_recording
    assert await recorder.stop() is None


@pytest.mark.asyncio
async def test_second_start_is_ignored():
    recorder = CallRecorder(lambda: FakeMixer(), chunk_interval=0.01)
    assert await recorder.start("a", "b") is True
    assert await recorder.start("a", "b") is False
    await recorder.close()


@pytest.mark.asyncio
async def test_read_failure_stops_collecting_and_reports():
    errors = []
    mixer = FakeMixer(fail_on_read=True)
    recorder = CallRecorder(lambda: mixer, on_error=errors.append, chunk_interval=0.01)

    await recorder.start("local", "remote")
    await asyncio.sleep(0.05)

    assert len(errors) == 1
    await recorder.close()
    assert mixer.closed


@pytest.mark.asyncio
async def test_context_manager_releases_mixer():
    mixer = FakeMixer(chunks=[b"x"])
    async with CallRecorder(lambda: mixer, chunk_interval=0.01) as recorder:
        await recorder.start("local", "remote")
    assert mixer.closed
    assert not recorder.is_recording
