"""
Audio device streams backed by sounddevice.

These are the default factories used by the capture pipeline and the playback
router. Requires PortAudio to be available on the host.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import sounddevice as sd

    from aiomumble.client.interfaces import (
        FinishedCallback,
        InputCallback,
        OutputCallback,
    )
    from aiomumble.models.config import AudioFormat

logger = logging.getLogger(__name__)

# Device block length in milliseconds.
BLOCK_DURATION_MS = 20


def _import_sounddevice() -> Any:
    """Import sounddevice, raising a clear error if PortAudio is missing."""
    try:
        import sounddevice as _sd
    except (ImportError, OSError) as exc:
        raise ImportError(
            "sounddevice with a working PortAudio library is required for audio devices"
        ) from exc
    return _sd


def _blocksize(audio_format: AudioFormat) -> int:
    return audio_format.sample_rate * BLOCK_DURATION_MS // 1000


def open_input_stream(
    audio_format: AudioFormat,
    callback: InputCallback,
    *,
    device: int | str | None = None,
) -> sd.RawInputStream:
    """Open (but do not start) a microphone stream delivering raw PCM buffers."""
    sounddevice = _import_sounddevice()

    def _input_callback(indata: Any, _frames: int, _time: Any, status: Any) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        callback(bytes(indata))

    stream = sounddevice.RawInputStream(
        samplerate=audio_format.sample_rate,
        channels=audio_format.channels,
        dtype=audio_format.dtype,
        blocksize=_blocksize(audio_format),
        callback=_input_callback,
        device=device,
    )
    logger.debug(
        "Input stream opened: %d Hz, %d bit, %d channel(s), device=%s",
        audio_format.sample_rate,
        audio_format.bit_depth,
        audio_format.channels,
        device,
    )
    return stream


def open_output_stream(
    audio_format: AudioFormat,
    callback: OutputCallback,
    finished_callback: FinishedCallback,
    *,
    device: int | str | None = None,
) -> sd.RawOutputStream:
    """Open (but do not start) a speaker stream pulling raw PCM buffers."""
    sounddevice = _import_sounddevice()

    def _output_callback(outdata: Any, _frames: int, _time: Any, status: Any) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        if not callback(memoryview(outdata).cast("B")):
            raise sounddevice.CallbackAbort

    stream = sounddevice.RawOutputStream(
        samplerate=audio_format.sample_rate,
        channels=audio_format.channels,
        dtype=audio_format.dtype,
        blocksize=_blocksize(audio_format),
        callback=_output_callback,
        finished_callback=finished_callback,
        device=device,
    )
    logger.debug(
        "Output stream opened: %d Hz, %d bit, %d channel(s), device=%s",
        audio_format.sample_rate,
        audio_format.bit_depth,
        audio_format.channels,
        device,
    )
    return stream
