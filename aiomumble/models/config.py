"""Configuration models for a voice session."""

from __future__ import annotations

from dataclasses import dataclass, field

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 64738
DEFAULT_USERNAME = "SuperUser"

DEFAULT_SAMPLE_RATE = 48000
DEFAULT_BIT_DEPTH = 16
DEFAULT_CHANNELS = 1


def parse_port(value: str | int) -> int:
    """
    Parse a TCP port given by the operator.

    Raises:
        ValueError: If the value is not an integer in the range 1-65535.
    """
    try:
        port = int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid port '{value}'") from None
    if not 0 < port <= 65535:
        raise ValueError(f"Invalid port '{value}'")
    return port


@dataclass
class AudioFormat(DataClassORJSONMixin):
    """PCM format used for capture and playback. Fixed for a session."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    """Sample rate in Hz."""
    bit_depth: int = DEFAULT_BIT_DEPTH
    """Bits per sample."""
    channels: int = DEFAULT_CHANNELS
    """Number of interleaved channels (1=mono, 2=stereo)."""

    def __post_init__(self) -> None:
        """Validate field values."""
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.bit_depth not in (16, 24, 32):
            raise ValueError(f"bit_depth must be 16, 24, or 32, got {self.bit_depth}")
        if self.channels not in (1, 2):
            raise ValueError(f"channels must be 1 or 2, got {self.channels}")

    @property
    def frame_size(self) -> int:
        """Return bytes per PCM frame."""
        return self.channels * (self.bit_depth // 8)

    @property
    def dtype(self) -> str:
        """Return the sample type name understood by sounddevice."""
        return {16: "int16", 24: "int24", 32: "int32"}[self.bit_depth]


@dataclass
class SessionConfig(DataClassORJSONMixin):
    """Everything needed to open a voice session."""

    host: str = DEFAULT_HOST
    """Server host name or address."""
    port: int = DEFAULT_PORT
    """Server port."""
    username: str = DEFAULT_USERNAME
    """Name to connect as."""
    password: str = ""
    """Server password, empty for none."""
    tokens: list[str] = field(default_factory=list)
    """Access tokens presented while connecting."""
    audio: AudioFormat = field(default_factory=AudioFormat)
    """Capture and playback format."""

    def __post_init__(self) -> None:
        """Validate field values."""
        if not self.host.strip():
            raise ValueError("host must not be empty")
        if not self.username.strip():
            raise ValueError("username must not be empty")
        self.port = parse_port(self.port)

    class Config(BaseConfig):
        """Config for parsing json config files."""

        forbid_extra_keys = True
