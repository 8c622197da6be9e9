"""
Amplitude Sampler - Local microphone loudness.

Opens the microphone with sounddevice, feeds every captured block into a
FrequencyAnalyser and turns the byte spectrum into a single 0-100
loudness value once per display frame.

The PortAudio callback thread only copies samples; the FFT runs when
`sample()` is called from the frame loop.
"""

import logging
from typing import Callable, Optional

import numpy as np

try:
    import sounddevice as sd
    SOUNDDEVICE_AVAILABLE = True
except (ImportError, OSError):
    # OSError: the PortAudio library itself is missing
    sd = None
    SOUNDDEVICE_AVAILABLE = False

from ..errors import PermissionDenied
from ..utils.config_loader import AudioConfig
from .analyser import FrequencyAnalyser

logger = logging.getLogger(__name__)


def _open_input_stream(**kwargs):
    if not SOUNDDEVICE_AVAILABLE:
        raise PermissionDenied("sounddevice/PortAudio is not available. Run: pip install sounddevice")
    return sd.InputStream(**kwargs)


def level_from_bins(bins: np.ndarray) -> int:
    """
    Average 0-255 bin magnitudes and rescale to 0-100.

    Rounds half-up, matching the overlay page's Math.round().
    """
    if len(bins) == 0:
        return 0
    average = float(np.mean(bins))
    return int(np.floor(average / 255.0 * 100.0 + 0.5))


class AmplitudeSampler:
    """
    Microphone loudness sampler.

    Usage:
        sampler = AmplitudeSampler()
        sampler.open()          # raises PermissionDenied on failure
        volume = sampler.sample()
        sampler.close()
    """

    def __init__(
        self,
        config: Optional[AudioConfig] = None,
        stream_factory: Optional[Callable[..., object]] = None
    ):
        self.config = config or AudioConfig()
        self.analyser = FrequencyAnalyser(
            fft_size=self.config.fft_size,
            smoothing=self.config.smoothing,
        )
        self._stream_factory = stream_factory or _open_input_stream
        self._stream = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        """
        Acquire the input device and start capturing.

        Raises:
            PermissionDenied: If the microphone cannot be opened
        """
        if self._stream is not None:
            return

        stream = None
        try:
            stream = self._stream_factory(
                samplerate=self.config.sample_rate,
                channels=1,
                dtype='float32',
                blocksize=self.config.fft_size,
                device=self.config.device,
                callback=self._audio_callback,
            )
            stream.start()
        except PermissionDenied:
            raise
        except Exception as e:
            # PortAudioError, OSError from the host API, bad device index...
            if stream is not None:
                try:
                    stream.close()
                except Exception as close_error:
                    logger.debug(f"Error closing failed microphone stream: {close_error}")
            raise PermissionDenied(f"Microphone access denied: {e}") from e

        self._stream = stream
        logger.info(f"🎤 Microphone connected (device={self.config.device or 'default'})")

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"Audio status: {status}")
        self.analyser.push(indata[:, 0])

    def sample(self) -> int:
        """Current loudness (0-100) from the analyser's byte spectrum."""
        return level_from_bins(self.analyser.get_byte_frequency_data())

    def close(self) -> None:
        """Release the input device. Safe to call more than once."""
        stream, self._stream = self._stream, None
        if stream is None:
            return

        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning(f"Error closing microphone stream: {e}")
        self.analyser.reset()
        logger.info("🎤 Microphone released")

    def __enter__(self) -> "AmplitudeSampler":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
