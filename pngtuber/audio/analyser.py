"""
Frequency analyser.

A numpy port of the browser's AnalyserNode byte spectrum, so the local
microphone path produces the same 0-255 bin magnitudes an overlay page
would read with getByteFrequencyData():

1. Keep the most recent `fft_size` time-domain samples
2. Apply a Blackman window and take the FFT
3. Smooth each bin magnitude over time
4. Map decibels in [min_decibels, max_decibels] onto 0-255
"""

import threading

import numpy as np


class FrequencyAnalyser:
    """
    Windowed FFT with per-bin temporal smoothing.

    `push()` may be called from the audio callback thread; everything
    else is meant for the event loop.
    """

    def __init__(
        self,
        fft_size: int = 256,
        smoothing: float = 0.3,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be lower than max_decibels")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        # Periodic Blackman window (alpha = 0.16)
        n = np.arange(fft_size)
        self._window = (
            0.42
            - 0.5 * np.cos(2 * np.pi * n / fft_size)
            + 0.08 * np.cos(4 * np.pi * n / fft_size)
        )

        self._buffer = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def push(self, samples) -> None:
        """Append time-domain samples (float, -1..1) to the rolling buffer."""
        data = np.asarray(samples, dtype=np.float32).ravel()
        if data.size == 0:
            return

        with self._lock:
            if data.size >= self.fft_size:
                self._buffer[:] = data[-self.fft_size:]
            else:
                self._buffer = np.concatenate((self._buffer[data.size:], data))

    def get_byte_frequency_data(self) -> np.ndarray:
        """
        Compute the current byte spectrum.

        Returns:
            uint8 array of `frequency_bin_count` magnitudes (0-255)
        """
        with self._lock:
            frame = self._buffer.astype(np.float64)

        spectrum = np.fft.rfft(frame * self._window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        self._smoothed = (
            self.smoothing * self._smoothed +
            (1.0 - self.smoothing) * magnitude
        )

        with np.errstate(divide='ignore'):
            decibels = 20.0 * np.log10(self._smoothed)

        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor((decibels - self.min_decibels) * scale)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def reset(self) -> None:
        """Clear the sample buffer and smoothing state."""
        with self._lock:
            self._buffer = np.zeros(self.fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
