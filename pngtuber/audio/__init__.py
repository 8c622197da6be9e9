"""
Local audio capture.

Provides the microphone loudness sampler and the FFT analyser behind it.
"""

from .analyser import FrequencyAnalyser
from .sampler import AmplitudeSampler, level_from_bins

__all__ = ["FrequencyAnalyser", "AmplitudeSampler", "level_from_bins"]
