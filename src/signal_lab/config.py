"""Configuration module for Signal Lab."""

import numpy as np
from pydantic import BaseModel, Field, model_validator

from signal_lab.dsp.modulation import DEMOD_MAX_SAMPLES
from signal_lab.dsp.spectral import (
  FFT_MAX_SAMPLES,
  STFT_HOP_SIZE,
  STFT_MAX_FRAMES,
  STFT_WINDOW_SIZE,
)
from signal_lab.dsp.vowel import DETECTOR_WINDOW


class KernelConfig(BaseModel):
  """Tunable caps and defaults shared by the DSP kernel.

  The kernel functions take these as arguments; the defaults mirror the
  module constants they fall back to.

  Attributes:
    max_fft_samples: Samples kept before a spectrum is computed.
    max_demod_samples: Samples kept before a signal is demodulated.
    stft_window_size: Spectrogram frame length in samples.
    stft_hop_size: Spectrogram frame advance in samples.
    stft_max_frames: Hard ceiling on emitted spectrogram frames.
    vowel_window: Number of frames the vowel detector votes over.
    seed: Seed for the random source, None for fresh entropy.
  """

  max_fft_samples: int = Field(FFT_MAX_SAMPLES, description="FFT input cap.", gt=0)
  max_demod_samples: int = Field(
    DEMOD_MAX_SAMPLES, description="Demodulator input cap.", gt=0
  )
  stft_window_size: int = Field(
    STFT_WINDOW_SIZE, description="STFT window length.", gt=1
  )
  stft_hop_size: int = Field(STFT_HOP_SIZE, description="STFT hop length.", gt=0)
  stft_max_frames: int = Field(STFT_MAX_FRAMES, description="STFT frame ceiling.", gt=0)
  vowel_window: int = Field(
    DETECTOR_WINDOW, description="Vowel smoothing window.", gt=0
  )
  seed: int | None = Field(None, description="Random source seed.")

  model_config = {"frozen": True}

  @model_validator(mode="after")
  def _check_hop(self) -> "KernelConfig":
    if self.stft_hop_size > self.stft_window_size:
      msg = (
        f"stft_hop_size ({self.stft_hop_size}) must not exceed "
        f"stft_window_size ({self.stft_window_size})"
      )
      raise ValueError(msg)
    return self

  def make_rng(self) -> np.random.Generator:
    """Create the random source used by noise generation and stochastic faults."""
    return np.random.default_rng(self.seed)
