"""Tests for the configuration module."""

import numpy as np
import pytest
from pydantic import ValidationError

from signal_lab.config import KernelConfig
from signal_lab.dsp.spectral import compute_stft
from signal_lab.dsp.vowel import DETECTOR_WINDOW


def test_config_defaults() -> None:
  """Test that default values are set correctly."""
  config = KernelConfig()
  assert config.max_fft_samples == 4096
  assert config.max_demod_samples == 4096
  assert config.stft_window_size == 256
  assert config.stft_hop_size == 128
  assert config.stft_max_frames == 80
  assert config.vowel_window == 5
  assert config.seed is None


def test_defaults_follow_kernel_constants() -> None:
  """Test that the config and the kernel functions share one default."""
  config = KernelConfig()
  assert config.vowel_window == DETECTOR_WINDOW
  long_signal = np.zeros(config.stft_hop_size * (config.stft_max_frames + 10))
  stft = compute_stft(long_signal, 1000.0)
  assert stft.power.shape == (
    config.stft_max_frames,
    config.stft_window_size // 2,
  )


def test_config_validation() -> None:
  """Test that field constraints are enforced."""
  with pytest.raises(ValidationError):
    KernelConfig(max_fft_samples=0)
  with pytest.raises(ValidationError):
    KernelConfig(vowel_window=-1)


def test_config_hop_larger_than_window() -> None:
  """Test that a hop longer than the window is rejected."""
  with pytest.raises(ValidationError):
    KernelConfig(stft_window_size=64, stft_hop_size=128)


def test_seeded_rng_is_reproducible() -> None:
  """Test that two generators from the same seed agree."""
  config = KernelConfig(seed=7)
  first = config.make_rng().standard_normal(16)
  second = config.make_rng().standard_normal(16)
  assert (first == second).all()
