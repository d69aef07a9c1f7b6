"""Tests for the RC filters."""

import math

import numpy as np
import pytest

from signal_lab.dsp.filters import FilterParams, FilterType, apply_filter, rc_alpha


def _tone(freq_hz: float, fs: float = 1000.0, n: int = 2000) -> np.ndarray:
  return np.sin(2 * np.pi * freq_hz * np.arange(n) / fs)


def _rms(x: np.ndarray) -> float:
  return float(np.sqrt(np.mean(x**2)))


def test_rc_alpha() -> None:
  """Test the smoothing factor."""
  rc = 1 / (2 * math.pi * 10.0)
  assert rc_alpha(10.0, 1000.0) == pytest.approx(0.001 / (rc + 0.001))


class TestLowpass:
  """Tests for the low-pass response."""

  def test_constant_passes_unchanged(self) -> None:
    """Test that DC passes without a start-up transient."""
    np.testing.assert_allclose(apply_filter(np.full(50, 3.0)), 3.0)

  def test_attenuates_high_frequency(self) -> None:
    """Test strong attenuation far above the cutoff."""
    out = apply_filter(_tone(200.0))
    assert _rms(out[200:]) < 0.1 * _rms(_tone(200.0))

  def test_higher_order_attenuates_more(self) -> None:
    """Test that cascading sections steepens the roll-off."""
    first = apply_filter(_tone(100.0), FilterParams(order=1))
    third = apply_filter(_tone(100.0), FilterParams(order=3))
    assert _rms(third[200:]) < _rms(first[200:])

  def test_order_must_be_positive(self) -> None:
    """Test parameter validation."""
    with pytest.raises(ValueError):
      FilterParams(order=0)


class TestHighpass:
  """Tests for the high-pass response."""

  def test_constant_is_blocked(self) -> None:
    """Test that DC is removed from the first sample."""
    params = FilterParams(filter_type=FilterType.HIGHPASS)
    np.testing.assert_allclose(apply_filter(np.full(50, 3.0), params), 0.0, atol=1e-12)

  def test_passes_high_frequency(self) -> None:
    """Test near-unity gain far above the cutoff."""
    params = FilterParams(filter_type=FilterType.HIGHPASS, cutoff_hz=5.0)
    out = apply_filter(_tone(200.0), params)
    assert _rms(out[200:]) == pytest.approx(_rms(_tone(200.0)[200:]), rel=0.05)


class TestBandFilters:
  """Tests for band-pass and band-stop."""

  def test_bandstop_complements_bandpass(self) -> None:
    """Test that band-stop is the input minus the band-pass output."""
    x = _tone(30.0) + _tone(300.0)
    bandpass = FilterParams(filter_type="bandpass", cutoff_hz=20.0, cutoff_high_hz=50.0)
    bandstop = bandpass.model_copy(update={"filter_type": FilterType.BANDSTOP})
    np.testing.assert_allclose(apply_filter(x, bandstop), x - apply_filter(x, bandpass))

  def test_bandpass_prefers_centre(self) -> None:
    """Test that in-band tones beat out-of-band tones."""
    params = FilterParams(filter_type="bandpass", cutoff_hz=20.0, cutoff_high_hz=80.0)
    in_band = _rms(apply_filter(_tone(40.0), params)[500:])
    out_band = _rms(apply_filter(_tone(400.0), params)[500:])
    assert in_band > 2 * out_band

  def test_empty_input(self) -> None:
    """Test that an empty input passes through."""
    assert len(apply_filter([], FilterParams(filter_type="bandpass"))) == 0
