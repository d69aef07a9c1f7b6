"""Tests for formant extraction and vowel classification."""

import numpy as np
import pytest

from signal_lab.dsp.spectral import compute_fft
from signal_lab.dsp.vowel import (
  VOWEL_RANGES,
  FormantEstimate,
  Vowel,
  VowelDetector,
  classify_vowel,
  extract_formants,
  find_peaks,
)

SAMPLE_RATE = 8000.0
N_BINS = 512
BIN_HZ = SAMPLE_RATE / (2 * N_BINS)


def _formant_spectrum(*bumps: tuple[int, float]) -> np.ndarray:
  k = np.arange(N_BINS)
  spectrum = np.zeros(N_BINS)
  for centre, height in bumps:
    spectrum += height * np.exp(-((k - centre) ** 2) / 8.0)
  return spectrum


def _centre(vowel: Vowel) -> FormantEstimate:
  f1, f2 = VOWEL_RANGES[vowel].centre
  return FormantEstimate(f1=f1, f2=f2)


class TestFindPeaks:
  """Tests for find_peaks."""

  def test_isolated_peaks(self) -> None:
    """Test that local maxima are found and edges are excluded."""
    x = np.zeros(30)
    x[[0, 8, 20, 29]] = [9.0, 1.0, 2.0, 9.0]
    assert 8 in find_peaks(x, 3)
    assert 20 in find_peaks(x, 3)
    assert 0 not in find_peaks(x, 3)
    assert 29 not in find_peaks(x, 3)

  def test_neighbourhood_suppression(self) -> None:
    """Test that a nearby larger value suppresses a peak."""
    x = np.zeros(20)
    x[[8, 10]] = [1.0, 2.0]
    peaks = find_peaks(x, 3)
    assert 10 in peaks
    assert 8 not in peaks

  def test_short_input(self) -> None:
    """Test that arrays without an interior yield no peaks."""
    assert find_peaks(np.ones(4), 3) == []


class TestExtractFormants:
  """Tests for extract_formants."""

  def test_two_formants(self) -> None:
    """Test that the two bumps become F1 and F2."""
    formants = extract_formants(_formant_spectrum((102, 1.0), (154, 0.6)), SAMPLE_RATE)
    assert formants.f1 == pytest.approx(102 * BIN_HZ)
    assert formants.f2 == pytest.approx(154 * BIN_HZ)

  def test_f2_need_not_be_second_strongest(self) -> None:
    """Test that F1 is taken below 900 Hz even when a higher peak dominates."""
    spectrum = _formant_spectrum((64, 0.5), (256, 1.0))
    formants = extract_formants(spectrum, SAMPLE_RATE)
    assert formants.f1 == pytest.approx(64 * BIN_HZ)
    assert formants.f2 == pytest.approx(256 * BIN_HZ)

  def test_too_few_peaks(self) -> None:
    """Test that a monotonic spectrum yields no formants."""
    assert extract_formants(np.arange(10.0), SAMPLE_RATE) == FormantEstimate()

  def test_empty(self) -> None:
    """Test the empty spectrum."""
    assert extract_formants([], SAMPLE_RATE) == FormantEstimate()


class TestClassifyVowel:
  """Tests for classify_vowel."""

  @pytest.mark.parametrize("vowel", list(Vowel))
  def test_centres_classify_with_full_confidence(self, vowel) -> None:
    """Test that each reference centre maps to itself."""
    result = classify_vowel(_centre(vowel))
    assert result.vowel is vowel
    assert result.confidence == pytest.approx(1.0)

  def test_a_from_spectrum(self) -> None:
    """Test classification of an A-like spectrum."""
    formants = extract_formants(_formant_spectrum((102, 1.0), (154, 0.6)), SAMPLE_RATE)
    result = classify_vowel(formants)
    assert result.vowel is Vowel.A
    assert result.confidence > 0.9

  @pytest.mark.parametrize(("f1", "f2"), [(0.0, 0.0), (40.0, 1000.0), (300.0, 90.0)])
  def test_silence(self, f1, f2) -> None:
    """Test that low formants are reported as silence."""
    result = classify_vowel(FormantEstimate(f1=f1, f2=f2))
    assert result.vowel is None
    assert result.confidence == 0.0

  def test_silent_spectrum(self) -> None:
    """Test that an all-zero spectrum is classified as silence."""
    formants = extract_formants(np.zeros(N_BINS), SAMPLE_RATE)
    assert classify_vowel(formants).vowel is None

  def test_silent_frame_at_coarse_resolution(self) -> None:
    """Test that a zero frame with wide bins does not land on a vowel."""
    spectrum = compute_fft(np.zeros(256), 16000.0)
    formants = extract_formants(spectrum.values, 16000.0)
    assert formants == FormantEstimate()
    assert classify_vowel(formants).vowel is None

  def test_faint_noise_is_silence(self) -> None:
    """Test that noise far below audible level has no formants."""
    rng = np.random.default_rng(3)
    spectrum = compute_fft(1e-9 * rng.standard_normal(2048), SAMPLE_RATE)
    formants = extract_formants(spectrum.values, SAMPLE_RATE)
    assert classify_vowel(formants).vowel is None

  def test_flat_plateau_has_no_peaks(self) -> None:
    """Test that a constant spectrum yields no formants."""
    assert extract_formants(np.full(N_BINS, 0.5), SAMPLE_RATE) == FormantEstimate()

  def test_confidence_floor(self) -> None:
    """Test that far-away formants clamp confidence at zero."""
    result = classify_vowel(FormantEstimate(f1=3000.0, f2=100.0))
    assert result.confidence == 0.0
    assert result.vowel is not None


class TestVowelDetector:
  """Tests for the smoothing detector."""

  def test_majority_vote(self) -> None:
    """Test that the most frequent vowel wins."""
    detector = VowelDetector(window_size=5)
    for vowel in (Vowel.U, Vowel.I, Vowel.I):
      result = detector.update(_centre(vowel))
    assert result.vowel is Vowel.I
    assert result.formants == _centre(Vowel.I)

  def test_tie_goes_to_earliest(self) -> None:
    """Test tie-breaking by first appearance in the window."""
    detector = VowelDetector(window_size=4)
    detector.update(_centre(Vowel.A))
    result = detector.update(_centre(Vowel.E))
    assert result.vowel is Vowel.A

  def test_window_evicts_old_frames(self) -> None:
    """Test that only the last window_size frames vote."""
    detector = VowelDetector(window_size=3)
    for vowel in (Vowel.A, Vowel.A, Vowel.E, Vowel.E, Vowel.E):
      result = detector.update(_centre(vowel))
    assert result.vowel is Vowel.E
    assert len(detector) == 3

  def test_silence_lowers_confidence(self) -> None:
    """Test that silent frames count toward the mean confidence only."""
    detector = VowelDetector()
    detector.update(_centre(Vowel.O))
    result = detector.update(FormantEstimate())
    assert result.vowel is Vowel.O
    assert result.confidence == pytest.approx(0.5)

  def test_all_silent(self) -> None:
    """Test that a silent window reports no vowel."""
    detector = VowelDetector()
    assert detector.update(FormantEstimate()).vowel is None

  def test_clear(self) -> None:
    """Test that clearing forgets history."""
    detector = VowelDetector()
    detector.update(_centre(Vowel.U))
    detector.clear()
    assert len(detector) == 0
    assert detector.update(_centre(Vowel.E)).vowel is Vowel.E

  def test_update_from_spectrum(self) -> None:
    """Test the spectrum convenience entry point."""
    detector = VowelDetector()
    spectrum = _formant_spectrum((102, 1.0), (154, 0.6))
    assert detector.update_from_spectrum(spectrum, SAMPLE_RATE).vowel is Vowel.A

  def test_invalid_window(self) -> None:
    """Test that the window must be positive."""
    with pytest.raises(ValueError):
      VowelDetector(window_size=0)
