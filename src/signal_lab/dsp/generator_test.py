"""Tests for waveform and sweep generation."""

import numpy as np
import pytest

from signal_lab.dsp.generator import (
  SignalParams,
  SignalType,
  SweepParams,
  SweepType,
  box_muller,
  generate_chirp_signal,
  generate_harmonic_signal,
  generate_signal,
  generate_sweep_signal,
  generate_time_vector,
  mix_signals,
)
from signal_lab.dsp.spectral import compute_fft


class TestTimeVector:
  """Tests for generate_time_vector."""

  @pytest.mark.parametrize(
    ("sample_rate", "duration", "expected"),
    [(1000, 1.0, 1000), (44100, 0.5, 22050), (100, 0.015, 1), (10, 0.0, 0)],
  )
  def test_length_is_floor(self, sample_rate, duration, expected) -> None:
    """Test that the vector has floor(fs * T) samples."""
    assert len(generate_time_vector(sample_rate, duration)) == expected

  def test_spacing(self) -> None:
    """Test uniform 1/fs spacing starting at zero."""
    t = generate_time_vector(200, 0.1)
    assert t[0] == 0.0
    np.testing.assert_allclose(np.diff(t), 1 / 200)


class TestGenerateSignal:
  """Tests for generate_signal."""

  @pytest.mark.parametrize("signal_type", list(SignalType))
  def test_every_type_has_expected_length(self, signal_type) -> None:
    """Test that every basis function fills the time vector."""
    params = SignalParams(sample_rate=500, duration=0.4)
    sig = generate_signal(signal_type, params, rng=np.random.default_rng(0))
    assert len(sig) == 200
    assert np.all(np.isfinite(sig.amplitude))

  def test_sine_fft_peak(self) -> None:
    """Test that a 5 Hz sine peaks within one bin of 5 Hz."""
    sig = generate_signal(SignalType.SINE)
    spectrum = compute_fft(sig, 1000.0)
    bin_width = 1000.0 / 1024
    assert abs(spectrum.peak_frequency - 5.0) <= bin_width

  def test_dc_offset_and_amplitude(self) -> None:
    """Test that the step waveform is amplitude plus DC."""
    params = SignalParams(amplitude=2.0, dc_offset=0.5, duration=0.1)
    sig = generate_signal(SignalType.STEP, params)
    np.testing.assert_allclose(sig.amplitude, 2.5)

  def test_square_levels(self) -> None:
    """Test that the square wave only takes +/-A (and 0 on crossings)."""
    params = SignalParams(amplitude=3.0, phase=0.1)
    sig = generate_signal(SignalType.SQUARE, params)
    assert set(np.unique(sig.amplitude)) <= {-3.0, 0.0, 3.0}

  def test_triangle_and_sawtooth_bounded(self) -> None:
    """Test that triangle and sawtooth stay within +/-A."""
    params = SignalParams(amplitude=1.5)
    for signal_type in (SignalType.TRIANGLE, SignalType.SAWTOOTH):
      sig = generate_signal(signal_type, params)
      assert np.max(np.abs(sig.amplitude)) <= 1.5 + 1e-9

  def test_impulse(self) -> None:
    """Test that only the first sample of an impulse is non-zero."""
    sig = generate_signal(SignalType.IMPULSE, SignalParams(amplitude=4.0))
    assert sig.amplitude[0] == 4.0
    assert np.count_nonzero(sig.amplitude) == 1

  def test_noise_is_reproducible_with_seed(self) -> None:
    """Test that the same seed yields the same noise."""
    a = generate_signal(SignalType.NOISE, rng=np.random.default_rng(42))
    b = generate_signal(SignalType.NOISE, rng=np.random.default_rng(42))
    np.testing.assert_array_equal(a.amplitude, b.amplitude)

  def test_harmonics_include_overtones(self) -> None:
    """Test that harmonic amplitudes show up at integer multiples."""
    params = SignalParams(frequency=50.0, harmonics=[0.5], sample_rate=1024)
    sig = generate_signal(SignalType.HARMONICS, params)
    spectrum = compute_fft(sig, 1024.0)
    idx_100 = int(np.argmin(np.abs(spectrum.frequencies - 100.0)))
    assert spectrum.values[idx_100] == pytest.approx(0.25, rel=0.05)

  def test_too_many_harmonics_rejected(self) -> None:
    """Test that at most four overtones are accepted."""
    with pytest.raises(ValueError):
      SignalParams(harmonics=[1, 1, 1, 1, 1])

  @pytest.mark.parametrize("frequency", [0.0, -5.0])
  def test_frequency_must_be_positive(self, frequency) -> None:
    """Test that a non-positive fundamental is refused."""
    with pytest.raises(ValueError):
      SignalParams(frequency=frequency)


class TestBoxMuller:
  """Tests for the Gaussian source."""

  def test_moments(self) -> None:
    """Test zero mean and unit variance."""
    samples = box_muller(np.random.default_rng(1), 100_000)
    assert abs(np.mean(samples)) < 0.02
    assert np.var(samples) == pytest.approx(1.0, abs=0.02)
    assert np.all(np.isfinite(samples))


class TestSweep:
  """Tests for generate_sweep_signal."""

  def test_linear_instantaneous_frequency(self) -> None:
    """Test that the linear sweep moves linearly between endpoints."""
    params = SweepParams(f_start=10, f_stop=110, duration=1.0)
    t = generate_time_vector(1000, 1.0)
    sig, inst = generate_sweep_signal(params, t)
    assert len(sig) == len(t)
    assert inst[0] == pytest.approx(10.0)
    assert inst[500] == pytest.approx(60.0)

  def test_logarithmic_instantaneous_frequency(self) -> None:
    """Test geometric interpolation of a log sweep."""
    params = SweepParams(
      sweep_type=SweepType.LOGARITHMIC, f_start=10, f_stop=1000, duration=1.0
    )
    t = generate_time_vector(8000, 1.0)
    _, inst = generate_sweep_signal(params, t)
    assert inst[4000] == pytest.approx(100.0)

  @pytest.mark.parametrize(("f_start", "f_stop"), [(100, 100), (200, 50)])
  def test_degenerate_log_sweep_falls_back_to_linear(self, f_start, f_stop) -> None:
    """Test that flat or descending log sweeps use the linear law."""
    t = generate_time_vector(1000, 1.0)
    log_params = SweepParams(
      sweep_type=SweepType.LOGARITHMIC, f_start=f_start, f_stop=f_stop
    )
    lin_params = log_params.model_copy(update={"sweep_type": SweepType.LINEAR})
    log_sig, log_inst = generate_sweep_signal(log_params, t)
    lin_sig, lin_inst = generate_sweep_signal(lin_params, t)
    np.testing.assert_allclose(log_sig.amplitude, lin_sig.amplitude)
    np.testing.assert_allclose(log_inst, lin_inst)

  def test_phase_matches_closed_form(self) -> None:
    """Test that late samples are not affected by phase accumulation."""
    params = SweepParams(f_start=10, f_stop=500, duration=10.0)
    t = generate_time_vector(10_000, 10.0)
    sig, _ = generate_sweep_signal(params, t)
    k = (500 - 10) / 10.0
    expected = np.sin(2 * np.pi * (10 * t + 0.5 * k * t**2))
    np.testing.assert_allclose(sig.amplitude[-100:], expected[-100:], atol=1e-9)

  def test_amplitude_ramp(self) -> None:
    """Test that the amplitude envelope is interpolated."""
    params = SweepParams(a_start=0.0, a_stop=2.0, f_start=100, f_stop=100.0005)
    t = generate_time_vector(1000, 1.0)
    sig, _ = generate_sweep_signal(params, t)
    assert np.max(np.abs(sig.amplitude[:100])) < 0.25
    assert np.max(np.abs(sig.amplitude[-100:])) > 1.7

  def test_chirp_matches_linear_sweep(self) -> None:
    """Test that the chirp helper agrees with a unit linear sweep."""
    t = generate_time_vector(1000, 1.0)
    chirp = generate_chirp_signal(10, 50, 1.0, 1.0, t)
    sig, _ = generate_sweep_signal(SweepParams(f_start=10, f_stop=50), t)
    np.testing.assert_allclose(chirp, sig.amplitude)


def test_harmonic_signal_phases_default_to_zero() -> None:
  """Test the harmonic sum with a partial phase list."""
  t = generate_time_vector(1000, 0.1)
  out = generate_harmonic_signal(10.0, [1.0, 0.5], t, phases=[np.pi / 2])
  expected = np.cos(2 * np.pi * 10 * t) + 0.5 * np.sin(2 * np.pi * 20 * t)
  np.testing.assert_allclose(out, expected, atol=1e-12)


def test_mix_signals_pads_shorter_input() -> None:
  """Test the crossfade of unequal-length inputs."""
  out = mix_signals([1.0, 1.0, 1.0], [3.0], ratio=0.25)
  np.testing.assert_allclose(out, [1.5, 0.75, 0.75])
