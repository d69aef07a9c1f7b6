"""Waveform and frequency-sweep generation.

Every waveform is evaluated on the time vector ``t[n] = n / sample_rate`` for
``n in [0, floor(sample_rate * duration))``:

  x[n] = f_type(2*pi*f*t[n] + phi) + DC

Sweeps emit the closed-form time integral of the instantaneous angular
frequency rather than a running phase sum, so the phase error does not grow
with the sample index.
"""

import logging
import math
from collections.abc import Callable, Sequence
from enum import StrEnum

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

from signal_lab.dsp.samples import Signal

logger = logging.getLogger(__name__)

MAX_HARMONICS = 4


class SignalType(StrEnum):
  """Basis functions the generator can emit."""

  SINE = "sine"
  SQUARE = "square"
  TRIANGLE = "triangle"
  SAWTOOTH = "sawtooth"
  IMPULSE = "impulse"
  STEP = "step"
  NOISE = "noise"
  HARMONICS = "harmonics"


SIGNAL_LABELS: dict[SignalType, str] = {
  SignalType.SINE: "Sine Wave",
  SignalType.SQUARE: "Square Wave",
  SignalType.TRIANGLE: "Triangle Wave",
  SignalType.SAWTOOTH: "Sawtooth Wave",
  SignalType.IMPULSE: "Impulse",
  SignalType.STEP: "Step",
  SignalType.NOISE: "Gaussian Noise",
  SignalType.HARMONICS: "Harmonic Gen",
}


class SweepType(StrEnum):
  """Frequency interpolation law of a sweep."""

  LINEAR = "linear"
  LOGARITHMIC = "logarithmic"


class SignalParams(BaseModel):
  """Parameters of a basis waveform.

  Attributes:
    amplitude: Peak amplitude A.
    frequency: Fundamental frequency in Hz.
    phase: Phase offset in radians.
    dc_offset: Constant added to every sample.
    sample_rate: Samples per second.
    duration: Signal length in seconds.
    harmonics: Amplitudes of the 2nd..5th harmonics for ``HARMONICS``.
  """

  amplitude: float = 1.0
  frequency: float = Field(default=5.0, gt=0.0)
  phase: float = 0.0
  dc_offset: float = 0.0
  sample_rate: float = Field(default=1000.0, gt=0.0)
  duration: float = Field(default=1.0, ge=0.0)
  harmonics: list[float] = Field(default_factory=list, max_length=MAX_HARMONICS)

  model_config = {"frozen": True}


class SweepParams(BaseModel):
  """Parameters of a frequency/amplitude/phase sweep.

  Frequency, amplitude and phase offset move from their start to stop values
  over ``duration`` seconds.
  """

  sweep_type: SweepType = SweepType.LINEAR
  f_start: float = 10.0
  f_stop: float = 100.0
  a_start: float = 1.0
  a_stop: float = 1.0
  p_start: float = 0.0
  p_stop: float = 0.0
  duration: float = Field(default=1.0, gt=0.0)

  model_config = {"frozen": True}


def generate_time_vector(
  sample_rate: float, duration: float
) -> npt.NDArray[np.float64]:
  """Return ``floor(sample_rate * duration)`` instants spaced ``1/sample_rate``."""
  n_samples = max(0, math.floor(sample_rate * duration))
  return np.arange(n_samples, dtype=np.float64) / sample_rate


def box_muller(rng: np.random.Generator, size: int) -> npt.NDArray[np.float64]:
  """Draw standard normal samples with the Box-Muller transform.

  Args:
    rng: Random source supplying the two independent uniform draws.
    size: Number of samples.

  Returns:
    Gaussian samples with zero mean and unit variance.
  """
  # 1 - U keeps the log argument in (0, 1].
  u1 = 1.0 - rng.random(size)
  u2 = rng.random(size)
  return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def generate_harmonic_signal(
  fundamental_hz: float,
  amplitudes: Sequence[float],
  t: npt.NDArray[np.float64],
  phases: Sequence[float] = (),
  dc_offset: float = 0.0,
) -> npt.NDArray[np.float64]:
  """Sum a fundamental and its integer harmonics.

  Args:
    fundamental_hz: Frequency of the first term.
    amplitudes: Amplitude of term k (frequency ``(k + 1) * fundamental_hz``).
    t: Time vector in seconds.
    phases: Optional phase per term, missing entries default to zero.
    dc_offset: Constant added to the sum.

  Returns:
    The harmonic sum sampled on ``t``.
  """
  out = np.full(len(t), dc_offset, dtype=np.float64)
  for k, amp in enumerate(amplitudes):
    phase = phases[k] if k < len(phases) else 0.0
    out += amp * np.sin(2 * np.pi * fundamental_hz * (k + 1) * t + phase)
  return out


def _sine(p: SignalParams, t: npt.NDArray, rng: np.random.Generator) -> npt.NDArray:
  return p.amplitude * np.sin(2 * np.pi * p.frequency * t + p.phase)


def _square(p: SignalParams, t: npt.NDArray, rng: np.random.Generator) -> npt.NDArray:
  return p.amplitude * np.sign(np.sin(2 * np.pi * p.frequency * t + p.phase))


def _triangle(
  p: SignalParams, t: npt.NDArray, rng: np.random.Generator
) -> npt.NDArray:
  arg = np.sin(2 * np.pi * p.frequency * t + p.phase)
  return (2 * p.amplitude / np.pi) * np.arcsin(arg)


def _sawtooth(
  p: SignalParams, t: npt.NDArray, rng: np.random.Generator
) -> npt.NDArray:
  period = 1.0 / p.frequency
  shifted = t + p.phase / (2 * np.pi * p.frequency)
  return 2 * p.amplitude * (shifted / period - np.floor(0.5 + shifted / period))


def _impulse(
  p: SignalParams, t: npt.NDArray, rng: np.random.Generator
) -> npt.NDArray:
  out = np.zeros(len(t), dtype=np.float64)
  if len(out):
    out[0] = p.amplitude
  return out


def _step(p: SignalParams, t: npt.NDArray, rng: np.random.Generator) -> npt.NDArray:
  return np.full(len(t), p.amplitude, dtype=np.float64)


def _noise(p: SignalParams, t: npt.NDArray, rng: np.random.Generator) -> npt.NDArray:
  return p.amplitude * box_muller(rng, len(t))


def _harmonics(
  p: SignalParams, t: npt.NDArray, rng: np.random.Generator
) -> npt.NDArray:
  return generate_harmonic_signal(
    p.frequency, [p.amplitude, *p.harmonics], t, phases=[p.phase]
  )


_WAVEFORMS: dict[
  SignalType,
  Callable[[SignalParams, npt.NDArray, np.random.Generator], npt.NDArray],
] = {
  SignalType.SINE: _sine,
  SignalType.SQUARE: _square,
  SignalType.TRIANGLE: _triangle,
  SignalType.SAWTOOTH: _sawtooth,
  SignalType.IMPULSE: _impulse,
  SignalType.STEP: _step,
  SignalType.NOISE: _noise,
  SignalType.HARMONICS: _harmonics,
}


def generate_signal(
  signal_type: SignalType | str,
  params: SignalParams | None = None,
  rng: np.random.Generator | None = None,
) -> Signal:
  """Generate a basis waveform.

  Args:
    signal_type: Which basis function to emit.
    params: Waveform parameters, defaults to a 1 V 5 Hz sine at 1 kHz for 1 s.
    rng: Random source for ``NOISE``. A fresh unseeded generator if omitted.

  Returns:
    A Signal of exactly ``floor(sample_rate * duration)`` samples.
  """
  params = params or SignalParams()
  signal_type = SignalType(signal_type)
  rng = rng if rng is not None else np.random.default_rng()

  t = generate_time_vector(params.sample_rate, params.duration)
  values = _WAVEFORMS[signal_type](params, t, rng) + params.dc_offset
  return Signal(time=t, amplitude=values)


def _linear_phase(
  f_start: float, kf: float, t: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
  return 2 * np.pi * (f_start * t + 0.5 * kf * t * t)


def generate_sweep_signal(
  params: SweepParams, t: npt.NDArray[np.float64] | None = None
) -> tuple[Signal, npt.NDArray[np.float64]]:
  """Generate a linear or logarithmic sweep.

  Linear: ``phi(t) = 2*pi*(f0*t + 0.5*k*t^2)`` with ``k = (f1 - f0)/T``.
  Logarithmic: ``phi(t) = 2*pi*f0*(T/ln r)*(r^(t/T) - 1)`` with
  ``r = f1/f0``. A logarithmic sweep whose ratio is not above one, or whose
  endpoints are numerically equal, falls back to the linear formula.

  Amplitude and phase offset are interpolated linearly in both cases.

  Args:
    params: Sweep description.
    t: Time vector. Defaults to 1 kHz sampling over ``params.duration``.

  Returns:
    The swept signal and its instantaneous-frequency track in Hz.
  """
  if t is None:
    t = generate_time_vector(1000.0, params.duration)
  t = np.asarray(t, dtype=np.float64)
  span = params.duration

  ka = (params.a_stop - params.a_start) / span
  kp = (params.p_stop - params.p_start) / span
  amplitude = params.a_start + ka * t
  phase_offset = params.p_start + kp * t

  kf = (params.f_stop - params.f_start) / span
  ratio = params.f_stop / params.f_start if params.f_start != 0 else 0.0
  degenerate = abs(params.f_start - params.f_stop) < 1e-3 or ratio <= 1.0

  if params.sweep_type is SweepType.LOGARITHMIC and not degenerate:
    ln_r = math.log(ratio)
    growth = np.power(ratio, t / span)
    inst_freq = params.f_start * growth
    phase = 2 * np.pi * params.f_start * (span / ln_r) * (growth - 1)
  else:
    if params.sweep_type is SweepType.LOGARITHMIC:
      logger.debug(
        f"Logarithmic sweep {params.f_start}->{params.f_stop} Hz is degenerate, "
        "using the linear law"
      )
    inst_freq = params.f_start + kf * t
    phase = _linear_phase(params.f_start, kf, t)

  values = amplitude * np.sin(phase + phase_offset)
  return Signal(time=t, amplitude=values), inst_freq


def generate_chirp_signal(
  f_start: float,
  f_stop: float,
  duration: float,
  amplitude: float,
  t: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
  """Constant-amplitude linear chirp."""
  k = (f_stop - f_start) / duration
  return amplitude * np.sin(_linear_phase(f_start, k, np.asarray(t, dtype=float)))


def mix_signals(
  sig_a: npt.ArrayLike, sig_b: npt.ArrayLike, ratio: float = 0.5
) -> npt.NDArray[np.float64]:
  """Crossfade two sample arrays; the shorter one is padded with zeros."""
  a = np.nan_to_num(np.asarray(sig_a, dtype=np.float64))
  b = np.nan_to_num(np.asarray(sig_b, dtype=np.float64))
  length = max(len(a), len(b))
  a = np.pad(a, (0, length - len(a)))
  b = np.pad(b, (0, length - len(b)))
  return a * (1 - ratio) + b * ratio
