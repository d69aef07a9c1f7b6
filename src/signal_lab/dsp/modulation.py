"""Analog and digital modulation, demodulation and link metrics.

Analog schemes (carrier ``Ac sin(2*pi*Fc*t)``, message ``m(t)``):
- AM:     ``Ac (1 + ka m(t)) sin(2*pi*Fc*t)``
- DSB-SC: ``Ac m(t) sin(2*pi*Fc*t)``
- PM:     ``Ac sin(2*pi*Fc*t + kp m(t))``
- FM:     ``Ac sin(2*pi*Fc*t + beta sin(2*pi*Fm*t))`` for the built-in tone
          message; a supplied message is substituted directly as the phase
          deviation ``beta m(t)`` instead of being integrated.
- SSB:    ``Ac (m(t) cos(2*pi*Fc*t) - m_hat(t) sin(2*pi*Fc*t))`` (upper
          sideband), ``m_hat`` taken from the analytic message.

Digital schemes read bit ``floor(t * bit_rate) mod len(bits)`` for the sample
at time t. QPSK carries bit pairs at half the bit rate on Gray-coded phases.

The demodulators are deliberately simple detectors (envelope, differential
zero-crossing, windowed correlation, coherent product) and return one value
per input sample.
"""

import logging
from enum import StrEnum

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field, field_validator

from signal_lab.dsp.samples import Signal, as_samples
from signal_lab.dsp.spectral import SpectrumResult, compute_fft, hilbert
from signal_lab.dsp.statistics import snr_db

logger = logging.getLogger(__name__)

DEMOD_MAX_SAMPLES = 4096
ENVELOPE_WINDOW = 10
FM_SMOOTHING_HALF_WIDTH = 5
ASK_THRESHOLD = 0.3
MOD_FFT_MAX_POINTS = 2048


class ModulationScheme(StrEnum):
  """Supported modulation schemes."""

  AM = "AM"
  FM = "FM"
  PM = "PM"
  DSB_SC = "DSB-SC"
  SSB = "SSB"
  ASK = "ASK"
  FSK = "FSK"
  PSK = "PSK"
  QPSK = "QPSK"


ANALOG_SCHEMES: tuple[ModulationScheme, ...] = (
  ModulationScheme.AM,
  ModulationScheme.FM,
  ModulationScheme.PM,
  ModulationScheme.DSB_SC,
  ModulationScheme.SSB,
)
DIGITAL_SCHEMES: tuple[ModulationScheme, ...] = (
  ModulationScheme.ASK,
  ModulationScheme.FSK,
  ModulationScheme.PSK,
  ModulationScheme.QPSK,
)


class ModulationParams(BaseModel):
  """Carrier, message and scheme-specific settings.

  Attributes:
    carrier_amplitude: Ac.
    carrier_hz: Fc.
    message_amplitude: Am of the built-in tone message.
    message_hz: Fm of the built-in tone message.
    sample_rate: Fs in Hz.
    duration: T in seconds.
    am_index: ka.
    fm_index: beta.
    pm_sensitivity: kp in radians per unit message.
    bit_rate: Bits per second for the digital schemes.
    bits: Transmitted bit pattern, repeated periodically.
    fsk_mark_hz: FSK tone for bit 1.
    fsk_space_hz: FSK tone for bit 0.
  """

  carrier_amplitude: float = 1.0
  carrier_hz: float = 100.0
  message_amplitude: float = 0.5
  message_hz: float = 10.0
  sample_rate: float = Field(default=5000.0, gt=0.0)
  duration: float = Field(default=0.2, ge=0.0)
  am_index: float = 0.5
  fm_index: float = 2.0
  pm_sensitivity: float = 1.0
  bit_rate: float = Field(default=20.0, gt=0.0)
  bits: list[int] = Field(default_factory=lambda: [1, 0, 1, 1, 0, 1, 0, 0])
  fsk_mark_hz: float = 150.0
  fsk_space_hz: float = 50.0

  model_config = {"frozen": True}

  @field_validator("bits")
  @classmethod
  def _binary(cls, bits: list[int]) -> list[int]:
    if any(b not in (0, 1) for b in bits):
      msg = "bits must contain only 0 and 1"
      raise ValueError(msg)
    return bits

  @property
  def samples_per_bit(self) -> int:
    """Whole samples in one bit period."""
    return int(self.sample_rate // self.bit_rate)


class ConstellationPoint(BaseModel):
  """Correlator output for one transmitted symbol."""

  i: float
  q: float
  label: str

  model_config = {"frozen": True}


class ModFeatures(BaseModel):
  """Link-level metrics of a modulated signal.

  Attributes:
    bandwidth_hz: Span of bins within 3 dB of the peak, None if fewer than two.
    power: Mean square of the usable samples.
    snr_db: SNR against the clean signal, None without a reference.
  """

  bandwidth_hz: float | None
  power: float
  snr_db: float | None

  model_config = {"frozen": True}


def generate_mod_time_vector(
  sample_rate: float, duration: float
) -> npt.NDArray[np.float64]:
  """Return ``floor(Fs * T)`` instants spaced ``1/Fs``."""
  n_samples = max(0, int(np.floor(sample_rate * duration)))
  return np.arange(n_samples, dtype=np.float64) / sample_rate


def generate_message(
  t: npt.NDArray[np.float64], amplitude: float, freq_hz: float
) -> npt.NDArray[np.float64]:
  """Tone message ``Am sin(2*pi*Fm*t)``."""
  return amplitude * np.sin(2 * np.pi * freq_hz * t)


def generate_carrier(
  t: npt.NDArray[np.float64], amplitude: float, freq_hz: float
) -> npt.NDArray[np.float64]:
  """Unmodulated carrier ``Ac sin(2*pi*Fc*t)``."""
  return amplitude * np.sin(2 * np.pi * freq_hz * t)


def _message(
  t: npt.NDArray[np.float64],
  p: ModulationParams,
  message: npt.ArrayLike | None,
) -> npt.NDArray[np.float64]:
  if message is None:
    return generate_message(t, p.message_amplitude, p.message_hz)
  m = np.asarray(message, dtype=np.float64)
  if len(m) != len(t):
    msg = f"message length {len(m)} does not match time vector length {len(t)}"
    raise ValueError(msg)
  return m


def _carrier_phase(t: npt.NDArray[np.float64], p: ModulationParams) -> npt.NDArray:
  return 2 * np.pi * p.carrier_hz * t


# ============================================================================
# Analog modulation
# ============================================================================


def modulate_am(
  t: npt.NDArray[np.float64],
  p: ModulationParams,
  message: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
  m = _message(t, p, message)
  return p.carrier_amplitude * (1 + p.am_index * m) * np.sin(_carrier_phase(t, p))


def modulate_fm(
  t: npt.NDArray[np.float64],
  p: ModulationParams,
  message: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
  """FM with the phase-deviation shortcut.

  A supplied message is used as ``beta m(t)`` phase deviation directly, which
  is only exact for narrow-band messages.
  """
  if message is None:
    deviation = p.fm_index * np.sin(2 * np.pi * p.message_hz * t)
  else:
    deviation = p.fm_index * _message(t, p, message)
  return p.carrier_amplitude * np.sin(_carrier_phase(t, p) + deviation)


def modulate_pm(
  t: npt.NDArray[np.float64],
  p: ModulationParams,
  message: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
  m = _message(t, p, message)
  return p.carrier_amplitude * np.sin(_carrier_phase(t, p) + p.pm_sensitivity * m)


def modulate_dsb_sc(
  t: npt.NDArray[np.float64],
  p: ModulationParams,
  message: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
  m = _message(t, p, message)
  return m * generate_carrier(t, p.carrier_amplitude, p.carrier_hz)


def modulate_ssb(
  t: npt.NDArray[np.float64],
  p: ModulationParams,
  message: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
  """Upper-sideband SSB by the phasing method."""
  m = _message(t, p, message)
  m_hat = hilbert(m).imag
  phase = _carrier_phase(t, p)
  return p.carrier_amplitude * (m * np.cos(phase) - m_hat * np.sin(phase))


# ============================================================================
# Digital modulation
# ============================================================================


def bit_at(bits: list[int], index: npt.NDArray[np.intp]) -> npt.NDArray[np.int64]:
  """Look up bits periodically; an empty pattern reads as all zeros."""
  if not bits:
    return np.zeros(len(index), dtype=np.int64)
  return np.asarray(bits, dtype=np.int64)[np.asarray(index) % len(bits)]


def bit_index(t: npt.NDArray[np.float64], rate: float) -> npt.NDArray[np.intp]:
  """Index of the bit (or symbol) active at each instant."""
  return np.floor(t * rate).astype(np.intp)


def modulate_ask(
  t: npt.NDArray[np.float64], p: ModulationParams
) -> npt.NDArray[np.float64]:
  bits = bit_at(p.bits, bit_index(t, p.bit_rate))
  return bits * generate_carrier(t, p.carrier_amplitude, p.carrier_hz)


def modulate_fsk(
  t: npt.NDArray[np.float64], p: ModulationParams
) -> npt.NDArray[np.float64]:
  bits = bit_at(p.bits, bit_index(t, p.bit_rate))
  freq = np.where(bits == 1, p.fsk_mark_hz, p.fsk_space_hz)
  return p.carrier_amplitude * np.sin(2 * np.pi * freq * t)


def modulate_psk(
  t: npt.NDArray[np.float64], p: ModulationParams
) -> npt.NDArray[np.float64]:
  bits = bit_at(p.bits, bit_index(t, p.bit_rate))
  phase = np.where(bits == 1, 0.0, np.pi)
  return p.carrier_amplitude * np.sin(_carrier_phase(t, p) + phase)


def qpsk_phase_index(b0: npt.ArrayLike, b1: npt.ArrayLike) -> npt.NDArray[np.int64]:
  """Gray-coded phase index (multiples of 90 degrees) of bit pairs.

  Adjacent phases differ in a single bit.
  """
  b0 = np.asarray(b0, dtype=np.int64)
  b1 = np.asarray(b1, dtype=np.int64)
  # 00 -> 0, 01 -> 1, 11 -> 2, 10 -> 3
  return 2 * b0 + (b0 ^ b1)


def modulate_qpsk(
  t: npt.NDArray[np.float64], p: ModulationParams
) -> npt.NDArray[np.float64]:
  symbol = bit_index(t, p.bit_rate / 2)
  b0 = bit_at(p.bits, symbol * 2)
  b1 = bit_at(p.bits, symbol * 2 + 1)
  phase = qpsk_phase_index(b0, b1) * (np.pi / 2)
  return p.carrier_amplitude * np.sin(_carrier_phase(t, p) + phase)


def modulate(
  scheme: ModulationScheme | str,
  t: npt.NDArray[np.float64],
  params: ModulationParams | None = None,
  message: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
  """Modulate a message or bit pattern.

  Args:
    scheme: Modulation scheme.
    t: Time vector in seconds.
    params: Modulation settings, defaults to ``ModulationParams()``.
    message: Optional message replacing the built-in tone (analog schemes).

  Returns:
    The modulated carrier sampled on ``t``.
  """
  scheme = ModulationScheme(scheme)
  p = params or ModulationParams()
  t = np.asarray(t, dtype=np.float64)
  if message is not None and scheme not in ANALOG_SCHEMES:
    logger.debug(f"{scheme} ignores the supplied message and uses the bit pattern")

  match scheme:
    case ModulationScheme.AM:
      return modulate_am(t, p, message)
    case ModulationScheme.FM:
      return modulate_fm(t, p, message)
    case ModulationScheme.PM:
      return modulate_pm(t, p, message)
    case ModulationScheme.DSB_SC:
      return modulate_dsb_sc(t, p, message)
    case ModulationScheme.SSB:
      return modulate_ssb(t, p, message)
    case ModulationScheme.ASK:
      return modulate_ask(t, p)
    case ModulationScheme.FSK:
      return modulate_fsk(t, p)
    case ModulationScheme.PSK:
      return modulate_psk(t, p)
    case ModulationScheme.QPSK:
      return modulate_qpsk(t, p)


def generate_modulated_signal(
  scheme: ModulationScheme | str,
  params: ModulationParams | None = None,
  message: npt.ArrayLike | None = None,
) -> Signal:
  """Build the time vector from ``params`` and modulate onto it."""
  p = params or ModulationParams()
  t = generate_mod_time_vector(p.sample_rate, p.duration)
  return Signal(time=t, amplitude=modulate(scheme, t, p, message))


# ============================================================================
# Demodulation
# ============================================================================


def _aligned(signal: Signal | npt.ArrayLike) -> npt.NDArray[np.float64]:
  """Samples with dropped entries zeroed so sample timing is preserved."""
  if isinstance(signal, Signal):
    return np.where(signal.valid, np.nan_to_num(signal.amplitude), 0.0)
  return np.nan_to_num(np.asarray(signal, dtype=np.float64))


def trailing_mean(x: npt.NDArray[np.float64], window: int) -> npt.NDArray[np.float64]:
  """Causal moving average; the first samples average what is available."""
  csum = np.concatenate(([0.0], np.cumsum(x)))
  idx = np.arange(1, len(x) + 1)
  start = np.maximum(idx - window, 0)
  return (csum[idx] - csum[start]) / (idx - start)


def centered_mean(
  x: npt.NDArray[np.float64], half_width: int
) -> npt.NDArray[np.float64]:
  """Average over ``[i - half_width, i + half_width]`` clipped to the array."""
  n = len(x)
  csum = np.concatenate(([0.0], np.cumsum(x)))
  idx = np.arange(n)
  start = np.maximum(idx - half_width, 0)
  stop = np.minimum(idx + half_width + 1, n)
  return (csum[stop] - csum[start]) / (stop - start)


def envelope_detect(
  signal: Signal | npt.ArrayLike, window: int = ENVELOPE_WINDOW
) -> npt.NDArray[np.float64]:
  """Full-wave rectify and smooth with a trailing moving average."""
  return trailing_mean(np.abs(_aligned(signal)), window)


def demodulate_am(signal: Signal | npt.ArrayLike) -> npt.NDArray[np.float64]:
  return envelope_detect(signal)


def demodulate_fm(signal: Signal | npt.ArrayLike) -> npt.NDArray[np.float64]:
  """Differential zero-crossing estimate of the frequency deviation.

  Sample-to-sample differences are kept only where consecutive samples share
  a sign, then smoothed over +/-5 samples. This tracks the message shape but
  is not a calibrated instantaneous-frequency estimate.
  """
  x = _aligned(signal)
  diff = np.zeros(len(x))
  if len(x) > 1:
    same_sign = x[1:] * x[:-1] > 0
    diff[1:] = np.where(same_sign, x[1:] - x[:-1], 0.0)
  return centered_mean(diff, FM_SMOOTHING_HALF_WIDTH)


def demodulate_ask(
  signal: Signal | npt.ArrayLike, threshold: float = ASK_THRESHOLD
) -> npt.NDArray[np.int64]:
  """On-off decision per sample from the envelope."""
  return (envelope_detect(signal) > threshold).astype(np.int64)


def demodulate_fsk(
  signal: Signal | npt.ArrayLike,
  t: npt.NDArray[np.float64],
  mark_hz: float,
  space_hz: float,
) -> npt.NDArray[np.int64]:
  """Pick the reference tone with the larger windowed correlation.

  Each tone is correlated in quadrature (against ``exp(-j*2*pi*f*t)``) so the
  decision does not depend on the carrier phase. The window spans
  ``max(10, N/20)`` samples either side of each sample.
  """
  x = _aligned(signal)
  t = np.asarray(t, dtype=np.float64)
  n = len(t)
  half_width = max(10, n // 20)
  idx = np.arange(n)
  start = np.maximum(idx - half_width, 0)
  stop = np.minimum(idx + half_width + 1, n)

  def windowed_energy(freq_hz: float) -> npt.NDArray[np.float64]:
    product = x[:n] * np.exp(-2j * np.pi * freq_hz * t)
    csum = np.concatenate(([0.0], np.cumsum(product)))
    return np.abs(csum[stop] - csum[start])

  return (windowed_energy(mark_hz) > windowed_energy(space_hz)).astype(np.int64)


def demodulate_psk(
  signal: Signal | npt.ArrayLike,
  t: npt.NDArray[np.float64],
  carrier_hz: float,
) -> npt.NDArray[np.int64]:
  """Coherent detection against ``sin(2*pi*Fc*t)``.

  The product is low-passed by a centred moving average over ``max(5, N/50)``
  samples either side; a non-negative result decides bit 1.
  """
  x = _aligned(signal)
  t = np.asarray(t, dtype=np.float64)
  baseband = x * np.sin(2 * np.pi * carrier_hz * t)
  half_width = max(5, len(x) // 50)
  return (centered_mean(baseband, half_width) >= 0).astype(np.int64)


def demodulate(
  scheme: ModulationScheme | str,
  signal: Signal | npt.ArrayLike,
  t: npt.NDArray[np.float64],
  params: ModulationParams | None = None,
  max_samples: int | None = None,
) -> npt.NDArray:
  """Demodulate a received signal.

  AM, DSB-SC, SSB and PM use envelope detection, FM the differential
  estimator, ASK the thresholded envelope, FSK tone correlation, PSK and
  QPSK coherent detection.

  Args:
    scheme: Modulation scheme of the received signal.
    signal: Received samples; dropped samples are treated as zero.
    t: Time vector of the samples.
    params: Modulation settings.
    max_samples: Optional cap applied before demodulation, usually
      ``KernelConfig.max_demod_samples`` (default ``DEMOD_MAX_SAMPLES``).
      None demodulates everything.

  Returns:
    One demodulated value (or bit decision) per processed sample.
  """
  scheme = ModulationScheme(scheme)
  p = params or ModulationParams()
  x = _aligned(signal)
  t = np.asarray(t, dtype=np.float64)
  if max_samples is not None and len(x) > max_samples:
    logger.debug(f"Demodulating the first {max_samples} of {len(x)} samples")
    x = x[:max_samples]
    t = t[:max_samples]

  match scheme:
    case (
      ModulationScheme.AM
      | ModulationScheme.DSB_SC
      | ModulationScheme.SSB
      | ModulationScheme.PM
    ):
      return demodulate_am(x)
    case ModulationScheme.FM:
      return demodulate_fm(x)
    case ModulationScheme.ASK:
      return demodulate_ask(x)
    case ModulationScheme.FSK:
      return demodulate_fsk(x, t, p.fsk_mark_hz, p.fsk_space_hz)
    case ModulationScheme.PSK | ModulationScheme.QPSK:
      return demodulate_psk(x, t, p.carrier_hz)


def decide_bits(
  decisions: npt.ArrayLike, samples_per_bit: int, n_bits: int
) -> list[int]:
  """Sample a per-sample decision stream at the centre of each bit period.

  Bits whose centre falls past the end of the stream are not returned.
  """
  stream = np.asarray(decisions)
  if samples_per_bit <= 0:
    return []
  centres = np.arange(n_bits) * samples_per_bit + samples_per_bit // 2
  centres = centres[centres < len(stream)]
  return [int(stream[c]) for c in centres]


# ============================================================================
# Constellation and link metrics
# ============================================================================


def compute_constellation(
  t: npt.NDArray[np.float64],
  signal: Signal | npt.ArrayLike,
  params: ModulationParams,
  scheme: ModulationScheme | str,
) -> list[ConstellationPoint]:
  """Integrate I/Q correlators over one symbol period per transmitted symbol.

  ASK and PSK yield one point per bit, QPSK one point per bit pair. Other
  schemes have no constellation and return an empty list.

  Args:
    t: Time vector.
    signal: Received samples.
    params: Modulation settings (carrier, bit rate, bit pattern).
    scheme: Modulation scheme.

  Returns:
    One point per symbol that fits in the signal, labelled with its bits.
  """
  scheme = ModulationScheme(scheme)
  x = _aligned(signal)
  t = np.asarray(t, dtype=np.float64)
  bits = params.bits

  if scheme in (ModulationScheme.ASK, ModulationScheme.PSK):
    samples_per_symbol = params.samples_per_bit
    labels = [f"{b}" for b in bits]
  elif scheme is ModulationScheme.QPSK:
    samples_per_symbol = int(params.sample_rate // (params.bit_rate / 2))
    labels = [f"{bits[2 * s]}{bits[2 * s + 1]}" for s in range(len(bits) // 2)]
  else:
    return []

  if samples_per_symbol <= 0:
    return []

  phase = _carrier_phase(t, params)
  in_phase = x * np.cos(phase)
  quadrature = x * np.sin(phase)

  points: list[ConstellationPoint] = []
  for symbol, label in enumerate(labels):
    start = symbol * samples_per_symbol
    if start >= len(t):
      break
    stop = min(start + samples_per_symbol, len(t))
    points.append(
      ConstellationPoint(
        i=float(np.mean(in_phase[start:stop])),
        q=float(np.mean(quadrature[start:stop])),
        label=label,
      )
    )
  return points


def compute_mod_fft(
  signal: Signal | npt.ArrayLike,
  sample_rate: float,
  max_points: int = MOD_FFT_MAX_POINTS,
) -> SpectrumResult:
  """Spectrum of a modulated signal, capped at ``max_points`` samples."""
  return compute_fft(signal, sample_rate, max_samples=max_points)


def compute_mod_features(
  signal: Signal | npt.ArrayLike,
  reference: Signal | npt.ArrayLike | None,
  spectrum: SpectrumResult,
) -> ModFeatures:
  """RMS power, 3 dB bandwidth and SNR of a modulated signal.

  Args:
    signal: Received (possibly corrupted) samples.
    reference: Clean transmitted samples, or None.
    spectrum: Magnitude spectrum of ``signal``.

  Returns:
    The feature record.
  """
  clean = as_samples(signal)
  power = float(np.mean(clean**2)) if len(clean) else 0.0

  bandwidth: float | None = None
  if len(spectrum.values) and len(spectrum.frequencies):
    threshold = float(np.max(spectrum.values)) / np.sqrt(2)
    passband = spectrum.frequencies[spectrum.values >= threshold]
    if len(passband) >= 2:
      bandwidth = float(passband[-1] - passband[0])

  snr = None
  if reference is not None:
    snr = snr_db(signal, reference)

  return ModFeatures(bandwidth_hz=bandwidth, power=power, snr_db=snr)


def calculate_ber(tx_bits: list[int], rx_bits: list[int]) -> float:
  """Fraction of differing bits over the common length (0.0 if empty)."""
  length = min(len(tx_bits), len(rx_bits))
  if length == 0:
    return 0.0
  tx = np.asarray(tx_bits[:length])
  rx = np.asarray(rx_bits[:length])
  return float(np.count_nonzero(tx != rx)) / length


def generate_random_bits(
  count: int, rng: np.random.Generator | None = None
) -> list[int]:
  """Uniform random 0/1 sequence."""
  rng = rng if rng is not None else np.random.default_rng()
  return [int(b) for b in rng.integers(0, 2, size=count)]


def eye_diagram_segments(
  signal: Signal | npt.ArrayLike, samples_per_symbol: int, num_segments: int = 50
) -> list[npt.NDArray[np.float64]]:
  """Two-symbol-long traces starting at every symbol boundary."""
  x = _aligned(signal)
  segment_length = samples_per_symbol * 2
  segments: list[npt.NDArray[np.float64]] = []
  if samples_per_symbol <= 0:
    return segments
  start = 0
  while start < len(x) - segment_length and len(segments) < num_segments:
    segments.append(x[start : start + segment_length])
    start += samples_per_symbol
  return segments
