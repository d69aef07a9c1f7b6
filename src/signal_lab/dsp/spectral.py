"""Spectral analysis: radix-2 FFT, PSD, STFT and the Hilbert transform.

The FFT is an iterative Cooley-Tukey transform on power-of-two lengths. The
input is bit-reverse permuted, then each butterfly stage advances its twiddle
factor by complex multiplication with the stage root of unity instead of
evaluating sine and cosine per sample. Each stage is vectorized over its
butterfly groups.

Samples flagged as dropped are filtered out before any transform (see
``signal_lab.dsp.samples.as_samples``); they are never zero-filled.

Input-length caps are the caller's job: ``compute_fft`` truncates only when
``max_samples`` is passed. Scripts take the caps from ``KernelConfig``, whose
defaults are the constants below.
"""

import logging

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel

from signal_lab.dsp.samples import Signal, as_samples

logger = logging.getLogger(__name__)

FFT_MAX_SAMPLES = 4096
STFT_WINDOW_SIZE = 256
STFT_HOP_SIZE = 128
STFT_MAX_FRAMES = 80
WINDOWED_FFT_MAX_SAMPLES = FFT_MAX_SAMPLES


class SpectrumResult(BaseModel):
  """Single-sided spectrum.

  Attributes:
    frequencies: Bin centre frequencies in Hz, ``k * fs / N``.
    values: Magnitude (FFT) or power (PSD) per bin.
  """

  frequencies: np.ndarray
  values: np.ndarray

  model_config = {"frozen": True, "arbitrary_types_allowed": True}

  def __len__(self) -> int:
    return len(self.frequencies)

  @property
  def peak_frequency(self) -> float:
    """Frequency of the strongest bin (0.0 for an empty spectrum)."""
    if len(self.values) == 0:
      return 0.0
    return float(self.frequencies[int(np.argmax(self.values))])


class STFTResult(BaseModel):
  """Spectrogram.

  Attributes:
    times: Frame start times in seconds.
    frequencies: Bin frequencies shared by every frame.
    power: Grid of shape (frames, bins).
  """

  times: np.ndarray
  frequencies: np.ndarray
  power: np.ndarray

  model_config = {"frozen": True, "arbitrary_types_allowed": True}


def next_power_of_two(n: int) -> int:
  """Smallest power of two >= n (1 for n <= 1)."""
  size = 1
  while size < n:
    size <<= 1
  return size


def _bit_reverse_indices(n: int) -> npt.NDArray[np.intp]:
  bits = n.bit_length() - 1
  indices = np.arange(n)
  reversed_indices = np.zeros(n, dtype=np.intp)
  for _ in range(bits):
    reversed_indices = (reversed_indices << 1) | (indices & 1)
    indices = indices >> 1
  return reversed_indices


def fft_radix2(x: npt.ArrayLike) -> npt.NDArray[np.complex128]:
  """Unnormalized forward DFT of a power-of-two length sequence.

  Args:
    x: Real or complex samples; the length must be a power of two.

  Returns:
    Complex spectrum of the same length.

  Raises:
    ValueError: If the length is not a power of two.
  """
  data = np.asarray(x, dtype=np.complex128)
  n = len(data)
  if n == 0 or n & (n - 1):
    msg = f"FFT length must be a power of 2, got {n}"
    raise ValueError(msg)

  out = data[_bit_reverse_indices(n)]

  size = 2
  while size <= n:
    half = size // 2
    angle = 2 * np.pi / size
    w_step = complex(np.cos(angle), -np.sin(angle))
    groups = out.reshape(n // size, size)
    w = 1.0 + 0.0j
    for j in range(half):
      u = groups[:, j].copy()
      v = groups[:, j + half] * w
      groups[:, j] = u + v
      groups[:, j + half] = u - v
      w *= w_step
    size <<= 1

  return out


def ifft_radix2(x: npt.ArrayLike) -> npt.NDArray[np.complex128]:
  """Inverse DFT via conjugate, forward transform, conjugate and 1/N scaling."""
  data = np.asarray(x, dtype=np.complex128)
  return np.conj(fft_radix2(np.conj(data))) / len(data)


def _truncate(
  samples: npt.NDArray[np.float64], max_samples: int | None
) -> npt.NDArray[np.float64]:
  if max_samples is not None and len(samples) > max_samples:
    logger.debug(f"Truncating {len(samples)} samples to {max_samples}")
    return samples[:max_samples]
  return samples


def _usable(signal: Signal | npt.ArrayLike) -> npt.NDArray[np.float64]:
  samples = as_samples(signal)
  if isinstance(signal, Signal) and signal.dropped_count:
    logger.debug(f"Excluding {signal.dropped_count} dropped samples from analysis")
  return samples


def _empty_spectrum() -> SpectrumResult:
  return SpectrumResult(frequencies=np.zeros(0), values=np.zeros(0))


def compute_fft(
  signal: Signal | npt.ArrayLike,
  sample_rate: float,
  max_samples: int | None = None,
) -> SpectrumResult:
  """Single-sided magnitude spectrum normalized by 1/N.

  The usable samples are zero-padded to the next power of two N; bins
  ``0 .. N/2 - 1`` are returned.

  Args:
    signal: Signal or sample array.
    sample_rate: Sample rate in Hz.
    max_samples: Optional cap applied before padding.

  Returns:
    Frequencies and magnitudes; empty for an input with no usable samples.
  """
  samples = _truncate(_usable(signal), max_samples)
  if len(samples) == 0:
    return _empty_spectrum()

  n = next_power_of_two(len(samples))
  padded = np.zeros(n, dtype=np.float64)
  padded[: len(samples)] = samples

  spectrum = fft_radix2(padded)
  half = n // 2
  return SpectrumResult(
    frequencies=np.arange(half) * sample_rate / n,
    values=np.abs(spectrum[:half]) / n,
  )


def compute_psd(
  signal: Signal | npt.ArrayLike,
  sample_rate: float,
  max_samples: int | None = None,
) -> SpectrumResult:
  """Power spectral density as the squared normalized FFT magnitude."""
  spectrum = compute_fft(signal, sample_rate, max_samples=max_samples)
  return SpectrumResult(frequencies=spectrum.frequencies, values=spectrum.values**2)


def hann_window(length: int, periodic_length: int | None = None) -> npt.NDArray:
  """Hann window ``0.5 * (1 - cos(2*pi*n / (L - 1)))``."""
  denominator = (periodic_length if periodic_length is not None else length) - 1
  if denominator <= 0:
    return np.ones(length)
  n = np.arange(length)
  return 0.5 * (1 - np.cos(2 * np.pi * n / denominator))


def compute_windowed_fft(
  signal: Signal | npt.ArrayLike,
  sample_rate: float,
  max_samples: int = WINDOWED_FFT_MAX_SAMPLES,
) -> SpectrumResult:
  """Hann-windowed single-sided spectrum for recorded signals.

  The window is shaped for the padded length N but applied only to the real
  samples, so the padding stays zero. Magnitudes are scaled by 2/N; with the
  Hann coherent gain of 0.5 a bin-centred tone reads about half its amplitude.

  Args:
    signal: Signal or sample array.
    sample_rate: Sample rate in Hz.
    max_samples: Cap applied before padding.

  Returns:
    Frequencies and single-sided magnitudes.
  """
  samples = _truncate(_usable(signal), max_samples)
  if len(samples) == 0:
    return _empty_spectrum()

  n = next_power_of_two(len(samples))
  padded = np.zeros(n, dtype=np.float64)
  padded[: len(samples)] = samples * hann_window(len(samples), periodic_length=n)

  spectrum = fft_radix2(padded)
  half = n // 2
  return SpectrumResult(
    frequencies=np.arange(half) * sample_rate / n,
    values=2 * np.abs(spectrum[:half]) / n,
  )


def compute_stft(
  signal: Signal | npt.ArrayLike,
  sample_rate: float,
  window_size: int = STFT_WINDOW_SIZE,
  hop_size: int = STFT_HOP_SIZE,
  max_frames: int = STFT_MAX_FRAMES,
) -> STFTResult:
  """Spectrogram of Hann-windowed, overlapping frames.

  Each frame's single-sided power ``|X[k]|^2 / W^2`` for ``k < W/2`` is
  computed by a direct DFT; window sizes are small enough that the quadratic
  cost is acceptable. At most ``max_frames`` frames are emitted.

  Args:
    signal: Signal or sample array.
    sample_rate: Sample rate in Hz.
    window_size: Frame length W in samples.
    hop_size: Frame advance in samples.
    max_frames: Hard ceiling on the number of frames.

  Returns:
    Frame times, bin frequencies and the (frames, bins) power grid. All empty
    when the signal is shorter than one window.
  """
  if window_size < 2 or hop_size < 1:
    msg = f"Invalid STFT geometry: window={window_size}, hop={hop_size}"
    raise ValueError(msg)

  samples = _usable(signal)
  n_frames = min(max_frames, max(0, (len(samples) - window_size) // hop_size + 1))
  if n_frames <= 0:
    empty = np.zeros(0)
    return STFTResult(times=empty, frequencies=empty, power=np.zeros((0, 0)))

  n_bins = window_size // 2
  window = hann_window(window_size)
  k = np.arange(n_bins)[:, None]
  n = np.arange(window_size)[None, :]
  dft_matrix = np.exp(-2j * np.pi * k * n / window_size)

  starts = np.arange(n_frames) * hop_size
  frames = np.stack([samples[s : s + window_size] * window for s in starts])
  spectra = frames @ dft_matrix.T

  return STFTResult(
    times=starts / sample_rate,
    frequencies=np.arange(n_bins) * sample_rate / window_size,
    power=np.abs(spectra) ** 2 / window_size**2,
  )


def hilbert(x: npt.ArrayLike) -> npt.NDArray[np.complex128]:
  """Analytic signal of a real sequence by spectral masking.

  The sequence is zero-padded to the next power of two M and transformed.
  DC and Nyquist keep weight 1, positive frequencies are doubled, negative
  frequencies are zeroed, and the result is inverse transformed and cut back
  to the input length. The real part reproduces the input and the imaginary
  part is its Hilbert transform.

  Args:
    x: Real samples.

  Returns:
    Complex analytic signal with the input length.
  """
  data = np.nan_to_num(np.asarray(x, dtype=np.float64))
  n = len(data)
  if n == 0:
    return np.zeros(0, dtype=np.complex128)

  m = next_power_of_two(n)
  padded = np.zeros(m, dtype=np.float64)
  padded[:n] = data
  spectrum = fft_radix2(padded)

  mask = np.zeros(m)
  mask[0] = 1.0
  if m > 1:
    mask[m // 2] = 1.0
    mask[1 : m // 2] = 2.0

  return ifft_radix2(spectrum * mask)[:n]
