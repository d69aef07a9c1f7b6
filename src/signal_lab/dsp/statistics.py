"""Descriptive statistics of sampled signals."""

import logging
import math

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel

from signal_lab.dsp.samples import Signal, as_samples

logger = logging.getLogger(__name__)


class SignalStats(BaseModel):
  """Summary statistics over the usable samples of a signal."""

  mean: float = 0.0
  variance: float = 0.0
  std_dev: float = 0.0
  rms: float = 0.0
  min: float = 0.0
  max: float = 0.0
  peak: float = 0.0
  peak_to_peak: float = 0.0
  skewness: float = 0.0
  kurtosis: float = 0.0
  snr_db: float | None = None
  sample_count: int = 0

  model_config = {"frozen": True}


class WindowedStat(BaseModel):
  """Statistics of one analysis window, stamped at the window centre."""

  time: float
  mean: float
  rms: float
  variance: float

  model_config = {"frozen": True}


def _raw_with_mask(
  signal: Signal | npt.ArrayLike,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.bool_]]:
  if isinstance(signal, Signal):
    return signal.amplitude, signal.valid & np.isfinite(signal.amplitude)
  arr = np.asarray(signal, dtype=np.float64).ravel()
  return arr, np.isfinite(arr)


def _paired_samples(
  signal: Signal | npt.ArrayLike, reference: Signal | npt.ArrayLike
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
  sig, sig_ok = _raw_with_mask(signal)
  ref, ref_ok = _raw_with_mask(reference)
  length = min(len(sig), len(ref))
  keep = sig_ok[:length] & ref_ok[:length]
  return sig[:length][keep], ref[:length][keep]


def snr_db(
  signal: Signal | npt.ArrayLike, reference: Signal | npt.ArrayLike
) -> float | None:
  """SNR of ``signal`` against a clean ``reference`` in dB.

  The two inputs are paired by sample index over their overlapping length;
  an index is used only where both samples are valid and finite. Returns
  None when no pair is usable or the noise power is zero.
  """
  sig, ref = _paired_samples(signal, reference)
  if len(sig) == 0:
    return None

  signal_power = float(np.mean(ref**2))
  noise_power = float(np.mean((sig - ref) ** 2))
  if noise_power <= 0 or signal_power <= 0:
    return None
  return 10 * math.log10(signal_power / noise_power)


def compute_stats(
  signal: Signal | npt.ArrayLike,
  reference: Signal | npt.ArrayLike | None = None,
) -> SignalStats:
  """Compute descriptive statistics.

  Dropped and non-finite samples are excluded. An input with no usable samples
  yields all-zero statistics.

  Args:
    signal: Signal or sample array.
    reference: Optional clean version of the signal for the SNR estimate.

  Returns:
    The statistics record.
  """
  x = as_samples(signal)
  n = len(x)
  if n == 0:
    return SignalStats()

  mean = float(np.mean(x))
  variance = float(np.mean((x - mean) ** 2))
  std_dev = math.sqrt(variance)
  lo = float(np.min(x))
  hi = float(np.max(x))

  skewness = kurtosis = 0.0
  if std_dev > 0:
    z = (x - mean) / std_dev
    skewness = float(np.mean(z**3))
    kurtosis = float(np.mean(z**4))

  return SignalStats(
    mean=mean,
    variance=variance,
    std_dev=std_dev,
    rms=float(np.sqrt(np.mean(x**2))),
    min=lo,
    max=hi,
    peak=max(abs(lo), abs(hi)),
    peak_to_peak=hi - lo,
    skewness=skewness,
    kurtosis=kurtosis,
    snr_db=snr_db(signal, reference) if reference is not None else None,
    sample_count=n,
  )


def compute_windowed_stats(signal: Signal, window_size: int) -> list[WindowedStat]:
  """Mean, RMS and variance over consecutive non-overlapping windows.

  Windows whose samples were all dropped are skipped; a trailing partial
  window is ignored.
  """
  if window_size <= 0:
    msg = f"window_size must be positive, got {window_size}"
    raise ValueError(msg)

  results: list[WindowedStat] = []
  for start in range(0, len(signal) - window_size + 1, window_size):
    stop = start + window_size
    values = signal.amplitude[start:stop]
    keep = signal.valid[start:stop] & np.isfinite(values)
    window = values[keep]
    if len(window) == 0:
      continue
    mean = float(np.mean(window))
    results.append(
      WindowedStat(
        time=float(signal.time[start + window_size // 2]),
        mean=mean,
        rms=float(np.sqrt(np.mean(window**2))),
        variance=float(np.mean((window - mean) ** 2)),
      )
    )
  return results


def downsample(signal: Signal, max_samples: int) -> Signal:
  """Keep every ceil(N / max_samples)-th sample when the signal is too long."""
  if len(signal) <= max_samples:
    return signal
  factor = math.ceil(len(signal) / max_samples)
  return Signal(
    time=signal.time[::factor],
    amplitude=signal.amplitude[::factor],
    valid=signal.valid[::factor],
  )
