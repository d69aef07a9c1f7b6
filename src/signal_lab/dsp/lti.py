"""Linear time-invariant systems described by rational transfer functions in s.

``H(s) = (b_n s^n + ... + b_0) / (a_m s^m + ... + a_0)`` with coefficients
listed in descending powers of s.
"""

import logging

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field, field_validator
from scipy import signal as scipy_signal

logger = logging.getLogger(__name__)

MAGNITUDE_FLOOR = 1e-12


class TransferFunction(BaseModel):
  """Rational transfer function in the Laplace variable.

  Attributes:
    num: Numerator coefficients, highest power first.
    den: Denominator coefficients, highest power first; the leading one must
      be non-zero.
  """

  num: list[float] = Field(default_factory=lambda: [1.0])
  den: list[float] = Field(default_factory=lambda: [1.0, 1.0], min_length=1)

  model_config = {"frozen": True}

  @field_validator("den")
  @classmethod
  def _leading_nonzero(cls, den: list[float]) -> list[float]:
    if den[0] == 0:
      msg = "leading denominator coefficient must be non-zero"
      raise ValueError(msg)
    return den

  @property
  def poles(self) -> npt.NDArray[np.complex128]:
    """Roots of the denominator."""
    return np.roots(self.den).astype(np.complex128)


class BodePoint(BaseModel):
  """One frequency of a Bode sweep."""

  frequency: float
  magnitude_db: float
  phase_deg: float

  model_config = {"frozen": True}


def _horner(coeffs: list[float], s: npt.NDArray[np.complex128]) -> npt.NDArray:
  result = np.zeros_like(s)
  for c in coeffs:
    result = result * s + c
  return result


def evaluate_transfer_function(
  tf: TransferFunction, s: complex | npt.ArrayLike
) -> complex | npt.NDArray[np.complex128]:
  """Evaluate H(s) with Horner's rule on both polynomials.

  A denominator that evaluates to exactly zero yields ``inf + 0j`` instead of
  raising.

  Args:
    tf: Transfer function.
    s: Complex frequency, scalar or array.

  Returns:
    H(s) with the same shape as ``s``.
  """
  s_arr = np.asarray(s, dtype=np.complex128)
  scalar = s_arr.ndim == 0
  s_arr = np.atleast_1d(s_arr)

  numerator = _horner(tf.num, s_arr)
  denominator = _horner(tf.den, s_arr)
  poles_hit = denominator == 0
  if poles_hit.any():
    logger.debug(f"H(s) denominator vanishes at {np.count_nonzero(poles_hit)} points")

  safe = np.where(poles_hit, 1.0, denominator)
  h = np.where(poles_hit, complex(np.inf, 0.0), numerator / safe)
  return complex(h[0]) if scalar else h


def frequency_response(
  tf: TransferFunction, freq_hz: float | npt.ArrayLike
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
  """Magnitude in dB and wrapped phase in degrees of H(j*2*pi*f).

  Magnitude is floored at 1e-12 before the logarithm.
  """
  freq = np.atleast_1d(np.asarray(freq_hz, dtype=np.float64))
  h = np.atleast_1d(evaluate_transfer_function(tf, 1j * 2 * np.pi * freq))
  magnitude_db = 20 * np.log10(np.maximum(np.abs(h), MAGNITUDE_FLOOR))
  phase_deg = np.degrees(np.arctan2(h.imag, h.real))
  return magnitude_db, phase_deg


def compute_bode_plot(
  tf: TransferFunction,
  start_hz: float,
  stop_hz: float,
  points: int = 200,
) -> list[BodePoint]:
  """Bode sweep over a log-spaced grid.

  Phase is unwrapped so consecutive points never differ by more than 180
  degrees.

  Args:
    tf: Transfer function.
    start_hz: First frequency, must be positive.
    stop_hz: Last frequency, must be positive.
    points: Grid size, at least 2.

  Returns:
    One BodePoint per grid frequency.

  Raises:
    ValueError: On non-positive bounds or fewer than two points.
  """
  if start_hz <= 0 or stop_hz <= 0:
    msg = f"Bode bounds must be positive, got {start_hz}..{stop_hz} Hz"
    raise ValueError(msg)
  if points < 2:
    msg = f"Bode sweep needs at least 2 points, got {points}"
    raise ValueError(msg)

  freqs = np.logspace(np.log10(start_hz), np.log10(stop_hz), points)
  magnitude_db, phase_deg = frequency_response(tf, freqs)
  phase_deg = np.unwrap(phase_deg, period=360.0)

  return [
    BodePoint(frequency=float(f), magnitude_db=float(m), phase_deg=float(p))
    for f, m, p in zip(freqs, magnitude_db, phase_deg, strict=True)
  ]


def simulate_system(
  tf: TransferFunction, x: npt.ArrayLike, sample_rate: float
) -> npt.NDArray[np.float64]:
  """Drive the coefficients as a direct-form difference equation.

  ``a0 y[n] = sum_k b_k x[n-k] - sum_{k>=1} a_k y[n-k]``. The continuous
  coefficients are used as-is, so the output only resembles the continuous
  response when the sample rate is well above the system bandwidth; a
  warning is logged when the fastest pole comes within a decade of it.

  Args:
    tf: Transfer function.
    x: Input samples (non-finite values are read as zero).
    sample_rate: Sample rate of ``x`` in Hz.

  Returns:
    Output samples, same length as ``x``.
  """
  data = np.nan_to_num(np.asarray(x, dtype=np.float64))
  if len(data) == 0:
    return data

  poles = tf.poles
  if len(poles):
    fastest_hz = float(np.max(np.abs(poles))) / (2 * np.pi)
    if fastest_hz > sample_rate / 10:
      logger.warning(
        f"Fastest pole at {fastest_hz:.1f} Hz is close to the {sample_rate} Hz "
        "sample rate; the discrete simulation will be inaccurate"
      )

  num = tf.num if tf.num else [0.0]
  return scipy_signal.lfilter(num, tf.den, data)
