"""First-order RC filters.

Each stage is the discretized RC section with ``alpha = dt / (RC + dt)`` and
``RC = 1 / (2*pi*f_c)``:

- low-pass:  ``y[n] = alpha x[n] + (1 - alpha) y[n-1]``, seeded with ``x[0]``
- high-pass: ``y[n] = (1 - alpha) (y[n-1] + x[n] - x[n-1])``, seeded at rest

Band-pass chains a low-pass at the upper cutoff into a high-pass at the lower
cutoff; band-stop subtracts the band-pass output from the input.
"""

import math
from collections.abc import Callable
from enum import StrEnum

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field
from scipy import signal as scipy_signal


class FilterType(StrEnum):
  """Filter response shapes."""

  LOWPASS = "lowpass"
  HIGHPASS = "highpass"
  BANDPASS = "bandpass"
  BANDSTOP = "bandstop"


class FilterParams(BaseModel):
  """RC filter settings.

  Attributes:
    filter_type: Response shape.
    cutoff_hz: Cutoff (lower cutoff for band filters).
    cutoff_high_hz: Upper cutoff for band filters, ``2 * cutoff_hz`` if unset.
    order: Number of cascaded first-order sections.
    sample_rate: Sample rate of the filtered signal.
  """

  filter_type: FilterType = FilterType.LOWPASS
  cutoff_hz: float = Field(default=10.0, gt=0.0)
  cutoff_high_hz: float | None = Field(default=None, gt=0.0)
  order: int = Field(default=1, ge=1)
  sample_rate: float = Field(default=1000.0, gt=0.0)

  model_config = {"frozen": True}


def rc_alpha(cutoff_hz: float, sample_rate: float) -> float:
  """Smoothing factor of a first-order RC section."""
  dt = 1.0 / sample_rate
  rc = 1.0 / (2 * math.pi * cutoff_hz)
  return dt / (rc + dt)


def _lowpass_stage(x: npt.NDArray[np.float64], alpha: float) -> npt.NDArray:
  if len(x) == 0:
    return x
  b = [alpha]
  a = [1.0, -(1 - alpha)]
  y, _ = scipy_signal.lfilter(b, a, x, zi=[(1 - alpha) * x[0]])
  return y


def _highpass_stage(x: npt.NDArray[np.float64], alpha: float) -> npt.NDArray:
  if len(x) == 0:
    return x
  gain = 1 - alpha
  b = [gain, -gain]
  a = [1.0, -gain]
  y, _ = scipy_signal.lfilter(b, a, x, zi=[-gain * x[0]])
  return y


def _cascade(
  x: npt.NDArray,
  cutoff_hz: float,
  params: FilterParams,
  stage: Callable[[npt.NDArray, float], npt.NDArray],
) -> npt.NDArray:
  alpha = rc_alpha(cutoff_hz, params.sample_rate)
  for _ in range(params.order):
    x = stage(x, alpha)
  return x


def apply_filter(
  x: npt.ArrayLike, params: FilterParams | None = None
) -> npt.NDArray[np.float64]:
  """Filter a sample array.

  Args:
    x: Input samples (non-finite values are read as zero).
    params: Filter settings.

  Returns:
    Filtered samples, same length as the input.
  """
  params = params or FilterParams()
  data = np.nan_to_num(np.asarray(x, dtype=np.float64))

  match params.filter_type:
    case FilterType.LOWPASS:
      return _cascade(data, params.cutoff_hz, params, _lowpass_stage)
    case FilterType.HIGHPASS:
      return _cascade(data, params.cutoff_hz, params, _highpass_stage)
    case FilterType.BANDPASS | FilterType.BANDSTOP:
      upper = params.cutoff_high_hz or params.cutoff_hz * 2
      low = _cascade(data, upper, params, _lowpass_stage)
      band = _cascade(low, params.cutoff_hz, params, _highpass_stage)
      if params.filter_type is FilterType.BANDPASS:
        return band
      return data - band
