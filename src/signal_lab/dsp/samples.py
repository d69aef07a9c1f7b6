"""Sampled signal container shared by every kernel component.

A signal pairs a uniformly spaced time vector with an amplitude vector and a
boolean validity mask. Samples dropped by a fault are flagged in the mask
rather than encoded as NaN, so a "missing" sample can never be confused with a
numerically undefined result.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, field_validator, model_validator


class Signal(BaseModel):
  """A one-dimensional real signal with a validity mask.

  Attributes:
    time: Sample instants in seconds, strictly increasing with constant spacing.
    amplitude: Sample values, same length as ``time``.
    valid: True where the sample exists. Defaults to all True.
  """

  time: np.ndarray
  amplitude: np.ndarray
  valid: np.ndarray | None = None

  model_config = {"frozen": True, "arbitrary_types_allowed": True}

  @field_validator("time", "amplitude", mode="before")
  @classmethod
  def _as_float_array(cls, value: npt.ArrayLike) -> np.ndarray:
    return np.asarray(value, dtype=np.float64)

  @field_validator("valid", mode="before")
  @classmethod
  def _as_bool_array(cls, value: npt.ArrayLike | None) -> np.ndarray | None:
    if value is None:
      return None
    return np.asarray(value, dtype=bool)

  @model_validator(mode="after")
  def _check_lengths(self) -> Signal:
    if len(self.time) != len(self.amplitude):
      msg = (
        f"time and amplitude must have equal length, got "
        f"{len(self.time)} and {len(self.amplitude)}"
      )
      raise ValueError(msg)
    if self.valid is None:
      object.__setattr__(self, "valid", np.ones(len(self.amplitude), dtype=bool))
    elif len(self.valid) != len(self.amplitude):
      msg = "valid mask must match the amplitude length"
      raise ValueError(msg)
    return self

  def __len__(self) -> int:
    return len(self.amplitude)

  @property
  def dt(self) -> float:
    """Sample spacing in seconds (0.0 for signals shorter than two samples)."""
    if len(self.time) < 2:
      return 0.0
    return float(self.time[1] - self.time[0])

  @property
  def sample_rate(self) -> float:
    """Sample rate in Hz derived from the time vector."""
    dt = self.dt
    return 1.0 / dt if dt > 0 else 0.0

  @property
  def dropped_count(self) -> int:
    """Number of samples flagged as missing."""
    return int(np.count_nonzero(~self.valid))

  def valid_samples(self) -> npt.NDArray[np.float64]:
    """Amplitudes with dropped and non-finite samples removed."""
    keep = self.valid & np.isfinite(self.amplitude)
    return self.amplitude[keep]

  def with_amplitude(
    self,
    amplitude: npt.ArrayLike,
    valid: npt.NDArray[np.bool_] | None = None,
  ) -> Signal:
    """Return a copy carrying new amplitudes on the same time base."""
    mask = self.valid.copy() if valid is None else np.asarray(valid, dtype=bool)
    return Signal(
      time=self.time,
      amplitude=np.asarray(amplitude, dtype=np.float64),
      valid=mask,
    )


def as_samples(signal: Signal | npt.ArrayLike) -> npt.NDArray[np.float64]:
  """Return the usable samples of a signal or array.

  Dropped samples and NaN/inf values are filtered out, never zero-filled.

  Args:
    signal: A Signal or any array-like of real samples.

  Returns:
    1-D float64 array of finite, valid samples.
  """
  if isinstance(signal, Signal):
    return signal.valid_samples()
  arr = np.asarray(signal, dtype=np.float64).ravel()
  return arr[np.isfinite(arr)]
