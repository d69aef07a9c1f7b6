"""Composable fault injection for sampled signals.

Each fault kind is a pure transform ``(signal, magnitude, frequency, rng) ->
signal``. A fault configuration toggles every kind independently and the
pipeline applies the enabled ones strictly in the declaration order of
``FaultKind``, each stage consuming the output of the previous one. The
stages do not commute (clipping before or after a gain error gives different
results), so the order is part of the contract.

Typical Usage:
  ```python
  from signal_lab.dsp.faults import FaultKind, FaultPipeline, MultiFaultConfig

  config = MultiFaultConfig().enable(FaultKind.EMI_RFI, severity=2, frequency=60)
  pipeline = FaultPipeline(config, rng=np.random.default_rng(0))
  corrupted = pipeline.apply(signal)
  ```
"""

import logging
import math
from collections.abc import Callable
from enum import StrEnum

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

from signal_lab.dsp.generator import box_muller
from signal_lab.dsp.samples import Signal

logger = logging.getLogger(__name__)

SEVERITY_TO_MAGNITUDE = 0.4
POWER_LINE_HZ = 50.0


class FaultKind(StrEnum):
  """The fault kinds, declared in pipeline order."""

  GROUND_FAULT = "ground_fault"
  GROUND_LOOP = "ground_loop"
  FLOATING_GROUND = "floating_ground"
  EMI_RFI = "emi_rfi"
  OPEN_CIRCUIT = "open_circuit"
  SHORT_CIRCUIT = "short_circuit"
  CABLE_ATTENUATION = "cable_attenuation"
  IMPEDANCE_MISMATCH = "impedance_mismatch"
  NOISE_INJECTION = "noise_injection"
  POWER_LINE = "power_line"
  SIGNAL_CLIPPING = "signal_clipping"
  SIGNAL_DISTORTION = "signal_distortion"
  SENSOR_OFFSET = "sensor_offset"
  SENSOR_DRIFT = "sensor_drift"
  SENSOR_SATURATION = "sensor_saturation"
  GAIN_ERROR = "gain_error"
  QUANTIZATION_ERROR = "quantization_error"
  ALIASING = "aliasing"
  TIMING_JITTER = "timing_jitter"
  SAMPLE_LOSS = "sample_loss"
  POWER_SUPPLY_RIPPLE = "power_supply_ripple"


FAULT_ORDER: tuple[FaultKind, ...] = tuple(FaultKind)

FAULT_LABELS: dict[FaultKind, str] = {
  FaultKind.GROUND_FAULT: "Ground Fault",
  FaultKind.GROUND_LOOP: "Ground Loop",
  FaultKind.FLOATING_GROUND: "Floating Ground",
  FaultKind.EMI_RFI: "EMI / RFI",
  FaultKind.OPEN_CIRCUIT: "Open Circuit",
  FaultKind.SHORT_CIRCUIT: "Short Circuit",
  FaultKind.CABLE_ATTENUATION: "Cable Attenuation",
  FaultKind.IMPEDANCE_MISMATCH: "Impedance Mismatch",
  FaultKind.NOISE_INJECTION: "Noise Injection",
  FaultKind.POWER_LINE: "Power Line (50Hz)",
  FaultKind.SIGNAL_CLIPPING: "Signal Clipping",
  FaultKind.SIGNAL_DISTORTION: "Signal Distortion",
  FaultKind.SENSOR_OFFSET: "Sensor Offset",
  FaultKind.SENSOR_DRIFT: "Sensor Drift",
  FaultKind.SENSOR_SATURATION: "Sensor Saturation",
  FaultKind.GAIN_ERROR: "Gain Error",
  FaultKind.QUANTIZATION_ERROR: "Quantization Error",
  FaultKind.ALIASING: "Aliasing",
  FaultKind.TIMING_JITTER: "Timing Jitter",
  FaultKind.SAMPLE_LOSS: "Sample Loss",
  FaultKind.POWER_SUPPLY_RIPPLE: "Power Supply Ripple",
}

SEVERITY_LABELS = ("Off", "Very Low", "Low", "Medium", "High", "Severe")

# Faults whose disturbance frequency is user-configurable.
PERIODIC_FAULTS: frozenset[FaultKind] = frozenset(
  {FaultKind.GROUND_LOOP, FaultKind.EMI_RFI, FaultKind.POWER_SUPPLY_RIPPLE}
)


class FaultConfig(BaseModel):
  """Settings of a single fault kind.

  Attributes:
    enabled: Whether the fault participates in the pipeline.
    severity: 0 (off) to 5 (severe); magnitude is ``severity * 0.4``.
    frequency: Disturbance frequency in Hz for periodic faults.
  """

  enabled: bool = False
  severity: int = Field(default=3, ge=0, le=5)
  frequency: float = Field(default=50.0, ge=0.0)

  model_config = {"frozen": True}

  @property
  def magnitude(self) -> float:
    """Dimensionless fault magnitude."""
    return self.severity * SEVERITY_TO_MAGNITUDE

  @property
  def active(self) -> bool:
    """True when the fault changes the signal."""
    return self.enabled and self.severity > 0


def _default_faults() -> dict[FaultKind, FaultConfig]:
  return {kind: FaultConfig() for kind in FAULT_ORDER}


class MultiFaultConfig(BaseModel):
  """Per-kind settings for every fault in the pipeline.

  Kinds missing from ``faults`` are treated as disabled.
  """

  faults: dict[FaultKind, FaultConfig] = Field(default_factory=_default_faults)

  model_config = {"frozen": True}

  def get(self, kind: FaultKind) -> FaultConfig:
    """Settings for ``kind`` (disabled defaults when absent)."""
    return self.faults.get(kind, FaultConfig())

  def enable(
    self,
    kind: FaultKind | str,
    severity: int | None = None,
    frequency: float | None = None,
  ) -> "MultiFaultConfig":
    """Return a copy with ``kind`` enabled and optionally re-tuned."""
    kind = FaultKind(kind)
    current = self.get(kind)
    updated = FaultConfig(
      enabled=True,
      severity=current.severity if severity is None else severity,
      frequency=current.frequency if frequency is None else frequency,
    )
    return MultiFaultConfig(faults={**self.faults, kind: updated})

  def disable(self, kind: FaultKind | str) -> "MultiFaultConfig":
    """Return a copy with ``kind`` disabled."""
    kind = FaultKind(kind)
    current = self.get(kind)
    updated = current.model_copy(update={"enabled": False})
    return MultiFaultConfig(faults={**self.faults, kind: updated})

  def active_kinds(self) -> list[FaultKind]:
    """Enabled kinds with non-zero severity, in pipeline order."""
    return [kind for kind in FAULT_ORDER if self.get(kind).active]


def create_default_multi_fault_config() -> MultiFaultConfig:
  """All faults disabled at severity 3 and 50 Hz."""
  return MultiFaultConfig()


def has_active_faults(config: MultiFaultConfig) -> bool:
  """True if at least one fault would alter the signal."""
  return bool(config.active_kinds())


# ============================================================================
# Fault transforms
# ============================================================================

FaultFn = Callable[[Signal, float, float, np.random.Generator], Signal]


def _add_tone(signal: Signal, magnitude: float, freq_hz: float) -> Signal:
  tone = magnitude * np.sin(2 * np.pi * freq_hz * signal.time)
  return signal.with_amplitude(signal.amplitude + tone)


def _remap(signal: Signal, indices: npt.NDArray[np.intp]) -> Signal:
  """Resample values and mask at integer indices."""
  return signal.with_amplitude(signal.amplitude[indices], signal.valid[indices])


def _ground_fault(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  return s.with_amplitude(s.amplitude + m)


def _ground_loop(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  return _add_tone(s, m, f)


def _floating_ground(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  drift = np.cumsum(box_muller(rng, len(s)) * m * 0.01)
  return s.with_amplitude(s.amplitude + drift)


def _emi_rfi(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  return _add_tone(s, m, f)


def _open_circuit(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  broken = rng.random(len(s)) < m * 0.3
  return s.with_amplitude(np.where(broken, 0.0, s.amplitude))


def _short_circuit(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return s.with_amplitude(np.full(len(s), m, dtype=np.float64))


def _cable_attenuation(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return s.with_amplitude((1 - m) * s.amplitude)


def _impedance_mismatch(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  delay = max(1, math.floor(m * 10))
  x = np.where(s.valid, s.amplitude, 0.0)
  echo = np.zeros_like(x)
  if delay < len(x):
    echo[delay:] = x[:-delay]
  return s.with_amplitude(s.amplitude + m * 0.5 * echo)


def _noise_injection(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return s.with_amplitude(s.amplitude + m * box_muller(rng, len(s)))


def _power_line(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  return _add_tone(s, m, POWER_LINE_HZ)


def _signal_clipping(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return s.with_amplitude(np.clip(s.amplitude, -m, m))


def _signal_distortion(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return s.with_amplitude(s.amplitude + m * s.amplitude**2)


def _sensor_offset(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return s.with_amplitude(s.amplitude + m)


def _sensor_drift(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  return s.with_amplitude(s.amplitude + m * s.time)


def _sensor_saturation(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  limit = abs(m) or 1.0
  return s.with_amplitude(np.clip(s.amplitude, -limit, limit))


def _gain_error(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  return s.with_amplitude((1 + m) * s.amplitude)


def _quantization_error(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  step = abs(m) or 0.1
  # Round half up, not numpy's round-half-to-even.
  return s.with_amplitude(np.floor(s.amplitude / step + 0.5) * step)


def _aliasing(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  denominator = 1 - m * 0.8
  hold = max(2, math.floor(1 / denominator)) if denominator > 0 else 2
  indices = (np.arange(len(s)) // hold) * hold
  return _remap(s, indices)


def _timing_jitter(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  n = len(s)
  if n == 0:
    return s
  offsets = np.floor(box_muller(rng, n) * m * 5).astype(np.intp)
  indices = np.clip(np.arange(n) + offsets, 0, n - 1)
  return _remap(s, indices)


def _sample_loss(s: Signal, m: float, f: float, rng: np.random.Generator) -> Signal:
  lost = rng.random(len(s)) < m * 0.2
  return s.with_amplitude(s.amplitude, s.valid & ~lost)


def _power_supply_ripple(
  s: Signal, m: float, f: float, rng: np.random.Generator
) -> Signal:
  return _add_tone(s, m, f)


_FAULT_FUNCTIONS: dict[FaultKind, FaultFn] = {
  FaultKind.GROUND_FAULT: _ground_fault,
  FaultKind.GROUND_LOOP: _ground_loop,
  FaultKind.FLOATING_GROUND: _floating_ground,
  FaultKind.EMI_RFI: _emi_rfi,
  FaultKind.OPEN_CIRCUIT: _open_circuit,
  FaultKind.SHORT_CIRCUIT: _short_circuit,
  FaultKind.CABLE_ATTENUATION: _cable_attenuation,
  FaultKind.IMPEDANCE_MISMATCH: _impedance_mismatch,
  FaultKind.NOISE_INJECTION: _noise_injection,
  FaultKind.POWER_LINE: _power_line,
  FaultKind.SIGNAL_CLIPPING: _signal_clipping,
  FaultKind.SIGNAL_DISTORTION: _signal_distortion,
  FaultKind.SENSOR_OFFSET: _sensor_offset,
  FaultKind.SENSOR_DRIFT: _sensor_drift,
  FaultKind.SENSOR_SATURATION: _sensor_saturation,
  FaultKind.GAIN_ERROR: _gain_error,
  FaultKind.QUANTIZATION_ERROR: _quantization_error,
  FaultKind.ALIASING: _aliasing,
  FaultKind.TIMING_JITTER: _timing_jitter,
  FaultKind.SAMPLE_LOSS: _sample_loss,
  FaultKind.POWER_SUPPLY_RIPPLE: _power_supply_ripple,
}


def apply_fault(
  signal: Signal,
  kind: FaultKind | str,
  magnitude: float,
  frequency: float = 50.0,
  rng: np.random.Generator | None = None,
) -> Signal:
  """Apply a single fault.

  Args:
    signal: Input signal, left untouched.
    kind: Fault to apply.
    magnitude: Dimensionless fault magnitude.
    frequency: Disturbance frequency in Hz for periodic faults.
    rng: Random source for stochastic faults.

  Returns:
    The corrupted signal.
  """
  rng = rng if rng is not None else np.random.default_rng()
  return _FAULT_FUNCTIONS[FaultKind(kind)](signal, magnitude, frequency, rng)


class FaultPipeline:
  """Applies every active fault of a configuration in the fixed kind order."""

  def __init__(
    self, config: MultiFaultConfig, rng: np.random.Generator | None = None
  ) -> None:
    """Initialize the pipeline.

    Args:
      config: Per-kind fault settings.
      rng: Random source shared by the stochastic faults.
    """
    self.config = config
    self.rng = rng if rng is not None else np.random.default_rng()
    self.kinds = config.active_kinds()
    logger.debug(f"Fault pipeline: {self.name}")

  def apply(self, signal: Signal) -> Signal:
    """Run the signal through each active fault.

    Args:
      signal: Clean input signal.

    Returns:
      Signal after all faults; the input is returned unchanged when none is
      active.
    """
    result = signal
    for kind in self.kinds:
      cfg = self.config.get(kind)
      result = _FAULT_FUNCTIONS[kind](result, cfg.magnitude, cfg.frequency, self.rng)

    if result.dropped_count:
      logger.debug(f"{result.dropped_count} of {len(result)} samples dropped")
    return result

  @property
  def name(self) -> str:
    """Human-readable description of the active faults."""
    return "_".join(kind.value for kind in self.kinds) or "none"


def apply_multi_fault(
  signal: Signal,
  config: MultiFaultConfig,
  rng: np.random.Generator | None = None,
) -> Signal:
  """Convenience wrapper around ``FaultPipeline``."""
  return FaultPipeline(config, rng=rng).apply(signal)
