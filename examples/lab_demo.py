#!/usr/bin/env python3
"""Signal Lab walkthrough.

Runs the kernel end to end and logs a summary of each stage:
Generator -> Fault Pipeline -> Spectral Analysis -> Modem -> Bode -> Vowels
"""

import logging
from typing import Annotated

import numpy as np
import typer

from signal_lab.config import KernelConfig
from signal_lab.dsp.faults import (
  FAULT_LABELS,
  PERIODIC_FAULTS,
  SEVERITY_LABELS,
  FaultKind,
  FaultPipeline,
  MultiFaultConfig,
)
from signal_lab.dsp.generator import (
  SIGNAL_LABELS,
  SignalParams,
  SignalType,
  generate_signal,
)
from signal_lab.dsp.lti import TransferFunction, compute_bode_plot
from signal_lab.dsp.modulation import (
  ANALOG_SCHEMES,
  ModulationParams,
  ModulationScheme,
  calculate_ber,
  compute_constellation,
  compute_mod_features,
  compute_mod_fft,
  decide_bits,
  demodulate,
  generate_modulated_signal,
)
from signal_lab.dsp.spectral import compute_fft, compute_stft
from signal_lab.dsp.statistics import compute_stats
from signal_lab.dsp.vowel import VowelDetector
from signal_lab.setup_logging import setup_logging

setup_logging(level="INFO")
logger = logging.getLogger(__name__)


def run_signal_chain(
  config: KernelConfig,
  signal_type: SignalType,
  frequency: float,
  faults: MultiFaultConfig,
  rng: np.random.Generator,
) -> None:
  """Generate, corrupt and analyze a basis waveform."""
  params = SignalParams(frequency=frequency, sample_rate=1000.0, duration=1.0)
  clean = generate_signal(signal_type, params, rng=rng)
  pipeline = FaultPipeline(faults, rng=rng)
  corrupted = pipeline.apply(clean)

  stats = compute_stats(corrupted, reference=clean)
  logger.info(f"{SIGNAL_LABELS[signal_type]} at {frequency} Hz")
  logger.info(f"Faults: {pipeline.name}")
  logger.info(
    f"  RMS {stats.rms:.3f}  peak {stats.peak:.3f}  "
    f"dropped {corrupted.dropped_count}/{len(corrupted)}"
  )
  if stats.snr_db is not None:
    logger.info(f"  SNR {stats.snr_db:.1f} dB")

  spectrum = compute_fft(corrupted, params.sample_rate, config.max_fft_samples)
  logger.info(f"  FFT peak at {spectrum.peak_frequency:.2f} Hz")

  stft = compute_stft(
    corrupted,
    params.sample_rate,
    window_size=config.stft_window_size,
    hop_size=config.stft_hop_size,
    max_frames=config.stft_max_frames,
  )
  frames, bins = stft.power.shape
  logger.info(f"  Spectrogram: {frames} frames x {bins} bins")


def run_modem(
  config: KernelConfig, scheme: ModulationScheme, rng: np.random.Generator
) -> None:
  """Modulate, add noise, demodulate and report link metrics."""
  params = ModulationParams()
  clean = generate_modulated_signal(scheme, params)
  noisy = FaultPipeline(
    MultiFaultConfig().enable(FaultKind.NOISE_INJECTION, severity=1), rng=rng
  ).apply(clean)

  features = compute_mod_features(
    noisy, clean, compute_mod_fft(noisy, params.sample_rate)
  )
  bandwidth = (
    f"{features.bandwidth_hz:.1f} Hz" if features.bandwidth_hz is not None else "n/a"
  )
  snr = f"{features.snr_db:.1f} dB" if features.snr_db is not None else "n/a"
  logger.info(f"{scheme}: power {features.power:.3f}, bandwidth {bandwidth}, SNR {snr}")

  if scheme in ANALOG_SCHEMES:
    return

  decisions = demodulate(
    scheme, noisy, noisy.time, params, max_samples=config.max_demod_samples
  )
  if scheme is not ModulationScheme.QPSK:
    received = decide_bits(decisions, params.samples_per_bit, len(params.bits))
    ber = calculate_ber(params.bits, received)
    logger.info(f"  Recovered {received} -> BER {ber:.3f}")

  points = compute_constellation(noisy.time, noisy, params, scheme)
  for point in points:
    logger.info(f"  symbol {point.label}: I={point.i:+.3f} Q={point.q:+.3f}")


def run_bode() -> None:
  """Sweep a first-order low-pass and report its corner."""
  tf = TransferFunction(num=[1.0], den=[1.0, 1.0])
  points = compute_bode_plot(tf, 0.01, 10.0, points=200)
  corner = min(points, key=lambda p: abs(p.magnitude_db + 3.0103))
  logger.info(
    f"1/(s+1): -3 dB near {corner.frequency:.3f} Hz, phase {corner.phase_deg:.1f} deg"
  )


def run_vowels(config: KernelConfig) -> None:
  """Classify a two-tone vowel surrogate frame by frame."""
  sample_rate = 8000.0
  detector = VowelDetector(window_size=config.vowel_window)
  t = np.arange(int(sample_rate * 0.5)) / sample_rate
  audio = np.sin(2 * np.pi * 800 * t) + 0.6 * np.sin(2 * np.pi * 1200 * t)

  frame = 1024
  for start in range(0, len(audio) - frame + 1, frame):
    spectrum = compute_fft(audio[start : start + frame], sample_rate)
    result = detector.update_from_spectrum(spectrum.values, sample_rate)
    logger.info(
      f"Vowel {result.vowel or '-'} ({result.confidence:.2f}) "
      f"F1={result.formants.f1:.0f} Hz F2={result.formants.f2:.0f} Hz"
    )


def main(
  signal_type: Annotated[
    SignalType,
    typer.Option("--signal", "-s", help="Basis waveform to generate."),
  ] = SignalType.SINE,
  frequency: Annotated[
    float,
    typer.Option("--frequency", "-f", help="Waveform frequency in Hz."),
  ] = 5.0,
  fault: Annotated[
    list[FaultKind] | None,
    typer.Option("--fault", help="Fault to enable (repeatable)."),
  ] = None,
  severity: Annotated[
    int,
    typer.Option("--severity", min=0, max=5, help="Severity of enabled faults."),
  ] = 2,
  fault_frequency: Annotated[
    float,
    typer.Option("--fault-frequency", min=0.0, help="Hum/ripple/EMI tone in Hz."),
  ] = 50.0,
  scheme: Annotated[
    ModulationScheme,
    typer.Option("--scheme", "-m", help="Modulation scheme."),
  ] = ModulationScheme.PSK,
  seed: Annotated[
    int | None,
    typer.Option("--seed", help="Seed for reproducible noise and faults."),
  ] = None,
  verbose: Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Show kernel debug traces."),
  ] = False,
) -> None:
  """Walk through the signal lab kernel."""
  if verbose:
    setup_logging(level="INFO", kernel_level="DEBUG")

  config = KernelConfig(seed=seed)
  rng = config.make_rng()

  faults = MultiFaultConfig()
  for kind in fault or []:
    tone = fault_frequency if kind in PERIODIC_FAULTS else None
    faults = faults.enable(kind, severity=severity, frequency=tone)
    logger.info(f"Enabled {FAULT_LABELS[kind]} ({SEVERITY_LABELS[severity]})")

  run_signal_chain(config, signal_type, frequency, faults, rng)
  run_modem(config, scheme, rng)
  run_bode()
  run_vowels(config)


if __name__ == "__main__":
  typer.run(main)
