"""Signal-processing kernel: generation, faults, analysis, modulation and LTI."""

from signal_lab.dsp.faults import (
  FAULT_ORDER,
  FaultConfig,
  FaultKind,
  FaultPipeline,
  MultiFaultConfig,
  apply_fault,
  apply_multi_fault,
  create_default_multi_fault_config,
  has_active_faults,
)
from signal_lab.dsp.filters import FilterParams, FilterType, apply_filter
from signal_lab.dsp.generator import (
  SignalParams,
  SignalType,
  SweepParams,
  SweepType,
  generate_chirp_signal,
  generate_harmonic_signal,
  generate_signal,
  generate_sweep_signal,
  generate_time_vector,
  mix_signals,
)
from signal_lab.dsp.lti import (
  BodePoint,
  TransferFunction,
  compute_bode_plot,
  evaluate_transfer_function,
  simulate_system,
)
from signal_lab.dsp.modulation import (
  ConstellationPoint,
  ModFeatures,
  ModulationParams,
  ModulationScheme,
  calculate_ber,
  compute_constellation,
  compute_mod_features,
  compute_mod_fft,
  demodulate,
  generate_mod_time_vector,
  generate_modulated_signal,
  generate_random_bits,
  modulate,
)
from signal_lab.dsp.samples import Signal, as_samples
from signal_lab.dsp.spectral import (
  SpectrumResult,
  STFTResult,
  compute_fft,
  compute_psd,
  compute_stft,
  compute_windowed_fft,
  fft_radix2,
  hilbert,
  ifft_radix2,
)
from signal_lab.dsp.statistics import (
  SignalStats,
  WindowedStat,
  compute_stats,
  compute_windowed_stats,
  snr_db,
)
from signal_lab.dsp.vowel import (
  FormantEstimate,
  Vowel,
  VowelDetector,
  VowelResult,
  classify_vowel,
  extract_formants,
)

__all__ = [
  # Samples
  "Signal",
  "as_samples",
  # Generation
  "SignalParams",
  "SignalType",
  "SweepParams",
  "SweepType",
  "generate_chirp_signal",
  "generate_harmonic_signal",
  "generate_signal",
  "generate_sweep_signal",
  "generate_time_vector",
  "mix_signals",
  # Faults
  "FAULT_ORDER",
  "FaultConfig",
  "FaultKind",
  "FaultPipeline",
  "MultiFaultConfig",
  "apply_fault",
  "apply_multi_fault",
  "create_default_multi_fault_config",
  "has_active_faults",
  # Analysis
  "STFTResult",
  "SignalStats",
  "SpectrumResult",
  "WindowedStat",
  "compute_fft",
  "compute_psd",
  "compute_stats",
  "compute_stft",
  "compute_windowed_fft",
  "compute_windowed_stats",
  "fft_radix2",
  "hilbert",
  "ifft_radix2",
  "snr_db",
  # Modulation
  "ConstellationPoint",
  "ModFeatures",
  "ModulationParams",
  "ModulationScheme",
  "calculate_ber",
  "compute_constellation",
  "compute_mod_features",
  "compute_mod_fft",
  "demodulate",
  "generate_mod_time_vector",
  "generate_modulated_signal",
  "generate_random_bits",
  "modulate",
  # Systems
  "BodePoint",
  "FilterParams",
  "FilterType",
  "TransferFunction",
  "apply_filter",
  "compute_bode_plot",
  "evaluate_transfer_function",
  "simulate_system",
  # Vowels
  "FormantEstimate",
  "Vowel",
  "VowelDetector",
  "VowelResult",
  "classify_vowel",
  "extract_formants",
]
