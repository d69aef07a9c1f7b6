"""Formant extraction and vowel classification.

The first two formants are picked from a linear magnitude spectrum and
compared with five reference vowels in a normalized (F1, F2) plane. A
``VowelDetector`` smooths per-frame results over a short sliding window.
"""

import logging
import math
from collections import Counter, deque
from enum import StrEnum

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field
from scipy import ndimage

logger = logging.getLogger(__name__)

F1_MAX_HZ = 900.0
F2_MAX_HZ = 3000.0
FORMANT_PEAK_DISTANCE = 3
MIN_F1_HZ = 50.0
MIN_F2_HZ = 100.0
# Spectra whose strongest bin is below this are treated as silence.
MIN_FORMANT_MAGNITUDE = 1e-6
DETECTOR_WINDOW = 5


class Vowel(StrEnum):
  """Vowel classes the classifier can report."""

  A = "A"
  E = "E"
  I = "I"  # noqa: E741
  O = "O"  # noqa: E741
  U = "U"


class VowelRange(BaseModel):
  """Typical F1 and F2 span of a vowel, in Hz."""

  f1: tuple[float, float]
  f2: tuple[float, float]

  model_config = {"frozen": True}

  @property
  def centre(self) -> tuple[float, float]:
    return (sum(self.f1) / 2, sum(self.f2) / 2)

  @property
  def half_width(self) -> tuple[float, float]:
    return ((self.f1[1] - self.f1[0]) / 2, (self.f2[1] - self.f2[0]) / 2)


VOWEL_RANGES: dict[Vowel, VowelRange] = {
  Vowel.A: VowelRange(f1=(700, 900), f2=(1100, 1300)),
  Vowel.E: VowelRange(f1=(400, 600), f2=(1700, 2300)),
  Vowel.I: VowelRange(f1=(200, 400), f2=(2000, 3000)),
  Vowel.O: VowelRange(f1=(400, 600), f2=(800, 1200)),
  Vowel.U: VowelRange(f1=(200, 400), f2=(600, 1000)),
}


class FormantEstimate(BaseModel):
  """First and second formant frequencies in Hz (0/0 when none were found)."""

  f1: float = 0.0
  f2: float = 0.0

  model_config = {"frozen": True}


class VowelResult(BaseModel):
  """Classification of one frame (or of a smoothed window)."""

  vowel: Vowel | None
  confidence: float = Field(ge=0.0, le=1.0)
  formants: FormantEstimate

  model_config = {"frozen": True}


def find_peaks(spectrum: npt.ArrayLike, min_distance: int = 5) -> list[int]:
  """Indices that are >= every neighbour within ``min_distance`` bins.

  Only indices whose whole neighbourhood lies inside the array are
  considered. Flat stretches yield a peak at every index.
  """
  x = np.asarray(spectrum, dtype=np.float64)
  n = len(x)
  if n < 2 * min_distance + 1:
    return []
  local_max = ndimage.maximum_filter1d(x, size=2 * min_distance + 1, mode="nearest")
  interior = np.arange(min_distance, n - min_distance)
  return [int(i) for i in interior[x[interior] >= local_max[interior]]]


def extract_formants(magnitudes: npt.ArrayLike, sample_rate: float) -> FormantEstimate:
  """Pick F1 and F2 from a single-sided magnitude spectrum.

  Peaks are searched below 3000 Hz. F1 is the strongest peak below 900 Hz
  (else the strongest overall); F2 is the strongest peak above F1 and below
  3000 Hz, falling back to any stronger-ranked peak. The pair is swapped if
  it comes out descending.

  Peaks sitting on a flat neighbourhood do not count, and a spectrum with no
  bin above ``MIN_FORMANT_MAGNITUDE`` has no formants.

  Args:
    magnitudes: Linear magnitudes of bins spanning 0 .. sample_rate/2.
    sample_rate: Sample rate of the analyzed audio.

  Returns:
    The formant pair, 0/0 when fewer than two peaks exist.
  """
  mags = np.nan_to_num(np.asarray(magnitudes, dtype=np.float64))
  n = len(mags)
  if n == 0 or mags.max() < MIN_FORMANT_MAGNITUDE:
    return FormantEstimate()

  nyquist = sample_rate / 2
  f1_max_idx = math.floor(F1_MAX_HZ / nyquist * n)
  f2_max_idx = math.floor(F2_MAX_HZ / nyquist * n)

  band = mags[:f2_max_idx]
  peaks = find_peaks(band, FORMANT_PEAK_DISTANCE)
  if peaks:
    local_min = ndimage.minimum_filter1d(
      band, size=2 * FORMANT_PEAK_DISTANCE + 1, mode="nearest"
    )
    peaks = [i for i in peaks if band[i] > local_min[i]]
  if len(peaks) < 2:
    return FormantEstimate()

  order = np.argsort(-mags[peaks], kind="stable")
  ranked = [peaks[i] for i in order]

  f1_idx = next((i for i in ranked if i < f1_max_idx), ranked[0])
  f2_idx = next(
    (i for i in ranked if f1_idx < i < f2_max_idx),
    next((i for i in ranked if i > f1_idx), ranked[1]),
  )
  if f1_idx > f2_idx:
    f1_idx, f2_idx = f2_idx, f1_idx

  bin_hz = sample_rate / (n * 2)
  return FormantEstimate(f1=f1_idx * bin_hz, f2=f2_idx * bin_hz)


def vowel_distance(formants: FormantEstimate, vowel_range: VowelRange) -> float:
  """Euclidean distance to a vowel centre in half-width units per axis."""
  c1, c2 = vowel_range.centre
  w1, w2 = vowel_range.half_width
  d1 = (formants.f1 - c1) / (w1 or 50.0)
  d2 = (formants.f2 - c2) / (w2 or 50.0)
  return math.hypot(d1, d2)


def classify_vowel(formants: FormantEstimate) -> VowelResult:
  """Nearest reference vowel with ``confidence = max(0, 1 - distance / 2)``.

  Formants below 50 Hz (F1) or 100 Hz (F2) are treated as silence.
  """
  if formants.f1 < MIN_F1_HZ or formants.f2 < MIN_F2_HZ:
    return VowelResult(vowel=None, confidence=0.0, formants=formants)

  distances = {
    vowel: vowel_distance(formants, vowel_range)
    for vowel, vowel_range in VOWEL_RANGES.items()
  }
  closest = min(distances, key=distances.__getitem__)
  confidence = max(0.0, 1.0 - distances[closest] / 2)
  return VowelResult(vowel=closest, confidence=confidence, formants=formants)


class VowelDetector:
  """Majority-vote smoothing of per-frame vowel classifications.

  Keeps the last ``window_size`` frame results. Not safe for concurrent
  updates.
  """

  def __init__(self, window_size: int = DETECTOR_WINDOW) -> None:
    """Initialize the detector.

    Args:
      window_size: Number of recent frames that vote.
    """
    if window_size <= 0:
      msg = f"window_size must be positive, got {window_size}"
      raise ValueError(msg)
    self.window_size = window_size
    self._history: deque[VowelResult] = deque(maxlen=window_size)

  def __len__(self) -> int:
    return len(self._history)

  def update(self, formants: FormantEstimate) -> VowelResult:
    """Classify a frame and return the smoothed result.

    The vowel is the most frequent non-silent class in the window (earliest
    seen wins a tie) and the confidence is the mean over all frames in the
    window, silent ones included.

    Args:
      formants: Formants of the newest frame.

    Returns:
      The smoothed classification carrying the newest frame's formants.
    """
    current = classify_vowel(formants)
    self._history.append(current)

    avg_confidence = sum(r.confidence for r in self._history) / len(self._history)
    votes = Counter(r.vowel for r in self._history if r.vowel is not None)
    best = votes.most_common(1)[0][0] if votes else None

    return VowelResult(
      vowel=best, confidence=avg_confidence, formants=current.formants
    )

  def update_from_spectrum(
    self, magnitudes: npt.ArrayLike, sample_rate: float
  ) -> VowelResult:
    """Extract formants from a spectrum frame and update."""
    return self.update(extract_formants(magnitudes, sample_rate))

  def clear(self) -> None:
    """Forget all history."""
    self._history.clear()
