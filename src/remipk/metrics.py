# src/remipk/metrics.py
import numpy as np
from typing import Tuple

def cmax(C: np.ndarray) -> float:
    """Global maximum concentration (ug/mL)."""
    return float(np.max(C))

def tmax(t: np.ndarray, C: np.ndarray) -> float:
    """Time of maximum concentration (min). First occurrence on ties."""
    return float(t[int(np.argmax(C))])

def cmax_tmax(t: np.ndarray, C: np.ndarray) -> Tuple[float, float]:
    """Return Cmax (ug/mL) and Tmax (min)."""
    idx = np.argmax(C)
    return float(C[idx]), float(t[idx])

def auc_trapz(t: np.ndarray, C: np.ndarray) -> float:
    """Area Under the Curve (AUC) via trapezoidal rule (ug*min/mL)."""
    return float(np.trapezoid(C, t))

def time_above(t: np.ndarray, C: np.ndarray, threshold: float) -> float:
    """
    Minutes spent at or above a concentration threshold, counting each
    sampling interval whose starting sample is at or above it.
    """
    if len(t) < 2:
        return 0.0
    widths = np.diff(t)
    return float(np.sum(widths[C[:-1] >= threshold]))

def mean_abs_diff(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.mean(np.abs(np.asarray(a) - np.asarray(b))))

def max_abs_diff(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.max(np.abs(np.asarray(a) - np.asarray(b))))

def rmse(a: np.ndarray, b: np.ndarray) -> float:
    """Root-mean-square difference between two traces on the same grid."""
    d = np.asarray(a) - np.asarray(b)
    return float(np.sqrt(np.mean(d * d)))

def relative_diff_pct(a: np.ndarray, reference: np.ndarray, floor: float = 1e-6) -> np.ndarray:
    """
    Pointwise |a - reference| / max(reference, floor) * 100.
    The floor keeps samples where the reference is ~0 from blowing up.
    """
    reference = np.asarray(reference)
    return np.abs(np.asarray(a) - reference) / np.maximum(reference, floor) * 100.0
