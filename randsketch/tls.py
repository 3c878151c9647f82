"""Total least squares on dense data, solved directly and after a Gaussian sketch."""

from __future__ import annotations

import re
import sys
import time
from typing import List, Optional, Sequence

import numpy as np

from randsketch.dense import DenseDist, DenseSkOp, Layout, fill_dense
from randsketch.philox import RNGState

__all__ = ["init_noisy_data", "total_least_squares", "main"]

_DEFAULT_M = 10000
_DEFAULT_N = 500
_SKETCH_SEED = 1997


def _as_colmajor(dist: DenseDist, state: RNGState) -> np.ndarray:
    """Sample from ``dist`` and read the raw buffer as a column-major matrix."""
    mat, _ = fill_dense(dist, state)
    order = "F" if dist.natural_layout is Layout.ColMajor else "C"
    flat = mat.ravel(order=order)
    return flat.reshape((dist.n_rows, dist.n_cols), order="F")


def init_noisy_data(m: int, n: int, d: int = 1) -> np.ndarray:
    """Build ``[A | B]`` with Gaussian ``A`` and ``B = A @ ones + noise``.

    ``A`` is ``m`` x ``n`` sampled with seed 0 and the noise is ``m`` x ``d``
    Gaussian sampled with seed 1. The result is ``m`` x ``(n + d)``.
    """
    if m <= 0 or n <= 0 or d <= 0:
        raise ValueError("m, n and d must be positive")
    a = _as_colmajor(DenseDist(m, n), RNGState(0))
    eps = _as_colmajor(DenseDist(m, d), RNGState(1))
    target_x = np.ones((n, d), dtype=np.float64)
    ab = np.empty((m, n + d), dtype=np.float64, order="F")
    ab[:, :n] = a
    ab[:, n:] = a @ target_x + eps
    return ab


def total_least_squares(ab: np.ndarray, n: int) -> np.ndarray:
    """Solve ``(A + E) x = b + r`` minimising ``||[E, r]||_F``.

    ``ab`` is ``m`` x ``(n + 1)``; its first ``n`` columns hold ``A`` and its
    last column holds ``b``. Returns ``x`` of length ``n``.
    """
    arr = np.asarray(ab, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError("ab must be a 2-D array")
    if n <= 0:
        raise ValueError("n must be positive")
    if arr.shape[1] != n + 1:
        raise ValueError(f"ab must have {n + 1} columns, got {arr.shape[1]}")
    m = arr.shape[0]
    vt = np.linalg.svd(arr, full_matrices=m < n + 1)[2]
    last = vt[n]
    scale = last[n]
    return -last[:n] / scale


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def _seconds_since(start: float) -> float:
    return int((time.perf_counter() - start) * 1000) / 1000


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Compare sketched and classical total least squares on random data."""
    args: List[str] = list(sys.argv[1:] if argv is None else argv)
    if not args:
        m, n = _DEFAULT_M, _DEFAULT_N
    elif len(args) == 2:
        m, n = _atoi(args[0]), _atoi(args[1])
        if n > m:
            print("Make sure number of rows are greater than number of cols")
            return 0
    else:
        print("Invalid arguments")
        return 1

    sk_dim = 2 * (n + 1)
    ab = init_noisy_data(m, n, 1)

    print(f"\nDimensions of the augmented matrix [A|B]   :  {m} by {n + 1}")
    print(f"Embedding dimension                        :  {sk_dim}")

    start = time.perf_counter()
    sketch = DenseSkOp(DenseDist(sk_dim, m), RNGState(_SKETCH_SEED))
    s_mat = sketch.fill()
    sampling_time = _seconds_since(start)
    print(f"\nTime to sample S                           :  {sampling_time:g} seconds")

    start = time.perf_counter()
    sab = s_mat @ ab
    sketching_time = _seconds_since(start)
    print(f"Time to compute SAB = S * AB               :  {sketching_time:g} seconds")

    start = time.perf_counter()
    sketch_x = total_least_squares(sab, n)
    sketched_solve_time = _seconds_since(start)
    print(f"Time to perform TLS on sketched data       :  {sketched_solve_time:g} seconds\n")

    total_randomized_time = sampling_time + sketching_time + sketched_solve_time
    print(f"Total time for the randomized TLS method   :  {total_randomized_time:g} seconds")

    start = time.perf_counter()
    true_x = total_least_squares(ab, n)
    true_solve_time = _seconds_since(start)
    print(f"Time for the classical TLS method          :  {true_solve_time:g} seconds")

    speedup = true_solve_time / total_randomized_time if total_randomized_time else float("inf")
    print(f"Speedup of sketched vs classical method    :  {speedup:g}\n")

    distance = float(np.linalg.norm(sketch_x - true_x))
    scale = float(np.linalg.norm(true_x))
    rel = distance / scale if scale else float("inf")
    print(f"||sketch_x - true_x|| / ||true_x||         :  {rel:g}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())