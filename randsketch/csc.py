"""Compressed sparse column matrices and their dense conversions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np

from randsketch.dense import Layout

__all__ = ["IndexBase", "CSCMatrix", "csc_to_dense", "dense_to_csc"]


class IndexBase(Enum):
    """Whether index arrays count from zero or from one."""

    Zero = 0
    One = 1


def _as_values(value: Any) -> Optional[np.ndarray]:
    if value is None or isinstance(value, np.ndarray):
        return value
    return np.asarray(value, dtype=np.float64)


def _as_indices(value: Any) -> Optional[np.ndarray]:
    if value is None or isinstance(value, np.ndarray):
        return value
    return np.asarray(value, dtype=np.int64)


@dataclass(eq=False)
class CSCMatrix:
    """A sparse matrix in compressed sparse column form.

    Column ``j`` holds ``colptr[j+1] - colptr[j]`` structural nonzeros, whose
    rows are ``rowidxs[colptr[j]:colptr[j+1]]`` and whose values are the
    matching slice of ``vals``.

    When ``own_memory`` is not given it is true exactly when no arrays were
    supplied; only a matrix that owns its memory may have arrays reserved.
    """

    n_rows: int
    n_cols: int
    nnz: int = 0
    vals: Optional[np.ndarray] = None
    rowidxs: Optional[np.ndarray] = None
    colptr: Optional[np.ndarray] = None
    index_base: IndexBase = IndexBase.Zero
    own_memory: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.n_rows < 0 or self.n_cols < 0:
            raise ValueError("matrix dimensions must be nonnegative")
        self.vals = _as_values(self.vals)
        self.rowidxs = _as_indices(self.rowidxs)
        self.colptr = _as_indices(self.colptr)
        if self.own_memory is None:
            self.own_memory = all(
                arr is None for arr in (self.vals, self.rowidxs, self.colptr)
            )

    def reserve(self, nnz: int) -> None:
        """Allocate zeroed arrays for ``nnz`` structural nonzeros.

        An existing ``colptr`` is kept; otherwise one of length ``n_cols + 1``
        is allocated. ``rowidxs`` and ``vals`` are allocated only when
        ``nnz`` is positive.
        """
        if not self.own_memory:
            raise ValueError("matrix does not own its memory")
        if self.rowidxs is not None:
            raise ValueError("rowidxs is already allocated")
        if self.vals is not None:
            raise ValueError("vals is already allocated")
        if nnz < 0:
            raise ValueError("nnz must be nonnegative")
        if self.colptr is None:
            self.colptr = np.zeros(self.n_cols + 1, dtype=np.int64)
        self.nnz = nnz
        if nnz > 0:
            self.rowidxs = np.zeros(nnz, dtype=np.int64)
            self.vals = np.zeros(nnz, dtype=np.float64)


def _order(layout: Layout) -> str:
    return "F" if layout is Layout.ColMajor else "C"


def csc_to_dense(spmat: CSCMatrix, layout: Layout = Layout.ColMajor) -> np.ndarray:
    """Return the dense ``(n_rows, n_cols)`` array stored in ``layout`` order."""
    if spmat.index_base is not IndexBase.Zero:
        raise ValueError("csc_to_dense requires zero-based indexing")
    dtype = spmat.vals.dtype if spmat.vals is not None else np.float64
    out = np.zeros((spmat.n_rows, spmat.n_cols), dtype=dtype, order=_order(layout))
    if spmat.nnz == 0:
        return out
    if spmat.colptr is None or spmat.rowidxs is None or spmat.vals is None:
        raise ValueError("matrix has nonzeros but missing arrays")
    colptr = spmat.colptr[: spmat.n_cols + 1]
    start, end = int(colptr[0]), int(colptr[-1])
    cols = np.repeat(np.arange(spmat.n_cols), np.diff(colptr))
    out[spmat.rowidxs[start:end], cols] = spmat.vals[start:end]
    return out


def dense_to_csc(
    layout: Layout,
    mat: Any,
    abs_tol: float = 0.0,
    n_rows: Optional[int] = None,
    n_cols: Optional[int] = None,
) -> CSCMatrix:
    """Build a CSC matrix from the entries of ``mat`` whose magnitude exceeds ``abs_tol``.

    ``mat`` is either a 2-D array (``layout`` is then irrelevant) or a flat
    buffer read in ``layout`` order with the given ``n_rows`` and ``n_cols``.
    """
    arr = np.asarray(mat)
    if arr.ndim == 1:
        if n_rows is None or n_cols is None:
            raise ValueError("a flat buffer needs n_rows and n_cols")
        if n_rows < 0 or n_cols < 0:
            raise ValueError("matrix dimensions must be nonnegative")
        if arr.size < n_rows * n_cols:
            raise ValueError("buffer is too short for the given dimensions")
        arr = arr[: n_rows * n_cols].reshape((n_rows, n_cols), order=_order(layout))
    elif arr.ndim == 2:
        if n_rows is not None and n_rows != arr.shape[0]:
            raise ValueError("n_rows does not match the array")
        if n_cols is not None and n_cols != arr.shape[1]:
            raise ValueError("n_cols does not match the array")
        n_rows, n_cols = arr.shape
    else:
        raise ValueError("mat must be a 1-D buffer or a 2-D array")

    by_column = arr.T
    keep = np.abs(by_column) > abs_tol
    _, row_idx = np.nonzero(keep)
    spmat = CSCMatrix(n_rows, n_cols)
    spmat.reserve(len(row_idx))
    spmat.colptr[1:] = np.cumsum(keep.sum(axis=1))
    if spmat.nnz:
        spmat.rowidxs[:] = row_idx
        spmat.vals[:] = by_column[keep]
    return spmat