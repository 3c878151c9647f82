"""CSR and COO sparse matrices, and conversions between sparse formats."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

import numpy as np

from randsketch.csc import CSCMatrix, IndexBase, _as_indices, _as_values

__all__ = [
    "NonzeroSort",
    "CSRMatrix",
    "COOMatrix",
    "dense_to_csr",
    "coo_from_diag",
    "sort_coo_data",
    "coo_to_csc",
    "csc_to_coo",
    "coo_to_csr",
    "csr_to_coo",
    "transpose_as_csr",
    "transpose_as_csc",
    "reindex_inplace",
]


class NonzeroSort(Enum):
    """The order in which a COO matrix stores its nonzeros."""

    CSC = "C"
    CSR = "R"
    NONE = "N"


def _check_reservable(*arrays: Optional[np.ndarray], own_memory: bool) -> None:
    if not own_memory:
        raise ValueError("matrix does not own its memory")
    if any(arr is not None for arr in arrays):
        raise ValueError("matrix arrays are already allocated")


@dataclass(eq=False)
class CSRMatrix:
    """A sparse matrix in compressed sparse row form."""

    n_rows: int
    n_cols: int
    nnz: int = 0
    vals: Optional[np.ndarray] = None
    rowptr: Optional[np.ndarray] = None
    colidxs: Optional[np.ndarray] = None
    index_base: IndexBase = IndexBase.Zero
    own_memory: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.n_rows < 0 or self.n_cols < 0:
            raise ValueError("matrix dimensions must be nonnegative")
        self.vals = _as_values(self.vals)
        self.rowptr = _as_indices(self.rowptr)
        self.colidxs = _as_indices(self.colidxs)
        if self.own_memory is None:
            self.own_memory = all(
                arr is None for arr in (self.vals, self.rowptr, self.colidxs)
            )

    def _reserve(self, nnz: int) -> None:
        _check_reservable(self.colidxs, self.vals, own_memory=bool(self.own_memory))
        if nnz < 0:
            raise ValueError("nnz must be nonnegative")
        if self.rowptr is None:
            self.rowptr = np.zeros(self.n_rows + 1, dtype=np.int64)
        self.nnz = nnz
        if nnz > 0:
            self.colidxs = np.zeros(nnz, dtype=np.int64)
            self.vals = np.zeros(nnz, dtype=np.float64)

    def to_dense(self) -> np.ndarray:
        """Return the matrix as a dense ``(n_rows, n_cols)`` array."""
        dtype = self.vals.dtype if self.vals is not None else np.float64
        out = np.zeros((self.n_rows, self.n_cols), dtype=dtype)
        if self.nnz == 0:
            return out
        rowptr = self.rowptr[: self.n_rows + 1]
        start, end = int(rowptr[0]), int(rowptr[-1])
        rows = np.repeat(np.arange(self.n_rows), np.diff(rowptr))
        shift = 1 if self.index_base is IndexBase.One else 0
        out[rows, self.colidxs[start:end] - shift] = self.vals[start:end]
        return out


@dataclass(eq=False)
class COOMatrix:
    """A sparse matrix in coordinate form."""

    n_rows: int
    n_cols: int
    nnz: int = 0
    vals: Optional[np.ndarray] = None
    rows: Optional[np.ndarray] = None
    cols: Optional[np.ndarray] = None
    index_base: IndexBase = IndexBase.Zero
    sort: NonzeroSort = NonzeroSort.NONE
    own_memory: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.n_rows < 0 or self.n_cols < 0:
            raise ValueError("matrix dimensions must be nonnegative")
        self.vals = _as_values(self.vals)
        self.rows = _as_indices(self.rows)
        self.cols = _as_indices(self.cols)
        if self.own_memory is None:
            self.own_memory = all(
                arr is None for arr in (self.vals, self.rows, self.cols)
            )

    def _reserve(self, nnz: int) -> None:
        _check_reservable(self.rows, self.cols, self.vals, own_memory=bool(self.own_memory))
        if nnz < 0:
            raise ValueError("nnz must be nonnegative")
        self.nnz = nnz
        if nnz > 0:
            self.rows = np.zeros(nnz, dtype=np.int64)
            self.cols = np.zeros(nnz, dtype=np.int64)
            self.vals = np.zeros(nnz, dtype=np.float64)

    def to_dense(self) -> np.ndarray:
        """Return the matrix as a dense ``(n_rows, n_cols)`` array."""
        dtype = self.vals.dtype if self.vals is not None else np.float64
        out = np.zeros((self.n_rows, self.n_cols), dtype=dtype)
        if self.nnz == 0:
            return out
        shift = 1 if self.index_base is IndexBase.One else 0
        n = self.nnz
        out[self.rows[:n] - shift, self.cols[:n] - shift] = self.vals[:n]
        return out


SparseMatrix = Union[CSCMatrix, CSRMatrix, COOMatrix]


def _require_zero_base(*mats: SparseMatrix) -> None:
    for mat in mats:
        if mat.index_base is not IndexBase.Zero:
            raise ValueError("conversion requires zero-based indexing")


def dense_to_csr(mat: Any, abs_tol: float = 0.0) -> CSRMatrix:
    """Build a CSR matrix from the entries of a 2-D array whose magnitude exceeds ``abs_tol``."""
    arr = np.asarray(mat)
    if arr.ndim != 2:
        raise ValueError("mat must be a 2-D array")
    keep = np.abs(arr) > abs_tol
    _, col_idx = np.nonzero(keep)
    spmat = CSRMatrix(arr.shape[0], arr.shape[1])
    spmat._reserve(len(col_idx))
    spmat.rowptr[1:] = np.cumsum(keep.sum(axis=1))
    if spmat.nnz:
        spmat.colidxs[:] = col_idx
        spmat.vals = arr[keep].copy()
    return spmat


def coo_from_diag(diag: Any, offset: int, n_rows: int, n_cols: int) -> COOMatrix:
    """A COO matrix holding ``diag`` on the diagonal ``offset`` steps above the main one."""
    values = np.asarray(diag)
    if values.ndim != 1:
        raise ValueError("diag must be one-dimensional")
    length = len(values)
    idx = np.arange(length, dtype=np.int64)
    if offset >= 0:
        rows, cols = idx, idx + offset
    else:
        rows, cols = idx - offset, idx
    if length and (rows[-1] >= n_rows or cols[-1] >= n_cols):
        raise ValueError("diagonal does not fit in the matrix")
    coo = COOMatrix(n_rows, n_cols)
    coo._reserve(length)
    if length:
        coo.rows[:] = rows
        coo.cols[:] = cols
        coo.vals = values.copy()
    return coo


def sort_coo_data(order: NonzeroSort, coo: COOMatrix) -> None:
    """Reorder the nonzeros of ``coo`` in place into CSC or CSR order."""
    if order is NonzeroSort.NONE or coo.sort is order:
        coo.sort = order
        return
    n = coo.nnz
    if n:
        rows, cols = coo.rows[:n], coo.cols[:n]
        if order is NonzeroSort.CSR:
            perm = np.lexsort((cols, rows))
        else:
            perm = np.lexsort((rows, cols))
        coo.rows[:n] = rows[perm]
        coo.cols[:n] = cols[perm]
        coo.vals[:n] = coo.vals[:n][perm]
    coo.sort = order


def coo_to_csc(coo: COOMatrix) -> CSCMatrix:
    """Convert to CSC; ``coo`` is sorted into CSC order as a side effect."""
    _require_zero_base(coo)
    sort_coo_data(NonzeroSort.CSC, coo)
    csc = CSCMatrix(coo.n_rows, coo.n_cols)
    csc.reserve(coo.nnz)
    n = coo.nnz
    if n:
        csc.rowidxs[:] = coo.rows[:n]
        csc.vals = coo.vals[:n].copy()
        csc.colptr[:] = np.searchsorted(coo.cols[:n], np.arange(coo.n_cols + 1), side="left")
    return csc


def csc_to_coo(csc: CSCMatrix) -> COOMatrix:
    """Convert to COO with nonzeros in CSC order."""
    _require_zero_base(csc)
    coo = COOMatrix(csc.n_rows, csc.n_cols)
    coo._reserve(csc.nnz)
    if csc.nnz:
        colptr = csc.colptr[: csc.n_cols + 1]
        start, end = int(colptr[0]), int(colptr[-1])
        coo.rows[:] = csc.rowidxs[start:end]
        coo.cols[:] = np.repeat(np.arange(csc.n_cols), np.diff(colptr))
        coo.vals = csc.vals[start:end].copy()
    coo.sort = NonzeroSort.CSC
    return coo


def coo_to_csr(coo: COOMatrix) -> CSRMatrix:
    """Convert to CSR; ``coo`` is sorted into CSR order as a side effect."""
    _require_zero_base(coo)
    sort_coo_data(NonzeroSort.CSR, coo)
    csr = CSRMatrix(coo.n_rows, coo.n_cols)
    csr._reserve(coo.nnz)
    n = coo.nnz
    if n:
        csr.colidxs[:] = coo.cols[:n]
        csr.vals = coo.vals[:n].copy()
        csr.rowptr[:] = np.searchsorted(coo.rows[:n], np.arange(coo.n_rows + 1), side="left")
    return csr


def csr_to_coo(csr: CSRMatrix) -> COOMatrix:
    """Convert to COO with nonzeros in CSR order."""
    _require_zero_base(csr)
    coo = COOMatrix(csr.n_rows, csr.n_cols)
    coo._reserve(csr.nnz)
    if csr.nnz:
        rowptr = csr.rowptr[: csr.n_rows + 1]
        start, end = int(rowptr[0]), int(rowptr[-1])
        coo.rows[:] = np.repeat(np.arange(csr.n_rows), np.diff(rowptr))
        coo.cols[:] = csr.colidxs[start:end]
        coo.vals = csr.vals[start:end].copy()
    coo.sort = NonzeroSort.CSR
    return coo


def transpose_as_csr(a: CSCMatrix, share_memory: bool = True) -> CSRMatrix:
    """The transpose of a CSC matrix, as CSR; shares ``a``'s arrays unless told otherwise."""
    if share_memory:
        return CSRMatrix(
            a.n_cols, a.n_rows, a.nnz, a.vals, a.colptr, a.rowidxs,
            a.index_base, own_memory=False,
        )
    at = CSRMatrix(a.n_cols, a.n_rows, index_base=a.index_base)
    at.nnz = a.nnz
    at.rowptr = None if a.colptr is None else a.colptr[: a.n_cols + 1].copy()
    if a.nnz:
        at.colidxs = a.rowidxs[: a.nnz].copy()
        at.vals = a.vals[: a.nnz].copy()
    return at


def transpose_as_csc(a: CSRMatrix, share_memory: bool = True) -> CSCMatrix:
    """The transpose of a CSR matrix, as CSC; shares ``a``'s arrays unless told otherwise."""
    if share_memory:
        return CSCMatrix(
            a.n_cols, a.n_rows, a.nnz, a.vals, a.colidxs, a.rowptr,
            a.index_base, own_memory=False,
        )
    at = CSCMatrix(a.n_cols, a.n_rows, index_base=a.index_base)
    at.nnz = a.nnz
    at.colptr = None if a.rowptr is None else a.rowptr[: a.n_rows + 1].copy()
    if a.nnz:
        at.rowidxs = a.colidxs[: a.nnz].copy()
        at.vals = a.vals[: a.nnz].copy()
    return at


def reindex_inplace(a: SparseMatrix, desired: IndexBase) -> None:
    """Switch the index arrays of ``a`` between zero- and one-based labelling."""
    if a.index_base is desired:
        return
    step = -1 if a.index_base is IndexBase.One else 1
    n = a.nnz
    if isinstance(a, CSCMatrix):
        arrays = [a.rowidxs]
    elif isinstance(a, CSRMatrix):
        arrays = [a.colidxs]
    elif isinstance(a, COOMatrix):
        arrays = [a.rows, a.cols]
    else:
        raise TypeError(f"unsupported sparse matrix type {type(a).__name__}")
    if n:
        for arr in arrays:
            arr[:n] += step
    a.index_base = desired