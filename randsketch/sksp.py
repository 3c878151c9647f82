"""Sketching sparse matrices with dense sketching operators."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np

from randsketch.conversions import COOMatrix, CSRMatrix
from randsketch.csc import CSCMatrix, IndexBase
from randsketch.dense import BLASFriendlyOperator, DenseSkOp, submatrix_as_blackbox

__all__ = [
    "Op",
    "dims_before_op",
    "lsksp3",
    "rsksp3",
    "sketch_sparse_left",
    "sketch_sparse_right",
]

SparseMatrix = Union[CSCMatrix, CSRMatrix, COOMatrix]
DenseOperator = Union[DenseSkOp, BLASFriendlyOperator]


class Op(Enum):
    """Whether an operand is used as given or transposed."""

    NoTrans = "N"
    Trans = "T"


def dims_before_op(m: int, n: int, op: Op) -> Tuple[int, int]:
    """Dimensions of ``X`` such that ``op(X)`` is ``m`` x ``n``."""
    return (m, n) if op is Op.NoTrans else (n, m)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


_EMPTY_INDEX = np.empty(0, dtype=np.int64)


def _triplets(a: SparseMatrix) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Zero-based (rows, cols, vals) of every structural nonzero of ``a``."""
    shift = 1 if a.index_base is IndexBase.One else 0
    if a.nnz == 0:
        return _EMPTY_INDEX, _EMPTY_INDEX, np.empty(0, dtype=np.float64)
    if isinstance(a, CSCMatrix):
        colptr = np.asarray(a.colptr[: a.n_cols + 1], dtype=np.int64)
        start, end = int(colptr[0]), int(colptr[-1])
        cols = np.repeat(np.arange(a.n_cols, dtype=np.int64), np.diff(colptr))
        rows = np.asarray(a.rowidxs[start:end], dtype=np.int64) - shift
        vals = np.asarray(a.vals[start:end])
    elif isinstance(a, CSRMatrix):
        rowptr = np.asarray(a.rowptr[: a.n_rows + 1], dtype=np.int64)
        start, end = int(rowptr[0]), int(rowptr[-1])
        rows = np.repeat(np.arange(a.n_rows, dtype=np.int64), np.diff(rowptr))
        cols = np.asarray(a.colidxs[start:end], dtype=np.int64) - shift
        vals = np.asarray(a.vals[start:end])
    elif isinstance(a, COOMatrix):
        rows = np.asarray(a.rows[: a.nnz], dtype=np.int64) - shift
        cols = np.asarray(a.cols[: a.nnz], dtype=np.int64) - shift
        vals = np.asarray(a.vals[: a.nnz])
    else:
        raise TypeError(f"unsupported sparse matrix type {type(a).__name__}")
    return rows, cols, vals


def _sparse_block(
    a: SparseMatrix, ro: int, co: int, n_rows: int, n_cols: int, op: Op
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Triplets of ``op(A[ro:ro+n_rows, co:co+n_cols])``."""
    rows, cols, vals = _triplets(a)
    keep = (rows >= ro) & (rows < ro + n_rows) & (cols >= co) & (cols < co + n_cols)
    rows, cols, vals = rows[keep] - ro, cols[keep] - co, vals[keep]
    if op is Op.Trans:
        rows, cols = cols, rows
    return rows, cols, vals


def _dense_block(
    s: DenseOperator, ro: int, co: int, n_rows: int, n_cols: int, op: Op
) -> np.ndarray:
    """``op(S[ro:ro+n_rows, co:co+n_cols])`` from the explicit buffer of ``s``."""
    buff = np.asarray(s.buff)
    _require(
        buff.ndim == 2 and buff.shape[0] >= s.n_rows and buff.shape[1] >= s.n_cols,
        "operator buffer does not match its dimensions",
    )
    block = buff[ro : ro + n_rows, co : co + n_cols]
    return block.T if op is Op.Trans else block


def _check_common(dims: Tuple[int, ...], offsets: Tuple[int, ...]) -> None:
    _require(all(x >= 0 for x in dims), "dimensions must be nonnegative")
    _require(all(x >= 0 for x in offsets), "offsets must be nonnegative")


def _update(
    b: Optional[np.ndarray], alpha: float, prod: np.ndarray, beta: float, shape: Tuple[int, int]
) -> np.ndarray:
    if b is None:
        _require(beta == 0, "b must be given when beta is nonzero")
        b = np.zeros(shape, dtype=np.float64)
    elif not isinstance(b, np.ndarray):
        b = np.asarray(b, dtype=np.float64)
    _require(b.shape == shape, f"b must have shape {shape}, got {b.shape}")
    if beta == 0:
        b[...] = alpha * prod
    else:
        b[...] = alpha * prod + beta * b
    return b


def lsksp3(
    op_s: Op,
    op_a: Op,
    d: int,
    n: int,
    m: int,
    alpha: float,
    s: DenseOperator,
    ro_s: int,
    co_s: int,
    a: SparseMatrix,
    ro_a: int,
    co_a: int,
    beta: float,
    b: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compute ``B = alpha * op(submat(S)) @ op(submat(A)) + beta * B`` in place.

    ``B`` is ``d`` x ``n``, ``op(submat(S))`` is ``d`` x ``m`` and
    ``op(submat(A))`` is ``m`` x ``n``. If ``beta`` is zero the contents of
    ``b`` are ignored, and ``b`` may be omitted. Returns ``b``.
    """
    _check_common((d, n, m), (ro_s, co_s, ro_a, co_a))
    rows_s, cols_s = dims_before_op(d, m, op_s)
    if isinstance(s, DenseSkOp) and s.buff is None:
        sub = submatrix_as_blackbox(s, rows_s, cols_s, ro_s, co_s)
        return lsksp3(op_s, op_a, d, n, m, alpha, sub, 0, 0, a, ro_a, co_a, beta, b)
    _require(s.buff is not None, "operator has no explicit buffer")
    rows_a, cols_a = dims_before_op(m, n, op_a)
    _require(a.n_rows >= rows_a + ro_a, "submatrix rows exceed A")
    _require(a.n_cols >= cols_a + co_a, "submatrix columns exceed A")
    _require(s.n_rows >= rows_s + ro_s, "submatrix rows exceed S")
    _require(s.n_cols >= cols_s + co_s, "submatrix columns exceed S")

    prod = np.zeros((d, n), dtype=np.float64)
    if alpha != 0:
        s_sub = _dense_block(s, ro_s, co_s, rows_s, cols_s, op_s)
        rows, cols, vals = _sparse_block(a, ro_a, co_a, rows_a, cols_a, op_a)
        if vals.size:
            prod_t = prod.T
            np.add.at(prod_t, cols, (s_sub[:, rows] * vals).T)
    return _update(b, alpha, prod, beta, (d, n))


def rsksp3(
    op_a: Op,
    op_s: Op,
    m: int,
    d: int,
    n: int,
    alpha: float,
    a: SparseMatrix,
    ro_a: int,
    co_a: int,
    s: DenseOperator,
    ro_s: int,
    co_s: int,
    beta: float,
    b: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compute ``B = alpha * op(submat(A)) @ op(submat(S)) + beta * B`` in place.

    ``B`` is ``m`` x ``d``, ``op(submat(A))`` is ``m`` x ``n`` and
    ``op(submat(S))`` is ``n`` x ``d``. If ``beta`` is zero the contents of
    ``b`` are ignored, and ``b`` may be omitted. Returns ``b``.
    """
    _check_common((m, d, n), (ro_s, co_s, ro_a, co_a))
    rows_s, cols_s = dims_before_op(n, d, op_s)
    if isinstance(s, DenseSkOp) and s.buff is None:
        sub = submatrix_as_blackbox(s, rows_s, cols_s, ro_s, co_s)
        return rsksp3(op_a, op_s, m, d, n, alpha, a, ro_a, co_a, sub, 0, 0, beta, b)
    _require(s.buff is not None, "operator has no explicit buffer")
    rows_a, cols_a = dims_before_op(m, n, op_a)
    _require(a.n_rows >= rows_a + ro_a, "submatrix rows exceed A")
    _require(a.n_cols >= cols_a + co_a, "submatrix columns exceed A")
    _require(s.n_rows >= rows_s + ro_s, "submatrix rows exceed S")
    _require(s.n_cols >= cols_s + co_s, "submatrix columns exceed S")

    prod = np.zeros((m, d), dtype=np.float64)
    if alpha != 0:
        s_sub = _dense_block(s, ro_s, co_s, rows_s, cols_s, op_s)
        rows, cols, vals = _sparse_block(a, ro_a, co_a, rows_a, cols_a, op_a)
        if vals.size:
            np.add.at(prod, rows, vals[:, None] * s_sub[cols, :])
    return _update(b, alpha, prod, beta, (m, d))


def sketch_sparse_left(
    op_s: Op,
    op_a: Op,
    d: int,
    n: int,
    m: int,
    alpha: float,
    s: DenseOperator,
    ro_s: int,
    co_s: int,
    a: SparseMatrix,
    beta: float,
    b: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compute ``B = alpha * op(submat(S)) @ op(A) + beta * B``."""
    return lsksp3(op_s, op_a, d, n, m, alpha, s, ro_s, co_s, a, 0, 0, beta, b)


def sketch_sparse_right(
    op_a: Op,
    op_s: Op,
    m: int,
    d: int,
    n: int,
    alpha: float,
    a: SparseMatrix,
    s: DenseOperator,
    ro_s: int,
    co_s: int,
    beta: float,
    b: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compute ``B = alpha * op(A) @ op(submat(S)) + beta * B``."""
    return rsksp3(op_a, op_s, m, d, n, alpha, a, 0, 0, s, ro_s, co_s, beta, b)