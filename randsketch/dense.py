"""Dense sketching operators with iid Gaussian or uniform entries."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

import numpy as np

from randsketch.philox import CTR_SIZE, RNGState

__all__ = [
    "Axis",
    "Layout",
    "ScalarDist",
    "DenseDist",
    "DenseSkOp",
    "BLASFriendlyOperator",
    "natural_layout",
    "compute_next_state",
    "fill_dense_submat",
    "fill_dense_unpacked",
    "fill_dense",
    "submatrix_as_blackbox",
]


class Axis(Enum):
    """Which dimension of a matrix is treated as the major one."""

    Short = "S"
    Long = "L"


class Layout(Enum):
    """Storage order of a dense matrix."""

    ColMajor = "C"
    RowMajor = "R"


class ScalarDist(Enum):
    """Mean-zero, variance-one distributions on the reals."""

    Gaussian = "G"
    Uniform = "U"


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


# --- vectorised Philox4x32-10 -------------------------------------------------

_U32 = np.uint64(32)
_MASK32 = np.uint64(0xFFFFFFFF)
_MASK64 = (1 << 64) - 1
_M0 = np.uint64(0xD2511F53)
_M1 = np.uint64(0xCD9E8D57)
_W0 = 0x9E3779B9
_W1 = 0xBB67AE85
_BLOCK_BUDGET = 1 << 18


def _philox_words(base: RNGState, offsets: np.ndarray) -> Tuple[np.ndarray, ...]:
    """Philox output words for counters ``base.counter + offsets``."""
    value = base.counter_value
    lo = np.uint64(value & _MASK64)
    hi = np.uint64((value >> 64) & _MASK64)
    off = offsets.astype(np.uint64)
    low_sum = off + lo
    carry = (low_sum < off).astype(np.uint64)
    high_sum = carry + hi
    c0 = low_sum & _MASK32
    c1 = low_sum >> _U32
    c2 = high_sum & _MASK32
    c3 = high_sum >> _U32
    k0, k1 = base.key
    for round_index in range(10):
        if round_index:
            k0 = (k0 + _W0) & 0xFFFFFFFF
            k1 = (k1 + _W1) & 0xFFFFFFFF
        p0 = c0 * _M0
        p1 = c2 * _M1
        hi0, lo0 = p0 >> _U32, p0 & _MASK32
        hi1, lo1 = p1 >> _U32, p1 & _MASK32
        c0, c1, c2, c3 = hi1 ^ c1 ^ np.uint64(k0), lo1, hi0 ^ c3 ^ np.uint64(k1), lo0
    return c0, c1, c2, c3


def _uneg11(words: np.ndarray) -> np.ndarray:
    signed = words.astype(np.uint32).view(np.int32).astype(np.float64)
    return signed * 2.0**-31 + 2.0**-32


def _u01(words: np.ndarray) -> np.ndarray:
    return words.astype(np.float64) * 2.0**-32 + 2.0**-33


def _generate_blocks(base: RNGState, offsets: np.ndarray, family: ScalarDist) -> np.ndarray:
    """Values for each counter offset; the result has a trailing axis of length 4."""
    a, b, c, d = _philox_words(base, offsets)
    if family is ScalarDist.Uniform:
        return np.stack([_uneg11(a), _uneg11(b), _uneg11(c), _uneg11(d)], axis=-1)
    if family is ScalarDist.Gaussian:
        angle0 = math.pi * _uneg11(a)
        radius0 = np.sqrt(-2.0 * np.log(_u01(b)))
        angle1 = math.pi * _uneg11(c)
        radius1 = np.sqrt(-2.0 * np.log(_u01(d)))
        return np.stack(
            [
                np.sin(angle0) * radius0,
                np.cos(angle0) * radius0,
                np.sin(angle1) * radius1,
                np.cos(angle1) * radius1,
            ],
            axis=-1,
        )
    raise ValueError("Unrecognized distribution.")


# --- distributions --------------------------------------------------------------


def natural_layout(major_axis: Axis, n_rows: int, n_cols: int) -> Layout:
    """The fill order implied by the major axis and the matrix shape."""
    is_wide = n_rows < n_cols
    fa_long = major_axis is Axis.Long
    if is_wide:
        return Layout.RowMajor if fa_long else Layout.ColMajor
    return Layout.ColMajor if fa_long else Layout.RowMajor


@dataclass(frozen=True)
class DenseDist:
    """A distribution over matrices with iid mean-zero variance-one entries."""

    n_rows: int
    n_cols: int
    family: ScalarDist = ScalarDist.Gaussian
    major_axis: Axis = Axis.Long
    dim_major: int = field(init=False)
    dim_minor: int = field(init=False)
    isometry_scale: float = field(init=False)
    natural_layout: Layout = field(init=False)

    def __post_init__(self) -> None:
        _require(self.n_rows > 0, "n_rows must be positive")
        _require(self.n_cols > 0, "n_cols must be positive")
        small, large = sorted((self.n_rows, self.n_cols))
        if self.major_axis is Axis.Long:
            major, minor = large, small
        else:
            major, minor = small, large
        object.__setattr__(self, "dim_major", major)
        object.__setattr__(self, "dim_minor", minor)
        object.__setattr__(self, "isometry_scale", minor**-0.5)
        object.__setattr__(
            self, "natural_layout", natural_layout(self.major_axis, self.n_rows, self.n_cols)
        )


def _padded_stride(major_len: int) -> int:
    pad = (CTR_SIZE - major_len % CTR_SIZE) % CTR_SIZE
    return (major_len + pad) // CTR_SIZE


def compute_next_state(dist: DenseDist, state: RNGState) -> RNGState:
    """The state following a full sample of ``dist`` drawn from ``state``."""
    stride = _padded_stride(dist.dim_major)
    return state.incremented(stride * dist.dim_minor)


def fill_dense_submat(
    n_cols: int,
    n_srows: int,
    n_scols: int,
    ptr: int,
    seed: RNGState,
    family: ScalarDist,
) -> Tuple[np.ndarray, RNGState]:
    """Raw values of an ``n_srows`` x ``n_scols`` block of a row-major parent matrix.

    The parent has ``n_cols`` columns and ``ptr`` is the block's offset in it.
    Uniform values lie in (-1, 1) and are not rescaled here. Returns the block
    and the state just past the largest counter used.
    """
    _require(n_cols > 0, "n_cols must be positive")
    _require(n_cols >= n_scols, "n_cols must be at least n_scols")
    _require(n_srows >= 0 and n_scols >= 0 and ptr >= 0, "sizes and offsets must be nonnegative")
    pad = (CTR_SIZE - n_cols % CTR_SIZE) % CTR_SIZE
    ptr_padded = ptr + (ptr // n_cols) * pad
    ctr_mat_start = ptr_padded // CTR_SIZE
    first_block_start = ptr_padded % CTR_SIZE
    stride = (n_cols + pad) // CTR_SIZE
    start = seed.incremented(ctr_mat_start)
    next_state = start.incremented(n_srows * stride)

    out = np.empty((n_srows, n_scols), dtype=np.float64)
    if n_srows == 0 or n_scols == 0:
        return out, next_state

    ctr_mat_row_end = (ptr_padded + n_scols - 1) // CTR_SIZE
    n_blocks = ctr_mat_row_end - ctr_mat_start + 1
    rows_per_chunk = max(1, _BLOCK_BUDGET // n_blocks)
    block_index = np.arange(n_blocks, dtype=np.int64)
    for row0 in range(0, n_srows, rows_per_chunk):
        rows = np.arange(row0, min(n_srows, row0 + rows_per_chunk), dtype=np.int64)
        offsets = rows[:, None] * stride + block_index[None, :]
        values = _generate_blocks(start, offsets, family).reshape(len(rows), n_blocks * CTR_SIZE)
        out[rows[0] : rows[-1] + 1] = values[:, first_block_start : first_block_start + n_scols]
    return out, next_state


def fill_dense_unpacked(
    layout: Layout,
    dist: DenseDist,
    n_rows: int,
    n_cols: int,
    ro_s: int,
    co_s: int,
    seed: RNGState,
) -> Tuple[np.ndarray, RNGState]:
    """Sample the ``n_rows`` x ``n_cols`` submatrix at ``(ro_s, co_s)`` of a draw from ``dist``.

    The returned array is stored in ``layout`` order; the second value is the
    state after the generator calls made here.
    """
    _require(ro_s >= 0 and co_s >= 0, "offsets must be nonnegative")
    _require(dist.n_rows >= n_rows + ro_s, "submatrix rows exceed the distribution")
    _require(dist.n_cols >= n_cols + co_s, "submatrix columns exceed the distribution")
    ma_len = dist.dim_major
    transposed = dist.natural_layout is Layout.ColMajor
    if transposed:
        rows_, cols_ = n_cols, n_rows
        ptr = ro_s + co_s * ma_len
    else:
        rows_, cols_ = n_rows, n_cols
        ptr = ro_s * ma_len + co_s
    if dist.family not in (ScalarDist.Gaussian, ScalarDist.Uniform):
        raise ValueError("Unrecognized distribution.")
    block, next_state = fill_dense_submat(ma_len, rows_, cols_, ptr, seed, dist.family)
    if dist.family is ScalarDist.Uniform:
        block *= math.sqrt(3.0)
    mat = block.T if transposed else block
    if layout is Layout.ColMajor:
        mat = np.asfortranarray(mat)
    else:
        mat = np.ascontiguousarray(mat)
    return mat, next_state


def fill_dense(dist: DenseDist, seed: RNGState) -> Tuple[np.ndarray, RNGState]:
    """Sample a full matrix from ``dist`` in its natural layout."""
    return fill_dense_unpacked(dist.natural_layout, dist, dist.n_rows, dist.n_cols, 0, 0, seed)


def _as_order(mat: np.ndarray, layout: Layout, dtype: Any) -> np.ndarray:
    order = "F" if layout is Layout.ColMajor else "C"
    return np.array(mat, dtype=dtype, order=order)


@dataclass(eq=False)
class DenseSkOp:
    """A sample from a DenseDist, defined by its seed state.

    ``buff`` holds the explicit matrix once :meth:`fill` has been called, or a
    caller-supplied array of shape ``(n_rows, n_cols)``.
    """

    dist: DenseDist
    seed_state: RNGState
    dtype: Any = np.float64
    own_memory: bool = True
    buff: Optional[np.ndarray] = None
    next_state: RNGState = field(init=False)
    n_rows: int = field(init=False)
    n_cols: int = field(init=False)
    layout: Layout = field(init=False)

    def __post_init__(self) -> None:
        if isinstance(self.seed_state, int):
            self.seed_state = RNGState(self.seed_state)
        self.next_state = compute_next_state(self.dist, self.seed_state)
        self.n_rows = self.dist.n_rows
        self.n_cols = self.dist.n_cols
        self.layout = self.dist.natural_layout

    def fill(self) -> np.ndarray:
        """Write the explicit matrix into ``buff``, allocating it if permitted."""
        if self.buff is None and not self.own_memory:
            raise ValueError("operator has no buffer and may not allocate one")
        mat, _ = fill_dense_unpacked(
            self.layout, self.dist, self.n_rows, self.n_cols, 0, 0, self.seed_state
        )
        if self.buff is None:
            self.buff = _as_order(mat, self.layout, self.dtype)
        else:
            _require(
                self.buff.shape == (self.n_rows, self.n_cols),
                "buffer shape does not match the operator",
            )
            self.buff[...] = mat
        return self.buff


@dataclass
class BLASFriendlyOperator:
    """An explicit dense matrix with its layout and leading dimension."""

    layout: Layout
    n_rows: int
    n_cols: int
    buff: np.ndarray
    ldim: int
    own_memory: bool = True


def submatrix_as_blackbox(
    op: DenseSkOp, n_rows: int, n_cols: int, ro_s: int, co_s: int
) -> BLASFriendlyOperator:
    """Materialise a submatrix of ``op`` as a BLASFriendlyOperator."""
    _require(ro_s + n_rows <= op.n_rows, "submatrix rows exceed the operator")
    _require(co_s + n_cols <= op.n_cols, "submatrix columns exceed the operator")
    mat, _ = fill_dense_unpacked(op.layout, op.dist, n_rows, n_cols, ro_s, co_s, op.seed_state)
    buff = _as_order(mat, op.layout, op.dtype)
    return BLASFriendlyOperator(op.layout, n_rows, n_cols, buff, op.dist.dim_major, True)


SeedLike = Union[int, RNGState]