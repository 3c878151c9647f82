import math

import numpy as np
import pytest

from randsketch.dense import (
    Axis,
    BLASFriendlyOperator,
    DenseDist,
    DenseSkOp,
    Layout,
    ScalarDist,
    compute_next_state,
    fill_dense,
    fill_dense_submat,
    fill_dense_unpacked,
    natural_layout,
    submatrix_as_blackbox,
)
from randsketch.philox import RNGState, box_muller, uniform_neg11


# --- distributions ---------------------------------------------------------


def test_dense_dist_long_axis_wide():
    dist = DenseDist(3, 5)
    assert dist.dim_major == 5
    assert dist.dim_minor == 3
    assert dist.isometry_scale == pytest.approx(3**-0.5)
    assert dist.natural_layout is Layout.RowMajor
    assert dist.family is ScalarDist.Gaussian


def test_dense_dist_short_axis_wide():
    dist = DenseDist(3, 5, ScalarDist.Uniform, Axis.Short)
    assert dist.dim_major == 3
    assert dist.dim_minor == 5
    assert dist.isometry_scale == pytest.approx(5**-0.5)
    assert dist.natural_layout is Layout.ColMajor


@pytest.mark.parametrize("shape", [(0, 4), (4, 0), (-1, 3)])
def test_dense_dist_rejects_nonpositive(shape):
    with pytest.raises(ValueError):
        DenseDist(*shape)


@pytest.mark.parametrize(
    "axis, rows, cols, expected",
    [
        (Axis.Long, 2, 5, Layout.RowMajor),
        (Axis.Short, 2, 5, Layout.ColMajor),
        (Axis.Long, 5, 2, Layout.ColMajor),
        (Axis.Short, 5, 2, Layout.RowMajor),
        (Axis.Long, 4, 4, Layout.ColMajor),
        (Axis.Short, 4, 4, Layout.RowMajor),
    ],
)
def test_natural_layout_table(axis, rows, cols, expected):
    assert natural_layout(axis, rows, cols) is expected


def test_compute_next_state_pads_major_axis():
    state = compute_next_state(DenseDist(3, 5), RNGState(0))
    assert state.counter_value == 6
    assert state.key == RNGState(0).key


# --- raw generation --------------------------------------------------------


def test_submat_matches_scalar_uniform():
    seed = RNGState(17)
    block, _ = fill_dense_submat(4, 1, 4, 0, seed, ScalarDist.Uniform)
    assert list(block[0]) == list(uniform_neg11(seed.counter, seed.key))


def test_submat_matches_scalar_gaussian():
    seed = RNGState(5, counter=9)
    block, _ = fill_dense_submat(4, 1, 4, 0, seed, ScalarDist.Gaussian)
    expected = box_muller(seed.counter, seed.key)
    assert np.allclose(block[0], expected, rtol=1e-12, atol=1e-12)


def test_submat_padding_starts_rows_on_fresh_counter():
    seed = RNGState(3)
    block, next_state = fill_dense_submat(5, 2, 5, 0, seed, ScalarDist.Uniform)
    second_row_start = seed.incremented(2)
    assert list(block[1, :4]) == list(uniform_neg11(second_row_start.counter, seed.key))
    assert next_state.counter_value == 4


def test_submat_counter_carry_across_words():
    seed = RNGState(1, counter=(1 << 64) - 1)
    block, _ = fill_dense_submat(8, 1, 8, 0, seed, ScalarDist.Uniform)
    assert list(block[0, 4:]) == list(uniform_neg11(1 << 64, seed.key))


def test_submat_rejects_wide_block():
    with pytest.raises(ValueError):
        fill_dense_submat(3, 1, 4, 0, RNGState(0), ScalarDist.Gaussian)


# --- full and partial fills ------------------------------------------------


@pytest.mark.parametrize("shape", [(7, 10), (10, 7), (5, 5)])
@pytest.mark.parametrize("axis", [Axis.Long, Axis.Short])
def test_fill_dense_next_state_matches_compute(shape, axis):
    dist = DenseDist(*shape, ScalarDist.Gaussian, axis)
    seed = RNGState(11)
    mat, next_state = fill_dense(dist, seed)
    assert mat.shape == shape
    assert next_state == compute_next_state(dist, seed)


@pytest.mark.parametrize("shape", [(7, 10), (10, 7)])
@pytest.mark.parametrize("axis", [Axis.Long, Axis.Short])
@pytest.mark.parametrize("layout", [Layout.RowMajor, Layout.ColMajor])
def test_unpacked_is_submatrix_of_full(shape, axis, layout):
    dist = DenseDist(*shape, ScalarDist.Gaussian, axis)
    seed = RNGState(3)
    full, _ = fill_dense(dist, seed)
    sub, _ = fill_dense_unpacked(layout, dist, 3, 4, 2, 3, seed)
    assert np.array_equal(sub, full[2:5, 3:7])
    if layout is Layout.ColMajor:
        assert sub.flags.f_contiguous
    else:
        assert sub.flags.c_contiguous


def test_unpacked_out_of_range():
    with pytest.raises(ValueError):
        fill_dense_unpacked(Layout.ColMajor, DenseDist(4, 4), 3, 3, 2, 0, RNGState(0))


def test_uniform_is_scaled_and_bounded():
    dist = DenseDist(6, 9, ScalarDist.Uniform)
    mat, _ = fill_dense(dist, RNGState(2))
    assert np.all(np.abs(mat) < math.sqrt(3.0))
    raw, _ = fill_dense_submat(9, 6, 9, 0, RNGState(2), ScalarDist.Uniform)
    assert np.allclose(mat, raw * math.sqrt(3.0))


def test_different_seeds_differ_and_same_seed_repeats():
    dist = DenseDist(4, 8)
    a, _ = fill_dense(dist, RNGState(1))
    b, _ = fill_dense(dist, RNGState(1))
    c, _ = fill_dense(dist, RNGState(2))
    assert np.array_equal(a, b)
    assert not np.array_equal(a, c)


# --- operators -------------------------------------------------------------


def test_skop_int_seed_and_next_state():
    dist = DenseDist(4, 6)
    op = DenseSkOp(dist, 1997)
    assert op.seed_state == RNGState(1997)
    assert op.next_state == compute_next_state(dist, RNGState(1997))
    assert (op.n_rows, op.n_cols) == (4, 6)
    assert op.layout is dist.natural_layout
    assert op.buff is None


def test_skop_fill_allocates():
    dist = DenseDist(6, 4, ScalarDist.Uniform)
    op = DenseSkOp(dist, RNGState(8), dtype=np.float32)
    buff = op.fill()
    expected, _ = fill_dense(dist, RNGState(8))
    assert buff is op.buff
    assert buff.dtype == np.float32
    assert np.allclose(buff, expected, atol=1e-6)


def test_skop_fill_writes_into_given_buffer():
    dist = DenseDist(4, 6)
    given = np.zeros((4, 6))
    op = DenseSkOp(dist, RNGState(4), own_memory=False, buff=given)
    op.fill()
    expected, _ = fill_dense(dist, RNGState(4))
    assert op.buff is given
    assert np.array_equal(given, expected)


def test_skop_fill_without_permission_raises():
    op = DenseSkOp(DenseDist(3, 3), RNGState(0), own_memory=False)
    with pytest.raises(ValueError):
        op.fill()


def test_submatrix_as_blackbox():
    dist = DenseDist(9, 5)
    op = DenseSkOp(dist, RNGState(21))
    full, _ = fill_dense(dist, RNGState(21))
    sub = submatrix_as_blackbox(op, 4, 3, 5, 2)
    assert isinstance(sub, BLASFriendlyOperator)
    assert np.array_equal(sub.buff, full[5:9, 2:5])
    assert sub.ldim == dist.dim_major
    assert sub.layout is op.layout
    assert (sub.n_rows, sub.n_cols) == (4, 3)


def test_submatrix_as_blackbox_out_of_range():
    op = DenseSkOp(DenseDist(4, 4), RNGState(0))
    with pytest.raises(ValueError):
        submatrix_as_blackbox(op, 3, 2, 2, 0)


# --- subspace distortion ---------------------------------------------------


def _extreme_singular_values(family, d, n, key):
    dist = DenseDist(d, n, family)
    mat, _ = fill_dense(dist, RNGState(key))
    mat = mat / math.sqrt(d)
    eigvals = np.linalg.eigvalsh(mat.T @ mat)
    return math.sqrt(eigvals[-1]), math.sqrt(eigvals[0])


def _gaussian_dims(distortion, tau, p_fail):
    val = (math.sqrt(-2 * math.log(p_fail)) + 1) / tau
    n = math.ceil(val * val)
    d = math.ceil(((1 + tau) / distortion) ** 2 * n)
    return d, n


def _uniform_dims(distortion, rate, p_fail):
    n = math.ceil(math.log(2 / p_fail) / rate)
    theta = rate + math.log(9)
    d = math.ceil(n * theta * distortion**-2)
    return d, n


KEY = 8673309


@pytest.mark.parametrize("offset", [0, 1, 2])
@pytest.mark.parametrize("distortion", [0.50, 0.25, 0.10])
def test_gaussian_rate_100_fail_0001(offset, distortion):
    d, n = _gaussian_dims(distortion, 1.0, 1e-3)
    smax, smin = _extreme_singular_values(ScalarDist.Gaussian, d, n, KEY + offset)
    assert smax <= 1 + distortion
    assert smin >= 1 - distortion


@pytest.mark.parametrize("offset", [0, 1, 2])
@pytest.mark.parametrize("distortion", [0.75, 0.50, 0.25])
def test_gaussian_rate_004_fail_0001(offset, distortion):
    d, n = _gaussian_dims(distortion, 0.2, 1e-3)
    smax, smin = _extreme_singular_values(ScalarDist.Gaussian, d, n, KEY + offset)
    assert smax <= 1 + distortion
    assert smin >= 1 - distortion


@pytest.mark.parametrize("offset", [0, 1, 2])
@pytest.mark.parametrize("distortion", [0.50, 0.25, 0.10])
def test_uniform_rate_100_fail_0001(offset, distortion):
    d, n = _uniform_dims(distortion, 1.0, 1e-3)
    smax, smin = _extreme_singular_values(ScalarDist.Uniform, d, n, KEY + offset)
    assert smax <= 1 + distortion
    assert smin >= 1 - distortion


@pytest.mark.parametrize("offset", [0, 1, 2])
@pytest.mark.parametrize("distortion", [0.50, 0.25, 0.10])
def test_uniform_rate_004_fail_0001(offset, distortion):
    d, n = _uniform_dims(distortion, 0.04, 1e-3)
    smax, smin = _extreme_singular_values(ScalarDist.Uniform, d, n, KEY + offset)
    assert smax <= 1 + distortion
    assert smin >= 1 - distortion