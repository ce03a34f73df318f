import unittest

import numpy as np

from tapegrad import (
    DeviceMismatchError,
    ShapeMismatchError,
    Tensor,
    TypeMismatchError,
    UnsupportedOperationError,
)


def _t(a, scalar_type=None, device="host") -> Tensor:
    return Tensor.from_numpy(np.asarray(a), device, scalar_type)


class TestElementwise(unittest.TestCase):
    def test_unary_kernels_match_numpy(self):
        a = np.array([[0.5, -1.0], [2.0, 3.0]], dtype=np.float32)
        t = _t(a)
        np.testing.assert_allclose(t.neg().to_numpy(), -a)
        np.testing.assert_allclose(t.abs().to_numpy(), np.abs(a))
        np.testing.assert_allclose(t.relu().to_numpy(), np.maximum(a, 0))
        np.testing.assert_allclose(t.exp().to_numpy(), np.exp(a), rtol=1e-6)
        np.testing.assert_allclose(t.tanh().to_numpy(), np.tanh(a), rtol=1e-6)
        np.testing.assert_allclose(t.sigmoid().to_numpy(), 1 / (1 + np.exp(-a)), rtol=1e-6)
        np.testing.assert_allclose(t.pow(2).to_numpy(), a**2, rtol=1e-6)
        pos = _t(np.array([1.0, 4.0], dtype=np.float32))
        np.testing.assert_allclose(pos.sqrt().to_numpy(), [1.0, 2.0])
        np.testing.assert_allclose(pos.log().to_numpy(), np.log([1.0, 4.0]), rtol=1e-6)

    def test_binary_kernels_and_operators(self):
        a = np.array([1.0, 2.0, 3.0], dtype=np.float32)
        b = np.array([3.0, 2.0, 1.0], dtype=np.float32)
        ta, tb = _t(a), _t(b)
        np.testing.assert_allclose((ta + tb).to_numpy(), a + b)
        np.testing.assert_allclose((ta - tb).to_numpy(), a - b)
        np.testing.assert_allclose((ta * tb).to_numpy(), a * b)
        np.testing.assert_allclose((ta / tb).to_numpy(), a / b, rtol=1e-6)
        np.testing.assert_allclose(ta.maximum(tb).to_numpy(), np.maximum(a, b))
        np.testing.assert_allclose(ta.minimum(tb).to_numpy(), np.minimum(a, b))
        np.testing.assert_allclose((ta > tb).to_numpy(), (a > b).astype(np.float32))
        np.testing.assert_allclose(ta.eq(tb).to_numpy(), (a == b).astype(np.float32))
        np.testing.assert_allclose((-ta).to_numpy(), -a)

    def test_python_scalars_are_lifted(self):
        t = _t(np.array([1.0, 2.0], dtype=np.float32))
        np.testing.assert_allclose((t * 2).to_numpy(), [2.0, 4.0])
        np.testing.assert_allclose((1 - t).to_numpy(), [0.0, -1.0])
        np.testing.assert_allclose((2 / t).to_numpy(), [2.0, 1.0])
        i = _t(np.array([1, 2], dtype=np.int32))
        np.testing.assert_array_equal((i + 3).to_numpy(), [4, 5])
        np.testing.assert_array_equal((i * 2.0).to_numpy(), [2, 4])
        with self.assertRaises(TypeMismatchError):
            i + 0.5

    def test_unknown_operand_returns_not_implemented(self):
        t = _t(np.zeros(2, np.float32))
        with self.assertRaises(TypeError):
            t + "x"

    def test_in_place_updates(self):
        t = _t(np.array([1.0, 2.0], dtype=np.float32))
        storage = t.storage
        t += 1.0
        t *= 2.0
        t.scaled_add_(-0.5, _t(np.array([4.0, 4.0], dtype=np.float32)))
        self.assertIs(t.storage, storage)
        np.testing.assert_allclose(t.to_numpy(), [2.0, 4.0])
        with self.assertRaises(ShapeMismatchError):
            _t(np.zeros((1, 3), np.float32)).add_(_t(np.zeros((2, 3), np.float32)))

    def test_float_only_kernels_reject_integers(self):
        i = _t(np.array([1, 4], dtype=np.int64))
        for op in (i.exp, i.log, i.sqrt, i.sigmoid, i.tanh):
            with self.subTest(op=op.__name__):
                with self.assertRaises(UnsupportedOperationError):
                    op()
        with self.assertRaises(UnsupportedOperationError):
            i.div(i)


class TestBroadcasting(unittest.TestCase):
    def test_trailing_ones_broadcast(self):
        a = np.arange(4, dtype=np.float32).reshape(4, 1)
        b = np.ones((4, 3), dtype=np.float32)
        out = _t(a) + _t(b)
        self.assertEqual(out.shape, (4, 3))
        np.testing.assert_allclose(out.to_numpy(), a + b)

    def test_rank_extension(self):
        a = np.arange(6, dtype=np.float32).reshape(2, 3)
        b = np.array([10.0, 20.0, 30.0], dtype=np.float32)
        np.testing.assert_allclose((_t(a) * _t(b)).to_numpy(), a * b)

    def test_incompatible_shapes_raise(self):
        with self.assertRaises(ShapeMismatchError):
            _t(np.zeros((4, 2), np.float32)) + _t(np.zeros((4, 3), np.float32))

    def test_sum_to_shape_inverts_broadcast(self):
        g = _t(np.ones((2, 4, 3), np.float32))
        np.testing.assert_allclose(g.sum_to_shape((4, 1)).to_numpy(), np.full((4, 1), 6.0))
        np.testing.assert_allclose(g.sum_to_shape((3,)).to_numpy(), np.full((3,), 8.0))
        with self.assertRaises(ShapeMismatchError):
            g.sum_to_shape((5,))


class TestTypeAndDeviceChecks(unittest.TestCase):
    def test_mixed_scalar_types_raise(self):
        with self.assertRaises(TypeMismatchError):
            _t(np.zeros(2, np.float32)) + _t(np.zeros(2, np.float64))

    def test_explicit_cast_resolves_mismatch(self):
        a = _t(np.ones(2, np.float32))
        b = _t(np.ones(2, np.float64))
        np.testing.assert_allclose((a.cast("f64") + b).to_numpy(), [2.0, 2.0])

    def test_mixed_devices_raise(self):
        host = _t(np.ones(2, np.float32))
        accel = _t(np.ones(2, np.float32), device="accel:0")
        with self.assertRaises(DeviceMismatchError):
            host + accel
        with self.assertRaises(DeviceMismatchError):
            host.copy_from(accel)
        host.copy_from(accel.mul(3.0), allow_cross_device=True)
        np.testing.assert_allclose(host.to_numpy(), [3.0, 3.0])

    def test_copy_from_overwrites_strided_view(self):
        for device in ("host", "accel:0"):
            with self.subTest(device=device):
                base = _t(np.ones((2, 3), np.float32), device=device)
                col = base.narrow(1, 1, 1)
                col.copy_from(_t(np.array([[5.0], [7.0]], np.float32), device=device))
                np.testing.assert_allclose(
                    base.to_numpy(), [[1.0, 5.0, 1.0], [1.0, 7.0, 1.0]]
                )


class TestReductions(unittest.TestCase):
    def setUp(self):
        self.a = np.arange(24, dtype=np.float32).reshape(2, 3, 4)
        self.t = _t(self.a)

    def test_sum_mean_max_min(self):
        a, t = self.a, self.t
        np.testing.assert_allclose(t.sum().to_numpy(), a.sum())
        np.testing.assert_allclose(t.sum(axis=1).to_numpy(), a.sum(axis=1))
        np.testing.assert_allclose(t.mean(axis=(0, 2)).to_numpy(), a.mean(axis=(0, 2)))
        np.testing.assert_allclose(
            t.max(axis=-1, keepdims=True).to_numpy(), a.max(axis=-1, keepdims=True)
        )
        np.testing.assert_allclose(t.min(axis=0).to_numpy(), a.min(axis=0))

    def test_argmax_returns_i64(self):
        out = self.t.argmax(axis=2)
        self.assertEqual(str(out.scalar_type), "i64")
        np.testing.assert_array_equal(out.to_numpy(), self.a.argmax(axis=2))

    def test_bad_axes_raise(self):
        with self.assertRaises(ShapeMismatchError):
            self.t.sum(axis=3)
        with self.assertRaises(ShapeMismatchError):
            self.t.sum(axis=(0, 0))
        with self.assertRaises(ShapeMismatchError):
            _t(np.zeros((0,), np.float32)).max()

    def test_empty_sum_is_zero(self):
        self.assertEqual(_t(np.zeros((0, 3), np.float32)).sum().item(), 0.0)


class TestLinalg(unittest.TestCase):
    def test_matmul_2d_and_batched(self):
        rng = np.random.default_rng(0)
        a = rng.standard_normal((3, 4)).astype(np.float32)
        b = rng.standard_normal((4, 5)).astype(np.float32)
        np.testing.assert_allclose((_t(a) @ _t(b)).to_numpy(), a @ b, rtol=1e-5, atol=1e-6)
        ba = rng.standard_normal((2, 3, 4)).astype(np.float32)
        np.testing.assert_allclose(_t(ba).matmul(_t(b)).to_numpy(), ba @ b, rtol=1e-5, atol=1e-6)

    def test_matmul_shape_errors(self):
        with self.assertRaises(ShapeMismatchError):
            _t(np.zeros((3, 4), np.float32)).matmul(_t(np.zeros((3, 4), np.float32)))
        with self.assertRaises(ShapeMismatchError):
            _t(np.zeros(4, np.float32)).matmul(_t(np.zeros((4, 1), np.float32)))

    def test_one_hot(self):
        idx = _t(np.array([2, 0, 1], dtype=np.int64))
        np.testing.assert_array_equal(idx.one_hot(3).to_numpy(), np.eye(3, dtype=np.float32)[[2, 0, 1]])
        with self.assertRaises(ValueError):
            idx.one_hot(2)
        with self.assertRaises(UnsupportedOperationError):
            _t(np.zeros(2, np.float32)).one_hot(2)


if __name__ == "__main__":
    unittest.main()
