import unittest

import numpy as np

from tapegrad import Tensor, Variable, gradcheck, numerical_grad


def _leaf(a) -> Variable:
    return Variable(Tensor.from_numpy(np.asarray(a, dtype=np.float64)), requires_grad=True)


class TestBackwardRulesAgainstFiniteDifferences(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(42)

    def _rand(self, *shape, low=-1.0, high=1.0) -> Variable:
        return _leaf(self.rng.uniform(low, high, size=shape))

    def _check(self, fn, *inputs):
        self.assertTrue(gradcheck(fn, list(inputs), eps=1e-6, atol=1e-6, rtol=1e-5))

    def test_arithmetic_with_broadcasting(self):
        a, b = self._rand(3, 4), self._rand(4)
        self._check(lambda x, y: x.add(y), a, b)
        self._check(lambda x, y: x.sub(y), a, b)
        self._check(lambda x, y: x.mul(y), a, b)
        c = self._rand(3, 1, low=0.5, high=2.0)
        self._check(lambda x, y: x.div(y), a, c)

    def test_maximum_minimum(self):
        a, b = self._rand(5), self._rand(5)
        self._check(lambda x, y: x.maximum(y), a, b)
        self._check(lambda x, y: x.minimum(y), a, b)

    def test_unary(self):
        x = self._rand(2, 3)
        pos = self._rand(2, 3, low=0.5, high=2.0)
        self._check(lambda v: v.neg(), x)
        self._check(lambda v: v.exp(), x)
        self._check(lambda v: v.sigmoid(), x)
        self._check(lambda v: v.tanh(), x)
        self._check(lambda v: v.log(), pos)
        self._check(lambda v: v.sqrt(), pos)
        self._check(lambda v: v.pow(3), x)
        self._check(lambda v: v.pow(-0.5), pos)
        self._check(lambda v: v.abs(), pos)
        self._check(lambda v: v.relu(), pos)

    def test_matmul(self):
        self._check(lambda x, y: x.matmul(y), self._rand(3, 4), self._rand(4, 2))
        self._check(lambda x, y: x.matmul(y), self._rand(2, 3, 4), self._rand(4, 5))

    def test_reductions(self):
        x = self._rand(3, 4, 2)
        self._check(lambda v: v.sum(), x)
        self._check(lambda v: v.sum(axis=1), x)
        self._check(lambda v: v.mean(axis=(0, 2), keepdims=True), x)
        self._check(lambda v: v.max(axis=-1), x)
        self._check(lambda v: v.min(axis=0), x)

    def test_views(self):
        x = self._rand(2, 3, 4)
        self._check(lambda v: v.reshape(6, 4).mul(v.reshape(6, 4)), x)
        self._check(lambda v: v.permute(2, 0, 1).exp(), x)
        self._check(lambda v: v.transpose(0, 1).tanh(), x)
        self._check(lambda v: v.narrow(2, 1, 2).exp(), x)
        self._check(lambda v: v[1, :, 1:3].exp(), x)
        self._check(lambda v: v.unsqueeze(0).squeeze(0).exp(), x)
        row = self._rand(1, 4)
        self._check(lambda v: v.broadcast_to((3, 4)).exp(), row)

    def test_conversions(self):
        x = self._rand(3)
        self._check(lambda v: v.clone().exp(), x)
        self._check(lambda v: v.to("accel:0").exp().to("host"), x)

    def test_cast_routes_gradient_back(self):
        x = _leaf([1.0, 2.0])
        x.cast("f32").mul(3.0).sum().backward()
        self.assertEqual(str(x.grad.scalar_type), "f64")
        np.testing.assert_allclose(x.grad.to_numpy(), [3.0, 3.0])


class TestTieHandling(unittest.TestCase):
    def test_max_ties_share_gradient(self):
        x = _leaf([1.0, 3.0, 3.0])
        x.max().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [0.0, 0.5, 0.5])
        np.testing.assert_allclose(x.grad.to_numpy().sum(), 1.0)

    def test_tied_extrema_match_finite_differences(self):
        x = _leaf([1.0, 1.0, 0.0])
        x.max().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), numerical_grad(lambda v: v.max(), [x])[0], atol=1e-6)
        y = _leaf([[2.0, 0.0, 2.0], [-1.0, -1.0, 4.0]])
        self.assertTrue(gradcheck(lambda v: v.min(axis=1), [y], eps=1e-6, atol=1e-6, rtol=1e-5))

    def test_three_way_tie_sums_to_upstream(self):
        x = _leaf([[5.0, 5.0, 5.0], [1.0, 2.0, 0.0]])
        x.max(axis=1).mul(2.0).sum().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [[2 / 3, 2 / 3, 2 / 3], [0.0, 2.0, 0.0]])

    def test_maximum_ties_split_gradient(self):
        a, b = _leaf([2.0]), _leaf([2.0])
        a.maximum(b).sum().backward()
        np.testing.assert_allclose(a.grad.to_numpy(), [0.5])
        np.testing.assert_allclose(b.grad.to_numpy(), [0.5])


if __name__ == "__main__":
    unittest.main()
