import unittest

import numpy as np

from tapegrad import (
    ShapeMismatchError,
    Tensor,
    Variable,
    accuracy,
    cross_entropy_loss,
    gradcheck,
    mse_loss,
)


def _var(a, requires_grad=False, scalar_type=None) -> Variable:
    return Variable(Tensor.from_numpy(np.asarray(a), scalar_type=scalar_type), requires_grad=requires_grad)


class TestMSE(unittest.TestCase):
    def test_value_and_gradient(self):
        pred = _var(np.array([1.0, 2.0, 3.0], np.float32), requires_grad=True)
        tgt = _var(np.array([1.0, 0.0, 0.0], np.float32))
        loss = mse_loss(pred, tgt)
        self.assertAlmostEqual(loss.item(), (0 + 4 + 9) / 3, places=5)
        loss.backward()
        np.testing.assert_allclose(pred.grad.to_numpy(), [0.0, 4.0 / 3, 2.0], rtol=1e-6)

    def test_shape_mismatch(self):
        with self.assertRaises(ShapeMismatchError):
            mse_loss(_var(np.zeros((2, 1), np.float32)), _var(np.zeros(2, np.float32)))


class TestCrossEntropy(unittest.TestCase):
    def setUp(self):
        self.logits = np.array([[2.0, 1.0, 0.1], [0.5, 2.5, 0.3]], dtype=np.float64)
        self.targets = Tensor.from_numpy(np.array([0, 1], dtype=np.int64))

    def test_matches_reference(self):
        z = self.logits
        log_probs = z - np.log(np.exp(z).sum(axis=1, keepdims=True))
        expected = -log_probs[[0, 1], [0, 1]].mean()
        loss = cross_entropy_loss(_var(z), self.targets)
        self.assertAlmostEqual(loss.item(), expected, places=10)

    def test_gradient(self):
        z = _var(self.logits, requires_grad=True)
        self.assertTrue(
            gradcheck(lambda v: cross_entropy_loss(v, self.targets), [z], eps=1e-6, atol=1e-6)
        )

    def test_large_logits_are_stable(self):
        z = _var(np.array([[1000.0, 0.0]], np.float32))
        loss = cross_entropy_loss(z, Tensor.from_numpy(np.array([0], np.int64)))
        self.assertTrue(np.isfinite(loss.item()))
        self.assertAlmostEqual(loss.item(), 0.0, places=5)

    def test_target_shape_checked(self):
        with self.assertRaises(ShapeMismatchError):
            cross_entropy_loss(_var(self.logits), Tensor.from_numpy(np.array([0], np.int64)))

    def test_accuracy(self):
        self.assertEqual(accuracy(_var(self.logits), self.targets), 1.0)
        wrong = Tensor.from_numpy(np.array([1, 1], dtype=np.int64))
        self.assertEqual(accuracy(_var(self.logits), wrong), 0.5)


if __name__ == "__main__":
    unittest.main()
