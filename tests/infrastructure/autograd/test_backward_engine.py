import sys
import unittest

import numpy as np

from tapegrad import (
    GraphConsumedError,
    ShapeMismatchError,
    Tensor,
    TypeMismatchError,
    UnsupportedOperationError,
    Variable,
)


def _leaf(a, requires_grad=True) -> Variable:
    return Variable(Tensor.from_numpy(np.asarray(a, dtype=np.float32)), requires_grad=requires_grad)


class TestBackwardEngine(unittest.TestCase):
    def test_product_gradient_identity(self):
        a = _leaf([1.0, 2.0, 3.0])
        b = _leaf([4.0, 5.0, 6.0])
        a.mul(b).sum().backward()
        np.testing.assert_allclose(a.grad.to_numpy(), [4.0, 5.0, 6.0])
        np.testing.assert_allclose(b.grad.to_numpy(), [1.0, 2.0, 3.0])

    def test_diamond_accumulates_both_paths(self):
        x = _leaf([2.0])
        left = x.mul(3.0)
        right = x.pow(2)
        left.add(right).sum().backward()
        # d/dx (3x + x^2) = 3 + 2x
        np.testing.assert_allclose(x.grad.to_numpy(), [7.0])

    def test_same_variable_used_twice(self):
        x = _leaf([3.0])
        x.mul(x).sum().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [6.0])

    def test_gradients_accumulate_across_calls(self):
        x = _leaf([1.0, 1.0])
        x.mul(2.0).sum().backward()
        x.mul(2.0).sum().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [4.0, 4.0])
        x.zero_grad()
        self.assertIsNone(x.grad)

    def test_second_backward_raises_graph_consumed(self):
        x = _leaf([1.0])
        y = x.exp().sum()
        y.backward()
        with self.assertRaises(GraphConsumedError):
            y.backward()

    def test_retain_graph_allows_repeat(self):
        x = _leaf([1.0, 2.0])
        y = x.mul(x).sum()
        y.backward(retain_graph=True)
        y.backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [4.0, 8.0])
        with self.assertRaises(GraphConsumedError):
            y.backward()

    def test_shared_subgraph_consumed_by_first_pass(self):
        x = _leaf([1.0])
        h = x.exp()
        h.sum().backward()
        with self.assertRaises(GraphConsumedError):
            h.mul(2.0).sum().backward()

    def test_intermediate_gradients_are_not_kept_unless_retained(self):
        x = _leaf([1.0, 2.0])
        h = x.mul(2.0)
        kept = x.mul(3.0).retain_grad()
        h.add(kept).sum().backward()
        self.assertIsNone(h.grad)
        np.testing.assert_allclose(kept.grad.to_numpy(), [1.0, 1.0])

    def test_seed_rules(self):
        x = _leaf([1.0, 2.0])
        y = x.mul(2.0)
        with self.assertRaises(ValueError):
            y.backward()
        with self.assertRaises(ShapeMismatchError):
            y.backward(Tensor.ones((3,)))
        with self.assertRaises(TypeMismatchError):
            y.backward(Tensor.ones((2,), scalar_type="f64"))
        y.backward(Tensor.from_numpy(np.array([1.0, 10.0], dtype=np.float32)))
        np.testing.assert_allclose(x.grad.to_numpy(), [2.0, 20.0])

    def test_backward_on_leaf(self):
        x = _leaf([5.0])
        x.backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [1.0])

    def test_backward_without_requires_grad_raises(self):
        x = _leaf([1.0], requires_grad=False)
        with self.assertRaises(ValueError):
            x.mul(2.0).sum().backward()

    def test_untracked_inputs_record_nothing(self):
        a = _leaf([1.0], requires_grad=False)
        b = _leaf([2.0], requires_grad=False)
        out = a.mul(b)
        self.assertIsNone(out.node)
        self.assertFalse(out.requires_grad)

    def test_only_tracked_inputs_are_traversed(self):
        w = _leaf([2.0])
        c = _leaf([3.0], requires_grad=False)
        y = w.mul(c)
        self.assertEqual(y.node.next_nodes(), [])
        y.sum().backward()
        self.assertIsNone(c.grad)
        np.testing.assert_allclose(w.grad.to_numpy(), [3.0])

    def test_deep_chain_is_not_limited_by_recursion(self):
        x = _leaf([0.0])
        y = x
        for _ in range(sys.getrecursionlimit() + 500):
            y = y.add(1.0)
        y.sum().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [1.0])

    def test_detach_cuts_history(self):
        x = _leaf([2.0])
        y = x.mul(3.0)
        d = y.detach()
        self.assertIsNone(d.node)
        self.assertFalse(d.requires_grad)
        self.assertIs(d.data.storage, y.data.storage)

    def test_integer_variables_cannot_require_grad(self):
        with self.assertRaises(UnsupportedOperationError):
            Variable(Tensor.from_numpy(np.array([1], dtype=np.int32)), requires_grad=True)

    def test_release_drops_saved_tensors(self):
        x = _leaf([1.0, 2.0])
        y = x.mul(x)
        node = y.node
        self.assertEqual(len(node.saved_tensors), 2)
        y.sum().backward()
        self.assertTrue(node.consumed)
        self.assertEqual(node.saved_tensors, [])


class TestOperatorSugar(unittest.TestCase):
    def test_operators_record_graph(self):
        x = _leaf([1.0, 2.0])
        y = ((x * 2.0 + 1.0) / 2.0 - x) ** 2
        y = 1.0 - y
        y.sum().backward()
        # y = 1 - 0.25 everywhere, constant in x
        np.testing.assert_allclose(x.grad.to_numpy(), [0.0, 0.0], atol=1e-6)

    def test_tensor_on_left_defers_to_variable(self):
        x = _leaf([1.0, 2.0])
        t = Tensor.from_numpy(np.array([3.0, 4.0], dtype=np.float32))
        y = t * x
        self.assertIsInstance(y, Variable)
        y.sum().backward()
        np.testing.assert_allclose(x.grad.to_numpy(), [3.0, 4.0])


if __name__ == "__main__":
    unittest.main()
