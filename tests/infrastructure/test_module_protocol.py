import unittest

import numpy as np

from tapegrad import (
    Module,
    Parameter,
    ShapeMismatchError,
    SGD,
    Tensor,
    as_variable,
)


class _Affine(Module):
    def __init__(self, n: int):
        super().__init__()
        self.scale = Parameter(Tensor.ones((n,)))
        self.shift = Parameter(Tensor.zeros((n,)))

    def forward(self, x):
        return as_variable(x).mul(self.scale).add(self.shift)


class _Stack(Module):
    def __init__(self):
        super().__init__()
        self.first = _Affine(2)
        self.second = _Affine(2)
        self.extra = Parameter(Tensor.ones((1,)))

    def forward(self, x):
        return self.second(self.first(x)).mul(self.extra)


class _Forgetful(Module):
    def __init__(self):
        self.w = Parameter(Tensor.ones((1,)))


class TestModuleTraversal(unittest.TestCase):
    def test_named_parameters_depth_first(self):
        m = _Stack()
        names = [n for n, _ in m.named_parameters()]
        self.assertEqual(
            names, ["extra", "first.scale", "first.shift", "second.scale", "second.shift"]
        )
        self.assertEqual(len(list(m.parameters())), 5)
        self.assertEqual([c for c in m.children()], [m.first, m.second])

    def test_frozen_parameters_are_skipped(self):
        m = _Stack()
        m.first.scale.requires_grad = False
        names = [n for n, _ in m.named_parameters()]
        self.assertNotIn("first.scale", names)
        self.assertIn("first.scale", [n for n, _ in m.named_parameters(include_frozen=True)])

    def test_shared_parameter_yielded_once(self):
        m = _Stack()
        m.second.scale = m.first.scale
        self.assertEqual(len(list(m.parameters())), 4)

    def test_assigning_none_unregisters(self):
        m = _Affine(2)
        m.shift = None
        self.assertEqual([n for n, _ in m.named_parameters()], ["scale"])

    def test_missing_super_init_raises(self):
        with self.assertRaises(AttributeError):
            _Forgetful()

    def test_visit_and_grad_helpers(self):
        m = _Stack()
        m.init_parameter_grads()
        for p in m.parameters():
            np.testing.assert_array_equal(p.grad.to_numpy(), np.zeros(p.shape, np.float32))
        visited = []
        m.visit_parameters(visited.append)
        self.assertEqual(len(visited), 5)
        m.zero_grad()
        self.assertTrue(all(p.grad is None for p in m.parameters()))


class TestModuleTrainingMode(unittest.TestCase):
    def test_train_eval_propagates(self):
        m = _Stack()
        self.assertTrue(m.training)
        m.eval()
        self.assertFalse(m.training)
        self.assertFalse(m.first.training)
        m.train()
        self.assertTrue(m.second.training)


class TestModuleUpdate(unittest.TestCase):
    def test_update_applies_optimizer_and_clears_grads(self):
        m = _Affine(2)
        x = Tensor.from_numpy(np.array([[1.0, 2.0]], dtype=np.float32))
        m(x).sum().backward()
        m.update(0.5, SGD(lr=0.5))
        np.testing.assert_allclose(m.scale.to_numpy(), [0.5, 0.0])
        np.testing.assert_allclose(m.shift.to_numpy(), [-0.5, -0.5])
        self.assertTrue(all(p.grad is None for p in m.parameters()))

    def test_frozen_parameter_not_updated(self):
        m = _Affine(2)
        m.scale.requires_grad = False
        x = Tensor.from_numpy(np.array([[1.0, 2.0]], dtype=np.float32))
        m(x).sum().backward()
        self.assertIsNone(m.scale.grad)
        m.update(1.0, SGD(lr=1.0))
        np.testing.assert_allclose(m.scale.to_numpy(), [1.0, 1.0])


class TestStateDict(unittest.TestCase):
    def test_round_trip(self):
        src = _Affine(3)
        src.scale.data.copy_from_numpy(np.array([1.0, 2.0, 3.0], dtype=np.float32))
        state = src.state_dict()
        self.assertEqual(state["scale"]["shape"], (3,))
        self.assertEqual(state["scale"]["scalar_type"], "f32")
        self.assertEqual(state["scale"]["device"], "host")
        dst = _Affine(3)
        dst.load_state_dict(state)
        np.testing.assert_array_equal(dst.scale.to_numpy(), [1.0, 2.0, 3.0])

    def test_load_errors(self):
        m = _Affine(3)
        with self.assertRaises(KeyError):
            m.load_state_dict({"scale": np.ones(3, np.float32)})
        with self.assertRaises(ShapeMismatchError):
            m.load_state_dict({"scale": np.ones(2), "shift": np.ones(3)})


if __name__ == "__main__":
    unittest.main()
