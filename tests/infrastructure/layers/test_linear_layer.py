import unittest

import numpy as np

from tapegrad import (
    ConfigurationError,
    Linear,
    LinearConfig,
    Tensor,
    Variable,
    WeightInitializer,
    gradcheck,
)


class TestLinearConfig(unittest.TestCase):
    def test_invalid_options_raise(self):
        bad = [
            LinearConfig(0, 3),
            LinearConfig(2, -1),
            LinearConfig(2, 3, scalar_type="i32"),
            LinearConfig(2, 3, scalar_type="f128"),
            LinearConfig(2, 3, device="gpu"),
            LinearConfig(2, 3, init="orthogonal"),
        ]
        for cfg in bad:
            with self.subTest(cfg=cfg):
                with self.assertRaises(ConfigurationError):
                    Linear(cfg)


class TestLinear(unittest.TestCase):
    def test_shapes_and_parameters(self):
        layer = Linear.build(4, 3, seed=0)
        self.assertEqual(layer.weight.shape, (4, 3))
        self.assertEqual(layer.bias.shape, (3,))
        self.assertEqual((layer.in_features, layer.out_features), (4, 3))
        self.assertEqual([n for n, _ in layer.named_parameters()], ["weight", "bias"])
        np.testing.assert_array_equal(layer.bias.to_numpy(), np.zeros(3, np.float32))

    def test_no_bias(self):
        layer = Linear.build(4, 3, bias=False)
        self.assertIsNone(layer.bias)
        self.assertEqual([n for n, _ in layer.named_parameters()], ["weight"])

    def test_forward_matches_affine_map(self):
        layer = Linear.build(4, 2, seed=3)
        layer.bias.data.copy_from_numpy(np.array([0.5, -0.5], dtype=np.float32))
        x = np.random.default_rng(0).standard_normal((5, 4)).astype(np.float32)
        y = layer(Tensor.from_numpy(x))
        expected = x @ layer.weight.to_numpy() + np.array([0.5, -0.5], np.float32)
        np.testing.assert_allclose(y.to_numpy(), expected, rtol=1e-5, atol=1e-6)

    def test_seed_is_deterministic(self):
        a = Linear.build(3, 3, seed=7).weight.to_numpy()
        b = Linear.build(3, 3, seed=7).weight.to_numpy()
        np.testing.assert_array_equal(a, b)

    def test_gradients(self):
        layer = Linear.build(3, 2, scalar_type="f64", seed=1)
        x = Variable(
            Tensor.from_numpy(np.random.default_rng(2).standard_normal((4, 3))),
            requires_grad=True,
        )
        ok = gradcheck(
            lambda v, w, b: v.matmul(w).add(b).tanh(),
            [x, layer.weight, layer.bias],
            eps=1e-6,
            atol=1e-6,
            rtol=1e-5,
        )
        self.assertTrue(ok)

    def test_accelerator_placement(self):
        layer = Linear.build(2, 2, device="accel:0", seed=0)
        self.assertEqual(str(layer.weight.device), "accel:0")
        out = layer(Tensor.ones((1, 2), "accel:0"))
        self.assertEqual(str(out.device), "accel:0")


class TestWeightInitializer(unittest.TestCase):
    def test_registry(self):
        self.assertIn("xavier_uniform", WeightInitializer.available())
        self.assertIn("he_normal", WeightInitializer.available())
        with self.assertRaises(ConfigurationError):
            WeightInitializer("nope")

    def test_xavier_bounds_and_zeros(self):
        rng = np.random.default_rng(0)
        t = Tensor((64, 32))
        WeightInitializer("xavier_uniform")(t, rng)
        limit = np.sqrt(6.0 / (64 + 32))
        self.assertLessEqual(float(np.abs(t.to_numpy()).max()), limit + 1e-6)
        WeightInitializer("zeros")(t, rng)
        np.testing.assert_array_equal(t.to_numpy(), np.zeros((64, 32), np.float32))

    def test_duplicate_registration_rejected(self):
        with self.assertRaises(ValueError):
            WeightInitializer.register_initializer("zeros")(lambda t, rng: t)


if __name__ == "__main__":
    unittest.main()
