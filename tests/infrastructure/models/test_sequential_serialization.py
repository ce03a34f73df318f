import json
import unittest

import numpy as np

from tapegrad import (
    ConfigurationError,
    Dropout,
    Linear,
    Module,
    ReLU,
    Sequential,
    Tensor,
    module_from_config,
    module_to_config,
)


class _Unregistered(Module):
    def get_config(self):
        return {}


class TestSequential(unittest.TestCase):
    def test_forward_applies_layers_in_order(self):
        model = Sequential(Linear.build(3, 4, seed=0), ReLU(), Linear.build(4, 2, seed=1))
        self.assertEqual(len(model), 3)
        self.assertIsInstance(model[1], ReLU)
        x = np.random.default_rng(0).standard_normal((5, 3)).astype(np.float32)
        w1, b1 = model[0].weight.to_numpy(), model[0].bias.to_numpy()
        w2, b2 = model[2].weight.to_numpy(), model[2].bias.to_numpy()
        expected = np.maximum(x @ w1 + b1, 0) @ w2 + b2
        np.testing.assert_allclose(model(Tensor.from_numpy(x)).to_numpy(), expected, rtol=1e-5, atol=1e-6)

    def test_parameter_names_follow_layer_order(self):
        model = Sequential(Linear.build(3, 4), ReLU(), Linear.build(4, 2))
        names = [n for n, _ in model.named_parameters()]
        self.assertEqual(names, ["0.weight", "0.bias", "2.weight", "2.bias"])

    def test_add_validation(self):
        model = Sequential()
        model.add(ReLU(), name="act")
        with self.assertRaises(ValueError):
            model.add(ReLU(), name="act")
        with self.assertRaises(TypeError):
            model.add("relu")

    def test_auto_names_skip_explicit_names(self):
        model = Sequential()
        model.add(ReLU(), name="1")
        model.add(ReLU())
        model.add(ReLU())
        self.assertEqual(len(model), 3)
        self.assertEqual(list(model._modules), ["1", "2", "3"])

    def test_eval_reaches_children(self):
        model = Sequential(Dropout(0.5), ReLU())
        model.eval()
        self.assertFalse(model[0].training)


class TestModuleConfigTree(unittest.TestCase):
    def test_round_trip_rebuilds_structure(self):
        model = Sequential(Linear.build(3, 4, seed=0), ReLU(), Dropout(0.2, seed=1))
        tree = module_to_config(model)
        json.dumps(tree)
        self.assertEqual(tree["type"], "Sequential")
        self.assertEqual(tree["children"]["0"]["config"]["inputs"], 3)

        rebuilt = module_from_config(tree)
        self.assertIsInstance(rebuilt, Sequential)
        self.assertEqual(len(rebuilt), 3)
        self.assertEqual(rebuilt[0].weight.shape, (3, 4))
        self.assertEqual(rebuilt[2].p, 0.2)

        rebuilt.load_state_dict(model.state_dict())
        np.testing.assert_array_equal(rebuilt[0].weight.to_numpy(), model[0].weight.to_numpy())

    def test_unknown_type_raises(self):
        with self.assertRaises(ConfigurationError):
            module_from_config(module_to_config(_Unregistered()))

    def test_children_on_leaf_module_raise(self):
        tree = module_to_config(ReLU())
        tree["children"] = {"0": module_to_config(ReLU())}
        with self.assertRaises(ConfigurationError):
            module_from_config(tree)


if __name__ == "__main__":
    unittest.main()
