import unittest

import numpy as np

from tapegrad.domain import Device, DeviceType, ScalarType


class TestScalarType(unittest.TestCase):
    def test_sizes(self):
        self.assertEqual(ScalarType.U8.size, 1)
        self.assertEqual(ScalarType.F16.size, 2)
        self.assertEqual(ScalarType.BF16.size, 2)
        self.assertEqual(ScalarType.I32.size, 4)
        self.assertEqual(ScalarType.F64.size, 8)

    def test_float_and_signed_flags(self):
        self.assertTrue(ScalarType.F32.is_float)
        self.assertFalse(ScalarType.I64.is_float)
        self.assertTrue(ScalarType.I8.is_signed)
        self.assertFalse(ScalarType.U16.is_signed)
        self.assertTrue(ScalarType.BF16.is_reduced_precision)
        self.assertFalse(ScalarType.F32.is_reduced_precision)

    def test_from_name_accepts_short_and_numpy_names(self):
        self.assertIs(ScalarType.from_name("f32"), ScalarType.F32)
        self.assertIs(ScalarType.from_name("float64"), ScalarType.F64)
        self.assertIs(ScalarType.from_numpy_dtype(np.int16), ScalarType.I16)
        with self.assertRaises(ValueError):
            ScalarType.from_name("complex64")

    def test_bf16_is_stored_in_float32_lanes(self):
        self.assertEqual(ScalarType.BF16.numpy_dtype, np.dtype(np.float32))
        self.assertEqual(str(ScalarType.BF16), "bf16")


class TestDevice(unittest.TestCase):
    def test_parse_host_and_cpu_alias(self):
        self.assertTrue(Device("host").is_host())
        self.assertEqual(Device("cpu"), Device("host"))
        self.assertEqual(str(Device.host()), "host")

    def test_parse_accel(self):
        d = Device("accel:2")
        self.assertIs(d.type, DeviceType.ACCEL)
        self.assertEqual(d.index, 2)
        self.assertTrue(d.is_accel())
        self.assertEqual(Device.accel(2), d)

    def test_invalid_strings_raise(self):
        for bad in ("gpu", "accel", "accel:-1", "accel:x", ""):
            with self.subTest(bad=bad):
                with self.assertRaises(ValueError):
                    Device(bad)

    def test_hashable_value_type(self):
        table = {Device("accel:0"): "a", Device("host"): "h"}
        self.assertEqual(table[Device("accel:0")], "a")
        self.assertEqual(table[Device("cpu")], "h")
        self.assertNotEqual(Device("accel:0"), Device("accel:1"))


if __name__ == "__main__":
    unittest.main()
