import logging
import os
import unittest
from unittest import mock

from tapegrad import (
    ConfigurationError,
    DeviceNotSupportedError,
    Tensor,
    backend_for,
    get_runtime_config,
    reset_runtime_config,
    set_runtime_config,
)


class TestRuntimeConfig(unittest.TestCase):
    def tearDown(self):
        reset_runtime_config()

    def test_environment_is_read(self):
        env = {"TAPEGRAD_HOST_WORKERS": "3", "TAPEGRAD_PARALLEL_THRESHOLD": "10"}
        with mock.patch.dict(os.environ, env):
            cfg = reset_runtime_config()
        self.assertEqual(cfg.host_workers, 3)
        self.assertEqual(cfg.parallel_threshold, 10)

    def test_bad_environment_value_raises(self):
        with mock.patch.dict(os.environ, {"TAPEGRAD_ACCEL_DEVICES": "two"}):
            with self.assertRaises(ConfigurationError):
                reset_runtime_config()

    def test_override_and_unknown_field(self):
        cfg = set_runtime_config(parallel_threshold=7)
        self.assertEqual(cfg.parallel_threshold, 7)
        self.assertIs(get_runtime_config(), cfg)
        with self.assertRaises(ConfigurationError):
            set_runtime_config(no_such_field=1)
        with self.assertRaises(ConfigurationError):
            set_runtime_config(host_workers=0)

    def test_override_rebuilds_backends(self):
        before = backend_for("host")
        set_runtime_config(host_workers=2)
        after = backend_for("host")
        self.assertIsNot(before, after)
        self.assertEqual(after.workers, 2)

    def test_accelerator_count_limits_devices(self):
        set_runtime_config(accel_devices=1)
        backend_for("accel:0")
        with self.assertRaises(DeviceNotSupportedError):
            backend_for("accel:1")
        with self.assertRaises(DeviceNotSupportedError):
            Tensor((2,), "accel:1")

    def test_log_level_override_applies_to_package_logger(self):
        pkg_logger = logging.getLogger("tapegrad")
        set_runtime_config(log_level="debug")
        self.assertEqual(pkg_logger.level, logging.DEBUG)
        set_runtime_config(log_level="WARNING")
        self.assertEqual(pkg_logger.level, logging.WARNING)
        reset_runtime_config()
        self.assertEqual(pkg_logger.level, logging.NOTSET)

    def test_log_level_from_environment(self):
        with mock.patch.dict(os.environ, {"TAPEGRAD_LOG_LEVEL": "ERROR"}):
            reset_runtime_config()
        self.assertEqual(logging.getLogger("tapegrad").level, logging.ERROR)

    def test_unknown_log_level_raises_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            set_runtime_config(log_level="LOUD")
        with mock.patch.dict(os.environ, {"TAPEGRAD_LOG_LEVEL": "chatty"}):
            with self.assertRaises(ConfigurationError):
                reset_runtime_config()


if __name__ == "__main__":
    unittest.main()
