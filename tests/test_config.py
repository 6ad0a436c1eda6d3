from __future__ import annotations

import unittest

from taskqueue.config import ConfigError, QueueConfig, load_config, load_queue_config


class ConfigTests(unittest.TestCase):
    def test_load_config_uses_defaults(self) -> None:
        cfg = load_config({})
        self.assertEqual(cfg.queue, QueueConfig(index_key="id", remove_on_dispatch=False))
        self.assertEqual(cfg.exec_timeout_seconds, 120.0)
        self.assertFalse(cfg.dry_run)
        self.assertEqual(cfg.report_details_max_chars, 4000)

    def test_load_config_reads_overrides(self) -> None:
        cfg = load_config(
            {
                "TASKQUEUE_INDEX_KEY": " name ",
                "TASKQUEUE_REMOVE_ON_DISPATCH": "yes",
                "TASKQUEUE_EXEC_TIMEOUT_SECONDS": "2.5",
                "TASKQUEUE_DRY_RUN": "on",
                "TASKQUEUE_REPORT_DETAILS_MAX_CHARS": "80",
            }
        )
        self.assertEqual(cfg.queue.index_key, "name")
        self.assertTrue(cfg.queue.remove_on_dispatch)
        self.assertEqual(cfg.exec_timeout_seconds, 2.5)
        self.assertTrue(cfg.dry_run)
        self.assertEqual(cfg.report_details_max_chars, 80)

    def test_blank_index_key_falls_back_to_default(self) -> None:
        cfg = load_queue_config({"TASKQUEUE_INDEX_KEY": "   "})
        self.assertEqual(cfg.index_key, "id")

    def test_invalid_bool_raises(self) -> None:
        with self.assertRaises(ConfigError):
            load_queue_config({"TASKQUEUE_REMOVE_ON_DISPATCH": "maybe"})

    def test_non_numeric_timeout_raises(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            load_config({"TASKQUEUE_EXEC_TIMEOUT_SECONDS": "soon"})
        self.assertIn("TASKQUEUE_EXEC_TIMEOUT_SECONDS", str(ctx.exception))

    def test_non_positive_values_raise(self) -> None:
        with self.assertRaises(ConfigError):
            load_config({"TASKQUEUE_EXEC_TIMEOUT_SECONDS": "0"})
        with self.assertRaises(ConfigError):
            load_config({"TASKQUEUE_REPORT_DETAILS_MAX_CHARS": "-5"})


if __name__ == "__main__":
    unittest.main()
