from __future__ import annotations

import io
import json
import unittest

from taskqueue.events import emit_event
from taskqueue.models import TaskResult, TaskStatus
from taskqueue.reporter import Reporter


class ReporterTests(unittest.TestCase):
    def test_report_lists_status_and_details(self) -> None:
        stream = io.StringIO()
        reporter = Reporter(stream=stream)
        reporter.report(
            "task-1",
            "echo hi",
            TaskResult(status=TaskStatus.SUCCEEDED, summary="shell command completed", details="hi\nthere"),
        )

        text = stream.getvalue()
        self.assertIn("[ok] task task-1", text)
        self.assertIn("status: succeeded", text)
        self.assertIn("input: echo hi", text)
        self.assertIn("  hi\n  there", text)

    def test_report_trims_long_fields(self) -> None:
        stream = io.StringIO()
        reporter = Reporter(stream=stream, input_max_chars=10, details_max_chars=8)
        reporter.report(
            "task-2",
            "x" * 50,
            TaskResult(status=TaskStatus.FAILED, summary="failed", details="y" * 50),
        )

        text = stream.getvalue()
        self.assertIn("[fail] task task-2", text)
        self.assertIn("input: " + "x" * 7 + "...", text)
        self.assertIn("  " + "y" * 5 + "...", text)
        self.assertNotIn("y" * 6, text)

    def test_every_status_has_a_labelled_icon(self) -> None:
        self.assertEqual({status.value for status in TaskStatus}, {"succeeded", "failed"})
        for status in TaskStatus:
            stream = io.StringIO()
            Reporter(stream=stream).report("t", "true", TaskResult(status=status, summary="", details=""))
            self.assertNotIn("[info]", stream.getvalue())
            self.assertIn(f"status: {status.value}", stream.getvalue())


class EventTests(unittest.TestCase):
    def test_emit_event_writes_sorted_json_line(self) -> None:
        stream = io.StringIO()
        emit_event("task_completed", stream=stream, task_key="a", queued=2)

        line = stream.getvalue()
        self.assertTrue(line.endswith("\n"))
        self.assertEqual(line.strip(), '{"event":"task_completed","queued":2,"task_key":"a"}')

    def test_emit_event_stringifies_unknown_values(self) -> None:
        stream = io.StringIO()
        emit_event("task_dispatched", stream=stream, task_key=("a", 1), when=object)
        payload = json.loads(stream.getvalue())
        self.assertEqual(payload["task_key"], ["a", 1])
        self.assertIn("object", payload["when"])


if __name__ == "__main__":
    unittest.main()
