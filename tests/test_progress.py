import time
import unittest
from unittest import mock

from blob_deleter import ProgressReporter, RunStatistics, open_file_descriptors


class ProgressReporterTest(unittest.TestCase):
    def test_line_includes_rate_once_something_is_deleted(self):
        stats = RunStatistics(start_time=time.time() - 120, deleted_count=240)
        reporter = ProgressReporter(stats)

        with mock.patch("blob_deleter.open_file_descriptors", return_value=7):
            line = reporter.format_line()

        self.assertEqual(line, "240 blob(s) deleted after 2.00 minutes, 2/sec, file desc: 7.")

    def test_line_omits_rate_before_first_delete(self):
        reporter = ProgressReporter(RunStatistics())

        with mock.patch("blob_deleter.open_file_descriptors", return_value=12):
            line = reporter.format_line()

        self.assertTrue(line.startswith("0 blob(s) deleted after 0.00 minutes"))
        self.assertTrue(line.endswith("file desc: 12."))
        self.assertNotIn("/sec", line)

    def test_reporting_leaves_statistics_untouched(self):
        stats = RunStatistics(deleted_count=5, failed_count=1, retry_index=2)
        before = stats.snapshot()

        with self.assertLogs("blob_deleter", level="INFO"):
            ProgressReporter(stats).report()

        self.assertEqual(stats.snapshot(), before)

    def test_reports_on_interval_until_stopped(self):
        reporter = ProgressReporter(RunStatistics(), interval=0.01)

        with self.assertLogs("blob_deleter", level="INFO") as logs:
            reporter.start()
            time.sleep(0.1)
            reporter.stop()

        self.assertGreaterEqual(len(logs.records), 2)
        self.assertIsNone(reporter._thread)

    def test_elapsed_counts_from_cycle_start(self):
        stats = RunStatistics(start_time=time.time() - 30)
        self.assertGreaterEqual(stats.elapsed(), 30)
        self.assertLess(stats.elapsed(), 60)

        stats.reset(retry_index=1)
        self.assertLess(stats.elapsed(), 5)

    def test_line_uses_statistics_elapsed(self):
        stats = RunStatistics(deleted_count=360)
        reporter = ProgressReporter(stats)

        with mock.patch("blob_deleter.open_file_descriptors", return_value=3), \
                mock.patch.object(RunStatistics, "elapsed", return_value=180.0):
            line = reporter.format_line()

        self.assertEqual(line, "360 blob(s) deleted after 3.00 minutes, 2/sec, file desc: 3.")

    def test_open_file_descriptors_is_positive(self):
        self.assertGreater(open_file_descriptors(), 0)


if __name__ == "__main__":
    unittest.main()
