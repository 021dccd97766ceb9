import unittest
from contextlib import redirect_stderr
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from combiner.aggregator import EXCLUDED, MERGED, SKIPPED, aggregate, extract_domain
from combiner.config import CombinerConfig
from tests.utils.tempdir import managed_temp_dir, write_list


class FailingFile:
    """Yields some lines, then fails like a disk read error."""

    def __init__(self, lines):
        self._lines = lines

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def __iter__(self):
        yield from self._lines
        raise OSError("I/O error")


def make_config():
    return CombinerConfig(
        exclusions=frozenset({"child.txt"}),
        category_merges={"publicite": "ads"},
    )


class ExtractDomainTests(unittest.TestCase):
    def test_hosts_prefix_is_dropped(self):
        self.assertEqual(extract_domain("0.0.0.0 foo.com"), "foo.com")
        self.assertEqual(extract_domain("127.0.0.1\tFoo.COM"), "foo.com")

    def test_plain_domain(self):
        self.assertEqual(extract_domain("  bar.org  \n"), "bar.org")

    def test_blank_and_comment_lines(self):
        self.assertIsNone(extract_domain(""))
        self.assertIsNone(extract_domain("   \t\n"))
        self.assertIsNone(extract_domain("# 0.0.0.0 foo.com"))
        self.assertIsNone(extract_domain("#"))

    def test_no_further_normalization(self):
        self.assertEqual(extract_domain("https://foo.com:8080/path"), "https://foo.com:8080/path")


class AggregateTests(unittest.TestCase):
    def test_dedup_across_files_and_lines(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "foo.com", "0.0.0.0 FOO.com", "bar.com")
            write_list(tmp / "b", "ads.txt", "127.0.0.1 bar.com", "baz.com")
            result = aggregate([tmp / "a", tmp / "b"], make_config())

        self.assertEqual(result.buckets, {"ads": {"foo.com", "bar.com", "baz.com"}})

    def test_category_merge_across_directories(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "0.0.0.0 foo.com", "# comment")
            write_list(tmp / "b", "publicite.txt", "bar.com")
            result = aggregate([tmp / "a", tmp / "b"], make_config())

        self.assertEqual(result.buckets, {"ads": {"foo.com", "bar.com"}})

    def test_excluded_file_contributes_nothing(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "child.txt", "secret.com")
            write_list(tmp / "b", "Child.txt", "other.com")
            write_list(tmp / "b", "games.txt", "game.com")
            result = aggregate([tmp / "a", tmp / "b"], make_config())

        self.assertEqual(result.buckets, {"games": {"game.com"}})
        statuses = sorted(o.status for o in result.outcomes)
        self.assertEqual(statuses, [EXCLUDED, EXCLUDED, MERGED])

    def test_missing_directory_is_not_fatal(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "foo.com")
            with redirect_stderr(StringIO()) as err:
                result = aggregate([tmp / "missing", tmp / "a"], make_config())

        self.assertEqual(result.buckets, {"ads": {"foo.com"}})
        self.assertEqual(result.outcomes[0].status, SKIPPED)
        self.assertIn("missing", err.getvalue())

    def test_subdirectory_is_skipped(self):
        with managed_temp_dir("agg") as tmp:
            (tmp / "a" / "nested.txt").mkdir(parents=True)
            write_list(tmp / "a", "ads.txt", "foo.com")
            with redirect_stderr(StringIO()):
                result = aggregate([tmp / "a"], make_config())

        self.assertEqual(result.buckets, {"ads": {"foo.com"}})
        skipped = [o for o in result.outcomes if o.status == SKIPPED]
        self.assertEqual(len(skipped), 1)
        self.assertEqual(skipped[0].reason, "not a regular file")

    def test_outcome_counts_domain_lines(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "# header", "", "foo.com", "foo.com")
            result = aggregate([tmp / "a"], make_config())

        self.assertEqual(result.outcomes[0].lines, 2)
        self.assertEqual(result.buckets["ads"], {"foo.com"})

    def test_aggregation_is_idempotent(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "foo.com", "bar.com")
            write_list(tmp / "b", "publicite.txt", "bar.com", "qux.com")
            first = aggregate([tmp / "a", tmp / "b"], make_config())
            second = aggregate([tmp / "a", tmp / "b"], make_config())

        self.assertEqual(first.buckets, second.buckets)

    def test_read_error_keeps_lines_read_so_far(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "placeholder.com")
            failing = FailingFile(["foo.com\n", "0.0.0.0 bar.com\n"])
            with patch("combiner.aggregator.open", return_value=failing, create=True):
                with redirect_stderr(StringIO()) as err:
                    result = aggregate([tmp / "a"], make_config())

        self.assertEqual(result.buckets, {"ads": {"foo.com", "bar.com"}})
        self.assertEqual(result.outcomes[0].status, SKIPPED)
        self.assertEqual(result.outcomes[0].reason, "I/O error")
        self.assertIn("ads.txt", err.getvalue())

    def test_open_failure_skips_file_and_continues(self):
        with managed_temp_dir("agg") as tmp:
            write_list(tmp / "a", "ads.txt", "foo.com")
            write_list(tmp / "b", "games.txt", "game.com")
            real_open = open

            def open_or_fail(path, *args, **kwargs):
                if Path(path).name == "ads.txt":
                    raise PermissionError("permission denied")
                return real_open(path, *args, **kwargs)

            with patch("combiner.aggregator.open", side_effect=open_or_fail, create=True):
                with redirect_stderr(StringIO()):
                    result = aggregate([tmp / "a", tmp / "b"], make_config())

        self.assertEqual(result.buckets["games"], {"game.com"})
        self.assertEqual(result.buckets.get("ads", set()), set())
        statuses = {o.path.name: o.status for o in result.outcomes}
        self.assertEqual(statuses, {"ads.txt": SKIPPED, "games.txt": MERGED})

    def test_undecodable_bytes_do_not_abort(self):
        with managed_temp_dir("agg") as tmp:
            (tmp / "a").mkdir()
            (tmp / "a" / "ads.txt").write_bytes(b"foo.com\n\xff\xfe bad\nbar.com\n")
            result = aggregate([tmp / "a"], make_config())

        self.assertIn("foo.com", result.buckets["ads"])
        self.assertIn("bar.com", result.buckets["ads"])
        self.assertEqual(len(result.buckets["ads"]), 3)


if __name__ == "__main__":
    unittest.main()
