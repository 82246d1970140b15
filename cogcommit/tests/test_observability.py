import unittest
from unittest import mock

from cogcommit.observability import otel


class _FakeOtelCounter:
    def __init__(self) -> None:
        self.calls = []

    def add(self, amount, labels):
        self.calls.append((amount, labels))


class _FakePromCounter:
    def __init__(self) -> None:
        self.calls = []

    def labels(self, **labels):
        parent = self

        class _Bound:
            def inc(self, amount=1):
                parent.calls.append((amount, labels))

        return _Bound()


class ObservabilityTests(unittest.TestCase):
    def test_otlp_url(self) -> None:
        self.assertEqual(otel._otlp_url("http://collector:4318", "traces"), "http://collector:4318/v1/traces")
        self.assertEqual(otel._otlp_url("http://collector:4318/v1/", "metrics"), "http://collector:4318/v1/metrics")
        self.assertEqual(otel._otlp_url("http://c/v1/traces", "traces"), "http://c/v1/traces")
        self.assertIsNone(otel._otlp_url("  ", "traces"))

    def test_recording_is_a_noop_without_backends(self) -> None:
        otel.record_commit_closed("git_commit", project="demo")
        otel.record_malformed_lines(3)
        with otel.start_span("noop") as span:
            self.assertIsNone(span)

    def test_metric_fans_out_to_both_backends(self) -> None:
        metric = otel._METRICS["cogcommit_malformed_lines_total"]
        otel_counter, prom_counter = _FakeOtelCounter(), _FakePromCounter()

        with mock.patch.object(metric, "otel", otel_counter), mock.patch.object(metric, "prom", prom_counter):
            otel.record_malformed_lines(2, project="")
            otel.record_malformed_lines(0, project="demo")

        self.assertEqual(otel_counter.calls, [(2, {"project": "unknown"})])
        self.assertEqual(prom_counter.calls, [(2, {"project": "unknown"})])


if __name__ == "__main__":
    unittest.main()
