"""Unit tests for PII redaction and performance utilities."""

import io
import logging

import pytest

from cv_autofill.log_redaction import PIIRedactionFilter, configure_logging, redact
from cv_autofill.performance import PerformanceMonitor, SimpleCache, timed_operation


class TestRedaction:
    """Tests for redact and PIIRedactionFilter."""

    def test_email_is_masked(self):
        """Test that e-mail addresses are replaced."""
        assert redact("Kontakt: anna.muster@example.ch") == "Kontakt: [EMAIL]"

    def test_ahv_is_masked(self):
        """Test that Swiss social security numbers are replaced."""
        assert "756.1234.5678.97" not in redact("AHV 756.1234.5678.97")

    def test_iban_is_masked(self):
        """Test that IBANs are replaced."""
        assert redact("IBAN CH93 0076 2011 6238 5295 7") == "IBAN [IBAN]"

    def test_phone_is_masked(self):
        """Test that phone numbers are replaced."""
        assert "[PHONE]" in redact("Tel. +41 79 123 45 67")

    def test_plain_text_is_untouched(self):
        """Test that ordinary log text is left alone."""
        assert redact("Job finished with 12 fields") == "Job finished with 12 fields"

    def test_filter_redacts_message_and_args(self):
        """Test the logging filter on both message and arguments."""
        record = logging.LogRecord(
            name="cv_autofill.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Candidate %s wrote from max@example.ch",
            args=("anna@example.ch",),
            exc_info=None,
        )

        assert PIIRedactionFilter().filter(record) is True
        assert record.getMessage() == "Candidate [EMAIL] wrote from [EMAIL]"

    def test_configure_logging_is_idempotent(self):
        """Test that repeated configuration adds a single handler."""
        stream = io.StringIO()
        package_logger = configure_logging(stream=stream)
        handler_count = len(package_logger.handlers)
        configure_logging(stream=stream)

        try:
            assert len(package_logger.handlers) == handler_count
            logging.getLogger("cv_autofill.jobs").info("Mail from bob@example.org")
            for handler in package_logger.handlers:
                handler.flush()
            assert "bob@example.org" not in stream.getvalue()
        finally:
            for handler in list(package_logger.handlers):
                if any(isinstance(f, PIIRedactionFilter) for f in handler.filters):
                    package_logger.removeHandler(handler)


class TestPerformanceMonitor:
    """Tests for PerformanceMonitor."""

    def test_track_records_success(self):
        """Test that a tracked block is recorded."""
        monitor = PerformanceMonitor()
        with monitor.track("acquire", file_type="pdf") as metric:
            pass

        stats = monitor.get_operation_stats("acquire")
        assert stats["count"] == 1
        assert stats["success_rate"] == 1.0
        assert metric.metadata == {"file_type": "pdf"}

    def test_track_records_failure_and_reraises(self):
        """Test that failures are recorded and propagated."""
        monitor = PerformanceMonitor()
        with pytest.raises(ValueError):
            with monitor.track("extract"):
                raise ValueError("engine down")

        assert monitor.get_operation_stats("extract")["success_rate"] == 0.0
        assert monitor.metrics["extract"][0].error == "engine down"

    def test_unknown_operation_has_no_stats(self):
        """Test the empty stats case."""
        assert PerformanceMonitor().get_operation_stats("missing") == {}

    def test_timed_operation_returns_result(self):
        """Test that the timing decorator is transparent."""
        @timed_operation("double")
        def double(x):
            return x * 2

        assert double(21) == 42
        assert double.__name__ == "double"


class TestSimpleCache:
    """Tests for SimpleCache."""

    def test_evicts_oldest_when_full(self):
        """Test that the oldest entry is evicted at capacity."""
        now = [0.0]
        cache = SimpleCache(max_size=2, ttl=60, clock=lambda: now[0])
        cache.set("a", 1)
        now[0] = 1.0
        cache.set("b", 2)
        now[0] = 2.0
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
