"""
Tests for rate-limited logging.
"""
import logging
from unittest.mock import MagicMock, patch

from cachetools import TTLCache

from xchain_sdk._rate_limited_log import rate_limited_log, reset_rate_limits


class TestRateLimitedLog:
    """Tests for the rate-limited logging implementation."""

    def test_repeated_message_suppressed(self):
        """The same message is emitted once per interval"""
        mock_logger = MagicMock(spec=logging.Logger)

        assert rate_limited_log("Test message", logger_instance=mock_logger) is True
        mock_logger.warning.assert_called_once_with("Test message")

        mock_logger.reset_mock()
        assert rate_limited_log("Test message", logger_instance=mock_logger) is False
        mock_logger.warning.assert_not_called()

    def test_level_is_part_of_the_key(self):
        mock_logger = MagicMock(spec=logging.Logger)

        rate_limited_log("Test message", level="warning", logger_instance=mock_logger)
        rate_limited_log("Test message", level="error", logger_instance=mock_logger)

        mock_logger.warning.assert_called_once_with("Test message")
        mock_logger.error.assert_called_once_with("Test message")

    def test_format_args_passed_through(self):
        mock_logger = MagicMock(spec=logging.Logger)
        rate_limited_log("ChainType: %s failed: %s", "EOS", "boom", level="error", logger_instance=mock_logger)
        mock_logger.error.assert_called_once_with("ChainType: %s failed: %s", "EOS", "boom")

    def test_explicit_key(self):
        """Distinct keys are tracked separately even for one format string"""
        mock_logger = MagicMock(spec=logging.Logger)

        rate_limited_log("skipped %s", "a", key="a", logger_instance=mock_logger)
        rate_limited_log("skipped %s", "b", key="b", logger_instance=mock_logger)
        rate_limited_log("skipped %s", "a", key="a", logger_instance=mock_logger)

        assert mock_logger.warning.call_count == 2

    def test_expired_entry_logs_again(self):
        """Once the cache forgets a key the message is emitted again"""
        mock_logger = MagicMock(spec=logging.Logger)
        clock = [0.0]
        cache = TTLCache(maxsize=10, ttl=60, timer=lambda: clock[0])

        with patch("xchain_sdk._rate_limited_log._log_cache", cache):
            rate_limited_log("Test message", logger_instance=mock_logger)
            clock[0] = 30.0
            rate_limited_log("Test message", logger_instance=mock_logger)
            clock[0] = 61.0
            rate_limited_log("Test message", logger_instance=mock_logger)

        assert mock_logger.warning.call_count == 2

    def test_reset(self):
        mock_logger = MagicMock(spec=logging.Logger)
        rate_limited_log("Test message", logger_instance=mock_logger)
        reset_rate_limits()
        rate_limited_log("Test message", logger_instance=mock_logger)
        assert mock_logger.warning.call_count == 2

    def test_unknown_level_falls_back_to_warning(self):
        mock_logger = MagicMock(spec=logging.Logger)
        rate_limited_log("Test message", level="loud", logger_instance=mock_logger)
        mock_logger.warning.assert_called_once_with("Test message")
