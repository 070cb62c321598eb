import unittest

from github_snapshot.config import load_settings
from github_snapshot.domain.exceptions import ConfigurationException


class TestLoadSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = load_settings({"GITHUB_TOKEN": "tok", "GITHUB_USERNAME": "octocat"})

        self.assertEqual(settings.duration, "24h")
        self.assertEqual(settings.timezone, "UTC")
        self.assertEqual(settings.date_field, "committer-date")
        self.assertEqual(settings.log_level, "INFO")
        self.assertIsNone(settings.time_window.from_)

    def test_explicit_window_and_overrides(self) -> None:
        settings = load_settings({
            "GITHUB_TOKEN": "tok",
            "GITHUB_USERNAME": "octocat",
            "SNAPSHOT_FROM": "2024-01-01T00:00:00+05:30",
            "SNAPSHOT_TO": "2024-01-02T00:00:00+05:30",
            "SNAPSHOT_TIMEZONE": "Asia/Kolkata",
            "SNAPSHOT_DATE_FIELD": "author-date",
            "LOG_LEVEL": "debug",
        })

        window = settings.time_window
        self.assertEqual(window.from_, "2024-01-01T00:00:00+05:30")
        self.assertEqual(window.to, "2024-01-02T00:00:00+05:30")
        self.assertEqual(settings.date_field, "author-date")
        self.assertEqual(settings.log_level, "DEBUG")

    def test_missing_token_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            load_settings({"GITHUB_USERNAME": "octocat"})

    def test_missing_username_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            load_settings({"GITHUB_TOKEN": "tok", "GITHUB_USERNAME": "  "})

    def test_invalid_date_field_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            load_settings({"GITHUB_TOKEN": "tok", "GITHUB_USERNAME": "octocat", "SNAPSHOT_DATE_FIELD": "pushed"})
