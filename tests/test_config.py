import logging
import unittest

from blob_deleter import (
    ConfigurationError,
    DEFAULT_CONCURRENCY,
    LOG_LEVELS,
    DeleterConfig,
    parse_arguments,
)


class DeleterConfigTest(unittest.TestCase):
    def test_defaults(self):
        config = DeleterConfig.from_sources(
            parse_arguments([]), {"STORAGE_ACCOUNT": "acct", "STORAGE_CONTAINER": "photos", "STORAGE_KEY": "a2V5"}
        )

        self.assertEqual(config.mode, "test")
        self.assertEqual(config.concurrency, DEFAULT_CONCURRENCY)
        self.assertEqual(config.on_error, "halt")
        self.assertEqual(config.retries, 0)
        self.assertEqual(config.log_level, "info")
        self.assertIsNone(config.prefix)
        self.assertIsNone(config.request_timeout)
        config.validate()

    def test_command_line_overrides_environment(self):
        args = parse_arguments(
            ["-a", "cli-acct", "-x", "8", "-r", "0", "-m", "DELETE", "-e", "continue"]
        )
        environ = {
            "STORAGE_ACCOUNT": "env-acct",
            "STORAGE_CONTAINER": "env-container",
            "STORAGE_SAS": "?sig=abc",
            "CONCURRENCY": "50",
            "RETRIES": "4",
            "MODE": "test",
        }

        config = DeleterConfig.from_sources(args, environ)

        self.assertEqual(config.account, "cli-acct")
        self.assertEqual(config.container, "env-container")
        self.assertEqual(config.sas, "?sig=abc")
        self.assertEqual(config.concurrency, 8)
        self.assertEqual(config.retries, 0)
        self.assertEqual(config.mode, "delete")
        self.assertEqual(config.on_error, "continue")

    def test_unparsable_numbers_fall_back_to_defaults(self):
        environ = {"CONCURRENCY": "lots", "RETRIES": "some", "REQUEST_TIMEOUT": "soon"}

        config = DeleterConfig.from_sources(parse_arguments([]), environ)

        self.assertEqual(config.concurrency, DEFAULT_CONCURRENCY)
        self.assertEqual(config.retries, 0)
        self.assertIsNone(config.request_timeout)

    def test_non_positive_concurrency_falls_back_to_default(self):
        config = DeleterConfig.from_sources(
            parse_arguments(["-x", "0"]), {"RETRIES": "-2"}
        )

        self.assertEqual(config.concurrency, DEFAULT_CONCURRENCY)
        self.assertEqual(config.retries, 0)

    def test_silly_log_level_means_debug(self):
        config = DeleterConfig.from_sources(
            parse_arguments(["-a", "acct", "-c", "photos", "-k", "a2V5"]),
            {"LOG_LEVEL": "SILLY"},
        )

        config.validate()
        self.assertEqual(config.log_level, "silly")
        self.assertEqual(LOG_LEVELS[config.log_level], logging.DEBUG)
        self.assertEqual(parse_arguments(["-l", "silly"]).log_level, "silly")

    def test_timeout_from_environment(self):
        config = DeleterConfig.from_sources(parse_arguments([]), {"REQUEST_TIMEOUT": "30"})
        self.assertEqual(config.request_timeout, 30.0)

    def test_missing_account_is_rejected(self):
        config = DeleterConfig(account=None, container="photos", key="a2V5")
        with self.assertRaisesRegex(ConfigurationError, "STORAGE_ACCOUNT"):
            config.validate()

    def test_missing_container_is_rejected(self):
        config = DeleterConfig(account="acct", container="", key="a2V5")
        with self.assertRaisesRegex(ConfigurationError, "STORAGE_CONTAINER"):
            config.validate()

    def test_key_or_sas_is_required(self):
        config = DeleterConfig(account="acct", container="photos")
        with self.assertRaisesRegex(ConfigurationError, "STORAGE_KEY or STORAGE_SAS"):
            config.validate()

    def test_unknown_policy_from_environment_is_rejected(self):
        config = DeleterConfig.from_sources(
            parse_arguments(["-a", "acct", "-c", "photos", "-s", "?sig=abc"]),
            {"ON_ERROR": "ignore"},
        )
        with self.assertRaisesRegex(ConfigurationError, "ON_ERROR"):
            config.validate()

    def test_unknown_mode_on_command_line_exits(self):
        with self.assertRaises(SystemExit):
            parse_arguments(["-m", "purge"])

    def test_endpoint_url(self):
        config = DeleterConfig(account="acct", container="photos", key="a2V5")
        self.assertEqual(config.endpoint_url, "https://acct.blob.core.windows.net")


if __name__ == "__main__":
    unittest.main()
