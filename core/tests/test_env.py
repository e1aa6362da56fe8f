from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import SimpleTestCase

from nemesis.env import load_config, map_env_variables, parse_duration, validate_env

GOOD_SECRET = "s" * 40


class MapEnvVariablesTests(SimpleTestCase):
    def test_production_prefix_overrides(self):
        environ = {
            "APP_ENV": "production",
            "CLIENT_URL": "http://localhost:5173",
            "PROD_CLIENT_URL": "https://nemesis.art",
        }
        mapped = map_env_variables(environ)
        self.assertEqual(mapped["CLIENT_URL"], "https://nemesis.art")
        # input is never mutated
        self.assertEqual(environ["CLIENT_URL"], "http://localhost:5173")

    def test_empty_prefixed_value_is_ignored(self):
        mapped = map_env_variables({"APP_ENV": "development", "PORT": "5005", "DEV_PORT": ""})
        self.assertEqual(mapped["PORT"], "5005")

    def test_node_env_fallback(self):
        mapped = map_env_variables({"NODE_ENV": "server", "SERVER_PORT": "8080"})
        self.assertEqual(mapped["PORT"], "8080")

    def test_unknown_environment_has_no_mapping(self):
        environ = {"APP_ENV": "staging", "STAGING_PORT": "1", "PORT": "2"}
        self.assertEqual(map_env_variables(environ), environ)

    def test_only_listed_variables_are_mapped(self):
        mapped = map_env_variables({"APP_ENV": "development", "DEV_TOKEN_SECRET": "x"})
        self.assertNotIn("TOKEN_SECRET", mapped)


class ValidateEnvTests(SimpleTestCase):
    def test_missing_token_secret_exits(self):
        with self.assertLogs("nemesis.env", level="ERROR") as logs:
            with self.assertRaises(SystemExit) as ctx:
                validate_env({"DATABASE_URL": "sqlite:///db.sqlite3"})
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("TOKEN_SECRET", logs.output[0])

    def test_missing_database_url_exits(self):
        with self.assertLogs("nemesis.env", level="ERROR"):
            with self.assertRaises(SystemExit):
                validate_env({"TOKEN_SECRET": GOOD_SECRET})

    def test_short_secret_only_warns(self):
        with self.assertLogs("nemesis.env", level="WARNING") as logs:
            validate_env({"DATABASE_URL": "sqlite:///db.sqlite3", "TOKEN_SECRET": "0123456789"})
        self.assertTrue(any("shorter than 32" in line for line in logs.output))

    def test_unset_optionals_are_listed(self):
        with self.assertLogs("nemesis.env", level="WARNING") as logs:
            validate_env({"DATABASE_URL": "sqlite:///db.sqlite3", "TOKEN_SECRET": GOOD_SECRET})
        self.assertIn("STRIPE_SECRET_KEY", logs.output[0])


class ConfigTests(SimpleTestCase):
    def test_parse_duration(self):
        self.assertEqual(parse_duration("7d"), timedelta(days=7))
        self.assertEqual(parse_duration("12h"), timedelta(hours=12))
        self.assertEqual(parse_duration("90"), timedelta(seconds=90))
        self.assertEqual(parse_duration(None), timedelta(days=7))

    def test_invalid_duration_falls_back(self):
        with self.assertLogs("nemesis.env", level="WARNING"):
            self.assertEqual(parse_duration("soon"), timedelta(days=7))

    def test_load_config_applies_mapping_and_is_frozen(self):
        config = load_config({
            "APP_ENV": "production",
            "TOKEN_SECRET": GOOD_SECRET,
            "PROD_CLIENT_URL": "https://nemesis.art/",
            "PORT": "not-a-number",
        })
        self.assertTrue(config.is_production)
        self.assertFalse(config.debug)
        self.assertEqual(config.client_url, "https://nemesis.art")
        self.assertEqual(config.port, 5005)
        with self.assertRaises(AttributeError):
            config.port = 1

    def test_render_marks_production(self):
        self.assertTrue(load_config({"RENDER": "true"}).is_production)


class CheckEnvCommandTests(SimpleTestCase):
    def test_reports_success_with_valid_environment(self):
        environ = {"DATABASE_URL": "sqlite:///db.sqlite3", "TOKEN_SECRET": GOOD_SECRET}
        out = StringIO()
        with mock.patch.dict("os.environ", environ, clear=True):
            with self.assertLogs("nemesis.env", level="WARNING"):
                call_command("checkenv", stdout=out)
        self.assertIn("OK", out.getvalue())
