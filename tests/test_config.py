import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from gpm.config import Config, load_config, merge_env, redact_token, save_config


class TestConfig(unittest.TestCase):
    def test_save_then_load_ignores_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "nested" / "config.json"
            save_config(Config(token="ghp_abcdefghijkl", timeout_s=12.5), path)
            raw = json.loads(path.read_text(encoding="utf-8"))
            raw["legacy_field"] = True
            path.write_text(json.dumps(raw), encoding="utf-8")

            cfg = load_config(path)

        self.assertEqual(cfg.token, "ghp_abcdefghijkl")
        self.assertEqual(cfg.timeout_s, 12.5)

    def test_mistyped_values_fall_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.json"
            path.write_text(
                json.dumps({"api_url": 42, "token": "", "timeout_s": "soon", "user_agent": "acme-ci/1"}),
                encoding="utf-8",
            )
            cfg = load_config(path)

            path.write_text(json.dumps({"timeout_s": True}), encoding="utf-8")
            self.assertEqual(load_config(path).timeout_s, 30.0)

        self.assertEqual(cfg, Config(user_agent="acme-ci/1"))

    def test_missing_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(load_config(Path(td) / "none.json"), Config())

    def test_env_overrides_file_values(self) -> None:
        env = {"GPM_API_URL": "https://ghe.example.com/api/v3", "GPM_TIMEOUT_S": "not-a-number"}
        with patch.dict("os.environ", env, clear=True):
            cfg = merge_env(Config(token="tok", timeout_s=7.0))

        self.assertEqual(cfg.api_url, "https://ghe.example.com/api/v3")
        self.assertEqual(cfg.token, "tok")
        self.assertEqual(cfg.timeout_s, 7.0)

    def test_redact_token(self) -> None:
        self.assertEqual(redact_token("ghp_abcdefghijkl"), "ghp_ab...ijkl")
        self.assertIsNone(redact_token(None))


if __name__ == "__main__":
    unittest.main()
