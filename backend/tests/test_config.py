"""
Tests for application settings.

Run with: cd backend && pytest tests/test_config.py -v
"""
import warnings

from peermatch.config import Settings


class TestSettings:
    """Tests for environment and .env loading."""

    def test_reads_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("MATCH_MAX_RESULTS", raising=False)
        (tmp_path / ".env").write_text("MATCH_MAX_RESULTS=5\n")

        assert Settings().match_max_results == 5

    def test_environment_overrides_dotenv(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("MATCH_MAX_RESULTS=5\n")
        monkeypatch.setenv("MATCH_MAX_RESULTS", "7")

        assert Settings().match_max_results == 7

    def test_loads_without_deprecation_warnings(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            settings = Settings()

        assert settings.match_similarity_threshold == 0.6
