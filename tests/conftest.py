import pytest


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Keep tests independent of the user's config file and environment.

    The config directory is pointed at an empty temporary directory and
    every environment variable the loader reads is cleared.
    """
    monkeypatch.setenv("GROUPED_COMMIT_HOME", str(tmp_path / "grouped_commit_home"))
    for name in ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "USE_EMOJI", "DEBUG"):
        monkeypatch.delenv(name, raising=False)
    yield
