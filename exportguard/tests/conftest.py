import pytest

from exportguard.config import get_settings


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    for name in ("EXPORTGUARD_CONFIG_FILE", "EXPORTGUARD_ON_REFERENCE", "EXPORTGUARD_REGISTRY_PLUGINS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
