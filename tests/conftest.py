import pytest


@pytest.fixture
def config_file(tmp_path):
    def _write(content: str):
        path = tmp_path / "blocklist-generator.toml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write
