import pytest
import responses

from blocklist_generator import Settings, main, parse_arguments

BASE_URL = "https://lists.example.test"


def write_config(tmp_path, hosts_urls, domain_urls, allowed_names=None):
    lines = [
        "[blocklists]",
        "hosts_file_blocklist_urls = [" + ", ".join(f'"{url}"' for url in hosts_urls) + "]",
        "domain_blocklist_urls = [" + ", ".join(f'"{url}"' for url in domain_urls) + "]",
    ]
    if allowed_names is not None:
        lines.append("[filters]")
        lines.append("allowed_names = [" + ", ".join(f'"{name}"' for name in allowed_names) + "]")
    path = tmp_path / "blocklist-generator.toml"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def run_main(tmp_path, config_path, *extra, quiet=True):
    return main([
        *(["-q"] if quiet else []),
        "-c", str(config_path),
        "-o", str(tmp_path / "out"),
        "-b", str(tmp_path / "blocked-names.txt"),
        *extra,
    ])


def test_parse_arguments_defaults():
    settings = parse_arguments([])

    assert settings == Settings()
    assert settings.max_concurrent_downloads == 3
    assert settings.timeout == 30
    assert settings.retries == 0


def test_parse_arguments_options():
    settings = parse_arguments(["-c", "other.toml", "-m", "5", "--timeout", "0", "-vv", "--allowlist-report"])

    assert settings.config_file == "other.toml"
    assert settings.max_concurrent_downloads == 5
    assert settings.timeout is None
    assert settings.verbosity == 2
    assert settings.allowlist_report is True


@pytest.mark.parametrize("value", ["0", "-1", "many"])
def test_parse_arguments_rejects_bad_concurrency(value):
    with pytest.raises(SystemExit):
        parse_arguments(["-m", value])


@responses.activate
def test_main_writes_all_outputs(tmp_path, capsys):
    responses.add(responses.GET, f"{BASE_URL}/hosts",
                  body="0.0.0.0 ads.example.com tracker.example.com\n0.0.0.0 example.org\n")
    responses.add(responses.GET, f"{BASE_URL}/domains",
                  body="# list\nads.example.com\nbad.example.net\nsome.example.org\n")
    (tmp_path / "blocked-names.txt").write_text("local.example.com\n", encoding="utf-8")
    config_path = write_config(
        tmp_path,
        [f"{BASE_URL}/hosts"],
        [f"{BASE_URL}/domains"],
        allowed_names=["tracker.example.com", "www.example.org", "local.example.com"],
    )

    assert run_main(tmp_path, config_path, "--allowlist-report") == 0

    out_dir = tmp_path / "out"
    assert (out_dir / "domain-blocklist.txt").read_text(encoding="utf-8") == (
        "ads.example.com\n"
        "bad.example.net\n"
        "local.example.com\n"
        "some.example.org\n"
    )
    assert 'local-zone: "bad.example.net" always_nxdomain\n' in (
        out_dir / "zone-block-general.conf"
    ).read_text(encoding="utf-8")
    assert "*.some.example.org\tCNAME\t.\n" in (out_dir / "blocklist.rpz").read_text(encoding="utf-8")
    assert (out_dir / "allowlist-report.txt").exists()
    assert capsys.readouterr().out == ""


@responses.activate
def test_main_tolerates_failed_sources(tmp_path, capsys):
    responses.add(responses.GET, f"{BASE_URL}/domains", body="example.com\n")
    responses.add(responses.GET, f"{BASE_URL}/missing", status=404)
    config_path = write_config(tmp_path, [f"{BASE_URL}/missing"], [f"{BASE_URL}/domains"])

    assert run_main(tmp_path, config_path, quiet=False) == 0

    assert (tmp_path / "out" / "domain-blocklist.txt").read_text(encoding="utf-8") == "example.com\n"
    assert capsys.readouterr().out.endswith("1 results\n")


@responses.activate
def test_main_fails_when_every_source_fails(tmp_path):
    responses.add(responses.GET, f"{BASE_URL}/missing", status=404)
    responses.add(responses.GET, f"{BASE_URL}/broken", status=500)
    config_path = write_config(tmp_path, [f"{BASE_URL}/missing"], [f"{BASE_URL}/broken"])

    assert run_main(tmp_path, config_path) == 1
    assert not (tmp_path / "out").exists()


def test_main_fails_on_missing_config(tmp_path):
    assert run_main(tmp_path, tmp_path / "missing.toml") == 1


def test_main_fails_on_unwritable_output(tmp_path):
    config_path = write_config(tmp_path, [], [])
    (tmp_path / "out").write_text("", encoding="utf-8")

    assert run_main(tmp_path, config_path) == 1


def test_settings_rejects_non_positive_concurrency():
    with pytest.raises(ValueError, match="max_concurrent_downloads must be at least 1"):
        Settings(max_concurrent_downloads=0)
