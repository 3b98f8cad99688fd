import pytest

from blocklist_generator import (
    Host,
    OutputWriteError,
    write_blocklist_rpz_file,
    write_domain_blocklist_file,
    write_to_file,
    write_unbound_local_zone_file,
)

HOSTS = [Host.parse("ads.example.com"), Host.parse("tracker.example.net")]


def test_write_domain_blocklist_file(tmp_path, capsys):
    path = write_domain_blocklist_file(HOSTS, tmp_path)

    assert path == tmp_path / "domain-blocklist.txt"
    assert path.read_text(encoding="utf-8") == "ads.example.com\ntracker.example.net\n"
    assert capsys.readouterr().out == f"Written 36 bytes to {path}\n"


def test_write_blocklist_rpz_file(tmp_path):
    path = write_blocklist_rpz_file(HOSTS, tmp_path, serial="2024010100")

    assert path.read_text(encoding="utf-8") == (
        "$TTL 7200\n"
        "@ IN SOA localhost. zone-admin.localhost. 2024010100 3600 600 604800 1800\n"
        "@ IN NS  localhost.\n"
        "\n"
        "ads.example.com\tCNAME\t.\n"
        "*.ads.example.com\tCNAME\t.\n"
        "tracker.example.net\tCNAME\t.\n"
        "*.tracker.example.net\tCNAME\t.\n"
    )


def test_write_unbound_local_zone_file(tmp_path):
    path = write_unbound_local_zone_file(HOSTS, tmp_path)

    assert path.read_text(encoding="utf-8") == (
        'local-zone: "ads.example.com" always_nxdomain\n'
        'local-zone: "tracker.example.net" always_nxdomain\n'
    )


def test_write_to_file_replaces_existing_file(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("old", encoding="utf-8")

    write_to_file("new\n", path)

    assert path.read_text(encoding="utf-8") == "new\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.txt"]


def test_write_to_file_creates_output_directory(tmp_path):
    path = tmp_path / "nested" / "dir" / "out.txt"
    write_to_file("data\n", path)
    assert path.read_text(encoding="utf-8") == "data\n"


def test_write_to_file_failure_is_fatal_and_leaves_nothing_behind(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(OutputWriteError) as excinfo:
        write_to_file("data\n", blocker / "out.txt")

    assert isinstance(excinfo.value.__cause__, OSError)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["not-a-directory"]


def test_writers_print_nothing_when_quiet(tmp_path, capsys):
    write_domain_blocklist_file(HOSTS, tmp_path, quiet=True)
    write_blocklist_rpz_file(HOSTS, tmp_path, quiet=True)
    write_unbound_local_zone_file(HOSTS, tmp_path, quiet=True)

    assert capsys.readouterr().out == ""
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "blocklist.rpz",
        "domain-blocklist.txt",
        "zone-block-general.conf",
    ]
