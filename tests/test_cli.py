import argparse
import sys
from pathlib import Path

import orjson
import pytest

import scholar_scraper.cli as cli
from conftest import PROFILE_PAGE, scholar_page
from scholar_scraper.exceptions import AbuseDetectedError, ConfigurationError, RetrievalExhaustedError
from scholar_scraper.proxy_generator import ProxyGenerator
from scholar_scraper.scholarly import Scholarly

ENV_VARS = ("PROXY_URL", "SCRAPER_API_KEY", "LUMINATI_USERNAME", "LUMINATI_PASSWORD", "LUMINATI_PORT")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_logging(monkeypatch):
    # Avoid touching real logs/paths during tests
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **k: None)


def _parse(*argv):
    return cli.build_parser().parse_args(list(argv))


def test_parse_luminati():
    assert cli.parse_luminati("user:pass:22225") == ("user", "pass", 22225)
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_luminati("user:pass")
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_luminati("user:pass:port")


def test_defaults(clean_env):
    args = _parse("--search-pubs", "transformers")
    assert args.search_pubs == "transformers"
    assert args.timeout == 5.0
    assert args.retries == 5
    assert args.limit == 10
    assert args.fill is False
    assert args.proxy is None and args.scraperapi_key is None and args.luminati is None


def test_search_target_is_required_and_exclusive(clean_env):
    with pytest.raises(SystemExit):
        _parse()
    with pytest.raises(SystemExit):
        _parse("--search-pubs", "x", "--author-id", "ADA")


def test_environment_supplies_proxy_defaults(clean_env, monkeypatch):
    monkeypatch.setenv("SCRAPER_API_KEY", "KEY")
    monkeypatch.setenv("LUMINATI_USERNAME", "user")
    monkeypatch.setenv("LUMINATI_PASSWORD", "pass")
    monkeypatch.setenv("LUMINATI_PORT", "22225")

    args = _parse("--keyword", "retrieval")

    assert args.scraperapi_key == "KEY"
    assert args.luminati == ("user", "pass", 22225)


def test_partial_luminati_environment_is_ignored(clean_env, monkeypatch):
    monkeypatch.setenv("LUMINATI_USERNAME", "user")
    args = _parse("--search-pubs", "x", "--proxy", "http://10.0.0.1:3128")
    assert args.luminati is None
    assert args.proxy == "http://10.0.0.1:3128"


@pytest.mark.asyncio
async def test_no_proxy_flags_means_direct(clean_env):
    assert await cli.build_proxy_generator(_parse("--keyword", "x")) is None


@pytest.mark.asyncio
async def test_failed_proxy_setup_is_a_configuration_error(clean_env, monkeypatch):
    async def fake_check(self, path):
        return False

    monkeypatch.setattr(ProxyGenerator, "_check_proxy", fake_check)
    with pytest.raises(ConfigurationError):
        await cli.build_proxy_generator(_parse("--keyword", "x", "--proxy", "10.0.0.1:3128"))


@pytest.mark.asyncio
async def test_scrape_streams_search_results(clean_env, make_nav, tmp_path: Path):
    nav = make_nav([(200, scholar_page(0, 10, next_url="/scholar?start=10&q=x")), (200, scholar_page(10, 5))])
    args = _parse("--search-pubs", "x", "--limit", "12", "--output", str(tmp_path))

    path, count = await cli.scrape(Scholarly(nav), args)

    assert count == 12
    rows = [orjson.loads(line) for line in path.read_bytes().splitlines()]
    assert rows[-1]["bib"]["title"] == "Paper 11"
    assert path.name.startswith("pubs_")


@pytest.mark.asyncio
async def test_scrape_author_id(clean_env, make_nav, tmp_path: Path):
    nav = make_nav(secondary_script=[(200, PROFILE_PAGE)])
    args = _parse("--author-id", "ADA", "--output", str(tmp_path))

    path, count = await cli.scrape(Scholarly(nav), args)

    assert count == 1
    (row,) = [orjson.loads(line) for line in path.read_bytes().splitlines()]
    assert row["name"] == "Ada Lovelace"
    assert path.name.startswith("author_ADA_")


@pytest.mark.parametrize(
    "error, code",
    [(AbuseDetectedError(), 2), (RetrievalExhaustedError(), 1), (RuntimeError("boom"), 1)],
)
def test_main_exit_codes(clean_env, no_logging, monkeypatch, tmp_path, error, code):
    async def fake_scrape(scholarly, args):
        raise error

    monkeypatch.setattr(cli, "scrape", fake_scrape)
    monkeypatch.setattr(sys, "argv", ["scholar-scraper", "--keyword", "x", "--output", str(tmp_path)])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == code


def test_main_success(clean_env, no_logging, monkeypatch, tmp_path):
    calls = {}

    async def fake_scrape(scholarly, args):
        calls["retries"] = scholarly.nav.max_retries
        calls["timeout"] = scholarly.nav.timeout
        return tmp_path / "out.jsonl", 0

    monkeypatch.setattr(cli, "scrape", fake_scrape)
    monkeypatch.setattr(
        sys, "argv", ["scholar-scraper", "--keyword", "x", "--retries", "2", "--timeout", "9"]
    )

    cli.main()
    assert calls == {"retries": 2, "timeout": 9.0}
