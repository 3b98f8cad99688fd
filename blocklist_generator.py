#!/usr/bin/env python3
"""
Blocklist Generator v1.0

Merges remote domain and hosts-file blocklists into one deduplicated, sorted
list of blocked hostnames, then renders it as a plain domain list, an RPZ zone
and Unbound local-zone directives.

Features:
- Concurrent downloads with a bounded thread pool using requests
- Domain-list and hosts-file parsing with host validation (IDNA, IPv4, IPv6)
- Allowlist support that also unblocks listed parent domains
- Local custom blocked names file
- Atomic output writes
"""

import os
import re
import sys
import time
import logging
import argparse
import functools
import ipaddress
import http.client
import tempfile
import tomllib
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set
from dataclasses import dataclass, field
from concurrent.futures import ThreadPoolExecutor, as_completed

import idna
import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_CONFIG_FILE = "blocklist-generator.toml"
DEFAULT_BLOCKED_NAMES_FILE = "blocked-names.txt"
DEFAULT_OUTPUT_DIR = "."

DOMAIN_BLOCKLIST_FILE = "domain-blocklist.txt"
RPZ_FILE = "blocklist.rpz"
UNBOUND_LOCAL_ZONE_FILE = "zone-block-general.conf"
ALLOWLIST_REPORT_FILE = "allowlist-report.txt"

MIN_CONCURRENT_DOWNLOADS = 1
DEFAULT_CONCURRENT_DOWNLOADS = 3
DEFAULT_TIMEOUT = 30

DEFAULT_RETRIES = 0
RETRY_BACKOFF = 0.5
RETRY_STATUS_CODES = [429, 500, 502, 503, 504]

USER_AGENT = f"Blocklist Generator/{__version__}"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

MAX_DOMAIN_LENGTH = 253

# Letters, digits, hyphen and underscore; no leading or trailing hyphen
DOMAIN_LABEL_PATTERN = re.compile(r'^[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9_])?$')

RPZ_HEADER_TEMPLATE = """$TTL 7200
@ IN SOA localhost. zone-admin.localhost. %(serial)s 3600 600 604800 1800
@ IN NS  localhost.

"""

# ============================================================================
# ERRORS
# ============================================================================


class BlocklistGeneratorError(Exception):
    """Base class for all errors raised by the generator."""


class InvalidHost(BlocklistGeneratorError, ValueError):
    """Raised when text is neither a valid domain name nor an IP literal."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Invalid host `{text}`")


class ConfigError(BlocklistGeneratorError):
    """Configuration file could not be read or parsed."""


class OutputWriteError(BlocklistGeneratorError):
    """An output file could not be created or written."""


class NoSourcesFetchedError(BlocklistGeneratorError):
    """Every configured blocklist source failed."""


class FetchError(BlocklistGeneratorError):
    """Generic fetch failure, including non-2xx HTTP status."""

    message = "Error fetching blocklist `{url}`.  Check the URL is correct and the connection is up."

    def __init__(self, url: str):
        self.url = url
        super().__init__(self.message.format(url=url))


class IncompleteBodyError(FetchError):
    message = (
        "Error fetching blocklist `{url}`: only received part of the file.  The network "
        "connection may be unstable."
    )


class FetchBodyError(FetchError):
    message = (
        "Error fetching blocklist `{url}`: no response data or incomplete data.  The network "
        "connection may be unstable."
    )


class FetchParseError(FetchError):
    message = "Error parsing fetched data for blocklist `{url}`.  It might be worth retrying later."


class FetchRequestError(FetchError):
    message = (
        "Error fetching blocklist `{url}`: error requesting data.  The URL might be invalid, or "
        "there might be a network issue."
    )


# ============================================================================
# DATA CLASSES
# ============================================================================

class HostKind(Enum):
    DOMAIN = "domain"
    IPV4 = "ipv4"
    IPV6 = "ipv6"


class SourceType(Enum):
    DOMAIN_LIST = "domain_list"
    HOSTS_FILE = "hosts_file"


@functools.lru_cache(maxsize=10000)
def normalize_domain(domain: str) -> str:
    """Return the canonical ASCII form of a domain name or raise InvalidHost."""
    name = domain[:-1] if domain.endswith('.') else domain
    if not name:
        raise InvalidHost(domain)
    if not name.isascii():
        try:
            name = idna.encode(name, uts46=True).decode('ascii')
        except (idna.IDNAError, UnicodeError) as e:
            raise InvalidHost(domain) from e
    name = name.lower()
    if len(name) > MAX_DOMAIN_LENGTH:
        raise InvalidHost(domain)
    labels = name.split('.')
    if not all(DOMAIN_LABEL_PATTERN.match(label) for label in labels):
        raise InvalidHost(domain)
    # An all-numeric last label is an address, never a domain
    if labels[-1].isdigit():
        raise InvalidHost(domain)
    return name


@dataclass(frozen=True, order=True)
class Host:
    """A blocked or allowed name: a domain or an IP literal.

    Equality, hashing and ordering only look at the canonical `name`, so
    sorting a collection of hosts sorts them by their string form.
    """
    name: str
    kind: HostKind = field(default=HostKind.DOMAIN, compare=False)

    @classmethod
    def parse(cls, text: str) -> 'Host':
        candidate = text.strip()
        if not candidate:
            raise InvalidHost(text)

        bracketed = candidate.startswith('[') and candidate.endswith(']')
        try:
            address = ipaddress.ip_address(candidate[1:-1] if bracketed else candidate)
        except ValueError:
            if bracketed:
                raise InvalidHost(text) from None
        else:
            kind = HostKind.IPV4 if address.version == 4 else HostKind.IPV6
            return cls(address.compressed, kind)

        return cls(normalize_domain(candidate), HostKind.DOMAIN)

    @property
    def is_domain(self) -> bool:
        return self.kind is HostKind.DOMAIN

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Source:
    """A remote blocklist and the format of its body."""
    url: str
    source_type: SourceType


@dataclass
class FetchResult:
    """Outcome of fetching and parsing one source."""
    source: Source
    hosts: Optional[Set[Host]] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Blocklists:
    hosts_file_blocklist_urls: List[str]
    domain_blocklist_urls: List[str]


@dataclass
class Filters:
    allowed_names: Optional[List[str]] = None
    # Reserved; local additions come from the blocked names file
    blocked_names: Optional[List[str]] = None


@dataclass
class Config:
    """Contents of the TOML configuration file."""
    blocklists: Blocklists
    filters: Optional[Filters] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        blocklists_table = data['blocklists']
        if not isinstance(blocklists_table, dict):
            raise TypeError("`blocklists` must be a table")
        blocklists = Blocklists(
            hosts_file_blocklist_urls=_string_list(blocklists_table['hosts_file_blocklist_urls']),
            domain_blocklist_urls=_string_list(blocklists_table['domain_blocklist_urls']),
        )

        filters = None
        filters_table = data.get('filters')
        if filters_table is not None:
            if not isinstance(filters_table, dict):
                raise TypeError("`filters` must be a table")
            filters = Filters(
                allowed_names=_optional_string_list(filters_table.get('allowed_names')),
                blocked_names=_optional_string_list(filters_table.get('blocked_names')),
            )

        return cls(blocklists=blocklists, filters=filters)


@dataclass
class AllowlistMatch:
    """What one allowlist entry removed from the blocklist."""
    entry: str
    host: Host
    removed_parents: List[Host] = field(default_factory=list)
    removed_exact: bool = False

    @property
    def removed(self) -> int:
        return len(self.removed_parents) + int(self.removed_exact)


@dataclass
class FilterReport:
    matches: List[AllowlistMatch] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return sum(match.removed for match in self.matches)

    def render(self) -> str:
        lines = [
            "Allowlist Report",
            "=" * 80,
            "",
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            f"Total Hosts Removed: {self.removed}",
            "",
        ]
        for match in sorted(self.matches, key=lambda m: m.removed, reverse=True):
            lines.append(f"Entry: {match.entry}")
            if match.removed_exact:
                lines.append(f"  - {match.host} (exact)")
            for parent in match.removed_parents:
                lines.append(f"  - {parent} (parent)")
            if not match.removed:
                lines.append("  (no matches)")
            lines.append("")
        if self.invalid:
            lines.append("Ignored invalid entries:")
            lines.extend(f"  - {entry}" for entry in self.invalid)
            lines.append("")
        return "\n".join(lines)

    def write(self, output_path: Path) -> None:
        write_to_file(self.render(), output_path)
        logger.info(f"Allowlist report saved to: {output_path}")


@dataclass
class Settings:
    """Runtime settings for a generator run."""
    config_file: str = DEFAULT_CONFIG_FILE
    blocked_names_file: str = DEFAULT_BLOCKED_NAMES_FILE
    output_dir: str = DEFAULT_OUTPUT_DIR
    max_concurrent_downloads: int = DEFAULT_CONCURRENT_DOWNLOADS
    timeout: Optional[float] = DEFAULT_TIMEOUT
    retries: int = DEFAULT_RETRIES
    allowlist_report: bool = False
    quiet: bool = False
    verbosity: int = 0

    def __post_init__(self):
        if self.max_concurrent_downloads < MIN_CONCURRENT_DOWNLOADS:
            raise ValueError(f"max_concurrent_downloads must be at least {MIN_CONCURRENT_DOWNLOADS}")
        self.retries = max(0, self.retries)
        if self.timeout is not None and self.timeout <= 0:
            self.timeout = None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError("expected a list of strings")
    return list(value)


def _optional_string_list(value: Any) -> Optional[List[str]]:
    return None if value is None else _string_list(value)


# ============================================================================
# PARSERS
# ============================================================================

def parse_domainlist(text: str, hosts: Set[Host]) -> None:
    """Add every valid host in a one-name-per-line list to `hosts`.

    Blank lines and lines starting with `#` are skipped.  Lines that are not
    a valid host are ignored; third-party lists often contain a few.
    """
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        try:
            hosts.add(Host.parse(line))
        except InvalidHost:
            continue


def parse_hostsfile(text: str, hosts: Set[Host]) -> None:
    """Add every valid hostname in hosts-file formatted text to `hosts`.

    Each line is `address name [name ...]`.  The address is dropped without
    being checked and every following name is parsed on its own.
    """
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        for token in line.split()[1:]:
            try:
                hosts.add(Host.parse(token))
            except InvalidHost:
                continue


# ============================================================================
# HTTP CLIENT
# ============================================================================

BODY_ERRORS = (
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
    requests.exceptions.StreamConsumedError,
)

REQUEST_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.URLRequired,
)


def _exception_chain(error: BaseException) -> Iterator[BaseException]:
    """Yield `error` and every exception it wraps, via causes, context or args."""
    seen: Set[int] = set()
    pending = [error]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)


class FetchClient:
    """HTTP client that fetches and parses blocklist sources."""

    def __init__(self, timeout: Optional[float] = None, retries: int = DEFAULT_RETRIES):
        self.timeout = timeout
        self.retries = retries
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a session with the retry policy; zero retries unless asked."""
        session = requests.Session()
        retry = Retry(
            total=self.retries,
            backoff_factor=RETRY_BACKOFF,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers['User-Agent'] = USER_AGENT
        return session

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> 'FetchClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def handle_fetch_error(url: str, error: requests.RequestException,
                           reading_body: bool = False) -> FetchError:
        """Map a requests failure onto the matching FetchError."""
        logger.debug(f"{url}: {error!r}")
        if reading_body or isinstance(error, BODY_ERRORS):
            if any(isinstance(cause, http.client.IncompleteRead) for cause in _exception_chain(error)):
                return IncompleteBodyError(url)
            return FetchBodyError(url)
        if isinstance(error, REQUEST_ERRORS):
            return FetchRequestError(url)
        return FetchError(url)

    @staticmethod
    def response_encoding(response: requests.Response) -> str:
        """Charset declared by the response, or UTF-8 when none is declared."""
        if 'charset' in response.headers.get('Content-Type', '').lower():
            return response.encoding or 'utf-8'
        return 'utf-8'

    def get_text_body(self, url: str) -> str:
        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            raise self.handle_fetch_error(url, e) from e

        with response:
            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                raise self.handle_fetch_error(url, e) from e
            try:
                content = response.content
            except requests.RequestException as e:
                raise self.handle_fetch_error(url, e, reading_body=True) from e

        try:
            text = content.decode(self.response_encoding(response))
        except (UnicodeDecodeError, LookupError) as e:
            raise FetchParseError(url) from e
        return text.lstrip('\ufeff')

    def domainlist(self, url: str) -> Set[Host]:
        hosts: Set[Host] = set()
        logger.info(f"Fetching domainlist: {url}")
        body = self.get_text_body(url)
        logger.info(f"Fetched {url}.")
        parse_domainlist(body, hosts)
        return hosts

    def hostsfile(self, url: str) -> Set[Host]:
        hosts: Set[Host] = set()
        logger.info(f"Fetching hosts file: {url}")
        body = self.get_text_body(url)
        logger.info(f"Fetched {url}.")
        parse_hostsfile(body, hosts)
        return hosts

    def fetch_set(self, source: Source) -> Set[Host]:
        if source.source_type is SourceType.HOSTS_FILE:
            return self.hostsfile(source.url)
        return self.domainlist(source.url)

    def fetch_all(self, sources: Sequence[Source], max_concurrent_downloads: int,
                  show_progress: bool = False) -> List[FetchResult]:
        """Fetch every source with at most `max_concurrent_downloads` in flight.

        Returns one FetchResult per source, in source order.  A failing
        source is captured in its result and never cancels the others.
        """
        if max_concurrent_downloads < MIN_CONCURRENT_DOWNLOADS:
            raise ValueError(f"max_concurrent_downloads must be at least {MIN_CONCURRENT_DOWNLOADS}")

        results: Dict[int, FetchResult] = {}
        with ThreadPoolExecutor(max_workers=max_concurrent_downloads) as executor:
            futures = {executor.submit(self.fetch_set, source): index
                       for index, source in enumerate(sources)}

            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="Downloading", disable=not show_progress):
                index = futures[future]
                try:
                    results[index] = FetchResult(sources[index], hosts=future.result())
                except FetchError as e:
                    results[index] = FetchResult(sources[index], error=e)

        return [results[index] for index in range(len(sources))]

    def domainlists(self, sources: Sequence[Source], max_concurrent_downloads: int,
                    hosts: Set[Host], show_progress: bool = False) -> List[FetchResult]:
        """Fetch all sources and merge the hosts of those that succeeded into `hosts`.

        Failures are logged one by one and returned.
        """
        failures: List[FetchResult] = []
        for result in self.fetch_all(sources, max_concurrent_downloads, show_progress):
            if result.ok:
                logger.info(f"  {result.source.url}: {len(result.hosts):,} hosts")
                hosts.update(result.hosts)
            else:
                logger.error(str(result.error))
                failures.append(result)
        return failures


# ============================================================================
# ALLOWLIST FILTER
# ============================================================================

def parent_domains(domain: Host) -> Optional[List[Host]]:
    """Parent domains of `domain` down to the second-level domain.

    `some.subdomain.example.com` gives `subdomain.example.com` then
    `example.com`.  `domain` itself is never included.  Returns None for IP
    literals, top-level domains (`com`) and second-level domains
    (`example.com`).
    """
    if not domain.is_domain:
        return None

    result: List[Host] = []
    sub_domain = domain.name
    while '.' in sub_domain:
        _, parent_domain = sub_domain.split('.', 1)
        if '.' not in parent_domain:
            break
        result.append(Host(parent_domain))
        sub_domain = parent_domain

    return result or None


def filter_blocklist(blocklist: Set[Host], filters: Optional[Filters]) -> FilterReport:
    """Remove allowlist members found in `blocklist`.

    If the allowlist member is a subdomain, parent domains present in the
    blocklist are removed too: `some.example.com` in the allowlist removes
    `example.com`.  Children of an allowed name are left alone.
    """
    report = FilterReport()
    if filters is None or not filters.allowed_names:
        return report

    for name in filters.allowed_names:
        try:
            host = Host.parse(name)
        except InvalidHost:
            logger.error(f"Ignoring allowed_names element: `{name}`.  Check it is valid.")
            report.invalid.append(name)
            continue

        match = AllowlistMatch(entry=name, host=host)
        for parent_name in parent_domains(host) or []:
            if parent_name in blocklist:
                blocklist.remove(parent_name)
                match.removed_parents.append(parent_name)
                logger.info(
                    f"Removed parent domain `{parent_name}` of allowed_names element: "
                    f"`{name}` from generated blocklist."
                )

        if host in blocklist:
            blocklist.remove(host)
            match.removed_exact = True
            logger.info(f"Removed allowed_names element: `{name}` from generated blocklist.")
        else:
            logger.info(f"No exact matches for allowed_names element: `{name}` in generated blocklist.")

        report.matches.append(match)

    if report.removed > 0:
        logger.info(f"Filtered {report.removed:,} allowlisted hosts")
    return report


# ============================================================================
# FILE SYSTEM
# ============================================================================

def get_config_from_file(config_file_path) -> Config:
    """Load the TOML configuration file."""
    try:
        content = Path(config_file_path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to open or read config file `{config_file_path}`") from e

    try:
        return Config.from_dict(tomllib.loads(content))
    except (tomllib.TOMLDecodeError, KeyError, TypeError) as e:
        raise ConfigError(f"Failed to parse config file `{config_file_path}`.  Check it is valid.") from e


def sources_from_blocklists(blocklists: Blocklists) -> List[Source]:
    sources = [Source(url, SourceType.HOSTS_FILE) for url in blocklists.hosts_file_blocklist_urls]
    sources.extend(Source(url, SourceType.DOMAIN_LIST) for url in blocklists.domain_blocklist_urls)
    return sources


def get_custom_blocked_names(blocked_names_path, hosts: Set[Host]) -> int:
    """Merge the local blocked names file into `hosts`.

    A missing or unreadable file adds nothing.  Returns the number of hosts
    that were not already present.
    """
    try:
        content = Path(blocked_names_path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError):
        logger.info(f"No custom blocked names file found at `{blocked_names_path}`.")
        return 0

    before = len(hosts)
    parse_domainlist(content, hosts)
    added = len(hosts) - before
    logger.info(f"Added {added:,} custom blocked names from `{blocked_names_path}`.")
    return added


def write_to_file(content: str, output_path: Path) -> None:
    """Write `content` to `output_path` atomically.

    Data goes to a temporary file in the same directory which then replaces
    the destination, so a failed write never leaves a partial file behind.
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=output_path.parent, prefix=f".{output_path.name}.",
                                         suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
                f.write(content)
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, output_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
    except OSError as e:
        raise OutputWriteError(f"Error writing to output file {output_path}") from e
    logger.info(f"Wrote data to file: {output_path}")


def print_output_file_metadata(output_path: Path, quiet: bool = False) -> None:
    if quiet:
        return
    try:
        size = os.path.getsize(output_path)
    except OSError:
        return
    print(f"Written {size:,} bytes to {output_path}")


def domain_to_blocklist_rpz_domain(host: Host) -> str:
    return f"{host}\tCNAME\t.\n*.{host}\tCNAME\t.\n"


def domain_to_unbound_local_zone(host: Host) -> str:
    return f"local-zone: \"{host}\" always_nxdomain\n"


def rpz_serial() -> str:
    return datetime.now().strftime('%Y%m%d%H')


def write_domain_blocklist_file(blocklist_domains: Sequence[Host], output_dir=DEFAULT_OUTPUT_DIR,
                                  quiet: bool = False) -> Path:
    output_path = Path(output_dir) / DOMAIN_BLOCKLIST_FILE
    write_to_file("".join(f"{host}\n" for host in blocklist_domains), output_path)
    print_output_file_metadata(output_path, quiet)
    return output_path


def write_blocklist_rpz_file(blocklist_domains: Sequence[Host], output_dir=DEFAULT_OUTPUT_DIR,
                             serial: Optional[str] = None, quiet: bool = False) -> Path:
    output_path = Path(output_dir) / RPZ_FILE
    header = RPZ_HEADER_TEMPLATE % {'serial': serial or rpz_serial()}
    domains = "".join(domain_to_blocklist_rpz_domain(host) for host in blocklist_domains)
    write_to_file(header + domains, output_path)
    print_output_file_metadata(output_path, quiet)
    return output_path


def write_unbound_local_zone_file(blocklist_domains: Sequence[Host], output_dir=DEFAULT_OUTPUT_DIR,
                                  quiet: bool = False) -> Path:
    output_path = Path(output_dir) / UNBOUND_LOCAL_ZONE_FILE
    write_to_file("".join(domain_to_unbound_local_zone(host) for host in blocklist_domains), output_path)
    print_output_file_metadata(output_path, quiet)
    return output_path


# ============================================================================
# BLOCKLIST GENERATOR
# ============================================================================

class BlocklistGenerator:
    """Runs the fetch, merge, filter and write pipeline."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.fetch_client = FetchClient(timeout=settings.timeout, retries=settings.retries)
        self.failed_sources: List[FetchResult] = []
        self.filter_report = FilterReport()

        self.stats: Dict[str, Any] = {
            'total_sources': 0,
            'successful': 0,
            'failed': 0,
            'merged_hosts': 0,
            'allowlisted_hosts': 0,
            'custom_blocked_hosts': 0,
            'final_hosts': 0,
            'start_time': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        }

    def fetch_hosts(self, sources: Sequence[Source]) -> Set[Host]:
        hosts: Set[Host] = set()
        logger.info(f"Downloading {len(sources)} blocklists with "
                    f"{self.settings.max_concurrent_downloads} concurrent downloads...")
        self.failed_sources = self.fetch_client.domainlists(
            sources,
            self.settings.max_concurrent_downloads,
            hosts,
            show_progress=not self.settings.quiet,
        )

        self.stats['total_sources'] = len(sources)
        self.stats['failed'] = len(self.failed_sources)
        self.stats['successful'] = len(sources) - len(self.failed_sources)
        if sources and not self.stats['successful']:
            raise NoSourcesFetchedError(
                f"All {len(sources)} blocklists failed to download.  Not writing output files."
            )
        self.stats['merged_hosts'] = len(hosts)
        return hosts

    def write_outputs(self, blocklist_domains: Sequence[Host]) -> None:
        output_dir = self.settings.output_dir
        quiet = self.settings.quiet
        write_blocklist_rpz_file(blocklist_domains, output_dir, quiet=quiet)
        write_unbound_local_zone_file(blocklist_domains, output_dir, quiet=quiet)
        write_domain_blocklist_file(blocklist_domains, output_dir, quiet=quiet)
        if self.settings.allowlist_report:
            self.filter_report.write(Path(output_dir) / ALLOWLIST_REPORT_FILE)

    def run(self) -> Dict[str, Any]:
        start_time = time.time()

        try:
            logger.info(f"Loading configuration from {self.settings.config_file}")
            config = get_config_from_file(self.settings.config_file)
            hosts = self.fetch_hosts(sources_from_blocklists(config.blocklists))
        finally:
            self.fetch_client.close()

        self.filter_report = filter_blocklist(hosts, config.filters)
        self.stats['allowlisted_hosts'] = self.filter_report.removed
        self.stats['custom_blocked_hosts'] = get_custom_blocked_names(self.settings.blocked_names_file, hosts)

        result = sorted(hosts)
        hosts.clear()
        self.stats['final_hosts'] = len(result)

        self.write_outputs(result)

        elapsed_time = time.time() - start_time
        self.stats['elapsed_time'] = f"{elapsed_time:.2f} seconds"
        return self.stats


# ============================================================================
# CLI
# ============================================================================

def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return number


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative integer")
    return number


def parse_arguments(argv: Optional[Sequence[str]] = None) -> Settings:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="blocklist-generator",
        description=f"Blocklist Generator v{__version__}",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_FILE,
                        help="Configuration file")
    parser.add_argument("-m", "--max-concurrent-downloads", type=positive_int,
                        default=DEFAULT_CONCURRENT_DOWNLOADS,
                        help="Maximum downloads in flight at once")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="HTTP timeout in seconds (0 disables it)")
    parser.add_argument("--retries", type=non_negative_int, default=DEFAULT_RETRIES,
                        help="Retries for failed downloads")
    parser.add_argument("-b", "--blocked-names", default=DEFAULT_BLOCKED_NAMES_FILE,
                        help="Custom blocked names file")
    parser.add_argument("-o", "--output-dir", default=DEFAULT_OUTPUT_DIR,
                        help="Output directory")
    parser.add_argument("--allowlist-report", action="store_true",
                        help="Generate allowlist report")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Verbose logging (repeat for debug)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Quiet mode")
    parser.add_argument("--version", action="version", version=f"Blocklist Generator v{__version__}")

    args = parser.parse_args(argv)

    return Settings(
        config_file=args.config,
        blocked_names_file=args.blocked_names,
        output_dir=args.output_dir,
        max_concurrent_downloads=args.max_concurrent_downloads,
        timeout=args.timeout,
        retries=args.retries,
        allowlist_report=args.allowlist_report,
        quiet=args.quiet,
        verbosity=args.verbose,
    )


def configure_logging(verbosity: int = 0, quiet: bool = False) -> None:
    logging.basicConfig(format=LOG_FORMAT, handlers=[logging.StreamHandler()])
    if quiet:
        logger.setLevel(logging.ERROR)
    elif verbosity >= 2:
        logger.setLevel(logging.DEBUG)
    elif verbosity == 1:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.WARNING)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main function."""
    settings = parse_arguments(argv)
    configure_logging(settings.verbosity, settings.quiet)

    generator = BlocklistGenerator(settings)

    try:
        stats = generator.run()
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 1
    except BlocklistGeneratorError as e:
        logger.error(str(e))
        return 1

    if not settings.quiet:
        print(f"Sources: {stats['successful']} fetched, {stats['failed']} failed")
        if stats['allowlisted_hosts']:
            print(f"Allowlisted: {stats['allowlisted_hosts']:,}")
        print(f"Runtime: {stats['elapsed_time']}")
        print(f"{stats['final_hosts']:,} results")
    return 0


if __name__ == "__main__":
    sys.exit(main())
