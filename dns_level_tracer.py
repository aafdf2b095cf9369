#!/usr/bin/env python3
"""
DNS Level Tracer

A tool for tracing the delegation chain of a domain level by level, starting from
the root servers and querying every authoritative nameserver found at each level
until no further delegation is returned.
"""

import dns.resolver
import dns.query
import dns.message
import dns.name
import dns.rdatatype
import dns.exception
import tldextract
import sys
import argparse
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Iterable, Optional, Tuple
from dataclasses import dataclass, field, asdict
from datetime import datetime


logger = logging.getLogger(__name__)

DEFAULT_DNS_SERVER = "8.8.8.8"

ROOT_HINTS = (
    "a.root-servers.net.",
    "b.root-servers.net.",
    "c.root-servers.net.",
    "d.root-servers.net.",
    "e.root-servers.net.",
    "f.root-servers.net.",
    "g.root-servers.net.",
    "h.root-servers.net.",
    "i.root-servers.net.",
    "j.root-servers.net.",
    "k.root-servers.net.",
    "l.root-servers.net.",
    "m.root-servers.net.",
)

# Bundled public suffix snapshot only, never fetched at runtime
_SUFFIX_EXTRACTOR = tldextract.TLDExtract(suffix_list_urls=(), include_psl_private_domains=True)


class TraceError(Exception):
    """Base class for errors raised while tracing a delegation chain"""


class InvalidDomainError(TraceError):
    """The target domain has no registrable base or is not a valid DNS name"""


class NoAddressFoundError(TraceError):
    """A nameserver host name did not resolve to any address"""


class QueryTimeoutError(TraceError):
    """An authority did not answer before the query timeout"""


class TransportError(TraceError):
    """Sending a query or receiving its reply failed"""


class NoAuthoritiesFoundError(TraceError):
    """A level produced no authority outcomes at all"""

    def __init__(self, message: str = "no authority servers found"):
        super().__init__(message)


class FanOutError(TraceError):
    """The worker pool for a level could not run"""


@dataclass(frozen=True)
class TraceConfig:
    """Settings for one trace; shared read-only by every worker"""
    dns_server: str = DEFAULT_DNS_SERVER
    query_type: str = "a"
    address_family: str = "all"
    use_tcp: bool = False
    query_timeout: float = 3.0
    resolver_timeout: float = 5.0
    max_workers: int = 10
    max_levels: int = 32

    @property
    def query_rdtype(self) -> dns.rdatatype.RdataType:
        if str(self.query_type).lower() == "aaaa":
            return dns.rdatatype.AAAA
        return dns.rdatatype.A

    @property
    def address_rdtypes(self) -> Tuple[dns.rdatatype.RdataType, ...]:
        family = str(self.address_family).lower()
        if family == "4":
            return (dns.rdatatype.A,)
        if family == "6":
            return (dns.rdatatype.AAAA,)
        return (dns.rdatatype.A, dns.rdatatype.AAAA)


@dataclass
class AuthorityOutcome:
    """What one nameserver address answered at a given level"""
    hostname: str
    address: Optional[str] = None
    responses: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class LevelResult:
    """Results of querying every candidate authority at one delegation level"""
    level: int
    domain: str
    authorities: List[AuthorityOutcome] = field(default_factory=list)
    error: Optional[str] = None


def unique_strings(values: Iterable[str]) -> List[str]:
    """Drop repeated strings, keeping the order in which each first appears"""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def registrable_domain(domain: str) -> str:
    """
    Reduce a domain to its public suffix plus one label (e.g. example.co.uk for
    www.example.co.uk). Returns an empty string when there is no such label.
    Names whose suffix is not on the public suffix list are treated as having
    their last label as the suffix.
    """
    name = domain.strip().rstrip(".").lower()
    if not name:
        return ""

    extracted = _SUFFIX_EXTRACTOR(name)
    if extracted.suffix:
        if not extracted.domain:
            return ""
        return f"{extracted.domain}.{extracted.suffix}"

    labels = name.split(".")
    if len(labels) < 2:
        return ""
    return ".".join(labels[-2:])


class DNSLevelTracer:
    """Traces the delegation chain of a domain one level at a time"""

    def __init__(self, config: Optional[TraceConfig] = None):
        self.config = config or TraceConfig()

    def resolve_nameserver(self, hostname: str) -> List[str]:
        """
        Resolve a nameserver host name to its addresses through the upstream
        resolver, one lookup per configured address family. A family that fails
        is skipped; NoAddressFoundError is raised only if none yields an address.
        """
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [self.config.dns_server]
        resolver.timeout = self.config.resolver_timeout
        resolver.lifetime = self.config.resolver_timeout

        qname = hostname if hostname.endswith(".") else hostname + "."
        addresses = []
        for rdtype in self.config.address_rdtypes:
            try:
                answers = resolver.resolve(qname, rdtype)
            except (dns.exception.DNSException, OSError) as e:
                logger.debug("%s lookup for %s failed: %s", dns.rdatatype.to_text(rdtype), hostname, e)
                continue
            for answer in answers:
                addresses.append(answer.address)

        if not addresses:
            raise NoAddressFoundError(f"no IP found for {hostname}")
        return addresses

    def query_authority(self, domain: str, address: str, rdtype=None) -> list:
        """
        Send one query for domain to the server at address. Returns the answer
        section, or the authority section when the answer is empty.
        """
        if rdtype is None:
            rdtype = self.config.query_rdtype
        query = dns.message.make_query(domain, rdtype)

        try:
            if self.config.use_tcp:
                response = dns.query.tcp(query, address, port=53, timeout=self.config.query_timeout)
            else:
                response = dns.query.udp(query, address, port=53, timeout=self.config.query_timeout)
        except dns.exception.Timeout as e:
            raise QueryTimeoutError(f"timed out querying {address} for {domain}") from e
        except (dns.exception.DNSException, OSError) as e:
            raise TransportError(f"{address}: {e}") from e

        if response.answer:
            return list(response.answer)
        return list(response.authority)

    def _classify_records(self, rrsets) -> Tuple[List[str], List[str]]:
        """Split a response into NS target names and A/AAAA/CNAME strings"""
        ns_names = []
        values = []
        for rrset in rrsets:
            for rdata in rrset:
                if rrset.rdtype == dns.rdatatype.NS:
                    ns_names.append(str(rdata.target))
                elif rrset.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
                    values.append(str(rdata.address))
                elif rrset.rdtype == dns.rdatatype.CNAME:
                    values.append(str(rdata.target))
        return ns_names, values

    def _query_nameserver(self, domain: str, hostname: str) -> Tuple[List[AuthorityOutcome], List[str]]:
        """Resolve one candidate nameserver and query each of its addresses"""
        try:
            addresses = self.resolve_nameserver(hostname)
        except NoAddressFoundError as e:
            logger.debug("IP lookup for %s failed: %s", hostname, e)
            return [AuthorityOutcome(hostname=hostname, error=f"IP lookup failed: {e}")], []

        outcomes = []
        next_servers = []
        for address in addresses:
            outcome = AuthorityOutcome(hostname=hostname, address=address)
            try:
                rrsets = self.query_authority(domain, address)
            except (QueryTimeoutError, TransportError) as e:
                logger.debug("Query to %s (%s) failed: %s", hostname, address, e)
                outcome.error = f"query failed: {e}"
                outcomes.append(outcome)
                continue

            ns_names, values = self._classify_records(rrsets)
            next_servers.extend(ns_names)
            outcome.responses = unique_strings(ns_names + unique_strings(values))
            outcomes.append(outcome)

        return outcomes, next_servers

    def get_authorities(self, domain: str, servers: Iterable[str]) -> Tuple[List[AuthorityOutcome], List[str]]:
        """
        Query every candidate nameserver for domain concurrently. Returns all
        authority outcomes, in completion order, and the deduplicated set of
        nameservers delegated to for the next level.
        """
        outcomes = []
        next_servers = []

        try:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = {executor.submit(self._query_nameserver, domain, server): server for server in servers}
                for future in as_completed(futures):
                    server = futures[future]
                    try:
                        server_outcomes, server_next = future.result()
                    except Exception as e:
                        logger.error("Unexpected failure querying %s: %s", server, e)
                        outcomes.append(AuthorityOutcome(hostname=server, error=f"query failed: {e}"))
                        continue
                    outcomes.extend(server_outcomes)
                    next_servers.extend(server_next)
        except RuntimeError as e:
            # Raised by the pool itself, e.g. when no worker thread can be started
            raise FanOutError(f"could not query authorities for {domain}: {e}") from e

        return outcomes, unique_strings(next_servers)

    def trace(self, domain: str) -> List[LevelResult]:
        """Trace the delegation chain for domain from the root servers down"""
        results = []

        try:
            self._check_domain(domain)
        except InvalidDomainError as e:
            logger.error("Cannot trace %s: %s", domain, e)
            results.append(LevelResult(level=0, domain=domain, error=str(e)))
            return results

        if not domain.endswith("."):
            domain = domain + "."

        logger.info(
            "Tracing %s using DNS server %s, query type %s",
            domain, self.config.dns_server, dns.rdatatype.to_text(self.config.query_rdtype),
        )

        if str(self.config.address_family).lower() not in ("4", "6", "all"):
            logger.warning("Unknown address family %r, resolving both A and AAAA", self.config.address_family)

        servers = list(ROOT_HINTS)
        level = 0
        while servers:
            level += 1
            if level > self.config.max_levels:
                results.append(LevelResult(level=level, domain=domain, error="delegation depth limit reached"))
                return results

            logger.info("Processing level %d for domain: %s", level, domain)
            try:
                authorities, servers = self.get_authorities(domain, servers)
            except FanOutError as e:
                results.append(LevelResult(level=level, domain=domain, error=str(e)))
                return results

            if not authorities:
                results.append(LevelResult(level=level, domain=domain, error=str(NoAuthoritiesFoundError())))
                return results

            results.append(LevelResult(level=level, domain=domain, authorities=authorities))

        return results

    def _check_domain(self, domain: str):
        """Raise InvalidDomainError unless domain can be traced"""
        if not domain:
            raise InvalidDomainError("no domain given")
        try:
            dns.name.from_text(domain)
        except dns.exception.DNSException as e:
            raise InvalidDomainError(f"{domain!r} is not a valid DNS name: {e}") from e

        base = registrable_domain(domain)
        if len([label for label in base.split(".") if label]) < 2:
            raise InvalidDomainError(f"{domain!r} has no registrable domain")

    def print_results(self, domain: str, results: List[LevelResult]):
        """Print the per-level trace as a tree"""
        print(f"\n=== DNS Delegation Trace for {domain} ===\n")
        print(f"Trace performed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

        for result in sorted(results, key=lambda r: r.level):
            print(f"Level {result.level}: {result.domain}")
            if result.error:
                print(f"  ! Error: {result.error}")

            for auth in result.authorities:
                print(f"  ├─ NS: {auth.hostname}")
                print(f"  │   ├─ NS IP: {auth.address or '-'}")
                print(f"  │   ├─ Responses:")
                if auth.responses:
                    for response in auth.responses:
                        print(f"  │   │   ├─ {response}")
                else:
                    print(f"  │   │   ├─ No responses found")
                if auth.error:
                    print(f"  │       ├─ {auth.error}")
            print("───")


def export_results(domain: str, results: List[LevelResult], path: str):
    """Write the trace results to a JSON file"""
    export_data = {
        "target_domain": domain,
        "analysis_time": datetime.now().isoformat(),
        "results": [asdict(result) for result in results]
    }

    with open(path, 'w') as f:
        json.dump(export_data, f, indent=2, default=str)


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="dns-level-tracer",
        description="Trace DNS delegation level by level from the root servers",
    )
    parser.add_argument("domain", nargs="?", help="Target domain to trace (e.g., www.example.com)")
    parser.add_argument("--dns", default=DEFAULT_DNS_SERVER, help="DNS server used to resolve nameserver addresses")
    parser.add_argument("--dnstype", default="a", help="Record type to query authorities for (a, aaaa)")
    parser.add_argument("--iptype", default="all", help="Nameserver address family to use (4, 6, all)")
    parser.add_argument("--tcp", action="store_true", help="Query authorities over TCP instead of UDP")
    parser.add_argument("--export", help="Export results to JSON file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")

    args = parser.parse_args(argv)
    if not args.domain:
        parser.print_usage()
    return args


def main(argv=None):
    args = parse_arguments(argv)
    if not args.domain:
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = TraceConfig(
        dns_server=args.dns,
        query_type=args.dnstype,
        address_family=args.iptype,
        use_tcp=args.tcp,
    )
    tracer = DNSLevelTracer(config)

    try:
        results = tracer.trace(args.domain)
        tracer.print_results(args.domain, results)

        if args.export:
            export_results(args.domain, results, args.export)
            print(f"\nResults exported to: {args.export}")

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
