#!/usr/bin/env python3
"""
Pytest configuration and shared fixtures for DNS Level Tracer tests
"""

import pytest
import sys
import os
import dns.rrset

# Add the parent directory to the path so we can import the main module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dns_level_tracer import (
    DNSLevelTracer,
    TraceConfig,
    AuthorityOutcome,
    LevelResult,
)


def make_rrset(name, rdtype, *values):
    """Build a real dnspython RRset from presentation-format values"""
    return dns.rrset.from_text(name, 300, "IN", rdtype, *values)


@pytest.fixture
def tracer():
    """Create a DNSLevelTracer with default settings"""
    return DNSLevelTracer(TraceConfig())


@pytest.fixture
def com_delegation():
    """Referral from a root server to two .com servers"""
    return [make_rrset("com.", "NS", "a.gtld-servers.net.", "b.gtld-servers.net.")]


@pytest.fixture(scope="session")
def sample_trace_results():
    """Two-level trace results for output and export tests"""
    return [
        LevelResult(
            level=1,
            domain="example.com.",
            authorities=[
                AuthorityOutcome(
                    hostname="a.root-servers.net.",
                    address="198.41.0.4",
                    responses=["a.iana-servers.net.", "b.iana-servers.net."],
                ),
                AuthorityOutcome(
                    hostname="b.root-servers.net.",
                    error="IP lookup failed: no IP found for b.root-servers.net.",
                ),
            ],
        ),
        LevelResult(
            level=2,
            domain="example.com.",
            authorities=[
                AuthorityOutcome(
                    hostname="a.iana-servers.net.",
                    address="199.43.135.53",
                    responses=["93.184.216.34"],
                ),
                AuthorityOutcome(
                    hostname="b.iana-servers.net.",
                    address="199.43.133.53",
                    error="query failed: timed out querying 199.43.133.53 for example.com.",
                ),
            ],
        ),
    ]


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their names"""
    for item in items:
        # Mark integration tests
        if "integration" in item.nodeid.lower():
            item.add_marker(pytest.mark.integration)
        # Mark slow tests
        elif any(
            keyword in item.nodeid.lower() for keyword in ["slow", "real", "live"]
        ):
            item.add_marker(pytest.mark.slow)
        # Mark unit tests (default)
        else:
            item.add_marker(pytest.mark.unit)
