"""Unit tests for the discovery controller."""

import threading
from unittest.mock import MagicMock

import pytest

from paperboy.services.feed_discovery import DiscoveryReport, FeedDiscoveryService
from paperboy.ui.discovery_controller import DiscoveryController


@pytest.fixture
def service():
    """A discovery service double."""
    mock = MagicMock(spec=FeedDiscoveryService)
    mock.helper_name = "rssFinder"
    mock.discover.return_value = DiscoveryReport(
        query="Boston", ok=True, summary="Discovery finished. 1 feeds reported.",
        feeds=("https://news.example/boston",), exit_status=0,
    )
    return mock


@pytest.fixture
def controller(qapp, executor, service):
    """A controller closed after the test."""
    instance = DiscoveryController(executor, service)
    yield instance
    instance.close()


def test_discovery_report_is_emitted(controller, service, pump):
    """The report arrives through discovery_finished."""
    reports = []
    started = []
    controller.discovery_started.connect(started.append)
    controller.discovery_finished.connect(reports.append)

    controller.discover("Boston, MA")

    assert started == ["Boston"]
    assert pump(lambda: reports)
    assert reports[0].feeds == ("https://news.example/boston",)
    assert controller.last_report is reports[0]
    service.discover.assert_called_once_with("Boston, MA")


def test_service_crash_becomes_failed_report(controller, service, pump):
    """An unexpected exception is reported, not raised."""
    service.discover.side_effect = RuntimeError("disk full")
    reports = []
    controller.discovery_finished.connect(reports.append)

    controller.discover("Boston")

    assert pump(lambda: reports)
    assert not reports[0].ok
    assert reports[0].summary == "Error running rssFinder: disk full"


def test_close_suppresses_late_report(controller, service, pump):
    """A report finishing after close is dropped."""
    release = threading.Event()
    service.discover.side_effect = lambda query: release.wait(2.0) and DiscoveryReport(
        query=query, ok=True, summary="done"
    )
    reports = []
    controller.discovery_finished.connect(reports.append)

    handle = controller.discover("Boston")
    assert controller.running
    controller.close()
    release.set()
    handle.wait(timeout=2.0)
    pump(timeout=0.1)

    assert reports == []
    assert controller.discover("Boston") is None


def test_newer_discovery_supersedes_older_run(controller, service, pump):
    """An older run finishing after a newer one is dropped."""
    release_old = threading.Event()

    def discover(query):
        if query == "Old":
            release_old.wait(2.0)
        return DiscoveryReport(query=query, ok=True, summary="done")

    service.discover.side_effect = discover
    reports = []
    controller.discovery_finished.connect(lambda report: reports.append(report.query))

    old_handle = controller.discover("Old")
    new_handle = controller.discover("New")

    assert old_handle.discarded
    assert not new_handle.discarded
    assert pump(lambda: reports)

    release_old.set()
    old_handle.wait(timeout=2.0)
    pump(timeout=0.1)

    assert reports == ["New"]
    assert controller.last_report.query == "New"
