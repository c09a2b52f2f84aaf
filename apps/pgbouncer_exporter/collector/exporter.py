"""
PgBouncer collector.

Implements the prometheus_client custom collector contract:

- ``collect()`` runs a scrape of every namespace and returns metric families,
  followed by the exporter meta-metrics (up, duration, scrape count, errors).
- ``describe()`` cannot know the metric set without asking PgBouncer, so it
  runs a full collect in the background and forwards the descriptors only.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Sequence

from opentelemetry import trace
from prometheus_client.core import Metric

from .errors import ConnectivityError
from .mapping import (
    MetricDescriptor,
    MetricKind,
    MetricSample,
    NamespaceMapping,
    check_unique_names,
    qualified_name,
)
from .query import QueryExecutor, QueryOutcome, run_query

logger = logging.getLogger("pgbouncer_exporter.collector")
tracer = trace.get_tracer(__name__)

_DONE = object()


@dataclass
class ScrapeHealth:
    up: bool = False
    last_error: float = 0.0
    duration_seconds: float = 0.0
    scrapes_total: int = 0


class PgBouncerCollector:
    def __init__(
        self,
        executor: QueryExecutor,
        mappings: Sequence[NamespaceMapping],
        namespace: str = "pgbouncer",
    ) -> None:
        self.executor = executor
        self.mappings = tuple(mappings)
        self.namespace = namespace

        self._lock = threading.Lock()
        self._health = ScrapeHealth()

        self._up = MetricDescriptor(
            qualified_name(namespace, "up"),
            MetricKind.GAUGE,
            documentation="Was the PgBouncer instance query successful?",
        )
        self._duration = MetricDescriptor(
            qualified_name(namespace, "last_scrape_duration_seconds"),
            MetricKind.GAUGE,
            documentation="Duration of the last scrape of metrics from PgBouncer.",
        )
        self._scrapes = MetricDescriptor(
            qualified_name(namespace, "scrapes_total"),
            MetricKind.COUNTER,
            documentation="Total number of times PgBouncer has been scraped for metrics.",
        )
        self._error = MetricDescriptor(
            qualified_name(namespace, "last_scrape_error"),
            MetricKind.GAUGE,
            documentation="Number of errors in the last scrape of metrics from PgBouncer (0 for success).",
        )
        check_unique_names(self.mappings, reserved=(self._up, self._duration, self._scrapes, self._error))

    # ------------------------------------------------------------------
    # prometheus_client collector contract
    # ------------------------------------------------------------------

    def collect(self) -> List[Metric]:
        samples: List[MetricSample] = []
        self._collect_into(samples.append)
        return _to_families(samples)

    def describe(self) -> Iterator[Metric]:
        for descriptor in self.iter_descriptors():
            yield descriptor.new_family()

    def iter_descriptors(self) -> Iterator[MetricDescriptor]:
        """Distinct descriptors of a full collect, in emission order."""
        channel: "queue.Queue" = queue.Queue()

        def _worker() -> None:
            try:
                self._collect_into(lambda sample: channel.put(sample.descriptor))
            except Exception:
                logger.exception("Collect for describe failed")
            finally:
                channel.put(_DONE)

        worker = threading.Thread(target=_worker, name="pgbouncer-describe", daemon=True)
        worker.start()

        seen = set()
        while True:
            descriptor = channel.get()
            if descriptor is _DONE:
                break
            if descriptor.name in seen:
                continue
            seen.add(descriptor.name)
            yield descriptor
        worker.join()

    @property
    def health(self) -> ScrapeHealth:
        """Copy of the health state after the last scrape."""
        with self._lock:
            return replace(self._health)

    # ------------------------------------------------------------------
    # Scrape
    # ------------------------------------------------------------------

    def _collect_into(self, emit) -> None:
        with self._lock:
            self._scrape(emit)
            health = self._health
            emit(MetricSample(self._duration, health.duration_seconds))
            emit(MetricSample(self._up, 1.0 if health.up else 0.0))
            emit(MetricSample(self._scrapes, float(health.scrapes_total)))
            emit(MetricSample(self._error, health.last_error))

    def _scrape(self, emit) -> None:
        health = self._health
        begun = time.monotonic()
        logger.info("Starting scrape")

        with tracer.start_as_current_span("pgbouncer.scrape") as span:
            try:
                health.last_error = 0.0
                health.scrapes_total += 1

                try:
                    self.executor.ping()
                except ConnectivityError as exc:
                    logger.error("Backend is down, failed to connect: %s", exc)
                    health.last_error = 1.0
                    health.up = False
                    span.set_attribute("pgbouncer.up", False)
                    span.record_exception(exc)
                    return
                except Exception as exc:
                    logger.exception("Backend probe failed unexpectedly")
                    health.last_error = 1.0
                    health.up = False
                    span.set_attribute("pgbouncer.up", False)
                    span.record_exception(exc)
                    return

                logger.debug("Backend is up, proceeding with scrape")
                health.up = True
                span.set_attribute("pgbouncer.up", True)

                for mapping in self.mappings:
                    outcome = self._scrape_namespace(mapping, emit)
                    health.last_error += len(outcome.non_fatal)
                    if outcome.fatal is not None:
                        health.last_error += 1

                span.set_attribute("pgbouncer.errors", health.last_error)
            finally:
                health.duration_seconds = time.monotonic() - begun
                logger.info("Ending scrape")

    def _scrape_namespace(self, mapping: NamespaceMapping, emit) -> QueryOutcome:
        with tracer.start_as_current_span("pgbouncer.namespace") as span:
            span.set_attribute("pgbouncer.namespace", mapping.namespace)
            try:
                outcome = run_query(mapping, self.executor, emit)
            except Exception as exc:
                # Executors may raise outside the error taxonomy; keep the scrape going
                logger.exception("Unexpected failure querying namespace %s", mapping.namespace)
                span.record_exception(exc)
                return QueryOutcome(namespace=mapping.namespace, fatal=exc)

            for error in outcome.non_fatal:
                logger.error("%s", error)
            if outcome.fatal is not None:
                logger.error("Error scraping namespace %s: %s", mapping.namespace, outcome.fatal)
                span.record_exception(outcome.fatal)

            span.set_attribute("pgbouncer.samples", outcome.samples)
            span.set_attribute("pgbouncer.non_fatal_errors", len(outcome.non_fatal))
            return outcome


def _to_families(samples: Sequence[MetricSample]) -> List[Metric]:
    """Group samples into one family per descriptor, in first-seen order."""
    families: Dict[str, Metric] = {}
    for sample in samples:
        family = families.get(sample.descriptor.name)
        if family is None:
            family = sample.descriptor.new_family()
            families[sample.descriptor.name] = family
        family.add_metric(list(sample.label_values), sample.value)
    return list(families.values())

