"""Heuristic extraction of technical terms and search keywords from record text."""

import re
from typing import Iterable

import structlog

from ticket_graph.models import DependencyGraph, ExtractedTerms, Record

logger = structlog.get_logger()

TECHNOLOGIES = [
    "postgres",
    "postgresql",
    "mysql",
    "mongodb",
    "redis",
    "cassandra",
    "elasticsearch",
    "dynamodb",
    "snowflake",
    "kafka",
    "rabbitmq",
    "sqs",
    "sns",
    "pubsub",
    "kinesis",
    "s3",
    "lambda",
    "ec2",
    "kubernetes",
    "docker",
    "terraform",
    "graphql",
    "grpc",
    "spring",
    "django",
    "flask",
    "fastapi",
    "react",
    "angular",
    "node",
    "airflow",
    "spark",
    "flyway",
    "liquibase",
    "prometheus",
    "grafana",
    "micrometer",
]

ARCHITECTURAL_ROLES = [
    "service",
    "controller",
    "handler",
    "repository",
    "endpoint",
    "migration",
    "schema",
    "consumer",
    "producer",
    "client",
    "adapter",
    "pipeline",
    "worker",
    "scheduler",
    "cache",
    "queue",
    "api",
    "model",
    "entity",
    "table",
]

FILE_EXTENSIONS = ["java", "kt", "py", "ts", "tsx", "js", "go", "rb", "sql", "yaml", "yml", "json", "xml", "proto", "tf"]

_COMPOUND_IDENTIFIER = re.compile(r"\b[a-z]*(?:[A-Z][a-z0-9]+){2,}\b")
_UPPERCASE_TOKEN = re.compile(r"\b[A-Z]{2,8}\b")
_PATH_TOKEN = re.compile(r"(?<![\w/.:-])(?:[\w.-]+/)+[\w.-]+\.[A-Za-z0-9]{1,6}\b")
_EXTENSION_TOKEN = re.compile(r"(?<![\w/])\*?\.(?:" + "|".join(FILE_EXTENSIONS) + r")\b")
_ROLE_TOKEN = re.compile(r"\b(" + "|".join(ARCHITECTURAL_ROLES) + r")s?\b", re.IGNORECASE)
_QUOTED = re.compile(r"\"([^\"\n]{4,49})\"|'([^'\n]{4,49})'")


class TermCollector:
    """Accumulates terms across texts into two first-seen-ordered sets."""

    def __init__(self) -> None:
        self._technical: dict[str, None] = {}
        self._keywords: dict[str, None] = {}

    def _add(self, term: str, technical: bool = False, keyword: bool = False) -> None:
        if technical:
            self._technical.setdefault(term, None)
        if keyword:
            self._keywords.setdefault(term, None)

    def feed(self, text: str | None) -> None:
        """Run every extraction pass over one text."""
        if not text:
            return

        for match in _COMPOUND_IDENTIFIER.finditer(text):
            self._add(match.group(0), technical=True)

        for match in _UPPERCASE_TOKEN.finditer(text):
            self._add(match.group(0), technical=True, keyword=True)

        lowered = text.lower()
        for tech in TECHNOLOGIES:
            if tech in lowered:
                self._add(tech, technical=True, keyword=True)

        for match in _PATH_TOKEN.finditer(text):
            self._add(match.group(0), technical=True)
        for match in _EXTENSION_TOKEN.finditer(text):
            self._add(match.group(0), technical=True)

        for match in _ROLE_TOKEN.finditer(text):
            self._add(match.group(1).lower(), keyword=True)

        for match in _QUOTED.finditer(text):
            self._add(match.group(1) or match.group(2), keyword=True)

    def feed_all(self, texts: Iterable[str | None]) -> None:
        for text in texts:
            self.feed(text)

    def result(self) -> ExtractedTerms:
        return ExtractedTerms(technical_terms=list(self._technical), keywords=list(self._keywords))


def record_texts(record: Record, include_comments: bool = True) -> list[str]:
    texts = [record.summary, record.description]
    if include_comments:
        texts.extend(c.body for c in record.comments)
    return texts


def extract_terms(text: str | None) -> ExtractedTerms:
    collector = TermCollector()
    collector.feed(text)
    return collector.result()


def extract_record_terms(root: Record, graph: DependencyGraph | None = None) -> ExtractedTerms:
    """Terms from the root's summary, description and comments plus every graph node's summary and description."""
    collector = TermCollector()
    collector.feed_all(record_texts(root))
    if graph is not None:
        for node in graph.nodes.values():
            collector.feed_all(record_texts(node, include_comments=False))
    terms = collector.result()
    logger.debug(
        "Terms extracted",
        key=root.key,
        technical_terms=len(terms.technical_terms),
        keywords=len(terms.keywords),
    )
    return terms
