"""Request orchestration: prompt -> provider (with retry) -> normalize -> reshape."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable

import prompts
from errors import DanglingLinkError, EmptyResponse, MalformedJSON, ValidationError
from models import (
    ComparisonAspect,
    ComparisonPoint,
    ComparisonReport,
    ComparisonResult,
    GenerationRequest,
    GraphLink,
    GraphNode,
    KnowledgeGraphData,
    Paper,
    ProviderResponse,
)
from normalizer import normalize_response, normalize_text
from provider import Provider
from retry import DEFAULT_INITIAL_DELAY_SECONDS, DEFAULT_MAX_RETRIES, call_with_retry

SEARCH_TEMPERATURE = 0.1
COMPARE_TEMPERATURE = 0.2
GRAPH_TEMPERATURE = 0.3

MIN_COMPARE_PAPERS = 2

_NODE_GROUPS: dict[int, str] = {1: "paper", 2: "concept"}

LOGGER = logging.getLogger(__name__)


class ResearchAssistant:
    """Runs the user-facing research operations against an injected provider.

    Holds no mutable state; concurrent calls on one instance are independent.
    """

    def __init__(
        self,
        provider: Provider,
        *,
        model: str | None = None,
        fast_model: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.provider = provider
        self.model = model
        self.fast_model = fast_model or model
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def _generate(self, request: GenerationRequest) -> ProviderResponse:
        return await call_with_retry(
            lambda: self.provider.generate(request),
            self.max_retries,
            self.initial_delay,
            sleep=self._sleep,
        )

    async def _generate_json(self, request: GenerationRequest) -> Any:
        return normalize_response(await self._generate(request))

    async def _generate_text(self, request: GenerationRequest) -> str:
        return normalize_text(await self._generate(request))

    async def search(self, query: str, systematic: bool = False) -> list[Paper]:
        """Find papers for ``query``; an empty provider reply means no results."""
        query = query.strip()
        if not query:
            raise ValidationError("Please enter a search query.")

        LOGGER.info("Performing live semantic search for %r, systematic=%s", query, systematic)
        request = GenerationRequest(
            prompt=prompts.search_prompt(query, systematic),
            expected_shape=prompts.PAPER_LIST_SCHEMA,
            temperature=SEARCH_TEMPERATURE,
            use_search=True,
            model=self.model,
        )
        try:
            payload = await self._generate_json(request)
        except EmptyResponse:
            LOGGER.warning("Provider returned no text for query=%r; treating as no results", query)
            return []

        if isinstance(payload, dict) and isinstance(payload.get("papers"), list):
            payload = payload["papers"]
        if not isinstance(payload, list):
            raise MalformedJSON(
                json.dumps(payload),
                "The AI model returned a malformed response. Expected a list of papers.",
            )

        papers = build_papers(payload)
        LOGGER.info("Search for %r returned %s papers", query, len(papers))
        return papers

    async def compare(self, papers: list[Paper]) -> ComparisonResult:
        _require_papers(papers, MIN_COMPARE_PAPERS)
        request = GenerationRequest(
            prompt=prompts.compare_prompt(papers),
            expected_shape=prompts.COMPARISON_SCHEMA,
            temperature=COMPARE_TEMPERATURE,
            model=self.model,
        )
        return reshape_comparison(await self._generate_json(request))

    async def build_knowledge_graph(self, papers: list[Paper]) -> KnowledgeGraphData:
        _require_papers(papers, MIN_COMPARE_PAPERS)
        request = GenerationRequest(
            prompt=prompts.knowledge_graph_prompt(papers),
            expected_shape=prompts.KNOWLEDGE_GRAPH_SCHEMA,
            temperature=GRAPH_TEMPERATURE,
            model=self.model,
        )
        return reshape_knowledge_graph(await self._generate_json(request))

    async def suggest_broader_topics(self, query: str, papers: list[Paper]) -> list[str]:
        if not papers:
            return []
        request = GenerationRequest(
            prompt=prompts.topics_prompt(query, papers),
            expected_shape=prompts.TOPIC_LIST_SCHEMA,
            model=self.fast_model,
        )
        payload = await self._generate_json(request)
        if not isinstance(payload, list):
            raise MalformedJSON(
                json.dumps(payload),
                "The AI model returned a malformed response. Expected a list of topics.",
            )
        return [item.strip() for item in payload if isinstance(item, str) and item.strip()]

    async def detailed_report(self, papers: list[Paper], query: str = "") -> str:
        """Markdown comparative report (Introduction ... Synthesis & Conclusion)."""
        _require_papers(papers, MIN_COMPARE_PAPERS)
        return await self._markdown(prompts.DETAILED_REPORT_PROMPT, query, papers)

    async def key_insights(self, papers: list[Paper], query: str = "") -> str:
        _require_papers(papers, 1)
        return await self._markdown(prompts.KEY_INSIGHTS_PROMPT, query, papers)

    async def research_gaps(self, papers: list[Paper], query: str = "") -> str:
        _require_papers(papers, 1)
        return await self._markdown(prompts.RESEARCH_GAPS_PROMPT, query, papers)

    async def summarize_paper(self, paper: Paper) -> str:
        return await self._generate_text(
            GenerationRequest(prompt=prompts.summary_prompt(paper), model=self.fast_model)
        )

    async def _markdown(self, template: str, query: str, papers: list[Paper]) -> str:
        request = GenerationRequest(
            prompt=prompts.markdown_prompt(template, query, papers),
            model=self.model,
        )
        return await self._generate_text(request)

    async def analyze(
        self,
        papers: list[Paper],
        query: str = "",
        require_all: bool = False,
    ) -> ComparisonReport:
        """Issue every compare-view request concurrently and join them.

        A failed section is recorded in ``report.errors`` and the others are
        kept. With ``require_all`` the first failure (in section order) is
        raised instead.
        """
        _require_papers(papers, MIN_COMPARE_PAPERS)

        sections: dict[str, Awaitable[Any]] = {
            "comparison": self.compare(papers),
            "knowledge_graph": self.build_knowledge_graph(papers),
            "detailed_report": self.detailed_report(papers, query),
            "key_insights": self.key_insights(papers, query),
            "research_gaps": self.research_gaps(papers, query),
        }
        results = await asyncio.gather(*sections.values(), return_exceptions=True)

        report = ComparisonReport()
        for name, result in zip(sections, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                LOGGER.warning("Compare section %s failed: %s", name, result)
                report.errors[name] = result
            else:
                setattr(report, name, result)

        LOGGER.info(
            "Compare finished for %s papers: failed_sections=%s",
            len(papers),
            sorted(report.errors),
        )
        if require_all:
            report.raise_for_errors()
        return report


def _require_papers(papers: list[Paper], minimum: int) -> None:
    if len(papers) < minimum:
        noun = "paper" if minimum == 1 else "papers"
        raise ValidationError(f"Please select at least {minimum} {noun}.")
    ids = [p.paper_id for p in papers]
    if len(set(ids)) != len(ids):
        raise ValidationError("Each selected paper must have a distinct id.")


def build_papers(items: list[Any], now_ms: int | None = None) -> list[Paper]:
    """Turn provider paper objects into Papers, synthesizing missing ids.

    Synthesized ids are ``"<millis>-<position>"``; the timestamp is read once
    per response so ids never collide within it.
    """
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    papers: list[Paper] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            LOGGER.warning("Skipping non-object paper entry at position %s: %r", index, item)
            continue
        paper = Paper.from_dict(item)
        if not paper.title:
            LOGGER.warning("Skipping paper without a title at position %s", index)
            continue
        if not paper.paper_id:
            paper = Paper.from_dict(item, paper_id=f"{stamp}-{index}")
        papers.append(paper)
    return papers


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _coerce_confidence(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return min(max(score, 0.0), 1.0)


def reshape_comparison(payload: Any) -> ComparisonResult:
    """Convert the wire comparison (per-aspect point lists) into per-aspect mappings.

    Each (aspect, paper) pair present yields exactly one point (first wins);
    papers missing from an aspect stay absent and render as "N/A".
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("comparison"), list):
        raise MalformedJSON(
            json.dumps(payload),
            "The AI model returned a malformed comparison. Expected a 'comparison' list.",
        )

    aspects: list[ComparisonAspect] = []
    for raw_aspect in payload["comparison"]:
        if not isinstance(raw_aspect, dict):
            continue
        raw_points = raw_aspect.get("papers")
        if isinstance(raw_points, dict):
            raw_points = [{**point, "paperId": key} for key, point in raw_points.items() if isinstance(point, dict)]
        if not isinstance(raw_points, list):
            raw_points = []

        points: dict[str, ComparisonPoint] = {}
        for raw_point in raw_points:
            if not isinstance(raw_point, dict):
                continue
            paper_id = str(raw_point.get("paperId") or "").strip()
            if not paper_id:
                continue
            if paper_id in points:
                LOGGER.debug("Duplicate comparison point for paper_id=%s ignored", paper_id)
                continue
            points[paper_id] = ComparisonPoint(
                value=_as_text(raw_point.get("value")),
                confidence_score=_coerce_confidence(raw_point.get("confidenceScore")),
                source_sentence=_as_text(raw_point.get("sourceSentence")),
            )
        aspects.append(ComparisonAspect(aspect=_as_text(raw_aspect.get("aspect")), points=points))

    gaps = payload.get("researchGaps")
    hypothesis = _as_text(payload.get("hypothesis"))
    return ComparisonResult(
        executive_summary=_as_text(payload.get("executiveSummary")),
        aspects=tuple(aspects),
        overall_synthesis=_as_text(payload.get("overallSynthesis")),
        research_gaps=tuple(g.strip() for g in gaps if isinstance(g, str) and g.strip())
        if isinstance(gaps, list)
        else (),
        hypothesis=hypothesis or None,
    )


def _endpoint_id(value: Any) -> str:
    # Graph renderers replace link endpoints with node objects; accept both.
    if isinstance(value, dict):
        value = value.get("id")
    return str(value).strip() if value is not None else ""


def _node_category(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return _NODE_GROUPS.get(value, str(value))
    return _as_text(value).lower() or "concept"


def _coerce_strength(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def reshape_knowledge_graph(payload: Any) -> KnowledgeGraphData:
    """Validate graph data; any link to an undeclared node id is an error."""
    raw_text = json.dumps(payload)
    if (
        not isinstance(payload, dict)
        or not isinstance(payload.get("nodes"), list)
        or not isinstance(payload.get("links"), list)
    ):
        raise MalformedJSON(
            raw_text,
            "The AI model returned a malformed knowledge graph. Expected 'nodes' and 'links' lists.",
        )

    nodes: dict[str, GraphNode] = {}
    for raw_node in payload["nodes"]:
        if not isinstance(raw_node, dict):
            raise MalformedJSON(
                raw_text,
                f"The AI model returned a malformed knowledge graph. Node entry {raw_node!r} is not an object.",
            )
        node_id = _endpoint_id(raw_node.get("id"))
        if not node_id or node_id in nodes:
            continue
        nodes[node_id] = GraphNode(
            node_id=node_id,
            category=_node_category(raw_node.get("group")),
            label=_as_text(raw_node.get("label")) or node_id,
        )

    links: list[GraphLink] = []
    dangling: list[tuple[str, str]] = []
    for raw_link in payload["links"]:
        if not isinstance(raw_link, dict):
            raise MalformedJSON(
                raw_text,
                f"The AI model returned a malformed knowledge graph. Link entry {raw_link!r} is not an object.",
            )
        source = _endpoint_id(raw_link.get("source"))
        target = _endpoint_id(raw_link.get("target"))
        if source not in nodes or target not in nodes:
            dangling.append((source, target))
            continue
        links.append(
            GraphLink(
                source=source,
                target=target,
                label=_as_text(raw_link.get("label")),
                strength=_coerce_strength(raw_link.get("value")),
            )
        )

    if dangling:
        LOGGER.error("Knowledge graph has %s dangling links: %s", len(dangling), dangling)
        raise DanglingLinkError(raw_text, dangling)

    return KnowledgeGraphData(nodes=tuple(nodes.values()), links=tuple(links))
