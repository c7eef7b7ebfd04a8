"""Shared typed models for the research assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

NOT_APPLICABLE = "N/A"


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class Paper:
    """Paper metadata as returned by a search; never mutated after creation."""

    paper_id: str
    title: str
    authors: tuple[str, ...] = ()
    year: int | None = None
    abstract: str = ""
    citation_count: int = 0
    tldr: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any], paper_id: str | None = None) -> Paper:
        """Build a Paper from loosely typed provider (or UI) JSON."""
        authors = raw.get("authors")
        if isinstance(authors, str):
            authors = [authors]
        if not isinstance(authors, list):
            authors = []
        citations = _as_int(raw.get("citationCount"))
        return cls(
            paper_id=paper_id or _as_str(raw.get("id")) or _as_str(raw.get("paperId")),
            title=_as_str(raw.get("title")),
            authors=tuple(a.strip() for a in authors if isinstance(a, str) and a.strip()),
            year=_as_int(raw.get("year")),
            abstract=_as_str(raw.get("abstract")),
            citation_count=citations if citations is not None and citations > 0 else 0,
            tldr=_as_str(raw.get("tldr")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.paper_id,
            "title": self.title,
            "authors": list(self.authors),
            "year": self.year,
            "abstract": self.abstract,
            "citationCount": self.citation_count,
            "tldr": self.tldr,
        }


@dataclass(frozen=True, slots=True)
class ComparisonPoint:
    value: str
    confidence_score: float
    source_sentence: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "confidenceScore": self.confidence_score,
            "sourceSentence": self.source_sentence,
        }


@dataclass(frozen=True, slots=True)
class ComparisonAspect:
    """One comparison dimension; papers absent from ``points`` are not applicable."""

    aspect: str
    points: dict[str, ComparisonPoint] = field(default_factory=dict)

    def display_value(self, paper_id: str) -> str:
        point = self.points.get(paper_id)
        return point.value if point is not None else NOT_APPLICABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "aspect": self.aspect,
            "papers": {paper_id: point.to_dict() for paper_id, point in self.points.items()},
        }


@dataclass(frozen=True, slots=True)
class ComparisonResult:
    executive_summary: str
    aspects: tuple[ComparisonAspect, ...]
    overall_synthesis: str
    research_gaps: tuple[str, ...] = ()
    hypothesis: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "executiveSummary": self.executive_summary,
            "comparison": [aspect.to_dict() for aspect in self.aspects],
            "overallSynthesis": self.overall_synthesis,
            "researchGaps": list(self.research_gaps),
            "hypothesis": self.hypothesis,
        }


@dataclass(frozen=True, slots=True)
class GraphNode:
    node_id: str
    category: str
    label: str


@dataclass(frozen=True, slots=True)
class GraphLink:
    source: str
    target: str
    label: str = ""
    strength: float | None = None


@dataclass(frozen=True, slots=True)
class KnowledgeGraphData:
    nodes: tuple[GraphNode, ...]
    links: tuple[GraphLink, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [{"id": n.node_id, "group": n.category, "label": n.label} for n in self.nodes],
            "links": [
                {"source": link.source, "target": link.target, "label": link.label, "value": link.strength}
                for link in self.links
            ],
        }


@dataclass(frozen=True, slots=True)
class RetryAttempt:
    """Ephemeral record of one failed provider attempt."""

    attempt: int
    delay: float
    transient: bool


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Vendor-neutral provider call: prompt plus the declared response shape."""

    prompt: str
    expected_shape: dict[str, Any] | None = None
    temperature: float | None = None
    use_search: bool = False
    model: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    """Vendor-neutral provider result; ``finish_reason`` uses ``STOP`` for normal completion."""

    text: str | None
    finish_reason: str | None = None
    block_reason: str | None = None
    blocked_categories: tuple[str, ...] = ()


@dataclass(slots=True)
class ComparisonReport:
    """Fan-out results of one compare action; failed sections stay None."""

    comparison: ComparisonResult | None = None
    knowledge_graph: KnowledgeGraphData | None = None
    detailed_report: str | None = None
    key_insights: str | None = None
    research_gaps: str | None = None
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise the first section error, giving all-or-nothing semantics."""
        for error in self.errors.values():
            raise error

    def to_dict(self) -> dict[str, Any]:
        return {
            "comparison": self.comparison.to_dict() if self.comparison else None,
            "knowledgeGraph": self.knowledge_graph.to_dict() if self.knowledge_graph else None,
            "detailedReport": self.detailed_report,
            "keyInsights": self.key_insights,
            "researchGaps": self.research_gaps,
            "errors": {section: str(error) for section, error in self.errors.items()},
        }
