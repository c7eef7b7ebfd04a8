"""Tests for research_service.ResearchAssistant against a mocked provider."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from errors import (
    BlockedContent,
    DanglingLinkError,
    EmptyResponse,
    MalformedJSON,
    ProviderUnavailable,
    ValidationError,
)
from models import Paper, ProviderResponse
from research_service import ResearchAssistant, build_papers, reshape_comparison

_PAPER_A = Paper(
    paper_id="1706.03762",
    title="Attention Is All You Need",
    authors=("Ashish Vaswani", "Noam Shazeer"),
    year=2017,
    abstract="We propose the Transformer, based solely on attention mechanisms.",
    tldr="Transformers replace recurrence with attention.",
)

_PAPER_B = Paper(
    paper_id="1409.0473",
    title="Neural Machine Translation by Jointly Learning to Align and Translate",
    authors=("Dzmitry Bahdanau",),
    year=2014,
    abstract="We introduce an attention-based alignment model.",
    tldr="Soft alignment improves translation.",
)

_SEARCH_PAYLOAD = [
    {
        "id": "1706.03762",
        "title": "Attention Is All You Need",
        "authors": ["Ashish Vaswani", "Noam Shazeer"],
        "year": 2017,
        "citationCount": 120000,
        "tldr": "Transformers replace recurrence with attention.",
        "abstract": "A summary.",
    },
    {
        "title": "Effective Approaches to Attention-based Neural Machine Translation",
        "authors": ["Minh-Thang Luong"],
        "year": "2015",
        "tldr": "Global and local attention.",
        "abstract": "Another summary.",
    },
]

_COMPARISON_PAYLOAD = {
    "executiveSummary": "Both papers study attention.",
    "comparison": [
        {
            "aspect": "Methodology",
            "papers": [
                {"paperId": "1706.03762", "value": "Self-attention", "confidenceScore": 0.9,
                 "sourceSentence": "We propose the Transformer."},
                {"paperId": "1409.0473", "value": "RNN + attention", "confidenceScore": 0.8,
                 "sourceSentence": "We introduce an alignment model."},
            ],
        },
        {
            "aspect": "Limitations",
            "papers": [
                {"paperId": "1409.0473", "value": "Sequential decoding", "confidenceScore": 1.4,
                 "sourceSentence": "n/a"},
            ],
        },
    ],
    "overallSynthesis": "Attention evolved from alignment to full self-attention.",
    "researchGaps": ["Long context efficiency", ""],
    "hypothesis": "",
}

_GRAPH_PAYLOAD = {
    "nodes": [
        {"id": "1706.03762", "group": "paper", "label": "Transformer"},
        {"id": "1409.0473", "group": 1, "label": "Bahdanau"},
        {"id": "attention", "group": 2, "label": "Attention"},
    ],
    "links": [
        {"source": "1706.03762", "target": "attention", "label": "introduces", "value": 9},
        {"source": "1409.0473", "target": "attention", "label": "builds upon", "value": 7},
    ],
}


def _ok(payload: object) -> ProviderResponse:
    return ProviderResponse(text=f"```json\n{json.dumps(payload)}\n```", finish_reason="STOP")


def _assistant(*responses: object) -> tuple[ResearchAssistant, MagicMock, AsyncMock]:
    provider = MagicMock()
    provider.generate = AsyncMock(side_effect=list(responses))
    sleep = AsyncMock()
    assistant = ResearchAssistant(provider, model="pro", fast_model="flash", sleep=sleep)
    return assistant, provider, sleep


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------

def test_search_returns_papers_and_synthesizes_missing_ids() -> None:
    assistant, provider, _ = _assistant(_ok(_SEARCH_PAYLOAD))

    papers = asyncio.run(assistant.search("attention mechanisms", systematic=False))

    assert len(papers) == 2
    assert papers[0].paper_id == "1706.03762"
    assert papers[0].citation_count == 120000
    assert papers[1].paper_id.endswith("-1")
    assert papers[1].year == 2015
    assert papers[1].citation_count == 0
    request = provider.generate.await_args.args[0]
    assert request.use_search is True
    assert request.temperature == 0.1
    assert request.model == "pro"
    assert "attention mechanisms" in request.prompt
    assert "Systematic Review Mode" not in request.prompt


def test_search_systematic_flag_changes_prompt() -> None:
    assistant, provider, _ = _assistant(_ok(_SEARCH_PAYLOAD))
    asyncio.run(assistant.search("graph neural networks", systematic=True))
    assert "Systematic Review Mode is ON" in provider.generate.await_args.args[0].prompt


def test_search_is_structurally_idempotent_apart_from_synthesized_ids() -> None:
    assistant, _, _ = _assistant(_ok(_SEARCH_PAYLOAD), _ok(_SEARCH_PAYLOAD))

    first = asyncio.run(assistant.search("attention"))
    second = asyncio.run(assistant.search("attention"))

    strip_ids = lambda papers: [{**p.to_dict(), "id": None} for p in papers]  # noqa: E731
    assert strip_ids(first) == strip_ids(second)
    assert first[0].paper_id == second[0].paper_id


def test_search_empty_response_means_no_results() -> None:
    assistant, _, _ = _assistant(ProviderResponse(text="", finish_reason="STOP"))
    assert asyncio.run(assistant.search("nothing here")) == []


def test_search_blocked_raises_blocked_content() -> None:
    assistant, _, _ = _assistant(ProviderResponse(text=None, block_reason="SAFETY"))
    with pytest.raises(BlockedContent) as excinfo:
        asyncio.run(assistant.search("something unsafe"))
    assert excinfo.value.reason == "SAFETY"


def test_search_plain_text_raises_malformed() -> None:
    assistant, _, _ = _assistant(ProviderResponse(text="Sorry, I cannot help.", finish_reason="STOP"))
    with pytest.raises(MalformedJSON) as excinfo:
        asyncio.run(assistant.search("attention"))
    assert excinfo.value.raw_text == "Sorry, I cannot help."


def test_search_object_payload_is_malformed() -> None:
    assistant, _, _ = _assistant(_ok({"title": "Not a list"}))
    with pytest.raises(MalformedJSON):
        asyncio.run(assistant.search("attention"))


def test_search_blank_query_rejected_without_provider_call() -> None:
    assistant, provider, _ = _assistant()
    with pytest.raises(ValidationError):
        asyncio.run(assistant.search("   "))
    provider.generate.assert_not_awaited()


def test_search_retries_on_overload_then_succeeds() -> None:
    assistant, provider, sleep = _assistant(
        RuntimeError("503 Service Unavailable"),
        RuntimeError("503 Service Unavailable"),
        _ok(_SEARCH_PAYLOAD),
    )

    papers = asyncio.run(assistant.search("attention"))

    assert len(papers) == 2
    assert provider.generate.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


def test_search_persistent_overload_raises_provider_unavailable() -> None:
    assistant, provider, _ = _assistant(*[RuntimeError("model overloaded")] * 3)
    with pytest.raises(ProviderUnavailable):
        asyncio.run(assistant.search("attention"))
    assert provider.generate.await_count == 3


def test_build_papers_skips_untitled_and_non_objects() -> None:
    papers = build_papers([{"title": ""}, "junk", {"title": "Kept"}], now_ms=1700000000000)
    assert [p.title for p in papers] == ["Kept"]
    assert papers[0].paper_id == "1700000000000-2"


def test_build_papers_ids_unique_within_response() -> None:
    papers = build_papers([{"title": "A"}, {"title": "B"}, {"title": "C"}], now_ms=42)
    assert [p.paper_id for p in papers] == ["42-0", "42-1", "42-2"]


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------

def test_compare_with_one_paper_raises_before_any_call() -> None:
    assistant, provider, _ = _assistant()
    with pytest.raises(ValidationError, match="at least 2"):
        asyncio.run(assistant.compare([_PAPER_A]))
    provider.generate.assert_not_awaited()


def test_compare_duplicate_ids_rejected() -> None:
    assistant, provider, _ = _assistant()
    with pytest.raises(ValidationError):
        asyncio.run(assistant.compare([_PAPER_A, _PAPER_A]))
    provider.generate.assert_not_awaited()


def test_compare_reshapes_points_into_mapping() -> None:
    assistant, provider, _ = _assistant(_ok(_COMPARISON_PAYLOAD))

    result = asyncio.run(assistant.compare([_PAPER_A, _PAPER_B]))

    methodology, limitations = result.aspects
    assert methodology.aspect == "Methodology"
    assert set(methodology.points) == {"1706.03762", "1409.0473"}
    assert methodology.points["1706.03762"].value == "Self-attention"
    assert limitations.points["1409.0473"].confidence_score == 1.0
    assert "1706.03762" not in limitations.points
    assert limitations.display_value("1706.03762") == "N/A"
    assert result.executive_summary == "Both papers study attention."
    assert result.research_gaps == ("Long context efficiency",)
    assert result.hypothesis is None

    request = provider.generate.await_args.args[0]
    assert request.temperature == 0.2
    assert "Paper ID: 1706.03762" in request.prompt
    assert "Paper ID: 1409.0473" in request.prompt


def test_reshape_comparison_one_entry_per_pair_first_wins() -> None:
    payload = {
        "comparison": [
            {"aspect": "Methodology", "papers": [
                {"paperId": "a", "value": "first", "confidenceScore": 0.5, "sourceSentence": "s"},
                {"paperId": "a", "value": "second", "confidenceScore": 0.7, "sourceSentence": "s"},
                {"paperId": "b", "value": "b", "confidenceScore": "0.3", "sourceSentence": "s"},
            ]},
        ],
        "overallSynthesis": "",
        "researchGaps": [],
    }

    result = reshape_comparison(payload)

    points = result.aspects[0].points
    assert list(points) == ["a", "b"]
    assert points["a"].value == "first"
    assert points["b"].confidence_score == 0.3


def test_reshape_comparison_missing_list_is_malformed() -> None:
    with pytest.raises(MalformedJSON):
        reshape_comparison({"overallSynthesis": "no comparison"})


# ---------------------------------------------------------------------------
# knowledge graph
# ---------------------------------------------------------------------------

def test_build_knowledge_graph_validates_and_maps_groups() -> None:
    assistant, _, _ = _assistant(_ok(_GRAPH_PAYLOAD))

    graph = asyncio.run(assistant.build_knowledge_graph([_PAPER_A, _PAPER_B]))

    assert [n.category for n in graph.nodes] == ["paper", "paper", "concept"]
    assert graph.links[0].label == "introduces"
    assert graph.links[0].strength == 9.0
    node_ids = {n.node_id for n in graph.nodes}
    assert all(l.source in node_ids and l.target in node_ids for l in graph.links)


def test_build_knowledge_graph_dangling_link_raises() -> None:
    payload = {
        "nodes": [{"id": "p1", "group": "paper", "label": "P1"}],
        "links": [{"source": "p1", "target": "ghost", "label": "cites", "value": 3}],
    }
    assistant, _, _ = _assistant(_ok(payload))

    with pytest.raises(DanglingLinkError) as excinfo:
        asyncio.run(assistant.build_knowledge_graph([_PAPER_A, _PAPER_B]))

    assert excinfo.value.dangling == [("p1", "ghost")]
    assert isinstance(excinfo.value, MalformedJSON)


def test_build_knowledge_graph_accepts_object_endpoints() -> None:
    payload = {
        "nodes": [{"id": "p1", "group": "paper", "label": "P1"}, {"id": "c1", "group": "concept", "label": "C1"}],
        "links": [{"source": {"id": "p1"}, "target": {"id": "c1"}, "label": "uses"}],
    }
    assistant, _, _ = _assistant(_ok(payload))

    graph = asyncio.run(assistant.build_knowledge_graph([_PAPER_A, _PAPER_B]))

    assert graph.links[0].source == "p1"
    assert graph.links[0].strength is None


@pytest.mark.parametrize("payload", [
    {"nodes": [{"id": "p1", "group": "paper", "label": "P1"}, "c1"], "links": []},
    {"nodes": [{"id": "p1", "group": "paper", "label": "P1"}], "links": [["p1", "p1"]]},
])
def test_build_knowledge_graph_non_object_entry_is_malformed(payload: dict) -> None:
    assistant, _, _ = _assistant(_ok(payload))

    with pytest.raises(MalformedJSON, match="is not an object") as excinfo:
        asyncio.run(assistant.build_knowledge_graph([_PAPER_A, _PAPER_B]))

    assert not isinstance(excinfo.value, DanglingLinkError)
    assert json.loads(excinfo.value.raw_text) == payload


def test_assistant_rejects_zero_max_retries() -> None:
    provider = MagicMock()

    with pytest.raises(ValueError, match="max_retries"):
        ResearchAssistant(provider, max_retries=0)

    provider.generate.assert_not_called()


# ---------------------------------------------------------------------------
# topics
# ---------------------------------------------------------------------------

def test_suggest_topics_short_circuits_on_no_papers() -> None:
    assistant, provider, _ = _assistant()
    assert asyncio.run(assistant.suggest_broader_topics("attention", [])) == []
    provider.generate.assert_not_awaited()


def test_suggest_topics_uses_fast_model_and_titles() -> None:
    assistant, provider, _ = _assistant(_ok(["Sequence Modeling", "  ", "NLP History"]))

    topics = asyncio.run(assistant.suggest_broader_topics("attention", [_PAPER_A, _PAPER_B]))

    assert topics == ["Sequence Modeling", "NLP History"]
    request = provider.generate.await_args.args[0]
    assert request.model == "flash"
    assert "Attention Is All You Need" in request.prompt


def test_suggest_topics_empty_response_is_an_error() -> None:
    assistant, _, _ = _assistant(ProviderResponse(text=None))
    with pytest.raises(EmptyResponse):
        asyncio.run(assistant.suggest_broader_topics("attention", [_PAPER_A]))


# ---------------------------------------------------------------------------
# analyze (compare fan-out)
# ---------------------------------------------------------------------------

def _route(graph_response: object) -> AsyncMock:
    """Answer each request by its prompt so concurrent ordering does not matter."""

    async def generate(request):
        if "knowledge graph extractor" in request.prompt:
            if isinstance(graph_response, Exception):
                raise graph_response
            return graph_response
        if "Analyze and compare" in request.prompt:
            return _ok(_COMPARISON_PAYLOAD)
        return ProviderResponse(text="## Section\nBody", finish_reason="STOP")

    return AsyncMock(side_effect=generate)


def test_analyze_collects_all_sections() -> None:
    provider = MagicMock()
    provider.generate = _route(_ok(_GRAPH_PAYLOAD))
    assistant = ResearchAssistant(provider, sleep=AsyncMock())

    report = asyncio.run(assistant.analyze([_PAPER_A, _PAPER_B], query="attention"))

    assert report.complete is True
    assert provider.generate.await_count == 5
    assert report.comparison is not None
    assert report.knowledge_graph is not None
    assert report.detailed_report == "## Section\nBody"
    assert report.key_insights == "## Section\nBody"
    assert report.research_gaps == "## Section\nBody"


def test_analyze_reports_partial_results() -> None:
    provider = MagicMock()
    provider.generate = _route(ValueError("400 INVALID_ARGUMENT"))
    assistant = ResearchAssistant(provider, sleep=AsyncMock())

    report = asyncio.run(assistant.analyze([_PAPER_A, _PAPER_B]))

    assert report.complete is False
    assert set(report.errors) == {"knowledge_graph"}
    assert report.knowledge_graph is None
    assert report.comparison is not None
    assert report.to_dict()["errors"] == {"knowledge_graph": "400 INVALID_ARGUMENT"}
    with pytest.raises(ValueError):
        report.raise_for_errors()


def test_analyze_require_all_raises_first_failure() -> None:
    provider = MagicMock()
    provider.generate = _route(ProviderResponse(text=None, block_reason="SAFETY"))
    assistant = ResearchAssistant(provider, sleep=AsyncMock())

    with pytest.raises(BlockedContent):
        asyncio.run(assistant.analyze([_PAPER_A, _PAPER_B], require_all=True))


def test_analyze_validates_before_fan_out() -> None:
    provider = MagicMock()
    provider.generate = AsyncMock()
    assistant = ResearchAssistant(provider)

    with pytest.raises(ValidationError):
        asyncio.run(assistant.analyze([_PAPER_A]))
    provider.generate.assert_not_awaited()


def test_summarize_paper_returns_text() -> None:
    assistant, provider, _ = _assistant(ProviderResponse(text=" An abstract. ", finish_reason="STOP"))

    assert asyncio.run(assistant.summarize_paper(_PAPER_A)) == "An abstract."
    assert "Attention Is All You Need" in provider.generate.await_args.args[0].prompt
