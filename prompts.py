"""Prompt templates and declared response shapes for every provider request."""

from __future__ import annotations

from typing import Any

from models import Paper

COMPARISON_ASPECTS: tuple[str, ...] = (
    "Methodology",
    "Key Contribution",
    "Dataset/Evaluation",
    "Limitations",
)

PAPER_LIST_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "title": {"type": "string"},
            "authors": {"type": "array", "items": {"type": "string"}},
            "year": {"type": "integer"},
            "abstract": {"type": "string"},
            "citationCount": {"type": "integer"},
            "tldr": {"type": "string"},
        },
        "required": ["title", "authors", "year", "abstract", "tldr"],
    },
}

# Per-paper points are a list on the wire (portable across providers);
# the service reshapes them into a mapping keyed by paper id.
COMPARISON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "executiveSummary": {"type": "string"},
        "comparison": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "aspect": {"type": "string"},
                    "papers": {
                        "type": "array",
                        "description": "An array of comparison points, one for each paper.",
                        "items": {
                            "type": "object",
                            "properties": {
                                "paperId": {"type": "string"},
                                "value": {"type": "string"},
                                "confidenceScore": {"type": "number"},
                                "sourceSentence": {"type": "string"},
                            },
                            "required": ["paperId", "value", "confidenceScore", "sourceSentence"],
                        },
                    },
                },
                "required": ["aspect", "papers"],
            },
        },
        "overallSynthesis": {"type": "string"},
        "researchGaps": {"type": "array", "items": {"type": "string"}},
        "hypothesis": {"type": "string"},
    },
    "required": ["executiveSummary", "comparison", "overallSynthesis", "researchGaps", "hypothesis"],
}

KNOWLEDGE_GRAPH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "group": {"type": "string", "description": "'paper' or 'concept'"},
                    "label": {"type": "string"},
                },
                "required": ["id", "group", "label"],
            },
        },
        "links": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "source": {"type": "string"},
                    "target": {"type": "string"},
                    "label": {"type": "string"},
                    "value": {"type": "number"},
                },
                "required": ["source", "target", "label", "value"],
            },
        },
    },
    "required": ["nodes", "links"],
}

TOPIC_LIST_SCHEMA: dict[str, Any] = {"type": "array", "items": {"type": "string"}}

_SYSTEMATIC_NOTE = (
    "Systematic Review Mode is ON: Prioritize a diverse range of foundational and recent "
    "papers to provide a comprehensive overview."
)

SEARCH_PROMPT = """You are an expert research assistant. Your task is to find relevant scholarly articles based on a user's query using your search capabilities and return them as a structured JSON array.

User Query: "{query}"

{systematic_note}

CRITICAL INSTRUCTIONS:
1. Use your search tool to find 5 to 7 highly relevant academic papers.
2. For each paper, process the information and generate the required fields. DO NOT copy text directly from the sources.
3. Abstract: read the paper's abstract and write a new, concise summary of it in your own words.
4. TLDR: generate a new, one-sentence "Too Long; Didn't Read" summary for each paper.
5. citationCount: the number of citations. If unknown, use 0.
6. Format your entire output as a single, valid JSON array of objects. Your response must begin with '[' and end with ']'. Do not include any other text, explanations, or markdown.

JSON object structure for each paper:
{{
  "id": "unique_identifier_string (arXiv ID or DOI when available)",
  "title": "Paper Title",
  "authors": ["Author One", "Author Two"],
  "year": 2023,
  "citationCount": 0,
  "tldr": "A new, one-sentence summary you generate.",
  "abstract": "A new, concise summary of the abstract that you write yourself."
}}
"""

COMPARE_PROMPT = """You are a research assistant. Analyze and compare the following academic papers.

Papers:
{paper_details}

Instructions:
Perform a detailed comparison across: {aspects}.
For each aspect, include one entry per paper, identified by its exact Paper ID, with:
1. 'value': The extracted information as a concise string.
2. 'confidenceScore': A score from 0.0 to 1.0 on accuracy.
3. 'sourceSentence': The exact sentence from the abstract supporting your extraction.
Omit a paper from an aspect only when the aspect does not apply to it.

After comparing, provide:
1. 'executiveSummary': Two or three sentences summarizing how the papers relate.
2. 'overallSynthesis': A paragraph synthesizing the main findings.
3. 'researchGaps': A list of potential research gaps.
4. 'hypothesis': A novel research hypothesis building on these papers.

Structure your entire response as a single JSON object.
"""

KNOWLEDGE_GRAPH_PROMPT = """You are a knowledge graph extractor. From the provided academic papers, extract key concepts and their relationships.

Papers:
{paper_details}

Instructions:
1. Identify papers as primary nodes (use their exact Paper IDs as node ids).
2. Identify 5-7 core concepts/methods (e.g., "Transformers", "Attention Mechanism").
3. Create nodes for each paper and concept.
4. Create links between papers and the concepts they discuss.
5. Create links between related concepts.
6. Every link source and target MUST be the id of a node you declared.

Node schema: {{ "id": string, "group": "paper" | "concept", "label": string }}
- 'label': A short, display-friendly label.

Link schema: {{ "source": string, "target": string, "label": string, "value": number }}
- 'label': The relationship, e.g. "introduces", "builds upon", "is a type of".
- 'value': A number from 1 to 10 for relationship strength.

Provide the output as a single JSON object with "nodes" and "links".
"""

TOPICS_PROMPT = """Based on the initial search query "{query}" and the paper titles [{titles}], suggest 3-5 related but broader research topics for exploration.

Return your answer as a JSON array of strings.

Example output: ["History of Neural Networks", "Applications of Language Models in Healthcare", "Ethics in AI"]
"""

DETAILED_REPORT_PROMPT = """{query_line}Provide a detailed comparative report of the following research papers.

Provided Papers:
{paper_details}

The report should be well-structured, written in an academic tone, and use markdown for formatting (e.g., headings, bold text, bullet points). Structure the report with the following level 2 headings (##):

1. Introduction: A brief overview of the research area and the papers' context.
2. Comparative Analysis: A comparison of their methodologies, architectures, and key innovations.
3. Key Findings & Contributions: A discussion of their main results and impact on the field.
4. Synthesis & Conclusion: A concluding summary of their respective strengths, weaknesses, and how they relate to each other.
"""

KEY_INSIGHTS_PROMPT = """{query_line}Synthesize the key insights and most important takeaways from the following research papers.

Provided Papers:
{paper_details}

Structure your response as follows, using markdown for formatting:
1. Individual Paper Insights: For each paper, create a section with its title as a level 3 heading (###). Under each heading, provide a bulleted list of the 3-5 most critical insights, findings, or contributions of that paper.
2. Overall Synthesis: A final section with a level 2 heading (##) that summarizes the collective insights and how they relate to one another.
"""

RESEARCH_GAPS_PROMPT = """{query_line}Identify the research gaps, limitations, and unanswered questions from the following research papers.

Provided Papers:
{paper_details}

Structure your response as follows:
1. Individual Gaps: For each paper, create a section with its title as a heading. Under each heading, provide a bulleted list of the specific limitations or areas for future work mentioned or implied in that paper.
2. Collective Gaps: A final "Emergent Research Directions" section that synthesizes the gaps from all papers to suggest broader, overarching questions or directions for future research in this area.

Use markdown for formatting.
"""

SUMMARY_PROMPT = """Provide a detailed, one-paragraph academic abstract for the following paper:
Title: "{title}"
Authors: {authors}
Year: {year}
Content: "{content}"
"""


def paper_details(papers: list[Paper]) -> str:
    return "\n\n---\n\n".join(
        f"Paper ID: {p.paper_id}\n"
        f"Title: {p.title}\n"
        f"Authors: {', '.join(p.authors) or 'Unknown'}\n"
        f"Year: {p.year if p.year is not None else 'Unknown'}\n"
        f"Abstract: {p.abstract or 'Not available.'}"
        for p in papers
    )


def _query_line(query: str) -> str:
    return f'Based on the user query "{query}", ' if query else ""


def search_prompt(query: str, systematic: bool) -> str:
    return SEARCH_PROMPT.format(query=query, systematic_note=_SYSTEMATIC_NOTE if systematic else "")


def compare_prompt(papers: list[Paper]) -> str:
    aspects = ", ".join(f'"{aspect}"' for aspect in COMPARISON_ASPECTS)
    return COMPARE_PROMPT.format(paper_details=paper_details(papers), aspects=aspects)


def knowledge_graph_prompt(papers: list[Paper]) -> str:
    return KNOWLEDGE_GRAPH_PROMPT.format(paper_details=paper_details(papers))


def topics_prompt(query: str, papers: list[Paper]) -> str:
    return TOPICS_PROMPT.format(query=query, titles=", ".join(p.title for p in papers))


def markdown_prompt(template: str, query: str, papers: list[Paper]) -> str:
    return template.format(query_line=_query_line(query), paper_details=paper_details(papers))


def summary_prompt(paper: Paper) -> str:
    return SUMMARY_PROMPT.format(
        title=paper.title,
        authors=", ".join(paper.authors) or "Unknown",
        year=paper.year if paper.year is not None else "Unknown",
        content=paper.abstract or paper.tldr or "Not available.",
    )
