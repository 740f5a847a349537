"""
Research personas and the fixed subtask partition.

Every session uses the same subtask shape (background, trends, technical,
impact, and optionally cross-domain). Only the prompt content varies with the
topic and with what the completion provider says.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from research_network.core.types import Subtask, WorkerDescriptor


@dataclass(frozen=True)
class Specialization:
    """Prompting and scoring profile of one expertise tag."""
    expertise: str
    subtask_name: str
    focus: str
    query_suffix: str
    instruction: str
    focus_points: Tuple[str, ...]
    confidence_band: Tuple[float, float]
    fallback_confidence: float
    fallback_template: str


SPECIALIZATIONS: Dict[str, Specialization] = {
    "background_research": Specialization(
        expertise="background_research",
        subtask_name="background",
        focus="Historical context, foundational concepts and how the field reached its current state",
        query_suffix="background history",
        instruction="conduct comprehensive background research",
        focus_points=(
            "Historical context and origins of the field",
            "Key developments and turning points",
            "Foundational concepts and terminology",
            "Influential people, organizations and works",
            "How the current state of the field emerged",
        ),
        confidence_band=(0.85, 0.95),
        fallback_confidence=0.8,
        fallback_template=(
            "Background research on {topic}: This field has evolved significantly over the past decade, "
            "with key developments in methodology and application."
        ),
    ),
    "current_trends": Specialization(
        expertise="current_trends",
        subtask_name="current_state",
        focus="Latest developments, emerging trends and the present state of the field",
        query_suffix="latest trends",
        instruction="identify the current state and latest trends",
        focus_points=(
            "Most recent developments and announcements",
            "Emerging trends and their momentum",
            "Leading actors and where investment is flowing",
            "Adoption levels and open debates",
            "Signals of where the field is heading next",
        ),
        confidence_band=(0.8, 0.9),
        fallback_confidence=0.75,
        fallback_template=(
            "Current trends in {topic}: Recent activity shows accelerating adoption, new entrants and "
            "shifting priorities across research and industry."
        ),
    ),
    "technical_analysis": Specialization(
        expertise="technical_analysis",
        subtask_name="technical",
        focus="Technical implementation, mechanisms, methodologies and limitations",
        query_suffix="technical implementation",
        instruction="perform detailed technical analysis",
        focus_points=(
            "Core mechanisms and how they work",
            "Methodologies and implementation approaches",
            "Effectiveness metrics and benchmarks",
            "Technical limitations and failure modes",
            "Key variables that influence outcomes",
        ),
        confidence_band=(0.85, 0.95),
        fallback_confidence=0.9,
        fallback_template=(
            "Detailed analysis of {topic}: Critical examination reveals several key factors that "
            "influence outcomes and effectiveness."
        ),
    ),
    "impact_assessment": Specialization(
        expertise="impact_assessment",
        subtask_name="impact",
        focus="Societal, economic and environmental impact and the outlook for the future",
        query_suffix="impact future",
        instruction="conduct a critical impact assessment",
        focus_points=(
            "Societal and human impact",
            "Economic costs, benefits and market effects",
            "Environmental and sustainability implications",
            "Risks, biases and ethical concerns",
            "Future directions and long-term outlook",
        ),
        confidence_band=(0.75, 0.9),
        fallback_confidence=0.85,
        fallback_template=(
            "Critical evaluation of {topic}: Assessment reveals both strengths and limitations, with "
            "specific areas requiring attention and improvement."
        ),
    ),
    "cross_domain_analysis": Specialization(
        expertise="cross_domain_analysis",
        subtask_name="cross_domain",
        focus="Connections with neighbouring fields and interdisciplinary opportunities",
        query_suffix="interdisciplinary connections",
        instruction="perform cross-domain analysis",
        focus_points=(
            "Connections with related fields",
            "Interdisciplinary opportunities",
            "Transferable methods and ideas",
            "Potential synergies and collaborations",
            "Broader implications across domains",
        ),
        confidence_band=(0.7, 0.85),
        fallback_confidence=0.75,
        fallback_template=(
            "Cross-domain analysis of {topic}: Integration with related fields reveals new opportunities "
            "and potential synergies for advancement."
        ),
    ),
}

GENERIC_CONFIDENCE_BAND = (0.7, 0.85)
GENERIC_FALLBACK_CONFIDENCE = 0.6
GENERIC_FALLBACK_TEMPLATE = (
    "Research on {topic} from the perspective of {expertise}: Initial review identified relevant "
    "developments that warrant further investigation."
)
GENERIC_FOCUS_POINTS = (
    "Key facts and developments",
    "Important actors and sources",
    "Evidence quality and gaps",
    "Implications for the topic",
    "Open questions for further research",
)

# Ordered: sessions take the first `subagent_count` personas.
WORKER_ROSTER: Tuple[WorkerDescriptor, ...] = (
    WorkerDescriptor(1, "Explorer", "background_research", "curious and thorough", "#00ff88"),
    WorkerDescriptor(2, "Trend Scout", "current_trends", "observant and forward-looking", "#0088ff"),
    WorkerDescriptor(3, "Analyst", "technical_analysis", "logical and precise", "#ff8800"),
    WorkerDescriptor(4, "Evaluator", "impact_assessment", "skeptical and balanced", "#ff0088"),
    WorkerDescriptor(5, "Connector", "cross_domain_analysis", "holistic and integrative", "#8800ff"),
)


def get_specialization(expertise: str) -> Specialization:
    """Known profile for `expertise`, or a generic one parameterized only by the tag."""
    known = SPECIALIZATIONS.get(expertise)
    if known is not None:
        return known
    return Specialization(
        expertise=expertise,
        subtask_name=expertise,
        focus=f"Research from the perspective of {expertise}",
        query_suffix=expertise.replace("_", " "),
        instruction=f"research the topic from the perspective of {expertise}",
        focus_points=GENERIC_FOCUS_POINTS,
        confidence_band=GENERIC_CONFIDENCE_BAND,
        fallback_confidence=GENERIC_FALLBACK_CONFIDENCE,
        fallback_template=GENERIC_FALLBACK_TEMPLATE,
    )


def build_subtasks(topic: str, workers: List[WorkerDescriptor]) -> Tuple[Subtask, ...]:
    """One subtask per worker, each with a distinct topic-specific query."""
    subtasks = []
    for worker in workers:
        spec = get_specialization(worker.expertise)
        subtasks.append(Subtask(
            name=spec.subtask_name,
            focus=spec.focus,
            role=worker.expertise,
            query=f"{topic} {spec.query_suffix}",
        ))
    return tuple(subtasks)
