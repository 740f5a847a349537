import logging
import random
import time
from typing import List, Optional

from research_network.core.base_agent import Agent, AgentConfig
from research_network.core.llm import CompletionService
from research_network.core.search import SearchService
from research_network.core.types import AgentRole, Finding, SearchResult, WorkerDescriptor

from .roster import Specialization, get_specialization

logger = logging.getLogger(__name__)

FALLBACK_SOURCE_SUFFIX = "_fallback_analysis"


class ResearchSubagent(Agent):
    """
    Research Subagent: executes one specialized research subtask.

    A subagent is created for a single task and keeps no state between calls:
    search, build the specialization prompt, ask the completion provider, and
    return one Finding. Any failure is absorbed into a deterministic fallback
    Finding so the session keeps going.

    Confidence is a heuristic drawn from the specialization's band. It is only
    meaningful for ranking findings within a session, never as a probability.
    """

    def __init__(
        self,
        descriptor: WorkerDescriptor,
        completion: CompletionService,
        search: SearchService,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(
            AgentConfig(
                name=descriptor.name,
                description=f"Research subagent specialized in {descriptor.expertise}",
                role=AgentRole.SUBAGENT,
            ),
            completion,
        )
        self.descriptor = descriptor
        self.search = search
        self.specialization: Specialization = get_specialization(descriptor.expertise)
        self.rng = rng or random.Random()

    @property
    def expertise(self) -> str:
        return self.descriptor.expertise

    def _default_system_prompt(self) -> str:
        return (
            f"You are {self.descriptor.name}, a specialized research agent with expertise in "
            f"{self.descriptor.expertise}. Your personality is {self.descriptor.personality}. "
            "Analyze the provided search results and provide detailed, insightful research findings "
            "based on your expertise."
        )

    def build_prompt(self, topic: str, search_result: SearchResult) -> str:
        spec = self.specialization
        focus = "\n".join(f"- {point}" for point in spec.focus_points)
        return (
            f"Based on the following current information about {topic}, {spec.instruction}.\n\n"
            f"Focus on:\n{focus}\n\n"
            "Provide detailed insights with specific examples and evidence-based conclusions.\n\n"
            f"Search Results:\n{search_result.results_text}"
        )

    async def perform_research(self, query: str, topic: Optional[str] = None) -> List[Finding]:
        """
        Run the subtask for `query`.

        Returns exactly one Finding in the base design. The list return leaves
        room for specializations that produce several.
        """
        topic = topic or query
        start_time = time.time()
        search_result: Optional[SearchResult] = None
        logger.info("%s starting %s research on %r", self.name, self.expertise, query)

        try:
            search_result = await self.search.search_with_fallback(query)
            content = await self.completion.complete(
                self.build_prompt(topic, search_result),
                system_message=self.system_prompt,
            )
            low, high = self.specialization.confidence_band
            finding = Finding(
                agent_id=self.descriptor.id,
                agent_name=self.descriptor.name,
                content=content,
                source=f"{self.expertise}_ai_analysis_with_{search_result.provider}",
                confidence=self.rng.uniform(low, high),
                search=search_result,
            )
        except Exception as e:
            logger.warning("%s research failed, using fallback analysis: %s", self.name, e)
            finding = self.fallback_finding(topic, search_result)

        logger.info(
            "%s finished in %dms (source=%s)",
            self.name, int((time.time() - start_time) * 1000), finding.source,
        )
        return [finding]

    def fallback_finding(self, topic: str, search_result: Optional[SearchResult] = None) -> Finding:
        spec = self.specialization
        return Finding(
            agent_id=self.descriptor.id,
            agent_name=self.descriptor.name,
            content=spec.fallback_template.format(topic=topic, expertise=self.expertise),
            source=f"{self.expertise}{FALLBACK_SOURCE_SUFFIX}",
            confidence=spec.fallback_confidence,
            search=search_result,
        )
