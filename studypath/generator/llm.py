"""Roadmap generation with a LangChain chat model.

The model is asked for a JSON tree of topic nodes and edges.  Its reply is
stripped of markdown fences, parsed and validated into a
:class:`~studypath.models.Roadmap`.  A failed attempt (provider error, bad
JSON or a document that does not validate) is retried with exponential
backoff; once retries run out the last failure is classified and raised as
:class:`~studypath.errors.GenerationFailed`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

from studypath.config import settings
from studypath.errors import GenerationFailed, SchemaError
from studypath.generator.topic import clean_topic
from studypath.models import Roadmap
from studypath.validation import validate

logger = logging.getLogger(__name__)

CATEGORIES = ("fundamentals", "intermediate", "advanced", "tools", "practice", "projects")

_PROMPT_TEMPLATE = """\
You are an expert learning path designer. Create a comprehensive, structured \
learning roadmap for the topic: "{topic}".

Requirements:
1. Return ONLY valid JSON, no markdown formatting, no code blocks
2. Create 15-25 nodes (topics and subtopics) with STRICT hierarchical structure
3. Structure should be a tree (each node has exactly ONE parent, except root)
4. Each node needs: unique id, label, description (2-4 sentences), level (1-5), \
category, order (sequential number within same level)
5. Include edges showing parent-child relationships ONLY
6. Calculate x,y positions for a top-to-bottom tree layout

JSON structure:
{{
  "nodes": [
    {{
      "id": "node_1",
      "position": {{"x": 500, "y": 0}},
      "label": "Topic Title",
      "description": "Detailed explanation of this topic",
      "level": 1,
      "order": 1,
      "category": "fundamentals"
    }}
  ],
  "edges": [
    {{"id": "edge_1_2", "source": "node_1", "target": "node_2"}}
  ]
}}

Layout rules:
- Start with 1 root node at level 1 (x=500, y=0)
- Each level is 200px below the previous one (level 2: y=200, level 3: y=400 ...)
- Distribute nodes horizontally within each level (x spacing: 250-350px)
- Each node has EXACTLY ONE incoming edge (except the root)
- Children of the same parent are grouped horizontally
- "order" (1, 2, 3...) gives the learning sequence among siblings

Categories to use: {categories}

Generate the roadmap now. Return ONLY the JSON object, nothing else."""


def build_prompt(topic: str) -> str:
    return _PROMPT_TEMPLATE.format(topic=topic, categories=", ".join(CATEGORIES))


def _get_llm() -> Any:
    """Return a configured LangChain chat model based on ``settings``."""
    if settings.llm_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=settings.openai_chat_model, temperature=0)

    from langchain_ollama import ChatOllama

    return ChatOllama(
        model=settings.ollama_chat_model,
        base_url=settings.ollama_base_url,
        temperature=0,
    )


def extract_json(text: str) -> Any:
    """Parse the model reply, tolerating a surrounding ```json fence.

    Raises:
        ValueError: If the remaining text is not JSON.
    """
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.removeprefix("```json").removeprefix("```")
        stripped = stripped.removesuffix("```").strip()
    return json.loads(stripped)


def classify_failure(exc: BaseException) -> str:
    """Map a provider exception onto a :class:`GenerationFailed` kind."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return GenerationFailed.TIMEOUT
    message = str(exc).lower()
    if "rate limit" in message or "429" in message:
        return GenerationFailed.RATE_LIMITED
    if "timeout" in message or "timed out" in message or "etimedout" in message:
        return GenerationFailed.TIMEOUT
    if "policy" in message or "inappropriate" in message:
        return GenerationFailed.CONTENT_POLICY
    return GenerationFailed.FAILED


def assemble_roadmap(topic: str, structure: dict[str, Any]) -> Roadmap:
    """Wrap a generated ``{"nodes", "edges"}`` structure in a new roadmap.

    Raises:
        SchemaError: If the structure does not validate.
    """
    document = {
        "topic": topic,
        "title": f"{topic} Roadmap",
        "nodes": structure.get("nodes"),
        "edges": structure.get("edges"),
    }
    return validate(document, new_id=str(uuid.uuid4()))


_KIND_MESSAGES = {
    GenerationFailed.RATE_LIMITED: "Service temporarily busy. Please try again in a moment.",
    GenerationFailed.TIMEOUT: "Request timed out. Please try again.",
    GenerationFailed.CONTENT_POLICY: (
        "Unable to generate roadmap for this topic. Please try a different topic."
    ),
    GenerationFailed.FAILED: "Failed to generate roadmap. Please try again.",
}


class RoadmapGenerator:
    """Generate validated roadmaps for a topic.

    Args:
        llm: A LangChain chat model (anything with ``ainvoke``).  Defaults
            to the model selected by ``settings.llm_provider``.
        max_retries: Retries after the first attempt.
        base_delay: Seconds before the first retry; doubled each time.
        sleep: Awaitable used between attempts.
    """

    def __init__(
        self,
        llm: Any = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._llm = llm
        self.max_retries = settings.generation_max_retries if max_retries is None else max_retries
        self.base_delay = (
            settings.generation_retry_base_delay if base_delay is None else base_delay
        )
        self._sleep = sleep

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = _get_llm()
        return self._llm

    async def _attempt(self, topic: str) -> dict[str, list[dict[str, Any]]]:
        response = await self.llm.ainvoke(build_prompt(topic))
        raw = response.content if hasattr(response, "content") else str(response)
        parsed = extract_json(raw)
        if not isinstance(parsed, dict):
            raise SchemaError("model reply is not a JSON object")
        roadmap = assemble_roadmap(topic, parsed)
        return {
            "nodes": [n.to_dict() for n in roadmap.nodes],
            "edges": [e.to_dict() for e in roadmap.edges],
        }

    async def generate(self, topic: str) -> dict[str, list[dict[str, Any]]]:
        """Return the validated ``{"nodes", "edges"}`` structure for *topic*.

        A reply that cannot be parsed or validated counts as a failed attempt
        and is retried with exponential backoff.

        Raises:
            InvalidTopic: If the topic is rejected before generation.
            GenerationFailed: When every attempt failed.
        """
        topic = clean_topic(topic)
        last_exc: Optional[BaseException] = None
        for attempt in range(self.max_retries + 1):
            try:
                return await self._attempt(topic)
            except Exception as exc:  # provider SDKs raise arbitrary types
                last_exc = exc
                logger.warning(
                    "Roadmap generation attempt %d/%d for %r failed: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    topic,
                    exc,
                )
                if attempt < self.max_retries:
                    await self._sleep(self.base_delay * 2**attempt)

        assert last_exc is not None
        kind = classify_failure(last_exc)
        raise GenerationFailed(_KIND_MESSAGES[kind], kind=kind) from last_exc

    async def create_roadmap(self, topic: str) -> Roadmap:
        """Validate *topic*, generate and return a brand-new roadmap."""
        topic = clean_topic(topic)
        roadmap = assemble_roadmap(topic, await self.generate(topic))
        logger.info("Generated roadmap %s with %d node(s)", roadmap.id, roadmap.node_count)
        return roadmap
