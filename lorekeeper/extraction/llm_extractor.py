"""LLM-powered entity and relationship extraction.

This module provides a provider-agnostic interface over the Anthropic and OpenAI
chat APIs. System prompts are rendered from YAML templates (one per
aggressiveness level, overridable per campaign) and each reply is parsed into a
``ChunkExtraction``. A reply that cannot be parsed degrades to an empty
extraction; provider failures propagate so the orchestrator can isolate them.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import yaml
from loguru import logger

from lorekeeper.extraction.models import ChunkExtraction, EntityMention, RelationshipMention
from lorekeeper.utils.config import Aggressiveness, LLMConfig, PromptsConfig
from lorekeeper.utils.llm_client import create_anthropic_client, create_openai_client

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class LLMExtractor:
    """Extract a ``ChunkExtraction`` from one chunk of text with a single model call.

    Instances are callable with ``(chunk_text, chunk_index, total_chunks)`` so they
    can be handed straight to :class:`ExtractionOrchestrator`.
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        prompts_path: str | Path = "config/extraction_prompts.yaml",
        *,
        aggressiveness: Aggressiveness = "obsessive",
        language: str = "en",
        custom_prompts: Optional[PromptsConfig] = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.config = config or LLMConfig()
        self.prompts_path = Path(prompts_path)
        self.prompts = self._load_prompts(self.prompts_path)
        self.aggressiveness = aggressiveness
        self.language = language
        self.custom_prompts = custom_prompts or PromptsConfig()
        self._sleep = sleep_fn or asyncio.sleep
        self._client: Any = None

        logger.info(
            "Initialized LLMExtractor",
            provider=self.config.provider,
            model=self.config.model,
            aggressiveness=aggressiveness,
            language=language,
        )

    async def __call__(
        self, chunk_text: str, chunk_index: int = 0, total_chunks: int = 1
    ) -> ChunkExtraction:
        return await self.extract_chunk(
            chunk_text, chunk_index=chunk_index, total_chunks=total_chunks
        )

    # -----------------------
    # Public API
    # -----------------------
    async def extract_chunk(
        self, chunk_text: str, *, chunk_index: int = 0, total_chunks: int = 1
    ) -> ChunkExtraction:
        """Extract entities and relationships from a chunk using the configured provider."""
        logger.info(
            "Processing chunk {}/{} ({} chars, lang: {}, mode: {})",
            chunk_index + 1,
            total_chunks,
            len(chunk_text),
            self.language,
            self.aggressiveness,
        )
        raw_response = await self._call_llm(system=self.system_prompt(), user=chunk_text)
        extraction = self.parse_response(raw_response, chunk_index=chunk_index)
        logger.info(
            "Chunk {}: {} entities, {} relationships",
            chunk_index + 1,
            len(extraction.entities),
            len(extraction.relationships),
        )
        return extraction

    # -----------------------
    # Prompt handling
    # -----------------------
    def _load_prompts(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Extraction prompt template not found: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Prompt template root must be a mapping/dict: {path}")
        return data

    def system_prompt(self) -> str:
        """Base prompt for the aggressiveness level + language instruction + type guide."""
        override = getattr(self.custom_prompts, f"extraction_{self.aggressiveness}_prompt", None)
        if override:
            base = override.strip()
        else:
            if self.aggressiveness not in self.prompts:
                raise KeyError(f"Prompt key not found in template: {self.aggressiveness}")
            base = str((self.prompts.get(self.aggressiveness) or {}).get("system", "")).strip()

        entity_types = self.prompts.get("entity_types", "")
        return f"{base}\n{self.language_instruction()}\n\n{entity_types}".rstrip()

    def language_instruction(self) -> str:
        if self.language == "en":
            return ""
        template = str(self.prompts.get("language_instruction", ""))
        return template.format(language_name=self.language_name(self.language))

    def language_name(self, code: str) -> str:
        languages = self.prompts.get("languages") or {}
        return str(languages.get(code, code))

    # -----------------------
    # LLM invocation
    # -----------------------
    async def _call_llm(self, *, system: str, user: str) -> str:
        attempts = max(1, self.config.retry_attempts)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                if self.config.provider == "anthropic":
                    return await self._call_anthropic(system=system, user=user)
                if self.config.provider == "openai":
                    return await self._call_openai(system=system, user=user)
                raise ValueError(f"Unsupported LLM provider: {self.config.provider}")
            except (ValueError, asyncio.CancelledError):
                raise
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "LLM request failed",
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )
                if attempt >= attempts:
                    break
                await self._sleep(min(2 ** (attempt - 1), 8))

        if last_error:
            raise last_error
        raise RuntimeError("LLM request failed for unknown reasons")

    async def _call_anthropic(self, *, system: str, user: str) -> str:
        if self._client is None:
            self._client = create_anthropic_client(
                base_url=self.config.base_url, timeout=self.config.timeout
            )
        message = await self._client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        for block in message.content:
            if getattr(block, "type", None) == "text":
                return str(getattr(block, "text", ""))
        return ""

    async def _call_openai(self, *, system: str, user: str) -> str:
        if self._client is None:
            self._client = create_openai_client(
                base_url=self.config.base_url, timeout=self.config.timeout
            )
        response = await self._client.chat.completions.create(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return str(response.choices[0].message.content or "")

    # -----------------------
    # Parsing helpers
    # -----------------------
    def parse_response(self, response_text: str, *, chunk_index: int = 0) -> ChunkExtraction:
        """Parse a model reply; anything unusable yields an empty extraction."""
        data = self._extract_json(response_text)
        if not isinstance(data, dict):
            logger.warning("Failed to parse LLM response as JSON", chunk_index=chunk_index + 1)
            return ChunkExtraction.empty()

        entities: List[EntityMention] = []
        for item in data.get("entities") or []:
            if not isinstance(item, dict):
                continue
            name = str(item.get("name") or "").strip()
            ent_type = str(item.get("type") or "").strip()
            if not name or not ent_type:
                continue
            entities.append(
                EntityMention(
                    name=name,
                    type=ent_type,
                    aliases=item.get("aliases"),
                    description=str(item.get("description") or "").strip(),
                    confidence=item.get("confidence"),
                )
            )

        relationships: List[RelationshipMention] = []
        for item in data.get("relationships") or []:
            if not isinstance(item, dict):
                continue
            source = str(item.get("sourceEntity") or item.get("source_entity") or "").strip()
            target = str(item.get("targetEntity") or item.get("target_entity") or "").strip()
            if not source or not target:
                continue
            rel_type = str(
                item.get("relationshipType") or item.get("relationship_type") or "related_to"
            ).strip()
            reverse = item.get("reverseLabel") or item.get("reverse_label")
            relationships.append(
                RelationshipMention(
                    source_entity=source,
                    target_entity=target,
                    relationship_type=rel_type,
                    reverse_label=str(reverse).strip() if reverse else None,
                    excerpt=str(item.get("excerpt") or ""),
                )
            )

        return ChunkExtraction(entities=entities, relationships=relationships)

    def _extract_json(self, text: str) -> Any:
        if not text:
            return None

        candidate = text.strip()
        block = _CODE_BLOCK.search(candidate)
        if block:
            candidate = block.group(1).strip()
        else:
            obj = _JSON_OBJECT.search(candidate)
            if obj:
                candidate = obj.group(0)

        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            return None
