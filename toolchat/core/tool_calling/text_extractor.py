"""
Text-based Tool Call Extractor

Cascading parser that finds tool invocations embedded in LLM completion text.
Models are told to answer with a bare `{"tool_name": ..., "arguments": {...}}`
object, but in practice they wrap it in code fences, surround it with prose
or append commentary.

Tiers, most to least structured:
1. JSON code block:   ```json {"tool_name": ...} ```
2. Standalone line:   a single line holding the whole object
3. Plain code block:  ``` {"tool_name": ...} ```
4. Outer braces:      everything from the first `{` to the last `}`

The first tier that yields at least one valid call wins; later tiers are skipped.
"""

import re
import json
import logging
from typing import Any, Callable, List, Optional
from dataclasses import dataclass, field

from .base import ToolCall, ToolCallSource

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Outcome of an extraction attempt"""
    success: bool
    tool_calls: List[ToolCall] = field(default_factory=list)
    pattern_used: Optional[str] = None


class ToolCallExtractor:
    """
    Tiered extractor for tool calls in completion text

    Usage:
        extractor = ToolCallExtractor()
        calls = extractor.extract(llm_response_text)
        for call in calls:
            result = await executor.execute(call.name, call.arguments)
    """

    # Fenced blocks, in priority order
    PATTERNS = {
        "json_codeblock": re.compile(r'```json\s*(\{[\s\S]*?\})\s*```', re.IGNORECASE),
        "plain_codeblock": re.compile(r'```\s*(\{[\s\S]*?\})\s*```'),
    }

    MARKER = "tool_name"

    def __init__(self):
        self._tiers: List[tuple[str, Callable[[str], List[ToolCall]]]] = [
            ("json_codeblock", self._from_json_codeblocks),
            ("standalone_line", self._from_standalone_lines),
            ("plain_codeblock", self._from_plain_codeblocks),
            ("outer_braces", self._from_outer_braces),
        ]

    def extract(self, text: str) -> List[ToolCall]:
        """
        Extract tool calls from text

        Args:
            text: completion text

        Returns:
            List of ToolCall (empty when nothing valid was found)
        """
        return self.extract_with_details(text).tool_calls

    def extract_with_details(self, text: str) -> ExtractionResult:
        """
        Extract tool calls and report which tier matched

        Returns:
            ExtractionResult
        """
        if not text or "{" not in text:
            return ExtractionResult(success=False)

        for tier_name, tier in self._tiers:
            calls = tier(text)
            if calls:
                logger.debug(f"Extracted {len(calls)} tool calls using tier '{tier_name}'")
                return ExtractionResult(success=True, tool_calls=calls, pattern_used=tier_name)

        logger.debug("No tool calls found in text")
        return ExtractionResult(success=False)

    # ===== Tiers =====

    def _from_json_codeblocks(self, text: str) -> List[ToolCall]:
        return self._parse_candidates(self.PATTERNS["json_codeblock"].findall(text))

    def _from_standalone_lines(self, text: str) -> List[ToolCall]:
        candidates = []
        for line in text.split("\n"):
            trimmed = line.strip()
            if trimmed.startswith("{") and trimmed.endswith("}") and self.MARKER in trimmed:
                candidates.append(trimmed)
        return self._parse_candidates(candidates)

    def _from_plain_codeblocks(self, text: str) -> List[ToolCall]:
        return self._parse_candidates(self.PATTERNS["plain_codeblock"].findall(text))

    def _from_outer_braces(self, text: str) -> List[ToolCall]:
        first_open = text.find("{")
        last_close = text.rfind("}")
        if first_open == -1 or last_close <= first_open:
            return []

        span = text[first_open:last_close + 1]
        # Prose with incidental braces must not reach the parser
        if self.MARKER not in span:
            return []

        return self._parse_candidates([span])

    # ===== Parsing =====

    def _parse_candidates(self, candidates: List[str]) -> List[ToolCall]:
        calls = []
        for candidate in candidates:
            call = self._parse_candidate(candidate)
            if call:
                calls.append(call)
        return calls

    def _parse_candidate(self, json_str: str) -> Optional[ToolCall]:
        """Parse one candidate; malformed JSON is not an error, just not a call"""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping malformed tool call candidate ({e}): {json_str[:100]}")
            return None

        return self._to_tool_call(data, json_str)

    def _to_tool_call(self, data: Any, raw: str) -> Optional[ToolCall]:
        if not isinstance(data, dict):
            return None

        tool_name = data.get("tool_name")
        arguments = data.get("arguments")

        # Both fields are required; partial matches are discarded
        if not isinstance(tool_name, str) or not tool_name.strip():
            return None
        if not isinstance(arguments, dict):
            return None

        return ToolCall(
            name=tool_name.strip(),
            arguments=arguments,
            source=ToolCallSource.TEXT_PARSED,
            raw_text=raw[:200]
        )


# Shared instance for convenience
default_extractor = ToolCallExtractor()


def extract_tool_calls(text: str) -> List[ToolCall]:
    """
    Convenience wrapper around the shared extractor

    Args:
        text: completion text

    Returns:
        List of ToolCall
    """
    return default_extractor.extract(text)
