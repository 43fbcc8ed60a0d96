from typing import Any

from lifelog_agent.memory.entity_store import MAX_MOOD_SCORE, MIN_MOOD_SCORE, JournalStore
from lifelog_agent.tool import ToolContext


class RecordJournalTool:
    def __init__(self, journal: JournalStore):
        self._journal = journal

    @property
    def name(self) -> str:
        return "record_journal"

    @property
    def description(self) -> str:
        return (
            "Use this tool to record a journal entry or daily thoughts. Extract the content, "
            f"mood score ({MIN_MOOD_SCORE}-{MAX_MOOD_SCORE}), and suggested tags."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "minLength": 1,
                    "pattern": r"\S",
                    "description": "The main content of the journal entry",
                },
                "moodScore": {
                    "type": "integer",
                    "minimum": MIN_MOOD_SCORE,
                    "maximum": MAX_MOOD_SCORE,
                    "description": f"Emotional score from {MIN_MOOD_SCORE} to {MAX_MOOD_SCORE}",
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "List of relevant tags (may be empty)",
                },
            },
            "required": ["content", "moodScore", "tags"],
            "additionalProperties": False,
        }

    @property
    def is_mutating(self) -> bool:
        return True

    async def execute(self, tool_input: dict[str, Any], context: ToolContext) -> str:
        entry = self._journal.create_journal_entry(
            owner_id=context.owner_id,
            content=tool_input["content"],
            mood_score=int(tool_input["moodScore"]),
            tags=tool_input["tags"],
            source_message_id=context.source_message_id,
        )
        return f"Saved journal entry with mood score {entry.mood_score}. ID: {entry.id}"
