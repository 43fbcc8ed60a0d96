from typing import Any

from lifelog_agent.memory.entity_store import LEDGER_KINDS, LedgerStore
from lifelog_agent.tool import ToolContext


def format_amount(amount: float) -> str:
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


class RecordTransactionTool:
    def __init__(self, ledger: LedgerStore):
        self._ledger = ledger

    @property
    def name(self) -> str:
        return "record_transaction"

    @property
    def description(self) -> str:
        return (
            "Use this tool to record an expense or income. Extract amount, category, "
            "kind (EXPENSE or INCOME), and an optional description."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "amount": {
                    "type": "number",
                    "description": "The amount of money",
                },
                "category": {
                    "type": "string",
                    "minLength": 1,
                    "pattern": r"\S",
                    "description": "The category of the transaction (e.g., Food, Transport, Shopping)",
                },
                "kind": {
                    "type": "string",
                    "enum": list(LEDGER_KINDS),
                    "description": "Whether it is an expense or income",
                },
                "description": {
                    "type": "string",
                    "description": "Brief description of the transaction",
                },
            },
            "required": ["amount", "category", "kind"],
            "additionalProperties": False,
        }

    @property
    def is_mutating(self) -> bool:
        return True

    async def execute(self, tool_input: dict[str, Any], context: ToolContext) -> str:
        entry = self._ledger.create_ledger_entry(
            owner_id=context.owner_id,
            amount=tool_input["amount"],
            category=tool_input["category"].strip(),
            kind=tool_input["kind"],
            description=tool_input.get("description"),
            source_message_id=context.source_message_id,
        )
        return (
            f"Recorded {entry.kind} of {format_amount(entry.amount)} for {entry.category}. "
            f"ID: {entry.id}"
        )
