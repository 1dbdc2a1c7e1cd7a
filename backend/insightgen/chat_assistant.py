"""
Conversational Q&A over one analysis.

ChatSession is a two-state machine (idle / waiting-for-reply). Each question
is answered from a fixed subset of the analysis plus the question itself;
earlier turns are not sent to the LLM.
"""

import json
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from insightgen.insight_models import ChatRole
from insightgen.llm_service import LLMClient, LLMServiceError

logger = logging.getLogger(__name__)

GREETING = (
    "Hi! I'm your AI analyst. Ask me anything about this data — trends, "
    "recommendations, or specific metrics."
)
FAILURE_REPLY = "I apologize, but I encountered an error. Please try asking your question again."

CONTEXT_FIELDS = ("title", "data_type", "summary", "key_insights", "recommendations", "anomalies", "metrics")


class ChatState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting-for-reply"


@dataclass
class ChatMessage:
    role: str
    content: str


def is_submit_keystroke(key: str, shift: bool = False) -> bool:
    """Enter submits; Shift+Enter does not."""
    return key == "Enter" and not shift


def build_chat_prompt(analysis: dict, question: str) -> str:
    context = {field: analysis.get(field) for field in CONTEXT_FIELDS}
    return f"""You are an expert business analyst assistant helping a user understand their data analysis.

ANALYSIS CONTEXT:
{json.dumps(context, indent=2)}

USER QUESTION: {question}

Provide a helpful, concise, and actionable response. Be conversational but professional. If the question relates to specific insights or recommendations from the analysis, reference them directly. If asked about trends or patterns, provide data-driven explanations."""


class ChatSession:
    def __init__(self, analysis: dict, llm: LLMClient, session_id: Optional[str] = None):
        self.id = session_id or uuid4().hex
        self.analysis = analysis
        self.llm = llm
        self.state = ChatState.IDLE
        self.messages: List[ChatMessage] = [ChatMessage(ChatRole.ASSISTANT.value, GREETING)]

    async def submit(self, text: Optional[str]) -> bool:
        """
        Ask one question. Returns False (and changes nothing) when the input
        is blank or a reply is still pending.
        """
        question = (text or "").strip()
        if not question or self.state is ChatState.WAITING:
            return False

        self.messages.append(ChatMessage(ChatRole.USER.value, question))
        self.state = ChatState.WAITING
        try:
            reply = await self.llm.ainvoke(build_chat_prompt(self.analysis, question))
        except LLMServiceError as e:
            logger.error(f"Chat reply failed for analysis {self.analysis.get('id')}: {e}")
            reply = FAILURE_REPLY
        finally:
            self.state = ChatState.IDLE
        self.messages.append(ChatMessage(ChatRole.ASSISTANT.value, str(reply)))
        return True

    def to_dict(self) -> dict:
        return {
            "session_id": self.id,
            "analysis_id": str(self.analysis.get("id")),
            "state": self.state.value,
            "messages": [asdict(m) for m in self.messages],
        }
