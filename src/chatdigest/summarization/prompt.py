"""Conversation formatting and the report prompt."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from chatdigest.messaging.models import Message
from chatdigest.messaging.people import PersonDirectory

POST_LINK_TEMPLATE = "https://app.ringcentral.com/l/messages/{chat_id}/{message_id}"


@dataclass(frozen=True)
class Conversation:
    """In-window messages from one chat group, oldest first."""

    group_name: str
    chat_id: str
    messages: tuple[Message, ...]


def format_post_time(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).strftime("%m/%d/%Y @ %I:%M %p UTC")


def post_link(chat_id: str, message_id: str) -> str:
    return POST_LINK_TEMPLATE.format(chat_id=chat_id, message_id=message_id)


async def format_conversation(conversation: Conversation, people: PersonDirectory) -> str:
    """Render one conversation block; messages without text are skipped."""
    lines = [f"--- START OF CONVERSATION FROM GROUP: {conversation.group_name} ---"]
    for message in conversation.messages:
        if not message.text:
            continue
        author = await people.name_for(message.author_id)
        lines.append(
            f"[{author} at {format_post_time(message.created_at)}]: {message.text} "
            f"(Link: {post_link(conversation.chat_id, message.id)})"
        )
    lines.append(f"--- END OF CONVERSATION FROM GROUP: {conversation.group_name} ---")
    return "\n".join(lines)


async def format_conversations(conversations: Sequence[Conversation], people: PersonDirectory) -> str:
    blocks = [await format_conversation(c, people) for c in conversations]
    return "\n\n".join(blocks)


def build_report_prompt(conversation_text: str) -> str:
    """
    Build the manager-facing report prompt around formatted chat logs.

    Args:
        conversation_text: Output of :func:`format_conversations`

    Returns:
        Prompt asking for a pure-markdown summary and detailed breakdown
    """
    return f"""You are an expert analyst summarizing team chat conversations for a manager. Your goal is to create a clean, scannable Markdown report suitable for copying into Confluence.
Analyze the following chat logs.

Generate a detailed report in **pure Markdown format**.

First, create a high-level summary section:
## Daily Case/Issue Summary
* Identify all unique cases or incidents (e.g., INC-44958, SE Case 28743083) mentioned.
* For each, provide a concise, one-sentence summary of the updates that occurred ONLY within the provided time period.

---

Second, create a detailed breakdown section:
## Detailed Analysis
*For each distinct topic or incident, create a sub-section.*
### [Topic or Incident Title]
* **Summary:** A concise paragraph summarizing the key points, discussions, and outcomes for this topic.
* **Timeline & Key Posts:**
    * **[Date @ Time Timezone] by [Author]:** [Summary of the post's content]. ([View Post](link))

Ensure there is a clear line separator (---) between the high-level summary and the detailed breakdown.

Here are the chat logs:
{conversation_text}
"""
