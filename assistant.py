"""AI features: the task chat assistant, productivity insights and quick actions.

Both LLM backends speak the OpenAI chat-completions API, so one client
library covers them; only base URL, key and model differ.
"""
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Callable, Dict, List, Mapping, Sequence

from fastapi import HTTPException
from openai import OpenAI
from pydantic import ValidationError

logger = logging.getLogger(__name__)

GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.3-70b-versatile")

ZAI_API_KEY = os.getenv("ZAI_API_KEY", "")
ZAI_BASE_URL = os.getenv("ZAI_BASE_URL", "https://open.bigmodel.cn/api/paas/v4/")
INSIGHTS_MODEL = os.getenv("INSIGHTS_MODEL", "glm-4-flash")

CONTEXT_TASK_LIMIT = 15

REPHRASE_REPLY = "I had trouble understanding that request. Could you rephrase it?"
UNKNOWN_TOOL_REPLY = "I'm not sure how to help with that request."
DEFAULT_FINAL_REPLY = "Done!"

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]


def chat_client() -> OpenAI:
    return OpenAI(api_key=GROQ_API_KEY, base_url=GROQ_BASE_URL)


def insights_client() -> OpenAI:
    return OpenAI(api_key=ZAI_API_KEY, base_url=ZAI_BASE_URL)


# --- Chat ---

_MARKDOWN_NOTE = (
    "IMPORTANT: Preserve all markdown formatting including bullet points (-), lists, headers (#), etc."
)

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "createTask",
            "description": "Create a new task with a title, optional description, priority level, and due date",
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "The title/name of the task"},
                    "description": {
                        "type": "string",
                        "description": "Optional detailed description of the task. " + _MARKDOWN_NOTE
                        + " Copy the description exactly as provided by the user without converting to plain text.",
                    },
                    "priority": {"type": "string", "enum": ["low", "medium", "high"], "description": "Priority level of the task"},
                    "dueDate": {"type": "string", "description": "Due date in ISO 8601 format (e.g., 2024-12-31)"},
                },
                "required": ["title"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "updateTask",
            "description": "Update an existing task's properties",
            "parameters": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "The ID of the task to update"},
                    "title": {"type": "string", "description": "New title for the task"},
                    "description": {"type": "string", "description": "New description for the task. " + _MARKDOWN_NOTE},
                    "status": {"type": "string", "enum": ["todo", "in-progress", "completed"], "description": "New status for the task"},
                    "priority": {"type": "string", "enum": ["low", "medium", "high"], "description": "New priority level for the task"},
                    "dueDate": {"type": "string", "description": "New due date in ISO 8601 format"},
                },
                "required": ["id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "deleteTask",
            "description": "Delete a task by its ID",
            "parameters": {
                "type": "object",
                "properties": {"id": {"type": "string", "description": "The ID of the task to delete"}},
                "required": ["id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "listTasks",
            "description": "Get all tasks for the current user",
            "parameters": {"type": "object", "properties": {}},
        },
    },
]

SYSTEM_PROMPT = """You are a helpful task management assistant for FocusFlow. You can help users:
- Create tasks with title, description, priority, and due dates
- Update existing tasks (change status, priority, title, description, due dates)
- Delete tasks
- List and organize tasks

When users ask for help, extract the task details and call the appropriate function.
Be conversational and friendly. For destructive operations like deleting, confirm the action by showing what will be deleted.

Task identification for updates and deletes:
- Users refer to tasks by TITLE, not by ID
- Requests such as "change task X", "update task X", "for task X, add/set ...", "mark task X as completed" modify an EXISTING task
- Never call createTask when the user wants to modify an existing task
- Find the task whose title matches in the task list you were given and pass its full ID to updateTask or deleteTask

Requests such as "create a new task", "add a task", "remind me to ..." (with no existing task mentioned) create a task.

Descriptions:
- Keep markdown exactly as the user wrote it, including "-" bullet lists and headers
- Do not add formatting or explanations inside the description

Guidelines:
- Keep responses concise and helpful
- When creating tasks, confirm what was created
- When updating tasks, mention what changed
- When listing tasks, format them clearly with status and priority
- If a user references "that task" or similar, ask which task they mean
- Be proactive in suggesting relevant actions"""


def task_context(tasks: Sequence[Mapping[str, Any]], limit: int = CONTEXT_TASK_LIMIT) -> str:
    if not tasks:
        return "\n\nUser has no tasks yet."
    lines = [
        f'• "{t["title"]}" (ID: {t["id"]}, Status: {t["status"]}, Priority: {t["priority"]})'
        for t in tasks[:limit]
    ]
    more = f"\n... and {len(tasks) - limit} more tasks" if len(tasks) > limit else ""
    return (
        "\n\n===== USER'S EXISTING TASKS =====\n" + "\n".join(lines) + more
        + "\n\nIMPORTANT: When updating a task, find the task by its TITLE in the list above, "
        "then use its ID (the long string after \"ID:\")."
    )


def build_messages(message: str, history: Sequence[Mapping[str, str]], tasks: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    msgs: List[Dict[str, Any]] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "assistant", "content": "Current user context:" + task_context(tasks)},
    ]
    msgs.extend({"role": h["role"], "content": h["content"]} for h in history)
    msgs.append({"role": "user", "content": message})
    return msgs


def call_tool(handler: Handler, args: Dict[str, Any]) -> Dict[str, Any]:
    """Run one task operation; failures come back as ``{"error": ...}``."""
    try:
        return handler(args)
    except HTTPException as e:
        return {"error": e.detail}
    except ValidationError:
        return {"error": "Invalid input"}


def run_chat(client: OpenAI, message: str, history: Sequence[Mapping[str, str]],
             tasks: Sequence[Mapping[str, Any]], handlers: Mapping[str, Handler]) -> Dict[str, Any]:
    messages = build_messages(message, history, tasks)
    response = client.chat.completions.create(
        model=CHAT_MODEL, messages=messages, tools=TOOLS, tool_choice="auto",
        temperature=0.3, max_tokens=1024,
    )
    reply = response.choices[0].message
    tool_calls = reply.tool_calls or []
    if not tool_calls:
        return {"message": reply.content or ""}

    # Validate every call before running any of them.
    planned = []
    for tc in tool_calls:
        try:
            args = json.loads(tc.function.arguments or "{}")
        except ValueError:
            return {"message": REPHRASE_REPLY}
        if not isinstance(args, dict):
            return {"message": REPHRASE_REPLY}
        if tc.function.name not in handlers:
            logger.warning("model requested unknown tool %r", tc.function.name)
            return {"message": UNKNOWN_TOOL_REPLY}
        planned.append((tc, args))

    follow_up = messages + [{
        "role": "assistant",
        "content": reply.content,
        "tool_calls": [
            {"id": tc.id, "type": "function", "function": {"name": tc.function.name, "arguments": tc.function.arguments}}
            for tc in tool_calls
        ],
    }]
    calls = []
    for tc, args in planned:
        name = tc.function.name
        result = call_tool(handlers[name], args)
        logger.info("chat tool %s -> %s", name, "error" if "error" in result else "ok")
        follow_up.append({"role": "tool", "tool_call_id": tc.id, "content": json.dumps(result, ensure_ascii=False)})
        calls.append({"name": name, "args": args, "result": result})

    final = client.chat.completions.create(model=CHAT_MODEL, messages=follow_up, temperature=0.3, max_tokens=1024)
    text = final.choices[0].message.content if final.choices else None
    return {"message": text or DEFAULT_FINAL_REPLY, "functionCalls": calls}


def suggested_actions(tasks: Sequence[Mapping[str, Any]], today: str) -> List[str]:
    """Up to three quick prompts for the chat widget."""
    open_tasks = [t for t in tasks if t["status"] != "completed"]
    out: List[str] = []
    if any(t["priority"] == "high" for t in open_tasks):
        out.append("Show my high priority tasks")
    overdue = [t for t in open_tasks if t.get("due_date") and t["due_date"] < today]
    if overdue:
        out.append(f"Show my {len(overdue)} overdue task{'s' if len(overdue) > 1 else ''}")
    if len(open_tasks) > 5:
        out.append("Help me prioritize my tasks")
    if not tasks:
        out.append("Create my first task")
    if not out:
        out.extend(["Show all my tasks", "Create a new task"])
    return out[:3]


# --- Insights ---

_BULLET_SPLIT = re.compile(r"\n\d+\.|\n-|\n\*")


def default_insights(sessions: Sequence[Mapping[str, Any]], tasks: Sequence[Mapping[str, Any]]) -> List[str]:
    out = []
    pending = [t for t in tasks if t["status"] != "completed"]
    if len(pending) > 10:
        out.append("💡 Consider breaking down large tasks into smaller, manageable chunks to reduce overwhelm.")
    if len([t for t in pending if t["priority"] == "high"]) > 3:
        out.append("🎯 Focus on completing high-priority tasks first. Consider using the Eisenhower Matrix.")
    if any(s["status"] == "completed" for s in sessions):
        out.append("✅ Great job staying consistent! Try to maintain your current work schedule.")
    else:
        out.append("🚀 Start with short 25-minute Pomodoro sessions to build momentum.")
    if not tasks:
        out.append("📝 Create your first task to get started with tracking your productivity!")
    return out


def split_insights(text: str, limit: int = 5) -> List[str]:
    parts = [p.strip() for p in _BULLET_SPLIT.split(text)]
    return [p for p in parts if p][:limit]


def insights_prompt(sessions: Sequence[Mapping[str, Any]], tasks: Sequence[Mapping[str, Any]]) -> str:
    done = [s for s in sessions if s["status"] == "completed"]
    focus = sum(max(0, (s["end_time"] - s["start_time"]) // 60) for s in done if s.get("end_time") is not None)
    recent = [{"type": s["type"], "duration": s["duration"], "startTime": s["start_time"]} for s in done[:5]]
    pending = [{"title": t["title"], "priority": t["priority"], "status": t["status"]}
               for t in tasks if t["status"] != "completed"][:5]

    def n(status: str) -> int:
        return sum(1 for t in tasks if t["status"] == status)

    return (
        "Based on the following data:\n"
        f"- Total focus sessions: {len(sessions)}\n"
        f"- Completed sessions: {len(done)}\n"
        f"- Total focus time: {focus // 60} hours {focus % 60} minutes\n"
        f"- Total tasks: {len(tasks)}\n"
        f"- Completed tasks: {n('completed')}\n"
        f"- Tasks in progress: {n('in-progress')}\n"
        f"- Tasks pending: {n('todo')}\n\n"
        f"Recent sessions: {json.dumps(recent)}\n\n"
        f"Pending tasks: {json.dumps(pending, ensure_ascii=False)}\n\n"
        "Provide 3-5 specific, actionable recommendations to improve productivity."
    )


def generate_insights(client_factory: Callable[[], OpenAI], sessions: Sequence[Mapping[str, Any]],
                      tasks: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    if not ZAI_API_KEY:
        return {"error": "AI insights API key not configured", "insights": default_insights(sessions, tasks)}
    try:
        response = client_factory().chat.completions.create(
            model=INSIGHTS_MODEL,
            messages=[
                {"role": "system", "content": (
                    "You are a productivity coach. Analyze the user's work patterns and provide 3-5 specific, "
                    "actionable recommendations to improve productivity. Keep each recommendation concise "
                    "(1-2 sentences) and practical.")},
                {"role": "user", "content": insights_prompt(sessions, tasks)},
            ],
            max_tokens=500,
            temperature=0.7,
        )
    except Exception:
        logger.exception("insights request failed")
        return {"error": "Failed to generate AI insights", "insights": default_insights(sessions, tasks)}

    text = (response.choices[0].message.content if response.choices else None) or ""
    bullets = split_insights(text)
    return {"insights": bullets or default_insights(sessions, tasks)}
