"""Chat dispatch, quick-action suggestions and insight generation."""
import json

from fastapi import HTTPException

import assistant
from tests.fakes import FakeClient, completion, tool_call


def task(i, status="todo", priority="medium", due_date=None):
    return {"id": f"t{i}", "title": f"Task {i}", "status": status, "priority": priority, "due_date": due_date}


# --- context ---

def test_task_context_empty():
    assert assistant.task_context([]) == "\n\nUser has no tasks yet."


def test_task_context_caps_listing():
    ctx = assistant.task_context([task(i) for i in range(18)])
    assert '"Task 14" (ID: t14, Status: todo, Priority: medium)' in ctx
    assert "Task 15" not in ctx
    assert "... and 3 more tasks" in ctx


def test_build_messages_order():
    msgs = assistant.build_messages("hi", [{"role": "user", "content": "earlier"}], [])
    assert [m["role"] for m in msgs] == ["system", "assistant", "user", "user"]
    assert msgs[1]["content"].startswith("Current user context:")
    assert msgs[-1] == {"role": "user", "content": "hi"}


# --- dispatch loop ---

def test_plain_reply_skips_tools():
    client = FakeClient(completion("Hello there"))
    out = assistant.run_chat(client, "hi", [], [], {})
    assert out == {"message": "Hello there"}
    assert client.calls[0]["tools"] == assistant.TOOLS


def test_tool_call_result_fed_back():
    seen = []

    def create(args):
        seen.append(args)
        return {"success": True, "task": {"id": "t1", "title": args["title"]}}

    client = FakeClient(
        completion(tool_calls=[tool_call("createTask", json.dumps({"title": "Buy milk"}))]),
        completion("Created **Buy milk**."),
    )
    out = assistant.run_chat(client, "add buy milk", [], [], {"createTask": create})

    assert seen == [{"title": "Buy milk"}]
    assert out["message"] == "Created **Buy milk**."
    assert out["functionCalls"] == [{
        "name": "createTask", "args": {"title": "Buy milk"},
        "result": {"success": True, "task": {"id": "t1", "title": "Buy milk"}},
    }]
    follow_up = client.calls[1]["messages"]
    assert follow_up[-2]["tool_calls"][0]["function"]["name"] == "createTask"
    assert follow_up[-1]["role"] == "tool"
    assert follow_up[-1]["tool_call_id"] == "call_1"
    assert json.loads(follow_up[-1]["content"])["success"] is True


def test_handler_http_error_becomes_tool_error():
    def update(args):
        raise HTTPException(status_code=404, detail="Task not found")

    client = FakeClient(
        completion(tool_calls=[tool_call("updateTask", '{"id": "nope"}')]),
        completion("I couldn't find that task."),
    )
    out = assistant.run_chat(client, "finish nope", [], [], {"updateTask": update})
    assert out["functionCalls"][0]["result"] == {"error": "Task not found"}


def test_bad_arguments_ask_to_rephrase():
    called = []
    client = FakeClient(completion(tool_calls=[tool_call("createTask", "{not json")]))
    out = assistant.run_chat(client, "x", [], [], {"createTask": called.append})
    assert out == {"message": assistant.REPHRASE_REPLY}
    assert called == []
    assert len(client.calls) == 1


def test_unknown_tool_runs_nothing():
    called = []
    client = FakeClient(completion(tool_calls=[
        tool_call("createTask", "{}", "a"),
        tool_call("launchRocket", "{}", "b"),
    ]))
    out = assistant.run_chat(client, "x", [], [], {"createTask": called.append})
    assert out == {"message": assistant.UNKNOWN_TOOL_REPLY}
    assert called == []


def test_empty_final_reply_defaults():
    client = FakeClient(
        completion(tool_calls=[tool_call("listTasks", "")]),
        completion(None),
    )
    out = assistant.run_chat(client, "list", [], [], {"listTasks": lambda args: {"tasks": []}})
    assert out["message"] == "Done!"


# --- suggestions ---

def test_suggestions_for_new_user():
    assert assistant.suggested_actions([], "2026-03-01") == ["Create my first task"]


def test_suggestions_overdue_and_high_priority():
    tasks = [task(1, priority="high", due_date="2026-02-01"), task(2, due_date="2026-01-01")]
    assert assistant.suggested_actions(tasks, "2026-03-01") == [
        "Show my high priority tasks",
        "Show my 2 overdue tasks",
    ]


def test_suggestions_ignore_completed_and_fallback():
    tasks = [task(1, status="completed", priority="high", due_date="2020-01-01")]
    assert assistant.suggested_actions(tasks, "2026-03-01") == ["Show all my tasks", "Create a new task"]


def test_suggestions_capped_at_three():
    tasks = [task(i, priority="high", due_date="2020-01-01") for i in range(6)]
    out = assistant.suggested_actions(tasks, "2026-03-01")
    assert out == ["Show my high priority tasks", "Show my 6 overdue tasks", "Help me prioritize my tasks"]


# --- insights ---

def test_split_insights():
    text = "Here you go:\n1. Plan mornings\n2. Batch email\n- Take breaks"
    assert assistant.split_insights(text) == ["Here you go:", "Plan mornings", "Batch email", "Take breaks"]


def test_default_insights_for_busy_user():
    tasks = [task(i, priority="high") for i in range(11)]
    sessions = [{"status": "completed"}]
    out = assistant.default_insights(sessions, tasks)
    assert len(out) == 3
    assert out[0].startswith("💡")
    assert out[1].startswith("🎯")
    assert out[2].startswith("✅")


def test_generate_insights_without_key(monkeypatch):
    monkeypatch.setattr(assistant, "ZAI_API_KEY", "")
    out = assistant.generate_insights(lambda: None, [], [])
    assert out["error"] == "AI insights API key not configured"
    assert out["insights"][0].startswith("🚀")


def test_generate_insights_parses_reply(monkeypatch):
    monkeypatch.setattr(assistant, "ZAI_API_KEY", "key")
    client = FakeClient(completion("1. Start early\n2. Protect focus blocks"))
    out = assistant.generate_insights(lambda: client, [], [task(1)])
    assert out == {"insights": ["1. Start early", "Protect focus blocks"]}
    assert client.calls[0]["model"] == assistant.INSIGHTS_MODEL


def test_generate_insights_failure_falls_back(monkeypatch):
    monkeypatch.setattr(assistant, "ZAI_API_KEY", "key")
    client = FakeClient(RuntimeError("boom"))
    out = assistant.generate_insights(lambda: client, [], [])
    assert out["error"] == "Failed to generate AI insights"
    assert out["insights"]
