"""Focus session lifecycle and dashboard analytics."""
from sqlalchemy import insert

import main


def start(client, auth, **body):
    resp = client.post("/api/sessions", json=body, headers=auth)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_presets(client):
    presets = {p["type"]: p["duration"] for p in client.get("/api/timer/presets").json()}
    assert presets == {"pomodoro": 1500, "short-break": 300, "long-break": 900}


def test_start_uses_preset_duration(client, auth):
    s = start(client, auth)
    assert (s["type"], s["duration"], s["status"]) == ("pomodoro", 1500, "running")
    assert s["endTime"] is None
    assert start(client, auth, type="short-break")["duration"] == 300
    assert start(client, auth, type="long-break", duration=600)["duration"] == 600


def test_start_linked_to_task(client, auth, make_task):
    t = make_task("Deep work")
    s = start(client, auth, taskId=t["id"])
    assert s["taskId"] == t["id"]
    assert s["taskTitle"] == "Deep work"


def test_start_rejects_foreign_task(client, signup, make_task):
    t = make_task()
    other = signup("bob@example.com")
    assert client.post("/api/sessions", json={"taskId": t["id"]}, headers=other).status_code == 404


def test_complete_and_cancel(client, auth):
    s = start(client, auth)
    done = client.post(f"/api/sessions/{s['id']}/complete", json={"endTime": s["startTime"] + 1500}, headers=auth)
    assert done.status_code == 200
    assert done.json()["status"] == "completed"
    assert done.json()["endTime"] == s["startTime"] + 1500

    again = client.post(f"/api/sessions/{s['id']}/cancel", headers=auth)
    assert again.status_code == 400

    s2 = start(client, auth)
    cancelled = client.post(f"/api/sessions/{s2['id']}/cancel", headers=auth).json()
    assert cancelled["status"] == "cancelled"
    assert cancelled["endTime"] is not None


def test_complete_defaults_to_now(client, auth):
    s = start(client, auth)
    done = client.post(f"/api/sessions/{s['id']}/complete", headers=auth).json()
    assert done["endTime"] >= s["startTime"]


def test_complete_rejects_end_before_start(client, auth):
    s = start(client, auth)
    resp = client.post(f"/api/sessions/{s['id']}/complete", json={"endTime": s["startTime"] - 1}, headers=auth)
    assert resp.status_code == 400


def test_unknown_session(client, auth):
    assert client.post("/api/sessions/missing/complete", headers=auth).status_code == 404


def test_list_sessions_with_task_title(client, auth, make_task):
    t = make_task("Reading")
    start(client, auth, taskId=t["id"])
    start(client, auth)
    sessions = client.get("/api/sessions?days=7", headers=auth).json()
    assert len(sessions) == 2
    assert {s["taskTitle"] for s in sessions} == {"Reading", None}


def test_deleting_task_keeps_sessions(client, auth, make_task):
    t = make_task("Temp")
    start(client, auth, taskId=t["id"])
    client.delete(f"/api/tasks/{t['id']}", headers=auth)
    sessions = client.get("/api/sessions", headers=auth).json()
    assert sessions[0]["taskId"] is None


def test_analytics_endpoint(client, auth, make_task):
    make_task("A", status="completed")
    make_task("B")
    s = start(client, auth)
    client.post(f"/api/sessions/{s['id']}/complete", json={"endTime": s["startTime"] + 25 * 60}, headers=auth)
    s2 = start(client, auth)
    client.post(f"/api/sessions/{s2['id']}/cancel", headers=auth)

    data = client.get("/api/analytics?days=30", headers=auth).json()
    assert data["sessionStats"]["total"] == 2
    assert data["sessionStats"]["completed"] == 1
    assert data["sessionStats"]["cancelled"] == 1
    assert data["sessionStats"]["totalMinutes"] == 25
    assert data["taskStats"]["total"] == 2
    assert data["taskStats"]["completed"] == 1
    assert data["summary"]["completionRate"] == 50
    assert sum(d["sessions"] for d in data["dailyData"]) == 2
    assert data["peakHours"][0]["count"] == 1


def test_analytics_days_bounds(client, auth):
    assert client.get("/api/analytics?days=0", headers=auth).status_code == 422


def insert_old_session(auth_headers, client, days_ago):
    uid = client.get("/api/auth/me", headers=auth_headers).json()["id"]
    start_time = main.now_ts() - days_ago * 86400
    with main.engine.begin() as conn:
        conn.execute(insert(main.focus_sessions).values(
            id=f"old-{days_ago}", user_id=uid, task_id=None, type="pomodoro", duration=1500,
            status="completed", start_time=start_time, end_time=start_time + 1500, created_at=start_time,
        ))


def test_days_window_excludes_older_sessions(client, auth):
    insert_old_session(auth, client, days_ago=40)
    start(client, auth)

    assert len(client.get("/api/sessions?days=30", headers=auth).json()) == 1
    assert len(client.get("/api/sessions?days=60", headers=auth).json()) == 2

    recent = client.get("/api/analytics?days=30", headers=auth).json()
    assert recent["sessionStats"]["total"] == 1
    assert recent["sessionStats"]["totalMinutes"] == 0
    wide = client.get("/api/analytics?days=60", headers=auth).json()
    assert wide["sessionStats"]["total"] == 2
    assert wide["sessionStats"]["totalMinutes"] == 25
