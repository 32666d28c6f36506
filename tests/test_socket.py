from conftest import schedule_ids


def _join_page(ws, project_id, day):
    ws.send_json({"event": "join-comment-page", "data": {"projectId": project_id, "date": day}})
    return ws.receive_json()


def test_comment_written_over_http_reaches_page_viewer(client, project_id):
    client.post(f"/api/comments/{project_id}/pages", json={"comment_date": "2024-05-01"})
    with client.websocket_connect("/ws") as viewer:
        joined = _join_page(viewer, project_id, "2024-05-01")
        assert joined == {"event": "joined", "data": {"room": f"project-{project_id}-2024-05-01"}}

        r = client.post("/api/comments", json={
            "project_id": project_id, "owner": "Design", "body": "Panels done", "comment_date": "2024-05-01",
        })
        assert r.status_code == 200

        msg = viewer.receive_json()
        assert msg["event"] == "comments-updated"
        assert msg["data"]["date"] == "2024-05-01"
        assert [(c["owner"], c["body"]) for c in msg["data"]["comments"]] == [("Design", "Panels done")]


def test_auto_created_page_is_announced(client, project_id):
    with client.websocket_connect("/ws") as viewer:
        _join_page(viewer, project_id, "2024-05-02")
        client.post("/api/comments", json={
            "project_id": project_id, "owner": "Planning", "body": "On track", "comment_date": "2024-05-02",
        })
        first, second = viewer.receive_json(), viewer.receive_json()
    assert first == {"event": "comment-page-created",
                     "data": {"projectId": project_id, "comment_date": "2024-05-02"}}
    assert second["event"] == "comments-updated"


def test_schedule_edit_over_socket(client, project_id):
    sid = schedule_ids(project_id)[1]
    with client.websocket_connect("/ws") as editor, client.websocket_connect("/ws") as watcher:
        for ws in (editor, watcher):
            ws.send_json({"event": "join-project", "data": project_id})
            assert ws.receive_json() == {"event": "joined", "data": {"room": f"project-{project_id}"}}

        editor.send_json({"event": "update-schedule", "data": {"id": sid, "owner": "Ito"}})
        for ws in (editor, watcher):
            msg = ws.receive_json()
            assert msg["event"] == "schedules-updated"
            assert next(r for r in msg["data"] if r["id"] == sid)["owner"] == "Ito"


def test_invalid_socket_update_reports_error(client, project_id):
    sid = schedule_ids(project_id)[1]
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "join-project", "data": {"projectId": project_id}})
        ws.receive_json()
        ws.send_json({"event": "update-schedule", "data": {"id": sid, "duration": -1}})
        msg = ws.receive_json()
    assert msg["event"] == "error"
    assert "duration" in msg["data"]["message"]


def test_unknown_and_malformed_frames(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"event": "error", "data": {"message": "Malformed message"}}
        ws.send_json({"event": "dance"})
        assert ws.receive_json() == {"event": "error", "data": {"message": "Unknown event: dance"}}
        ws.send_json({"event": "join-project", "data": {}})
        assert ws.receive_json()["data"]["message"] == "Project ID is required"


def test_refresh_comments_uses_current_page(client, project_id):
    client.post("/api/comments", json={
        "project_id": project_id, "owner": "Design", "body": "x", "comment_date": "2024-05-03",
    })
    with client.websocket_connect("/ws") as ws:
        _join_page(ws, project_id, "2024-05-03")
        ws.send_json({"event": "refresh-comments"})
        msg = ws.receive_json()
    assert msg["event"] == "comments-updated"
    assert msg["data"]["comments"][0]["body"] == "x"


def test_bad_schedule_id_keeps_connection_open(client, project_id):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "join-project", "data": project_id})
        ws.receive_json()
        ws.send_json({"event": "update-schedule", "data": {"id": "abc", "owner": "x"}})
        assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid schedule id: 'abc'"}}
        ws.send_json({"event": ["join-project"], "data": project_id})
        assert ws.receive_json() == {"event": "error", "data": {"message": "Malformed message"}}
        ws.send_json({"event": "join-project", "data": project_id})
        assert ws.receive_json()["event"] == "joined"


def test_handler_failure_is_reported(client, project_id, monkeypatch):
    from progman.realtime import socket as rt_socket

    def broken(schedule_id, fields):
        raise RuntimeError("boom")

    monkeypatch.setattr(rt_socket, "_apply_schedule_update", broken)
    sid = schedule_ids(project_id)[1]
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "update-schedule", "data": {"id": sid, "owner": "x"}})
        assert ws.receive_json() == {"event": "error", "data": {"message": "Failed to handle update-schedule"}}
        ws.send_json({"event": "join-project", "data": project_id})
        assert ws.receive_json()["event"] == "joined"
