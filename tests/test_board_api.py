"""
API tests for the board blueprint and health endpoints.

Covers:
  - X-Workspace-Id requirement
  - thread create / list / get, 404 across workspaces
  - POST /messages as JSON and multipart (files), rerun endpoint
  - error mapping: 400 bad input / unsupported file, 409 busy thread,
    422 bad thread_id, 415 wrong content type
  - free-text goals (Russian goal names) are accepted
  - health endpoints
"""

import io

from boardroom.services.board_service import get_board_service

IDEA = "рост продаж на 20%"


def _post_idea(client, headers, **body):
    payload = {"content": IDEA, **body}
    return client.post("/api/v1/board/messages", json=payload, headers=headers)


class TestWorkspaceHeader:
    def test_missing_header(self, client):
        res = client.get("/api/v1/board/threads")
        assert res.status_code == 400
        assert res.get_json()["error"] == "X-Workspace-Id header is required"

    def test_blank_header(self, client):
        res = client.post("/api/v1/board/messages", json={"content": IDEA},
                          headers={"X-Workspace-Id": "   "})
        assert res.status_code == 400


class TestThreadsApi:
    def test_create_list_get(self, client, ws_headers):
        res = client.post("/api/v1/board/threads", json={"title": "Pricing"}, headers=ws_headers)
        assert res.status_code == 201
        thread = res.get_json()
        assert thread["title"] == "Pricing"

        res = client.get("/api/v1/board/threads", headers=ws_headers)
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == thread["id"]

        res = client.get(f"/api/v1/board/threads/{thread['id']}", headers=ws_headers)
        assert res.status_code == 200
        data = res.get_json()
        assert data["messages"] == []
        assert len(data["participants"]) == 4

    def test_thread_of_other_workspace_is_404(self, client, ws_headers):
        thread = client.post("/api/v1/board/threads", json={}, headers=ws_headers).get_json()
        res = client.get(f"/api/v1/board/threads/{thread['id']}", headers={"X-Workspace-Id": "ws-other"})
        assert res.status_code == 404
        assert res.get_json() == {"error": "BoardThread not found"}

    def test_unknown_thread_is_404(self, client, ws_headers):
        assert client.get("/api/v1/board/threads/999", headers=ws_headers).status_code == 404


class TestMessagesApi:
    def test_json_submission_runs_board(self, client, ws_headers):
        res = _post_idea(client, ws_headers)

        assert res.status_code == 200
        body = res.get_json()
        assert body["ok"] is True
        assert body["status"] == "Done"
        assert [m["role"] for m in body["messages"]] == ["ceo", "cto", "cfo", "chair"]
        assert body["thread"]["last_status"] == "Done"
        assert body["user_message"]["role"] == "user"
        assert "X-Request-ID" in res.headers

    def test_multipart_with_files(self, client, ws_headers):
        data = {
            "content": IDEA,
            "save_to_knowledge": "true",
            "files": [
                (io.BytesIO(b"Budget: 10k"), "notes.txt", "text/plain"),
                (io.BytesIO(b"\x89PNG"), "chart.png", "image/png"),
            ],
        }
        res = client.post("/api/v1/board/messages", data=data, headers=ws_headers,
                          content_type="multipart/form-data")

        assert res.status_code == 200
        chips = res.get_json()["user_message"]["attachments"]
        assert [c["filename"] for c in chips] == ["notes.txt", "chart.png"]
        assert chips[0]["size"] == len(b"Budget: 10k")

    def test_unsupported_file_is_400(self, client, ws_headers):
        data = {"content": IDEA, "files": [(io.BytesIO(b"MZ"), "setup.exe")]}
        res = client.post("/api/v1/board/messages", data=data, headers=ws_headers,
                          content_type="multipart/form-data")

        assert res.status_code == 400
        body = res.get_json()
        assert body["error"] == "Unsupported file type: .exe"
        assert body["details"]["filename"] == "setup.exe"
        listing = client.get("/api/v1/board/threads", headers=ws_headers).get_json()
        assert listing["total"] == 0

    def test_empty_content_is_400(self, client, ws_headers):
        res = client.post("/api/v1/board/messages", json={"content": "  "}, headers=ws_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "content is required"

    def test_russian_goal_name_is_accepted(self, client, ws_headers):
        res = _post_idea(client, ws_headers, goal="рост")
        assert res.status_code == 200
        assert res.get_json()["status"] == "Done"

    def test_bad_thread_id_is_422(self, client, ws_headers):
        res = _post_idea(client, ws_headers, thread_id="abc")
        assert res.status_code == 422

    def test_busy_thread_is_409(self, app, client, ws_headers, workspace_id):
        thread = client.post("/api/v1/board/threads", json={}, headers=ws_headers).get_json()
        get_board_service(app).acquire_run_lease(workspace_id, thread["id"])

        res = _post_idea(client, ws_headers, thread_id=thread["id"])

        assert res.status_code == 409
        assert res.get_json()["error"] == "A board run is already in progress for this thread"

    def test_wrong_content_type_is_415(self, client, ws_headers):
        res = client.post("/api/v1/board/messages", data="content=hi", headers=ws_headers,
                          content_type="text/plain")
        assert res.status_code == 415


class TestRerunApi:
    def test_rerun(self, client, ws_headers):
        thread_id = _post_idea(client, ws_headers).get_json()["thread"]["id"]

        res = client.post(f"/api/v1/board/threads/{thread_id}/run", json={"goal": "sales"},
                          headers=ws_headers)

        assert res.status_code == 200
        assert res.get_json()["status"] == "Done"
        thread = client.get(f"/api/v1/board/threads/{thread_id}", headers=ws_headers).get_json()
        assert len(thread["messages"]) == 9

    def test_rerun_empty_thread_is_400(self, client, ws_headers):
        thread = client.post("/api/v1/board/threads", json={}, headers=ws_headers).get_json()
        res = client.post(f"/api/v1/board/threads/{thread['id']}/run", json={}, headers=ws_headers)
        assert res.status_code == 400

    def test_rerun_unknown_thread_is_404(self, client, ws_headers):
        res = client.post("/api/v1/board/threads/999/run", json={}, headers=ws_headers)
        assert res.status_code == 404


class TestHealth:
    def test_app_health(self, client):
        assert client.get("/api/v1/health").get_json() == {"status": "ok", "app": "Boardroom"}

    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        checks = res.get_json()["checks"]
        assert checks["database"]["status"] == "ok"
        assert checks["llm_provider"]["mode"] == "fixture"
        assert checks["llm_provider"]["fixtures"] == {
            "board-ceo": True, "board-cto": True, "board-cfo": True, "board-chair": True,
        }

    def test_unknown_route_is_json_404(self, client):
        res = client.get("/api/v1/nope")
        assert res.status_code == 404
        assert res.get_json()["path"] == "/api/v1/nope"
