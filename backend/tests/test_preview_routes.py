"""
HTTP tests for /api/preview.
"""

import uuid

import pytest

from capycode.models.project import Project
from capycode.schemas.project import ProjectFile

APP_SOURCE = "const [todos, setTodos] = useState([]); const accent = '#ff3366';"


@pytest.fixture
def project(auth) -> Project:
    return Project(
        id=uuid.uuid4(),
        user_id=auth.user_id,
        name="Groceries",
        slug="groceries",
        status="ready",
        files=[{"path": "App.tsx", "content": APP_SOURCE, "type": "component"}],
        expo_config={},
        dependencies={"expo": "~53.0.0"},
        dev_dependencies={},
    )


@pytest.fixture
def owned_project(monkeypatch, project):
    """Resolve ownership lookups to `project` when ids and owner match."""

    async def fake_get_owned_project(session, project_id, user_id):
        if project_id == project.id and user_id == project.user_id:
            return project
        return None

    monkeypatch.setattr("capycode.routers.preview.get_owned_project", fake_get_owned_project)
    return project


class TestWebPreview:
    async def test_create_from_project(self, client, owned_project, previews, db_session):
        response = await client.post("/api/preview/web", json={"projectId": str(owned_project.id)})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["preview_url"] == f"http://preview.test/preview/{body['session_id']}"

        session = previews.get_session(body["session_id"])
        assert session.project_id == str(owned_project.id)
        assert session.dependencies["react-native-web"] == "^0.19.0"
        assert db_session.added[0].kind == "web_preview"

    async def test_create_for_unknown_project(self, client, owned_project):
        response = await client.post("/api/preview/web", json={"projectId": str(uuid.uuid4())})

        assert response.status_code == 404

    async def test_get_and_update_session(self, client, previews, auth):
        session = previews.create_session(
            "p1", [ProjectFile(path="App.tsx", content="")], {}, user_id=str(auth.user_id)
        )

        fetched = await client.get(f"/api/preview/web/{session.id}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "ready"

        updated = await client.put(
            f"/api/preview/web/{session.id}",
            json={"files": [{"path": "App.js", "content": "export default 1;"}]},
        )
        assert [f["path"] for f in updated.json()["files"]] == ["App.js"]

    async def test_foreign_session_is_403(self, client, previews):
        session = previews.create_session("p1", [], {}, user_id="someone-else")

        response = await client.get(f"/api/preview/web/{session.id}")

        assert response.status_code == 403

    async def test_expired_session_is_404(self, client, previews, auth, clock):
        session = previews.create_session("p1", [], {}, user_id=str(auth.user_id))
        clock.advance(3601)

        response = await client.get(f"/api/preview/web/{session.id}")

        assert response.status_code == 404

    async def test_html_page(self, client, previews):
        session = previews.create_session(
            "p1", [ProjectFile(path="App.tsx", content="export default 1;")], {}
        )

        response = await client.get(f"/api/preview/web/{session.id}/html")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'modules["App.tsx"]' in response.text

    async def test_html_unknown_session(self, client):
        response = await client.get("/api/preview/web/web-unknown/html")

        assert response.status_code == 404


class TestDeviceMocks:
    async def test_render(self, client):
        response = await client.post(
            "/api/preview/render",
            json={
                "files": [{"path": "App.tsx", "content": APP_SOURCE}],
                "app_name": "Groceries",
                "device": "android",
            },
        )

        assert response.status_code == 200
        assert "Buy groceries" in response.text
        assert "#ff3366" in response.text
        assert "height: 680px" in response.text

    async def test_render_rejects_unknown_device(self, client):
        response = await client.post("/api/preview/render", json={"files": [], "device": "nokia"})

        assert response.status_code == 422

    async def test_classify(self, client):
        response = await client.post(
            "/api/preview/classify", json={"source": "fetchWeather(); <Text>Skies</Text>"}
        )

        assert response.json() == {
            "app_type": "weather",
            "accent_color": "#0ea5e9",
            "title": "Skies",
        }

    async def test_project_mock(self, client, owned_project):
        response = await client.get(
            f"/api/preview/projects/{owned_project.id}/mock", params={"device": "ipad"}
        )

        assert response.status_code == 200
        assert "<title>Groceries</title>" in response.text
        assert "width: 680px" in response.text
