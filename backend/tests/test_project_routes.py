"""
HTTP tests for /api/projects.
"""

import datetime
import uuid

import pytest

from capycode.models.project import Project

CREATED = datetime.datetime(2026, 2, 1, 9, 30, tzinfo=datetime.timezone.utc)

APP = {"path": "App.tsx", "content": "export default function App() {}", "type": "component"}
HOME = {"path": "src/screens/Home.tsx", "content": "// home", "type": "screen"}


def _project(user_id: uuid.UUID, **overrides) -> Project:
    fields = dict(
        id=uuid.uuid4(),
        user_id=user_id,
        name="Groceries",
        slug="groceries",
        description="Shopping list",
        status="ready",
        files=[dict(APP), dict(HOME)],
        expo_config={"name": "Groceries", "slug": "groceries", "version": "2.1.0"},
        dependencies={"expo": "~53.0.0"},
        dev_dependencies={"typescript": "^5.3.0"},
        created_at=CREATED,
        updated_at=CREATED,
    )
    fields.update(overrides)
    return Project(**fields)


@pytest.fixture
def project(auth) -> Project:
    return _project(auth.user_id)


@pytest.fixture
def owned_project(monkeypatch, project):
    """Resolve ownership lookups to `project` when ids and owner match."""

    async def fake_get_owned_project(session, project_id, user_id):
        if project_id == project.id and user_id == project.user_id:
            return project
        return None

    monkeypatch.setattr(
        "capycode.services.project_files.get_owned_project", fake_get_owned_project
    )
    return project


class TestProjects:
    async def test_list_is_paginated(self, client, auth, db_session):
        rows = [
            _project(auth.user_id, name="B", slug="b"),
            _project(auth.user_id, name="A", slug="a"),
        ]
        db_session.results = [7, rows]

        response = await client.get("/api/projects", params={"limit": 2, "offset": 4})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 7
        assert body["limit"] == 2
        assert body["offset"] == 4
        assert [p["name"] for p in body["projects"]] == ["B", "A"]
        assert "files" not in body["projects"][0]

    async def test_list_limit_bounds(self, client):
        assert (await client.get("/api/projects", params={"limit": 0})).status_code == 422
        assert (await client.get("/api/projects", params={"limit": 101})).status_code == 422

    async def test_create(self, client, auth, db_session):
        response = await client.post(
            "/api/projects",
            json={
                "name": "My Todo App",
                "files": [APP, {"path": "/src//utils.ts", "content": "export const x = 1;"}],
                "dependencies": {"expo": "~53.0.0"},
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "my-todo-app"
        assert body["status"] == "draft"
        assert [f["path"] for f in body["files"]] == ["App.tsx", "src/utils.ts"]
        uuid.UUID(body["id"])

        stored = db_session.added[0]
        assert stored.user_id == auth.user_id
        assert db_session.commits == 1

    async def test_create_rejects_duplicate_paths(self, client, db_session):
        response = await client.post(
            "/api/projects",
            json={"name": "Dupes", "files": [APP, {"path": "App.tsx", "content": "again"}]},
        )

        assert response.status_code == 422
        assert db_session.added == []

    async def test_create_rejects_file_folder_clash(self, client):
        response = await client.post(
            "/api/projects",
            json={"name": "Clash", "files": [{"path": "src"}, {"path": "src/App.tsx"}]},
        )

        assert response.status_code == 422

    async def test_create_rejects_unknown_fields(self, client):
        response = await client.post("/api/projects", json={"name": "X", "owner": "me"})

        assert response.status_code == 422

    async def test_get(self, client, owned_project):
        response = await client.get(f"/api/projects/{owned_project.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Groceries"
        assert body["dev_dependencies"] == {"typescript": "^5.3.0"}
        assert len(body["files"]) == 2

    async def test_foreign_or_missing_project_is_404(self, client, owned_project):
        response = await client.get(f"/api/projects/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"] == "Project not found."

    async def test_update_changes_only_supplied_fields(self, client, owned_project, db_session):
        response = await client.put(
            f"/api/projects/{owned_project.id}", json={"name": "Weekly Shop"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Weekly Shop"
        assert body["slug"] == "weekly-shop"
        assert body["description"] == "Shopping list"
        assert body["status"] == "ready"
        assert len(body["files"]) == 2
        assert db_session.commits == 1

    async def test_update_can_clear_description(self, client, owned_project):
        response = await client.put(
            f"/api/projects/{owned_project.id}", json={"description": None}
        )

        assert response.json()["description"] is None

    async def test_update_rejects_duplicate_paths(self, client, owned_project, db_session):
        response = await client.put(
            f"/api/projects/{owned_project.id}", json={"files": [APP, APP]}
        )

        assert response.status_code == 422
        assert db_session.commits == 0

    async def test_delete(self, client, owned_project, db_session):
        response = await client.delete(f"/api/projects/{owned_project.id}")

        assert response.status_code == 204
        assert db_session.deleted == [owned_project]
        assert db_session.commits == 1

    async def test_delete_foreign_project_is_404(self, client, owned_project, db_session):
        response = await client.delete(f"/api/projects/{uuid.uuid4()}")

        assert response.status_code == 404
        assert db_session.deleted == []


class TestProjectFiles:
    async def test_files_and_tree(self, client, owned_project):
        response = await client.get(f"/api/projects/{owned_project.id}/files")

        body = response.json()
        assert [f["path"] for f in body["files"]] == ["App.tsx", "src/screens/Home.tsx"]
        assert [node["name"] for node in body["tree"]] == ["App.tsx", "src"]
        assert body["tree"][1]["children"][0]["children"][0]["path"] == "src/screens/Home.tsx"

    async def test_add_file(self, client, owned_project):
        response = await client.post(
            f"/api/projects/{owned_project.id}/files",
            json={"path": "src/theme.ts", "content": "export const c = '#fff';", "type": "style"},
        )

        assert response.status_code == 201
        assert response.json()["files"][-1]["path"] == "src/theme.ts"
        assert owned_project.files[-1]["type"] == "style"

    @pytest.mark.parametrize("path", ["App.tsx", "/App.tsx", "src/screens", "App.tsx/extra.ts"])
    async def test_add_clashing_path_is_400(self, client, owned_project, db_session, path):
        response = await client.post(
            f"/api/projects/{owned_project.id}/files", json={"path": path}
        )

        assert response.status_code == 400
        assert db_session.commits == 0
        assert len(owned_project.files) == 2

    async def test_update_file_content(self, client, owned_project):
        response = await client.put(
            f"/api/projects/{owned_project.id}/files/src/screens/Home.tsx",
            json={"content": "// new home"},
        )

        assert response.status_code == 200
        home = response.json()["files"][1]
        assert home == {"path": "src/screens/Home.tsx", "content": "// new home", "type": "screen"}

    async def test_update_missing_file_is_404(self, client, owned_project):
        response = await client.put(
            f"/api/projects/{owned_project.id}/files/src/nope.ts", json={"content": "x"}
        )

        assert response.status_code == 404

    async def test_delete_file(self, client, owned_project):
        response = await client.delete(
            f"/api/projects/{owned_project.id}/files/src/screens/Home.tsx"
        )

        assert response.status_code == 200
        body = response.json()
        assert [f["path"] for f in body["files"]] == ["App.tsx"]
        assert [node["name"] for node in body["tree"]] == ["App.tsx"]

    async def test_delete_missing_file_is_404(self, client, owned_project):
        response = await client.delete(f"/api/projects/{owned_project.id}/files/gone.ts")

        assert response.status_code == 404


class TestExportAndClone:
    async def test_export_uses_client_field_names(self, client, owned_project):
        response = await client.get(f"/api/projects/{owned_project.id}/export")

        body = response.json()
        assert body["name"] == "groceries"
        assert body["appJson"] == {"expo": owned_project.expo_config}
        assert body["packageJson"]["version"] == "2.1.0"
        assert body["packageJson"]["devDependencies"] == {"typescript": "^5.3.0"}

    async def test_clone_defaults_name(self, client, owned_project, db_session):
        response = await client.post(f"/api/projects/{owned_project.id}/clone")

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Groceries (Copy)"
        assert body["slug"] == "groceries-copy"
        assert body["status"] == "ready"
        assert body["id"] != str(owned_project.id)
        assert body["expo_config"]["name"] == "Groceries (Copy)"
        assert db_session.commits == 1

    async def test_clone_with_name(self, client, owned_project):
        response = await client.post(
            f"/api/projects/{owned_project.id}/clone", json={"name": "Pantry"}
        )

        body = response.json()
        assert body["name"] == "Pantry"
        assert body["expo_config"]["slug"] == "pantry"
        assert body["files"] == owned_project.files

    async def test_clone_foreign_project_is_404(self, client, owned_project, db_session):
        response = await client.post(f"/api/projects/{uuid.uuid4()}/clone")

        assert response.status_code == 404
        assert db_session.added == []
