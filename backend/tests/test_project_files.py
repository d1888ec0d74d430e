"""
Tests for project file array helpers: tree building, edits, slug, export.
"""

import uuid

import pytest

from pydantic import ValidationError

from capycode.models.project import Project
from capycode.schemas.project import (
    ProjectCreate,
    ProjectFile,
    ProjectUpdate,
    find_path_conflict,
)
from capycode.services.project_files import (
    add_file,
    build_export,
    build_file_tree,
    clone_expo_config,
    remove_file,
    slugify,
    update_file,
)


def _f(path: str, content: str = "") -> dict:
    return {"path": path, "content": content, "type": "component"}


class TestSlugify:
    @pytest.mark.parametrize(
        "name, slug",
        [
            ("My App", "my-app"),
            ("Todo  List 2", "todo-list-2"),
            ("Café & Bar!", "caf--bar"),
            ("already-slugged", "already-slugged"),
        ],
    )
    def test_slugify(self, name, slug):
        assert slugify(name) == slug


class TestFileTree:
    def test_nested_paths_become_folders(self):
        tree = build_file_tree([
            _f("src/screens/Home.tsx"),
            _f("App.tsx"),
            _f("src/screens/Settings.tsx"),
            _f("src/utils.ts"),
        ])

        assert [node["name"] for node in tree] == ["App.tsx", "src"]
        app, src = tree
        assert app == {"name": "App.tsx", "type": "file", "path": "App.tsx"}
        assert src["type"] == "folder"
        assert [c["path"] for c in src["children"]] == ["src/screens", "src/utils.ts"]

        screens = src["children"][0]
        assert [c["name"] for c in screens["children"]] == ["Home.tsx", "Settings.tsx"]

    def test_shared_prefix_gets_one_folder(self):
        tree = build_file_tree([_f("a/x.ts"), _f("a/y.ts"), _f("a/z.ts")])

        assert len(tree) == 1
        assert len(tree[0]["children"]) == 3

    def test_file_node_never_gets_children(self):
        tree = build_file_tree([_f("a"), _f("a/b.ts")])

        assert tree == [{"name": "a", "type": "file", "path": "a"}]

    def test_stored_paths_are_normalised(self):
        tree = build_file_tree([_f("/src//App.tsx"), _f("src/util.ts")])

        assert len(tree) == 1
        assert [c["path"] for c in tree[0]["children"]] == ["src/App.tsx", "src/util.ts"]

    def test_empty(self):
        assert build_file_tree([]) == []


class TestEdits:
    def test_add_appends_without_mutating(self):
        files = [_f("App.tsx")]

        result = add_file(files, _f("src/new.ts", "x"))

        assert [f["path"] for f in result] == ["App.tsx", "src/new.ts"]
        assert len(files) == 1

    def test_add_existing_path_raises(self):
        with pytest.raises(FileExistsError):
            add_file([_f("App.tsx")], _f("App.tsx"))

    @pytest.mark.parametrize(
        "existing, new",
        [
            ("src", "src/App.tsx"),
            ("src/App.tsx", "src"),
            ("src/screens/Home.tsx", "src/screens"),
        ],
    )
    def test_add_file_folder_clash_raises(self, existing, new):
        with pytest.raises(FileExistsError):
            add_file([_f(existing)], _f(new))

    def test_add_normalises_path(self):
        result = add_file([_f("App.tsx")], _f("/src//new.ts"))

        assert result[-1]["path"] == "src/new.ts"

    def test_add_normalised_duplicate_raises(self):
        with pytest.raises(FileExistsError):
            add_file([_f("src/App.tsx")], _f("src/App.tsx/"))

    def test_update_changes_only_content(self):
        files = [{"path": "App.tsx", "content": "old", "type": "screen"}]

        result = update_file(files, "App.tsx", "new")

        assert result == [{"path": "App.tsx", "content": "new", "type": "screen"}]
        assert files[0]["content"] == "old"

    def test_update_missing_raises(self):
        with pytest.raises(FileNotFoundError):
            update_file([_f("App.tsx")], "nope.ts", "x")

    def test_remove(self):
        files = [_f("a.ts"), _f("b.ts"), _f("c.ts")]

        result = remove_file(files, "b.ts")

        assert [f["path"] for f in result] == ["a.ts", "c.ts"]
        assert len(files) == 3

    def test_remove_missing_raises(self):
        with pytest.raises(FileNotFoundError):
            remove_file([], "a.ts")


class TestFilePaths:
    @pytest.mark.parametrize(
        "raw, path",
        [
            ("App.tsx", "App.tsx"),
            ("/src/App.tsx", "src/App.tsx"),
            ("src//screens///Home.tsx", "src/screens/Home.tsx"),
            (" src/App.tsx/ ", "src/App.tsx"),
        ],
    )
    def test_path_is_normalised(self, raw, path):
        assert ProjectFile(path=raw).path == path

    @pytest.mark.parametrize("raw", ["/", "//", " / "])
    def test_path_without_a_name_is_rejected(self, raw):
        with pytest.raises(ValidationError):
            ProjectFile(path=raw)

    def test_find_path_conflict(self):
        assert find_path_conflict(["App.tsx", "src/a.ts", "src/b.ts"]) is None
        assert find_path_conflict(["a.ts", "b.ts", "a.ts"]) == "a.ts"
        assert find_path_conflict(["src/a/b.ts", "src"]) == "src"

    def test_create_rejects_duplicate_paths(self):
        with pytest.raises(ValidationError, match="Conflicting file path: App.tsx"):
            ProjectCreate(
                name="Dupes",
                files=[{"path": "App.tsx", "content": "1"}, {"path": "App.tsx", "content": "2"}],
            )

    def test_create_rejects_paths_equal_after_normalising(self):
        with pytest.raises(ValidationError):
            ProjectCreate(name="Dupes", files=[{"path": "src/App.tsx"}, {"path": "/src//App.tsx"}])

    def test_create_rejects_file_folder_clash(self):
        with pytest.raises(ValidationError):
            ProjectCreate(name="Clash", files=[{"path": "src"}, {"path": "src/App.tsx"}])

    def test_update_rejects_duplicate_paths(self):
        with pytest.raises(ValidationError):
            ProjectUpdate(files=[{"path": "a.ts"}, {"path": "a.ts"}])

    def test_update_without_files_is_valid(self):
        assert ProjectUpdate(name="Renamed").files is None


class TestExport:
    def _project(self, **overrides) -> Project:
        fields = dict(
            id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            name="My App",
            slug="my-app",
            status="ready",
            files=[_f("App.tsx", "export default () => null;")],
            expo_config={"name": "My App", "slug": "my-app", "version": "2.1.0"},
            dependencies={"expo": "~53.0.0"},
            dev_dependencies={"typescript": "^5.3.0"},
        )
        fields.update(overrides)
        return Project(**fields)

    def test_export_shape(self):
        export = build_export(self._project())

        assert export["name"] == "my-app"
        assert export["appJson"] == {
            "expo": {"name": "My App", "slug": "my-app", "version": "2.1.0"}
        }
        package = export["packageJson"]
        assert package["version"] == "2.1.0"
        assert package["main"] == "node_modules/expo/AppEntry.js"
        assert package["scripts"]["web"] == "expo start --web"
        assert package["dependencies"] == {"expo": "~53.0.0"}
        assert package["devDependencies"] == {"typescript": "^5.3.0"}
        assert package["private"] is True

    def test_export_defaults_version(self):
        export = build_export(self._project(expo_config={}))

        assert export["packageJson"]["version"] == "1.0.0"

    def test_clone_expo_config_overrides_identity(self):
        cloned = clone_expo_config(
            {"name": "Old", "slug": "old", "orientation": "portrait"}, "New", "new"
        )

        assert cloned == {"name": "New", "slug": "new", "orientation": "portrait"}
