import logging
import unittest
from types import SimpleNamespace
from unittest.mock import Mock, patch

import gitlab

logging.disable(logging.CRITICAL)


def _bare_client():
    from tfs_gitlab_sync.services.gitlab_client import GitLabClient

    # Avoid GitLabClient.__init__ (no network); inject a mocked python-gitlab handle.
    client = GitLabClient.__new__(GitLabClient)
    client.url = "https://gitlab.example"
    client.gl = Mock()
    client._group_ids = {}
    client._username = None
    return client


class GitLabClientConstructionTests(unittest.TestCase):
    def test_init_constructs_client_with_token_and_timeout(self):
        from tfs_gitlab_sync.services.gitlab_client import GitLabClient

        with patch("tfs_gitlab_sync.services.gitlab_client.gitlab.Gitlab") as gitlab_ctor:
            client = GitLabClient("https://gitlab.example/", "token", timeout=12)

        self.assertEqual(client.url, "https://gitlab.example")
        gitlab_ctor.assert_called_once_with("https://gitlab.example", private_token="token", timeout=12)


class GitLabClientUserTests(unittest.TestCase):
    def test_current_username_authenticates_once(self):
        client = _bare_client()
        client.gl.user = SimpleNamespace(username="sync-bot")

        self.assertEqual(client.current_username(), "sync-bot")
        self.assertEqual(client.current_username(), "sync-bot")

        client.gl.auth.assert_called_once_with()


class GitLabClientGroupTests(unittest.TestCase):
    def test_get_group_returns_none_on_404(self):
        client = _bare_client()
        client.gl.groups.get = Mock(side_effect=gitlab.exceptions.GitlabGetError("nope", 404))

        self.assertIsNone(client.get_group("tfs-mirrors"))

    def test_get_group_raises_on_other_errors(self):
        client = _bare_client()
        client.gl.groups.get = Mock(side_effect=gitlab.exceptions.GitlabGetError("nope", 500))

        with self.assertRaises(gitlab.exceptions.GitlabGetError):
            client.get_group("tfs-mirrors")

    def test_ensure_group_creates_once_per_process(self):
        client = _bare_client()
        client.gl.groups.get = Mock(side_effect=gitlab.exceptions.GitlabGetError("nope", 404))
        client.gl.groups.create = Mock(return_value=SimpleNamespace(id=77))

        self.assertEqual(client.ensure_group("tfs-mirrors"), 77)
        self.assertEqual(client.ensure_group("tfs-mirrors"), 77)
        self.assertEqual(client.ensure_group("tfs-mirrors"), 77)

        client.gl.groups.get.assert_called_once_with("tfs-mirrors")
        client.gl.groups.create.assert_called_once_with(
            {"name": "tfs-mirrors", "path": "tfs-mirrors", "visibility": "private"}
        )

    def test_ensure_group_uses_existing(self):
        client = _bare_client()
        client.gl.groups.get = Mock(return_value=SimpleNamespace(id=5))

        self.assertEqual(client.ensure_group("tfs-mirrors"), 5)
        client.gl.groups.create.assert_not_called()


class GitLabClientProjectTests(unittest.TestCase):
    def test_ensure_project_returns_existing_without_creating(self):
        client = _bare_client()
        client.gl.groups.get = Mock(return_value=SimpleNamespace(id=5))
        project = SimpleNamespace(id=9, path_with_namespace="tfs-mirrors/widgets")
        client.gl.projects.get = Mock(return_value=project)

        self.assertIs(client.ensure_project("tfs-mirrors", "widgets"), project)
        client.gl.projects.get.assert_called_once_with("tfs-mirrors/widgets")
        client.gl.projects.create.assert_not_called()

    def test_ensure_project_creates_under_group(self):
        client = _bare_client()
        client.gl.groups.get = Mock(return_value=SimpleNamespace(id=5))
        client.gl.projects.get = Mock(side_effect=gitlab.exceptions.GitlabGetError("nope", 404))
        created = SimpleNamespace(id=10, path_with_namespace="tfs-mirrors/widgets")
        client.gl.projects.create = Mock(return_value=created)

        self.assertIs(client.ensure_project("tfs-mirrors", "widgets"), created)
        payload = client.gl.projects.create.call_args[0][0]
        self.assertEqual(payload["name"], "widgets")
        self.assertEqual(payload["path"], "widgets")
        self.assertEqual(payload["namespace_id"], 5)
        self.assertEqual(payload["visibility"], "private")
        self.assertFalse(payload["initialize_with_readme"])


class GitLabClientMergeRequestTests(unittest.TestCase):
    def _client_with_project(self):
        client = _bare_client()
        project = Mock()
        client.gl.projects.get = Mock(return_value=project)
        return client, project

    def test_list_merge_requests_requests_all_pages_newest_first(self):
        client, project = self._client_with_project()
        project.mergerequests.list = Mock(
            return_value=[
                SimpleNamespace(iid=3, title="t", description="d", state="opened", labels=["tfs-pr"])
            ]
        )

        mrs = client.list_merge_requests(9, labels=["tfs-pr"], state="all")

        client.gl.projects.get.assert_called_once_with(9, lazy=True)
        _, kwargs = project.mergerequests.list.call_args
        self.assertTrue(kwargs["get_all"])
        self.assertEqual(kwargs["state"], "all")
        self.assertEqual(kwargs["labels"], ["tfs-pr"])
        self.assertEqual(kwargs["order_by"], "created_at")
        self.assertEqual(kwargs["sort"], "desc")
        self.assertEqual(mrs[0].iid, 3)
        self.assertEqual(mrs[0].description, "d")
        self.assertEqual(mrs[0].state, "opened")
        self.assertIsNone(mrs[0].closed_by)

    def test_create_merge_request_wraps_result(self):
        client, project = self._client_with_project()
        project.mergerequests.create = Mock(
            return_value=SimpleNamespace(iid=1, title="[TFS #42] x", description=None, state="opened", labels=[])
        )

        mr = client.create_merge_request(9, {"title": "[TFS #42] x"})

        project.mergerequests.create.assert_called_once_with({"title": "[TFS #42] x"})
        self.assertEqual(mr.iid, 1)
        self.assertEqual(mr.description, "")

    def test_list_merge_requests_reads_closed_by(self):
        client, project = self._client_with_project()
        project.mergerequests.list = Mock(
            return_value=[
                SimpleNamespace(
                    iid=4,
                    title="t",
                    description="d",
                    state="closed",
                    labels=["tfs-pr"],
                    closed_by={"username": "alice"},
                )
            ]
        )

        mrs = client.list_merge_requests(9, labels=["tfs-pr"])

        self.assertEqual(mrs[0].closed_by, "alice")

    def test_close_and_reopen_use_state_event(self):
        client, project = self._client_with_project()

        client.close_merge_request(9, 4)
        client.reopen_merge_request(9, 4)

        project.mergerequests.update.assert_any_call(4, {"state_event": "close"})
        project.mergerequests.update.assert_any_call(4, {"state_event": "reopen"})

    def test_update_merge_request_propagates_errors(self):
        client, project = self._client_with_project()
        project.mergerequests.update = Mock(side_effect=gitlab.exceptions.GitlabUpdateError("x", 500))

        with self.assertRaises(gitlab.exceptions.GitlabUpdateError):
            client.update_merge_request(9, 4, {"description": "d"})

    def test_list_notes_maps_author_and_system_flag(self):
        client, project = self._client_with_project()
        mr = Mock()
        mr.notes.list = Mock(
            return_value=[
                SimpleNamespace(id=101, author={"username": "coderabbit-ai"}, body="nit", system=False),
                SimpleNamespace(id=102, author={"username": "alice"}, body="changed", system=True),
            ]
        )
        project.mergerequests.get = Mock(return_value=mr)

        notes = client.list_merge_request_notes(9, 4)

        project.mergerequests.get.assert_called_once_with(4, lazy=True)
        _, kwargs = mr.notes.list.call_args
        self.assertTrue(kwargs["get_all"])
        self.assertEqual(kwargs["sort"], "asc")
        self.assertEqual([n.id for n in notes], [101, 102])
        self.assertEqual(notes[0].author, "coderabbit-ai")
        self.assertFalse(notes[0].system)
        self.assertTrue(notes[1].system)


if __name__ == "__main__":
    unittest.main()
