"""Unit tests for backup.tree_discoverer module."""

import pytest

from src.backup.errors import RootUnreachableError
from src.backup.tree_discoverer import TreeDiscoverer
from src.models.content_node import NodeKind
from src.notion_api.errors import (
    APIUnreachableError,
    InvalidCredentialsError,
    ObjectNotFoundError,
    RetryExhaustedError,
)
from tests.helpers.fake_notion import FakeNotion, paragraph, server_error


@pytest.fixture
def notion():
    return FakeNotion(page_size=2)


class TestDiscover:
    """Test cases for TreeDiscoverer.discover."""

    def test_collections_in_depth_first_order(self, notion):
        root = notion.add_container("Workspace")
        first = notion.add_collection(root, "Tasks")
        projects = notion.add_container("Projects", parent_id=root)
        nested = notion.add_collection(projects, "Roadmap")
        deeper = notion.add_container("Archive", parent_id=projects)
        deepest = notion.add_collection(deeper, "Old Roadmap")
        last = notion.add_collection(root, "Journal")

        result = TreeDiscoverer(notion).discover(root)

        assert [c.id for c in result.collections] == [first, nested, deepest, last]
        assert result.complete is True
        assert result.failed_container_ids == []

    def test_collection_nodes(self, notion):
        root = notion.add_container("Workspace")
        notion.add_collection(root, "  Tasks ")

        node = TreeDiscoverer(notion).discover(root).collections[0]

        assert node.title == "Tasks"
        assert node.kind is NodeKind.COLLECTION
        assert node.parent_container_id == root

    def test_untitled_collection(self, notion):
        root = notion.add_container("Workspace")
        notion.add_collection(root, "")

        assert TreeDiscoverer(notion).discover(root).collections[0].title == "Untitled"

    def test_other_blocks_are_ignored(self, notion):
        root = notion.add_container("Workspace")
        notion.children[root].append(paragraph("just text"))
        notion.add_collection(root, "Tasks")

        assert len(TreeDiscoverer(notion).discover(root).collections) == 1

    def test_paginates_every_listing(self, notion):
        root = notion.add_container("Workspace")
        for i in range(5):
            notion.add_collection(root, f"DB {i}")

        result = TreeDiscoverer(notion).discover(root)

        assert len(result.collections) == 5
        assert notion.call_count("list_children", root) == 3

    def test_deep_nesting_does_not_recurse(self, notion):
        root = notion.add_container("Workspace")
        parent = root
        for depth in range(1500):
            parent = notion.add_container(f"Level {depth}", parent_id=parent)
        notion.add_collection(parent, "Bottom")

        result = TreeDiscoverer(notion).discover(root)

        assert [c.title for c in result.collections] == ["Bottom"]

    def test_empty_root(self, notion):
        root = notion.add_container("Workspace")

        result = TreeDiscoverer(notion).discover(root)

        assert result.collections == []
        assert result.complete is True


class TestDiscoverFailures:
    """Test cases for failure handling during discovery."""

    def test_unreachable_root_raises(self, notion):
        with pytest.raises(RootUnreachableError) as exc_info:
            TreeDiscoverer(notion).discover("0" * 32)

        assert exc_info.value.root_id == "0" * 32
        assert isinstance(exc_info.value.__cause__, ObjectNotFoundError)

    @pytest.mark.parametrize("error", [
        APIUnreachableError("https://api.notion.com/v1"),
        RetryExhaustedError(5, server_error()),
    ])
    def test_root_failure_keeps_cause(self, notion, error):
        root = notion.add_container("Workspace")
        notion.fail("list_children", root, error)

        with pytest.raises(RootUnreachableError) as exc_info:
            TreeDiscoverer(notion).discover(root)
        assert exc_info.value.__cause__ is error

    def test_invalid_credentials_propagate(self, notion):
        root = notion.add_container("Workspace")
        notion.fail("list_children", root, InvalidCredentialsError("https://api.notion.com/v1"))

        with pytest.raises(InvalidCredentialsError):
            TreeDiscoverer(notion).discover(root)

    def test_nested_failure_marks_incomplete(self, notion):
        root = notion.add_container("Workspace")
        broken = notion.add_container("Broken", parent_id=root)
        notion.add_collection(broken, "Hidden")
        sibling = notion.add_collection(root, "Visible")
        notion.fail("list_children", broken, RetryExhaustedError(5, server_error()))

        result = TreeDiscoverer(notion).discover(root)

        assert [c.id for c in result.collections] == [sibling]
        assert result.complete is False
        assert result.failed_container_ids == [broken]

    def test_nested_invalid_credentials_propagate(self, notion):
        root = notion.add_container("Workspace")
        child = notion.add_container("Child", parent_id=root)
        notion.fail("list_children", child, InvalidCredentialsError("https://api.notion.com/v1"))

        with pytest.raises(InvalidCredentialsError):
            TreeDiscoverer(notion).discover(root)
