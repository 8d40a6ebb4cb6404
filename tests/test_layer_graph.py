"""Tests for the layer graph accounting."""

import pytest

from tools.layer_stats.client import UNTAGGED, ImageRecord
from tools.layer_stats.errors import (
    CycleDetectedError,
    DuplicateIDError,
    GraphError,
    MissingParentError,
)
from tools.layer_stats.graph import LayerGraph, StatsReport, build_stats


def image(image_id, parent="", size=0, virtual_size=0, tags=()):
    return ImageRecord(
        id=image_id,
        parent_id=parent,
        size=size,
        virtual_size=virtual_size,
        repo_tags=tuple(tags),
    )


def chain(length, size=1):
    """Linear chain l0 <- l1 <- ... with the tip tagged."""
    images = []
    for i in range(length):
        parent = f"l{i - 1}" if i else ""
        tags = ["tip:latest"] if i == length - 1 else []
        images.append(image(f"l{i}", parent=parent, size=size, tags=tags))
    return images


@pytest.fixture
def forked_images():
    """Base layer A with two tagged children."""
    return [
        image("A", size=10),
        image("B", parent="A", size=5, virtual_size=15, tags=["app:v1"]),
        image("C", parent="A", size=7, virtual_size=17, tags=["app:v2"]),
    ]


class TestImageRecord:
    """Test ImageRecord helpers."""

    def test_tag_skips_sentinel(self):
        """Test that the untagged marker is not treated as a tag."""
        record = image("x", tags=[UNTAGGED])
        assert record.tag is None
        assert record.is_tagged is False

    def test_tag_returns_first_real_tag(self):
        """Test that the first real tag is reported."""
        record = image("x", tags=[UNTAGGED, "nginx:latest", "nginx:1.25"])
        assert record.tag == "nginx:latest"
        assert record.is_tagged is True

    def test_from_api(self):
        """Test building a record from an image list entry."""
        record = ImageRecord.from_api(
            {
                "Id": "sha256:abc",
                "ParentId": "sha256:def",
                "Size": 100,
                "VirtualSize": 300,
                "RepoTags": ["nginx:latest"],
            }
        )
        assert record.id == "sha256:abc"
        assert record.parent_id == "sha256:def"
        assert record.size == 100
        assert record.virtual_size == 300
        assert record.repo_tags == ("nginx:latest",)

    def test_from_api_missing_fields(self):
        """Test defaults for entries from newer daemons."""
        record = ImageRecord.from_api({"Id": "sha256:abc", "Size": 42, "RepoTags": None})
        assert record.parent_id == ""
        assert record.virtual_size == 42
        assert record.repo_tags == ()


class TestBuildIndex:
    """Test ancestry index construction."""

    def test_index_partitions_records(self, forked_images):
        """Test id, parent and tagged lookups."""
        index = LayerGraph(forked_images).index

        assert set(index.images) == {"A", "B", "C"}
        assert index.children == {"A": {"B", "C"}}
        assert set(index.tagged) == {"B", "C"}

    def test_duplicate_id_raises(self):
        """Test that duplicate ids are rejected."""
        with pytest.raises(DuplicateIDError) as exc_info:
            LayerGraph([image("A"), image("A")])

        assert exc_info.value.image_id == "A"
        assert isinstance(exc_info.value, GraphError)

    def test_notify_receives_progress(self, forked_images):
        """Test that the injected sink gets indexing notices."""
        messages = []
        LayerGraph(forked_images, notify=messages.append)

        assert messages == ["Indexed 3 layers, 2 tagged"]


class TestTrace:
    """Test layer chain tracing."""

    def test_root_is_singleton_chain(self):
        """Test that an image without a parent is its own chain."""
        graph = LayerGraph([image("A", size=3), image("B", size=4)])
        assert list(graph.trace("A")) == ["A"]

    @pytest.mark.parametrize("length", [1, 2, 5, 50])
    def test_chain_length(self, length):
        """Test that tracing the tip returns every layer."""
        graph = LayerGraph(chain(length))
        layers = graph.trace(f"l{length - 1}")

        assert len(layers) == length
        assert set(layers) == {f"l{i}" for i in range(length)}

    def test_cycle_detected(self):
        """Test that a chain looping back on itself fails."""
        images = chain(4)
        images[0] = image("l0", parent="l3")
        graph = LayerGraph(images)

        with pytest.raises(CycleDetectedError):
            graph.trace("l3")

    def test_self_parent_is_cycle(self):
        """Test that an image naming itself as parent fails."""
        graph = LayerGraph([image("A", parent="A")])

        with pytest.raises(CycleDetectedError):
            graph.trace("A")

    def test_missing_parent(self):
        """Test that a dangling parent reference fails."""
        graph = LayerGraph([image("B", parent="gone", tags=["app:v1"])])

        with pytest.raises(MissingParentError) as exc_info:
            graph.trace("B")

        assert exc_info.value.image_id == "gone"

    def test_unknown_start(self):
        """Test tracing an id that is not in the index."""
        graph = LayerGraph([image("A")])

        with pytest.raises(MissingParentError):
            graph.trace("nope")


class TestBuildStats:
    """Test storage accounting."""

    def test_shared_base_layer(self, forked_images):
        """Test the two-tags-one-base scenario."""
        report = build_stats(forked_images)

        assert report.total_layers == 3
        assert report.total_size == 22
        assert report.reachable_layers == 3
        assert report.reachable_size == 22
        assert report.shared_layers == 1
        assert report.shared_size == 10

    def test_virtual_size_counts_shared_layers_per_tag(self, forked_images):
        """Test that virtual size is a plain sum over tags."""
        report = build_stats(forked_images)
        assert report.virtual_size == 15 + 17

    def test_tag_reports(self, forked_images):
        """Test per-tag line items, compared without order."""
        report = build_stats(forked_images)

        items = {(t.tag, t.layer_count, t.size, t.virtual_size) for t in report.tags}
        assert items == {("app:v1", 2, 15, 15), ("app:v2", 2, 17, 17)}

    def test_tag_reports_match_stats(self, forked_images):
        """Test that tag_reports agrees with build_stats."""
        graph = LayerGraph(forked_images)
        assert set(graph.tag_reports()) == set(graph.build_stats().tags)

    def test_empty_input(self):
        """Test that no images gives an all-zero report."""
        report = build_stats([])

        assert report == StatsReport()
        assert report.tags == ()
        assert report.dangling_layers == 0

    def test_dangling_layers_count_in_total_only(self, forked_images):
        """Test that unreachable layers only affect the grand total."""
        images = forked_images + [
            image("D", size=100, tags=[UNTAGGED]),
            image("E", parent="D", size=50),
        ]
        report = build_stats(images)

        assert report.total_layers == 5
        assert report.total_size == 172
        assert report.reachable_size == 22
        assert report.dangling_layers == 2
        assert report.dangling_size == 150

    def test_dangling_missing_parent_is_ignored(self):
        """Test that broken untagged chains are never traced."""
        report = build_stats([image("A", size=1, tags=["a:1"]), image("X", parent="gone", size=2)])

        assert report.total_size == 3
        assert report.reachable_size == 1

    def test_tagged_missing_parent_raises(self):
        """Test that a broken tagged chain aborts the run."""
        with pytest.raises(MissingParentError):
            build_stats([image("B", parent="gone", tags=["app:v1"])])

    def test_tagged_cycle_raises(self):
        """Test that a cyclic tagged chain aborts the run."""
        images = [image("A", parent="B"), image("B", parent="A", tags=["app:v1"])]

        with pytest.raises(CycleDetectedError):
            build_stats(images)

    def test_single_tag_has_no_shared_bytes(self):
        """Test that layers reachable from one tag are never shared."""
        report = build_stats(chain(5, size=10))

        assert report.reachable_layers == 5
        assert report.reachable_size == 50
        assert report.shared_layers == 0
        assert report.shared_size == 0

    def test_shared_size_grows_with_more_tags(self):
        """Test that adding tags on a common base never lowers shared size."""
        base = [image("A", size=10), image("B", parent="A", size=20)]
        previous = 0

        for count in range(1, 5):
            tips = [
                image(f"T{i}", parent="B", size=1, tags=[f"app:{i}"]) for i in range(count)
            ]
            report = build_stats(base + tips)

            assert report.shared_size >= previous
            previous = report.shared_size

        assert previous == 30

    def test_total_size_independent_of_order(self, forked_images):
        """Test that input order does not change the totals."""
        forward = build_stats(forked_images)
        backward = build_stats(list(reversed(forked_images)))

        assert forward.total_size == backward.total_size == 22
        assert forward.reachable_size == backward.reachable_size
        assert forward.shared_size == backward.shared_size
        assert set(forward.tags) == set(backward.tags)

    def test_idempotent(self, forked_images):
        """Test that repeated runs give identical reports."""
        graph = LayerGraph(forked_images)
        assert graph.build_stats() == graph.build_stats()
        assert build_stats(forked_images) == build_stats(forked_images)

    def test_to_dict(self, forked_images):
        """Test the JSON-ready representation."""
        data = build_stats(forked_images).to_dict()

        assert data["total_size"] == 22
        assert data["shared_size"] == 10
        assert data["dangling_size"] == 0
        assert {t["tag"] for t in data["tags"]} == {"app:v1", "app:v2"}
