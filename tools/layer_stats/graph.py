"""Layer ancestry graph and storage accounting."""

from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from shared.logger import get_logger

from .client import ImageRecord
from .errors import CycleDetectedError, DuplicateIDError, MissingParentError

logger = get_logger(__name__)


@dataclass(frozen=True)
class AncestryIndex:
    """Lookup tables over one snapshot of the image list."""

    images: Dict[str, ImageRecord]
    children: Dict[str, Set[str]]
    tagged: Dict[str, ImageRecord]


@dataclass(frozen=True)
class TagReport:
    """Size summary for one tagged image."""

    tag: str
    image_id: str
    layer_count: int
    size: int
    virtual_size: int


@dataclass(frozen=True)
class StatsReport:
    """
    Storage accounting for the whole image store.

    virtual_size is the plain sum of every tag's virtual size, so layers
    shared between tags are counted once per tag.
    """

    total_layers: int = 0
    total_size: int = 0
    reachable_layers: int = 0
    reachable_size: int = 0
    shared_layers: int = 0
    shared_size: int = 0
    virtual_size: int = 0
    tags: Tuple[TagReport, ...] = field(default_factory=tuple)

    @property
    def dangling_layers(self) -> int:
        """Layers not reachable from any tag."""
        return self.total_layers - self.reachable_layers

    @property
    def dangling_size(self) -> int:
        """Bytes held by layers not reachable from any tag."""
        return self.total_size - self.reachable_size

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tags"] = [asdict(t) for t in self.tags]
        data["dangling_layers"] = self.dangling_layers
        data["dangling_size"] = self.dangling_size
        return data


class LayerGraph:
    """
    Rebuild the layer forest from a flat image list and account for its size.

    Attributes:
        images: Image records the graph was built from
        index: AncestryIndex over those records
    """

    def __init__(
        self, images: Iterable[ImageRecord], notify: Optional[Callable[[str], None]] = None
    ):
        """
        Index an image list.

        Args:
            images: Records from the daemon, including intermediate layers
            notify: Callable receiving progress notices

        Raises:
            DuplicateIDError: If two records share an id
        """
        self.images = list(images)
        self.notify = notify or logger.debug
        self.index = self.build_index()

    def build_index(self) -> AncestryIndex:
        """
        Partition the records into id, parent and tagged lookups.

        Returns:
            AncestryIndex

        Raises:
            DuplicateIDError: If two records share an id
        """
        images: Dict[str, ImageRecord] = {}
        children: Dict[str, Set[str]] = {}
        tagged: Dict[str, ImageRecord] = {}

        for image in self.images:
            if image.id in images:
                raise DuplicateIDError(f"Duplicate image id: {image.id}", image.id)
            images[image.id] = image

            if image.parent_id:
                children.setdefault(image.parent_id, set()).add(image.id)
            if image.is_tagged:
                tagged[image.id] = image

        self.notify(f"Indexed {len(images)} layers, {len(tagged)} tagged")
        return AncestryIndex(images=images, children=children, tagged=tagged)

    def trace(self, image_id: str) -> Dict[str, ImageRecord]:
        """
        Collect an image and all of its ancestors.

        Args:
            image_id: Id of the image to start from

        Returns:
            Dict of id to ImageRecord for every layer in the chain

        Raises:
            MissingParentError: If the chain references an unknown id
            CycleDetectedError: If the chain loops back on itself
        """
        images = self.index.images
        if image_id not in images:
            raise MissingParentError(f"Unknown image id: {image_id}", image_id)

        layers: Dict[str, ImageRecord] = {}
        current = images[image_id]
        layers[current.id] = current

        while current.parent_id:
            parent_id = current.parent_id
            if parent_id in layers:
                raise CycleDetectedError(
                    f"Cycle in layer chain of {image_id} at {parent_id}", parent_id
                )
            if parent_id not in images:
                raise MissingParentError(
                    f"Layer {current.id} references missing parent {parent_id}", parent_id
                )
            current = images[parent_id]
            layers[current.id] = current

        return layers

    def tag_reports(self) -> List[TagReport]:
        """Chain length and sizes for every tagged image."""
        return [
            self._tag_report(image, self.trace(image.id)) for image in self.index.tagged.values()
        ]

    @staticmethod
    def _tag_report(image: ImageRecord, layers: Dict[str, ImageRecord]) -> TagReport:
        return TagReport(
            tag=image.tag,
            image_id=image.id,
            layer_count=len(layers),
            size=sum(layer.size for layer in layers.values()),
            virtual_size=image.virtual_size,
        )

    def build_stats(self) -> StatsReport:
        """
        Compute reachable, shared and total sizes.

        Returns:
            StatsReport

        Raises:
            MissingParentError: If a tagged chain references an unknown id
            CycleDetectedError: If a tagged chain loops back on itself
        """
        found: Set[str] = set()
        found_size = 0
        shared: Set[str] = set()
        shared_size = 0
        virtual_size = 0
        reports = []

        for image in self.index.tagged.values():
            layers = self.trace(image.id)
            reports.append(self._tag_report(image, layers))
            virtual_size += image.virtual_size

            for layer in layers.values():
                if layer.id in found:
                    if layer.id not in shared:
                        shared.add(layer.id)
                        shared_size += layer.size
                else:
                    found.add(layer.id)
                    found_size += layer.size

        total_size = sum(image.size for image in self.index.images.values())

        return StatsReport(
            total_layers=len(self.index.images),
            total_size=total_size,
            reachable_layers=len(found),
            reachable_size=found_size,
            shared_layers=len(shared),
            shared_size=shared_size,
            virtual_size=virtual_size,
            tags=tuple(reports),
        )


def build_stats(
    images: Iterable[ImageRecord], notify: Optional[Callable[[str], None]] = None
) -> StatsReport:
    """
    Index an image list and compute its StatsReport.

    Args:
        images: Records from the daemon, including intermediate layers
        notify: Callable receiving progress notices

    Returns:
        StatsReport
    """
    return LayerGraph(images, notify=notify).build_stats()
