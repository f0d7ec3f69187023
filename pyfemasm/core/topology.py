import numpy as np
from dataclasses import dataclass, field
from typing import Tuple, List, Optional, Union


# Face adjacency is stored as one signed integer per (element, face):
#   code >= 0   index of the neighbouring element
#   code <  0   boundary face of region  -(code + 1)
def encode_boundary(region: int) -> int:
    if region < 0:
        raise ValueError(f"Boundary region must be non-negative, got {region}.")
    return -(int(region) + 1)


@dataclass(frozen=True, slots=True)
class Interior:
    neighbor: int


@dataclass(frozen=True, slots=True)
class Boundary:
    region: int


FaceAdjacency = Union[Interior, Boundary]


def decode_face_adjacency(code: int) -> FaceAdjacency:
    code = int(code)
    if code >= 0:
        return Interior(code)
    return Boundary(-(code + 1))


@dataclass(slots=True)
class Face:
    gid: int
    corner_nodes: Tuple[int, ...]    # sorted global corner ids (matching key)
    left: int                        # first element seen with this face
    left_lid: int                    # local face index inside ``left``
    right: Optional[int] = None
    right_lid: Optional[int] = None
    region: int = 0                  # boundary region, meaningless on interior faces

    @property
    def is_boundary(self) -> bool:
        return self.right is None


@dataclass(slots=True)
class Element:
    id: int
    nodes: Tuple[int, ...]           # global node ids in reference-lattice order
    corner_nodes: Tuple[int, ...] = field(default_factory=tuple)
    element_type: str = "quad"
    poly_order: int = 1
    faces: Tuple[int, ...] = field(default_factory=tuple)
    adjacency: List[int] = field(default_factory=list)
    centroid: Optional[np.ndarray] = None

    def face_adjacency(self, local_face: int) -> FaceAdjacency:
        return decode_face_adjacency(self.adjacency[local_face])
