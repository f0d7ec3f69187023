import logging
import numpy as np
from typing import Callable, Dict, Iterator, List, Sequence, Tuple, Union

from pyfemasm.core.topology import (Element, Face, FaceAdjacency,
                                    decode_face_adjacency, encode_boundary)
from pyfemasm.fem.reference import (ELEMENT_DIM, face_local_nodes, get_reference,
                                    match_nodes, n_faces)

logger = logging.getLogger(__name__)


class Mesh:
    """
    Nodes, cells and the face connectivity the assembly loops need.

    Cells may be of different types (e.g. triangles and quads) but share one
    geometric polynomial order. Faces are matched through the sorted set of
    their corner nodes; each (element, local face) then gets a signed
    adjacency code, see :mod:`pyfemasm.core.topology`.
    """

    def __init__(self,
                 nodes: np.ndarray,
                 element_connectivity: Sequence[Sequence[int]],
                 element_types: Union[str, Sequence[str]] = 'quad',
                 *,
                 poly_order: int = 1):
        self.nodes_x = np.asarray(nodes, dtype=float)
        if self.nodes_x.ndim == 1:
            self.nodes_x = self.nodes_x.reshape(-1, 1)
        self.space_dim: int = self.nodes_x.shape[1]
        self.poly_order = int(poly_order)
        self.elements_connectivity = [np.asarray(c, dtype=int) for c in element_connectivity]
        self.n_elements = len(self.elements_connectivity)
        if isinstance(element_types, str):
            element_types = [element_types] * self.n_elements
        self.element_types: List[str] = list(element_types)
        if len(self.element_types) != self.n_elements:
            raise ValueError("One element type per element is required.")
        self.elements_list: List[Element] = []
        self.faces_list: List[Face] = []
        self._face_dict: Dict[Tuple[int, ...], Face] = {}
        self._build_topology()

    @property
    def dim(self) -> int:
        return max(ELEMENT_DIM[t] for t in set(self.element_types))

    def _build_topology(self):
        # Step 1: elements with their corners
        for eid, conn in enumerate(self.elements_connectivity):
            etype = self.element_types[eid]
            ref = get_reference(etype, self.poly_order)
            if len(conn) != ref.n_basis:
                raise ValueError(f"Element {eid} ({etype}, order {self.poly_order}) needs "
                                 f"{ref.n_basis} nodes, got {len(conn)}.")
            corners = conn[match_nodes(get_reference(etype, 1).nodes, ref.nodes)]
            self.elements_list.append(Element(
                id=eid,
                nodes=tuple(int(n) for n in conn),
                corner_nodes=tuple(int(n) for n in corners),
                element_type=etype,
                poly_order=self.poly_order,
                centroid=self.nodes_x[corners].mean(axis=0),
            ))

        # Step 2: unique faces keyed by their sorted corner set
        for elem in self.elements_list:
            conn = self.elements_connectivity[elem.id]
            gids = []
            for lf in range(n_faces(elem.element_type)):
                corner_lids = face_local_nodes(elem.element_type, lf, 1, self.poly_order)
                key = tuple(sorted(int(conn[i]) for i in corner_lids))
                face = self._face_dict.get(key)
                if face is None:
                    face = Face(gid=len(self.faces_list), corner_nodes=key, left=elem.id, left_lid=lf)
                    self.faces_list.append(face)
                    self._face_dict[key] = face
                elif face.right is None and face.left != elem.id:
                    face.right, face.right_lid = elem.id, lf
                else:
                    raise ValueError(f"Face {key} is shared by more than two elements.")
                gids.append(face.gid)
            elem.faces = tuple(gids)

        # Step 3: signed adjacency codes
        for elem in self.elements_list:
            codes = []
            for gid in elem.faces:
                face = self.faces_list[gid]
                if face.is_boundary:
                    codes.append(encode_boundary(face.region))
                else:
                    codes.append(face.right if face.left == elem.id else face.left)
            elem.adjacency = codes
        logger.debug("Mesh topology: %d elements, %d faces (%d on the boundary)",
                     self.n_elements, len(self.faces_list),
                     sum(f.is_boundary for f in self.faces_list))

    # ------------------------------------------------------------------
    # Boundary regions
    # ------------------------------------------------------------------
    def tag_boundary_faces(self, locators: Dict[int, Callable[[np.ndarray], bool]]):
        """Assign boundary regions by evaluating ``locators`` at face centroids.

        The first matching region wins; unmatched faces keep their region.
        """
        for face in self.faces_list:
            if not face.is_boundary:
                continue
            xc = self.nodes_x[list(face.corner_nodes)].mean(axis=0)
            for region, locator in locators.items():
                if locator(xc):
                    face.region = int(region)
                    break
        self._refresh_boundary_codes()

    def set_boundary_region(self, elem_id: int, local_face: int, region: int):
        face = self.faces_list[self.elements_list[elem_id].faces[local_face]]
        if not face.is_boundary:
            raise ValueError(f"Face {local_face} of element {elem_id} is interior.")
        face.region = int(region)
        self._refresh_boundary_codes()

    def _refresh_boundary_codes(self):
        for elem in self.elements_list:
            for lf, gid in enumerate(elem.faces):
                face = self.faces_list[gid]
                if face.is_boundary:
                    elem.adjacency[lf] = encode_boundary(face.region)

    def boundary_faces(self, region: int = None) -> Iterator[Tuple[int, int, int]]:
        """Yield ``(elem_id, local_face, region)`` for every boundary face."""
        for face in self.faces_list:
            if face.is_boundary and (region is None or face.region == region):
                yield face.left, face.left_lid, face.region

    # ------------------------------------------------------------------
    # Per-element accessors
    # ------------------------------------------------------------------
    def geometry_type(self, elem_id: int) -> str:
        return self.element_types[elem_id]

    def n_faces(self, elem_id: int) -> int:
        return len(self.elements_list[elem_id].faces)

    def element(self, elem_id: int) -> Element:
        return self.elements_list[elem_id]

    def element_nodes(self, elem_id: int) -> np.ndarray:
        return self.elements_connectivity[elem_id]

    def element_coords(self, elem_id: int) -> np.ndarray:
        return self.nodes_x[self.elements_connectivity[elem_id]]

    def element_centroid(self, elem_id: int) -> np.ndarray:
        return self.elements_list[elem_id].centroid

    def face_adjacency_code(self, elem_id: int, local_face: int) -> int:
        return self.elements_list[elem_id].adjacency[local_face]

    def face_adjacency(self, elem_id: int, local_face: int) -> FaceAdjacency:
        return decode_face_adjacency(self.face_adjacency_code(elem_id, local_face))

    def face_local_geometry_nodes(self, elem_id: int, local_face: int) -> Tuple[int, ...]:
        """Element-local indices of all geometry nodes on a face (face-lattice order)."""
        etype = self.element_types[elem_id]
        return face_local_nodes(etype, local_face, self.poly_order, self.poly_order)

    def face_coords(self, elem_id: int, local_face: int) -> np.ndarray:
        lids = self.face_local_geometry_nodes(elem_id, local_face)
        return self.element_coords(elem_id)[list(lids)]

    def face_centroid(self, elem_id: int, local_face: int) -> np.ndarray:
        etype = self.element_types[elem_id]
        lids = face_local_nodes(etype, local_face, 1, self.poly_order)
        return self.element_coords(elem_id)[list(lids)].mean(axis=0)

    # ------------------------------------------------------------------
    # Ownership partition
    # ------------------------------------------------------------------
    def element_offsets(self, n_procs: int = 1) -> np.ndarray:
        """Contiguous element ranges: rank r owns ``offsets[r]:offsets[r+1]``."""
        if n_procs < 1:
            raise ValueError(f"n_procs must be >= 1, got {n_procs}.")
        return np.array([(r * self.n_elements) // n_procs for r in range(n_procs + 1)], dtype=int)

    def owned_elements(self, rank: int = 0, n_procs: int = 1) -> range:
        if not 0 <= rank < n_procs:
            raise ValueError(f"rank {rank} outside [0, {n_procs}).")
        off = self.element_offsets(n_procs)
        return range(int(off[rank]), int(off[rank + 1]))

    def __repr__(self):
        kinds = ",".join(sorted(set(self.element_types)))
        return (f"<Mesh n_nodes={len(self.nodes_x)}, n_elems={self.n_elements}, "
                f"types={kinds}, order={self.poly_order}, space_dim={self.space_dim}>")
