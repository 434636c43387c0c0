# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Graph connectivity analysers.

Vertices and edges are arbitrary hashable handles (the network uses its buses and branches),
internally they are arena-indexed so that the structures can be maintained with integer arrays.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Set, Tuple, Hashable, Union
import numpy as np
from FlowCalEngine.Topology.topology import get_adjacency_matrix, find_islands
from FlowCalEngine.enumerations import ConnectivityMode


class GraphConnectivity(ABC):
    """
    Base class of the connectivity analysers.
    Handles the bookkeeping of vertices, edges and temporary changes,
    the subclasses only compute the components.
    """

    def __init__(self):
        self.vertices: List[Hashable] = list()
        self.vertex_index: Dict[Hashable, int] = dict()

        # active edges: edge -> (vertex index 1, vertex index 2)
        self.edges: Dict[Hashable, Tuple[int, int]] = dict()

        # stack of temporary change levels, each level is the list of applied operations
        self._temporary_changes: List[List[Tuple[str, Hashable, Union[Tuple[int, int], None]]]] = list()

        self._components: Union[List[Set[Hashable]], None] = None
        self._component_number: Dict[Hashable, int] = dict()

    def _record(self, op: str, obj: Hashable, data=None):
        if len(self._temporary_changes):
            self._temporary_changes[-1].append((op, obj, data))

    def add_vertex(self, v: Hashable) -> None:
        """
        Add a vertex
        :param v: vertex handle
        """
        if v in self.vertex_index:
            raise ValueError(f"Vertex {v} already added")
        self.vertex_index[v] = len(self.vertices)
        self.vertices.append(v)
        self._record('add_vertex', v)
        self._on_vertex_added(self.vertex_index[v])
        self._invalidate()

    def add_edge(self, v1: Hashable, v2: Hashable, e: Hashable) -> None:
        """
        Add an edge between two existing vertices
        :param v1: first vertex
        :param v2: second vertex
        :param e: edge handle
        """
        if e in self.edges:
            raise ValueError(f"Edge {e} already added")
        i, j = self.vertex_index[v1], self.vertex_index[v2]
        self.edges[e] = (i, j)
        self._record('add_edge', e, (i, j))
        self._on_edge_added(e, i, j)

    def remove_edge(self, e: Hashable) -> None:
        """
        Remove an edge
        :param e: edge handle
        """
        i, j = self.edges.pop(e)
        self._record('remove_edge', e, (i, j))
        self._on_edge_removed(e, i, j)

    def has_edge(self, e: Hashable) -> bool:
        return e in self.edges

    def start_temporary_changes(self) -> None:
        """
        Open a level of temporary changes, levels can be nested
        """
        self._temporary_changes.append(list())

    def undo_temporary_changes(self) -> None:
        """
        Revert every change made since the matching start_temporary_changes call
        """
        if len(self._temporary_changes) == 0:
            raise ValueError("No temporary changes to undo")

        level = self._temporary_changes.pop()
        for op, obj, data in reversed(level):
            if op == 'add_edge':
                del self.edges[obj]
            elif op == 'remove_edge':
                self.edges[obj] = data
            else:
                idx = self.vertex_index.pop(obj)
                self.vertices.pop(idx)

        self._on_reset()

    def get_edges_removed(self) -> List[Hashable]:
        """
        Edges removed in the current level of temporary changes
        :return: list of edges
        """
        if len(self._temporary_changes) == 0:
            return list()
        return [obj for op, obj, _ in self._temporary_changes[-1] if op == 'remove_edge']

    def _invalidate(self):
        self._components = None
        self._component_number.clear()

    def _update_components(self):
        if self._components is None:
            groups = self._compute_groups()
            # biggest first, ties broken by the lowest vertex index
            groups.sort(key=lambda g: (-len(g), min(g)))
            self._components = [set(self.vertices[k] for k in g) for g in groups]
            for c, g in enumerate(self._components):
                for v in g:
                    self._component_number[v] = c

    def get_connected_components(self) -> List[Set[Hashable]]:
        """
        All the connected components, the largest first
        :return: list of sets of vertices
        """
        self._update_components()
        return self._components

    def get_nb_connected_components(self) -> int:
        self._update_components()
        return len(self._components)

    def get_component_number(self, v: Hashable) -> int:
        """
        Number of the component a vertex belongs to (0 is the largest component)
        :param v: vertex
        :return: component number
        """
        self._update_components()
        return self._component_number[v]

    def get_connected_component(self, v: Hashable) -> Set[Hashable]:
        """
        Vertices connected to v (v included)
        :param v: vertex
        :return: set of vertices
        """
        return self.get_connected_components()[self.get_component_number(v)]

    def is_connected(self, v1: Hashable, v2: Hashable) -> bool:
        return self.get_component_number(v1) == self.get_component_number(v2)

    @abstractmethod
    def _compute_groups(self) -> List[List[int]]:
        pass

    def _on_vertex_added(self, i: int):
        pass

    @abstractmethod
    def _on_edge_added(self, e: Hashable, i: int, j: int):
        pass

    @abstractmethod
    def _on_edge_removed(self, e: Hashable, i: int, j: int):
        pass

    @abstractmethod
    def _on_reset(self):
        pass


class NaiveGraphConnectivity(GraphConnectivity):
    """
    Recomputes every island from scratch after any change, O(V + E) per change
    """

    def _compute_groups(self) -> List[List[int]]:
        n = len(self.vertices)
        if n == 0:
            return list()
        ij = np.array(list(self.edges.values()), dtype=int).reshape(-1, 2)
        adj = get_adjacency_matrix(n=n, f=ij[:, 0], t=ij[:, 1], branch_active=np.ones(ij.shape[0], dtype=int))
        return [list(island) for island in find_islands(adj, active=np.ones(n, dtype=int))]

    def _on_edge_added(self, e: Hashable, i: int, j: int):
        self._invalidate()

    def _on_edge_removed(self, e: Hashable, i: int, j: int):
        self._invalidate()

    def _on_reset(self):
        self._invalidate()


class DecrementalGraphConnectivity(GraphConnectivity):
    """
    Union-find over the current edges that keeps track of the spanning forest it induced.

    Removing an edge outside the spanning forest cannot split a component and costs O(1);
    removing a forest edge schedules a reset (rebuild of the union-find from the remaining edges)
    that is paid at the next query, so a batch of removals shares a single reset.
    """

    def __init__(self):
        GraphConnectivity.__init__(self)
        self.parent: List[int] = list()
        self.rank: List[int] = list()
        self.forest_edges: Set[Hashable] = set()
        self.reset_needed = False
        self.nb_resets = 0

    def _find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:  # path compression
            self.parent[i], i = root, self.parent[i]
        return root

    def _union(self, i: int, j: int) -> bool:
        ri, rj = self._find(i), self._find(j)
        if ri == rj:
            return False
        if self.rank[ri] < self.rank[rj]:
            ri, rj = rj, ri
        self.parent[rj] = ri
        if self.rank[ri] == self.rank[rj]:
            self.rank[ri] += 1
        return True

    def _reset(self):
        n = len(self.vertices)
        self.parent = list(range(n))
        self.rank = [0] * n
        self.forest_edges.clear()
        for e, (i, j) in self.edges.items():
            if self._union(i, j):
                self.forest_edges.add(e)
        self.reset_needed = False
        self.nb_resets += 1

    def _on_vertex_added(self, i: int):
        self.parent.append(i)
        self.rank.append(0)

    def _on_edge_added(self, e: Hashable, i: int, j: int):
        if self.reset_needed:
            return
        if self._union(i, j):
            self.forest_edges.add(e)
            self._invalidate()

    def _on_edge_removed(self, e: Hashable, i: int, j: int):
        if e in self.forest_edges:
            self.forest_edges.discard(e)
            self.reset_needed = True
            self._invalidate()

    def _on_reset(self):
        self.reset_needed = True
        self._invalidate()

    def _compute_groups(self) -> List[List[int]]:
        if self.reset_needed:
            self._reset()
        groups: Dict[int, List[int]] = dict()
        for i in range(len(self.vertices)):
            groups.setdefault(self._find(i), list()).append(i)
        return list(groups.values())


def create_connectivity(mode: ConnectivityMode) -> GraphConnectivity:
    """
    Connectivity analyser factory
    :param mode: ConnectivityMode
    :return: GraphConnectivity
    """
    if mode == ConnectivityMode.NAIVE:
        return NaiveGraphConnectivity()
    elif mode == ConnectivityMode.DECREMENTAL:
        return DecrementalGraphConnectivity()
    else:
        raise ValueError(f"Unknown connectivity mode {mode}")
