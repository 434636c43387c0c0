# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List
import numpy as np
import numba as nb
from scipy.sparse import csc_matrix, coo_matrix
from FlowCalEngine.basic_structures import IntVec


@nb.njit(cache=True)
def find_islands_numba(node_number: int, indptr: IntVec, indices: IntVec, active: IntVec) -> List[IntVec]:
    """
    Method to get the islands of a graph (non recursive depth first search)
    :param node_number: number of nodes
    :param indptr: index pointers in the CSC scheme
    :param indices: row indices in the CSC scheme
    :param active: array of node active
    :return: list of islands, where each element is a sorted array of the node indices of the island
    """
    visited = np.zeros(node_number, dtype=np.int32)
    islands = list()
    current_island = np.empty(node_number, dtype=np.int64)

    for node in range(node_number):

        if not visited[node] and active[node]:

            node_count = 0
            stack = [node]

            while len(stack) > 0:

                v = stack.pop()

                if not visited[v]:
                    visited[v] = 1
                    current_island[node_count] = v
                    node_count += 1

                    for i in range(indptr[v], indptr[v + 1]):
                        k = indices[i]
                        if not visited[k] and active[k]:
                            stack.append(k)

            island = current_island[:node_count].copy()
            island.sort()
            islands.append(island)

    return islands


def get_adjacency_matrix(n: int, f: IntVec, t: IntVec, branch_active: IntVec) -> csc_matrix:
    """
    Compute the symmetric bus-bus adjacency matrix
    :param n: number of nodes
    :param f: array of "from" node indices
    :param t: array of "to" node indices
    :param branch_active: array of Branches availability
    :return: Adjacency matrix (CSC)
    """
    idx = np.where(branch_active)[0]
    rows = np.r_[f[idx], t[idx], np.arange(n)]
    cols = np.r_[t[idx], f[idx], np.arange(n)]
    data = np.ones(len(rows), dtype=int)
    return coo_matrix((data, (rows, cols)), shape=(n, n)).tocsc()


def find_islands(adj: csc_matrix, active: IntVec) -> List[IntVec]:
    """
    Method to get the islands of a graph
    :param adj: adjacency
    :param active: active state of the nodes
    :return: list of islands, where each element is a list of the node indices of the island
    """
    if adj.format != "csc":
        adj = adj.tocsc()

    return find_islands_numba(node_number=adj.shape[0],
                              indptr=adj.indptr,
                              indices=adj.indices,
                              active=np.asarray(active, dtype=np.int64))
