# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from FlowCalEngine.Topology.topology import find_islands, get_adjacency_matrix
from FlowCalEngine.Topology.connectivity import (GraphConnectivity, NaiveGraphConnectivity,
                                                 DecrementalGraphConnectivity, create_connectivity)
