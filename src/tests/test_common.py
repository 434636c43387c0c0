# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from FlowCalEngine.Utils.NumericalMethods.common import find_closest_number, max_abs, norm


def test_find_closest_number():
    """
    Closest tap search over a sorted array of ratios
    """
    arr = np.arange(1, 10, 0.1)

    # above the last value
    idx, val = find_closest_number(arr, 11.0)
    assert idx == len(arr) - 1
    assert val == arr[-1]

    # below the first value
    idx, val = find_closest_number(arr, 0.3)
    assert idx == 0
    assert val == arr[0]

    # middle points, 3.95 is half way and goes up
    idx, val = find_closest_number(arr, 3.95)
    assert idx == 30
    assert val == arr[30]

    idx, val = find_closest_number(arr, 3.91)
    assert idx == 29
    assert val == arr[29]


def test_find_closest_number_small_arrays():
    """
    Exact matches, ties and empty arrays
    """
    arr = np.array([0.0, 1.0, 2.0])

    assert find_closest_number(arr, 0.5) == (1, 1.0)
    assert find_closest_number(arr, 1.0) == (1, 1.0)
    assert find_closest_number(arr, 1.2) == (1, 1.0)
    assert find_closest_number(arr, -5.0) == (0, 0.0)
    assert find_closest_number(arr, 5.0) == (2, 2.0)

    idx, val = find_closest_number(np.zeros(0), 0.7)
    assert idx == -1
    assert val == 0.7


def test_norms():
    """
    Infinity and euclidean norms
    """
    x = np.array([3.0, -4.0])
    assert max_abs(x) == 4.0
    assert np.isclose(norm(x), 5.0)


if __name__ == '__main__':
    test_find_closest_number()
