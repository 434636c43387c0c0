# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import datetime
_current_year_ = datetime.datetime.now().year

# do not forget to keep a three-number version!!!
__FlowCalEngine_VERSION__ = "1.0.0"

url = 'https://github.com/FlowCal/FlowCalEngine'

about_msg = "FlowCalEngine v" + str(__FlowCalEngine_VERSION__) + '\n\n'

about_msg += """
FlowCalEngine solves the AC power flow of transmission networks
with Newton-type methods wrapped in control outer loops.\n"""

about_msg += """
This program is free software; you can redistribute it and/or
modify it subject to the terms of the Mozilla Public License, v. 2.0.
If a copy of the MPL was not distributed with this file,
You can obtain one at https://mozilla.org/MPL/2.0/.

The source of FlowCalEngine can be found at:
""" + url + "\n\n"
copyright_msg = 'Copyright (C) 2024-' + str(_current_year_) + ' FlowCal developers'

about_msg += copyright_msg + '\n'
