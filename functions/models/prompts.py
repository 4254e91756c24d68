# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import json
from typing import List

SEISMIC_ANALYSIS_PROMPT = """
Analyze the following recent earthquake data for Bangladesh and surrounding regions (India, Myanmar border).
Data: {data}

Provide a comprehensive situation report for a public dashboard.
1. Determine the overall risk level.
2. Identify specific regions/cities that are 'hotspots' based on this data.
3. Analyze the depth of the quakes (Shallow < 70km vs Deep) and what it implies.
4. Provide historical/seasonal context if possible (is this normal frequency?).
5. One sentence of actionable advice.
"""


def make_seismic_analysis_prompt(events: List[dict]) -> str:
    """Builds the situation report prompt from projected event dicts."""
    return SEISMIC_ANALYSIS_PROMPT.format(data=json.dumps(events))
