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

"""Typed codec between Python values and structured content.

``decode(encode(value), type(value)) == value`` holds for every supported
value whose type defines structural equality.
"""

from __future__ import annotations

from .decode import decode, decode_json
from .encode import encode

__all__ = ["decode", "decode_json", "encode"]
