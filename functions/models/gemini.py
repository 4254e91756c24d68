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

import time
import logging
from google import genai
from typing import Type, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"

T = TypeVar("T")


class GeminiInvalidResponseException(Exception):
    pass


def call_predict_with_schema(
    query: str,
    response_schema: Type[T],
    api_key: str,
    model: str = DEFAULT_MODEL,
    client: genai.Client | None = None,
) -> T:
    """
    Calls Gemini with a response schema for structured output.

    Args:
        query (str): The prompt to send.
        response_schema (Type[T]): Pydantic model the response must conform to.
        api_key (str): The Gemini API key, used when no client is passed.
        model (str): The model to call with.
        client (genai.Client | None): Optional pre-built client.

    Returns:
        T: The parsed response.

    Raises:
        GeminiInvalidResponseException: If the model returned no parseable output.
    """
    if client is None:
        client = genai.Client(api_key=api_key)

    start_time = time.time()
    truncated_query = (query[:200] + "...") if len(query) > 200 else query
    logger.info("Calling Gemini with schema, prompt: '%s'", truncated_query)
    response = client.models.generate_content(
        model=model,
        contents=query,
        config={
            "response_mime_type": "application/json",
            "response_schema": response_schema,
        },
    )
    logger.info("Gemini with schema call took: %.2fs", time.time() - start_time)

    parsed = response.parsed
    if parsed is None:
        if not response.text:
            raise GeminiInvalidResponseException("No response from Gemini")
        # The SDK leaves parsed empty when the JSON does not fit the schema.
        parsed = response_schema.model_validate_json(response.text)
    if not isinstance(parsed, response_schema):
        raise GeminiInvalidResponseException(
            f"Unexpected Gemini payload type: {type(parsed).__name__}"
        )
    return parsed
