"""
Common API helpers
==================

Request parsing shared by the API blueprints.
"""

from typing import Any, Dict

from flask import request

from nevra.utils.errors import BadRequestError


def get_json_body() -> Dict[str, Any]:
    """Request JSON object, or an empty dict for missing / non-object bodies."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_prompt(data: Dict[str, Any]) -> str:
    """Return the non-blank ``prompt`` field or raise a 400."""
    prompt = data.get('prompt')
    if not isinstance(prompt, str) or not prompt.strip():
        raise BadRequestError('Prompt is required', code='prompt_required')
    return prompt
