"""Generation API
==============

POST /api/generate
{
    "prompt": "Build a todo app",
    "history": [{"role": "user", "text": "..."}],
    "mode": "builder",
    "provider": "deepseek",
    "images": ["data:image/png;base64,..."],
    "framework": "react",
    "systemPrompt": null
}

Returns ``{content}`` on success, ``{error, detail}`` with the status of the
terminal failure otherwise.
"""

import logging

from flask import Blueprint, jsonify

from nevra.extensions import get_components
from nevra.services.gateway import GenerationRequest
from nevra.utils.async_utils import run_async_safely
from nevra.utils.errors import build_error_payload

from .common import get_json_body, require_prompt

logger = logging.getLogger(__name__)

gen_bp = Blueprint('generation', __name__, url_prefix='/api')


@gen_bp.route('/generate', methods=['POST'])
def generate():
    data = get_json_body()
    require_prompt(data)

    components = get_components()
    generation_request = GenerationRequest.from_payload(data, components.default_provider)
    logger.info(
        f"Generate: provider={generation_request.provider} mode={generation_request.mode.value} "
        f"history={len(generation_request.history)} images={len(generation_request.images)}"
    )

    try:
        result = run_async_safely(components.dispatcher.dispatch(generation_request))
    except Exception as e:
        logger.exception("Generation failed unexpectedly")
        return jsonify(build_error_payload(
            str(e) or 'Generation failed',
            detail='Unexpected server error. Retry later; if it persists check the server logs.',
        )), 500

    return jsonify(result.to_response()), result.http_status
