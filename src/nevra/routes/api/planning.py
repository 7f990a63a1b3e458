"""Planning API
============

POST /api/plan {"prompt": "...", "provider": "deepseek"}

Always answers 200 with a plan (possibly the fallback plan) unless the
request itself is invalid or the server faults.
"""

import logging
import time

from flask import Blueprint, jsonify

from nevra.extensions import get_components
from nevra.utils.async_utils import run_async_safely

from .common import get_json_body, require_prompt

logger = logging.getLogger(__name__)

plan_bp = Blueprint('planning', __name__, url_prefix='/api')


@plan_bp.route('/plan', methods=['POST'])
def plan():
    data = get_json_body()
    prompt = require_prompt(data)

    components = get_components()
    provider = str(data.get('provider') or components.default_provider)

    try:
        result = run_async_safely(components.planner.decompose(prompt, provider))
    except Exception as e:
        logger.exception("Planning failed unexpectedly")
        return jsonify({
            'error': str(e) or 'Planning failed',
            'id': str(int(time.time() * 1000)),
            'prompt': prompt,
            'tasks': [],
            'estimatedTotalTime': 0,
        }), 500

    return jsonify(result.to_dict())
