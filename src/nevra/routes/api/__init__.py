"""
API Routes Package
"""

from .core import core_bp
from .generation import gen_bp
from .planning import plan_bp

__all__ = ['core_bp', 'gen_bp', 'plan_bp']
