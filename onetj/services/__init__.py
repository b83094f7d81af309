# onetj/services/__init__.py
"""服务层模块"""

from .tongji_service import TongjiService

__all__ = ["TongjiService"]
