"""同济开放平台客户端"""

from onetj.clients.tongji_client import TongjiClient

__all__ = ["TongjiClient"]
