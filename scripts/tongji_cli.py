# scripts/tongji_cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any


def _dump(obj: Any) -> str:
    if hasattr(obj, "model_dump"):
        obj = obj.model_dump(mode="json")
    return json.dumps(obj, ensure_ascii=False, indent=2)


async def main() -> int:
    script_path = Path(__file__).resolve()
    repo_root = script_path.parents[1]  # scripts/.. = repo root

    # ensure "import onetj.*" works without pip install
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    parser = argparse.ArgumentParser(description="同济开放平台命令行客户端")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("login-url", help="打印 OAuth 授权地址")
    p_token = sub.add_parser("token", help="用授权码换 token")
    p_token.add_argument("code")
    sub.add_parser("status", help="token 是否可用")
    sub.add_parser("logout", help="清除本地 token")
    for name in ("student-info", "calendar", "scores", "timetable", "exams"):
        sub.add_parser(name)
    args = parser.parse_args()

    # --- imports after sys.path ready ---
    from onetj.clients.tongji_client import TongjiClient
    from onetj.core.notify import LoggingNotifier
    from onetj.services.tongji_service import TongjiService

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    async with TongjiClient() as client:
        service = TongjiService(client, LoggingNotifier())

        if args.cmd == "login-url":
            print(client.authorize_url())
            return 0
        if args.cmd == "token":
            ok = await service.exchange_code_for_token(args.code)
            print("OK" if ok else "FAILED")
            return 0 if ok else 1
        if args.cmd == "status":
            print(_dump({
                "tokenValid": await service.is_token_valid(),
                "switchAccountRequired": await service.get_switch_account_required(),
            }))
            return 0
        if args.cmd == "logout":
            await service.clear_session()
            return 0

        calls = {
            "student-info": service.get_student_info,
            "calendar": service.get_one_tongji_school_calendar,
            "scores": service.get_one_tongji_undergraduate_score,
            "timetable": service.get_one_tongji_student_timetable,
            "exams": service.get_one_tongji_student_exams,
        }
        result = await calls[args.cmd]()
        if result is None:
            # 原因已经由 notifier 打到日志里了
            return 1
        print(_dump(result))
        return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
