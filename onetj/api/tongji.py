from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from onetj.clients.tongji_client import TongjiClient
from onetj.middlewares.request_id import get_request_id
from onetj.schemas.tongji import CodeExchangeRequest, SwitchAccountRequest
from onetj.services.tongji_service import get_tongji_client

router = APIRouter(prefix="/api/tongji", tags=["tongji"])


@router.get("/auth/url")
async def auth_url(
    client: TongjiClient = Depends(get_tongji_client),
    state: Optional[str] = Query(default=None),
):
    return {"success": True, "data": {"url": client.authorize_url(state=state)}}


@router.post("/auth/token")
async def exchange_token(
    payload: CodeExchangeRequest,
    client: TongjiClient = Depends(get_tongji_client),
    request_id: Optional[str] = Depends(get_request_id),
):
    ok = await client.exchange_code_for_token(payload.code, request_id=request_id)
    if not ok:
        raise HTTPException(status_code=400, detail="授权码换取 token 失败")
    return {"success": True, "message": "登录成功"}


@router.post("/auth/logout")
async def logout(client: TongjiClient = Depends(get_tongji_client)):
    await client.clear_session()
    return {"success": True}


@router.get("/session")
async def session(client: TongjiClient = Depends(get_tongji_client)):
    return {
        "success": True,
        "data": {
            "tokenValid": await client.is_token_valid(),
            "switchAccountRequired": await client.get_switch_account_required(),
        },
    }


@router.put("/session/switch-account")
async def switch_account(
    payload: SwitchAccountRequest,
    client: TongjiClient = Depends(get_tongji_client),
):
    await client.set_switch_account_required(payload.required)
    return {"success": True, "data": {"switchAccountRequired": payload.required}}


@router.get("/student-info")
async def student_info(
    client: TongjiClient = Depends(get_tongji_client),
    request_id: Optional[str] = Depends(get_request_id),
):
    info = await client.get_student_info(request_id=request_id)
    return {"success": True, "data": info.model_dump(mode="json")}


@router.get("/calendar")
async def calendar(
    client: TongjiClient = Depends(get_tongji_client),
    request_id: Optional[str] = Depends(get_request_id),
):
    cal = await client.get_one_tongji_school_calendar(request_id=request_id)
    return {"success": True, "data": cal.model_dump(mode="json")}


@router.get("/scores")
async def scores(
    client: TongjiClient = Depends(get_tongji_client),
    request_id: Optional[str] = Depends(get_request_id),
):
    return {"success": True, "data": await client.get_one_tongji_undergraduate_score(request_id=request_id)}


@router.get("/timetable")
async def timetable(
    client: TongjiClient = Depends(get_tongji_client),
    request_id: Optional[str] = Depends(get_request_id),
):
    return {"success": True, "data": await client.get_one_tongji_student_timetable(request_id=request_id)}


@router.get("/exams")
async def exams(
    client: TongjiClient = Depends(get_tongji_client),
    request_id: Optional[str] = Depends(get_request_id),
):
    return {"success": True, "data": await client.get_one_tongji_student_exams(request_id=request_id)}
