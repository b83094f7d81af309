# onetj/schemas/tongji.py
from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

SUCCESS_CODE = "A00000"


class TokenResponse(BaseModel):
    """POST /v1/token 的返回（OAuth2 标准字段）"""

    access_token: str
    # 有效期，单位：秒
    expires_in: int


class Envelope(BaseModel):
    """开放平台统一信封：{code, data}"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    # 缺失时按失败处理
    code: Optional[str] = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.code == SUCCESS_CODE


class Gender(IntEnum):
    UNKNOWN = 0
    MALE = 1
    FEMALE = 2
    UNTOLD = 9

    @classmethod
    def make(cls, code: Any) -> "Gender":
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN


class _ApiModel(BaseModel):
    # 接口里数字和字符串经常混着给，统一按字符串收
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")


class StudentInfo(_ApiModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    name: Optional[str] = None
    gender: Optional[Gender] = Field(default=None, alias="sexCode")
    dept_name: Optional[str] = Field(default=None, alias="deptName")
    second_dept_name: Optional[str] = Field(default=None, alias="secondDeptName")
    school_name: Optional[str] = Field(default=None, alias="schoolName")
    current_grade: Optional[str] = Field(default=None, alias="currentGrade")

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, v: Any) -> Optional[Gender]:
        if v is None:
            return None
        return Gender.make(v)


class StudentInfoList(RootModel[list[StudentInfo]]):
    """/v1/dc/user/student_info：数组，只取第 0 个"""


class SchoolCalendarRef(_ApiModel):
    id: str
    year: Optional[str] = None
    term: Optional[str] = None


class CurrentTermCalendar(_ApiModel):
    """/v1/rt/onetongji/school_calendar_current_term_calendar 原始结构"""

    school_calendar: SchoolCalendarRef = Field(alias="schoolCalendar")
    simple_name: Optional[str] = Field(default=None, alias="simpleName")
    week: Optional[str] = None


class SchoolCalendar(BaseModel):
    calendar_id: Optional[str] = None
    year: Optional[str] = None
    term: Optional[str] = None
    school_week: Optional[str] = None
    simple_name: Optional[str] = None

    @classmethod
    def from_current_term(cls, raw: CurrentTermCalendar) -> "SchoolCalendar":
        return cls(
            calendar_id=raw.school_calendar.id,
            year=raw.school_calendar.year,
            term=raw.school_calendar.term,
            school_week=raw.week,
            simple_name=raw.simple_name,
        )


class CodeExchangeRequest(BaseModel):
    code: str = Field(..., min_length=1)


class SwitchAccountRequest(BaseModel):
    required: bool
