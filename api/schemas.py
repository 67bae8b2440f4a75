from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DashboardFiltersModel(BaseModel):
    selected: Dict[str, List[str]] = Field(default_factory=dict)
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    search: str = ""
    status: str = "all"
    contract_status: str = "all"
    selected_group: Optional[str] = None
    selected_dates: List[str] = Field(default_factory=list)
    record_status: str = "all"
    record_search: str = ""
    record_code_search: str = ""
    year: Optional[int] = None
    top_n: int = 10
    page: int = 1
    contract_page: int = 1
    page_size: int = 10


class FarmModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""


class SectorRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    workers: List[Dict[str, Any]] = Field(default_factory=list)
    farms: List[FarmModel] = Field(default_factory=list)
    supervisors: Dict[str, str] = Field(default_factory=dict)


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionModel(BaseModel):
    email: str
    permission: str
    is_authenticated: bool = True
    landing_path: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
