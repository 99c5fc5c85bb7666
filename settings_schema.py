from typing import Literal

from pydantic import BaseModel, ValidationError


class SettingsSchema(BaseModel):
    theme: Literal["light", "dark"] = "light"
    weight_unit: Literal["kg", "lb"] = "kg"
    backend: Literal["relational", "document"] = "relational"
    user_id: str = "demo-user"
    db_path: str = "fitlog.db"
    mirror_plan: bool = False
    sanity_project_id: str = ""
    sanity_dataset: str = "production"
    sanity_api_version: str = "2023-10-12"
    sanity_token: str | bool = ""
    exercisedb_key: str | bool = ""
    exercisedb_base_url: str = "https://exercisedb-api1.p.rapidapi.com/api/v1"
    exercisedb_host: str = "exercisedb-api1.p.rapidapi.com"


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
