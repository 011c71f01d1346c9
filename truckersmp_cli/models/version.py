"""
Pydantic model for the TruckersMP version endpoint.
"""

from pydantic import BaseModel, ConfigDict, Field


class ModVersionInfo(BaseModel):
    """The currently released mod version and the game versions it supports."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(alias="name")
    stage: str
    supported_ets2_version: str = Field(alias="supported_game_version")
    supported_ats_version: str = Field(alias="supported_ats_game_version")
