"""Pydantic models for Plaud cloud API responses."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlaudRecording(BaseModel):
    """One entry of /file/simple/web data_file_list."""

    model_config = ConfigDict(extra="ignore")

    id: str
    filename: str
    duration: int = 0  # milliseconds
    start_time: datetime
    end_time: datetime
    filesize: int = 0
    file_md5: str = ""
    serial_number: str = ""
    version_ms: int
    timezone: Optional[int] = None
    zonemins: Optional[int] = None
    scene: Optional[int] = None
    is_trash: bool = False

    @property
    def version_key(self) -> str:
        """Version stamp as stored in recordings.plaud_version."""
        return str(self.version_ms)


class PlaudRecordingsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: int = 0
    msg: str = ""
    data_file_total: int = 0
    data_file_list: List[PlaudRecording] = Field(default_factory=list)


class PlaudTempUrlResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: int = 0
    temp_url: str
    temp_url_opus: Optional[str] = None


class PlaudDevice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sn: str
    name: str = ""
    model: str = ""
    version_number: Optional[int] = None


class PlaudDeviceListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: int = 0
    msg: str = ""
    data_devices: List[PlaudDevice] = Field(default_factory=list)


class PlaudUpdateFilenameResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: int = 0
    msg: str = ""
    data_file: Optional[Any] = None
