"""
Response models for the CipherDeck API.

Request bodies are taken as raw JSON and validated by the core so that
malformed matrices are reported as 400 with the store's own message.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any, Union


class UploadResponse(BaseModel):
    message: str
    id: str


class UpdateResponse(BaseModel):
    message: str
    id: str


class DeleteResponse(BaseModel):
    message: str


class RecordListResponse(BaseModel):
    records: List[Union[str, Dict[str, Any]]]


class ReloadResponse(BaseModel):
    message: str
    count: int
    skipped: int = 0


class ReviewResponse(BaseModel):
    review: Dict[str, Any]


class CertifyResponse(BaseModel):
    certification: Dict[str, Any]


class PingResponse(BaseModel):
    status: str
    phase: str
    uptime: float
    loaded_count: int
    vault_loaded: bool

    @field_validator('uptime')
    @classmethod
    def uptime_not_negative(cls, v):
        return max(v, 0.0)


class VaultStatusResponse(BaseModel):
    record_count: int
    launch_ready: bool


class VaultSnapshotResponse(BaseModel):
    snapshot: Dict[str, Any]
    timestamp: str


class VaultUpdateResponse(BaseModel):
    message: str
    snapshot: Dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
    id: Optional[str] = None
    debug: Optional[str] = None
