from typing import Any, List, Optional

from app.models.common import ApiModel


class UploadedFile(ApiModel):
    file_name: str
    ipfs_hash: str
    ipfs_url: str
    file_size: int
    mime_type: str


class UploadedFiles(ApiModel):
    files: List[UploadedFile]
    total_files: int


class RetrievedContent(ApiModel):
    """`data` is parsed JSON, text, or base64 when `encoding` says so."""
    cid: str
    data: Any = None
    encoding: Optional[str] = None
    ipfs_url: str


class GatewayUrl(ApiModel):
    cid: str
    ipfs_url: str
