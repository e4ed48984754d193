import base64
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from app.core.dependencies import get_current_user, get_storage_client
from app.db.schema import User
from app.models.common import ApiResponse
from app.models.upload import GatewayUrl, RetrievedContent, UploadedFile, UploadedFiles
from app.services.storage import IPFSStorageClient
from app.utils.file_storage import read_upload, read_uploads

router = APIRouter()


@router.post(
    "/ipfs",
    response_model=ApiResponse[UploadedFile],
    status_code=status.HTTP_200_OK,
    summary="Upload File",
    description="Validates one file and pins it to IPFS. Returns its content identifier."
)
async def upload_file(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    storage: IPFSStorageClient = Depends(get_storage_client)
):
    content, filename, content_type = await read_upload(file)
    cid = await run_in_threadpool(
        storage.upload_with_retry, lambda: storage.upload_file(content, filename, content_type)
    )
    logger.info(f"{current_user.wallet_address} uploaded {filename} as {cid}")

    return ApiResponse(
        message="File uploaded successfully",
        data=UploadedFile(
            file_name=filename,
            ipfs_hash=cid,
            ipfs_url=storage.gateway_url(cid),
            file_size=len(content),
            mime_type=content_type,
        ),
    )


@router.post(
    "/ipfs-multiple",
    response_model=ApiResponse[UploadedFiles],
    status_code=status.HTTP_200_OK,
    summary="Upload Files",
    description="Validates every file first, then pins them in order. At most 10 files."
)
async def upload_files(
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    storage: IPFSStorageClient = Depends(get_storage_client)
):
    uploads = await read_uploads(files)
    cids = await run_in_threadpool(storage.upload_many, uploads)
    logger.info(f"{current_user.wallet_address} uploaded {len(cids)} files")

    items = [
        UploadedFile(
            file_name=filename,
            ipfs_hash=cid,
            ipfs_url=storage.gateway_url(cid),
            file_size=len(content),
            mime_type=content_type,
        )
        for (content, filename, content_type), cid in zip(uploads, cids)
    ]
    return ApiResponse(
        message="Files uploaded successfully",
        data=UploadedFiles(files=items, total_files=len(items)),
    )


@router.get(
    "/ipfs/{cid}",
    response_model=ApiResponse[RetrievedContent],
    summary="Retrieve File"
)
async def retrieve_file(
    cid: str,
    storage: IPFSStorageClient = Depends(get_storage_client)
):
    data = await run_in_threadpool(storage.retrieve, cid)
    encoding = None
    if isinstance(data, bytes):
        data = base64.b64encode(data).decode("ascii")
        encoding = "base64"

    return ApiResponse(
        message="File retrieved successfully",
        data=RetrievedContent(cid=cid, data=data, encoding=encoding, ipfs_url=storage.gateway_url(cid)),
    )


@router.get(
    "/ipfs-url/{cid}",
    response_model=ApiResponse[GatewayUrl],
    summary="Gateway URL"
)
def gateway_url(
    cid: str,
    storage: IPFSStorageClient = Depends(get_storage_client)
):
    return ApiResponse(
        message="IPFS URL generated successfully",
        data=GatewayUrl(cid=cid, ipfs_url=storage.gateway_url(cid)),
    )
