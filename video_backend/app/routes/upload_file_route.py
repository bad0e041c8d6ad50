from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from functools import lru_cache
from typing import Optional
import logging

from video_backend.app.controllers.upload_controller import UploadController
from video_backend.app.models.messages import SuccessfulMessage, UploadResponse
from video_backend.app.models.uploading import UploadStatusRequest
from video_backend.app.utils.CustomHTTPException import CustomHTTPException
from video_backend.app.utils.errors import MissingPartError, ReassemblyError, SizeMismatchError
from video_backend.config.config import settings


route = APIRouter(prefix="/api", tags=["upload_router"])
logger = logging.getLogger(__name__)

REASSEMBLY_STATUS = {
    MissingPartError: 409,
    SizeMismatchError: 422,
}


@lru_cache
def get_upload_controller() -> UploadController:
    # one instance per process so the per-session locks are shared
    return UploadController(settings)


def _upload_response(status_code: int, error: Optional[str] = None, prevent_retry: bool = False) -> JSONResponse:
    body = UploadResponse(success=error is None, error=error, prevent_retry=prevent_retry)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


@route.get("/upload/instr")
async def upload_instructions(upload_controller: UploadController = Depends(get_upload_controller)):
    return SuccessfulMessage(
        detail="Successfully request chunked upload instructions",
        payload=upload_controller.upload_instructions(),
    )

@route.post("/upload")
async def upload(
    qquuid: str = Form(...),
    qqfile: UploadFile = File(...),
    qqpartindex: Optional[int] = Form(None),
    qqtotalparts: Optional[int] = Form(None),
    qqtotalfilesize: Optional[int] = Form(None),
    qqfilename: Optional[str] = Form(None),
    qqchunksize: Optional[int] = Form(None),
    qqpartbyteoffset: Optional[int] = Form(None),
    upload_controller: UploadController = Depends(get_upload_controller),
):
    file_name = qqfilename or qqfile.filename or ""
    logger.info(f"Starting upload handling of request with uuid of [{qquuid}]")

    try:
        if qqpartindex is None:
            await upload_controller.store_whole_file(qquuid, qqfile, file_name)
        else:
            logger.debug(f"part index is {qqpartindex} (byte offset {qqpartbyteoffset}) filename is {file_name}")
            await upload_controller.process_chunk(
                qquuid, qqpartindex, qqfile, file_name,
                total_parts=qqtotalparts,
                total_file_size=qqtotalfilesize,
                chunk_size=qqchunksize,
            )
    except ValueError as e:
        logger.warning(f"Rejected upload {qquuid}: {e}")
        return _upload_response(400, str(e), prevent_retry=True)
    except OSError as e:
        logger.error(f"Error saving upload {qquuid}: {e}")
        return _upload_response(500, f"Error saving chunk: {e}")

    return _upload_response(200)

@route.post("/chunksdone")
async def chunks_done(
    qquuid: str = Form(...),
    qqfilename: str = Form(...),
    qqtotalfilesize: int = Form(...),
    qqtotalparts: int = Form(...),
    upload_controller: UploadController = Depends(get_upload_controller),
):
    try:
        upload_complete_res = await upload_controller.complete_chunked_upload(
            qquuid, qqfilename, qqtotalparts, qqtotalfilesize
        )
    except ReassemblyError as e:
        logger.error(f"Reassembly of {qquuid} failed: {e}")
        status_code = REASSEMBLY_STATUS.get(type(e), 500)
        raise CustomHTTPException(
            status_code=status_code,
            detail=str(e),
            # parts before the failure are already gone, the whole file must be resent
            payload={**e.payload(), "preventRetry": status_code != 500},
        )
    except ValueError as e:
        raise CustomHTTPException(status_code=400, detail=str(e), payload={"error_code": "INVALID_REQUEST"})

    return SuccessfulMessage(
        detail=f"Successfully reassembled {qqfilename}",
        payload=upload_complete_res,
    )

@route.post("/upload/status")
async def chunking_status(data: UploadStatusRequest, upload_controller: UploadController = Depends(get_upload_controller)):
    try:
        chunking_status_res = await upload_controller.chunked_upload_status(data.uuid)
    except LookupError as e:
        raise CustomHTTPException(status_code=404, detail=str(e), payload={"error_code": "NOT_FOUND"})
    except ValueError as e:
        raise CustomHTTPException(status_code=400, detail=str(e), payload={"error_code": "INVALID_REQUEST"})

    return SuccessfulMessage(
        detail="chunking status retrieved successfully",
        payload=chunking_status_res,
    )

@route.delete("/upload/{uuid}")
async def delete_upload(uuid: str, upload_controller: UploadController = Depends(get_upload_controller)):
    logger.info(f"Delete request received for uuid [{uuid}]")
    try:
        removed = await upload_controller.delete_upload(uuid)
    except ValueError as e:
        raise CustomHTTPException(status_code=400, detail=str(e), payload={"error_code": "INVALID_REQUEST"})

    if not removed:
        raise CustomHTTPException(status_code=404, detail=f"Upload session {uuid} not found", payload={"error_code": "NOT_FOUND"})

    return SuccessfulMessage(detail=f"Deleted upload {uuid}")
