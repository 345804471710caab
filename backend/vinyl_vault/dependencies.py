"""FastAPI dependencies shared by the routers."""
import os
from typing import Optional

from fastapi import Request, UploadFile

from vinyl_vault.container import Container
from vinyl_vault.files.schemas import UploadedFile


def get_container(request: Request) -> Container:
    return request.app.state.container


def as_uploaded_file(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Adapt a multipart upload for the services. Empty file fields count as absent."""
    if upload is None or not upload.filename:
        return None
    size = upload.size
    if size is None:
        stream = upload.file
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
    return UploadedFile(stream=upload.file, filename=upload.filename, size=size)
