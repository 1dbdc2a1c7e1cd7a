"""
Serves stored upload files back by the URL handed out at upload time.
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from insightgen import file_storage

router = APIRouter()


@router.get(file_storage.FILES_ROUTE + "/{file_id}/{filename}")
def get_stored_file(file_id: str, filename: str):
    path = file_storage.get_file_path(file_id, filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, filename=path.name)
