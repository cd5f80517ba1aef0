from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from cloudcapsule.blobstore import Blob, LocalBlobStore
from cloudcapsule.deps import get_blob_store, get_current_identity
from cloudcapsule.schemas import UploadResponse
from cloudcapsule.security import Identity

router = APIRouter(prefix="/api/uploads", tags=["uploads"])


@router.post("", response_model=UploadResponse)
def upload_photos(
    photos: List[UploadFile] = File(default=[]),
    identity: Identity = Depends(get_current_identity),
    blob_store: LocalBlobStore = Depends(get_blob_store),
):
    """
    Stores photos and returns their references, to be passed as photo_refs
    when creating or updating a capsule. Rejected files are left out.
    """
    # one byte past the limit is enough for save() to reject it
    limit = blob_store.max_bytes + 1
    blobs = [
        Blob(data=photo.file.read(limit), filename=photo.filename or "", content_type=photo.content_type)
        for photo in photos
    ]
    return UploadResponse(urls=blob_store.save_many(blobs))
