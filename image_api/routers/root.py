from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "image-workflow-api", "status": "ok"}
