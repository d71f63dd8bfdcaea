"""Health check route handler."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}
