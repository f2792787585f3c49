# gta_watch/routers/guidance.py

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..deps import get_guidance
from ..models.incidents import parse_category
from ..schemas import GuidanceRequest, GuidanceResponse
from ..services.guidance import GuidanceService

router = APIRouter()


@router.post("/guidance", response_model=GuidanceResponse)
async def guidance(req: GuidanceRequest, service: GuidanceService = Depends(get_guidance)):
    if not req.category:
        return JSONResponse(status_code=400, content={"error": "Category is required"})

    category = parse_category(req.category)
    if category is None:
        return JSONResponse(
            status_code=400,
            content={"error": f"Unsupported category: {req.category}"},
        )

    text = await service.request_guidance(category, req.description, req.latitude, req.longitude)
    return GuidanceResponse(guidance=text)
