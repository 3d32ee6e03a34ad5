from typing import Annotated

from fastapi import APIRouter, Depends

from ..dependencies import get_dashboard_service
from ..models import User
from ..schemas import envelope
from ..security import get_current_active_user
from ..services import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", summary="Dashboard statistics for the current user")
async def dashboard_stats(
        current_user: Annotated[User, Depends(get_current_active_user)],
        dashboard: Annotated[DashboardService, Depends(get_dashboard_service)],
):
    return envelope(dashboard.stats(current_user))
