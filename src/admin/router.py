from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.database import get_db
from src.auth.dependencies import require_admin
from src.admin.schemas import (
    AnalyticsReport, AdminUserSummary, RoleUpdate, SystemSettingValue, SystemSettingUpdate
)
from src.admin.admin_service import AdminManagementService
from src.admin.analytics_service import AnalyticsService

router = APIRouter()

# Analytics Endpoints
@router.get("/analytics", response_model=AnalyticsReport)
def get_analytics(
    days: int = Query(30, ge=1, le=365, description="Reporting window in days"),
    admin_user = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Revenue, ticket, user, route and refund metrics"""
    try:
        return AnalyticsService(db).get_report(days=days)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load analytics: {str(e)}"
        )

# User Management Endpoints
@router.get("/users", response_model=List[AdminUserSummary])
def list_users(
    search: Optional[str] = Query(None, description="Match name, email or phone"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin_user = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List users with their roles and wallet balances"""
    return AdminManagementService(db).list_users(search=search, skip=skip, limit=limit)

@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    role_update: RoleUpdate,
    admin_user = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Change a user's role"""
    try:
        roles = AdminManagementService(db).set_user_role(user_id, role_update.role, changed_by=admin_user.id)
    except LookupError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return {"user_id": user_id, "roles": roles}

# System Settings Endpoints
@router.get("/settings", response_model=List[SystemSettingValue])
def get_settings(
    admin_user = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Current values of the system settings"""
    return AdminManagementService(db).get_settings()

@router.put("/settings/{key}", response_model=SystemSettingValue)
def update_setting(
    key: str,
    setting_update: SystemSettingUpdate,
    admin_user = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update a system setting such as the miles value or referral reward"""
    try:
        return AdminManagementService(db).update_setting(key, setting_update.value, updated_by=admin_user.id)
    except LookupError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
