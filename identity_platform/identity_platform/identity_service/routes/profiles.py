"""
Profile Router - CRUD and lookup endpoints for user profiles.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import NotFoundError
from ..profiles import PROFILE_NOT_FOUND, ProfileManager
from ..schemas import ProfileCreateRequest, ProfileListResponse, ProfileStats, ProfileUpdateRequest

router = APIRouter(prefix="/profiles", tags=["profiles"])
logger = logging.getLogger(__name__)


def get_profile_manager(db: Session = Depends(get_db)) -> ProfileManager:
    return ProfileManager(db)


@router.post("", status_code=201)
def create_profile(payload: ProfileCreateRequest, manager: ProfileManager = Depends(get_profile_manager)):
    profile = manager.create_profile(payload.auth_ref, payload.first_name, payload.last_name)
    return {"success": True, "message": "Profile created successfully", "data": profile.to_dict()}


@router.get("", response_model=ProfileListResponse)
def find_all(
    limit: Optional[int] = Query(None, ge=0, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    manager: ProfileManager = Depends(get_profile_manager),
):
    """
    List profiles in creation order.

    Args:
        limit: Maximum number of profiles to return (max 1000)
        offset: Number of profiles to skip

    Returns:
        Page of profiles and the total profile count
    """
    result = manager.find_all(limit=limit, offset=offset)
    return {
        "success": True,
        "profiles": [p.to_dict() for p in result["profiles"]],
        "total": result["total"],
    }


# Fixed paths are declared before /{profile_id} so they are not captured by it

@router.get("/search")
def search_by_partial_name(
    name: str,
    limit: int = Query(10, gt=0, le=100),
    manager: ProfileManager = Depends(get_profile_manager),
):
    profiles = manager.search_by_partial_name(name, limit)
    return {"success": True, "data": [p.to_dict() for p in profiles]}


@router.get("/stats")
def get_stats(manager: ProfileManager = Depends(get_profile_manager)):
    return {"success": True, "data": ProfileStats(**manager.get_stats()).model_dump()}


@router.get("/by-email")
def find_by_email(email: str, manager: ProfileManager = Depends(get_profile_manager)):
    profile = manager.find_by_email(email)
    if profile is None:
        raise NotFoundError(PROFILE_NOT_FOUND)
    return {"success": True, "data": profile.to_dict()}


@router.get("/by-auth/{auth_ref}")
def find_by_auth_ref(auth_ref: str, manager: ProfileManager = Depends(get_profile_manager)):
    profile = manager.find_by_auth_ref(auth_ref)
    if profile is None:
        raise NotFoundError(PROFILE_NOT_FOUND)
    return {"success": True, "data": profile.to_dict()}


@router.get("/{profile_id}")
def find_one(profile_id: str, manager: ProfileManager = Depends(get_profile_manager)):
    return {"success": True, "data": manager.find_one(profile_id).to_dict()}


@router.get("/{profile_id}/exists")
def exists(profile_id: str, manager: ProfileManager = Depends(get_profile_manager)):
    return {"success": True, "exists": manager.exists(profile_id)}


@router.patch("/{profile_id}")
def update(profile_id: str, payload: ProfileUpdateRequest, manager: ProfileManager = Depends(get_profile_manager)):
    profile = manager.update(profile_id, **payload.model_dump(exclude_unset=True))
    logger.info("Profile updated: profile_id=%s", profile_id)
    return {"success": True, "message": "Profile updated successfully", "data": profile.to_dict()}


@router.delete("/{profile_id}")
def delete(profile_id: str, manager: ProfileManager = Depends(get_profile_manager)):
    manager.delete(profile_id)
    return {"success": True, "message": "Profile deleted successfully"}
