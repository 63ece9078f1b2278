"""User autocomplete route."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Query

from app.services.user_service import search_users

router = APIRouter()


@router.get("/api/users", response_model=List[str], tags=["users"])
def list_users(query: Optional[str] = Query(default=None, description="Case-insensitive substring")) -> List[str]:
    return search_users(query)
