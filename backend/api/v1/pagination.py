"""Shared page query parameter for listing endpoints."""

from typing import Annotated

from fastapi import Query

from services.pagination import MAX_PAGE

PageQuery = Annotated[int, Query(ge=1, le=MAX_PAGE, description="1-indexed page number")]
