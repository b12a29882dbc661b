"""Tenant-scoped records served by the public by-domain endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class Tenant:
    """Public projection of a portfolio profile bound to a custom domain.

    ``account_id`` is kept for scoping follow-up reads and is not part of any
    public response.
    """

    account_id: str
    domain: str
    full_name: str = ""
    tagline: str = ""
    home_page_data: dict[str, Any] | None = None
    about_page_data: dict[str, Any] | None = None
    avatar_url: str | None = None
    avatar_position: dict[str, Any] | None = None
    avatar_zoom: int | None = None
    avatar_size: int | None = None
    background_image_url: str | None = None
    favicon_url: str | None = None
    contact_numbers: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class Project:
    project_id: str
    account_id: str
    title: str
    description: str
    long_description: str
    created_at: datetime
    image: str | None = None
    tech: list[str] = field(default_factory=list)
    demo_url: str | None = None
    github_url: str | None = None
    featured: bool = False
    published: bool = True
    key_features: list[str] = field(default_factory=list)


@dataclass(slots=True)
class WorkExperience:
    experience_id: str
    account_id: str
    company: str
    position: str
    start_date: datetime
    created_at: datetime
    location: str | None = None
    end_date: datetime | None = None
    is_current: bool = False
    visible: bool = True
    description: list[str] = field(default_factory=list)
