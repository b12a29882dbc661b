"""Public, tenant-scoped read routes addressed by custom domain."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from .dependencies import get_portfolio_service
from .errors import internal_failure
from ..domain.portfolio import PortfolioService
from ..domain.tenant import Project, Tenant, WorkExperience

router = APIRouter(prefix="/v1")


class ProfileResponse(BaseModel):
    """Public profile fields; owner identifiers are deliberately absent."""

    full_name: str
    tagline: str
    home_page_data: dict[str, Any] | None = None
    about_page_data: dict[str, Any] | None = None
    avatar_url: str | None = None
    avatar_position: dict[str, Any] | None = None
    avatar_zoom: int | None = None
    avatar_size: int | None = None
    background_image_url: str | None = None
    favicon_url: str | None = None
    contact_numbers: list[dict[str, Any]] = []

    @classmethod
    def from_domain(cls, tenant: Tenant) -> "ProfileResponse":
        return cls(
            full_name=tenant.full_name or "",
            tagline=tenant.tagline or "",
            home_page_data=tenant.home_page_data,
            about_page_data=tenant.about_page_data,
            avatar_url=tenant.avatar_url,
            avatar_position=tenant.avatar_position,
            avatar_zoom=tenant.avatar_zoom or None,
            avatar_size=tenant.avatar_size or None,
            background_image_url=tenant.background_image_url,
            favicon_url=tenant.favicon_url,
            contact_numbers=tenant.contact_numbers,
        )


class ProjectResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str
    long_description: str
    image: str | None
    tech: list[str]
    demo_url: str | None
    github_url: str | None
    featured: bool
    published: bool
    key_features: list[str]
    created_at: str

    @classmethod
    def from_domain(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.project_id,
            user_id=project.account_id,
            title=project.title,
            description=project.description,
            long_description=project.long_description,
            image=project.image,
            tech=project.tech,
            demo_url=project.demo_url,
            github_url=project.github_url,
            featured=project.featured,
            published=project.published,
            key_features=project.key_features,
            created_at=project.created_at.isoformat(),
        )


class WorkExperienceResponse(BaseModel):
    id: str
    user_id: str
    company: str
    position: str
    location: str | None
    start_date: str
    end_date: str | None
    is_current: bool
    visible: bool
    description: list[str]
    created_at: str

    @classmethod
    def from_domain(cls, experience: WorkExperience) -> "WorkExperienceResponse":
        return cls(
            id=experience.experience_id,
            user_id=experience.account_id,
            company=experience.company,
            position=experience.position,
            location=experience.location,
            start_date=experience.start_date.isoformat(),
            end_date=experience.end_date.isoformat() if experience.end_date else None,
            is_current=experience.is_current,
            visible=experience.visible,
            description=experience.description,
            created_at=experience.created_at.isoformat(),
        )


@router.get("/profile/by-domain", response_model=ProfileResponse)
def get_profile_by_domain(
    domain: str | None = Query(default=None),
    service: PortfolioService = Depends(get_portfolio_service),
) -> ProfileResponse:
    """Return the public profile bound to ``domain`` or 404."""
    with internal_failure("Failed to fetch profile"):
        tenant = service.get_profile(domain)
    return ProfileResponse.from_domain(tenant)


@router.get("/projects/by-domain", response_model=list[ProjectResponse])
def list_projects_by_domain(
    domain: str | None = Query(default=None),
    featured: bool = Query(default=False),
    service: PortfolioService = Depends(get_portfolio_service),
) -> list[ProjectResponse]:
    """Return published projects for ``domain``; unclaimed domains yield ``[]``."""
    with internal_failure("Failed to fetch projects"):
        projects = service.list_projects(domain, featured_only=featured)
    return [ProjectResponse.from_domain(project) for project in projects]


@router.get("/work-experiences/by-domain", response_model=list[WorkExperienceResponse])
def list_work_experiences_by_domain(
    domain: str | None = Query(default=None),
    service: PortfolioService = Depends(get_portfolio_service),
) -> list[WorkExperienceResponse]:
    """Return visible work experiences for ``domain``; unclaimed domains yield ``[]``."""
    with internal_failure("Failed to fetch work experiences"):
        experiences = service.list_work_experiences(domain)
    return [WorkExperienceResponse.from_domain(item) for item in experiences]
