"""SQLModel data models.

This module defines the portal's database tables using SQLModel. Table
names mirror the hosted schema so the same queries work against either
datastore. Ids are opaque strings (UUID hex) as in the hosted schema.
"""

import uuid
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime, date, timezone


def new_id() -> str:
    return uuid.uuid4().hex


# `real_time_updates` has a column named `date`; the alias keeps its annotation unambiguous.
UpdateDate = Optional[date]


class CSRPartner(SQLModel, table=True):
    """A sponsoring company.

    `contact_person` + `poc_password` are the partner login credentials.
    `poc_password` is compared as stored; a passlib hash is also accepted.
    """
    __tablename__ = "csr_partners"
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    company_name: Optional[str] = None
    contact_person: Optional[str] = Field(default=None, index=True)
    poc_password: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    primary_color: Optional[str] = None
    logo_url: Optional[str] = None


class Toll(SQLModel, table=True):
    """A sub-account of a partner scoped to a subset of its projects."""
    __tablename__ = "csr_partner_tolls"
    id: str = Field(default_factory=new_id, primary_key=True)
    csr_partner_id: str = Field(foreign_key="csr_partners.id", index=True)
    toll_name: str
    poc_name: Optional[str] = Field(default=None, index=True)
    poc_password: Optional[str] = None
    email_id: Optional[str] = None
    state: Optional[str] = None


class Project(SQLModel, table=True):
    """A funded project.

    Child projects (`parent_project_id`) share the parent's budget.
    Metric values live both in dedicated columns and in the JSON
    columns `project_metrics`, `targets` and `achievements`.
    """
    __tablename__ = "projects"
    id: str = Field(default_factory=new_id, primary_key=True)
    csr_partner_id: Optional[str] = Field(default=None, foreign_key="csr_partners.id", index=True)
    toll_id: Optional[str] = Field(default=None, foreign_key="csr_partner_tolls.id", index=True)
    parent_project_id: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = None
    project_code: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    start_date: Optional[date] = None
    expected_end_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    total_budget: Optional[float] = None
    approved_budget: Optional[float] = None
    utilized_budget: Optional[float] = None
    pending_budget: Optional[float] = None
    beneficiaries_reached: Optional[int] = None
    total_beneficiaries: Optional[int] = None
    direct_beneficiaries: Optional[int] = None
    indirect_beneficiaries: Optional[int] = None
    male_beneficiaries: Optional[int] = None
    female_beneficiaries: Optional[int] = None
    children_beneficiaries: Optional[int] = None
    pads_distributed: Optional[int] = None
    trees_planted: Optional[int] = None
    meals_served: Optional[int] = None
    students_enrolled: Optional[int] = None
    schools_renovated: Optional[int] = None
    project_metrics: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    targets: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    achievements: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    is_beneficiary_project: Optional[bool] = None
    beneficiary_name: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Timeline(SQLModel, table=True):
    __tablename__ = "timelines"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    completion_percentage: Optional[float] = None
    category: Optional[str] = None
    status: Optional[str] = None
    is_critical_path: Optional[bool] = None
    color: Optional[str] = None


class ProjectActivity(SQLModel, table=True):
    """A planned activity shown on the timeline (Gantt) view."""
    __tablename__ = "project_activities"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    activity_code: Optional[str] = None
    title: str
    description: Optional[str] = None
    section: Optional[str] = None
    section_order: int = 0
    activity_order: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    status: str = "not_started"
    completion_percentage: float = 0
    responsible_person: Optional[str] = None
    priority: str = "medium"
    remarks: Optional[str] = None
    is_active: bool = True


class ProjectActivityItem(SQLModel, table=True):
    """A checklist entry belonging to a `ProjectActivity`."""
    __tablename__ = "project_activity_items"
    id: str = Field(default_factory=new_id, primary_key=True)
    activity_id: str = Field(foreign_key="project_activities.id", index=True)
    item_text: str
    item_order: int = 0
    is_completed: bool = False
    completed_at: Optional[datetime] = None


class Report(SQLModel, table=True):
    __tablename__ = "reports"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    report_code: Optional[str] = None
    description: Optional[str] = None
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    report_drive_link: Optional[str] = None
    generated_date: Optional[date] = None
    submitted_date: Optional[date] = None
    approved_date: Optional[date] = None
    sent_date: Optional[date] = None
    publication_date: Optional[date] = None
    is_public: Optional[bool] = None


class RealTimeUpdate(SQLModel, table=True):
    __tablename__ = "real_time_updates"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    description: Optional[str] = None
    date: UpdateDate = None
    drive_link: Optional[str] = None
    documents: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    pdf_url: Optional[str] = None
    update_no: Optional[str] = None
    update_type: Optional[str] = None
    location: Optional[str] = None
    beneficiaries_count: Optional[int] = None
    is_downloadable: Optional[bool] = None
    is_public: Optional[bool] = None
    is_sent_to_client: Optional[bool] = None
    is_featured: Optional[bool] = None


class MonthlyUpdate(SQLModel, table=True):
    """A monthly update PDF; surfaces both as a report and as an update."""
    __tablename__ = "real_time_temp"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    update_number: Optional[str] = None
    description: Optional[str] = None
    date_of_report: Optional[date] = None
    pdf_link: Optional[str] = None


class MergedReport(SQLModel, table=True):
    """A report assembled from several monthly update PDFs."""
    __tablename__ = "real_time_merged_reports"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pdf_url: Optional[str] = None


class MediaArticle(SQLModel, table=True):
    """Photos, videos and press coverage; split into media and articles on read."""
    __tablename__ = "media_articles"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    description: Optional[str] = None
    media_type: Optional[str] = None
    category: Optional[str] = None
    news_channel: Optional[str] = None
    drive_link: Optional[str] = None
    drive_folder_link: Optional[str] = None
    article_url: Optional[str] = None
    is_geo_tagged: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_downloadable: Optional[bool] = None
    update_id: Optional[str] = None
    publication_date: Optional[date] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CalendarEvent(SQLModel, table=True):
    __tablename__ = "calendar_events"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    event_date: Optional[date] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    venue: Optional[str] = None
    itenary_url: Optional[str] = None


class ProjectExpense(SQLModel, table=True):
    """An expense; only `approved` and `paid` rows count as utilised budget."""
    __tablename__ = "project_expenses"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    total_amount: Optional[float] = None
    status: Optional[str] = None
    expense_date: Optional[date] = None


class ProjectImpactMetric(SQLModel, table=True):
    __tablename__ = "project_impact_metrics"
    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    metric_name: Optional[str] = None
    metric_description: Optional[str] = None
    category: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    metric_type: Optional[str] = None
    target_value: Optional[float] = None
    achieved_value: Optional[float] = None
    progress_percentage: Optional[float] = None
    target_date: Optional[date] = None
    start_date: Optional[date] = None
    last_updated_date: Optional[date] = None
