"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (partners,
tolls, projects, and the per-project collections the portal views
read). Credential lookups return SQLModel objects; the collection
queries return plain row dictionaries so the same row mappers serve
both the local datastore and the hosted REST API.
"""

from typing import Iterable, List, Optional, Type
from sqlmodel import Session, SQLModel, select
from sqlalchemy import func
from . import models

EXPENSE_STATUSES = ('approved', 'paid')


def as_rows(objects: Iterable[SQLModel]) -> List[dict]:
    return [o.model_dump() for o in objects]


class PartnerRepository:
    """Queries and inserts for `CSRPartner` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, partner: models.CSRPartner) -> models.CSRPartner:
        """Persist a new partner and return the managed instance."""
        self.session.add(partner)
        self.session.commit()
        self.session.refresh(partner)
        return partner

    def get(self, partner_id: str) -> Optional[models.CSRPartner]:
        return self.session.get(models.CSRPartner, partner_id)

    def list_by_contact_person(self, contact_person: str) -> List[models.CSRPartner]:
        """Partners whose `contact_person` equals `contact_person`, ignoring case."""
        stmt = select(models.CSRPartner).where(
            func.lower(models.CSRPartner.contact_person) == contact_person.lower()
        )
        return self.session.exec(stmt).all()

    def list_all(self) -> List[models.CSRPartner]:
        return self.session.exec(select(models.CSRPartner).order_by(models.CSRPartner.name)).all()

    def update_branding(self, partner: models.CSRPartner, **fields) -> models.CSRPartner:
        """Set website/colour/logo fields on `partner`; None values are skipped."""
        for key, value in fields.items():
            if value is not None:
                setattr(partner, key, value)
        self.session.add(partner)
        self.session.commit()
        self.session.refresh(partner)
        return partner


class TollRepository:
    """Queries and inserts for `Toll` (subcompany) rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, toll: models.Toll) -> models.Toll:
        self.session.add(toll)
        self.session.commit()
        self.session.refresh(toll)
        return toll

    def get(self, toll_id: str) -> Optional[models.Toll]:
        return self.session.get(models.Toll, toll_id)

    def list_by_poc_name(self, poc_name: str) -> List[models.Toll]:
        """Tolls whose `poc_name` equals `poc_name`, ignoring case."""
        stmt = select(models.Toll).where(func.lower(models.Toll.poc_name) == poc_name.lower())
        return self.session.exec(stmt).all()

    def list_for_partner(self, partner_id: str) -> List[models.Toll]:
        stmt = select(models.Toll).where(models.Toll.csr_partner_id == partner_id).order_by(models.Toll.toll_name)
        return self.session.exec(stmt).all()


class ProjectRepository:
    """Project queries scoped to a partner (and optionally one toll)."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, project: models.Project) -> models.Project:
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        return project

    def get(self, project_id: str) -> Optional[models.Project]:
        return self.session.get(models.Project, project_id)

    def list_for_partner(self, partner_id: str, toll_id: Optional[str] = None) -> List[dict]:
        """Project rows of `partner_id`, newest start date first.

        Toll users only ever see the projects assigned to their toll.
        """
        stmt = select(models.Project).where(models.Project.csr_partner_id == partner_id)
        if toll_id:
            stmt = stmt.where(models.Project.toll_id == toll_id)
        stmt = stmt.order_by(models.Project.start_date.desc())
        return as_rows(self.session.exec(stmt).all())


class CollectionRepository:
    """Per-project collections (timelines, reports, media, ...) as row dicts."""
    def __init__(self, session: Session):
        self.session = session

    def rows_for_projects(self, model: Type[SQLModel], project_ids: List[str]) -> List[dict]:
        """Return every `model` row whose `project_id` is in `project_ids`."""
        if not project_ids:
            return []
        stmt = select(model).where(model.project_id.in_(project_ids))
        return as_rows(self.session.exec(stmt).all())

    def active_activities(self, project_ids: List[str]) -> List[dict]:
        """Active activities with their project name attached."""
        if not project_ids:
            return []
        stmt = (
            select(models.ProjectActivity, models.Project.name)
            .join(models.Project, models.Project.id == models.ProjectActivity.project_id)
            .where(models.ProjectActivity.project_id.in_(project_ids), models.ProjectActivity.is_active == True)  # noqa: E712
            .order_by(models.ProjectActivity.section_order, models.ProjectActivity.activity_order)
        )
        return [{**activity.model_dump(), 'project_name': name or ''} for activity, name in self.session.exec(stmt).all()]

    def activity_items(self, activity_ids: List[str]) -> List[dict]:
        if not activity_ids:
            return []
        stmt = (
            select(models.ProjectActivityItem)
            .where(models.ProjectActivityItem.activity_id.in_(activity_ids))
            .order_by(models.ProjectActivityItem.item_order)
        )
        return as_rows(self.session.exec(stmt).all())

    def counted_expenses(self, project_ids: List[str]) -> List[dict]:
        """Expenses that count as utilised budget (approved or paid)."""
        if not project_ids:
            return []
        stmt = select(models.ProjectExpense).where(
            models.ProjectExpense.project_id.in_(project_ids),
            models.ProjectExpense.status.in_(EXPENSE_STATUSES),
        )
        return as_rows(self.session.exec(stmt).all())

    def add_all(self, rows: Iterable[SQLModel]) -> None:
        """Insert several rows in one commit (seeding)."""
        for row in rows:
            self.session.add(row)
        self.session.commit()
