"""Employee records that HR rows hang off."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import NotFoundError, BadRequestError
from erp.models.hr import Employee, EmployeeStatus
from erp.models.user import User
from erp.schemas.hr import EmployeeCreate, EmployeeUpdate
from erp.services.pagination import paginate

logger = logging.getLogger(__name__)


class EmployeeService:
    """CRUD for employees."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _generate_code(self) -> str:
        """Next EMP-NNNN code."""
        result = await self.db.execute(
            select(func.max(Employee.employee_code)).where(Employee.employee_code.like("EMP-%"))
        )
        max_code = result.scalar()
        seq = int(max_code.split("-")[-1]) + 1 if max_code else 1
        return f"EMP-{seq:04d}"

    async def get(self, employee_id: UUID) -> Employee:
        employee = await self.db.get(Employee, employee_id)
        if not employee:
            raise NotFoundError("Employee not found")
        return employee

    async def get_by_user(self, user_id: UUID) -> Optional[Employee]:
        result = await self.db.execute(select(Employee).where(Employee.user_id == user_id))
        return result.scalar_one_or_none()

    async def create(self, data: EmployeeCreate) -> Employee:
        existing = await self.db.execute(select(Employee).where(Employee.email == data.email))
        if existing.scalar_one_or_none():
            raise BadRequestError("Employee with this email already exists")

        if data.user_id:
            if not await self.db.get(User, data.user_id):
                raise NotFoundError("User not found")
            if await self.get_by_user(data.user_id):
                raise BadRequestError("User is already linked to an employee")

        if data.employee_code:
            dup = await self.db.execute(
                select(Employee).where(Employee.employee_code == data.employee_code)
            )
            if dup.scalar_one_or_none():
                raise BadRequestError("Employee code already exists")

        payload = data.model_dump()
        payload["employee_code"] = data.employee_code or await self._generate_code()
        payload["status"] = data.status.value
        employee = Employee(**payload)
        self.db.add(employee)
        await self.db.commit()
        await self.db.refresh(employee)

        logger.info(f"Created employee {employee.employee_code}")
        return employee

    async def list(
        self,
        status: Optional[EmployeeStatus] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        query = select(Employee)
        if status:
            query = query.where(Employee.status == status.value)
        if department:
            query = query.where(Employee.department == department)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Employee.first_name.ilike(pattern),
                Employee.last_name.ilike(pattern),
                Employee.email.ilike(pattern),
                Employee.employee_code.ilike(pattern),
            ))
        return await paginate(self.db, query, page, limit, order_by=[Employee.employee_code])

    async def update(self, employee_id: UUID, data: EmployeeUpdate) -> Employee:
        employee = await self.get(employee_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("user_id") and update_data["user_id"] != employee.user_id:
            linked = await self.get_by_user(update_data["user_id"])
            if linked and linked.id != employee.id:
                raise BadRequestError("User is already linked to an employee")

        for field, value in update_data.items():
            setattr(employee, field, value.value if hasattr(value, "value") else value)

        await self.db.commit()
        await self.db.refresh(employee)
        return employee

    async def remove(self, employee_id: UUID) -> None:
        employee = await self.get(employee_id)
        await self.db.delete(employee)
        await self.db.commit()
        logger.info(f"Deleted employee {employee.employee_code}")
