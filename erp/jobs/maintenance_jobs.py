"""
Maintenance Jobs

Periodic sweeps that keep record status in line with the calendar:
- Compliance items past their expiry date become EXPIRED
- Invoices and bills past their due date become OVERDUE
- Expired export and print files are removed
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any

from erp.database import get_db_session
from erp.services.compliance_service import ComplianceService
from erp.services.invoice_service import InvoiceService
from erp.services.bill_service import BillService
from erp.services.export_service import ExportService
from erp.services.print_service import PrintService

logger = logging.getLogger(__name__)


async def expire_compliance_items() -> Dict[str, Any]:
    """Mark COMPLETED compliance items whose expiry date has passed as EXPIRED."""
    async with get_db_session() as session:
        expired = await ComplianceService(session).mark_expired()
    return {"expired": expired}


async def mark_overdue_documents() -> Dict[str, Any]:
    """Flag unpaid invoices and bills past their due date."""
    async with get_db_session() as session:
        invoices = await InvoiceService(session).mark_overdue()
        bills = await BillService(session).mark_overdue()
    return {"invoices": invoices, "bills": bills}


async def cleanup_expired_files() -> Dict[str, Any]:
    """Delete expired export and print files together with their jobs."""
    start_time = datetime.now(timezone.utc)
    async with get_db_session() as session:
        exports = await ExportService(session).cleanup_expired()
        prints = await PrintService(session).cleanup_expired()

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    return {"exports": exports, "prints": prints, "duration_seconds": duration}


JOBS = {
    "expire_compliance_items": expire_compliance_items,
    "mark_overdue_documents": mark_overdue_documents,
    "cleanup_expired_files": cleanup_expired_files,
}
