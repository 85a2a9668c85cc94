from erp.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status

__all__ = ["start_scheduler", "shutdown_scheduler", "get_job_status"]
