from sqlalchemy import select
from sqlalchemy.orm import Session

from batchline.db_models import FailedRecord, JobRun
from batchline.schemas import PipelineReport


def save_report(db: Session, job_name: str, report: PipelineReport) -> JobRun:
    run = JobRun(
        job_name=job_name,
        state=report.state.value,
        started_at=report.started_at,
        finished_at=report.finished_at,
        duration_seconds=report.duration,
        read_records=report.read,
        filtered_records=report.filtered,
        processed_records=report.processed,
        failed_records=report.failed,
        error=str(report.error) if report.error is not None else None,
    )
    for failure in report.failures:
        run.failures.append(FailedRecord(record_number=failure.number, stage=failure.stage, reason=failure.reason))

    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def get_run(db: Session, run_id: int) -> JobRun | None:
    return db.get(JobRun, run_id)


def list_runs(db: Session, *, limit: int = 10, job_name: str | None = None) -> list[JobRun]:
    stmt = select(JobRun).order_by(JobRun.id.desc()).limit(limit)
    if job_name is not None:
        stmt = stmt.where(JobRun.job_name == job_name)
    return list(db.execute(stmt).scalars().all())
