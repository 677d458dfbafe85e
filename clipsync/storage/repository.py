"""Storage repository for multi-clip job records."""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from clipsync.core.config import Settings
from clipsync.models.schemas import MultiClipJob


class JobRepository:
    """Repository for storing and loading job records as JSON documents keyed by job id."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the repository.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.storage_path = Path(settings.jobs_storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def save_job(self, job: MultiClipJob) -> None:
        """
        Save a job record to storage, replacing any previous version.

        Args:
            job: Job record to save
        """
        file_path = self.storage_path / f"{job.id}.json"
        tmp_path = file_path.with_suffix(".json.tmp")

        job_dict = job.model_dump(mode="json")
        # Readers only ever see a complete document
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(job_dict, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, file_path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

        self.logger.debug(f"Job saved to: {file_path}")

    def load_job(self, job_id: str) -> Optional[MultiClipJob]:
        """
        Load a job record from storage.

        Args:
            job_id: Job identifier

        Returns:
            Job record if found, None otherwise
        """
        file_path = self.storage_path / f"{job_id}.json"

        if not file_path.exists():
            self.logger.warning(f"Job not found: {job_id}")
            return None

        with open(file_path, "r", encoding="utf-8") as f:
            job_dict = json.load(f)

        return MultiClipJob.model_validate(job_dict)

    def list_jobs(self) -> list[str]:
        """
        List all job IDs.

        Returns:
            List of job IDs, sorted
        """
        job_ids = sorted(f.stem for f in self.storage_path.glob("*.json"))
        self.logger.info(f"Found {len(job_ids)} jobs")
        return job_ids

    def update_job(self, job_id: str, **changes: Any) -> MultiClipJob:
        """
        Read-modify-write a job record.

        Args:
            job_id: Job identifier
            **changes: Fields to replace

        Returns:
            The updated, validated job record

        Raises:
            KeyError: If the job does not exist
        """
        job = self.load_job(job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")

        merged = {**dict(job), **changes, "updated_at": datetime.now()}
        updated = MultiClipJob.model_validate(merged)
        self.save_job(updated)
        return updated
